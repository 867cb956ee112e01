from sqlalchemy import create_engine, inspect

from remediation.db import ensure_schema


def test_ensure_schema_adds_missing_columns():
    eng = create_engine("sqlite://", future=True)
    with eng.begin() as conn:
        conn.exec_driver_sql("CREATE TABLE learning_gaps (id VARCHAR(32) PRIMARY KEY, gap_detail TEXT)")
        conn.exec_driver_sql("CREATE TABLE daily_tasks (id VARCHAR(32) PRIMARY KEY, completion_data JSON)")
    ensure_schema(eng)
    gap_cols = {c["name"] for c in inspect(eng).get_columns("learning_gaps")}
    assert {"knowledge_points", "resolved_at"} <= gap_cols
    task_cols = [c["name"] for c in inspect(eng).get_columns("daily_tasks")]
    assert task_cols.count("completion_data") == 1
    eng.dispose()
