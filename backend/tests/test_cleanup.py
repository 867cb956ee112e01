from datetime import datetime, timedelta

from fastapi.testclient import TestClient

from remediation import db as db_module
from remediation import main
from remediation.cleanup import purge_stale_sessions
from remediation.models import AuthSession


def test_purge_removes_only_idle_sessions(db):
    now = datetime(2024, 5, 15, 9, 0, 0)
    db.add_all([
        AuthSession(session_id="old", username="alice", last_activity_at=now - timedelta(days=90)),
        AuthSession(session_id="fresh", username="alice", last_activity_at=now - timedelta(hours=1)),
    ])
    db.commit()
    assert purge_stale_sessions(db, now=now) == 1
    assert [s.session_id for s in db.query(AuthSession)] == ["fresh"]


def test_startup_keeps_a_handle_on_the_cleanup_loop(engine, session_factory, monkeypatch):
    def _get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    monkeypatch.setattr(main, "engine", engine)
    monkeypatch.setattr(db_module, "engine", engine)
    monkeypatch.setattr(main, "get_db", _get_db)
    with TestClient(main.app):
        assert main._cleanup_task is not None
        assert not main._cleanup_task.done()
