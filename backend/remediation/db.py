from __future__ import annotations
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./app.db"

_connect_args = {"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {}

engine = create_engine(DATABASE_URL, connect_args=_connect_args, future=True)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Adds columns that create_all does not add to tables which already exist
def ensure_schema(bind=None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "user_exam_attempts" in tables:
		cols = {c["name"] for c in inspector.get_columns("user_exam_attempts")}
		with bind.begin() as conn:
			if "section_type" not in cols:
				conn.exec_driver_sql("ALTER TABLE user_exam_attempts ADD COLUMN section_type VARCHAR(32) DEFAULT 'full' NOT NULL")
	if "learning_gaps" in tables:
		cols = {c["name"] for c in inspector.get_columns("learning_gaps")}
		with bind.begin() as conn:
			if "knowledge_points" not in cols:
				conn.exec_driver_sql("ALTER TABLE learning_gaps ADD COLUMN knowledge_points JSON")
			if "resolved_at" not in cols:
				conn.exec_driver_sql("ALTER TABLE learning_gaps ADD COLUMN resolved_at DATETIME")
	if "daily_tasks" in tables:
		cols = {c["name"] for c in inspector.get_columns("daily_tasks")}
		with bind.begin() as conn:
			if "completion_data" not in cols:
				conn.exec_driver_sql("ALTER TABLE daily_tasks ADD COLUMN completion_data JSON")
