from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Date, Integer, Text, Boolean, JSON, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from .db import Base


SECTION_TYPES = ["single_choice", "cloze", "reading", "writing"]
FULL_SCOPE = "full"
GAP_TYPES = ["vocab", "grammar", "logic", "careless"]
GAP_STATUSES = ["active", "resolved"]
TASK_TYPES = ["vocab_card", "grammar_video", "exercise"]
ACTION_TYPES = ["create_gap", "review_gap", "master_gap", "forget_gap"]


def _new_id() -> str:
	return uuid.uuid4().hex


class AuthUser(Base):
	__tablename__ = "auth_users"
	# Primary key is username; every owned row stores it as user_id
	username = Column(String(128), primary_key=True, index=True)
	password_hash = Column(String(256), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthSession(Base):
	__tablename__ = "auth_sessions"
	session_id = Column(String(64), primary_key=True)
	username = Column(String(128), nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	last_activity_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class ExamPaper(Base):
	__tablename__ = "exam_papers"
	id = Column(String(32), primary_key=True, default=_new_id)
	title = Column(String(256), nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

	questions = relationship("Question", back_populates="paper", order_by="Question.order_index")


class Question(Base):
	__tablename__ = "questions"
	__table_args__ = (UniqueConstraint("paper_id", "order_index", name="uq_question_order"),)
	id = Column(String(32), primary_key=True, default=_new_id)
	paper_id = Column(String(32), ForeignKey("exam_papers.id"), nullable=False, index=True)
	section_type = Column(String(32), nullable=True)
	order_index = Column(Integer, nullable=True)
	content = Column(Text, nullable=False)
	options = Column(JSON, nullable=True)
	correct_answer = Column(String(256), nullable=True)
	analysis = Column(Text, nullable=True)
	# {"kps": ["grammar.voice"], "article": "..."}
	meta = Column(JSON, nullable=True)

	paper = relationship("ExamPaper", back_populates="questions")

	@property
	def knowledge_points(self) -> list[str]:
		return list((self.meta or {}).get("kps") or [])

	@property
	def article(self) -> str | None:
		return (self.meta or {}).get("article")


class ExamAttempt(Base):
	__tablename__ = "user_exam_attempts"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(128), nullable=False, index=True)
	paper_id = Column(String(32), ForeignKey("exam_papers.id"), nullable=False, index=True)
	section_type = Column(String(32), default=FULL_SCOPE, nullable=False)
	user_answers = Column(JSON, nullable=False)
	score = Column(Integer, nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class LearningGap(Base):
	__tablename__ = "learning_gaps"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(128), nullable=False, index=True)
	question_id = Column(String(32), ForeignKey("questions.id"), nullable=False)
	attempt_id = Column(String(32), ForeignKey("user_exam_attempts.id"), nullable=False)
	gap_type = Column(String(16), nullable=False)
	gap_detail = Column(Text, nullable=False)
	knowledge_points = Column(JSON, nullable=True)
	status = Column(String(16), default="active", nullable=False, index=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	resolved_at = Column(DateTime, nullable=True)

	question = relationship("Question")


class LearningAction(Base):
	__tablename__ = "learning_actions"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(128), nullable=False, index=True)
	gap_id = Column(String(32), ForeignKey("learning_gaps.id"), nullable=False)
	action_type = Column(String(32), nullable=False)
	context_data = Column(JSON, nullable=True)
	occurred_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class DailyTask(Base):
	__tablename__ = "daily_tasks"
	id = Column(String(32), primary_key=True, default=_new_id)
	user_id = Column(String(128), nullable=False, index=True)
	scheduled_date = Column(Date, nullable=False, index=True)
	task_type = Column(String(32), nullable=False)
	content = Column(JSON, nullable=False)
	source_gap_id = Column(String(32), ForeignKey("learning_gaps.id"), nullable=True)
	is_completed = Column(Boolean, default=False, nullable=False)
	completed_at = Column(DateTime, nullable=True)
	completion_data = Column(JSON, nullable=True)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)


class KnowledgeEntity(Base):
	__tablename__ = "knowledge_entities"
	code = Column(String(128), primary_key=True)
	name = Column(String(128), nullable=False)
	description = Column(Text, nullable=True)
