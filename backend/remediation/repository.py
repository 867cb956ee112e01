"""Store access for the remediation core.

Every function that touches user-owned rows takes the authenticated user id and
filters by it. SQLAlchemy failures are rolled back and re-raised as
PersistenceError so the HTTP layer can pass the message through.
"""
from __future__ import annotations
import logging
from contextlib import contextmanager
from datetime import date, datetime
from typing import Any, Dict, Iterator, List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, selectinload

from .errors import PersistenceError
from .models import (
	DailyTask,
	ExamAttempt,
	ExamPaper,
	KnowledgeEntity,
	LearningAction,
	LearningGap,
	Question,
)
from .scoring import select_scope

logger = logging.getLogger(__name__)


@contextmanager
def _store_call(db: Session, what: str) -> Iterator[None]:
	try:
		yield
	except SQLAlchemyError as e:
		db.rollback()
		logger.exception("store failure during %s", what)
		raise PersistenceError(f"{what} failed: {e}") from e


# ---- papers & questions (shared, read-only) ----

def list_papers(db: Session) -> List[ExamPaper]:
	with _store_call(db, "list papers"):
		return list(db.scalars(select(ExamPaper).order_by(ExamPaper.created_at.desc())))


def get_paper(db: Session, paper_id: str) -> Optional[ExamPaper]:
	with _store_call(db, "get paper"):
		return db.get(ExamPaper, paper_id)


def questions_for_paper(db: Session, paper_id: str) -> List[Question]:
	with _store_call(db, "load questions"):
		stmt = select(Question).where(Question.paper_id == paper_id).order_by(Question.order_index)
		return list(db.scalars(stmt))


def questions_for_scope(db: Session, paper_id: str, section_type: Optional[str] = None) -> List[Question]:
	return select_scope(questions_for_paper(db, paper_id), section_type)


def get_question(db: Session, question_id: str) -> Optional[Question]:
	with _store_call(db, "get question"):
		return db.get(Question, question_id)


def knowledge_entities(db: Session, codes: Sequence[str]) -> List[KnowledgeEntity]:
	with _store_call(db, "load knowledge points"):
		return list(db.scalars(select(KnowledgeEntity).where(KnowledgeEntity.code.in_(list(codes)))))


# ---- attempts ----

def create_attempt(db: Session, user_id: str, paper_id: str, section_type: str, answers: Dict[str, str], score: int) -> ExamAttempt:
	with _store_call(db, "create attempt"):
		row = ExamAttempt(user_id=user_id, paper_id=paper_id, section_type=section_type, user_answers=answers, score=score)
		db.add(row)
		db.commit()
		db.refresh(row)
		return row


def get_attempt(db: Session, user_id: str, attempt_id: str) -> Optional[ExamAttempt]:
	with _store_call(db, "get attempt"):
		stmt = select(ExamAttempt).where(ExamAttempt.id == attempt_id, ExamAttempt.user_id == user_id)
		return db.scalars(stmt).first()


def attempts_for_user(db: Session, user_id: str) -> List[ExamAttempt]:
	with _store_call(db, "list attempts"):
		stmt = select(ExamAttempt).where(ExamAttempt.user_id == user_id).order_by(ExamAttempt.created_at.desc())
		return list(db.scalars(stmt))


def completed_sections(db: Session, user_id: str, paper_id: str) -> List[str]:
	with _store_call(db, "list completed sections"):
		stmt = select(ExamAttempt.section_type).where(ExamAttempt.user_id == user_id, ExamAttempt.paper_id == paper_id)
		seen: List[str] = []
		for section in db.scalars(stmt):
			if section and section not in seen:
				seen.append(section)
		return seen


# ---- gaps & actions ----

def create_gap(
	db: Session,
	user_id: str,
	question_id: str,
	attempt_id: str,
	gap_type: str,
	gap_detail: str,
	knowledge_points: List[str],
) -> LearningGap:
	with _store_call(db, "create gap"):
		row = LearningGap(
			user_id=user_id,
			question_id=question_id,
			attempt_id=attempt_id,
			gap_type=gap_type,
			gap_detail=gap_detail,
			knowledge_points=knowledge_points,
			status="active",
		)
		db.add(row)
		db.commit()
		db.refresh(row)
		return row


def get_gap(db: Session, user_id: str, gap_id: str) -> Optional[LearningGap]:
	with _store_call(db, "get gap"):
		stmt = select(LearningGap).where(LearningGap.id == gap_id, LearningGap.user_id == user_id)
		return db.scalars(stmt).first()


def active_gaps_for_user(db: Session, user_id: str) -> List[LearningGap]:
	"""Active gaps with their question eagerly loaded, newest first."""
	with _store_call(db, "load active gaps"):
		stmt = (
			select(LearningGap)
			.options(selectinload(LearningGap.question))
			.where(LearningGap.user_id == user_id, LearningGap.status == "active")
			.order_by(LearningGap.created_at.desc(), LearningGap.id)
		)
		return list(db.scalars(stmt))


def mark_gap_resolved(db: Session, gap: LearningGap) -> LearningGap:
	with _store_call(db, "resolve gap"):
		if gap.status != "resolved":
			gap.status = "resolved"
			gap.resolved_at = datetime.utcnow()
			db.add(gap)
			db.commit()
			db.refresh(gap)
		return gap


def create_action(db: Session, user_id: str, gap_id: str, action_type: str, context_data: Optional[Dict[str, Any]] = None) -> LearningAction:
	with _store_call(db, "record learning action"):
		row = LearningAction(user_id=user_id, gap_id=gap_id, action_type=action_type, context_data=context_data or {})
		db.add(row)
		db.commit()
		db.refresh(row)
		return row


# ---- daily tasks ----

def create_tasks_batch(db: Session, drafts: Sequence[Dict[str, Any]]) -> List[DailyTask]:
	"""Insert every draft in one transaction; either all rows exist afterwards or none do."""
	with _store_call(db, "create daily tasks"):
		rows = [DailyTask(is_completed=False, **draft) for draft in drafts]
		db.add_all(rows)
		db.commit()
		for row in rows:
			db.refresh(row)
		return rows


def tasks_for_date(db: Session, user_id: str, day: date) -> List[DailyTask]:
	with _store_call(db, "list daily tasks"):
		stmt = (
			select(DailyTask)
			.where(DailyTask.user_id == user_id, DailyTask.scheduled_date == day)
			.order_by(DailyTask.scheduled_date, DailyTask.created_at)
		)
		return list(db.scalars(stmt))


def pending_tasks(db: Session, user_id: str, today: date) -> List[DailyTask]:
	with _store_call(db, "list pending tasks"):
		stmt = (
			select(DailyTask)
			.where(
				DailyTask.user_id == user_id,
				DailyTask.is_completed.is_(False),
				DailyTask.scheduled_date >= today,
			)
			.order_by(DailyTask.scheduled_date, DailyTask.created_at)
		)
		return list(db.scalars(stmt))


def get_task(db: Session, user_id: str, task_id: str) -> Optional[DailyTask]:
	with _store_call(db, "get daily task"):
		stmt = select(DailyTask).where(DailyTask.id == task_id, DailyTask.user_id == user_id)
		return db.scalars(stmt).first()


def mark_task_completed(db: Session, task: DailyTask, completion_data: Optional[Dict[str, Any]] = None) -> DailyTask:
	with _store_call(db, "complete daily task"):
		if task.is_completed:
			return task
		task.is_completed = True
		task.completed_at = datetime.utcnow()
		task.completion_data = completion_data or {}
		db.add(task)
		db.commit()
		db.refresh(task)
		return task
