from __future__ import annotations
import logging
from typing import Any, Dict, List, Optional, Sequence, Union

from sqlalchemy.orm import Session

from . import repository
from .errors import NotFound, PersistenceError, ValidationError
from .models import ACTION_TYPES, GAP_TYPES, LearningAction, LearningGap

logger = logging.getLogger(__name__)

CARELESS_PLACEHOLDER = "粗心大意"
DETAIL_SEPARATOR = "、"


def normalize_detail(gap_detail: Union[str, Sequence[str], None]) -> str:
	# Multi-select attribution arrives as a list and is stored as one text field
	if gap_detail is None:
		return ""
	if isinstance(gap_detail, str):
		return gap_detail.strip()
	parts = [str(p).strip() for p in gap_detail if str(p).strip()]
	return DETAIL_SEPARATOR.join(parts)


def validate_gap(gap_type: str, gap_detail: str) -> str:
	if gap_type not in GAP_TYPES:
		raise ValidationError(f"gapType must be one of {GAP_TYPES}")
	if not gap_detail:
		if gap_type == "careless":
			return CARELESS_PLACEHOLDER
		raise ValidationError("gapDetail is required for gap type " + gap_type)
	return gap_detail


def record_gap(
	db: Session,
	user_id: str,
	question_id: str,
	attempt_id: str,
	gap_type: str,
	gap_detail: Union[str, Sequence[str], None],
	knowledge_points: Optional[List[str]] = None,
	user_answer: Optional[str] = None,
	correct_answer: Optional[str] = None,
) -> LearningGap:
	detail = validate_gap(gap_type, normalize_detail(gap_detail))
	attempt = repository.get_attempt(db, user_id, attempt_id)
	if attempt is None:
		raise NotFound("attempt not found")
	question = repository.get_question(db, question_id)
	if question is None:
		raise NotFound("question not found")
	if question.paper_id != attempt.paper_id:
		raise ValidationError("question does not belong to the attempt's paper")
	gap = repository.create_gap(
		db,
		user_id=attempt.user_id,
		question_id=question_id,
		attempt_id=attempt.id,
		gap_type=gap_type,
		gap_detail=detail,
		knowledge_points=list(knowledge_points or []),
	)
	# Answers the client left out are taken from the stored attempt and question
	if user_answer is None:
		user_answer = (attempt.user_answers or {}).get(question_id)
	if correct_answer is None:
		correct_answer = question.correct_answer
	_log_creation(db, gap, user_answer, correct_answer)
	return gap


def _log_creation(db: Session, gap: LearningGap, user_answer: Optional[str], correct_answer: Optional[str]) -> None:
	# The action log is append-only history; losing an entry must not fail the gap
	try:
		repository.create_action(
			db,
			gap.user_id,
			gap.id,
			"create_gap",
			{"user_answer": user_answer, "correct_answer": correct_answer},
		)
	except PersistenceError:
		logger.warning("could not record create_gap action for gap %s", gap.id)


def active_gaps(db: Session, user_id: str) -> List[LearningGap]:
	return repository.active_gaps_for_user(db, user_id)


def resolve_gap(db: Session, user_id: str, gap_id: str) -> LearningGap:
	gap = repository.get_gap(db, user_id, gap_id)
	if gap is None:
		raise NotFound("gap not found")
	return repository.mark_gap_resolved(db, gap)


def record_action(
	db: Session,
	user_id: str,
	gap_id: str,
	action_type: str,
	context_data: Optional[Dict[str, Any]] = None,
) -> LearningAction:
	"""Append a learning action; a master_gap action resolves the gap."""
	if action_type not in ACTION_TYPES:
		raise ValidationError(f"actionType must be one of {ACTION_TYPES}")
	gap = repository.get_gap(db, user_id, gap_id)
	if gap is None:
		raise NotFound("gap not found")
	action = repository.create_action(db, user_id, gap.id, action_type, context_data)
	if action_type == "master_gap":
		repository.mark_gap_resolved(db, gap)
	return action
