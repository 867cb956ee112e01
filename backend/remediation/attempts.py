from __future__ import annotations
import logging
from typing import Dict, Optional, Tuple

from sqlalchemy.orm import Session

from . import repository
from .errors import ValidationError
from .models import FULL_SCOPE, SECTION_TYPES, ExamAttempt
from .scoring import score

logger = logging.getLogger(__name__)


def create_attempt(
	db: Session,
	user_id: str,
	paper_id: str,
	answers: Dict[str, str],
	section_type: Optional[str] = None,
) -> Tuple[ExamAttempt, int, int]:
	"""Score a submission for one paper (or one section of it) and persist it.

	Returns the stored attempt together with the correct count and the number of
	questions that were in scope.
	"""
	section = section_type or FULL_SCOPE
	if section != FULL_SCOPE and section not in SECTION_TYPES:
		raise ValidationError(f"sectionType must be one of {SECTION_TYPES + [FULL_SCOPE]}")
	scope = repository.questions_for_scope(db, paper_id, section)
	result = score(scope, answers)
	# Only answers for questions in scope are kept on the attempt
	in_scope = {q.id for q in scope}
	kept = {qid: str(ans) for qid, ans in answers.items() if qid in in_scope}
	attempt = repository.create_attempt(db, user_id, paper_id, section, kept, result.score)
	logger.info(
		"attempt %s user=%s paper=%s section=%s score=%s (%s/%s)",
		attempt.id, user_id, paper_id, section, result.score, result.correct_count, result.total,
	)
	return attempt, result.correct_count, result.total
