from __future__ import annotations
from typing import Iterable, Mapping, NamedTuple, Optional, Sequence

from .errors import NoQuestionsInScope
from .models import FULL_SCOPE, Question


class ScoreResult(NamedTuple):
	correct_count: int
	total: int
	score: int


def round_half_up_percent(correct: int, total: int) -> int:
	# Integer form of floor(100 * correct / total + 0.5)
	return (200 * correct + total) // (2 * total)


def select_scope(questions: Iterable[Question], section_type: Optional[str]) -> list[Question]:
	if not section_type or section_type == FULL_SCOPE:
		return list(questions)
	return [q for q in questions if q.section_type == section_type]


def score(scope_questions: Sequence[Question], submitted: Mapping[str, str]) -> ScoreResult:
	"""Score submitted answers against the answer key of the questions in scope.

	A question without a submitted answer counts as wrong. An empty scope raises
	NoQuestionsInScope instead of dividing by zero.
	"""
	total = len(scope_questions)
	if total == 0:
		raise NoQuestionsInScope("no questions in the requested scope")
	correct = 0
	for q in scope_questions:
		answer = submitted.get(q.id)
		if answer is not None and answer == q.correct_answer:
			correct += 1
	return ScoreResult(correct_count=correct, total=total, score=round_half_up_percent(correct, total))
