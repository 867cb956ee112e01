"""Weekly remediation plan.

Active gaps are spread over Monday to Friday of the current week:

- vocab gaps alternate Monday / Wednesday as vocabulary cards
- grammar gaps alternate Tuesday / Thursday as grammar explainers
- logic gaps all land on Friday as exercises
- careless gaps get no task

There is no per-day cap and no deduplication against earlier plans; calling
this twice in a week schedules the same gaps twice.
"""
from __future__ import annotations
import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, NamedTuple, Optional, Sequence

from sqlalchemy.orm import Session

from . import repository
from .content import ContentSuggester, generate_content
from .models import DailyTask, LearningGap

logger = logging.getLogger(__name__)

NO_GAPS_MESSAGE = "暂无需要补短板的漏洞"
NO_TASKS_MESSAGE = "没有需要生成的任务"


class ScheduledSlot(NamedTuple):
	gap: LearningGap
	scheduled_date: date
	task_type: str


def week_days(today: date) -> List[date]:
	"""Monday..Friday of the week containing today (a Sunday closes its week)."""
	monday = today - timedelta(days=today.weekday())
	return [monday + timedelta(days=i) for i in range(5)]


def schedule_gaps(gaps: Sequence[LearningGap], today: date) -> List[ScheduledSlot]:
	days = week_days(today)
	vocab = [g for g in gaps if g.gap_type == "vocab"]
	grammar = [g for g in gaps if g.gap_type == "grammar"]
	logic = [g for g in gaps if g.gap_type == "logic"]

	slots: List[ScheduledSlot] = []
	for i, gap in enumerate(vocab):
		slots.append(ScheduledSlot(gap, days[(i % 2) * 2], "vocab_card"))
	for i, gap in enumerate(grammar):
		slots.append(ScheduledSlot(gap, days[(i % 2) * 2 + 1], "grammar_video"))
	for gap in logic:
		slots.append(ScheduledSlot(gap, days[4], "exercise"))
	return slots


async def build_task_drafts(user_id: str, slots: Sequence[ScheduledSlot], suggester: Optional[ContentSuggester]) -> List[Dict[str, Any]]:
	# Fan out content generation; every slot resolves (fallback on failure) before returning
	contents = await asyncio.gather(*(generate_content(s.gap, s.task_type, suggester) for s in slots))
	return [
		{
			"user_id": user_id,
			"scheduled_date": slot.scheduled_date,
			"task_type": slot.task_type,
			"content": content,
			"source_gap_id": slot.gap.id,
		}
		for slot, content in zip(slots, contents)
	]


async def generate_weekly_plan(
	db: Session,
	user_id: str,
	suggester: Optional[ContentSuggester] = None,
	today: Optional[date] = None,
) -> Dict[str, Any]:
	gaps = repository.active_gaps_for_user(db, user_id)
	if not gaps:
		return {"message": NO_GAPS_MESSAGE, "tasks": []}

	slots = schedule_gaps(gaps, today or date.today())
	if not slots:
		return {"message": NO_TASKS_MESSAGE, "tasks": []}

	drafts = await build_task_drafts(user_id, slots, suggester)
	tasks: List[DailyTask] = repository.create_tasks_batch(db, drafts)
	logger.info("generated %s tasks for user=%s from %s active gaps", len(tasks), user_id, len(gaps))
	message = f"成功生成 {len(tasks)} 个任务"
	if suggester is not None:
		message += " (AI Enhanced)"
	return {"message": message, "tasks": tasks}
