from __future__ import annotations
from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict


class _Row(BaseModel):
	model_config = ConfigDict(from_attributes=True)


class PaperOut(_Row):
	id: str
	title: str
	created_at: datetime


class QuestionOut(_Row):
	id: str
	paper_id: str
	section_type: Optional[str] = None
	order_index: Optional[int] = None
	content: str
	options: Optional[List[str]] = None
	correct_answer: Optional[str] = None
	analysis: Optional[str] = None
	meta: Optional[Dict[str, Any]] = None


class AttemptOut(_Row):
	id: str
	user_id: str
	paper_id: str
	section_type: str
	user_answers: Dict[str, str]
	score: int
	created_at: datetime


class GapOut(_Row):
	id: str
	user_id: str
	question_id: str
	attempt_id: str
	gap_type: str
	gap_detail: str
	knowledge_points: Optional[List[str]] = None
	status: str
	created_at: datetime
	resolved_at: Optional[datetime] = None


class GapWithQuestionOut(GapOut):
	question: Optional[QuestionOut] = None


class ActionOut(_Row):
	id: str
	user_id: str
	gap_id: str
	action_type: str
	context_data: Optional[Dict[str, Any]] = None
	occurred_at: datetime


class TaskOut(_Row):
	id: str
	user_id: str
	scheduled_date: date
	task_type: str
	content: Dict[str, Any]
	source_gap_id: Optional[str] = None
	is_completed: bool
	completed_at: Optional[datetime] = None
	completion_data: Optional[Dict[str, Any]] = None
