from __future__ import annotations
from datetime import date
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .. import repository
from ..db import get_db
from ..errors import NotFound
from ..schemas import TaskOut
from .auth import User, get_current_user

router = APIRouter(prefix="/daily-tasks", tags=["daily-tasks"])


class CompleteTaskRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	task_id: Optional[str] = Field(default=None, alias="taskId")
	completion_data: Optional[Dict[str, Any]] = Field(default=None, alias="completionData")


@router.get("")
async def list_daily_tasks(day: Optional[date] = Query(default=None, alias="date"), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if day is not None:
		rows = repository.tasks_for_date(db, user.id, day)
	else:
		rows = repository.pending_tasks(db, user.id, date.today())
	return [TaskOut.model_validate(t) for t in rows]


@router.post("/complete")
async def complete_daily_task(req: Optional[CompleteTaskRequest] = Body(default=None), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if req is None or not req.task_id:
		raise HTTPException(status_code=400, detail="taskId is required")
	task = repository.get_task(db, user.id, req.task_id)
	if task is None:
		raise NotFound("task not found")
	# Completing an already completed task keeps the first completion
	task = repository.mark_task_completed(db, task, req.completion_data)
	return {"task": TaskOut.model_validate(task)}
