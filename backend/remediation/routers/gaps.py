from __future__ import annotations
from typing import Any, Dict, List, Optional, Union

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .. import gaps
from ..db import get_db
from ..schemas import ActionOut, GapOut, GapWithQuestionOut
from .auth import User, get_current_user

router = APIRouter(tags=["learning-gaps"])


class CreateGapRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	question_id: Optional[str] = Field(default=None, alias="questionId")
	attempt_id: Optional[str] = Field(default=None, alias="attemptId")
	gap_type: Optional[str] = Field(default=None, alias="gapType")
	gap_detail: Optional[Union[str, List[str]]] = Field(default=None, alias="gapDetail")
	knowledge_points: Optional[List[str]] = Field(default=None, alias="knowledgePoints")
	user_answer: Optional[str] = Field(default=None, alias="userAnswer")
	correct_answer: Optional[str] = Field(default=None, alias="correctAnswer")


class CreateActionRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	gap_id: Optional[str] = Field(default=None, alias="gapId")
	action_type: Optional[str] = Field(default=None, alias="actionType")
	context_data: Optional[Dict[str, Any]] = Field(default=None, alias="contextData")


@router.post("/learning-gaps/create")
async def create_learning_gap(req: Optional[CreateGapRequest] = Body(default=None), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	# gapDetail may be empty for careless gaps; the recorder validates it per type
	if req is None or not req.question_id or not req.attempt_id or not req.gap_type:
		raise HTTPException(status_code=400, detail="Missing required fields")
	gap = gaps.record_gap(
		db,
		user.id,
		req.question_id,
		req.attempt_id,
		req.gap_type,
		req.gap_detail,
		knowledge_points=req.knowledge_points,
		user_answer=req.user_answer,
		correct_answer=req.correct_answer,
	)
	return {"gap": GapOut.model_validate(gap)}


@router.get("/learning-gaps")
async def list_learning_gaps(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return [GapWithQuestionOut.model_validate(g) for g in gaps.active_gaps(db, user.id)]


@router.post("/learning-gaps/{gap_id}/resolve")
async def resolve_learning_gap(gap_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return {"gap": GapOut.model_validate(gaps.resolve_gap(db, user.id, gap_id))}


@router.post("/learning-actions/create")
async def create_learning_action(req: Optional[CreateActionRequest] = Body(default=None), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if req is None or not req.gap_id or not req.action_type:
		raise HTTPException(status_code=400, detail="gapId and actionType are required")
	action = gaps.record_action(db, user.id, req.gap_id, req.action_type, req.context_data)
	return {"action": ActionOut.model_validate(action)}
