from __future__ import annotations
from typing import Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .. import repository
from ..attempts import create_attempt
from ..db import get_db
from ..schemas import AttemptOut
from .auth import User, get_current_user

router = APIRouter(tags=["attempts"])


class CreateAttemptRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	paper_id: Optional[str] = Field(default=None, alias="paperId")
	user_answers: Optional[Dict[str, Optional[str]]] = Field(default=None, alias="userAnswers")
	section_type: Optional[str] = Field(default=None, alias="sectionType")


@router.post("/exam-attempts/create")
async def create_exam_attempt(req: Optional[CreateAttemptRequest] = Body(default=None), user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	if req is None or not req.paper_id or req.user_answers is None:
		raise HTTPException(status_code=400, detail="paperId and userAnswers are required")
	# An answer sent as null is an unanswered item and scores as wrong
	answers = {qid: a for qid, a in req.user_answers.items() if a is not None}
	attempt, correct_count, total = create_attempt(db, user.id, req.paper_id, answers, req.section_type)
	return {
		"attempt": AttemptOut.model_validate(attempt),
		"correctCount": correct_count,
		"totalQuestions": total,
	}


@router.get("/exam-attempts")
async def list_exam_attempts(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return [AttemptOut.model_validate(a) for a in repository.attempts_for_user(db, user.id)]


@router.get("/exam-papers/{paper_id}/completed-sections")
async def completed_sections(paper_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
	return {"completedSections": repository.completed_sections(db, user.id, paper_id)}
