from __future__ import annotations
from typing import Optional

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from ..content import ContentSuggester, get_content_suggester
from ..db import get_db
from ..planner import generate_weekly_plan
from ..schemas import TaskOut
from .auth import User, get_current_user

router = APIRouter(tags=["plan"])


@router.post("/generate-plan")
async def generate_plan(
	user: User = Depends(get_current_user),
	db: Session = Depends(get_db),
	suggester: Optional[ContentSuggester] = Depends(get_content_suggester),
):
	result = await generate_weekly_plan(db, user.id, suggester)
	return {
		"message": result["message"],
		"tasks": [TaskOut.model_validate(t) for t in result["tasks"]],
	}
