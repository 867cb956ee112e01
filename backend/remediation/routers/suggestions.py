from __future__ import annotations
from typing import List, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from .. import repository
from ..db import get_db
from ..error_options import default_knowledge_point_name, knowledge_points_for, suggest_error_options
from ..gemini_client import GeminiClient
from ..models import GAP_TYPES
from ..settings import settings

router = APIRouter(tags=["suggestions"])


class ErrorOptionsRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	gap_type: Optional[str] = Field(default=None, alias="gapType")
	question_id: Optional[str] = Field(default=None, alias="questionId")
	question_content: Optional[str] = Field(default=None, alias="questionContent")
	question_options: Optional[List[str]] = Field(default=None, alias="questionOptions")
	correct_answer: Optional[str] = Field(default=None, alias="correctAnswer")
	article: Optional[str] = None


class KnowledgePointsRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	gap_type: Optional[str] = Field(default=None, alias="gapType")


@router.post("/generate-error-options")
async def generate_error_options(req: Optional[ErrorOptionsRequest] = Body(default=None), db: Session = Depends(get_db)):
	if req is None or req.gap_type not in GAP_TYPES or req.gap_type == "careless":
		raise HTTPException(status_code=400, detail="gapType must be one of vocab, grammar, logic")
	context = {
		"gap_type": req.gap_type,
		"question_content": req.question_content,
		"question_options": req.question_options,
		"correct_answer": req.correct_answer,
		"article": req.article,
		"knowledge_points": [],
	}
	if req.question_id:
		question = repository.get_question(db, req.question_id)
		if question is not None:
			# Stored question fields fill whatever the client did not send
			context["question_content"] = context["question_content"] or question.content
			context["question_options"] = context["question_options"] or question.options
			context["correct_answer"] = context["correct_answer"] or question.correct_answer
			context["article"] = context["article"] or question.article
			context["knowledge_points"] = question.knowledge_points
			if question.knowledge_points:
				entities = repository.knowledge_entities(db, question.knowledge_points)
				context["knowledge_point_names"] = {e.code: e.name for e in entities}
	if not context["question_content"]:
		raise HTTPException(status_code=400, detail="questionContent or questionId is required")

	client: Optional[GeminiClient] = GeminiClient(model=settings.gemini_model_content) if settings.ai_enabled else None
	try:
		options = await suggest_error_options(context, client)
	finally:
		if client is not None:
			await client.aclose()
	return {"options": options}


@router.post("/generate-knowledge-points")
async def generate_knowledge_points(req: Optional[KnowledgePointsRequest] = Body(default=None)):
	gap_type = req.gap_type if req is not None else None
	return {"knowledgePoints": knowledge_points_for(gap_type or "")}


@router.get("/knowledge-points")
async def get_knowledge_points(codes: Optional[str] = Query(default=None), db: Session = Depends(get_db)):
	if not codes:
		raise HTTPException(status_code=400, detail="codes parameter is required")
	wanted = [c for c in codes.split(",") if c]
	if not wanted:
		return []
	found = {e.code: e for e in repository.knowledge_entities(db, wanted)}
	result = []
	for code in wanted:
		entity = found.get(code)
		if entity is not None:
			result.append({"code": entity.code, "name": entity.name, "description": entity.description})
		else:
			result.append({"code": code, "name": default_knowledge_point_name(code), "description": None})
	return result
