from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from .. import repository
from ..db import get_db
from ..schemas import PaperOut, QuestionOut

router = APIRouter(tags=["papers"])


@router.get("/exam-papers")
async def list_exam_papers(db: Session = Depends(get_db)):
	return [PaperOut.model_validate(p) for p in repository.list_papers(db)]


@router.get("/exam-papers/{paper_id}")
async def get_exam_paper(paper_id: str, db: Session = Depends(get_db)):
	paper = repository.get_paper(db, paper_id)
	if paper is None:
		raise HTTPException(status_code=404, detail="paper not found")
	return PaperOut.model_validate(paper)


@router.get("/questions")
async def list_questions(paper_id: str | None = Query(default=None, alias="paperId"), db: Session = Depends(get_db)):
	if not paper_id:
		raise HTTPException(status_code=400, detail="paperId is required")
	return [QuestionOut.model_validate(q) for q in repository.questions_for_paper(db, paper_id)]
