from __future__ import annotations
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import get_db
from ..feed import feed
from ..models import ClassSession, Response, Student
from .sessions import CycleOut, ResponseOut, get_session_or_404

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/join", tags=["join"])


class VerifyRequest(BaseModel):
	code: str = ""


class VerifyResponse(BaseModel):
	session_id: int
	title: Optional[str] = None
	status: str
	cycle: Optional[CycleOut] = None


class SubmitRequest(BaseModel):
	session_id: Optional[int] = None
	full_name: str = ""
	q1: str = ""
	q2: str = ""
	q3: str = ""


class SubmitResponse(BaseModel):
	response_id: int
	student_id: int


def find_session_by_code(db: Session, code: str) -> Optional[ClassSession]:
	normalized = (code or "").strip().upper()
	if not normalized:
		return None
	return db.query(ClassSession).filter(func.upper(ClassSession.session_code) == normalized).first()


@router.post("/verify", response_model=VerifyResponse)
def verify_code(req: VerifyRequest, db: Session = Depends(get_db)):
	row = find_session_by_code(db, req.code)
	if row is None:
		raise HTTPException(status_code=404, detail="invalid session code")
	return VerifyResponse(
		session_id=row.id,
		title=row.title,
		status=row.status,
		cycle=CycleOut.model_validate(row.cycle) if row.cycle else None,
	)


@router.post("/submit", response_model=SubmitResponse, status_code=201)
async def submit_answers(req: SubmitRequest, db: Session = Depends(get_db)):
	full_name = (req.full_name or "").strip()
	answers = {
		"q1": (req.q1 or "").strip(),
		"q2": (req.q2 or "").strip(),
		"q3": (req.q3 or "").strip(),
	}
	if not req.session_id:
		raise HTTPException(status_code=400, detail="session_id is required")
	if not full_name or not all(answers.values()):
		raise HTTPException(status_code=400, detail="full_name, q1, q2 and q3 are required")
	get_session_or_404(db, req.session_id)

	try:
		student = Student(full_name=full_name)
		db.add(student)
		db.flush()
		row = Response(session_id=req.session_id, student_id=student.id, answers=answers)
		db.add(row)
		db.commit()
	except Exception:
		db.rollback()
		raise
	db.refresh(row)

	feed.publish(row.session_id, ResponseOut.model_validate(row).model_dump(mode="json"))
	logger.info("Session %s: response %s from student %s", row.session_id, row.id, student.id)
	return SubmitResponse(response_id=row.id, student_id=student.id)
