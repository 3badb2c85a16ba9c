from __future__ import annotations
import logging
import secrets
import string
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, ConfigDict
from sqlalchemy.orm import Session

from ..analysis import Answers
from ..db import get_db
from ..feed import sse_events
from ..models import ClassSession, Cycle, Response, SESSION_ACTIVE
from ..settings import settings
from .analyze import get_gemini_factory, get_search_factory, run_analysis

logger = logging.getLogger(__name__)

router = APIRouter(tags=["dashboard"])


JOIN_CODE_ALPHABET = string.ascii_uppercase + string.digits


class CycleOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: int
	name: str


class SessionOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: int
	created_at: datetime
	session_code: str
	status: str
	title: Optional[str] = None
	ai_report: Optional[Dict[str, Any]] = None
	cycle: Optional[CycleOut] = None


class StudentOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	full_name: str


class ResponseOut(BaseModel):
	model_config = ConfigDict(from_attributes=True)
	id: int
	session_id: int
	answers: Answers
	student: StudentOut
	created_at: datetime


class CreateSessionRequest(BaseModel):
	title: Optional[str] = None
	cycle_id: Optional[int] = None


def generate_join_code(length: Optional[int] = None) -> str:
	# Collisions are possible and not checked
	n = length or settings.join_code_length
	return "".join(secrets.choice(JOIN_CODE_ALPHABET) for _ in range(n))


def get_session_or_404(db: Session, session_id: int) -> ClassSession:
	row = db.get(ClassSession, session_id)
	if row is None:
		raise HTTPException(status_code=404, detail="session not found")
	return row


def list_session_responses(db: Session, session_id: int) -> List[Response]:
	return (
		db.query(Response)
		.filter(Response.session_id == session_id)
		.order_by(Response.id.asc())
		.all()
	)


@router.get("/cycles", response_model=List[CycleOut])
def list_cycles(db: Session = Depends(get_db)):
	return db.query(Cycle).order_by(Cycle.id.asc()).all()


@router.get("/sessions", response_model=List[SessionOut])
def list_sessions(db: Session = Depends(get_db)):
	return db.query(ClassSession).order_by(ClassSession.created_at.desc(), ClassSession.id.desc()).all()


@router.post("/sessions", response_model=SessionOut, status_code=201)
def create_session(req: CreateSessionRequest, db: Session = Depends(get_db)):
	title = (req.title or "").strip()
	if not title or not req.cycle_id:
		raise HTTPException(status_code=400, detail="title and cycle_id are required")
	cycle = db.get(Cycle, req.cycle_id)
	if cycle is None:
		raise HTTPException(status_code=404, detail="cycle not found")
	row = ClassSession(
		session_code=generate_join_code(),
		status=SESSION_ACTIVE,
		title=title,
		cycle_id=cycle.id,
	)
	db.add(row)
	db.commit()
	db.refresh(row)
	logger.info("Created session %s with join code %s", row.id, row.session_code)
	return row


@router.get("/sessions/{session_id}", response_model=SessionOut)
def get_session(session_id: int, db: Session = Depends(get_db)):
	return get_session_or_404(db, session_id)


@router.get("/sessions/{session_id}/responses", response_model=List[ResponseOut])
def get_session_responses(session_id: int, db: Session = Depends(get_db)):
	get_session_or_404(db, session_id)
	return list_session_responses(db, session_id)


@router.get("/sessions/{session_id}/feed")
async def stream_session_responses(session_id: int, db: Session = Depends(get_db)):
	"""Server-sent events for responses inserted after the client connects."""
	get_session_or_404(db, session_id)
	return StreamingResponse(
		sse_events(session_id, keepalive=settings.feed_keepalive_seconds),
		media_type="text/event-stream",
		headers={
			"Cache-Control": "no-cache",
			"Connection": "keep-alive",
			"X-Accel-Buffering": "no",
		},
	)


@router.post("/sessions/{session_id}/analyze")
async def analyze_session(
	session_id: int,
	db: Session = Depends(get_db),
	gemini_factory: Callable[[], Any] = Depends(get_gemini_factory),
	search_factory: Callable[[Session], Any] = Depends(get_search_factory),
):
	row = get_session_or_404(db, session_id)
	responses = [Answers.model_validate(r.answers) for r in list_session_responses(db, session_id)]
	return await run_analysis(
		db,
		responses=responses,
		cycle_id=row.cycle_id,
		session_id=row.id,
		gemini_factory=gemini_factory,
		search_factory=search_factory,
	)
