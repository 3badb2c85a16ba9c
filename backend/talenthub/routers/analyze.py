from __future__ import annotations
import logging
from typing import Any, Callable, List, Optional, Sequence

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.orm import Session

from ..analysis import Answers, ReportInputError, generate_report
from ..curriculum import get_curriculum_search
from ..db import get_db
from ..gemini_client import GeminiClient

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["analysis"])


class ResponseItem(BaseModel):
	# Dashboard rows also carry id/student; only the answers reach the model
	model_config = ConfigDict(extra="ignore")
	answers: Answers


class AnalyzeRequest(BaseModel):
	model_config = ConfigDict(populate_by_name=True)
	responses: Optional[List[ResponseItem]] = None
	cycle_id: Optional[int] = Field(default=None, alias="cycleId")
	session_id: Optional[int] = Field(default=None, alias="sessionId")


def get_gemini_factory() -> Callable[[], Any]:
	return GeminiClient


def get_search_factory() -> Callable[[Session], Any]:
	return get_curriculum_search


async def run_analysis(
	db: Session,
	*,
	responses: Optional[Sequence[Answers]],
	cycle_id: Optional[int],
	session_id: Optional[int],
	gemini_factory: Callable[[], Any],
	search_factory: Callable[[Session], Any],
) -> JSONResponse:
	if not responses or not cycle_id or not session_id:
		return JSONResponse(
			{"error": "Missing data for the analysis (sessionId, cycleId and responses are required)"},
			status_code=400,
		)
	client = None
	try:
		client = gemini_factory()
		analysis = await generate_report(
			db,
			responses=responses,
			cycle_id=cycle_id,
			session_id=session_id,
			embedder=client,
			search=search_factory(db),
			generator=client,
		)
		return JSONResponse({"analysis": analysis})
	except ReportInputError as e:
		return JSONResponse({"error": str(e)}, status_code=400)
	except Exception as e:
		logger.exception("AI analysis failed for session %s", session_id)
		return JSONResponse({"error": str(e)}, status_code=500)
	finally:
		if client is not None:
			await client.aclose()


@router.post("/analyze")
async def analyze(
	request: Request,
	db: Session = Depends(get_db),
	gemini_factory: Callable[[], Any] = Depends(get_gemini_factory),
	search_factory: Callable[[Session], Any] = Depends(get_search_factory),
):
	try:
		req = AnalyzeRequest.model_validate(await request.json())
	except ValueError as e:
		return JSONResponse({"error": f"Invalid analysis request: {e}"}, status_code=400)
	return await run_analysis(
		db,
		responses=[item.answers for item in req.responses or []],
		cycle_id=req.cycle_id,
		session_id=req.session_id,
		gemini_factory=gemini_factory,
		search_factory=search_factory,
	)
