import logging

from fastapi import FastAPI

from .db import init_db
from .settings import settings
from .routers import analyze, join, report, sessions

logging.basicConfig(
	level=getattr(logging, settings.log_level.upper(), logging.INFO),
	format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(title="TalentHub API")
app.include_router(join.router)
app.include_router(sessions.router)
app.include_router(report.router)
app.include_router(analyze.router)


@app.get("/info")
def root():
	return {
		"status": "ok",
		"gemini_configured": bool(settings.gemini_api_key),
		"curriculum_search_backend": settings.curriculum_search_backend,
	}


@app.on_event("startup")
async def startup_event():
	# Initialize DB schema
	init_db()
	if not settings.gemini_api_key:
		logger.warning("GEMINI_API_KEY is not set; report generation will fail")
