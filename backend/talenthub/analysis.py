"""Group report generation.

The pipeline is strictly sequential: combine the answers, embed them once,
fetch the closest curriculum fragments, ask Gemini for the report and store it
on the session. Any failure before the store aborts the whole run; a failed
store is only logged because the teacher already has the text in hand.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import List, Optional, Protocol, Sequence

from pydantic import BaseModel, field_validator
from sqlalchemy.orm import Session

from .curriculum import CurriculumMatch
from .models import ClassSession, SESSION_CLOSED
from .settings import settings

logger = logging.getLogger(__name__)


class Answers(BaseModel):
	q1: str = ""  # achievement
	q2: str = ""  # skill
	q3: str = ""  # lesson

	@field_validator("q1", "q2", "q3", mode="before")
	@classmethod
	def _as_text(cls, value):
		# Stored or posted answers may be null or numbers
		return "" if value is None else str(value)


class ReportInputError(ValueError):
	pass


class Embedder(Protocol):
	async def embed(self, text: str) -> List[float]: ...


class Generator(Protocol):
	async def generate(self, prompt: str) -> str: ...


class CurriculumSearch(Protocol):
	def match(self, query_embedding: Sequence[float], *, match_threshold: float, match_count: int) -> List[CurriculumMatch]: ...


ROLE_PREAMBLE = (
	"**Role and objective:**\n"
	"You are an expert in vocational-training pedagogy and competency analysis. Your goal is to analyse the "
	"answers a group of students gave in a start-of-course icebreaker. Give the teacher a concise, practical and "
	"optimistic report that helps them get to know the group and focus their lessons."
)

OUTPUT_INSTRUCTIONS = (
	"**Analysis instructions and output format (use Markdown):**\n"
	"Write the report in a warm, motivating tone, structured EXACTLY in these sections:\n\n"
	"### 🚀 Group Summary\n"
	"A short paragraph (3-4 lines) capturing the \"personality\" of the class. Are they creative, resourceful, "
	"technical? What energy do they give off?\n\n"
	"### ✨ Key Competencies Detected\n"
	"A bullet list. For 3-4 transversal competencies (e.g. \"Initiative and Leadership\", \"Self-directed Digital "
	"Learning\", \"Resilience and Emotional Maturity\"), describe how they show up in the group, quoting anonymous, "
	"verbatim examples from the answers.\n\n"
	"### 🔗 Direct Link to the Curriculum\n"
	"This is the most important part. Give 2-3 points that connect what you observed in the students directly with "
	"the curriculum fragments provided. Be very practical and direct.\n"
	"*Example:* \"The recurring interest in organising trips (Achievements) and handling setbacks (Lessons) connects "
	"directly with the learning outcome 'Plans the execution of activities'. Their experiences can be used as real "
	"case studies.\"\n\n"
	"### 💡 Practical Suggestion for the Teacher\n"
	"Finish with one concrete, actionable idea for the first week of class that builds on the strengths detected.\n"
	"*Example:* \"Run a one-hour micro-project: 'Organise the catering for a surprise event'. It leverages their "
	"skill with tools like Canva (Skills) and their planning ability.\""
)


def combine_answers(responses: Sequence[Answers]) -> str:
	return " ".join(
		f"Achievement: {r.q1}. Skill: {r.q2}. Lesson: {r.q3}." for r in responses
	)


def build_prompt(cycle_id: int, fragments: Sequence[CurriculumMatch], responses: Sequence[Answers]) -> str:
	fragment_lines = "\n".join(f"- ({f.type}) {f.description}" for f in fragments)
	student_blocks = "\n".join(
		f"Student {i}:\n- Achievement: {r.q1}\n- Skill: {r.q2}\n- Lesson: {r.q3}\n"
		for i, r in enumerate(responses, start=1)
	)
	return (
		f"{ROLE_PREAMBLE}\n\n"
		"**Course context:**\n"
		f"- The analysis is for the training cycle with ID: {cycle_id}.\n"
		"- Analyse the students' answers and relate them to the following key fragments of the official curriculum, "
		"identified as the most relevant to this conversation.\n\n"
		"**Relevant official curriculum fragments (source of truth):**\n"
		f"{fragment_lines}\n\n"
		"**Student answers (anonymous):**\n"
		f"{student_blocks}\n"
		f"{OUTPUT_INSTRUCTIONS}\n"
	)


def persist_report(db: Session, session_id: int, markdown: str) -> bool:
	row = db.get(ClassSession, session_id)
	if row is None:
		logger.warning("Session %s not found; AI report not saved", session_id)
		return False
	row.ai_report = {"markdown": markdown, "generated_at": datetime.now(timezone.utc).isoformat()}
	row.status = SESSION_CLOSED
	db.add(row)
	db.commit()
	return True


async def generate_report(
	db: Session,
	*,
	responses: Optional[Sequence[Answers]],
	cycle_id: Optional[int],
	session_id: Optional[int],
	embedder: Embedder,
	search: CurriculumSearch,
	generator: Generator,
) -> str:
	if not responses or not cycle_id or not session_id:
		raise ReportInputError("Missing data for the analysis (sessionId, cycleId and responses are required)")

	query_embedding = await embedder.embed(combine_answers(responses))
	fragments = search.match(
		query_embedding,
		match_threshold=settings.match_threshold,
		match_count=settings.match_count,
	)
	logger.info("Session %s: %d responses, %d curriculum fragments", session_id, len(responses), len(fragments))

	prompt = build_prompt(cycle_id, fragments, responses)
	analysis = await generator.generate(prompt)

	try:
		persist_report(db, session_id, analysis)
	except Exception:
		logger.exception("Failed to save the AI report for session %s", session_id)
		db.rollback()
	return analysis
