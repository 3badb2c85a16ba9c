"""Tests for the report generation pipeline (no HTTP layer)."""

import asyncio
import logging

import pytest

from talenthub import analysis
from talenthub.analysis import Answers, ReportInputError, build_prompt, combine_answers, generate_report
from talenthub.curriculum import CurriculumMatch, CurriculumSearchError
from talenthub.gemini_client import GeminiError
from talenthub.models import ClassSession, SESSION_ACTIVE, SESSION_CLOSED


RESPONSES = [
	Answers(q1="Organised a school trip", q2="Learned Canva", q3="Missed a train and improvised"),
	Answers(q1="Ran a charity bake sale", q2="Spreadsheets", q3="Asked for help earlier"),
]


@pytest.fixture
def session_row(db_session, cycle):
	row = ClassSession(session_code="ABC123", title="1st year kickoff", status=SESSION_ACTIVE, cycle_id=cycle.id)
	db_session.add(row)
	db_session.commit()
	return row


def _run(db, gemini, search, responses=RESPONSES, cycle_id=1, session_id=1):
	return asyncio.run(
		generate_report(
			db,
			responses=responses,
			cycle_id=cycle_id,
			session_id=session_id,
			embedder=gemini,
			search=search,
			generator=gemini,
		)
	)


class TestPromptConstruction:
	def test_combine_answers_keeps_input_order(self):
		text = combine_answers(RESPONSES)
		assert text == (
			"Achievement: Organised a school trip. Skill: Learned Canva. Lesson: Missed a train and improvised. "
			"Achievement: Ran a charity bake sale. Skill: Spreadsheets. Lesson: Asked for help earlier."
		)

	def test_prompt_contains_every_fragment_and_answer(self):
		fragments = [
			CurriculumMatch(id=1, type="RA", description="Plans the execution of activities", similarity=0.9),
			CurriculumMatch(id=7, type="CE", description="Handles customer complaints", similarity=0.8),
		]
		prompt = build_prompt(4, fragments, RESPONSES)
		assert "- (RA) Plans the execution of activities" in prompt
		assert "- (CE) Handles customer complaints" in prompt
		for r in RESPONSES:
			assert r.q1 in prompt
			assert r.q2 in prompt
			assert r.q3 in prompt
		assert "Student 1:" in prompt
		assert "Student 2:" in prompt
		assert "training cycle with ID: 4" in prompt

	def test_answers_coerce_null_and_numbers_to_text(self):
		answers = Answers.model_validate({"q1": None, "q2": 5, "q3": "Patience"})
		assert (answers.q1, answers.q2, answers.q3) == ("", "5", "Patience")
		assert combine_answers([answers]) == "Achievement: . Skill: 5. Lesson: Patience."

	def test_prompt_is_deterministic(self):
		fragments = [CurriculumMatch(id=1, type="RA", description="Works in teams", similarity=0.8)]
		assert build_prompt(1, fragments, RESPONSES) == build_prompt(1, fragments, RESPONSES)

	def test_prompt_requests_the_four_sections(self):
		prompt = build_prompt(1, [], RESPONSES)
		for heading in ("Group Summary", "Key Competencies Detected", "Direct Link to the Curriculum", "Practical Suggestion for the Teacher"):
			assert heading in prompt


class TestGenerateReport:
	def test_success_persists_report_and_closes_session(self, db_session, session_row, fake_gemini, fake_search):
		text = _run(db_session, fake_gemini, fake_search, session_id=session_row.id)

		assert text == fake_gemini.text
		assert len(fake_gemini.embed_calls) == 1
		assert fake_gemini.embed_calls[0] == combine_answers(RESPONSES)
		assert len(fake_gemini.prompts) == 1
		db_session.expire_all()
		row = db_session.get(ClassSession, session_row.id)
		assert row.status == SESSION_CLOSED
		assert row.ai_report["markdown"] == fake_gemini.text
		assert row.ai_report["generated_at"]

	def test_search_uses_configured_threshold_and_count(self, db_session, session_row, fake_gemini, fake_search):
		_run(db_session, fake_gemini, fake_search, session_id=session_row.id)
		assert fake_search.calls == [
			{"query_embedding": fake_gemini.embedding, "match_threshold": 0.75, "match_count": 10}
		]

	def test_participant_identity_never_reaches_the_model(self, db_session, session_row, fake_gemini, fake_search):
		_run(db_session, fake_gemini, fake_search, session_id=session_row.id)
		assert "1st year kickoff" not in fake_gemini.prompts[0]
		assert "ABC123" not in fake_gemini.prompts[0]

	@pytest.mark.parametrize(
		"kwargs",
		[
			{"responses": []},
			{"responses": None},
			{"cycle_id": None},
			{"session_id": None},
		],
	)
	def test_missing_input_is_rejected_before_any_call(self, db_session, fake_gemini, fake_search, kwargs):
		with pytest.raises(ReportInputError):
			_run(db_session, fake_gemini, fake_search, **kwargs)
		assert fake_gemini.embed_calls == []
		assert fake_search.calls == []

	def test_embedding_failure_aborts_without_persisting(self, db_session, session_row, fake_gemini, fake_search):
		fake_gemini.fail_on = "embed"
		with pytest.raises(GeminiError):
			_run(db_session, fake_gemini, fake_search, session_id=session_row.id)
		assert fake_search.calls == []
		db_session.expire_all()
		assert db_session.get(ClassSession, session_row.id).ai_report is None

	def test_search_failure_aborts_without_generating(self, db_session, session_row, fake_gemini, fake_search):
		fake_search.error = CurriculumSearchError("Curriculum search (RPC) failed: boom")
		with pytest.raises(CurriculumSearchError):
			_run(db_session, fake_gemini, fake_search, session_id=session_row.id)
		assert fake_gemini.prompts == []

	def test_generation_failure_leaves_session_active(self, db_session, session_row, fake_gemini, fake_search):
		fake_gemini.fail_on = "generate"
		with pytest.raises(GeminiError):
			_run(db_session, fake_gemini, fake_search, session_id=session_row.id)
		db_session.expire_all()
		assert db_session.get(ClassSession, session_row.id).status == SESSION_ACTIVE

	def test_persistence_failure_is_logged_and_text_still_returned(self, db_session, session_row, fake_gemini, fake_search, monkeypatch, caplog):
		def broken_persist(db, session_id, markdown):
			raise RuntimeError("disk full")

		monkeypatch.setattr(analysis, "persist_report", broken_persist)
		with caplog.at_level(logging.ERROR, logger="talenthub.analysis"):
			text = _run(db_session, fake_gemini, fake_search, session_id=session_row.id)

		assert text == fake_gemini.text
		assert any("Failed to save the AI report" in r.getMessage() for r in caplog.records)

	def test_unknown_session_still_returns_text(self, db_session, cycle, fake_gemini, fake_search, caplog):
		with caplog.at_level(logging.WARNING, logger="talenthub.analysis"):
			text = _run(db_session, fake_gemini, fake_search, session_id=999)
		assert text == fake_gemini.text
		assert any("not found" in r.getMessage() for r in caplog.records)

	def test_regeneration_overwrites_previous_report(self, db_session, session_row, fake_gemini, fake_search):
		_run(db_session, fake_gemini, fake_search, session_id=session_row.id)
		fake_gemini.text = "### Second take"
		_run(db_session, fake_gemini, fake_search, session_id=session_row.id)
		db_session.expire_all()
		assert db_session.get(ClassSession, session_row.id).ai_report["markdown"] == "### Second take"
