import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from talenthub.curriculum import CurriculumMatch
from talenthub.db import get_db, init_db
from talenthub.gemini_client import GeminiError
from talenthub.main import app
from talenthub.models import Cycle
from talenthub.routers.analyze import get_gemini_factory, get_search_factory


class FakeGemini:
	def __init__(self, *, embedding=None, text="### 🚀 Group Summary\nA curious group.", fail_on=None):
		self.embedding = embedding or [0.1, 0.2, 0.3]
		self.text = text
		self.fail_on = fail_on
		self.embed_calls = []
		self.prompts = []
		self.closed = False

	async def embed(self, text):
		self.embed_calls.append(text)
		if self.fail_on == "embed":
			raise GeminiError("embedding service unavailable")
		return list(self.embedding)

	async def generate(self, prompt):
		self.prompts.append(prompt)
		if self.fail_on == "generate":
			raise GeminiError("generation quota exceeded")
		return self.text

	async def aclose(self):
		self.closed = True


class FakeSearch:
	def __init__(self, matches=None, error=None):
		self.matches = matches if matches is not None else [
			CurriculumMatch(id=1, type="RA", description="Plans the execution of activities", similarity=0.91),
			CurriculumMatch(id=2, type="CE", description="Uses office software to present information", similarity=0.82),
		]
		self.error = error
		self.calls = []

	def match(self, query_embedding, *, match_threshold, match_count):
		self.calls.append({"query_embedding": list(query_embedding), "match_threshold": match_threshold, "match_count": match_count})
		if self.error is not None:
			raise self.error
		return list(self.matches)


@pytest.fixture
def engine():
	eng = create_engine(
		"sqlite://",
		connect_args={"check_same_thread": False},
		poolclass=StaticPool,
		future=True,
	)
	init_db(eng)
	yield eng
	eng.dispose()


@pytest.fixture
def session_factory(engine):
	return sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)


@pytest.fixture
def db_session(session_factory):
	db = session_factory()
	yield db
	db.close()


@pytest.fixture
def client(session_factory):
	def override_get_db():
		db = session_factory()
		try:
			yield db
		finally:
			db.close()

	app.dependency_overrides[get_db] = override_get_db
	yield TestClient(app)
	app.dependency_overrides.clear()


@pytest.fixture
def cycle(db_session):
	row = Cycle(id=1, name="Administrative Management")
	db_session.add(row)
	db_session.commit()
	return row


@pytest.fixture
def fake_gemini():
	return FakeGemini()


@pytest.fixture
def fake_search():
	return FakeSearch()


@pytest.fixture
def ai_client(client, fake_gemini, fake_search):
	app.dependency_overrides[get_gemini_factory] = lambda: (lambda: fake_gemini)
	app.dependency_overrides[get_search_factory] = lambda: (lambda db: fake_search)
	return client
