"""Similarity search over curriculum items.

Two backends answer the same question ("which curriculum fragments are closest
to this vector?"):

- ``LocalCurriculumSearch`` scores every ``curriculum_items`` row in Python
  with cosine similarity. Fine for the few hundred items of a single cycle.
- ``RpcCurriculumSearch`` delegates to a ``match_curriculum_items`` SQL
  function, for Postgres + pgvector deployments where the ranking happens in
  the database.
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass
from typing import List, Sequence

from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .models import CurriculumItem
from .settings import settings

logger = logging.getLogger(__name__)


class CurriculumSearchError(RuntimeError):
	pass


@dataclass
class CurriculumMatch:
	id: int
	type: str
	description: str
	similarity: float


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
	dot = sum(x * y for x, y in zip(a, b))
	norm_a = math.sqrt(sum(x * x for x in a))
	norm_b = math.sqrt(sum(x * x for x in b))
	if norm_a == 0 or norm_b == 0:
		return 0.0
	return dot / (norm_a * norm_b)


class LocalCurriculumSearch:
	def __init__(self, db: Session) -> None:
		self.db = db

	def match(self, query_embedding: Sequence[float], *, match_threshold: float, match_count: int) -> List[CurriculumMatch]:
		try:
			items = self.db.query(CurriculumItem).filter(CurriculumItem.embedding.isnot(None)).all()
		except SQLAlchemyError as e:
			raise CurriculumSearchError(f"Curriculum search failed: {e}") from e
		matches: List[CurriculumMatch] = []
		for item in items:
			vector = item.embedding or []
			if len(vector) != len(query_embedding):
				logger.debug("Skipping curriculum item %s: embedding has %d dims, query has %d", item.id, len(vector), len(query_embedding))
				continue
			score = cosine_similarity(query_embedding, vector)
			if score > match_threshold:
				matches.append(CurriculumMatch(id=item.id, type=item.type, description=item.description, similarity=score))
		matches.sort(key=lambda m: m.similarity, reverse=True)
		return matches[:match_count]


class RpcCurriculumSearch:
	_SQL = text(
		"SELECT id, type, description, similarity "
		"FROM match_curriculum_items(CAST(:query_embedding AS vector), :match_threshold, :match_count)"
	)

	def __init__(self, db: Session) -> None:
		self.db = db

	def match(self, query_embedding: Sequence[float], *, match_threshold: float, match_count: int) -> List[CurriculumMatch]:
		params = {
			# pgvector accepts the JSON array literal form
			"query_embedding": json.dumps(list(query_embedding)),
			"match_threshold": match_threshold,
			"match_count": match_count,
		}
		try:
			rows = self.db.execute(self._SQL, params).mappings().all()
		except SQLAlchemyError as e:
			self.db.rollback()
			raise CurriculumSearchError(f"Curriculum search (RPC) failed: {e}") from e
		return [
			CurriculumMatch(
				id=row["id"],
				type=row["type"],
				description=row["description"],
				similarity=float(row["similarity"]),
			)
			for row in rows
		]


def get_curriculum_search(db: Session):
	backend = (settings.curriculum_search_backend or "local").lower()
	if backend == "local":
		return LocalCurriculumSearch(db)
	if backend == "rpc":
		return RpcCurriculumSearch(db)
	raise ValueError(f"Unknown CURRICULUM_SEARCH_BACKEND: {settings.curriculum_search_backend}")
