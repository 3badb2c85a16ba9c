"""Load cycles and curriculum items into the database.

Usage::

    python -m talenthub.seed reference.json

The file holds ``{"cycles": [{"id", "name"}], "curriculum_items": [{"type",
"description", "embedding"?}]}``. Items without an embedding are embedded with
Gemini unless ``--skip-embeddings`` is given.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from sqlalchemy.orm import Session

from .analysis import Embedder
from .db import SessionLocal, init_db
from .gemini_client import GeminiClient
from .models import CurriculumItem, Cycle

logger = logging.getLogger(__name__)


async def load_reference_data(db: Session, data: Dict[str, Any], embedder: Optional[Embedder] = None) -> Dict[str, int]:
	cycles = 0
	for entry in data.get("cycles", []):
		db.merge(Cycle(id=int(entry["id"]), name=str(entry["name"])))
		cycles += 1

	items = 0
	embedded = 0
	for entry in data.get("curriculum_items", []):
		description = str(entry["description"]).strip()
		vector = entry.get("embedding")
		if vector is None and embedder is not None:
			vector = await embedder.embed(description)
			embedded += 1
		db.add(CurriculumItem(type=str(entry.get("type", "")), description=description, embedding=vector))
		items += 1

	db.commit()
	logger.info("Loaded %d cycles and %d curriculum items (%d embedded now)", cycles, items, embedded)
	return {"cycles": cycles, "curriculum_items": items, "embedded": embedded}


async def _run(path: Path, skip_embeddings: bool) -> Dict[str, int]:
	data = json.loads(path.read_text(encoding="utf-8"))
	init_db()
	client = None if skip_embeddings else GeminiClient()
	db = SessionLocal()
	try:
		return await load_reference_data(db, data, client)
	finally:
		db.close()
		if client is not None:
			await client.aclose()


def main(argv=None) -> int:
	parser = argparse.ArgumentParser(description="Load TalentHub reference data")
	parser.add_argument("path", type=Path, help="JSON file with cycles and curriculum_items")
	parser.add_argument("--skip-embeddings", action="store_true", help="do not call Gemini for missing embeddings")
	args = parser.parse_args(argv)
	logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
	counts = asyncio.run(_run(args.path, args.skip_embeddings))
	print(json.dumps(counts))
	return 0


if __name__ == "__main__":
	raise SystemExit(main())
