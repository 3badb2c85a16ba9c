from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, AsyncIterator, Dict, List, Optional

logger = logging.getLogger(__name__)


class ResponseFeed:
	"""In-process fan-out of new responses, one queue per listening dashboard.

	Events published while nobody listens are dropped; subscribers only see
	what arrives after they subscribe.
	"""

	def __init__(self) -> None:
		self._queues: Dict[int, List[asyncio.Queue]] = {}

	def subscribe(self, session_id: int) -> asyncio.Queue:
		queue: asyncio.Queue = asyncio.Queue()
		self._queues.setdefault(session_id, []).append(queue)
		return queue

	def unsubscribe(self, session_id: int, queue: asyncio.Queue) -> None:
		queues = self._queues.get(session_id)
		if not queues:
			return
		if queue in queues:
			queues.remove(queue)
		if not queues:
			self._queues.pop(session_id, None)

	def subscriber_count(self, session_id: int) -> int:
		return len(self._queues.get(session_id, []))

	def publish(self, session_id: int, event: Dict[str, Any]) -> int:
		queues = list(self._queues.get(session_id, []))
		for queue in queues:
			queue.put_nowait(event)
		logger.debug("Published response to %d listeners of session %s", len(queues), session_id)
		return len(queues)

	def close(self, session_id: int) -> None:
		"""Ends every open stream of the session."""
		for queue in list(self._queues.get(session_id, [])):
			queue.put_nowait(None)


feed = ResponseFeed()


async def sse_events(session_id: int, *, keepalive: Optional[float] = 15.0, hub: Optional[ResponseFeed] = None) -> AsyncIterator[str]:
	# Subscribed on first iteration, so an unread body leaves no queue
	hub = hub or feed
	queue = hub.subscribe(session_id)
	try:
		while True:
			try:
				event = await asyncio.wait_for(queue.get(), timeout=keepalive)
			except asyncio.TimeoutError:
				yield ": keep-alive\n\n"
				continue
			if event is None:
				break
			yield f"event: response\ndata: {json.dumps(event)}\n\n"
	finally:
		hub.unsubscribe(session_id, queue)
