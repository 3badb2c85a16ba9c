from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional
from .settings import settings

logger = logging.getLogger(__name__)


class GeminiError(RuntimeError):
	"""Raised when a Gemini call fails or returns something unusable."""


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str] = None,
		*,
		model: Optional[str] = None,
		embedding_model: Optional[str] = None,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		self.api_key = api_key or settings.gemini_api_key
		if not self.api_key:
			raise ValueError("GEMINI_API_KEY is not configured")
		self.model = model or settings.gemini_model
		self.embedding_model = embedding_model or settings.gemini_embedding_model
		self.provider = settings.gemini_provider
		if self.provider == "vertex":
			region = settings.vertex_region
			project = settings.vertex_project
			if not project:
				raise ValueError("GEMINI_VERTEX_PROJECT is not configured")
			# Vertex AI REST endpoints (API key via header)
			root = f"https://{region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{region}/publishers/google/models"
			self.generate_url = f"{root}/{self.model}:generateContent"
			self.embed_url = f"{root}/{self.embedding_model}:predict"
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			root = "https://generativelanguage.googleapis.com/v1beta/models"
			self.generate_url = f"{root}/{self.model}:generateContent"
			self.embed_url = f"{root}/{self.embedding_model}:embedContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=settings.gemini_timeout_seconds, transport=transport)

	async def generate(self, prompt: str) -> str:
		payload: Dict[str, Any] = {"contents": [{"parts": [{"text": prompt}]}]}
		data = await self._post(self.generate_url, payload)
		try:
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except (KeyError, IndexError, TypeError):
			raise GeminiError(f"Unexpected Gemini response: {data}")

	async def embed(self, text: str) -> List[float]:
		if self.provider == "vertex":
			payload: Dict[str, Any] = {"instances": [{"content": text}]}
		else:
			payload = {
				"model": f"models/{self.embedding_model}",
				"content": {"parts": [{"text": text}]},
			}
		data = await self._post(self.embed_url, payload)
		try:
			if self.provider == "vertex":
				values = data["predictions"][0]["embeddings"]["values"]
			else:
				values = data["embedding"]["values"]
			return [float(v) for v in values]
		except (KeyError, IndexError, TypeError, ValueError):
			raise GeminiError(f"Unexpected Gemini embedding response: {data}")

	async def _post(self, url: str, payload: Dict[str, Any]) -> Dict[str, Any]:
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		try:
			r = await self._client.post(url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.warning("Gemini returned %s for %s", http_err.response.status_code, url)
			raise GeminiError(
				f"Gemini request failed ({http_err.response.status_code}): {http_err.response.text}"
			) from http_err
		except httpx.RequestError as net_err:
			raise GeminiError(f"Gemini request failed: {net_err}") from net_err
		try:
			return r.json()
		except ValueError:
			raise GeminiError(f"Unexpected Gemini response: {r.text}")

	async def aclose(self) -> None:
		await self._client.aclose()
