from __future__ import annotations
import logging
import httpx
from typing import Any, Dict, List, Optional
from .errors import UpstreamError
from .settings import Settings

logger = logging.getLogger(__name__)


class GeminiClient:
	def __init__(
		self,
		api_key: Optional[str],
		*,
		model: str = "gemini-2.0-flash",
		provider: str = "ai_studio",
		vertex_region: str = "us-central1",
		vertex_project: Optional[str] = None,
		base_url: Optional[str] = None,
		timeout: float = 30.0,
		transport: Optional[httpx.AsyncBaseTransport] = None,
	) -> None:
		if not api_key:
			raise UpstreamError("GEMINI_API_KEY is not configured")
		self.api_key = api_key
		self.model = model
		self.provider = provider
		if self.provider == "vertex":
			project = vertex_project or "placeholder-project"
			# Vertex AI Generative REST endpoint (API key via header)
			self.base_url = base_url or (
				f"https://{vertex_region}-aiplatform.googleapis.com/v1/projects/{project}/locations/{vertex_region}/publishers/google/models/{self.model}:generateContent"
			)
			self._auth_in_query = False
		else:
			# Google AI Studio (Generative Language API)
			self.base_url = base_url or f"https://generativelanguage.googleapis.com/v1beta/models/{self.model}:generateContent"
			self._auth_in_query = True
		self._client = httpx.AsyncClient(timeout=timeout, transport=transport)

	@classmethod
	def from_settings(cls, settings: Settings, **kwargs: Any) -> "GeminiClient":
		return cls(
			settings.gemini_api_key,
			model=settings.gemini_model,
			provider=settings.gemini_provider,
			vertex_region=settings.vertex_region,
			vertex_project=settings.vertex_project,
			timeout=settings.gemini_timeout_seconds,
			**kwargs,
		)

	async def generate(self, prompt: str, *, role: str = "user") -> str:
		return await self.generate_parts([{"text": prompt}], role=role)

	async def generate_parts(self, parts: List[Dict[str, Any]], *, role: str = "user") -> str:
		payload: Dict[str, Any] = {"contents": [{"role": role, "parts": parts}]}
		params: Dict[str, Any] = {}
		headers: Dict[str, str] = {}
		if self._auth_in_query:
			params["key"] = self.api_key
		else:
			headers["x-goog-api-key"] = self.api_key
		try:
			r = await self._client.post(self.base_url, params=params, headers=headers, json=payload)
			r.raise_for_status()
		except httpx.HTTPStatusError as http_err:
			logger.error("Gemini returned %s: %s", http_err.response.status_code, http_err.response.text[:500])
			raise UpstreamError(f"Gemini request failed with status {http_err.response.status_code}") from http_err
		except httpx.RequestError as net_err:
			logger.error("Gemini request error: %s", net_err)
			raise UpstreamError("Gemini request failed") from net_err
		try:
			data = r.json()
			return data["candidates"][0]["content"]["parts"][0]["text"]
		except (ValueError, KeyError, IndexError, TypeError) as exc:
			logger.error("Unexpected Gemini response: %s", r.text[:500])
			raise UpstreamError("No response from Gemini") from exc

	async def aclose(self) -> None:
		await self._client.aclose()
