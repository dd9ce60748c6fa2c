"""OpenAI-backed embedding provider and match reason generator."""

from __future__ import annotations

import asyncio
from typing import Any, Mapping, Optional

import numpy as np
from openai import AsyncOpenAI, OpenAIError

from app.matching.domain.embeddings import EmbeddingProvider
from app.matching.domain.exceptions import EmbeddingUnavailable, ReasonUnavailable
from app.matching.domain.models import Member, RankedCandidate
from app.matching.domain.normalizer import clean_tags
from app.matching.domain.reasons import ReasonGenerator
from app.settings import settings

REASON_SYSTEM_PROMPT = (
	"Generate a brief 1 sentence reason why YOU (the reader) should connect with this person. "
	'Write in second person (use "you" and "they"). Focus on what they offer that matches what '
	"you need, or shared interests. Be specific and warm. Example: \"They could help with your "
	"fundraising - they have investor connections and you're looking for funding.\""
)


def build_client(api_key: Optional[str] = None) -> AsyncOpenAI:
	return AsyncOpenAI(api_key=api_key or settings.openai_api_key)


class OpenAIEmbeddingProvider(EmbeddingProvider):
	def __init__(
		self,
		client: AsyncOpenAI,
		*,
		model: str | None = None,
		dimensions: int | None = None,
		timeout: float | None = None,
	) -> None:
		self._client = client
		self._model = model or settings.embedding_model
		self._dimensions = dimensions or settings.embedding_dimensions
		self._timeout = timeout or settings.embedding_timeout_seconds

	async def embed(self, text: str) -> list[float]:
		if not text or not text.strip():
			raise ValueError("embedding text must be non-empty")
		try:
			response = await asyncio.wait_for(
				self._client.embeddings.create(model=self._model, input=text),
				timeout=self._timeout,
			)
		except asyncio.TimeoutError:
			raise EmbeddingUnavailable("timeout") from None
		except OpenAIError as exc:
			raise EmbeddingUnavailable("provider_error") from exc
		if not response.data:
			raise EmbeddingUnavailable("empty_response")
		vector = np.asarray(response.data[0].embedding, dtype=np.float32)
		if vector.shape != (self._dimensions,):
			raise EmbeddingUnavailable("dimension_mismatch")
		# pgvector stores float32; hand back exactly what a read will return
		return [float(x) for x in vector]


def _describe(profile: Mapping[str, Any]) -> str:
	def text(key: str) -> str:
		value = profile.get(key)
		return value.strip() if isinstance(value, str) else ""

	return (
		f"{text('bio')} Working on: {text('current_work')} "
		f"Looking for: {', '.join(clean_tags(profile.get('looking_for')))} "
		f"Offering: {', '.join(clean_tags(profile.get('offering')))}"
	)


class OpenAIReasonGenerator(ReasonGenerator):
	def __init__(
		self,
		client: AsyncOpenAI,
		*,
		model: str | None = None,
		max_tokens: int = 60,
		temperature: float = 0.7,
	) -> None:
		self._client = client
		self._model = model or settings.reason_model
		self._max_tokens = max_tokens
		self._temperature = temperature

	async def generate(self, requester: Member, candidate: RankedCandidate) -> str:
		try:
			response = await self._client.chat.completions.create(
				model=self._model,
				messages=[
					{"role": "system", "content": REASON_SYSTEM_PROMPT},
					{
						"role": "user",
						"content": f"You: {_describe(requester.profile)}\n\nThem: {_describe(candidate.profile)}",
					},
				],
				max_tokens=self._max_tokens,
				temperature=self._temperature,
			)
		except OpenAIError as exc:
			raise ReasonUnavailable("provider_error") from exc
		if not response.choices:
			return ""
		return (response.choices[0].message.content or "").strip()
