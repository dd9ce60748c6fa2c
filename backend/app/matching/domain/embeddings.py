"""Embedding provider interface and the profile embedding step."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional, Protocol

from app.matching.domain.exceptions import EmbeddingUnavailable
from app.matching.domain.normalizer import profile_to_embedding_text
from app.obs import metrics as obs_metrics

logger = logging.getLogger(__name__)


class EmbeddingProvider(Protocol):
	"""Turns non-empty profile text into a fixed-dimension vector."""

	async def embed(self, text: str) -> list[float]:
		...


class UnconfiguredEmbeddingProvider(EmbeddingProvider):
	"""Used when no provider credentials are configured."""

	async def embed(self, text: str) -> list[float]:
		if not text or not text.strip():
			raise ValueError("embedding text must be non-empty")
		raise EmbeddingUnavailable("not_configured")


async def embed_profile(provider: EmbeddingProvider, profile: Mapping[str, Any] | None) -> Optional[list[float]]:
	"""Embed a profile, returning None for empty text or an unavailable provider."""
	text = profile_to_embedding_text(profile)
	if not text:
		obs_metrics.inc_embedding("empty")
		return None
	try:
		vector = await provider.embed(text)
	except EmbeddingUnavailable as exc:
		obs_metrics.inc_embedding("unavailable")
		logger.warning("profile embedding unavailable", extra={"reason": exc.reason})
		return None
	obs_metrics.inc_embedding("ok")
	return vector
