import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import numpy as np
import pytest
from openai import OpenAIError

from app.matching.domain.embeddings import UnconfiguredEmbeddingProvider, embed_profile
from app.matching.domain.exceptions import EmbeddingUnavailable
from app.matching.infra.openai_clients import OpenAIEmbeddingProvider


class SpyProvider:
    def __init__(self, vector=None, error=None):
        self.calls = []
        self.vector = vector or [0.1, 0.2, 0.3]
        self.error = error

    async def embed(self, text):
        self.calls.append(text)
        if self.error is not None:
            raise self.error
        return list(self.vector)


def _client(embedding=None, side_effect=None):
    client = MagicMock()
    response = SimpleNamespace(data=[SimpleNamespace(embedding=embedding)] if embedding is not None else [])
    client.embeddings.create = AsyncMock(return_value=response, side_effect=side_effect)
    return client


@pytest.mark.asyncio
async def test_embed_profile_skips_provider_for_empty_text():
    provider = SpyProvider()
    assert await embed_profile(provider, {"bio": "  ", "looking_for": []}) is None
    assert provider.calls == []


@pytest.mark.asyncio
async def test_embed_profile_passes_normalised_text():
    provider = SpyProvider()
    vector = await embed_profile(provider, {"bio": "Hi", "offering": ["Go"]})
    assert vector == [0.1, 0.2, 0.3]
    assert provider.calls == ["Hi\nCan offer: Go"]


@pytest.mark.asyncio
async def test_embed_profile_recovers_from_unavailable_provider():
    provider = SpyProvider(error=EmbeddingUnavailable("timeout"))
    assert await embed_profile(provider, {"bio": "Hi"}) is None
    assert provider.calls == ["Hi"]


@pytest.mark.asyncio
async def test_unconfigured_provider_is_unavailable():
    with pytest.raises(EmbeddingUnavailable) as exc_info:
        await UnconfiguredEmbeddingProvider().embed("text")
    assert exc_info.value.reason == "not_configured"


@pytest.mark.asyncio
async def test_openai_provider_coerces_to_float32():
    raw = [0.1, 0.2, 0.3]
    client = _client(embedding=raw)
    provider = OpenAIEmbeddingProvider(client, model="text-embedding-3-small", dimensions=3, timeout=1)

    vector = await provider.embed("hello")

    assert vector == [float(x) for x in np.asarray(raw, dtype=np.float32)]
    client.embeddings.create.assert_awaited_once_with(model="text-embedding-3-small", input="hello")


@pytest.mark.asyncio
async def test_openai_provider_rejects_empty_text():
    provider = OpenAIEmbeddingProvider(_client(embedding=[0.0]), dimensions=1)
    with pytest.raises(ValueError):
        await provider.embed("   ")


@pytest.mark.asyncio
async def test_openai_provider_rejects_wrong_dimensions():
    provider = OpenAIEmbeddingProvider(_client(embedding=[0.1, 0.2]), dimensions=3, timeout=1)
    with pytest.raises(EmbeddingUnavailable) as exc_info:
        await provider.embed("hello")
    assert exc_info.value.reason == "dimension_mismatch"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "error, reason",
    [(OpenAIError("boom"), "provider_error"), (asyncio.TimeoutError(), "timeout")],
)
async def test_openai_provider_maps_failures(error, reason):
    provider = OpenAIEmbeddingProvider(_client(side_effect=error), dimensions=3, timeout=1)
    with pytest.raises(EmbeddingUnavailable) as exc_info:
        await provider.embed("hello")
    assert exc_info.value.reason == reason
