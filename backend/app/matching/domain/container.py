"""Lightweight service container shared by matching modules."""

from __future__ import annotations

from typing import Optional

import asyncpg

from app.matching.domain.embeddings import EmbeddingProvider, UnconfiguredEmbeddingProvider
from app.matching.domain.ranker import InMemoryRanker, Ranker
from app.matching.domain.reasons import NoopReasonGenerator, ReasonGenerator
from app.matching.domain.repository import InMemoryMatchingRepository, MatchingRepository
from app.matching.infra.openai_clients import OpenAIEmbeddingProvider, OpenAIReasonGenerator, build_client
from app.matching.infra.pgvector_ranker import PgvectorRanker
from app.matching.infra.postgres_repo import PostgresMatchingRepository

_memory_repository = InMemoryMatchingRepository()
_repository: MatchingRepository = _memory_repository
_ranker: Ranker = InMemoryRanker(_memory_repository)
_embeddings: EmbeddingProvider = UnconfiguredEmbeddingProvider()
_reasons: ReasonGenerator = NoopReasonGenerator()


def configure(
	*,
	repository: Optional[MatchingRepository] = None,
	ranker: Optional[Ranker] = None,
	embeddings: Optional[EmbeddingProvider] = None,
	reasons: Optional[ReasonGenerator] = None,
) -> None:
	global _repository, _ranker, _embeddings, _reasons
	if repository is not None:
		_repository = repository
		if ranker is None and isinstance(repository, InMemoryMatchingRepository):
			ranker = InMemoryRanker(repository)
	if ranker is not None:
		_ranker = ranker
	if embeddings is not None:
		_embeddings = embeddings
	if reasons is not None:
		_reasons = reasons


def configure_postgres(pool: asyncpg.Pool) -> None:
	configure(repository=PostgresMatchingRepository(pool), ranker=PgvectorRanker(pool))


def configure_openai(api_key: Optional[str] = None) -> None:
	client = build_client(api_key)
	configure(embeddings=OpenAIEmbeddingProvider(client), reasons=OpenAIReasonGenerator(client))


def reset() -> InMemoryMatchingRepository:
	"""Swap in fresh in-memory collaborators and return the repository."""
	global _repository, _ranker, _embeddings, _reasons
	repository = InMemoryMatchingRepository()
	_repository = repository
	_ranker = InMemoryRanker(repository)
	_embeddings = UnconfiguredEmbeddingProvider()
	_reasons = NoopReasonGenerator()
	return repository


def get_repository() -> MatchingRepository:
	return _repository


def get_ranker() -> Ranker:
	return _ranker


def get_embedding_provider() -> EmbeddingProvider:
	return _embeddings


def get_reason_generator() -> ReasonGenerator:
	return _reasons
