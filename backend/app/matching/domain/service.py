"""Service layer implementing group-scoped matching flows."""

from __future__ import annotations

import asyncio
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, Optional

from app.infra.auth import AuthenticatedUser
from app.matching.domain import audit, container, policy
from app.matching.domain.embeddings import embed_profile
from app.matching.domain.exceptions import EmbeddingUnavailable, LastAdmin, RankerFailure
from app.matching.domain.exclusions import resolve_exclusions
from app.matching.domain.feed import build_match_feed
from app.matching.domain.models import BackfillReport, Connection, MatchRequest, Member
from app.matching.domain.normalizer import clean_tags, profile_to_embedding_text
from app.matching.domain.schemas import (
	BackfillResult,
	ConnectionSummary,
	ContactCard,
	CurrentUserTags,
	GroupProfile,
	GroupStatsResponse,
	HideResult,
	IncomingRequest,
	LeaveResult,
	MatchFeedResponse,
	MatchItem,
	MatchRequestResult,
	MatchRequestSummary,
	MemberCard,
	ProfileData,
	ProfileUpdateRequest,
)
from app.obs import metrics as obs_metrics
from app.settings import settings

logger = logging.getLogger(__name__)

_KNOWN_TEXT_FIELDS = ("bio", "current_work", "linkedin_url")
_KNOWN_TAG_FIELDS = ("looking_for", "offering")


def _text_or_none(value: Any) -> Optional[str]:
	if not isinstance(value, str):
		return None
	return value.strip() or None


def clean_profile(existing: dict[str, Any], payload: ProfileUpdateRequest) -> dict[str, Any]:
	"""Merge an update over the stored profile.

	Known fields are replaced wholesale by the payload (trimmed, blanks dropped,
	tags de-duplicated). Unknown keys already stored are kept unless the payload
	overrides them.
	"""
	known = set(_KNOWN_TEXT_FIELDS) | set(_KNOWN_TAG_FIELDS)
	cleaned: dict[str, Any] = {key: value for key, value in existing.items() if key not in known}
	cleaned.update(payload.model_extra or {})
	for key in _KNOWN_TEXT_FIELDS:
		value = _text_or_none(getattr(payload, key))
		if value is not None:
			cleaned[key] = value
	for key in _KNOWN_TAG_FIELDS:
		raw = getattr(payload, key)
		if raw is not None:
			cleaned[key] = clean_tags(raw)
	return cleaned


def _to_group_profile(member: Member) -> GroupProfile:
	return GroupProfile(
		membership_id=member.id,
		group_id=member.group_id,
		role=member.role.value,
		profile_data=ProfileData.model_validate(member.profile),
		has_embedding=member.has_embedding,
		joined_at=member.joined_at,
		updated_at=member.updated_at,
		full_name=member.full_name,
		email=member.email,
		linkedin_url=_text_or_none(member.profile.get("linkedin_url")),
	)


def _to_request_summary(request: MatchRequest) -> MatchRequestSummary:
	return MatchRequestSummary(
		id=request.id,
		group_id=request.group_id,
		requester_id=request.requester_id,
		target_id=request.target_id,
		status=request.status.value,
		created_at=request.created_at,
	)


def _member_card(user_id: str, member: Member | None) -> MemberCard:
	if member is None:
		return MemberCard(id=user_id)
	return MemberCard(
		id=user_id,
		full_name=member.full_name,
		profile_data=ProfileData.model_validate(member.profile),
	)


def _contact_card(user_id: str, member: Member | None) -> ContactCard:
	if member is None:
		return ContactCard(id=user_id)
	return ContactCard(
		id=user_id,
		full_name=member.full_name,
		profile_data=ProfileData.model_validate(member.profile),
		email=member.email,
		linkedin_url=_text_or_none(member.profile.get("linkedin_url")),
	)


def _to_connection_summary(connection: Connection, viewer_id: str, other: Member | None) -> ConnectionSummary:
	other_id = connection.other_party(viewer_id)
	return ConnectionSummary(
		id=connection.id,
		match_reason=connection.match_reason,
		created_at=connection.created_at,
		other_user=_contact_card(other_id, other),
	)


async def _load_member(auth_user: AuthenticatedUser, group_id: str) -> Member:
	repo = container.get_repository()
	return policy.require_member(await repo.get_member(group_id, auth_user.id))


async def get_profile(auth_user: AuthenticatedUser, group_id: str) -> GroupProfile:
	member = await _load_member(auth_user, group_id)
	return _to_group_profile(member)


async def update_profile(auth_user: AuthenticatedUser, group_id: str, payload: ProfileUpdateRequest) -> GroupProfile:
	member = await _load_member(auth_user, group_id)
	profile = clean_profile(member.profile, payload)
	embedding = await embed_profile(container.get_embedding_provider(), profile)
	saved = await container.get_repository().save_profile(group_id, auth_user.id, profile, embedding)
	logger.info("group profile updated", extra={"group_id": group_id, "has_embedding": embedding is not None})
	return _to_group_profile(saved)


async def get_match_feed(
	auth_user: AuthenticatedUser,
	group_id: str,
	*,
	offset: int = 0,
	limit: Optional[int] = None,
) -> MatchFeedResponse:
	member = await _load_member(auth_user, group_id)
	repo = container.get_repository()
	limit = min(limit or settings.match_default_limit, settings.match_max_limit)
	started = time.perf_counter()
	try:
		feed = await build_match_feed(
			member,
			ranker=container.get_ranker(),
			load_exclusions=lambda: resolve_exclusions(repo, group_id, auth_user.id),
			reasons=container.get_reason_generator(),
			offset=max(0, offset),
			limit=limit,
			reason_limit=settings.match_reason_limit,
			overfetch=settings.match_overfetch,
			reason_timeout=settings.reason_timeout_seconds,
		)
	except RankerFailure:
		obs_metrics.observe_feed("ranker_failure", time.perf_counter() - started)
		raise
	except Exception as exc:
		obs_metrics.observe_feed(getattr(exc, "reason", "error"))
		raise
	obs_metrics.observe_feed("ok", time.perf_counter() - started)
	return MatchFeedResponse(
		matches=[
			MatchItem(
				user_id=entry.candidate.user_id,
				full_name=entry.candidate.full_name,
				profile_data=ProfileData.model_validate(entry.candidate.profile),
				similarity=entry.candidate.similarity,
				match_reason=entry.match_reason,
			)
			for entry in feed.entries
		],
		current_user=CurrentUserTags(looking_for=list(feed.looking_for), offering=list(feed.offering)),
		offset=feed.offset,
		limit=feed.limit,
		has_more=feed.has_more,
	)


async def send_match_request(auth_user: AuthenticatedUser, group_id: str, target_id: str) -> MatchRequestResult:
	repo = container.get_repository()
	await _load_member(auth_user, group_id)
	try:
		policy.guard_not_self(auth_user.id, target_id)
		await policy.enforce_request_limits(auth_user.id)
		target = policy.require_target(await repo.get_member(group_id, target_id))
		outcome = await repo.create_match_request(group_id, auth_user.id, target_id)
	except Exception as exc:
		reason = getattr(exc, "reason", None)
		if reason:
			audit.inc_request_reject(reason)
		raise

	audit.inc_request_sent("mutual" if outcome.is_mutual else "pending")
	await audit.log_request_event(
		"match_request.sent",
		{
			"request_id": outcome.request.id,
			"group_id": group_id,
			"requester_id": auth_user.id,
			"target_id": target_id,
		},
	)
	connection_summary: ConnectionSummary | None = None
	if outcome.connection is not None:
		audit.inc_connection("mutual")
		await audit.log_request_event(
			"connection.created",
			{"connection_id": outcome.connection.id, "group_id": group_id, "via": "mutual"},
		)
		connection_summary = _to_connection_summary(outcome.connection, auth_user.id, target)
	return MatchRequestResult(
		request=_to_request_summary(outcome.request),
		is_mutual=outcome.is_mutual,
		connection=connection_summary,
	)


async def list_incoming_requests(auth_user: AuthenticatedUser, group_id: str) -> list[IncomingRequest]:
	await _load_member(auth_user, group_id)
	repo = container.get_repository()
	requests = await repo.list_incoming_requests(group_id, auth_user.id)
	if not requests:
		return []
	requesters = await repo.get_members(group_id, [r.requester_id for r in requests])
	return [
		IncomingRequest(
			id=r.id,
			status=r.status.value,
			created_at=r.created_at,
			requester=_member_card(r.requester_id, requesters.get(r.requester_id)),
		)
		for r in requests
	]


async def accept_match_request(auth_user: AuthenticatedUser, group_id: str, request_id: str) -> ConnectionSummary:
	await _load_member(auth_user, group_id)
	repo = container.get_repository()
	request, connection = await repo.accept_match_request(group_id, request_id, auth_user.id)
	audit.inc_connection("accept")
	await audit.log_request_event(
		"connection.created",
		{"connection_id": connection.id, "group_id": group_id, "via": "accept", "request_id": request.id},
	)
	other = await repo.get_member(group_id, request.requester_id)
	return _to_connection_summary(connection, auth_user.id, other)


async def hide_member(
	auth_user: AuthenticatedUser,
	group_id: str,
	target_id: str,
	*,
	days: Optional[int] = None,
) -> HideResult:
	repo = container.get_repository()
	await _load_member(auth_user, group_id)
	policy.guard_not_self(auth_user.id, target_id)
	days = policy.guard_hide_days(days if days is not None else settings.hide_default_days)
	await policy.enforce_hide_limits(auth_user.id)
	policy.require_target(await repo.get_member(group_id, target_id))
	hidden_until = datetime.now(timezone.utc) + timedelta(days=days)
	suppression = await repo.upsert_suppression(group_id, auth_user.id, target_id, hidden_until)
	audit.inc_suppression("hide")
	await audit.log_suppression_event(
		"suppression.hide",
		{"group_id": group_id, "user_id": auth_user.id, "hidden_id": target_id, "days": str(days)},
	)
	return HideResult(group_id=group_id, hidden_id=target_id, hidden_until=suppression.hidden_until)


async def unhide_member(auth_user: AuthenticatedUser, group_id: str, target_id: str) -> bool:
	await _load_member(auth_user, group_id)
	removed = await container.get_repository().delete_suppression(group_id, auth_user.id, target_id)
	if removed:
		audit.inc_suppression("unhide")
		await audit.log_suppression_event(
			"suppression.unhide",
			{"group_id": group_id, "user_id": auth_user.id, "hidden_id": target_id},
		)
	return removed


async def list_connections(auth_user: AuthenticatedUser, group_id: str) -> list[ConnectionSummary]:
	await _load_member(auth_user, group_id)
	repo = container.get_repository()
	connections = await repo.list_connections(group_id, auth_user.id)
	if not connections:
		return []
	others = await repo.get_members(group_id, [c.other_party(auth_user.id) for c in connections])
	return [
		_to_connection_summary(c, auth_user.id, others.get(c.other_party(auth_user.id)))
		for c in connections
	]


async def _backfill_one(member: Member, report: BackfillReport, semaphore: asyncio.Semaphore) -> None:
	text = profile_to_embedding_text(member.profile)
	if not text:
		report.skipped += 1
		return
	async with semaphore:
		try:
			vector = await container.get_embedding_provider().embed(text)
		except EmbeddingUnavailable as exc:
			report.failed += 1
			obs_metrics.inc_embedding("unavailable")
			logger.warning("backfill embedding unavailable", extra={"member_id": member.id, "reason": exc.reason})
			return
	written = await container.get_repository().set_embedding_if_unchanged(
		member.group_id,
		member.user_id,
		vector,
		expected_updated_at=member.updated_at,
	)
	if written:
		report.updated += 1
		obs_metrics.inc_embedding("ok")
	else:
		report.skipped += 1


async def backfill_embeddings(
	*,
	group_id: Optional[str] = None,
	batch_size: int = 100,
	concurrency: Optional[int] = None,
) -> BackfillResult:
	"""Embed every member that has profile text but no stored vector.

	Members are walked once in id order; a profile edited while its embedding was
	in flight is left for the edit's own embedding.
	"""
	repo = container.get_repository()
	report = BackfillReport()
	semaphore = asyncio.Semaphore(max(1, concurrency or settings.backfill_concurrency))
	started = time.perf_counter()
	after_id: Optional[str] = None
	try:
		while True:
			batch = await repo.list_members_missing_embedding(group_id, after_id=after_id, limit=batch_size)
			if not batch:
				break
			results = await asyncio.gather(
				*(_backfill_one(member, report, semaphore) for member in batch),
				return_exceptions=True,
			)
			for member, result in zip(batch, results):
				if isinstance(result, asyncio.CancelledError):
					raise result
				if isinstance(result, Exception):
					report.failed += 1
					logger.warning(
						"backfill member failed",
						extra={"member_id": member.id, "error": type(result).__name__},
					)
			after_id = batch[-1].id
			if len(batch) < batch_size:
				break
	except Exception:
		obs_metrics.record_job_run("embedding_backfill", result="error", duration_seconds=time.perf_counter() - started)
		raise
	obs_metrics.record_job_run("embedding_backfill", result="ok", duration_seconds=time.perf_counter() - started)
	logger.info(
		"embedding backfill finished",
		extra={"group_id": group_id, "updated": report.updated, "failed": report.failed, "skipped": report.skipped},
	)
	return BackfillResult(updated=report.updated, failed=report.failed, skipped=report.skipped)


async def leave_group(auth_user: AuthenticatedUser, group_id: str) -> LeaveResult:
	"""Leave a group, removing the member's requests, connections and hides both ways."""
	await _load_member(auth_user, group_id)
	try:
		outcome = await container.get_repository().leave_group(group_id, auth_user.id)
	except LastAdmin:
		audit.inc_membership_exit("last_admin")
		raise
	audit.inc_membership_exit("group_deleted" if outcome.group_deleted else "left")
	await audit.log_membership_event(
		"membership.left",
		{
			"group_id": group_id,
			"user_id": auth_user.id,
			"requests_removed": str(outcome.requests_removed),
			"connections_removed": str(outcome.connections_removed),
			"suppressions_removed": str(outcome.suppressions_removed),
			"group_deleted": "1" if outcome.group_deleted else "0",
		},
	)
	logger.info("member left group", extra={"group_id": group_id, "group_deleted": outcome.group_deleted})
	return LeaveResult(group_deleted=outcome.group_deleted)


async def get_group_stats(group_id: str) -> GroupStatsResponse:
	since = datetime.now(timezone.utc) - timedelta(days=7)
	stats = await container.get_repository().group_stats(group_id, since=since)
	coverage = stats.members_with_embedding / stats.member_count if stats.member_count else 0.0
	return GroupStatsResponse(
		group_id=group_id,
		member_count=stats.member_count,
		members_with_embedding=stats.members_with_embedding,
		embedding_coverage=round(coverage, 4),
		pending_requests=stats.pending_requests,
		connections=stats.connections,
		new_members_this_week=stats.new_members_this_week,
	)
