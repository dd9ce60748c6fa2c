from datetime import datetime, timedelta, timezone

import pytest

from app.infra.auth import AuthenticatedUser
from app.matching.domain import container, service
from app.matching.domain.exceptions import (
    AlreadyConnected,
    DuplicateRequest,
    EmbeddingUnavailable,
    LastAdmin,
    NotAMember,
    ProfileIncomplete,
    RequestNotFound,
    SelfTarget,
    TargetNotMember,
)
from app.matching.domain.models import MatchRequestStatus, MemberRole
from app.matching.domain.schemas import ProfileUpdateRequest

GROUP = "design-guild"


def _user(user_id):
    return AuthenticatedUser(id=user_id)


class VectorProvider:
    """Embeds by keyword so tests control similarity."""

    def __init__(self):
        self.calls = []

    async def embed(self, text):
        self.calls.append(text)
        if "Mentors" in text:
            return [1.0, 0.0, 0.0]
        return [0.0, 1.0, 0.0]


class FailingProvider:
    async def embed(self, text):
        raise EmbeddingUnavailable("timeout")


class EchoReasons:
    async def generate(self, requester, candidate):
        return f"You both care about {candidate.profile.get('current_work', 'design')}"


def _seed(repo):
    repo.add_member(GROUP, "alice", profile={"looking_for": ["Mentors"]}, embedding=[1.0, 0.0, 0.0], full_name="Alice", email="alice@example.com")
    repo.add_member(
        GROUP,
        "bob",
        profile={"offering": ["Mentors"], "current_work": "design systems", "linkedin_url": "https://linkedin.com/in/bob"},
        embedding=[0.9, 0.1, 0.0],
        full_name="Bob",
        email="bob@example.com",
    )
    repo.add_member(GROUP, "carol", profile={"bio": "Backend"}, embedding=[0.0, 1.0, 0.0], full_name="Carol")


@pytest.mark.asyncio
async def test_mentors_scenario_mutual_match(matching_repo):
    _seed(matching_repo)
    container.configure(reasons=EchoReasons())

    feed = await service.get_match_feed(_user("alice"), GROUP)
    assert [m.user_id for m in feed.matches] == ["bob", "carol"]
    assert feed.matches[0].match_reason == "You both care about design systems"
    assert feed.current_user.looking_for == ["Mentors"]

    first = await service.send_match_request(_user("alice"), GROUP, "bob")
    assert first.is_mutual is False
    assert first.request.status == "pending"

    second = await service.send_match_request(_user("bob"), GROUP, "alice")
    assert second.is_mutual is True
    assert second.connection.other_user.id == "alice"
    assert second.connection.other_user.email == "alice@example.com"

    assert len(matching_repo.connections) == 1
    assert {r.status for r in matching_repo.requests.values()} == {MatchRequestStatus.ACCEPTED}

    alice_feed = await service.get_match_feed(_user("alice"), GROUP)
    bob_feed = await service.get_match_feed(_user("bob"), GROUP)
    assert "bob" not in [m.user_id for m in alice_feed.matches]
    assert "alice" not in [m.user_id for m in bob_feed.matches]

    connections = await service.list_connections(_user("alice"), GROUP)
    assert [c.other_user.id for c in connections] == ["bob"]
    assert connections[0].other_user.email == "bob@example.com"
    assert connections[0].other_user.linkedin_url == "https://linkedin.com/in/bob"


@pytest.mark.asyncio
async def test_request_guards(matching_repo):
    _seed(matching_repo)
    with pytest.raises(SelfTarget):
        await service.send_match_request(_user("alice"), GROUP, "alice")
    with pytest.raises(TargetNotMember):
        await service.send_match_request(_user("alice"), GROUP, "mallory")
    with pytest.raises(NotAMember):
        await service.send_match_request(_user("mallory"), GROUP, "alice")

    await service.send_match_request(_user("alice"), GROUP, "carol")
    with pytest.raises(DuplicateRequest):
        await service.send_match_request(_user("alice"), GROUP, "carol")

    await service.send_match_request(_user("carol"), GROUP, "alice")
    with pytest.raises(AlreadyConnected):
        await service.send_match_request(_user("alice"), GROUP, "carol")


@pytest.mark.asyncio
async def test_request_audit_event_written(matching_repo, fake_redis):
    _seed(matching_repo)
    await service.send_match_request(_user("alice"), GROUP, "bob")
    events = await fake_redis.xrange("x:match_requests.events")
    assert events[-1][1]["event"] == "match_request.sent"
    assert events[-1][1]["target_id"] == "bob"


@pytest.mark.asyncio
async def test_incoming_requests_and_accept(matching_repo):
    _seed(matching_repo)
    await service.send_match_request(_user("alice"), GROUP, "carol")
    await service.send_match_request(_user("bob"), GROUP, "carol")

    incoming = await service.list_incoming_requests(_user("carol"), GROUP)
    assert [r.requester.id for r in incoming] == ["bob", "alice"]
    assert incoming[0].requester.full_name == "Bob"
    assert not hasattr(incoming[0].requester, "email")

    with pytest.raises(RequestNotFound):
        await service.accept_match_request(_user("alice"), GROUP, incoming[0].id)

    summary = await service.accept_match_request(_user("carol"), GROUP, incoming[0].id)
    assert summary.other_user.id == "bob"
    assert summary.other_user.email == "bob@example.com"

    with pytest.raises(RequestNotFound):
        await service.accept_match_request(_user("carol"), GROUP, incoming[0].id)

    remaining = await service.list_incoming_requests(_user("carol"), GROUP)
    assert [r.requester.id for r in remaining] == ["alice"]


@pytest.mark.asyncio
async def test_hide_expiry_and_unhide(matching_repo):
    _seed(matching_repo)
    result = await service.hide_member(_user("alice"), GROUP, "bob")
    expected = datetime.now(timezone.utc) + timedelta(days=30)
    assert abs((result.hidden_until - expected).total_seconds()) < 5

    feed = await service.get_match_feed(_user("alice"), GROUP)
    assert "bob" not in [m.user_id for m in feed.matches]
    # hiding is one-directional
    bob_feed = await service.get_match_feed(_user("bob"), GROUP)
    assert "alice" in [m.user_id for m in bob_feed.matches]

    matching_repo.suppressions[(GROUP, "alice", "bob")].hidden_until = datetime.now(timezone.utc) - timedelta(seconds=1)
    feed = await service.get_match_feed(_user("alice"), GROUP)
    assert "bob" in [m.user_id for m in feed.matches]

    await service.hide_member(_user("alice"), GROUP, "bob", days=2)
    assert await service.unhide_member(_user("alice"), GROUP, "bob") is True
    assert await service.unhide_member(_user("alice"), GROUP, "bob") is False
    feed = await service.get_match_feed(_user("alice"), GROUP)
    assert "bob" in [m.user_id for m in feed.matches]


@pytest.mark.asyncio
async def test_hide_guards(matching_repo):
    _seed(matching_repo)
    with pytest.raises(SelfTarget):
        await service.hide_member(_user("alice"), GROUP, "alice")
    with pytest.raises(ValueError):
        await service.hide_member(_user("alice"), GROUP, "bob", days=0)
    with pytest.raises(TargetNotMember):
        await service.hide_member(_user("alice"), GROUP, "mallory")


@pytest.mark.asyncio
async def test_empty_profile_scenario(matching_repo):
    _seed(matching_repo)
    matching_repo.add_member(GROUP, "dave")
    provider = VectorProvider()
    container.configure(embeddings=provider)

    profile = await service.update_profile(_user("dave"), GROUP, ProfileUpdateRequest())
    assert profile.has_embedding is False
    assert provider.calls == []

    with pytest.raises(ProfileIncomplete):
        await service.get_match_feed(_user("dave"), GROUP)
    feed = await service.get_match_feed(_user("alice"), GROUP)
    assert "dave" not in [m.user_id for m in feed.matches]


@pytest.mark.asyncio
async def test_update_profile_cleans_fields_and_keeps_unknown_keys(matching_repo):
    matching_repo.add_member(GROUP, "erin", profile={"bio": "old", "pronouns": "they", "offering": ["x"]})
    provider = VectorProvider()
    container.configure(embeddings=provider)

    payload = ProfileUpdateRequest(bio="  New bio ", looking_for=["Mentors", " ", "Mentors", "Investors"], timezone="UTC")
    profile = await service.update_profile(_user("erin"), GROUP, payload)

    stored = matching_repo.members[(GROUP, "erin")].profile
    assert stored == {"pronouns": "they", "timezone": "UTC", "bio": "New bio", "looking_for": ["Mentors", "Investors"]}
    assert profile.has_embedding is True
    assert provider.calls == ["New bio\nLooking for: Mentors, Investors"]


@pytest.mark.asyncio
async def test_update_profile_keeps_profile_when_embedding_fails(matching_repo):
    matching_repo.add_member(GROUP, "erin", embedding=[1.0, 0.0, 0.0])
    container.configure(embeddings=FailingProvider())

    profile = await service.update_profile(_user("erin"), GROUP, ProfileUpdateRequest(bio="Hello"))

    assert profile.has_embedding is False
    assert profile.profile_data.bio == "Hello"


@pytest.mark.asyncio
async def test_get_profile_requires_membership(matching_repo):
    matching_repo.add_member(GROUP, "frank", role=MemberRole.ADMIN, profile={"linkedin_url": "https://l.in/f"})
    profile = await service.get_profile(_user("frank"), GROUP)
    assert profile.role == "admin"
    assert profile.linkedin_url == "https://l.in/f"
    with pytest.raises(NotAMember):
        await service.get_profile(_user("frank"), "another-group")


@pytest.mark.asyncio
async def test_backfill_embeds_only_members_with_text(matching_repo):
    matching_repo.add_member(GROUP, "with-text", profile={"bio": "Mentors wanted"})
    matching_repo.add_member(GROUP, "blank", profile={})
    matching_repo.add_member(GROUP, "done", profile={"bio": "x"}, embedding=[0.0, 1.0, 0.0])
    matching_repo.add_member("other", "elsewhere", profile={"bio": "x"})
    container.configure(embeddings=VectorProvider())

    result = await service.backfill_embeddings(group_id=GROUP, batch_size=1)

    assert (result.updated, result.failed, result.skipped) == (1, 0, 1)
    assert matching_repo.members[(GROUP, "with-text")].embedding == [1.0, 0.0, 0.0]
    assert matching_repo.members[("other", "elsewhere")].embedding is None


@pytest.mark.asyncio
async def test_backfill_counts_provider_failures(matching_repo):
    matching_repo.add_member(GROUP, "a", profile={"bio": "x"})
    container.configure(embeddings=FailingProvider())
    result = await service.backfill_embeddings()
    assert (result.updated, result.failed, result.skipped) == (0, 1, 0)
    assert matching_repo.members[(GROUP, "a")].embedding is None


@pytest.mark.asyncio
async def test_backfill_counts_store_errors_and_finishes_batch(matching_repo, monkeypatch):
    matching_repo.add_member(GROUP, "a", profile={"bio": "Mentors"})
    matching_repo.add_member(GROUP, "b", profile={"bio": "Mentors"})
    container.configure(embeddings=VectorProvider())
    store = matching_repo.set_embedding_if_unchanged

    async def flaky_store(group_id, user_id, vector, *, expected_updated_at):
        if user_id == "a":
            raise RuntimeError("connection reset")
        return await store(group_id, user_id, vector, expected_updated_at=expected_updated_at)

    monkeypatch.setattr(matching_repo, "set_embedding_if_unchanged", flaky_store)

    result = await service.backfill_embeddings(group_id=GROUP)

    assert (result.updated, result.failed, result.skipped) == (1, 1, 0)
    assert matching_repo.members[(GROUP, "a")].embedding is None
    assert matching_repo.members[(GROUP, "b")].embedding == [1.0, 0.0, 0.0]


@pytest.mark.asyncio
async def test_leave_group_removes_everything_both_ways(matching_repo, fake_redis):
    _seed(matching_repo)
    await service.send_match_request(_user("alice"), GROUP, "bob")
    await service.send_match_request(_user("bob"), GROUP, "alice")
    await service.send_match_request(_user("carol"), GROUP, "alice")
    await service.hide_member(_user("alice"), GROUP, "carol")
    await service.hide_member(_user("bob"), GROUP, "alice")
    await service.hide_member(_user("bob"), GROUP, "carol")

    result = await service.leave_group(_user("alice"), GROUP)

    assert result.group_deleted is False
    assert matching_repo.members.get((GROUP, "alice")) is None
    assert not [r for r in matching_repo.requests.values() if "alice" in (r.requester_id, r.target_id)]
    assert not matching_repo.connections
    assert list(matching_repo.suppressions) == [(GROUP, "bob", "carol")]
    events = await fake_redis.xrange("x:memberships.events")
    assert events[-1][1]["event"] == "membership.left"
    assert events[-1][1]["connections_removed"] == "1"
    with pytest.raises(NotAMember):
        await service.get_profile(_user("alice"), GROUP)


@pytest.mark.asyncio
async def test_leave_group_blocks_last_admin_with_members(matching_repo):
    matching_repo.add_member(GROUP, "owner", role=MemberRole.ADMIN)
    matching_repo.add_member(GROUP, "guest")

    with pytest.raises(LastAdmin):
        await service.leave_group(_user("owner"), GROUP)
    assert (GROUP, "owner") in matching_repo.members

    matching_repo.add_member(GROUP, "deputy", role=MemberRole.ADMIN)
    result = await service.leave_group(_user("owner"), GROUP)
    assert result.group_deleted is False


@pytest.mark.asyncio
async def test_leave_group_sole_member_deletes_group(matching_repo):
    matching_repo.add_member(GROUP, "owner", role=MemberRole.ADMIN)
    result = await service.leave_group(_user("owner"), GROUP)
    assert result.group_deleted is True
    assert matching_repo.group_members(GROUP) == []


@pytest.mark.asyncio
async def test_leave_group_requires_membership(matching_repo):
    _seed(matching_repo)
    with pytest.raises(NotAMember):
        await service.leave_group(_user("zoe"), GROUP)


@pytest.mark.asyncio
async def test_group_stats_counts_coverage_requests_and_connections(matching_repo):
    _seed(matching_repo)
    matching_repo.add_member(GROUP, "dave", profile={})
    await service.send_match_request(_user("alice"), GROUP, "bob")
    await service.send_match_request(_user("bob"), GROUP, "alice")
    await service.send_match_request(_user("carol"), GROUP, "alice")

    stats = await service.get_group_stats(GROUP)

    assert stats.member_count == 4
    assert stats.members_with_embedding == 3
    assert stats.embedding_coverage == 0.75
    assert stats.pending_requests == 1
    assert stats.connections == 1
    assert stats.new_members_this_week == 4


@pytest.mark.asyncio
async def test_group_stats_for_empty_group(matching_repo):
    stats = await service.get_group_stats("nobody-here")
    assert stats.member_count == 0
    assert stats.embedding_coverage == 0.0
