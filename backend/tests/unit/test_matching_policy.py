import pytest

from app.matching.domain import policy
from app.matching.domain.exceptions import MatchingRateLimitExceeded, SelfTarget
from app.matching.domain.models import HIDE_PER_MINUTE, MATCH_REQUEST_PER_MINUTE


@pytest.mark.asyncio
async def test_enforce_request_limits_minute(fake_redis):
    user_id = "11111111-1111-1111-1111-111111111111"
    for _ in range(MATCH_REQUEST_PER_MINUTE):
        await policy.enforce_request_limits(user_id)
    with pytest.raises(MatchingRateLimitExceeded) as exc_info:
        await policy.enforce_request_limits(user_id)
    assert exc_info.value.reason == "per_minute"


@pytest.mark.asyncio
async def test_enforce_hide_limits(fake_redis):
    user_id = "22222222-2222-2222-2222-222222222222"
    for _ in range(HIDE_PER_MINUTE):
        await policy.enforce_hide_limits(user_id)
    with pytest.raises(MatchingRateLimitExceeded):
        await policy.enforce_hide_limits(user_id)


def test_guard_not_self():
    with pytest.raises(SelfTarget):
        policy.guard_not_self("abc", "abc")
    policy.guard_not_self("abc", "abd")


@pytest.mark.parametrize("days", [0, 366, -5])
def test_guard_hide_days_bounds(days):
    with pytest.raises(ValueError):
        policy.guard_hide_days(days)


def test_guard_hide_days_accepts_range():
    assert policy.guard_hide_days(1) == 1
    assert policy.guard_hide_days(365) == 365
