import asyncio
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from openai import OpenAIError

from app.matching.domain.exceptions import ReasonUnavailable
from app.matching.domain.models import RankedCandidate
from app.matching.domain.reasons import NoopReasonGenerator, generate_reasons
from app.matching.domain.repository import InMemoryMatchingRepository
from app.matching.infra.openai_clients import OpenAIReasonGenerator


def _requester():
    repo = InMemoryMatchingRepository()
    return repo.add_member("g1", "me", profile={"bio": "Designer", "looking_for": ["Mentors"]}, embedding=[1.0, 0.0])


def _candidate(user_id, **profile):
    return RankedCandidate(user_id=user_id, profile=profile, similarity=0.5)


class ScriptedGenerator:
    async def generate(self, requester, candidate):
        if candidate.user_id == "broken":
            raise ReasonUnavailable("provider_error")
        if candidate.user_id == "slow":
            await asyncio.sleep(5)
        return f"  you should meet {candidate.user_id} "


@pytest.mark.asyncio
async def test_generate_reasons_isolates_failures_and_keeps_order():
    candidates = [_candidate("a"), _candidate("broken"), _candidate("slow"), _candidate("b")]

    reasons = await generate_reasons(ScriptedGenerator(), _requester(), candidates, timeout=0.05)

    assert reasons == ["you should meet a", "", "", "you should meet b"]


@pytest.mark.asyncio
async def test_generate_reasons_empty_input():
    assert await generate_reasons(ScriptedGenerator(), _requester(), [], timeout=1) == []


@pytest.mark.asyncio
async def test_noop_generator_returns_blank():
    assert await NoopReasonGenerator().generate(_requester(), _candidate("a")) == ""


@pytest.mark.asyncio
async def test_openai_reason_generator_prompt_and_parameters():
    client = MagicMock()
    message = SimpleNamespace(content=" They mentor designers. ")
    client.chat.completions.create = AsyncMock(return_value=SimpleNamespace(choices=[SimpleNamespace(message=message)]))
    generator = OpenAIReasonGenerator(client, model="gpt-4o-mini")

    text = await generator.generate(_requester(), _candidate("b", offering=["Mentors"], bio="Staff designer"))

    assert text == "They mentor designers."
    kwargs = client.chat.completions.create.await_args.kwargs
    assert kwargs["model"] == "gpt-4o-mini"
    assert kwargs["max_tokens"] == 60
    assert kwargs["temperature"] == 0.7
    system, user = kwargs["messages"]
    assert "second person" in system["content"]
    assert user["content"].startswith("You: Designer")
    assert "Them: Staff designer" in user["content"]
    assert "Offering: Mentors" in user["content"]


@pytest.mark.asyncio
async def test_openai_reason_generator_maps_provider_errors():
    client = MagicMock()
    client.chat.completions.create = AsyncMock(side_effect=OpenAIError("down"))
    with pytest.raises(ReasonUnavailable):
        await OpenAIReasonGenerator(client).generate(_requester(), _candidate("b"))
