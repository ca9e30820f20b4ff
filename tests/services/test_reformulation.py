from __future__ import annotations

import asyncio
import json
import logging
from types import SimpleNamespace

from openai import OpenAIError

from prospector.models.search import FilterState
from prospector.services.discovery.cache import InMemorySearchCache
from prospector.services.discovery.reformulation import (
    KeywordReformulator,
    OpenAIReformulator,
)


class FakeCompletions:
    def __init__(self, content: str | None = None, error: Exception | None = None) -> None:
        self._content = content
        self._error = error
        self.calls: list[dict] = []

    async def create(self, **kwargs):
        self.calls.append(kwargs)
        if self._error is not None:
            raise self._error
        message = SimpleNamespace(content=self._content)
        return SimpleNamespace(choices=[SimpleNamespace(message=message)])


def _client(completions: FakeCompletions):
    return SimpleNamespace(chat=SimpleNamespace(completions=completions))


def test_keyword_reformulator_falls_back_to_combined_query():
    result = asyncio.run(
        KeywordReformulator().reformulate("specialty chemicals", FilterState(regions=["Europe"]))
    )

    assert result.queries == ["specialty chemicals region: Europe"]
    assert result.entities.regions == ["Europe"]
    assert result.entities.verticals == ["Chemicals"]


def test_keyword_reformulator_with_filters_only():
    result = asyncio.run(KeywordReformulator().reformulate("", FilterState(verticals=["Pharma"])))

    assert result.queries == ["industry: Pharma"]


def test_openai_reformulator_parses_queries_and_entities():
    payload = {
        "queries": ["Food ingredient makers in Asia", "Asian flavour houses", "APAC food suppliers", "extra"],
        "entities": {"verticals": ["Food Ingredients"], "regions": ["Asia"], "signals": []},
    }
    completions = FakeCompletions(json.dumps(payload))
    reformulator = OpenAIReformulator(client=_client(completions), model="test-model")

    result = asyncio.run(
        reformulator.reformulate("food ingredients companies in Asia", FilterState(signals=["hiring"]))
    )

    assert result.queries == payload["queries"][:3]
    assert result.entities.verticals == ["Food Ingredients"]
    assert result.entities.regions == ["Asia"]
    assert result.entities.signals == ["hiring"]
    assert completions.calls[0]["model"] == "test-model"
    assert "food ingredients companies in Asia" in completions.calls[0]["messages"][0]["content"]


def test_openai_reformulator_falls_back_on_provider_error(caplog):
    completions = FakeCompletions(error=OpenAIError("upstream down"))
    reformulator = OpenAIReformulator(client=_client(completions))
    caplog.set_level(logging.WARNING)

    result = asyncio.run(reformulator.reformulate("pharma startups", FilterState()))

    assert result.queries == ["pharma startups"]
    assert any(record.getMessage() == "reformulation.fallback" for record in caplog.records)


def test_openai_reformulator_falls_back_on_invalid_json():
    reformulator = OpenAIReformulator(client=_client(FakeCompletions("not json")))

    result = asyncio.run(reformulator.reformulate("logistics firms", FilterState()))

    assert result.queries == ["logistics firms"]


def test_openai_reformulations_are_cached():
    completions = FakeCompletions(json.dumps({"queries": ["Pharma CDMOs in Europe"]}))
    reformulator = OpenAIReformulator(client=_client(completions), cache=InMemorySearchCache())

    async def scenario():
        first = await reformulator.reformulate("pharma CDMOs", FilterState())
        second = await reformulator.reformulate("pharma CDMOs", FilterState())
        return first, second

    first, second = asyncio.run(scenario())

    assert first == second
    assert len(completions.calls) == 1
