"""Unit tests for demo mode fixtures."""

import json

import pytest

from seekwise.config import Settings
from seekwise.demo import DEMO_TOPIC, generate_demo_sse_stream, get_demo_research_outcome, is_demo_mode_allowed
from seekwise.models import ResearchOutcome
from seekwise.research.steps import build_steps


def _parse(formatted: str) -> tuple[str, dict]:
    event_line, data_line, *_ = formatted.split("\n")
    return event_line.removeprefix("event: "), json.loads(data_line.removeprefix("data: "))


class TestGetDemoResearchOutcome:
    """Tests for get_demo_research_outcome function."""

    def test__get_demo_research_outcome__returns_consistent_basic_run(self) -> None:
        outcome = get_demo_research_outcome()

        assert isinstance(outcome, ResearchOutcome)
        assert outcome.topic == DEMO_TOPIC
        assert outcome.depth == "basic"
        assert outcome.synthesis is None
        assert len(outcome.results) == len(build_steps(outcome.plan).search_steps)
        assert set(outcome.analyses) == {"analysis-0", "analysis-1"}
        assert outcome.completed_steps == outcome.total_steps == len(build_steps(outcome.plan)) + 1

    def test__get_demo_research_outcome__caches_result(self) -> None:
        """Verify LRU cache returns same object instance."""
        assert get_demo_research_outcome() is get_demo_research_outcome()

    def test__get_demo_research_outcome__model_copy_overrides_topic(self) -> None:
        cached = get_demo_research_outcome()
        custom = cached.model_copy(update={"topic": "green tea"})

        assert custom.topic == "green tea"
        assert custom.plan == cached.plan
        assert custom.results == cached.results
        assert cached.topic == DEMO_TOPIC


class TestIsDemoModeAllowed:
    """Tests for is_demo_mode_allowed function."""

    @pytest.mark.parametrize(("environment", "allowed"), [("development", True), ("staging", True), ("production", False)])
    def test__is_demo_mode_allowed__by_environment(
        self, monkeypatch: pytest.MonkeyPatch, environment: str, allowed: bool
    ) -> None:
        monkeypatch.setenv("ENVIRONMENT", environment)
        assert is_demo_mode_allowed() is allowed

    def test__is_demo_mode_allowed__defaults_to_development(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("ENVIRONMENT", raising=False)
        assert is_demo_mode_allowed() is True

    def test__is_demo_mode_allowed__reads_environment_from_settings(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("ENVIRONMENT", "development")
        monkeypatch.setattr("seekwise.demo.get_settings", lambda: Settings(environment="production"))
        assert is_demo_mode_allowed() is False


class TestGenerateDemoSSEStream:
    """Tests for generate_demo_sse_stream function."""

    @pytest.mark.asyncio
    async def test__generate_demo_sse_stream__events_in_order(self) -> None:
        events = [_parse(event) async for event in generate_demo_sse_stream("test")]

        ids = [data.get("id") for event_type, data in events if event_type == "research_update"]
        assert ids[:2] == ["research-plan", "research-plan"]
        assert ids.index("search-web-0") < ids.index("analysis-0") < ids.index("gap-analysis")
        assert ids[-1] == "research-progress"
        assert events[-1][0] == "complete"

    @pytest.mark.asyncio
    async def test__generate_demo_sse_stream__completed_steps_never_decrease(self) -> None:
        events = [_parse(event) async for event in generate_demo_sse_stream("test")]

        completed = [data["completed_steps"] for _, data in events[:-1] if "completed_steps" in data]
        assert completed == sorted(completed)
        assert events[-2][1]["is_complete"] is True

    @pytest.mark.asyncio
    async def test__generate_demo_sse_stream__preserves_custom_topic(self) -> None:
        events = [_parse(event) async for event in generate_demo_sse_stream("green tea")]

        assert events[-1][1]["topic"] == "green tea"

    @pytest.mark.asyncio
    async def test__generate_demo_sse_stream__running_precedes_completed_for_every_id(self) -> None:
        events = [_parse(event) async for event in generate_demo_sse_stream("test")]
        updates = [data for event_type, data in events if event_type == "research_update"]

        seen_running: set[str] = set()
        for update in updates:
            if update["status"] == "running":
                seen_running.add(update["id"])
            elif update["id"] != "research-progress":
                assert update["id"] in seen_running
                assert update["overwrite"] is True
        assert {"search-web-0", "search-academic-0", "search-web-1", "analysis-0", "gap-analysis"} <= seen_running

    @pytest.mark.asyncio
    async def test__generate_demo_sse_stream__uses_engine_titles(self) -> None:
        events = [_parse(event) async for event in generate_demo_sse_stream("test")]
        titles = {(data["id"], data["status"]): data["title"] for _, data in events[:-1]}

        query = get_demo_research_outcome().plan.search_queries[0].query
        assert titles[("search-web-0", "running")] == f'Searching the web for "{query}"'
        assert titles[("search-web-0", "completed")] == f'Searched the web for "{query}"'
        assert titles[("search-academic-0", "completed")] == f'Searched academic papers for "{query}"'
