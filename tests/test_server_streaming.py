"""Integration tests for the SSE endpoints."""

import asyncio
import json
import time
from typing import Any
from unittest.mock import patch

import httpx
import pytest
from fastapi import FastAPI
from pydantic_ai.models.test import TestModel

from seekwise.chat import create_chat_agent
from seekwise.config import get_group_config
from seekwise.demo import get_demo_research_outcome
from seekwise.events import ProgressEvent, ProgressEventType, ProgressStatus
from seekwise.exceptions import SearchError
from seekwise.models import ResearchOutcome
from seekwise.progress import ProgressChannel
from seekwise.server import get_app


def _make_research_outcome(topic: str = "test") -> ResearchOutcome:
    return get_demo_research_outcome().model_copy(update={"topic": topic})


def _make_progress_event(step_id: str = "research-plan") -> ProgressEvent:
    return ProgressEvent(
        id=step_id,
        type=ProgressEventType.PLAN,
        status=ProgressStatus.RUNNING,
        title="Research Plan",
        message="Creating research plan...",
    )


@pytest.fixture
def app() -> FastAPI:
    return get_app()


def _client(app: FastAPI) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.ASGITransport(app=app), base_url="http://test")


async def _collect_events(response: httpx.Response) -> list[tuple[str, dict]]:
    """Parse SSE stream into list of (event_type, data) tuples."""
    events: list[tuple[str, dict]] = []
    current_event = None
    current_data = None

    async for line in response.aiter_lines():
        if line.startswith("event:"):
            current_event = line.split(": ", 1)[1]
        elif line.startswith("data:"):
            current_data = json.loads(line.split(": ", 1)[1])
        elif line == "" and current_event and current_data is not None:
            events.append((current_event, current_data))
            current_event = None
            current_data = None

    return events


class TestResearchStreamEndpoint:
    """Tests for /research/stream endpoint."""

    @pytest.mark.asyncio
    async def test__research_stream__emits_updates_then_complete(self, app: FastAPI) -> None:
        async def workflow_with_events(topic: str, depth: str, *, channel: ProgressChannel, **kwargs: Any) -> Any:
            await channel.emit(_make_progress_event())
            await channel.emit(_make_progress_event("search-web-0"))
            return _make_research_outcome(topic)

        with patch("seekwise.server.run_research_workflow", new=workflow_with_events):
            async with _client(app) as client:
                async with client.stream("POST", "/research/stream", json={"topic": "caffeine"}) as response:
                    assert response.status_code == 200
                    assert response.headers["content-type"].startswith("text/event-stream")
                    assert response.headers["cache-control"] == "no-cache"
                    events = await _collect_events(response)

        assert [event_type for event_type, _ in events] == ["research_update", "research_update", "complete"]
        assert [data["id"] for _, data in events[:2]] == ["research-plan", "search-web-0"]
        assert events[-1][1]["topic"] == "caffeine"

    @pytest.mark.asyncio
    async def test__research_stream__pipeline_error_emits_error_event(self, app: FastAPI) -> None:
        async def failing_workflow(topic: str, depth: str, *, channel: ProgressChannel, **kwargs: Any) -> Any:
            await channel.emit(_make_progress_event())
            raise SearchError("tavily", topic, "HTTP 500")

        with patch("seekwise.server.run_research_workflow", new=failing_workflow):
            async with _client(app) as client:
                async with client.stream("POST", "/research/stream", json={"topic": "caffeine"}) as response:
                    events = await _collect_events(response)

        assert events[0][0] == "research_update"
        assert events[-1] == (
            "error",
            {"error": "A search provider failed. Please try again.", "error_type": "SearchError"},
        )
        assert all(event_type != "complete" for event_type, _ in events)

    @pytest.mark.asyncio
    async def test__research_stream__enforces_timeout(self, app: FastAPI) -> None:
        """Stream closes after MAX_DURATION even if the workflow continues."""

        async def slow_workflow(*args: Any, **kwargs: Any) -> Any:
            await asyncio.sleep(700)
            return _make_research_outcome()

        with patch("seekwise.server.run_research_workflow", new=slow_workflow):
            with patch("seekwise.server.MAX_DURATION", 1):
                async with _client(app) as client:
                    start = time.time()
                    async with client.stream("POST", "/research/stream", json={"topic": "caffeine"}) as response:
                        events = await _collect_events(response)
                    elapsed = time.time() - start

        assert elapsed < 5, "Timeout took too long"
        error_events = [data for event_type, data in events if event_type == "error"]
        assert error_events[0]["error_type"] == "TimeoutError"

    @pytest.mark.asyncio
    async def test__research_stream__sends_heartbeats(self, app: FastAPI) -> None:
        async def slow_workflow(topic: str, depth: str, *, channel: ProgressChannel, **kwargs: Any) -> Any:
            for _ in range(5):
                await asyncio.sleep(0.5)
                await channel.emit(_make_progress_event())
            return _make_research_outcome(topic)

        with patch("seekwise.server.run_research_workflow", new=slow_workflow):
            with patch("seekwise.server.HEARTBEAT_INTERVAL", 0.5):
                async with _client(app) as client:
                    heartbeat_count = 0
                    async with client.stream("POST", "/research/stream", json={"topic": "caffeine"}) as response:
                        async for line in response.aiter_lines():
                            if ": keepalive" in line:
                                heartbeat_count += 1

        assert heartbeat_count >= 2, f"Only got {heartbeat_count} heartbeats"

    @pytest.mark.asyncio
    async def test__research_stream__full_queue_drops_events_without_blocking(self, app: FastAPI) -> None:
        async def chatty_workflow(topic: str, depth: str, *, channel: ProgressChannel, **kwargs: Any) -> Any:
            for index in range(10):
                await channel.emit(_make_progress_event(f"search-web-{index}"))
            return _make_research_outcome(topic)

        with patch("seekwise.server.run_research_workflow", new=chatty_workflow):
            with patch("seekwise.server.MAX_QUEUE_SIZE", 3):
                async with _client(app) as client:
                    async with client.stream("POST", "/research/stream", json={"topic": "caffeine"}) as response:
                        events = await _collect_events(response)

        assert events[-1][0] == "complete"
        assert len([event_type for event_type, _ in events if event_type == "research_update"]) <= 10

    @pytest.mark.asyncio
    async def test__research_stream_demo__emits_canned_run(
        self, app: FastAPI, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("ENVIRONMENT", "staging")
        async with _client(app) as client:
            async with client.stream("POST", "/research/stream?demo=true", json={"topic": "green tea"}) as response:
                events = await _collect_events(response)

        assert events[0][1]["id"] == "research-plan"
        assert events[-2][1]["id"] == "research-progress"
        assert events[-1][0] == "complete"
        assert events[-1][1]["topic"] == "green tea"


class TestChatStreamEndpoint:
    """Tests for /api/chat endpoint."""

    @pytest.mark.asyncio
    async def test__chat__streams_text_then_finish(self, app: FastAPI) -> None:
        agent = create_chat_agent(TestModel(custom_output_text="Caffeine delays sleep."), get_group_config("chat"))

        with patch("seekwise.server.get_chat_agent", return_value=agent) as mock_get_agent:
            async with _client(app) as client:
                async with client.stream(
                    "POST",
                    "/api/chat",
                    json={"messages": [{"role": "user", "content": "coffee?"}], "group": "chat"},
                ) as response:
                    assert response.status_code == 200
                    events = await _collect_events(response)

        mock_get_agent.assert_called_once_with("openai:gpt-4o-mini", "chat")
        deltas = [data["delta"] for event_type, data in events if event_type == "text_delta"]
        assert "".join(deltas) == "Caffeine delays sleep."
        assert events[-1] == ("finish", {"output": "Caffeine delays sleep."})

    @pytest.mark.asyncio
    async def test__chat__interleaves_research_updates_with_tool_events(self, app: FastAPI) -> None:
        agent = create_chat_agent(
            TestModel(call_tools=["reason_search"], custom_output_text="Done."),
            get_group_config("extreme"),
        )

        async def research(topic: str, depth: str, *, channel: ProgressChannel, **kwargs: Any) -> Any:
            await channel.emit(_make_progress_event())
            return _make_research_outcome(topic)

        with (
            patch("seekwise.server.get_chat_agent", return_value=agent),
            patch("seekwise.chat.run_research_workflow", new=research),
        ):
            async with _client(app) as client:
                async with client.stream(
                    "POST",
                    "/api/chat",
                    json={"messages": [{"role": "user", "content": "research caffeine"}], "group": "extreme"},
                ) as response:
                    events = await _collect_events(response)

        event_types = [event_type for event_type, _ in events]
        assert event_types.index("tool_call") < event_types.index("research_update") < event_types.index(
            "tool_result"
        )
        assert event_types[-1] == "finish"

    @pytest.mark.asyncio
    async def test__chat__agent_failure_emits_error_event(self, app: FastAPI) -> None:
        agent = create_chat_agent(
            TestModel(call_tools=["academic_search"], custom_output_text="never"),
            get_group_config("academic"),
        )

        with (
            patch("seekwise.server.get_chat_agent", return_value=agent),
            patch("seekwise.server.run_chat", side_effect=RuntimeError("model exploded")),
        ):
            async with _client(app) as client:
                async with client.stream(
                    "POST",
                    "/api/chat",
                    json={"messages": [{"role": "user", "content": "papers"}], "group": "academic"},
                ) as response:
                    events = await _collect_events(response)

        assert events == [
            ("error", {"error": "An error occurred processing your request.", "error_type": "RuntimeError"})
        ]
