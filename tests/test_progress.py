"""Tests for progress counters and the progress channel."""

from unittest.mock import AsyncMock

import pytest

from seekwise.events import ProgressEvent, ProgressEventType, ProgressStatus, SSEEvent, TextDeltaEvent
from seekwise.progress import ProgressChannel, ProgressCounters


def _make_event(step_id: str = "search-web-0") -> ProgressEvent:
    return ProgressEvent(id=step_id, type=ProgressEventType.WEB, status=ProgressStatus.RUNNING)


class TestProgressCounters:
    def test__complete_step__increments(self) -> None:
        counters = ProgressCounters(total_steps=3)
        assert counters.complete_step() == 1
        assert counters.complete_step() == 2
        assert counters.snapshot() == {"completed_steps": 2, "total_steps": 3}

    def test__add_steps__only_grows(self) -> None:
        counters = ProgressCounters()
        assert counters.add_steps(4) == 4
        assert counters.add_steps(0) == 4
        with pytest.raises(ValueError):
            counters.add_steps(-1)

    def test__next_search_index__returns_then_increments(self) -> None:
        counters = ProgressCounters(search_index=3)
        assert [counters.next_search_index() for _ in range(3)] == [3, 4, 5]
        assert counters.search_index == 6


class TestProgressChannel:
    @pytest.mark.asyncio
    async def test__emit__delivers_in_order(self) -> None:
        received: list[SSEEvent] = []

        async def sink(event: SSEEvent) -> None:
            received.append(event)

        channel = ProgressChannel(sink)
        for step_id in ["research-plan", "search-web-0", "analysis-0"]:
            await channel.emit(_make_event(step_id))
        await channel.send(TextDeltaEvent(data={"delta": "hi"}))

        assert [event.data.get("id") for event in received[:3]] == ["research-plan", "search-web-0", "analysis-0"]
        assert received[3].data == {"delta": "hi"}

    @pytest.mark.asyncio
    async def test__emit__swallows_sink_failures(self) -> None:
        sink = AsyncMock(side_effect=ConnectionResetError("client went away"))
        channel = ProgressChannel(sink)

        await channel.emit(_make_event())
        await channel.emit(_make_event())

        assert channel.failures == 2
        assert sink.await_count == 2

    @pytest.mark.asyncio
    async def test__emit__without_sink_is_noop(self) -> None:
        channel = ProgressChannel()
        await channel.emit(_make_event())
        assert channel.failures == 0
