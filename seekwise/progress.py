"""Best-effort delivery of progress events to the caller's stream."""

from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from seekwise.events import ProgressEvent, SSEEvent
from seekwise.logging import get_logger

log = get_logger("seekwise.progress")

EventSink = Callable[[SSEEvent], Awaitable[None]]


@dataclass
class ProgressCounters:
    """Step accounting for one research run.

    Single-writer: only the sequential research flow touches these.
    """

    completed_steps: int = 0
    total_steps: int = 0
    search_index: int = 0

    def complete_step(self) -> int:
        self.completed_steps += 1
        return self.completed_steps

    def add_steps(self, count: int) -> int:
        if count < 0:
            raise ValueError("total_steps can only grow")
        self.total_steps += count
        return self.total_steps

    def next_search_index(self) -> int:
        index = self.search_index
        self.search_index += 1
        return index

    def snapshot(self) -> dict[str, int]:
        return {"completed_steps": self.completed_steps, "total_steps": self.total_steps}


class ProgressChannel:
    """Ordered, fire-and-forget event emission into an injected sink.

    A failing sink never aborts the computation that emits into it; the
    failure is logged and the event is lost.
    """

    def __init__(self, sink: EventSink | None = None) -> None:
        self._sink = sink
        self.failures = 0

    async def send(self, event: SSEEvent) -> None:
        if self._sink is None:
            return
        try:
            await self._sink(event)
        except Exception as e:
            self.failures += 1
            log.warning("progress.emit_failed", event=event.event.value, error=str(e))

    async def emit(self, event: ProgressEvent) -> None:
        await self.send(event.as_sse())
