"""SSE event models for chat and research streaming."""

import json
import time
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field


class SSEEventType(str, Enum):
    """SSE event types written to the response stream."""

    TEXT_DELTA = "text_delta"
    TOOL_CALL = "tool_call"
    TOOL_RESULT = "tool_result"
    RESEARCH_UPDATE = "research_update"
    QUERY_COMPLETION = "query_completion"
    HEARTBEAT = "heartbeat"
    FINISH = "finish"
    COMPLETE = "complete"
    ERROR = "error"


class SSEEvent(BaseModel):
    """Base SSE event model."""

    event: SSEEventType = Field(description="Event type identifier")
    data: dict[str, Any] = Field(description="Event payload data")

    def format(self) -> str:
        """Format as SSE message: 'event: type\\ndata: json\\n\\n'."""
        return f"event: {self.event.value}\ndata: {json.dumps(self.data, default=str)}\n\n"


class TextDeltaEvent(SSEEvent):
    """Incremental model-generated text."""

    event: SSEEventType = SSEEventType.TEXT_DELTA
    data: dict[str, Any] = Field(
        description="Text fragment to append to the assistant message",
        examples=[{"delta": "Caffeine delays "}],
    )


class ToolCallEvent(SSEEvent):
    """Emitted when the model invokes a tool."""

    event: SSEEventType = SSEEventType.TOOL_CALL
    data: dict[str, Any] = Field(
        description="Tool call id, tool name and arguments",
        examples=[
            {
                "tool_call_id": "call_1",
                "tool_name": "reason_search",
                "args": {"topic": "impact of caffeine on sleep", "depth": "basic"},
            }
        ],
    )


class ToolResultEvent(SSEEvent):
    """Emitted when a tool call returns, successfully or not."""

    event: SSEEventType = SSEEventType.TOOL_RESULT
    data: dict[str, Any] = Field(
        description="Tool call id, tool name, result payload and error flag",
        examples=[{"tool_call_id": "call_1", "tool_name": "web_search", "result": {}, "is_error": False}],
    )


class ResearchUpdateEvent(SSEEvent):
    """Out-of-band research progress annotation (a flattened ProgressEvent)."""

    event: SSEEventType = SSEEventType.RESEARCH_UPDATE
    data: dict[str, Any] = Field(
        description="Progress event; receivers replace prior events sharing `id` when `overwrite` is true",
        examples=[
            {
                "id": "search-web-0",
                "type": "web",
                "status": "completed",
                "title": 'Searched the web for "caffeine half-life"',
                "message": "Found 5 results",
                "timestamp": 1735689600000,
                "overwrite": True,
                "completed_steps": 1,
                "total_steps": 6,
            }
        ],
    )


class QueryCompletionEvent(SSEEvent):
    """Emitted by the web_search tool as each parallel query finishes."""

    event: SSEEventType = SSEEventType.QUERY_COMPLETION
    data: dict[str, Any] = Field(
        description="Query progress details",
        examples=[
            {
                "query": "caffeine sleep study",
                "index": 0,
                "total": 3,
                "status": "completed",
                "results_count": 8,
                "images_count": 2,
            }
        ],
    )


class HeartbeatEvent(SSEEvent):
    """Heartbeat event to prevent proxy buffering.

    Formatted as SSE comment (': keepalive\\n\\n') instead of
    named event to avoid requiring client-side handling.
    """

    event: SSEEventType = SSEEventType.HEARTBEAT
    data: dict[str, Any] = Field(
        default_factory=dict,
        description="Empty data for heartbeat",
    )

    def format(self) -> str:
        """Format as SSE comment for compatibility."""
        return ": keepalive\n\n"


class FinishEvent(SSEEvent):
    """Emitted when the chat agent loop finishes."""

    event: SSEEventType = SSEEventType.FINISH
    data: dict[str, Any] = Field(
        description="Final assistant text",
        examples=[{"output": "Caffeine taken within six hours of bedtime reduces total sleep time."}],
    )


class CompleteEvent(SSEEvent):
    """Emitted when a streamed research run completes successfully."""

    event: SSEEventType = SSEEventType.COMPLETE
    data: dict[str, Any] = Field(description="Full ResearchOutcome serialized")


class ErrorEvent(SSEEvent):
    """Emitted when an error terminates the stream."""

    event: SSEEventType = SSEEventType.ERROR
    data: dict[str, str] = Field(
        description="User-safe error message and error type",
        examples=[{"error": "A search provider failed. Please try again.", "error_type": "SearchError"}],
    )


# --- Research progress ---


class ProgressEventType(str, Enum):
    PLAN = "plan"
    WEB = "web"
    ACADEMIC = "academic"
    ANALYSIS = "analysis"
    PROGRESS = "progress"


class ProgressStatus(str, Enum):
    RUNNING = "running"
    COMPLETED = "completed"


def _now_ms() -> int:
    return int(time.time() * 1000)


class ProgressEvent(BaseModel):
    """One research progress annotation.

    ``overwrite`` tells the receiver to replace the earlier event with the
    same ``id`` instead of appending; the core never resolves it itself.
    """

    id: str
    type: ProgressEventType
    status: ProgressStatus
    title: str = ""
    message: str = ""
    timestamp: int = Field(default_factory=_now_ms)
    overwrite: bool = False
    payload: dict[str, Any] = Field(default_factory=dict)

    def wire(self) -> dict[str, Any]:
        """Flatten the payload next to the envelope fields."""
        envelope = self.model_dump(mode="json", exclude={"payload"})
        return {**envelope, **self.payload}

    def as_sse(self) -> ResearchUpdateEvent:
        return ResearchUpdateEvent(data=self.wire())
