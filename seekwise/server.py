"""FastAPI application for the seekwise chat and research service."""

import asyncio
from collections.abc import Awaitable, Callable
from typing import AsyncIterator

import httpx
from fastapi import FastAPI, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse, StreamingResponse
from pydantic import BaseModel, Field, ValidationError

from seekwise import __version__
from seekwise.chat import ChatDeps, get_chat_agent, run_chat
from seekwise.config import get_settings
from seekwise.demo import generate_demo_sse_stream, get_demo_research_outcome, is_demo_mode_allowed
from seekwise.events import CompleteEvent, ErrorEvent, FinishEvent, SSEEvent
from seekwise.exceptions import ChatConfigurationError, ResearchPipelineError, safe_error_message
from seekwise.logging import bind_context_vars, clear_context_fields, configure_structlog, get_logger, new_correlation_id
from seekwise.models import ChatRequest, ResearchDepth, ResearchOutcome
from seekwise.progress import EventSink, ProgressChannel
from seekwise.search import get_search_executor
from seekwise.workflow import run_research_workflow

log = get_logger("seekwise.server")

# SSE Configuration
HEARTBEAT_INTERVAL = 30  # seconds
MAX_DURATION = get_settings().request_timeout_seconds
MAX_QUEUE_SIZE = 1000  # Bounded queue; events beyond it are dropped

SSE_HEADERS = {
    "Cache-Control": "no-cache",
    "X-Accel-Buffering": "no",  # Disable proxy buffering
    "Connection": "keep-alive",
}


# --- Request/Response schemas ---


class ResearchRequest(BaseModel):
    """Incoming research request."""

    topic: str = Field(
        min_length=1,
        max_length=1000,
        description="Research topic to investigate (1-1000 characters)",
        examples=["impact of caffeine on sleep"],
    )
    depth: ResearchDepth = Field(
        default="basic",
        description="basic runs a single pass; advanced adds a gap-filling second pass and synthesis",
        examples=["advanced"],
    )


class ErrorResponse(BaseModel):
    """Structured error response."""

    error: str = Field(
        description=(
            "Error type (PlanningError, SearchError, AnalysisError, GapAnalysisError, SynthesisError, "
            "UnknownModelError, UnknownGroupError, ValidationError, InternalServerError)"
        ),
        examples=["SearchError"],
    )
    detail: str = Field(
        description="User-friendly error message explaining what went wrong",
        examples=["A search provider failed. Please try again."],
    )


class HealthResponse(BaseModel):
    """Health check response."""

    status: str = Field(
        description="Service health status",
        examples=["ok"],
    )
    version: str = Field(
        default="",
        description="Service version (only included in /health endpoint)",
        examples=["0.1.0"],
    )


# --- Exception handlers ---


async def _handle_pipeline_error(request: Request, exc: ResearchPipelineError) -> JSONResponse:
    error_type = type(exc).__name__
    log.warning("request.pipeline_error", error_type=error_type, detail=str(exc))
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error=error_type, detail=safe_error_message(exc)).model_dump(),
    )


async def _handle_configuration_error(request: Request, exc: ChatConfigurationError) -> JSONResponse:
    error_type = type(exc).__name__
    log.warning("request.configuration_error", error_type=error_type, detail=str(exc))
    return JSONResponse(
        status_code=400,
        content=ErrorResponse(error=error_type, detail=safe_error_message(exc)).model_dump(),
    )


async def _handle_validation_error(request: Request, exc: ValidationError) -> JSONResponse:
    log.warning("request.validation_error", detail=str(exc))
    return JSONResponse(
        status_code=422,
        content=ErrorResponse(error="ValidationError", detail=str(exc)).model_dump(),
    )


async def _handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
    log.exception("request.unexpected_error", error=str(exc))
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(error="InternalServerError", detail="An unexpected error occurred.").model_dump(),
    )


def _bind_request_context(endpoint: str) -> None:
    clear_context_fields()
    bind_context_vars(correlation_id=new_correlation_id(), endpoint=endpoint)


# --- Streaming ---


async def _stream_events(
    request: Request,
    run: Callable[[ProgressChannel], Awaitable[SSEEvent]],
) -> AsyncIterator[str]:
    """Run `run` in the background and stream the events it emits.

    `run` receives a progress channel feeding the stream and returns the
    terminal event. Failures become an `error` event. Heartbeats, the request
    budget and client disconnects are handled here.
    """
    event_queue: asyncio.Queue[SSEEvent] = asyncio.Queue(maxsize=MAX_QUEUE_SIZE)
    task_complete = asyncio.Event()

    async def enqueue(event: SSEEvent) -> None:
        """Never blocks the producer: drop the event when the queue is full."""
        try:
            event_queue.put_nowait(event)
        except asyncio.QueueFull:
            log.warning("stream.event_dropped", event=event.event.value)

    sink: EventSink = enqueue

    async def run_task() -> None:
        """Background task producing the stream's events."""
        try:
            terminal = await run(ProgressChannel(sink))
            await event_queue.put(terminal)
        except Exception as e:
            log.error("stream.task_failed", error=str(e), error_type=type(e).__name__, exc_info=True)
            await event_queue.put(
                ErrorEvent(
                    data={
                        "error": safe_error_message(e),
                        "error_type": type(e).__name__,
                    }
                )
            )
        finally:
            task_complete.set()

    # Start work in background
    task = asyncio.create_task(run_task())

    # Stream events with heartbeat management
    loop = asyncio.get_running_loop()
    start_time = loop.time()
    next_heartbeat = start_time + HEARTBEAT_INTERVAL

    try:
        while not task_complete.is_set():
            current_time = loop.time()
            elapsed = current_time - start_time

            # Enforce maximum duration
            if elapsed > MAX_DURATION:
                log.warning("stream.timeout", elapsed=elapsed, max=MAX_DURATION)
                task.cancel()
                yield ErrorEvent(
                    data={
                        "error": f"Request exceeded the {MAX_DURATION:g} second time budget",
                        "error_type": "TimeoutError",
                    }
                ).format()
                break

            # Check for client disconnect every iteration
            if await request.is_disconnected():
                log.info("stream.client_disconnected", elapsed=elapsed)
                task.cancel()
                break

            # Send heartbeat if needed (no drift accumulation)
            if current_time >= next_heartbeat:
                yield ": keepalive\n\n"  # SSE comment format
                next_heartbeat += HEARTBEAT_INTERVAL

            # Short wait keeps disconnect detection responsive
            try:
                event = await asyncio.wait_for(event_queue.get(), timeout=0.1)
                yield event.format()
            except asyncio.TimeoutError:
                continue

        # Drain remaining events in queue
        while not event_queue.empty():
            event = event_queue.get_nowait()
            yield event.format()

    finally:
        # Always cancel; idempotent if the task is already done
        task.cancel()
        try:
            await asyncio.wait_for(task, timeout=10.0)
        except asyncio.CancelledError:
            log.info("stream.task_cancelled")
        except asyncio.TimeoutError:
            log.error("stream.task_cancellation_timeout")
        except Exception as e:
            log.exception("stream.task_failed_during_cleanup", error=str(e))


def _demo_guard(topic: str, endpoint: str) -> None:
    if not is_demo_mode_allowed():
        raise HTTPException(
            status_code=403,
            detail="Demo mode not available in this environment",
        )
    log.warning("demo_mode_active", topic=topic, endpoint=endpoint)


# --- App factory ---


def get_app() -> FastAPI:
    """Create and configure the FastAPI application."""
    configure_structlog()

    application = FastAPI(
        title="Seekwise Research Service",
        description="""
Chat backend with tool-augmented language models and multi-step research.

## Overview

`POST /api/chat` streams a tool-augmented chat turn. Depending on the search
group, the model can call `web_search`, `academic_search` or `reason_search`.

`reason_search` runs a planned research workflow:

1. **Planning** - Structured research plan with up to 12 queries and 8 analyses
2. **Searching** - Web (Tavily) and academic (Exa) searches in plan order
3. **Analysis** - One structured analysis per planned analysis
4. **Gap analysis** - Limitations and knowledge gaps; advanced depth fills gaps with follow-up searches
5. **Synthesis** - Key findings and remaining uncertainties after a follow-up pass

Progress is reported live as `research_update` events.
        """,
        version=__version__,
        license_info={
            "name": "Apache 2.0",
            "url": "https://www.apache.org/licenses/LICENSE-2.0",
        },
    )

    application.add_exception_handler(ResearchPipelineError, _handle_pipeline_error)  # type: ignore[arg-type]
    application.add_exception_handler(ChatConfigurationError, _handle_configuration_error)  # type: ignore[arg-type]
    application.add_exception_handler(ValidationError, _handle_validation_error)  # type: ignore[arg-type]
    application.add_exception_handler(Exception, _handle_unexpected_error)

    @application.post(
        "/api/chat",
        response_class=StreamingResponse,
        responses={
            200: {
                "description": "Server-Sent Events stream of model output, tool activity and research progress",
                "content": {"text/event-stream": {"example": 'event: text_delta\ndata: {"delta": "..."}\n\n'}},
            },
            400: {"description": "Unknown model or search group", "model": ErrorResponse},
        },
        summary="Stream a tool-augmented chat turn",
        description="""
Runs the chat agent for the request's model and search group and streams its activity via SSE.

**Event Types:**
- `text_delta`: Incremental assistant text
- `tool_call`: The model invoked a tool (id, name, arguments)
- `tool_result`: A tool returned; `is_error` is true when the tool failed
- `research_update`: Research progress annotation; replace earlier events with the same `id` when `overwrite` is true
- `query_completion`: One `web_search` query finished
- `heartbeat`: Keep-alive comment every 30s (`: keepalive`)
- `finish`: Final assistant text
- `error`: The turn failed or exceeded the request time budget
        """,
        tags=["Chat"],
    )
    async def chat(request: Request, body: ChatRequest) -> StreamingResponse:
        _bind_request_context("/api/chat")
        agent = get_chat_agent(body.model, body.group)
        log.info("chat.request", model=body.model, group=body.group, turns=len(body.messages))

        async def run(channel: ProgressChannel) -> SSEEvent:
            async with httpx.AsyncClient() as http_client:
                deps = ChatDeps(searcher=get_search_executor(), channel=channel, http_client=http_client)
                output = await run_chat(body.messages, agent=agent, deps=deps)
            return FinishEvent(data={"output": output})

        return StreamingResponse(_stream_events(request, run), media_type="text/event-stream", headers=SSE_HEADERS)

    @application.post(
        "/research",
        response_model=ResearchOutcome,
        status_code=status.HTTP_200_OK,
        summary="Execute Research Workflow",
        description="""
Runs one reason_search research workflow and returns the complete outcome.

## Response Structure

- Research plan with search queries and analyses
- Every executed search batch, including gap-filling searches
- Analysis results keyed by step id
- Gap analysis with limitations and knowledge gaps
- Final synthesis (advanced depth with knowledge gaps only)
- Step counters and timing metrics for each phase
        """,
        tags=["Research"],
        response_description="Complete research outcome",
        responses={
            200: {"description": "Research completed successfully", "model": ResearchOutcome},
            422: {
                "description": "Research pipeline error (planning, search, analysis, gap analysis or synthesis failed)",
                "model": ErrorResponse,
                "content": {
                    "application/json": {
                        "examples": {
                            "planning_error": {
                                "summary": "Planning Error",
                                "value": {
                                    "error": "PlanningError",
                                    "detail": "Unable to create research plan. Please try a different topic.",
                                },
                            },
                            "search_error": {
                                "summary": "Search Error",
                                "value": {
                                    "error": "SearchError",
                                    "detail": "A search provider failed. Please try again.",
                                },
                            },
                        }
                    }
                },
            },
            500: {
                "description": "Internal server error",
                "model": ErrorResponse,
                "content": {
                    "application/json": {
                        "example": {
                            "error": "InternalServerError",
                            "detail": "An unexpected error occurred.",
                        }
                    }
                },
            },
        },
    )
    async def research(
        body: ResearchRequest,
        demo: bool = Query(default=False, description="Enable demo mode with hardcoded response for frontend testing"),
    ) -> ResearchOutcome:
        _bind_request_context("/research")
        if demo:
            _demo_guard(body.topic, "/research")
            return get_demo_research_outcome().model_copy(update={"topic": body.topic})

        return await run_research_workflow(body.topic, body.depth)

    @application.post(
        "/research/stream",
        response_class=StreamingResponse,
        responses={
            200: {
                "description": "Server-Sent Events stream of research progress",
                "content": {"text/event-stream": {"example": "event: research_update\ndata: {...}\n\n"}},
            },
            422: {"model": ErrorResponse},
        },
        summary="Execute research with streaming progress updates",
        description="""
Runs one reason_search research workflow with real-time progress updates via SSE.

**Event Types:**
- `research_update`: Progress annotation (plan, web, academic, analysis, progress)
- `heartbeat`: Keep-alive comment every 30s (`: keepalive`)
- `complete`: Final result with full ResearchOutcome
- `error`: The workflow failed or exceeded the request time budget
        """,
        tags=["Research"],
    )
    async def research_stream(
        request: Request,
        research_request: ResearchRequest,
        demo: bool = Query(
            default=False, description="Enable demo mode with hardcoded SSE events for frontend testing"
        ),
    ) -> StreamingResponse:
        """Execute research workflow with SSE progress streaming."""
        _bind_request_context("/research/stream")
        if demo:
            _demo_guard(research_request.topic, "/research/stream")
            return StreamingResponse(
                generate_demo_sse_stream(research_request.topic),
                media_type="text/event-stream",
                headers=SSE_HEADERS,
            )

        async def run(channel: ProgressChannel) -> SSEEvent:
            outcome = await run_research_workflow(
                research_request.topic,
                research_request.depth,
                channel=channel,
            )
            return CompleteEvent(data=outcome.model_dump())

        return StreamingResponse(_stream_events(request, run), media_type="text/event-stream", headers=SSE_HEADERS)

    @application.get(
        "/health",
        response_model=HealthResponse,
        status_code=status.HTTP_200_OK,
        summary="Health Check",
        description="General health check endpoint that returns service status and version.",
        tags=["Health"],
        response_description="Service health status and version",
    )
    async def health() -> HealthResponse:
        return HealthResponse(status="ok", version=__version__)

    @application.get(
        "/health/liveness",
        response_model=HealthResponse,
        status_code=status.HTTP_200_OK,
        summary="Liveness Probe",
        description="""
Kubernetes liveness probe endpoint.

Returns 200 OK if the service is running and can accept requests.
        """,
        tags=["Health"],
        response_description="Service is alive and accepting requests",
    )
    async def liveness() -> HealthResponse:
        return HealthResponse(status="alive")

    @application.get(
        "/health/readiness",
        response_model=HealthResponse,
        status_code=status.HTTP_200_OK,
        summary="Readiness Probe",
        description="""
Kubernetes readiness probe endpoint.

Returns 200 OK if the service is ready to handle chat and research requests.
        """,
        tags=["Health"],
        response_description="Service is ready to handle requests",
    )
    async def readiness() -> HealthResponse:
        return HealthResponse(status="ready")

    return application


app = get_app()
