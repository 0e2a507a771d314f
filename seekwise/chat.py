"""Chat orchestrator: model selection, search-group tools and the streamed agent loop.

The chat agent is a pydantic-ai `Agent` whose tool subset and system prompt
come from the request's search group. `run_chat` drives the agent with
`Agent.iter` and forwards text deltas, tool calls and tool results to the
request's progress channel as SSE events, so research progress annotations
and model output share one ordered stream.
"""

import asyncio
from dataclasses import dataclass
from functools import lru_cache
from typing import Any, Literal

import httpx
from pydantic_ai import Agent, RunContext
from pydantic_ai.messages import (
    FunctionToolCallEvent,
    FunctionToolResultEvent,
    ModelMessage,
    ModelRequest,
    ModelResponse,
    PartDeltaEvent,
    PartStartEvent,
    RetryPromptPart,
    SystemPromptPart,
    TextPart,
    TextPartDelta,
    UserPromptPart,
)
from pydantic_ai.usage import UsageLimits
from pydantic_core import to_jsonable_python

from seekwise.config import SearchGroup, get_group_config, get_settings, resolve_model
from seekwise.events import QueryCompletionEvent, TextDeltaEvent, ToolCallEvent, ToolResultEvent
from seekwise.exceptions import ResearchPipelineError, safe_error_message
from seekwise.logging import get_logger
from seekwise.models import ChatMessage
from seekwise.progress import ProgressChannel
from seekwise.search import (
    SearchExecutor,
    clean_academic_results,
    deduplicate_by_domain_and_url,
    validate_images,
    validate_payload,
)
from seekwise.workflow import run_research_workflow

log = get_logger("seekwise.chat")

DEFAULT_WEB_RESULTS = 10
NEWS_WINDOW_DAYS = 7
ACADEMIC_REQUEST_RESULTS = 20
ACADEMIC_SUMMARY_QUERY = "Abstract of the Paper"


@dataclass
class ChatDeps:
    """Per-request dependencies handed to every tool call."""

    searcher: SearchExecutor
    channel: ProgressChannel
    http_client: httpx.AsyncClient | None = None


def _tool_error(tool_name: str, exc: ResearchPipelineError) -> dict[str, str]:
    log.warning("chat.tool.failed", tool_name=tool_name, error_type=type(exc).__name__, detail=str(exc))
    return {"error": type(exc).__name__, "detail": safe_error_message(exc)}


def _pick(values: list[Any] | None, index: int, default: Any) -> Any:
    if values and index < len(values):
        return values[index]
    return default


# --- Tool bodies ---


async def search_web_queries(
    deps: ChatDeps,
    queries: list[str],
    *,
    max_results: list[int] | None = None,
    topics: list[str] | None = None,
    search_depth: list[str] | None = None,
    exclude_domains: list[str] | None = None,
) -> dict[str, Any]:
    """Run every query concurrently and report each one as it completes.

    Raises:
        SearchError: When any of the queries fails; the others are cancelled.
    """

    async def run_query(index: int, query: str) -> dict[str, Any]:
        topic = _pick(topics, index, "general")
        raw = await deps.searcher.web.search(
            query,
            search_depth=_pick(search_depth, index, "basic"),
            max_results=_pick(max_results, index, DEFAULT_WEB_RESULTS),
            topic=topic,
            days=NEWS_WINDOW_DAYS if topic == "news" else None,
            exclude_domains=exclude_domains,
            include_answer=True,
            include_images=True,
            include_image_descriptions=True,
        )
        data = validate_payload("web", query, raw)
        results = [
            {
                "url": item.get("url", ""),
                "title": item.get("title", ""),
                "content": item.get("content", ""),
                **({"published_date": item.get("published_date", "")} if topic == "news" else {}),
            }
            for item in deduplicate_by_domain_and_url(data.get("results", []))
        ]
        images = await validate_images(data.get("images") or [], http_client=deps.http_client)

        await deps.channel.send(
            QueryCompletionEvent(
                data={
                    "query": query,
                    "index": index,
                    "total": len(queries),
                    "status": "completed",
                    "results_count": len(results),
                    "images_count": len(images),
                }
            )
        )
        return {"query": query, "results": results, "images": images}

    failure: BaseException | None = None
    try:
        async with asyncio.TaskGroup() as group:
            tasks = [group.create_task(run_query(index, query)) for index, query in enumerate(queries)]
    except* ResearchPipelineError as errors:
        failure = errors.exceptions[0]
    if failure is not None:
        raise failure

    return {"searches": [task.result() for task in tasks]}


async def search_academic(deps: ChatDeps, query: str) -> dict[str, Any]:
    raw = await deps.searcher.academic.search(
        query,
        num_results=ACADEMIC_REQUEST_RESULTS,
        summary_query=ACADEMIC_SUMMARY_QUERY,
    )
    data = validate_payload("academic", query, raw)
    return {"results": clean_academic_results(data.get("results", []))}


# --- Tools ---


async def web_search(
    ctx: RunContext[ChatDeps],
    queries: list[str],
    max_results: list[int] | None = None,
    topics: list[Literal["general", "news"]] | None = None,
    search_depth: list[Literal["basic", "advanced"]] | None = None,
    exclude_domains: list[str] | None = None,
) -> dict[str, Any]:
    """Search the web for information with multiple queries, max results and search depth.

    Args:
        queries: Queries to look up on the web, 3 to 6 of them.
        max_results: Maximum number of results per query, at least 8 each.
        topics: "general" or "news" per query; news only covers the last week.
        search_depth: "basic" or "advanced" per query.
        exclude_domains: Domains to leave out of the results.
    """
    try:
        return await search_web_queries(
            ctx.deps,
            queries,
            max_results=max_results,
            topics=list(topics) if topics else None,
            search_depth=list(search_depth) if search_depth else None,
            exclude_domains=exclude_domains,
        )
    except ResearchPipelineError as e:
        return _tool_error("web_search", e)


async def academic_search(ctx: RunContext[ChatDeps], query: str) -> dict[str, Any]:
    """Search academic papers related to the user's query.

    Args:
        query: The search query for academic papers.
    """
    try:
        return await search_academic(ctx.deps, query)
    except ResearchPipelineError as e:
        return _tool_error("academic_search", e)


async def reason_search(
    ctx: RunContext[ChatDeps],
    topic: str,
    depth: Literal["basic", "advanced"] = "basic",
) -> dict[str, Any]:
    """Perform a reasoned web search with multiple steps and sources.

    Args:
        topic: The main topic or question to research.
        depth: Search depth; "advanced" adds a gap-filling second pass and a final synthesis.
    """
    try:
        outcome = await run_research_workflow(
            topic,
            depth,
            searcher=ctx.deps.searcher,
            channel=ctx.deps.channel,
        )
    except ResearchPipelineError as e:
        return _tool_error("reason_search", e)
    return {
        "plan": outcome.plan.model_dump(),
        "results": [batch.model_dump() for batch in outcome.results],
        "synthesis": outcome.synthesis.model_dump() if outcome.synthesis is not None else None,
    }


CHAT_TOOLS = {
    "web_search": web_search,
    "academic_search": academic_search,
    "reason_search": reason_search,
}


# --- Agent ---


def create_chat_agent(model: Any, group: SearchGroup) -> Agent[ChatDeps, str]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model,
        instructions=group.system_prompt,
        deps_type=ChatDeps,
        tools=[CHAT_TOOLS[name] for name in group.tools],
        model_settings={"temperature": 0},
        instrument=True,
        name=f"chat_agent_{group.id}",
    )


@lru_cache(maxsize=16)
def get_chat_agent(model_key: str, group_id: str) -> Agent[ChatDeps, str]:
    """Cached getter for production.

    Raises:
        UnknownModelError: When `model_key` is not in the model registry.
        UnknownGroupError: When `group_id` is not a known search group.
    """
    group = get_group_config(group_id)
    return create_chat_agent(resolve_model(model_key), group)


def clear_chat_agent_cache() -> None:
    get_chat_agent.cache_clear()


# --- Agent loop ---


def to_model_messages(messages: list[ChatMessage]) -> list[ModelMessage]:
    """Convert prior chat turns into pydantic-ai message history."""
    history: list[ModelMessage] = []
    for message in messages:
        if message.role == "assistant":
            history.append(ModelResponse(parts=[TextPart(content=message.content)]))
        elif message.role == "system":
            history.append(ModelRequest(parts=[SystemPromptPart(content=message.content)]))
        else:
            history.append(ModelRequest(parts=[UserPromptPart(content=message.content)]))
    return history


def _is_error_result(content: Any) -> bool:
    return isinstance(content, dict) and "error" in content


async def run_chat(
    messages: list[ChatMessage],
    *,
    agent: Agent[ChatDeps, str],
    deps: ChatDeps,
    max_steps: int | None = None,
) -> str:
    """Drive the agent loop, streaming output and tool activity to `deps.channel`.

    Args:
        messages: Conversation so far; the last message is the user's prompt.
        agent: Chat agent for the request's model and search group.
        deps: Per-request tool dependencies.
        max_steps: Upper bound on model requests (defaults to CHAT_MAX_STEPS).

    Returns:
        The final assistant text.

    Raises:
        UsageLimitExceeded: When the model keeps calling tools past `max_steps`.
    """
    limit = max_steps if max_steps is not None else get_settings().chat_max_steps
    prompt = messages[-1].content
    history = to_model_messages(messages[:-1])
    log.info("chat.started", turns=len(messages), max_steps=limit)

    async with agent.iter(
        prompt,
        deps=deps,
        message_history=history or None,
        usage_limits=UsageLimits(request_limit=limit),
    ) as run:
        async for node in run:
            if Agent.is_model_request_node(node):
                async with node.stream(run.ctx) as request_stream:
                    async for event in request_stream:
                        if isinstance(event, PartStartEvent) and isinstance(event.part, TextPart):
                            if event.part.content:
                                await deps.channel.send(TextDeltaEvent(data={"delta": event.part.content}))
                        elif isinstance(event, PartDeltaEvent) and isinstance(event.delta, TextPartDelta):
                            await deps.channel.send(TextDeltaEvent(data={"delta": event.delta.content_delta}))
            elif Agent.is_call_tools_node(node):
                async with node.stream(run.ctx) as tool_stream:
                    async for event in tool_stream:
                        if isinstance(event, FunctionToolCallEvent):
                            log.info("chat.tool.called", tool_name=event.part.tool_name)
                            await deps.channel.send(
                                ToolCallEvent(
                                    data={
                                        "tool_call_id": event.part.tool_call_id,
                                        "tool_name": event.part.tool_name,
                                        "args": event.part.args_as_dict(),
                                    }
                                )
                            )
                        elif isinstance(event, FunctionToolResultEvent):
                            result = event.result
                            is_error = isinstance(result, RetryPromptPart) or _is_error_result(result.content)
                            await deps.channel.send(
                                ToolResultEvent(
                                    data={
                                        "tool_call_id": result.tool_call_id,
                                        "tool_name": result.tool_name,
                                        "result": to_jsonable_python(result.content),
                                        "is_error": is_error,
                                    }
                                )
                            )

        if run.result is None:
            raise RuntimeError("chat agent run ended without a result")
        output = run.result.output

    log.info("chat.completed", requests=run.usage().requests, output_chars=len(output))
    return output
