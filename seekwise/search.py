"""Web and academic search providers and result normalization.

Tavily (web) and Exa (academic) are called over their REST APIs with httpx.
Both providers return the raw JSON payload; `SearchExecutor` turns those
payloads into `SearchResultRecord`s for the research engine, while the chat
tools post-process the raw payloads themselves.

Provider failures of any kind surface as `SearchError`. Nothing is retried.
"""

import asyncio
import re
from typing import Any, Protocol, TypeVar

import httpx

from seekwise.config import get_settings
from seekwise.exceptions import SearchError
from seekwise.logging import get_logger
from seekwise.models import SearchResultRecord

log = get_logger("seekwise.search")

TAVILY_API_BASE_URL = "https://api.tavily.com"
EXA_API_BASE_URL = "https://api.exa.ai"
IMAGE_CHECK_TIMEOUT = 5.0
ACADEMIC_CATEGORY = "research paper"


class WebSearchProvider(Protocol):
    async def search(
        self,
        query: str,
        *,
        search_depth: str = "basic",
        max_results: int = 10,
        topic: str = "general",
        days: int | None = None,
        exclude_domains: list[str] | None = None,
        include_answer: bool = True,
        include_images: bool = False,
        include_image_descriptions: bool = False,
    ) -> dict[str, Any]: ...


class AcademicSearchProvider(Protocol):
    async def search(
        self,
        query: str,
        *,
        num_results: int = 10,
        summary_query: str | None = None,
    ) -> dict[str, Any]: ...


async def _post_json(
    provider: str,
    query: str,
    url: str,
    payload: dict[str, Any],
    *,
    headers: dict[str, str] | None,
    timeout: float,
    http_client: httpx.AsyncClient | None,
) -> dict[str, Any]:
    try:
        if http_client is not None:
            response = await http_client.post(url, json=payload, headers=headers, timeout=timeout)
        else:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(url, json=payload, headers=headers)
        response.raise_for_status()
        data = response.json()
    except httpx.HTTPStatusError as e:
        log.error("search.provider_error", provider=provider, query=query, status_code=e.response.status_code)
        raise SearchError(provider, query, f"HTTP {e.response.status_code}") from e
    except httpx.HTTPError as e:
        log.error("search.transport_error", provider=provider, query=query, error=str(e))
        raise SearchError(provider, query, str(e) or type(e).__name__) from e
    except ValueError as e:
        log.error("search.invalid_payload", provider=provider, query=query, error=str(e))
        raise SearchError(provider, query, "response was not valid JSON") from e

    return validate_payload(provider, query, data)


def validate_payload(provider: str, query: str, data: Any) -> dict[str, Any]:
    """Check the shape of a raw provider payload before anything reads it.

    Raises:
        SearchError: When the payload is not an object, `results` is not a list
            of objects, or `images` holds entries that are neither objects nor URLs.
    """
    if not isinstance(data, dict) or not isinstance(data.get("results", []), list):
        log.error("search.invalid_payload", provider=provider, query=query, error="missing results list")
        raise SearchError(provider, query, "response has no results list")
    if not all(isinstance(item, dict) for item in data.get("results", [])):
        log.error("search.invalid_payload", provider=provider, query=query, error="non-object result entry")
        raise SearchError(provider, query, "result entry is not an object")
    images = data.get("images") or []
    if not isinstance(images, list) or not all(isinstance(image, (dict, str)) for image in images):
        log.error("search.invalid_payload", provider=provider, query=query, error="malformed images")
        raise SearchError(provider, query, "image entry is neither an object nor a URL")
    return data


class TavilyClient:
    """Tavily Search API client."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = TAVILY_API_BASE_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    async def search(
        self,
        query: str,
        *,
        search_depth: str = "basic",
        max_results: int = 10,
        topic: str = "general",
        days: int | None = None,
        exclude_domains: list[str] | None = None,
        include_answer: bool = True,
        include_images: bool = False,
        include_image_descriptions: bool = False,
    ) -> dict[str, Any]:
        if not self._api_key:
            raise SearchError("tavily", query, "TAVILY_API_KEY is not configured")

        payload: dict[str, Any] = {
            "api_key": self._api_key,
            "query": query,
            "search_depth": search_depth,
            "max_results": max_results,
            "topic": topic,
            "include_answer": include_answer,
            "include_images": include_images,
            "include_image_descriptions": include_image_descriptions,
        }
        if days is not None:
            payload["days"] = days
        if exclude_domains:
            payload["exclude_domains"] = exclude_domains

        return await _post_json(
            "tavily",
            query,
            f"{self._base_url}/search",
            payload,
            headers=None,
            timeout=self._timeout,
            http_client=self._http_client,
        )


class ExaClient:
    """Exa search API client restricted to research papers."""

    def __init__(
        self,
        api_key: str,
        *,
        base_url: str = EXA_API_BASE_URL,
        timeout: float = 30.0,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self._api_key = api_key
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout
        self._http_client = http_client

    async def search(
        self,
        query: str,
        *,
        num_results: int = 10,
        summary_query: str | None = None,
    ) -> dict[str, Any]:
        if not self._api_key:
            raise SearchError("exa", query, "EXA_API_KEY is not configured")

        summary: bool | dict[str, str] = {"query": summary_query} if summary_query else True
        payload = {
            "query": query,
            "type": "auto",
            "numResults": num_results,
            "category": ACADEMIC_CATEGORY,
            "contents": {"summary": summary},
        }
        return await _post_json(
            "exa",
            query,
            f"{self._base_url}/search",
            payload,
            headers={"x-api-key": self._api_key},
            timeout=self._timeout,
            http_client=self._http_client,
        )


def _text(value: Any) -> str:
    return value if isinstance(value, str) else ""


class SearchExecutor:
    """Single search calls normalized to `SearchResultRecord`."""

    def __init__(self, web: WebSearchProvider, academic: AcademicSearchProvider) -> None:
        self.web = web
        self.academic = academic

    async def execute_web_search(self, query: str, depth: str, max_results: int) -> list[SearchResultRecord]:
        data = validate_payload(
            "web", query, await self.web.search(query, search_depth=depth, max_results=max_results, include_answer=True)
        )
        records = [
            SearchResultRecord(
                source="web",
                title=_text(item.get("title")),
                url=_text(item.get("url")),
                content=_text(item.get("content")),
            )
            for item in data.get("results", [])
        ]
        log.debug("search.web.completed", query=query, results=len(records))
        return records

    async def execute_academic_search(self, query: str, max_results: int) -> list[SearchResultRecord]:
        data = validate_payload("academic", query, await self.academic.search(query, num_results=max_results))
        records = [
            SearchResultRecord(
                source="academic",
                title=_text(item.get("title")),
                url=_text(item.get("url")),
                content=_text(item.get("summary")),
            )
            for item in data.get("results", [])
        ]
        log.debug("search.academic.completed", query=query, results=len(records))
        return records


def get_search_executor() -> SearchExecutor:
    """Executor backed by the configured Tavily and Exa keys."""
    settings = get_settings()
    return SearchExecutor(
        web=TavilyClient(settings.tavily_api_key, timeout=settings.search_timeout_seconds),
        academic=ExaClient(settings.exa_api_key, timeout=settings.search_timeout_seconds),
    )


# --- Result post-processing for the chat tools ---

_DOMAIN_PATTERN = re.compile(r"^https?://([^/?#]+)(?:[/?#]|$)", re.IGNORECASE)
_TITLE_SUFFIX_PATTERN = re.compile(r"\s\[.*?\]$")
_SUMMARY_PREFIX_PATTERN = re.compile(r"^Summary:\s*", re.IGNORECASE)

T = TypeVar("T", bound=dict[str, Any])


def extract_domain(url: str) -> str:
    match = _DOMAIN_PATTERN.match(url)
    return match.group(1) if match else url


def deduplicate_by_domain_and_url(items: list[T]) -> list[T]:
    """Keep the first item per URL and per domain."""
    seen_domains: set[str] = set()
    seen_urls: set[str] = set()
    unique: list[T] = []
    for item in items:
        url = _text(item.get("url"))
        domain = extract_domain(url)
        if url in seen_urls or domain in seen_domains:
            continue
        seen_urls.add(url)
        seen_domains.add(domain)
        unique.append(item)
    return unique


def sanitize_url(url: str) -> str:
    return re.sub(r"\s+", "%20", url)


async def is_valid_image_url(url: str, *, http_client: httpx.AsyncClient | None = None) -> bool:
    """HEAD the URL and accept it only if it answers with an image content type."""
    try:
        if http_client is not None:
            response = await http_client.head(url, timeout=IMAGE_CHECK_TIMEOUT)
        else:
            async with httpx.AsyncClient(timeout=IMAGE_CHECK_TIMEOUT) as client:
                response = await client.head(url)
    except httpx.HTTPError:
        return False
    return response.is_success and response.headers.get("content-type", "").startswith("image/")


async def validate_images(
    images: list[dict[str, Any] | str],
    *,
    http_client: httpx.AsyncClient | None = None,
) -> list[dict[str, str]]:
    """Sanitize, deduplicate and HEAD-check image results; drop ones without a description."""
    normalized = [image if isinstance(image, dict) else {"url": image} for image in images]
    candidates = [
        {"url": sanitize_url(_text(image.get("url"))), "description": _text(image.get("description"))}
        for image in deduplicate_by_domain_and_url(normalized)
    ]
    checks = await asyncio.gather(
        *(is_valid_image_url(candidate["url"], http_client=http_client) for candidate in candidates)
    )
    return [candidate for candidate, ok in zip(candidates, checks) if ok and candidate["description"]]


def clean_academic_results(results: list[dict[str, Any]], limit: int = 10) -> list[dict[str, Any]]:
    """Drop duplicates and summary-less papers, tidy titles and summaries, keep the first `limit`."""
    cleaned: list[dict[str, Any]] = []
    seen_urls: set[str] = set()
    for paper in results:
        url = _text(paper.get("url"))
        summary = _text(paper.get("summary"))
        if url in seen_urls or not summary:
            continue
        seen_urls.add(url)
        cleaned.append(
            {
                **paper,
                "title": _TITLE_SUFFIX_PATTERN.sub("", _text(paper.get("title"))),
                "summary": _SUMMARY_PREFIX_PATTERN.sub("", summary),
            }
        )
    return cleaned[:limit]
