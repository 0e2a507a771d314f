"""Environment-driven configuration, model registry and search groups."""

import os
from dataclasses import dataclass
from functools import lru_cache

from dotenv import load_dotenv

from seekwise.exceptions import UnknownGroupError, UnknownModelError

load_dotenv()


def _env_str(name: str, default: str) -> str:
    return os.environ.get(name, default).strip() or default


def _env_number(name: str, default: float) -> float:
    raw = os.environ.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as e:
        raise ValueError(f"{name} must be a number, got {raw!r}") from e


@dataclass(frozen=True)
class Settings:
    """Service settings resolved from environment variables."""

    tavily_api_key: str = ""
    exa_api_key: str = ""
    plan_model: str = "anthropic:claude-3-5-sonnet-latest"
    analysis_model: str = "openai:gpt-4o-mini"
    gap_model: str = "anthropic:claude-3-5-sonnet-latest"
    synthesis_model: str = "openai:gpt-4o-mini"
    chat_max_steps: int = 5
    request_timeout_seconds: float = 300.0
    search_timeout_seconds: float = 30.0
    environment: str = "development"

    @classmethod
    def from_env(cls) -> "Settings":
        defaults = cls()
        return cls(
            tavily_api_key=os.environ.get("TAVILY_API_KEY", ""),
            exa_api_key=os.environ.get("EXA_API_KEY", ""),
            plan_model=_env_str("RESEARCH_PLAN_MODEL", defaults.plan_model),
            analysis_model=_env_str("RESEARCH_ANALYSIS_MODEL", defaults.analysis_model),
            gap_model=_env_str("RESEARCH_GAP_MODEL", defaults.gap_model),
            synthesis_model=_env_str("RESEARCH_SYNTHESIS_MODEL", defaults.synthesis_model),
            chat_max_steps=int(_env_number("CHAT_MAX_STEPS", defaults.chat_max_steps)),
            request_timeout_seconds=_env_number("REQUEST_TIMEOUT_SECONDS", defaults.request_timeout_seconds),
            search_timeout_seconds=_env_number("SEARCH_TIMEOUT_SECONDS", defaults.search_timeout_seconds),
            environment=_env_str("ENVIRONMENT", defaults.environment),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Cached settings for production."""
    return Settings.from_env()


# --- Model registry ---

# Public `{provider}:{modelName}` keys mapped to pydantic-ai model identifiers
LANGUAGE_MODELS: dict[str, str] = {
    "openai:gpt-4o-mini": "openai:gpt-4o-mini",
    "anthropic:claude-3-7-sonnet-latest": "anthropic:claude-3-7-sonnet-latest",
    "groq:deepseek-r1-distill-llama-70b": "groq:deepseek-r1-distill-llama-70b",
}

DEFAULT_CHAT_MODEL = "openai:gpt-4o-mini"


def resolve_model(key: str) -> str:
    """Map a public model key to the pydantic-ai model identifier."""
    try:
        return LANGUAGE_MODELS[key.strip()]
    except KeyError:
        raise UnknownModelError(key) from None


# --- Search groups ---


@dataclass(frozen=True)
class SearchGroup:
    """Tool subset and system prompt selected by the `group` field of a chat request."""

    id: str
    tools: tuple[str, ...]
    system_prompt: str


_WEB_PROMPT = """You are a web research assistant. Use the web_search tool for
quick factual lookups and reason_search for questions that need several
sources and careful analysis. Cite the URLs you rely on. Never invent sources."""

_ACADEMIC_PROMPT = """You are an academic research assistant. Use the
academic_search tool to find papers, summarize their contributions and cite
them by title and URL. Prefer peer-reviewed work."""

_EXTREME_PROMPT = """You are a deep research assistant. For every question,
call reason_search once with a precise topic, choosing the advanced depth for
broad or contested subjects. Then write a structured answer grounded in the
research results, noting remaining uncertainties."""

_CHAT_PROMPT = """You are a helpful assistant. Answer directly and concisely."""

SEARCH_GROUPS: dict[str, SearchGroup] = {
    "web": SearchGroup(id="web", tools=("web_search", "reason_search"), system_prompt=_WEB_PROMPT),
    "academic": SearchGroup(id="academic", tools=("academic_search",), system_prompt=_ACADEMIC_PROMPT),
    "extreme": SearchGroup(id="extreme", tools=("reason_search",), system_prompt=_EXTREME_PROMPT),
    "chat": SearchGroup(id="chat", tools=(), system_prompt=_CHAT_PROMPT),
}


def get_group_config(group: str) -> SearchGroup:
    """Return the tool subset and system prompt for a search group."""
    try:
        return SEARCH_GROUPS[group]
    except KeyError:
        raise UnknownGroupError(group) from None
