"""Tests for settings, the model registry and search groups."""

import pytest

from seekwise.config import SEARCH_GROUPS, Settings, get_group_config, resolve_model
from seekwise.exceptions import UnknownGroupError, UnknownModelError


class TestSettings:
    def test__from_env__reads_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TAVILY_API_KEY", "tvly-key")
        monkeypatch.setenv("RESEARCH_PLAN_MODEL", "openai:gpt-4o")
        monkeypatch.setenv("CHAT_MAX_STEPS", "7")
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "45.5")

        settings = Settings.from_env()

        assert settings.tavily_api_key == "tvly-key"
        assert settings.plan_model == "openai:gpt-4o"
        assert settings.chat_max_steps == 7
        assert settings.request_timeout_seconds == 45.5

    def test__from_env__blank_values_fall_back_to_defaults(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("RESEARCH_GAP_MODEL", "   ")
        monkeypatch.setenv("SEARCH_TIMEOUT_SECONDS", "")

        settings = Settings.from_env()

        assert settings.gap_model == Settings().gap_model
        assert settings.search_timeout_seconds == 30.0

    def test__from_env__invalid_number_raises(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("REQUEST_TIMEOUT_SECONDS", "five minutes")

        with pytest.raises(ValueError, match="REQUEST_TIMEOUT_SECONDS"):
            Settings.from_env()


class TestModelRegistry:
    @pytest.mark.parametrize(
        "key",
        ["openai:gpt-4o-mini", "anthropic:claude-3-7-sonnet-latest", "groq:deepseek-r1-distill-llama-70b"],
    )
    def test__resolve_model__known_keys(self, key: str) -> None:
        assert resolve_model(key) == key

    def test__resolve_model__unknown_key_raises(self) -> None:
        with pytest.raises(UnknownModelError) as exc_info:
            resolve_model("openai:gpt-2")
        assert exc_info.value.model == "openai:gpt-2"


class TestSearchGroups:
    @pytest.mark.parametrize(
        ("group", "tools"),
        [
            ("web", ("web_search", "reason_search")),
            ("academic", ("academic_search",)),
            ("extreme", ("reason_search",)),
            ("chat", ()),
        ],
    )
    def test__get_group_config__tool_subsets(self, group: str, tools: tuple[str, ...]) -> None:
        config = get_group_config(group)
        assert config.id == group
        assert config.tools == tools
        assert config.system_prompt

    def test__get_group_config__unknown_group_raises(self) -> None:
        with pytest.raises(UnknownGroupError, match="movies"):
            get_group_config("movies")

    def test__groups__registry_keys_match_ids(self) -> None:
        assert all(key == group.id for key, group in SEARCH_GROUPS.items())
