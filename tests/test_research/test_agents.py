"""Tests for research pipeline agents."""

from collections.abc import Callable
from typing import Any

import pytest
from pydantic_ai import Agent
from pydantic_ai.models.test import TestModel

from seekwise.config import Settings
from seekwise.research.agents import (
    clear_agent_cache,
    create_analysis_agent,
    create_gap_agent,
    create_plan_agent,
    create_synthesis_agent,
    get_analysis_agent,
    get_gap_agent,
    get_plan_agent,
    get_synthesis_agent,
)


@pytest.fixture(autouse=True)
def _clear_caches() -> None:
    """Clear agent caches before and after each test."""
    clear_agent_cache()
    yield
    clear_agent_cache()


@pytest.fixture
def _test_settings(monkeypatch: pytest.MonkeyPatch) -> None:
    settings = Settings(plan_model="test", analysis_model="test", gap_model="test", synthesis_model="test")
    monkeypatch.setattr("seekwise.research.agents.get_settings", lambda: settings)


FACTORIES: list[tuple[Callable[..., Agent[None, Any]], str]] = [
    (create_plan_agent, "plan_agent"),
    (create_analysis_agent, "analysis_agent"),
    (create_gap_agent, "gap_agent"),
    (create_synthesis_agent, "synthesis_agent"),
]

GETTERS: list[Callable[[], Agent[None, Any]]] = [
    get_plan_agent,
    get_analysis_agent,
    get_gap_agent,
    get_synthesis_agent,
]


class TestCreateAgents:
    """Tests for agent factory functions."""

    @pytest.mark.parametrize(("factory", "name"), FACTORIES)
    def test__create_agent__returns_agent_with_correct_name(
        self, factory: Callable[..., Agent[None, Any]], name: str
    ) -> None:
        agent = factory(TestModel())
        assert isinstance(agent, Agent)
        assert agent.name == name

    @pytest.mark.parametrize(("factory", "name"), FACTORIES)
    def test__create_agent__returns_fresh_instances(self, factory: Callable[..., Agent[None, Any]], name: str) -> None:
        test_model = TestModel()
        assert factory(test_model) is not factory(test_model)


@pytest.mark.usefixtures("_test_settings")
class TestCachedGetters:
    """Tests for cached agent getters."""

    @pytest.mark.parametrize("getter", GETTERS)
    def test__getter__returns_cached_instance(self, getter: Callable[[], Agent[None, Any]]) -> None:
        assert getter() is getter()

    @pytest.mark.parametrize("getter", GETTERS)
    def test__clear_agent_cache__returns_new_instance(self, getter: Callable[[], Agent[None, Any]]) -> None:
        first = getter()
        clear_agent_cache()
        assert getter() is not first
