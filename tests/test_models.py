"""Tests for pydantic models."""

import pytest
from pydantic import ValidationError

from seekwise.models import (
    AnalysisPlanEntry,
    ChatMessage,
    ChatRequest,
    Finding,
    FollowupRecommendation,
    Limitation,
    QueryPlanEntry,
    ResearchPlan,
    SearchResultRecord,
)


def _make_query(priority: int = 3, source: str = "web") -> QueryPlanEntry:
    return QueryPlanEntry(query="caffeine", rationale="why", source=source, priority=priority)  # type: ignore[arg-type]


def _make_analysis(importance: int = 3) -> AnalysisPlanEntry:
    return AnalysisPlanEntry(type="dose-response", description="relate dose to sleep", importance=importance)


class TestResearchPlan:
    def test__valid_plan__accepts_bounds(self) -> None:
        plan = ResearchPlan(search_queries=[_make_query()] * 12, required_analyses=[_make_analysis()] * 8)
        assert len(plan.search_queries) == 12
        assert len(plan.required_analyses) == 8

    def test__too_many_queries__rejected(self) -> None:
        with pytest.raises(ValidationError):
            ResearchPlan(search_queries=[_make_query()] * 13, required_analyses=[])

    def test__too_many_analyses__rejected(self) -> None:
        with pytest.raises(ValidationError):
            ResearchPlan(search_queries=[], required_analyses=[_make_analysis()] * 9)

    @pytest.mark.parametrize("priority", [0, 6])
    def test__priority_out_of_range__rejected(self, priority: int) -> None:
        with pytest.raises(ValidationError):
            _make_query(priority=priority)

    @pytest.mark.parametrize("importance", [0, 6])
    def test__importance_out_of_range__rejected(self, importance: int) -> None:
        with pytest.raises(ValidationError):
            _make_analysis(importance=importance)

    def test__unknown_source__rejected(self) -> None:
        with pytest.raises(ValidationError):
            _make_query(source="news")

    def test__plan__is_frozen(self) -> None:
        plan = ResearchPlan(search_queries=[_make_query()], required_analyses=[])
        with pytest.raises(ValidationError):
            plan.search_queries = []  # type: ignore[misc]


class TestResultModels:
    def test__search_result_record__defaults_missing_fields(self) -> None:
        record = SearchResultRecord(source="academic")
        assert (record.title, record.url, record.content) == ("", "", "")

    @pytest.mark.parametrize("confidence", [-0.1, 1.1])
    def test__finding__confidence_bounded(self, confidence: float) -> None:
        with pytest.raises(ValidationError):
            Finding(insight="x", confidence=confidence)

    @pytest.mark.parametrize("severity", [1, 11])
    def test__limitation__severity_bounded(self, severity: int) -> None:
        with pytest.raises(ValidationError):
            Limitation(type="t", description="d", severity=severity)

    def test__followup__priority_bounded(self) -> None:
        with pytest.raises(ValidationError):
            FollowupRecommendation(action="a", rationale="r", priority=1)


class TestChatRequest:
    def test__defaults__model_and_group(self) -> None:
        request = ChatRequest(messages=[ChatMessage(role="user", content="hi")])
        assert request.model == "openai:gpt-4o-mini"
        assert request.group == "web"

    def test__empty_messages__rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChatRequest(messages=[])

    def test__last_message_from_assistant__rejected(self) -> None:
        with pytest.raises(ValidationError, match="last message"):
            ChatRequest(
                messages=[
                    ChatMessage(role="user", content="hi"),
                    ChatMessage(role="assistant", content="hello"),
                ]
            )

    def test__unknown_role__rejected(self) -> None:
        with pytest.raises(ValidationError):
            ChatMessage(role="tool", content="x")  # type: ignore[arg-type]
