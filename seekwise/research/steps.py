"""Expansion of a research plan into executable steps."""

from dataclasses import dataclass

from seekwise.models import AnalysisPlanEntry, QueryPlanEntry, ResearchPlan, SearchKind

PLAN_STEP_ID = "research-plan"
GAP_ANALYSIS_STEP_ID = "gap-analysis"
SYNTHESIS_STEP_ID = "final-synthesis"
PROGRESS_STEP_ID = "research-progress"

MAX_WEB_RESULTS = 10
MAX_ACADEMIC_RESULTS = 5
GAP_WEB_RESULTS = 5
GAP_ACADEMIC_RESULTS = 3
GAP_QUERY_PRIORITY = 3


@dataclass(frozen=True)
class SearchStep:
    id: str
    kind: SearchKind
    query: QueryPlanEntry


@dataclass(frozen=True)
class AnalysisStep:
    id: str
    analysis: AnalysisPlanEntry


@dataclass(frozen=True)
class StepSchedule:
    """Ordered steps derived from one plan: all searches first, then all analyses."""

    search_steps: tuple[SearchStep, ...]
    analysis_steps: tuple[AnalysisStep, ...]

    def __len__(self) -> int:
        return len(self.search_steps) + len(self.analysis_steps)


def web_result_count(priority: int) -> int:
    # Higher numeric priority requests fewer results.
    return min(6 - priority, MAX_WEB_RESULTS)


def academic_result_count(priority: int) -> int:
    return min(6 - priority, MAX_ACADEMIC_RESULTS)


def _search_steps_for(index: int, query: QueryPlanEntry) -> list[SearchStep]:
    if query.source == "both":
        return [
            SearchStep(id=f"search-web-{index}", kind="web", query=query),
            SearchStep(id=f"search-academic-{index}", kind="academic", query=query),
        ]
    kind: SearchKind = "academic" if query.source == "academic" else "web"
    return [SearchStep(id=f"search-{kind}-{index}", kind=kind, query=query)]


def build_steps(plan: ResearchPlan) -> StepSchedule:
    """Expand a plan into steps with ids derived from kind and plan position."""
    search_steps = [step for index, query in enumerate(plan.search_queries) for step in _search_steps_for(index, query)]
    analysis_steps = [
        AnalysisStep(id=f"analysis-{index}", analysis=analysis) for index, analysis in enumerate(plan.required_analyses)
    ]
    return StepSchedule(search_steps=tuple(search_steps), analysis_steps=tuple(analysis_steps))


def followup_queries(gap_queries: list[tuple[str, str]]) -> list[QueryPlanEntry]:
    """Turn (query, gap reason) pairs into plan entries searched on both providers."""
    return [
        QueryPlanEntry(query=query, rationale=reason, source="both", priority=GAP_QUERY_PRIORITY)
        for query, reason in gap_queries
    ]


def search_running_title(kind: SearchKind, query: str) -> str:
    if kind == "web":
        return f'Searching the web for "{query}"'
    return f'Searching academic papers for "{query}"'


def search_completed_title(kind: SearchKind, query: str) -> str:
    if kind == "web":
        return f'Searched the web for "{query}"'
    return f'Searched academic papers for "{query}"'
