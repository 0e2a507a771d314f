"""Demo mode fixtures for API testing without burning API keys."""

from functools import lru_cache
from typing import AsyncIterator

from seekwise.config import get_settings
from seekwise.events import CompleteEvent, ProgressEvent, ProgressEventType, ProgressStatus
from seekwise.models import (
    AnalysisPlanEntry,
    AnalysisResult,
    Finding,
    GapAnalysisResult,
    KnowledgeGap,
    Limitation,
    PhaseTimings,
    QueryPlanEntry,
    ResearchOutcome,
    ResearchPlan,
    SearchBatch,
    SearchResultRecord,
)
from seekwise.research.steps import (
    GAP_ANALYSIS_STEP_ID,
    PLAN_STEP_ID,
    PROGRESS_STEP_ID,
    build_steps,
    search_completed_title,
    search_running_title,
)
from seekwise.workflow import confidence_from_severity

DEMO_TOPIC = "impact of caffeine on sleep"


def is_demo_mode_allowed() -> bool:
    """Check if demo mode is allowed in current environment.

    Demo mode is only allowed in development and staging environments
    for security and resource reasons.

    Returns:
        True if demo mode allowed, False otherwise
    """
    environment = get_settings().environment
    return environment in ("development", "staging")


@lru_cache(maxsize=1)
def get_demo_research_outcome() -> ResearchOutcome:
    """Generate cached demo research outcome for testing.

    Returns hardcoded caffeine-and-sleep research. Callers override the topic
    with `model_copy(update={"topic": ...})` so the cache stays shared.

    Returns:
        Complete basic-depth ResearchOutcome with realistic mock data
    """
    half_life = QueryPlanEntry(
        query="caffeine half-life adults sleep latency",
        rationale="Establish how long caffeine stays active after consumption",
        source="both",
        priority=1,
    )
    timing = QueryPlanEntry(
        query="caffeine intake timing before bedtime study",
        rationale="Find evidence on how late caffeine can be taken without affecting sleep",
        source="web",
        priority=2,
    )
    plan = ResearchPlan(
        search_queries=[half_life, timing],
        required_analyses=[
            AnalysisPlanEntry(
                type="dose-response",
                description="Relate caffeine dose and timing to measured sleep quality",
                importance=5,
            ),
            AnalysisPlanEntry(
                type="individual differences",
                description="Identify factors that change caffeine sensitivity between people",
                importance=3,
            ),
        ],
    )
    results = [
        SearchBatch(
            kind="web",
            query=half_life,
            results=[
                SearchResultRecord(
                    source="web",
                    title="Caffeine: How long does it stay in your system?",
                    url="https://www.sleepfoundation.org/nutrition/caffeine-and-sleep",
                    content="Caffeine has an average half-life of about five hours in healthy adults.",
                ),
                SearchResultRecord(
                    source="web",
                    title="Caffeine and sleep quality",
                    url="https://www.hopkinsmedicine.org/health/wellness-and-prevention/caffeine-and-sleep",
                    content="Caffeine blocks adenosine receptors, delaying the onset of sleep.",
                ),
            ],
        ),
        SearchBatch(
            kind="academic",
            query=half_life,
            results=[
                SearchResultRecord(
                    source="academic",
                    title="Caffeine effects on sleep taken 0, 3, or 6 hours before going to bed",
                    url="https://jcsm.aasm.org/doi/10.5664/jcsm.3170",
                    content="400 mg of caffeine taken six hours before bed reduced total sleep time by more than one hour.",
                ),
            ],
        ),
        SearchBatch(
            kind="web",
            query=timing,
            results=[
                SearchResultRecord(
                    source="web",
                    title="When to stop drinking coffee before bed",
                    url="https://www.health.harvard.edu/staying-healthy/caffeine-cutoff",
                    content="Most guidance suggests avoiding caffeine at least eight hours before bedtime.",
                ),
            ],
        ),
    ]
    analyses = {
        "analysis-0": AnalysisResult(
            findings=[
                Finding(
                    insight="Caffeine within six hours of bedtime measurably shortens total sleep time",
                    evidence=["400 mg six hours before bed reduced total sleep by more than one hour"],
                    confidence=0.85,
                )
            ],
            implications=["An afternoon caffeine cut-off improves sleep for most adults"],
            limitations=["Most trials use doses above typical daily intake"],
        ),
        "analysis-1": AnalysisResult(
            findings=[
                Finding(
                    insight="Caffeine sensitivity varies with genetics, age and pregnancy",
                    evidence=["Half-life ranges from roughly 2 to 10 hours between individuals"],
                    confidence=0.7,
                )
            ],
            implications=["A single cut-off time does not suit everyone"],
            limitations=["Few studies stratify results by CYP1A2 genotype"],
        ),
    }
    gap_analysis = GapAnalysisResult(
        limitations=[
            Limitation(
                type="sample size",
                description="Controlled sleep-lab studies enroll small samples",
                severity=4,
                potential_solutions=["Include large cohort studies with actigraphy"],
            )
        ],
        knowledge_gaps=[
            KnowledgeGap(
                topic="habitual consumers",
                reason="Tolerance in daily coffee drinkers is rarely measured",
                additional_queries=["caffeine tolerance habitual users sleep architecture"],
            )
        ],
    )
    total_steps = len(build_steps(plan)) + 1
    return ResearchOutcome(
        topic=DEMO_TOPIC,
        depth="basic",
        plan=plan,
        results=results,
        analyses=analyses,
        gap_analysis=gap_analysis,
        synthesis=None,
        completed_steps=total_steps,
        total_steps=total_steps,
        timings=PhaseTimings(
            planning_ms=100,
            searching_ms=300,
            analysis_ms=200,
            gap_analysis_ms=100,
            synthesis_ms=0,
            total_ms=700,
        ),
    )


def _demo_progress_events(outcome: ResearchOutcome) -> list[ProgressEvent]:
    schedule = build_steps(outcome.plan)
    total = len(schedule)
    events = [
        ProgressEvent(
            id=PLAN_STEP_ID,
            type=ProgressEventType.PLAN,
            status=ProgressStatus.RUNNING,
            title="Research Plan",
            message="Creating research plan...",
        ),
        ProgressEvent(
            id=PLAN_STEP_ID,
            type=ProgressEventType.PLAN,
            status=ProgressStatus.COMPLETED,
            title="Research Plan",
            message="Research plan created",
            overwrite=True,
            payload={"plan": outcome.plan.model_dump(), "total_steps": total},
        ),
    ]
    completed = 0
    for step, batch in zip(schedule.search_steps, outcome.results):
        completed += 1
        events += [
            ProgressEvent(
                id=step.id,
                type=ProgressEventType(step.kind),
                status=ProgressStatus.RUNNING,
                title=search_running_title(step.kind, step.query.query),
                message=f"Searching {step.query.source} sources...",
                payload={"query": step.query.query},
            ),
            ProgressEvent(
                id=step.id,
                type=ProgressEventType(step.kind),
                status=ProgressStatus.COMPLETED,
                title=search_completed_title(step.kind, step.query.query),
                message=f"Found {len(batch.results)} results",
                overwrite=True,
                payload={
                    "query": step.query.query,
                    "results": [record.model_dump() for record in batch.results],
                    "completed_steps": completed,
                    "total_steps": total,
                },
            ),
        ]
    for step in schedule.analysis_steps:
        completed += 1
        events += [
            ProgressEvent(
                id=step.id,
                type=ProgressEventType.ANALYSIS,
                status=ProgressStatus.RUNNING,
                title=f"Analyzing {step.analysis.type}",
                message=f"Analyzing {step.analysis.type}...",
                payload={"analysis_type": step.analysis.type},
            ),
            ProgressEvent(
                id=step.id,
                type=ProgressEventType.ANALYSIS,
                status=ProgressStatus.COMPLETED,
                title=f"Analysis of {step.analysis.type} complete",
                message="Analysis complete",
                overwrite=True,
                payload={
                    "analysis_type": step.analysis.type,
                    "findings": [finding.model_dump() for finding in outcome.analyses[step.id].findings],
                    "completed_steps": completed,
                    "total_steps": total,
                },
            ),
        ]
    events += [
        ProgressEvent(
            id=GAP_ANALYSIS_STEP_ID,
            type=ProgressEventType.ANALYSIS,
            status=ProgressStatus.RUNNING,
            title="Research Gaps and Limitations",
            message="Analyzing research gaps and limitations...",
            payload={"analysis_type": "gaps"},
        ),
        ProgressEvent(
            id=GAP_ANALYSIS_STEP_ID,
            type=ProgressEventType.ANALYSIS,
            status=ProgressStatus.COMPLETED,
            title="Research Gaps and Limitations",
            message=(
                f"Identified {len(outcome.gap_analysis.limitations)} limitations "
                f"and {len(outcome.gap_analysis.knowledge_gaps)} knowledge gaps"
            ),
            overwrite=True,
            payload={
                "analysis_type": "gaps",
                "findings": [
                    {
                        "insight": limitation.description,
                        "evidence": limitation.potential_solutions,
                        "confidence": confidence_from_severity(limitation.severity),
                    }
                    for limitation in outcome.gap_analysis.limitations
                ],
                "gaps": [gap.model_dump() for gap in outcome.gap_analysis.knowledge_gaps],
                "recommendations": [item.model_dump() for item in outcome.gap_analysis.recommended_followup],
                "completed_steps": outcome.total_steps,
                "total_steps": outcome.total_steps,
            },
        ),
        ProgressEvent(
            id=PROGRESS_STEP_ID,
            type=ProgressEventType.PROGRESS,
            status=ProgressStatus.COMPLETED,
            message="Research complete",
            overwrite=True,
            payload={
                "completed_steps": outcome.total_steps,
                "total_steps": outcome.total_steps,
                "is_complete": True,
            },
        ),
    ]
    return events


async def generate_demo_sse_stream(topic: str) -> AsyncIterator[str]:
    """Generate demo SSE event stream for one basic-depth research run.

    Yields events instantly for rapid testing.

    Args:
        topic: Research topic (reflected in the final outcome)

    Yields:
        Formatted SSE event strings
    """
    outcome = get_demo_research_outcome().model_copy(update={"topic": topic})
    for event in _demo_progress_events(outcome):
        yield event.as_sse().format()

    # Final complete event with full outcome
    yield CompleteEvent(data=outcome.model_dump()).format()
