"""reason_search: planned multi-step research with live progress reporting.

One run goes through five phases, strictly in sequence:

1. Planning - one structured-generation call produces the `ResearchPlan`.
2. Searching - every search step of the plan, in plan order.
3. Analysis - every analysis step, each over all results gathered so far.
4. Gap analysis - always; at the advanced depth, when gaps were found,
   follow-up searches run for every proposed query.
5. Synthesis - only after a follow-up pass.

Steps run one after another: progress events must reach the caller in order
and analyses read the results accumulated by earlier steps. The accumulator
and counters belong to a single run and have a single writer; running steps
in parallel would need the results partitioned per step or guarded by a lock.

No call is retried. The first failure ends the run with a
`ResearchPipelineError`; events already emitted stay emitted, no final
progress event is sent and no partial outcome is returned.
"""

from time import perf_counter
from typing import Any

from pydantic_ai import Agent

from seekwise.events import ProgressEvent, ProgressEventType, ProgressStatus
from seekwise.exceptions import AnalysisError, GapAnalysisError, PlanningError, SynthesisError
from seekwise.logging import bind_context_vars, get_logger
from seekwise.models import (
    AnalysisResult,
    GapAnalysisResult,
    PhaseTimings,
    QueryPlanEntry,
    ResearchDepth,
    ResearchOutcome,
    ResearchPlan,
    SearchBatch,
    SearchKind,
    SynthesisResult,
)
from seekwise.progress import ProgressChannel, ProgressCounters
from seekwise.research.agents import get_analysis_agent, get_gap_agent, get_plan_agent, get_synthesis_agent
from seekwise.research.steps import (
    GAP_ACADEMIC_RESULTS,
    GAP_ANALYSIS_STEP_ID,
    GAP_WEB_RESULTS,
    PLAN_STEP_ID,
    PROGRESS_STEP_ID,
    SYNTHESIS_STEP_ID,
    AnalysisStep,
    SearchStep,
    academic_result_count,
    build_steps,
    followup_queries,
    search_completed_title,
    search_running_title,
    web_result_count,
)
from seekwise.search import SearchExecutor, get_search_executor

log = get_logger("seekwise.workflow")


def _elapsed_ms(start: float) -> int:
    return int((perf_counter() - start) * 1000)


def _dump_batches(batches: list[SearchBatch]) -> str:
    return "[" + ", ".join(batch.model_dump_json() for batch in batches) + "]"


def confidence_from_severity(severity: int) -> float:
    """Map a limitation severity (2-10) onto a finding confidence, clamped to [0, 1]."""
    return min(max((6 - severity) / 5, 0.0), 1.0)


class _ResearchRun:
    """State of one reason_search invocation."""

    def __init__(
        self,
        topic: str,
        depth: ResearchDepth,
        *,
        searcher: SearchExecutor,
        channel: ProgressChannel,
        plan_agent: Agent[Any, ResearchPlan],
        analysis_agent: Agent[Any, AnalysisResult],
        gap_agent: Agent[Any, GapAnalysisResult],
        synthesis_agent: Agent[Any, SynthesisResult],
    ) -> None:
        self.topic = topic
        self.depth = depth
        self.searcher = searcher
        self.channel = channel
        self.plan_agent = plan_agent
        self.analysis_agent = analysis_agent
        self.gap_agent = gap_agent
        self.synthesis_agent = synthesis_agent
        self.counters = ProgressCounters()
        self.results: list[SearchBatch] = []
        self.analyses: dict[str, AnalysisResult] = {}

    # --- Phase 1 ---

    async def plan(self) -> ResearchPlan:
        await self.channel.emit(
            ProgressEvent(
                id=PLAN_STEP_ID,
                type=ProgressEventType.PLAN,
                status=ProgressStatus.RUNNING,
                title="Research Plan",
                message="Creating research plan...",
            )
        )
        prompt = (
            f'Create a focused research plan for the topic: "{self.topic}".\n'
            "Keep the plan concise but comprehensive and prioritize the most important aspects to investigate."
        )
        try:
            plan = (await self.plan_agent.run(prompt)).output
        except Exception as e:
            log.error("research.plan.failed", error=str(e))
            raise PlanningError(topic=self.topic, reason=str(e)) from e
        return plan

    # --- Phase 2 ---

    async def run_search_step(self, step: SearchStep) -> None:
        query = step.query
        await self._emit_search_running(
            step.id,
            step.kind,
            search_running_title(step.kind, query.query),
            query.query,
            f"Searching {query.source} sources...",
        )

        if step.kind == "web":
            records = await self.searcher.execute_web_search(
                query.query, depth=self.depth, max_results=web_result_count(query.priority)
            )
        else:
            records = await self.searcher.execute_academic_search(
                query.query, max_results=academic_result_count(query.priority)
            )
        self.results.append(SearchBatch(kind=step.kind, query=query, results=records))
        self.counters.complete_step()

        await self._emit_search_completed(
            step.id, step.kind, search_completed_title(step.kind, query.query), self.results[-1]
        )

    # --- Phase 3 ---

    async def run_analysis_step(self, step: AnalysisStep) -> None:
        analysis = step.analysis
        await self.channel.emit(
            ProgressEvent(
                id=step.id,
                type=ProgressEventType.ANALYSIS,
                status=ProgressStatus.RUNNING,
                title=f"Analyzing {analysis.type}",
                message=f"Analyzing {analysis.type}...",
                payload={"analysis_type": analysis.type},
            )
        )
        prompt = (
            f"Perform a {analysis.type} analysis on the search results. {analysis.description}\n"
            "Consider all sources and their reliability.\n"
            f"Search results: {_dump_batches(self.results)}"
        )
        try:
            result = (await self.analysis_agent.run(prompt)).output
        except Exception as e:
            log.error("research.analysis.failed", step_id=step.id, error=str(e))
            raise AnalysisError(analysis_type=analysis.type, reason=str(e)) from e

        self.analyses[step.id] = result
        self.counters.complete_step()
        await self.channel.emit(
            ProgressEvent(
                id=step.id,
                type=ProgressEventType.ANALYSIS,
                status=ProgressStatus.COMPLETED,
                title=f"Analysis of {analysis.type} complete",
                message="Analysis complete",
                overwrite=True,
                payload={
                    "analysis_type": analysis.type,
                    "findings": [finding.model_dump() for finding in result.findings],
                    **self.counters.snapshot(),
                },
            )
        )

    # --- Phase 4 ---

    async def analyze_gaps(self, plan: ResearchPlan) -> GapAnalysisResult:
        await self.channel.emit(
            ProgressEvent(
                id=GAP_ANALYSIS_STEP_ID,
                type=ProgressEventType.ANALYSIS,
                status=ProgressStatus.RUNNING,
                title="Research Gaps and Limitations",
                message="Analyzing research gaps and limitations...",
                payload={"analysis_type": "gaps"},
            )
        )
        analyses_json = "[" + ", ".join(entry.model_dump_json() for entry in plan.required_analyses) + "]"
        prompt = (
            "Analyze the research results and identify limitations, knowledge gaps, "
            "and recommended follow-up actions.\n"
            f"Research results: {_dump_batches(self.results)}\n"
            f"Analysis findings: {analyses_json}"
        )
        try:
            gaps = (await self.gap_agent.run(prompt)).output
        except Exception as e:
            log.error("research.gap_analysis.failed", error=str(e))
            raise GapAnalysisError(reason=str(e)) from e
        return gaps

    async def report_gaps(self, gaps: GapAnalysisResult, followups: list[QueryPlanEntry]) -> None:
        second_pass = bool(followups) or self.second_pass_required(gaps)
        # One increment: the gap analysis itself, plus synthesis and each follow-up when a second pass runs.
        self.counters.add_steps(1 + (1 + len(followups) if second_pass else 0))
        self.counters.complete_step()
        await self.channel.emit(
            ProgressEvent(
                id=GAP_ANALYSIS_STEP_ID,
                type=ProgressEventType.ANALYSIS,
                status=ProgressStatus.COMPLETED,
                title="Research Gaps and Limitations",
                message=(
                    f"Identified {len(gaps.limitations)} limitations "
                    f"and {len(gaps.knowledge_gaps)} knowledge gaps"
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
                        for limitation in gaps.limitations
                    ],
                    "gaps": [gap.model_dump() for gap in gaps.knowledge_gaps],
                    "recommendations": [item.model_dump() for item in gaps.recommended_followup],
                    **self.counters.snapshot(),
                },
            )
        )

    def second_pass_required(self, gaps: GapAnalysisResult) -> bool:
        return self.depth == "advanced" and len(gaps.knowledge_gaps) > 0

    async def fill_gap(self, followup: QueryPlanEntry) -> None:
        web_id = f"gap-search-web-{self.counters.next_search_index()}"
        await self._emit_search_running(
            web_id,
            "web",
            f'Additional search for "{followup.query}"',
            followup.query,
            f"Searching to fill knowledge gap: {followup.rationale}",
        )
        records = await self.searcher.execute_web_search(followup.query, depth=self.depth, max_results=GAP_WEB_RESULTS)
        self.results.append(
            SearchBatch(kind="web", query=followup.model_copy(update={"source": "web"}), results=records)
        )
        await self._emit_search_completed(
            web_id, "web", f'Additional web search for "{followup.query}"', self.results[-1]
        )

        if followup.source == "both":
            academic_id = f"gap-search-academic-{self.counters.next_search_index()}"
            await self._emit_search_running(
                academic_id,
                "academic",
                f'Additional academic search for "{followup.query}"',
                followup.query,
                f"Searching academic sources to fill knowledge gap: {followup.rationale}",
            )
            records = await self.searcher.execute_academic_search(followup.query, max_results=GAP_ACADEMIC_RESULTS)
            self.results.append(
                SearchBatch(kind="academic", query=followup.model_copy(update={"source": "academic"}), results=records)
            )
            await self._emit_search_completed(
                academic_id,
                "academic",
                f'Additional academic search for "{followup.query}"',
                self.results[-1],
                noun="academic sources",
            )

        self.counters.complete_step()

    # --- Phase 5 ---

    async def synthesize(self, gaps: GapAnalysisResult, followups: list[QueryPlanEntry]) -> SynthesisResult:
        await self.channel.emit(
            ProgressEvent(
                id=SYNTHESIS_STEP_ID,
                type=ProgressEventType.ANALYSIS,
                status=ProgressStatus.RUNNING,
                title="Final Research Synthesis",
                message="Synthesizing all research findings...",
                payload={"analysis_type": "synthesis"},
            )
        )
        followups_json = "[" + ", ".join(entry.model_dump_json() for entry in followups) + "]"
        prompt = (
            "Synthesize all research findings, including gap analysis and follow-up research. "
            "Highlight key conclusions and remaining uncertainties.\n"
            f"Original results: {_dump_batches(self.results)}\n"
            f"Gap analysis: {gaps.model_dump_json()}\n"
            f"Additional findings: {followups_json}"
        )
        try:
            synthesis = (await self.synthesis_agent.run(prompt)).output
        except Exception as e:
            log.error("research.synthesis.failed", error=str(e))
            raise SynthesisError(reason=str(e)) from e

        await self.channel.emit(
            ProgressEvent(
                id=SYNTHESIS_STEP_ID,
                type=ProgressEventType.ANALYSIS,
                status=ProgressStatus.COMPLETED,
                title="Final Research Synthesis",
                message=f"Synthesized {len(synthesis.key_findings)} key findings",
                overwrite=True,
                payload={
                    "analysis_type": "synthesis",
                    "findings": [
                        {
                            "insight": finding.finding,
                            "evidence": finding.supporting_evidence,
                            "confidence": finding.confidence,
                        }
                        for finding in synthesis.key_findings
                    ],
                    "uncertainties": synthesis.remaining_uncertainties,
                    "completed_steps": self.counters.total_steps - 1,
                    "total_steps": self.counters.total_steps,
                },
            )
        )
        return synthesis

    async def finish(self) -> None:
        self.counters.completed_steps = self.counters.total_steps
        await self.channel.emit(
            ProgressEvent(
                id=PROGRESS_STEP_ID,
                type=ProgressEventType.PROGRESS,
                status=ProgressStatus.COMPLETED,
                message="Research complete",
                overwrite=True,
                payload={**self.counters.snapshot(), "is_complete": True},
            )
        )

    # --- Event helpers ---

    async def _emit_search_running(self, step_id: str, kind: SearchKind, title: str, query: str, message: str) -> None:
        await self.channel.emit(
            ProgressEvent(
                id=step_id,
                type=ProgressEventType(kind),
                status=ProgressStatus.RUNNING,
                title=title,
                message=message,
                payload={"query": query},
            )
        )

    async def _emit_search_completed(
        self,
        step_id: str,
        kind: SearchKind,
        title: str,
        batch: SearchBatch,
        noun: str = "results",
    ) -> None:
        await self.channel.emit(
            ProgressEvent(
                id=step_id,
                type=ProgressEventType(kind),
                status=ProgressStatus.COMPLETED,
                title=title,
                message=f"Found {len(batch.results)} {noun}",
                overwrite=True,
                payload={
                    "query": batch.query.query,
                    "results": [record.model_dump() for record in batch.results],
                    **self.counters.snapshot(),
                },
            )
        )


async def run_research_workflow(
    topic: str,
    depth: ResearchDepth = "basic",
    *,
    searcher: SearchExecutor | None = None,
    channel: ProgressChannel | None = None,
    plan_agent: Agent[Any, ResearchPlan] | None = None,
    analysis_agent: Agent[Any, AnalysisResult] | None = None,
    gap_agent: Agent[Any, GapAnalysisResult] | None = None,
    synthesis_agent: Agent[Any, SynthesisResult] | None = None,
) -> ResearchOutcome:
    """Execute one reason_search run.

    Args:
        topic: Research topic or question.
        depth: "basic" for a single pass, "advanced" to allow a gap-filling second pass.
        searcher: Override the configured search providers (for testing).
        channel: Progress channel receiving research_update events; silent when omitted.
        plan_agent: Override default planning agent (for testing).
        analysis_agent: Override default analysis agent (for testing).
        gap_agent: Override default gap-analysis agent (for testing).
        synthesis_agent: Override default synthesis agent (for testing).

    Returns:
        ResearchOutcome with the plan, every search batch, analyses, gap analysis,
        optional synthesis and step counters.

    Raises:
        PlanningError: When plan creation fails.
        SearchError: When any search provider call fails.
        AnalysisError: When an analysis step fails.
        GapAnalysisError: When gap detection fails.
        SynthesisError: When final synthesis fails.
    """
    bind_context_vars(research_topic=topic, research_depth=depth)
    run = _ResearchRun(
        topic,
        depth,
        searcher=searcher or get_search_executor(),
        channel=channel or ProgressChannel(),
        plan_agent=plan_agent or get_plan_agent(),
        analysis_agent=analysis_agent or get_analysis_agent(),
        gap_agent=gap_agent or get_gap_agent(),
        synthesis_agent=synthesis_agent or get_synthesis_agent(),
    )

    workflow_start = perf_counter()
    log.info("research.started", topic=topic, depth=depth)

    # Phase 1: Planning
    phase_start = perf_counter()
    plan = await run.plan()
    schedule = build_steps(plan)
    run.counters.add_steps(len(schedule))
    run.counters.search_index = len(schedule.search_steps)
    await run.channel.emit(
        ProgressEvent(
            id=PLAN_STEP_ID,
            type=ProgressEventType.PLAN,
            status=ProgressStatus.COMPLETED,
            title="Research Plan",
            message="Research plan created",
            overwrite=True,
            payload={"plan": plan.model_dump(), "total_steps": run.counters.total_steps},
        )
    )
    planning_ms = _elapsed_ms(phase_start)
    log.info(
        "research.plan.completed",
        duration_ms=planning_ms,
        search_steps=len(schedule.search_steps),
        analysis_steps=len(schedule.analysis_steps),
    )

    # Phase 2: Searching
    phase_start = perf_counter()
    for search_step in schedule.search_steps:
        await run.run_search_step(search_step)
    searching_ms = _elapsed_ms(phase_start)
    log.info("research.search.completed", duration_ms=searching_ms, batches=len(run.results))

    # Phase 3: Analysis
    phase_start = perf_counter()
    for analysis_step in schedule.analysis_steps:
        await run.run_analysis_step(analysis_step)
    analysis_ms = _elapsed_ms(phase_start)
    log.info("research.analysis.completed", duration_ms=analysis_ms, analyses=len(run.analyses))

    # Phase 4: Gap analysis and follow-up searches
    phase_start = perf_counter()
    gaps = await run.analyze_gaps(plan)
    followups: list[QueryPlanEntry] = []
    if run.second_pass_required(gaps):
        followups = followup_queries(
            [(query, gap.reason) for gap in gaps.knowledge_gaps for query in gap.additional_queries]
        )
    await run.report_gaps(gaps, followups)
    for followup in followups:
        await run.fill_gap(followup)
    gap_analysis_ms = _elapsed_ms(phase_start)
    log.info(
        "research.gap_analysis.completed",
        duration_ms=gap_analysis_ms,
        knowledge_gaps=len(gaps.knowledge_gaps),
        followup_queries=len(followups),
    )

    # Phase 5: Synthesis
    synthesis: SynthesisResult | None = None
    synthesis_ms = 0
    if run.second_pass_required(gaps):
        phase_start = perf_counter()
        synthesis = await run.synthesize(gaps, followups)
        synthesis_ms = _elapsed_ms(phase_start)
        log.info("research.synthesis.completed", duration_ms=synthesis_ms, key_findings=len(synthesis.key_findings))

    await run.finish()
    total_ms = _elapsed_ms(workflow_start)
    log.info("research.completed", total_ms=total_ms, total_steps=run.counters.total_steps)

    return ResearchOutcome(
        topic=topic,
        depth=depth,
        plan=plan,
        results=run.results,
        analyses=run.analyses,
        gap_analysis=gaps,
        synthesis=synthesis,
        completed_steps=run.counters.completed_steps,
        total_steps=run.counters.total_steps,
        timings=PhaseTimings(
            planning_ms=planning_ms,
            searching_ms=searching_ms,
            analysis_ms=analysis_ms,
            gap_analysis_ms=gap_analysis_ms,
            synthesis_ms=synthesis_ms,
            total_ms=total_ms,
        ),
    )
