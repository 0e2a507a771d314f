"""Pydantic models for the research engine and chat requests."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from seekwise.config import DEFAULT_CHAT_MODEL

SearchSource = Literal["web", "academic", "both"]
SearchKind = Literal["web", "academic"]
ResearchDepth = Literal["basic", "advanced"]


# --- Research plan ---


class QueryPlanEntry(BaseModel):
    """A single search query in the research plan."""

    model_config = ConfigDict(frozen=True)

    query: str = Field(
        description="Search query to execute",
        examples=["caffeine half-life adults sleep latency"],
    )
    rationale: str = Field(
        description="Why this query helps answer the research topic",
        examples=["Establish how long caffeine stays active after consumption"],
    )
    source: SearchSource = Field(
        description="Which search provider(s) to query: web, academic, or both",
        examples=["both"],
    )
    priority: int = Field(
        ge=1,
        le=5,
        description="Priority from 1 to 5",
        examples=[2],
    )


class AnalysisPlanEntry(BaseModel):
    """An analysis to perform over the gathered results."""

    model_config = ConfigDict(frozen=True)

    type: str = Field(
        description="Short name of the analysis",
        examples=["dose-response"],
    )
    description: str = Field(
        description="What the analysis should establish",
        examples=["Relate caffeine dose and timing to measured sleep quality"],
    )
    importance: int = Field(
        ge=1,
        le=5,
        description="Importance from 1 to 5",
        examples=[4],
    )


class ResearchPlan(BaseModel):
    """Structured research plan with search queries and analyses."""

    model_config = ConfigDict(frozen=True)

    search_queries: list[QueryPlanEntry] = Field(
        max_length=12,
        description="Up to 12 targeted search queries, each for web, academic, or both sources",
    )
    required_analyses: list[AnalysisPlanEntry] = Field(
        max_length=8,
        description="Up to 8 analyses to perform over the search results",
    )


# --- Search results ---


class SearchResultRecord(BaseModel):
    """Provider-independent shape of one search hit."""

    source: SearchKind = Field(description="Provider family that returned this hit")
    title: str = Field(default="", description="Result title")
    url: str = Field(default="", description="Result URL")
    content: str = Field(default="", description="Snippet (web) or summary (academic)")


class SearchBatch(BaseModel):
    """Results of one executed search step."""

    kind: SearchKind
    query: QueryPlanEntry
    results: list[SearchResultRecord] = Field(default_factory=list)


# --- Analyses ---


class Finding(BaseModel):
    """A single insight backed by evidence."""

    insight: str = Field(description="The insight itself")
    evidence: list[str] = Field(default_factory=list, description="Supporting evidence from the sources")
    confidence: float = Field(ge=0.0, le=1.0, description="Confidence from 0.0 to 1.0")


class AnalysisResult(BaseModel):
    """Output of one analysis step."""

    findings: list[Finding] = Field(default_factory=list)
    implications: list[str] = Field(default_factory=list)
    limitations: list[str] = Field(default_factory=list)


class Limitation(BaseModel):
    type: str
    description: str
    severity: int = Field(ge=2, le=10, description="Severity from 2 to 10")
    potential_solutions: list[str] = Field(default_factory=list)


class KnowledgeGap(BaseModel):
    topic: str
    reason: str
    additional_queries: list[str] = Field(
        default_factory=list,
        description="Follow-up search queries that would close this gap",
    )


class FollowupRecommendation(BaseModel):
    action: str
    rationale: str
    priority: int = Field(ge=2, le=10, description="Priority from 2 to 10")


class GapAnalysisResult(BaseModel):
    """Limitations, knowledge gaps and follow-ups detected after the first pass."""

    limitations: list[Limitation] = Field(default_factory=list)
    knowledge_gaps: list[KnowledgeGap] = Field(default_factory=list)
    recommended_followup: list[FollowupRecommendation] = Field(default_factory=list)


class KeyFinding(BaseModel):
    finding: str
    confidence: float = Field(ge=0.0, le=1.0)
    supporting_evidence: list[str] = Field(default_factory=list)


class SynthesisResult(BaseModel):
    """Final consolidation of all research passes."""

    key_findings: list[KeyFinding] = Field(default_factory=list)
    remaining_uncertainties: list[str] = Field(default_factory=list)


# --- Outcome ---


class PhaseTimings(BaseModel):
    """Timing metrics for each research phase."""

    planning_ms: int = Field(ge=0, description="Time spent creating the research plan (milliseconds)")
    searching_ms: int = Field(ge=0, description="Time spent on first-pass searches (milliseconds)")
    analysis_ms: int = Field(ge=0, description="Time spent on analysis steps (milliseconds)")
    gap_analysis_ms: int = Field(ge=0, description="Time spent detecting gaps and filling them (milliseconds)")
    synthesis_ms: int = Field(ge=0, description="Time spent on final synthesis, 0 when skipped (milliseconds)")
    total_ms: int = Field(ge=0, description="Total research time (milliseconds)")


class ResearchOutcome(BaseModel):
    """Complete result of one reason_search run."""

    topic: str = Field(
        min_length=1,
        description="Research topic that was investigated",
        examples=["impact of caffeine on sleep"],
    )
    depth: ResearchDepth = Field(description="Research depth used for this run")
    plan: ResearchPlan = Field(description="Plan produced by the planning agent")
    results: list[SearchBatch] = Field(description="Every executed search step, first pass and gap-filling")
    analyses: dict[str, AnalysisResult] = Field(
        default_factory=dict,
        description="Analysis outputs keyed by step id",
    )
    gap_analysis: GapAnalysisResult = Field(description="Detected limitations and knowledge gaps")
    synthesis: SynthesisResult | None = Field(
        default=None,
        description="Final synthesis, only present after a gap-filling second pass",
    )
    completed_steps: int = Field(ge=0)
    total_steps: int = Field(ge=0)
    timings: PhaseTimings


# --- Chat ---


class ChatMessage(BaseModel):
    role: Literal["user", "assistant", "system"]
    content: str


class ChatRequest(BaseModel):
    """Incoming chat request."""

    messages: list[ChatMessage] = Field(
        min_length=1,
        description="Conversation so far; the last message must come from the user",
    )
    model: str = Field(
        default=DEFAULT_CHAT_MODEL,
        description="Model key in `{provider}:{modelName}` form",
        examples=["anthropic:claude-3-7-sonnet-latest"],
    )
    group: str = Field(
        default="web",
        description="Search group selecting the tool subset and system prompt",
        examples=["extreme"],
    )

    @model_validator(mode="after")
    def _last_message_from_user(self) -> "ChatRequest":
        if self.messages[-1].role != "user":
            raise ValueError("the last message must have role 'user'")
        return self
