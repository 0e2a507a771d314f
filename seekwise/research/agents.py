"""PydanticAI agents for the reason_search engine.

Each agent is a single structured-generation call: pydantic-ai validates the
model output against the output type, so schema-invalid output surfaces as an
exception at the call site.
"""

from functools import lru_cache
from typing import Any

from pydantic_ai import Agent

from seekwise.config import get_settings
from seekwise.models import AnalysisResult, GapAnalysisResult, ResearchPlan, SynthesisResult


def create_plan_agent(model: Any = None) -> Agent[None, ResearchPlan]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model if model is not None else get_settings().plan_model,
        instructions="""You are a research planning expert. Given a topic, create a
        focused research plan with:
        - 4-12 targeted search queries, each using web, academic, or both sources
        - 2-8 key analyses to perform over the results
        - a priority (1-5) for each query and an importance (1-5) for each analysis
        Consider different angles and potential controversies, but keep the
        plan on the core aspects of the topic. The total number of steps
        (searches + analyses) should not exceed 20.""",
        output_type=ResearchPlan,
        model_settings={"temperature": 0.5},
        instrument=True,
        name="plan_agent",
    )


@lru_cache(maxsize=1)
def get_plan_agent() -> Agent[None, ResearchPlan]:
    """Cached getter for production."""
    return create_plan_agent()


def create_analysis_agent(model: Any = None) -> Agent[None, AnalysisResult]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model if model is not None else get_settings().analysis_model,
        instructions="""You are a research analyst. Perform the requested analysis
        over the provided search results.
        - Consider all sources and their reliability
        - Back every finding with evidence quoted or paraphrased from the results
        - Give each finding a confidence between 0 and 1
        - List implications and the limitations of the evidence""",
        output_type=AnalysisResult,
        model_settings={"temperature": 0.5},
        instrument=True,
        name="analysis_agent",
    )


@lru_cache(maxsize=1)
def get_analysis_agent() -> Agent[None, AnalysisResult]:
    """Cached getter for production."""
    return create_analysis_agent()


def create_gap_agent(model: Any = None) -> Agent[None, GapAnalysisResult]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model if model is not None else get_settings().gap_model,
        instructions="""You review research results and identify limitations,
        knowledge gaps and recommended follow-up actions.
        Consider:
        - Quality and reliability of sources
        - Missing perspectives or data
        - Areas needing deeper investigation
        - Potential biases or conflicts
        Severity and follow-up priority are between 2 and 10. For each
        knowledge gap, propose concrete additional search queries.""",
        output_type=GapAnalysisResult,
        model_settings={"temperature": 0},
        instrument=True,
        name="gap_agent",
    )


@lru_cache(maxsize=1)
def get_gap_agent() -> Agent[None, GapAnalysisResult]:
    """Cached getter for production."""
    return create_gap_agent()


def create_synthesis_agent(model: Any = None) -> Agent[None, SynthesisResult]:
    """Uncached factory - use with TestModel for tests."""
    return Agent(
        model if model is not None else get_settings().synthesis_model,
        instructions="""You are a research synthesizer. Combine all research
        findings, including the gap analysis and follow-up research, into key
        findings with a confidence between 0 and 1 and supporting evidence.
        List the uncertainties that remain. Stay grounded in the provided
        results and do not invent information.""",
        output_type=SynthesisResult,
        model_settings={"temperature": 0},
        instrument=True,
        name="synthesis_agent",
    )


@lru_cache(maxsize=1)
def get_synthesis_agent() -> Agent[None, SynthesisResult]:
    """Cached getter for production."""
    return create_synthesis_agent()


def clear_agent_cache() -> None:
    """Clear all agent caches."""
    get_plan_agent.cache_clear()
    get_analysis_agent.cache_clear()
    get_gap_agent.cache_clear()
    get_synthesis_agent.cache_clear()
