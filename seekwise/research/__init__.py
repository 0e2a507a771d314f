"""Research engine agents and step scheduling."""

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
from seekwise.research.steps import AnalysisStep, SearchStep, StepSchedule, build_steps, followup_queries

__all__ = [
    # Steps
    "SearchStep",
    "AnalysisStep",
    "StepSchedule",
    "build_steps",
    "followup_queries",
    # Agent factories
    "create_plan_agent",
    "create_analysis_agent",
    "create_gap_agent",
    "create_synthesis_agent",
    # Agent getters
    "get_plan_agent",
    "get_analysis_agent",
    "get_gap_agent",
    "get_synthesis_agent",
    # Cache management
    "clear_agent_cache",
]
