"""Seekwise - chat backend with tool-augmented models and multi-step research"""

__version__ = "0.1.0"

from seekwise.chat import create_chat_agent, get_chat_agent, run_chat
from seekwise.exceptions import (
    AnalysisError,
    ChatConfigurationError,
    GapAnalysisError,
    GenerationError,
    PlanningError,
    ResearchPipelineError,
    SearchError,
    SynthesisError,
    UnknownGroupError,
    UnknownModelError,
)
from seekwise.models import (
    AnalysisResult,
    ChatRequest,
    GapAnalysisResult,
    PhaseTimings,
    ResearchOutcome,
    ResearchPlan,
    SearchBatch,
    SearchResultRecord,
    SynthesisResult,
)
from seekwise.research import (
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
from seekwise.server import get_app
from seekwise.workflow import run_research_workflow

__all__ = [
    # Models
    "ResearchPlan",
    "SearchResultRecord",
    "SearchBatch",
    "AnalysisResult",
    "GapAnalysisResult",
    "SynthesisResult",
    "PhaseTimings",
    "ResearchOutcome",
    "ChatRequest",
    # Agent factories
    "create_plan_agent",
    "create_analysis_agent",
    "create_gap_agent",
    "create_synthesis_agent",
    "create_chat_agent",
    # Agent getters
    "get_plan_agent",
    "get_analysis_agent",
    "get_gap_agent",
    "get_synthesis_agent",
    "get_chat_agent",
    # Cache management
    "clear_agent_cache",
    # Exceptions
    "ResearchPipelineError",
    "GenerationError",
    "PlanningError",
    "AnalysisError",
    "GapAnalysisError",
    "SynthesisError",
    "SearchError",
    "ChatConfigurationError",
    "UnknownModelError",
    "UnknownGroupError",
    # Workflow
    "run_research_workflow",
    "run_chat",
    # Server
    "get_app",
]
