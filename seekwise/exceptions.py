"""Domain-specific exceptions for the research engine and chat orchestrator."""


class ResearchPipelineError(Exception):
    """Base exception for research pipeline errors."""


class GenerationError(ResearchPipelineError):
    """Raised when a structured-generation call fails or returns invalid output."""

    def __init__(self, stage: str, reason: str, message: str | None = None) -> None:
        self.stage = stage
        self.reason = reason
        super().__init__(message or f"Structured generation failed during {stage}: {reason}")


class PlanningError(GenerationError):
    """Raised when research plan creation fails."""

    def __init__(self, topic: str, reason: str) -> None:
        self.topic = topic
        super().__init__("planning", reason, f"Failed to create research plan for '{topic}': {reason}")


class AnalysisError(GenerationError):
    """Raised when an analysis step fails."""

    def __init__(self, analysis_type: str, reason: str) -> None:
        self.analysis_type = analysis_type
        super().__init__("analysis", reason, f"Failed to run '{analysis_type}' analysis: {reason}")


class GapAnalysisError(GenerationError):
    """Raised when gap detection fails."""

    def __init__(self, reason: str) -> None:
        super().__init__("gap_analysis", reason, f"Failed to analyze research gaps: {reason}")


class SynthesisError(GenerationError):
    """Raised when final synthesis fails."""

    def __init__(self, reason: str) -> None:
        super().__init__("synthesis", reason, f"Failed to synthesize research findings: {reason}")


class SearchError(ResearchPipelineError):
    """Raised when a search provider call fails."""

    def __init__(self, provider: str, query: str, reason: str) -> None:
        self.provider = provider
        self.query = query
        self.reason = reason
        super().__init__(f"{provider} search failed for '{query}': {reason}")


class ChatConfigurationError(Exception):
    """Base exception for invalid chat request configuration."""


class UnknownModelError(ChatConfigurationError):
    """Raised when a chat request names a model missing from the registry."""

    def __init__(self, model: str) -> None:
        self.model = model
        super().__init__(f"Unknown model '{model}'")


class UnknownGroupError(ChatConfigurationError):
    """Raised when a chat request names an unknown search group."""

    def __init__(self, group: str) -> None:
        self.group = group
        super().__init__(f"Unknown search group '{group}'")


# Map domain exception types to user-friendly messages
SAFE_ERROR_MESSAGES: dict[str, str] = {
    "PlanningError": "Unable to create research plan. Please try a different topic.",
    "AnalysisError": "Unable to analyze the search results. Please try again.",
    "GapAnalysisError": "Unable to analyze research gaps. Please try again.",
    "SynthesisError": "Unable to synthesize research findings. Please try again.",
    "SearchError": "A search provider failed. Please try again.",
    "UnknownModelError": "The requested model is not available.",
    "UnknownGroupError": "The requested search group is not available.",
    "UsageLimitExceeded": "The assistant reached its step limit before finishing.",
}


def safe_error_message(exc: BaseException) -> str:
    """Return a message that is safe to show to end users."""
    return SAFE_ERROR_MESSAGES.get(type(exc).__name__, "An error occurred processing your request.")
