# errors.py
# Exception hierarchy for the orchestration engine.
#
# Only NoProvidersError (and registry listing failures) are meant to reach
# the caller of Orchestrator.run. Everything else is recovered inside the
# engine and surfaced as a completion reason.


class OrchestratorError(Exception):
    """Base class for every error raised by this package."""


class ConfigError(OrchestratorError):
    """Raised when an environment setting cannot be parsed."""


class NoProvidersError(OrchestratorError):
    """Raised when a run is requested but no tool provider is registered."""


class ToolInvocationError(OrchestratorError):
    """Raised by a provider when a tool call fails."""

    def __init__(self, tool_name: str, message: str) -> None:
        super().__init__(message)
        self.tool_name = tool_name


class PlanningServiceError(OrchestratorError):
    """Raised when the language-model service call itself fails."""


class PlanParseError(OrchestratorError):
    """Raised when planning-service text cannot be parsed into the expected shape."""


class PlanIntegrityError(OrchestratorError):
    """Raised on an attempt to rewrite or re-complete an executed step."""
