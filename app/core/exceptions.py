"""Core custom exceptions for the application."""


class PipelineError(Exception):
    """Base exception for pipeline-related errors."""


class ConfigurationError(PipelineError):
    """Exception for configuration-related errors (e.g., missing templates, invalid settings)."""


class MissingInputError(PipelineError):
    """Raised before any generation call when a required input (e.g. the database text) is absent."""


class UpstreamUnresolvedError(PipelineError):
    """Raised when a section's prompt needs the previous section's content and none is resolved."""

    def __init__(self, section_name: str, upstream_name: str, reason: str = "no resolved content"):
        self.section_name = section_name
        self.upstream_name = upstream_name
        super().__init__(f"Cannot build section '{section_name}': upstream section '{upstream_name}' has {reason}.")


class OutOfRangeError(PipelineError):
    """Raised when navigating to a section index outside the pipeline."""

    def __init__(self, index: int, size: int):
        self.index = index
        self.size = size
        super().__init__(f"Section index {index} out of range [0, {size}).")


class SelectionError(PipelineError):
    """Raised when a winner transition is not allowed (unknown variant, failed variant, no winner)."""


class GenerationInProgressError(PipelineError):
    """Raised when a fan-out is requested for a section that already has one in flight."""


class SessionNotFoundError(PipelineError):
    """Raised when a session id does not refer to a live session."""
