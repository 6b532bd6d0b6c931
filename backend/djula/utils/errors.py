# /djula/utils/errors.py

# Error taxonomy for the conversation engine. None of these is process-fatal:
# each component catches its own family and degrades, and the engine's outer
# guard answers with the static apology.


class DjulaError(Exception):
    """Base class for all application errors."""


class ValidationError(DjulaError):
    """Malformed inbound webhook payload."""


class ClassificationError(DjulaError):
    """Intent classification could not be obtained or parsed."""


class ActionError(DjulaError):
    """A back-office collaborator call failed."""

    def __init__(self, operation: str, message: str):
        super().__init__(f"{operation}: {message}")
        self.operation = operation


class RenderError(DjulaError):
    """An outbound message could not be built or was rejected by the channel."""


class CompletionError(DjulaError):
    """The language-model completion service failed or returned nothing."""


class CircuitOpenError(DjulaError):
    """The circuit breaker for a dependency is open."""
