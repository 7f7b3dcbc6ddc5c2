class AssistantError(Exception):
    """Base class for lecture assistant errors."""


# --- caller faults (never retried) ---
class ValidationError(AssistantError):
    pass


class NotFoundError(AssistantError):
    pass


class OwnershipError(AssistantError):
    """Raised when a caller touches a document it does not own."""


# --- upstream collaborators (one synchronous attempt, no built-in retry) ---
class UpstreamError(AssistantError):
    pass


class ExtractionError(UpstreamError):
    """Encrypted, empty or unreadable input."""


class ProviderError(UpstreamError):
    """Generation transport failure, timeout or non-success response."""


class IndexingError(UpstreamError):
    pass


class PoolSaturatedError(UpstreamError):
    """The generation worker pool queue is full."""


# --- generated output ---
class ParseError(AssistantError):
    pass


class MalformedFragmentError(ParseError):
    pass


class EmptyResultError(AssistantError):
    """Valid but degenerate result: zero chunks, zero quiz questions, blank text."""


class InvalidTransitionError(AssistantError):
    pass
