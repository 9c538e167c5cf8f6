"""Exception hierarchy for stackscan.

Every domain error inherits from ``StackScanError`` so the service layer
can surface any of them as a single user-facing message.
"""


class StackScanError(Exception):
    """Base exception for all stackscan errors."""


class ValidationError(StackScanError):
    """Raised when the input URL does not contain a recognizable video ID."""


# ---------------------------------------------------------------------------
# Transcript errors
# ---------------------------------------------------------------------------


class TranscriptFetchError(StackScanError):
    """Raised when the transcript service fails or reports an error."""


class EmptyTranscriptError(StackScanError):
    """Raised when the transcript service succeeds but returns no content."""


# ---------------------------------------------------------------------------
# AI errors
# ---------------------------------------------------------------------------


class LLMError(StackScanError):
    """Raised when an LLM provider request fails."""


class ExtractionError(StackScanError):
    """Raised when the extraction response cannot be turned into tools."""


class MalformedResponseError(ExtractionError):
    """Raised when the response text contains no JSON object."""


class JsonSyntaxError(ExtractionError):
    """Raised when the located JSON object does not parse."""


class SafetyFilterError(ExtractionError):
    """Raised when the provider's content-safety filter blocks the request."""


# ---------------------------------------------------------------------------
# Storage errors
# ---------------------------------------------------------------------------


class StorageError(StackScanError):
    """Raised when the key-value store cannot be read or written."""


class StorageQuotaExceededError(StorageError):
    """Raised when a write would exceed the store's capacity."""


# ---------------------------------------------------------------------------
# Archive lookups
# ---------------------------------------------------------------------------


class ResultNotFoundError(StackScanError):
    """Raised when a requested result is not in the archive."""


class AmbiguousResultError(StackScanError):
    """Raised when a query matches multiple archived results."""
