"""
Custom exceptions for the listing sync engine with structured error context.

Each exception carries a context dictionary for debugging and monitoring,
and optionally the exception that caused it.

Exception Hierarchy:
    SyncException (base)
    ├── ConfigurationError
    ├── LockContentionError
    ├── UpstreamError
    │   ├── TransientUpstreamError (retryable)
    │   │   ├── NetworkError
    │   │   ├── RateLimitError
    │   │   └── ServerError
    │   └── PermanentUpstreamError (non-retryable)
    │       ├── AuthenticationError
    │       ├── ResourceNotFoundError
    │       ├── MalformedResponseError
    │       └── RetriesExhaustedError
    ├── RecordProcessingError
    │   ├── NormalizationError
    │   └── MissingListingKeyError
    ├── CircuitBreakerOpenError
    ├── RelatedDataError
    └── StoreError
        └── UpsertError
"""

from typing import Optional, Dict, Any
from datetime import datetime


class SyncException(Exception):
    """
    Base exception for all sync-related errors.

    Attributes:
        message: Human-readable error message
        context: Additional context information (resource, listing key, etc.)
        original_exception: The original exception that was caught (if any)
    """

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None
    ):
        self.message = message
        self.context = context or {}
        self.original_exception = original_exception
        self.timestamp = datetime.utcnow()

        self.context["error_timestamp"] = self.timestamp.isoformat()

        super().__init__(message)
        if original_exception:
            self.__cause__ = original_exception

    def __str__(self) -> str:
        """Format error message with context."""
        base_msg = f"{self.__class__.__name__}: {self.message}"

        if self.context:
            context_str = ", ".join(f"{k}={v}" for k, v in self.context.items())
            base_msg += f" | Context: {context_str}"

        if self.original_exception:
            base_msg += f" | Caused by: {type(self.original_exception).__name__}: {str(self.original_exception)}"

        return base_msg

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for logging/storage."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "original_error": str(self.original_exception) if self.original_exception else None
        }


# ============================================================================
# Retry Strategy Mixins
# ============================================================================

class RetryableError(SyncException):
    """
    Mixin for errors that should trigger retry logic.

    Use this for transient errors like:
    - Network timeouts
    - Rate limiting (HTTP 429)
    - Server errors (HTTP 5xx)
    """
    pass


class NonRetryableError(SyncException):
    """
    Mixin for errors that should NOT trigger retry logic.

    Use this for permanent errors like:
    - Authentication failures (HTTP 401, 403)
    - Other client errors (HTTP 4xx)
    - Malformed response bodies
    """
    pass


# ============================================================================
# Run-level Errors
# ============================================================================

class ConfigurationError(SyncException):
    """Upstream credentials or other required settings are missing."""
    pass


class LockContentionError(SyncException):
    """
    Another run holds the sync lock.

    Expected under normal concurrent scheduling. No run record is created
    or mutated when this is raised.
    """
    pass


class CircuitBreakerOpenError(SyncException):
    """
    Too many consecutive per-record failures; the run is aborted.

    Context should include:
        - consecutive_errors: Number of consecutive failures observed
        - threshold: The configured threshold
    """
    pass


# ============================================================================
# Upstream Errors
# ============================================================================

class UpstreamError(SyncException):
    """
    Base exception for upstream API failures.

    Context should include:
        - url: The endpoint that failed (token stripped)
        - status_code: HTTP status code (if applicable)
        - response_body: Response body (truncated if large)
        - retry_count: Number of attempts made
    """
    pass


class TransientUpstreamError(RetryableError, UpstreamError):
    """Upstream failure that may succeed on retry."""
    pass


class NetworkError(TransientUpstreamError):
    """Connection failures and timeouts."""
    pass


class RateLimitError(TransientUpstreamError):
    """Rate limiting errors (HTTP 429) that should be retried with backoff."""

    def __init__(
        self,
        message: str,
        context: Optional[Dict[str, Any]] = None,
        original_exception: Optional[Exception] = None,
        retry_after: Optional[float] = None
    ):
        super().__init__(message, context, original_exception)
        self.retry_after = retry_after  # Seconds to wait before retry
        if retry_after:
            self.context["retry_after"] = retry_after


class ServerError(TransientUpstreamError):
    """HTTP 5xx responses."""
    pass


class PermanentUpstreamError(NonRetryableError, UpstreamError):
    """Upstream failure that aborts the run immediately."""
    pass


class AuthenticationError(PermanentUpstreamError):
    """Authentication failures (HTTP 401, 403)."""
    pass


class ResourceNotFoundError(PermanentUpstreamError):
    """Resource not found errors (HTTP 404)."""
    pass


class MalformedResponseError(PermanentUpstreamError):
    """Response body is not valid JSON or not an OData envelope."""
    pass


class RetriesExhaustedError(PermanentUpstreamError):
    """A transient failure persisted through every retry attempt."""
    pass


# ============================================================================
# Record Errors
# ============================================================================

class RecordProcessingError(SyncException):
    """
    A single listing could not be processed.

    Isolated: logged, counted and skipped. Contributes to the
    consecutive-error circuit breaker.
    """
    pass


class NormalizationError(RecordProcessingError):
    """
    Exception raised when a provider record fails normalization.

    Context should include:
        - entity_kind: Kind of entity being normalized
        - listing_key: Provider key of the record (if known)
        - field_errors: Validation errors by field
    """
    pass


class MissingListingKeyError(RecordProcessingError):
    """A listing arrived without its ListingKey."""
    pass


class RelatedDataError(SyncException):
    """
    Agent, office, media or open house enrichment failed.

    Isolated per resource type; never fails the run.
    """
    pass


# ============================================================================
# Store Errors
# ============================================================================

class StoreError(SyncException):
    """
    Exception raised when a store operation fails.

    Context should include:
        - operation: Type of database operation (INSERT, UPDATE, UPSERT, DELETE)
        - table_name: Name of the table
    """
    pass


class UpsertError(StoreError):
    """
    Exception raised when an upsert fails.

    Context should include:
        - record_key: Identity of the record being upserted
        - table_name: Name of the table
    """
    pass
