"""
Core utilities and configuration for the listing sync engine.

This package provides foundational components used throughout the pipeline:

Modules:
    config: Application configuration and environment variable management
    database: Database connection and session management
    exceptions: Custom exception hierarchy for error handling
    logging: Logging configuration and utilities

Usage:
    from core.config import settings
    from core.database import async_session_maker
    from core.exceptions import LockContentionError, PermanentUpstreamError
    from core.logging import setup_logging

Example:
    # Initialize logging
    setup_logging()

    # Get database session
    async with async_session_maker() as session:
        # Perform database operations
        pass
"""

from core.config import settings
from core.database import async_session_maker
from core.logging import setup_logging
from core.exceptions import (
    SyncException,
    ConfigurationError,
    LockContentionError,
    CircuitBreakerOpenError,
    UpstreamError,
    TransientUpstreamError,
    PermanentUpstreamError,
    NetworkError,
    RateLimitError,
    ServerError,
    AuthenticationError,
    ResourceNotFoundError,
    MalformedResponseError,
    RetriesExhaustedError,
    RecordProcessingError,
    NormalizationError,
    MissingListingKeyError,
    RelatedDataError,
    StoreError,
    UpsertError,
    RetryableError,
    NonRetryableError,
)

__all__ = [
    "settings",
    "async_session_maker",
    "setup_logging",
    # Exceptions
    "SyncException",
    "ConfigurationError",
    "LockContentionError",
    "CircuitBreakerOpenError",
    "UpstreamError",
    "TransientUpstreamError",
    "PermanentUpstreamError",
    "NetworkError",
    "RateLimitError",
    "ServerError",
    "AuthenticationError",
    "ResourceNotFoundError",
    "MalformedResponseError",
    "RetriesExhaustedError",
    "RecordProcessingError",
    "NormalizationError",
    "MissingListingKeyError",
    "RelatedDataError",
    "StoreError",
    "UpsertError",
    "RetryableError",
    "NonRetryableError",
]
