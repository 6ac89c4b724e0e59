"""Exception hierarchy for dynastore.

All errors raised by the store inherit from DynastoreException so callers
can catch one type, or a specific subclass for targeted handling.

Categories:
- BusinessException: data that violates the store's contract (bad payloads)
- InfrastructureException: backend, network and table failures

A missing or expired session is not an error: ``get`` returns ``None``.
"""

from __future__ import annotations


# =============================================================================
# Base Exception
# =============================================================================


class DynastoreException(Exception):
    """Base exception for all dynastore errors.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. the botocore error code).
        context: Arbitrary key-value pairs for error context and debugging.
    """

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.context: dict = context if context is not None else {}


# =============================================================================
# Business Exceptions
# =============================================================================


class BusinessException(DynastoreException):
    """Violations of the session data contract."""


class DataIntegrityException(BusinessException):
    """Session data could not be converted to or from its stored form."""


class SessionParseException(DataIntegrityException):
    """A stored session payload could not be deserialized."""


class SessionSerializationException(DataIntegrityException):
    """A session payload could not be serialized for storage."""


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(DynastoreException):
    """Infrastructure failures: database, network, credentials."""


class BackendException(InfrastructureException):
    """The key-value backend failed to complete an operation.

    Raised for network errors, authentication failures, throttling and
    missing tables alike. The store never retries; the backend client's
    own retry policy is the only one applied.
    """


class ScanException(BackendException):
    """The scan step of a reap pass failed; the pass was aborted."""
