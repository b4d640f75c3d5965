"""
LinkRelay error taxonomy.

Store and router operations raise these; the pipeline converts them into a
persisted ``failed`` status; the HTTP layer maps them to status codes.
"""
from __future__ import annotations


class LinkRelayError(Exception):
    """Base class for every error raised by LinkRelay services."""

    status_code = 500

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


class ValidationError(LinkRelayError):
    """Malformed or unsupported URL, bad filter values."""

    status_code = 422


class ContractViolationError(LinkRelayError):
    """An update would leave a record in a contradictory state."""

    status_code = 422


class NotFoundError(LinkRelayError):
    status_code = 404


class ConflictError(LinkRelayError):
    """Duplicate assignment or credential, or a lost status race."""

    status_code = 409


class DependencyError(LinkRelayError):
    """Extraction service or delivery provider unreachable or rejected the call."""

    status_code = 502


class ResourceLimitError(LinkRelayError):
    """Payload exceeds the delivery provider's cap."""

    status_code = 413


class FileIOError(LinkRelayError):
    """Materialization or cleanup failed on the local filesystem."""

    status_code = 500
