"""Ingestion error taxonomy.

Each error carries the HTTP status and the short message returned to the
caller as `{"error": message}`.
"""

from typing import Optional


class IngestError(Exception):
    status_code = 500
    message = "Internal server error"

    def __init__(self, message: Optional[str] = None):
        if message:
            self.message = message
        super().__init__(self.message)


class InvalidOrigin(IngestError):
    status_code = 403
    message = "Invalid origin"


class UnknownEventKind(IngestError):
    status_code = 404
    message = "Unsupported event type"


class MalformedBody(IngestError):
    status_code = 400
    message = "Invalid JSON"


class InvalidAmount(IngestError):
    status_code = 400
    message = "Invalid amount_oz"


class RateLimited(IngestError):
    status_code = 429
    message = "Rate limit exceeded"


class DuplicateRequest(IngestError):
    status_code = 409
    message = "Duplicate request"


class PersistenceFailure(IngestError):
    """Store failure. The message stays generic so storage details don't leak."""

    status_code = 500
    message = "Internal server error"


class ArchiveSyncFailure(Exception):
    """Raised inside archive_sync only; never reaches the HTTP layer."""
