"""Error taxonomy shared by the HTTP clients and the sync engine.

Every failure a remote service can produce is surfaced as one of a closed
set of exception classes so call sites can branch on the class instead of
inspecting messages:

- ``NotFoundError``   -- the remote object (project, document, page) does
  not exist.  Usually recoverable: triggers a fallback or a skip.
- ``TransportError``  -- non-2xx status, network failure or a body that is
  not JSON.  Propagates unless a call site isolates per-item failures.
- ``ValidationError`` -- a value that cannot be used (e.g. a destination
  page without an edit timestamp).
- ``FetchError``      -- the source tree could not be built at all.
"""

from __future__ import annotations


class SyncError(Exception):
    """Base class for all sync failures.

    Attributes:
        kind: Short tag naming the error variant.
    """

    kind = "error"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class NotFoundError(SyncError):
    """Remote object does not exist."""

    kind = "not_found"


class TransportError(SyncError):
    """HTTP or decoding failure talking to a remote service.

    Attributes:
        status: HTTP status code, or ``None`` when no response was received.
    """

    kind = "transport"

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ValidationError(SyncError):
    """A value is present but unusable."""

    kind = "validation"


class FetchError(SyncError):
    """The source project could not be resolved or read."""

    kind = "fetch"
