"""PINGSYNC - Error Taxonomy.

Entity-scoped errors (UpstreamError) stop at the fetch scheduler.
Run-scoped errors (SinkFatalError, SyncAbortedError) reach the process boundary.
"""

from typing import Any, Optional


class PingsyncError(Exception):
    """Base class for all pingsync errors."""


class ConfigError(PingsyncError):
    """Raised when settings required by a command are missing or invalid."""


class UpstreamError(PingsyncError):
    """Raised when the Pingdom API fails after the client's retry budget."""

    def __init__(self, message: str, status_code: int = 0, error_code: int = 0):
        self.status_code = status_code
        self.error_code = error_code
        super().__init__(message)


class SinkError(PingsyncError):
    """Graphite rejected one batch. Only that batch stays uncommitted."""

    def __init__(self, message: str, status_code: int = 0):
        self.status_code = status_code
        super().__init__(message)


class SinkFatalError(SinkError):
    """Graphite is unreachable or refuses us. The whole run must stop."""


class StateCorruptError(PingsyncError):
    """The persisted manifest document could not be read or parsed."""


class CheckpointRegressionError(PingsyncError):
    """A commit would shrink an already-delivered watermark band."""


class SyncAbortedError(PingsyncError):
    """A sync pass stopped early; ``report`` holds what was achieved."""

    def __init__(self, message: str, report: Optional[Any] = None):
        self.report = report
        super().__init__(message)
