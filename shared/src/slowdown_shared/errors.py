"""Error taxonomy shared by the backend and the client."""


class SlowDownError(Exception):
    """Base class for all SlowDown errors."""

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ValidationError(SlowDownError):
    """Bad input shape or range. Raised before any state change."""


class PermissionDenied(SlowDownError):
    """Role violation, or a missing platform permission."""


class AuthenticationFailed(PermissionDenied):
    """Missing, invalid or expired credentials."""


class Conflict(SlowDownError):
    """The operation conflicts with the current state."""


class DuplicatePendingRequest(Conflict):
    def __init__(self, message: str = "You already have a pending request"):
        super().__init__(message)


class RequestNotPending(Conflict):
    def __init__(self, message: str = "Request has already been processed"):
        super().__init__(message)


class NotFound(SlowDownError):
    """Unknown user or request id."""


class TransientSyncFailure(SlowDownError):
    """Network or backend unreachable during a best-effort sync."""
