"""
Domain error taxonomy for the session & attendance core.

Every error carries the HTTP status it maps to and the message that is
safe to show to the end user. Anything more specific goes to the log.
"""

from __future__ import annotations


class PortalError(Exception):
    """Base class for business-rule and collaborator failures."""

    status_code: int = 400
    public_message: str = "Request could not be processed"
    code: str = "PortalError"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.public_message)
        self.message = message or self.public_message

    def __init_subclass__(cls, **kwargs) -> None:
        super().__init_subclass__(**kwargs)
        if "code" not in cls.__dict__:
            cls.code = cls.__name__


# ── Credentials & sessions ──────────────────────────────────────────
class InvalidCredentials(PortalError):
    status_code = 401
    public_message = "Invalid credentials"

    def __init__(self, message: str | None = None) -> None:
        # The user-facing text never varies, whatever the underlying cause.
        super().__init__(self.public_message)
        self.reason = message or self.public_message


class AccountMisconfigured(InvalidCredentials):
    """The user row exists but carries no usable password hash."""

    code = "InvalidCredentials"


class SessionError(PortalError):
    status_code = 401
    public_message = "Could not validate credentials"


class SessionExpired(SessionError):
    code = "SessionInvalid"


class SessionInvalid(SessionError):
    pass


# ── Attendance state machine ────────────────────────────────────────
class OutsideCheckInWindow(PortalError):
    status_code = 403
    public_message = "Check-in is not allowed at this time"


class OutsideCheckOutWindow(PortalError):
    status_code = 403
    public_message = "Check-out is not allowed at this time"


class AlreadyCheckedIn(PortalError):
    status_code = 409
    public_message = "Already checked in today"


class AlreadyCheckedOut(PortalError):
    status_code = 409
    public_message = "Already checked out today"


class NotCheckedIn(PortalError):
    status_code = 409
    public_message = "No open check-in for today"


class InvalidCorrection(PortalError):
    status_code = 422
    public_message = "Invalid attendance correction"


class RecordNotFound(PortalError):
    status_code = 404
    public_message = "Attendance record not found"


# ── Row-store collaborator ──────────────────────────────────────────
class StorageUnavailable(PortalError):
    status_code = 503
    public_message = "Storage temporarily unavailable, please retry"
