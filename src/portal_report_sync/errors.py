from __future__ import annotations

from typing import Optional


class PortalError(RuntimeError):
    """
    Base class for failures while driving a portal.

    The runner decides how far a failure propagates (work unit, account, or run) from the subclass.
    """


class AuthenticationError(PortalError):
    """
    Raised when the post-login signal never shows up. Never retried: repeated logins risk an account lockout.
    """

    def __init__(self, account: str, reason: str = "") -> None:
        self.account = account
        self.reason = reason
        msg = f"Login failed for account {account!r}"
        if reason:
            msg += f": {reason}"
        super().__init__(msg)


class NavigationError(PortalError):
    """
    A waypoint never appeared, or the portal rejected the hover/click/select on it.
    """

    def __init__(self, waypoint: str, timeout_ms: Optional[int] = None, reason: str = "") -> None:
        self.waypoint = waypoint
        self.timeout_ms = timeout_ms
        self.reason = reason
        if reason:
            msg = f"Navigation waypoint {waypoint!r} failed: {reason}"
        else:
            msg = f"Navigation waypoint {waypoint!r} did not appear"
            if timeout_ms is not None:
                msg += f" within {timeout_ms / 1000:.1f}s"
        super().__init__(msg)


class OptionUnavailableError(PortalError):
    """
    The requested report/filter option is missing or hidden (often entitlement-gated per account).
    """

    def __init__(self, label: str) -> None:
        self.label = label
        super().__init__(f"Option {label!r} is not available")


class BackendError(PortalError):
    def __init__(self, label: str, status: str) -> None:
        self.label = label
        self.status = status
        super().__init__(f"Portal reported status {status!r} for {label!r}")


class PollTimeoutError(PortalError):
    def __init__(self, label: str, attempts: int) -> None:
        self.label = label
        self.attempts = attempts
        super().__init__(f"{label!r} was not ready after {attempts} attempts")


class PersistError(PortalError):
    """Raised when a download or the final result file could not be written."""


class ExtractionError(PortalError):
    def __init__(self, filter_label: str, reason: str) -> None:
        self.filter_label = filter_label
        super().__init__(f"Could not read results for filter {filter_label!r}: {reason}")


class InvalidTransitionError(RuntimeError):
    """Raised when a report status is asked to leave a terminal state."""
