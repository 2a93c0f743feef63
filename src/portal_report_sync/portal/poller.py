from __future__ import annotations

import logging
from typing import Any, Iterable, Optional, Protocol

from ..models import FailureKind, ReportOutcome, ReportProgress, ReportRequest, ReportStatus


logger = logging.getLogger(__name__)


class ReportScreen(Protocol):
    """
    The page operations the poller needs. `ExportablesScreen` drives a real page; tests use fakes.
    """

    def find_option(self, label: str) -> Optional[Any]: ...

    def option_visible(self, option: Any) -> bool: ...

    def select_option(self, option: Any) -> None: ...

    def generate(self) -> None: ...

    def refresh(self) -> None: ...

    def read_status(self) -> Optional[str]: ...

    def ready_handle(self) -> Optional[Any]: ...

    def download(self, handle: Any) -> Any: ...

    def pause(self, seconds: float) -> None: ...


class ReportPoller:
    """
    Submit a report generation request and poll its status row until it is ready, errors, or the attempt
    ceiling is hit.

    The portal enqueues generation server-side and never pushes completion, so the only signal is the
    status cell of the newest request row. Time spent sleeping between polls never exceeds
    `max_attempts * interval_seconds`.
    """

    def __init__(
        self,
        *,
        max_attempts: int = 40,
        interval_seconds: float = 15.0,
        error_tokens: Iterable[str] = ("error",),
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be >= 1")
        if interval_seconds < 0:
            raise ValueError("interval_seconds must be >= 0")
        self.max_attempts = int(max_attempts)
        self.interval_seconds = float(interval_seconds)
        self.error_tokens = frozenset(_normalize(t) for t in error_tokens)

    def generate_and_poll(self, screen: ReportScreen, request: ReportRequest, *, account: str = "") -> ReportOutcome:
        progress = ReportProgress(request)

        option = screen.find_option(request.label)
        if option is None:
            logger.warning("Could not find option %r for %s", request.label, account)
            return self._finish(progress, ReportStatus.ERROR, attempts=0, failure="option_unavailable")
        if not screen.option_visible(option):
            logger.warning("Option %r is not visible for %s", request.label, account)
            return self._finish(progress, ReportStatus.ERROR, attempts=0, failure="option_unavailable")

        screen.select_option(option)
        screen.generate()
        logger.info("Generation requested for %r (%s)", request.label, account)

        status_text = ""
        for attempt in range(1, self.max_attempts + 1):
            screen.refresh()
            status_text = _normalize(screen.read_status())
            logger.info("Report status for %r: %s", request.label, status_text or "<empty>")

            # Error wins over a ready icon seen in the same read.
            if status_text in self.error_tokens:
                logger.error("Portal returned %r for report %r (%s)", status_text, request.label, account)
                return self._finish(
                    progress,
                    ReportStatus.ERROR,
                    attempts=attempt,
                    failure="backend",
                    last_status_text=status_text,
                )

            handle = screen.ready_handle()
            if handle is not None:
                progress.advance(ReportStatus.READY)
                download = screen.download(handle)
                return ReportOutcome(
                    request=request,
                    status=progress.status,
                    attempts=attempt,
                    download=download,
                    last_status_text=status_text,
                    history=list(progress.history),
                )

            progress.advance(ReportStatus.PENDING)
            if attempt < self.max_attempts:
                logger.info("Attempt %d/%d waiting for report to be ready...", attempt, self.max_attempts)
                screen.pause(self.interval_seconds)

        logger.error("Report %r not ready after %d attempts (%s)", request.label, self.max_attempts, account)
        return self._finish(
            progress,
            ReportStatus.TIMED_OUT,
            attempts=self.max_attempts,
            failure="timeout",
            last_status_text=status_text,
        )

    def _finish(
        self,
        progress: ReportProgress,
        status: ReportStatus,
        *,
        attempts: int,
        failure: FailureKind,
        last_status_text: str = "",
    ) -> ReportOutcome:
        progress.advance(status)
        return ReportOutcome(
            request=progress.request,
            status=progress.status,
            attempts=attempts,
            failure=failure,
            last_status_text=last_status_text,
            history=list(progress.history),
        )


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().casefold()
