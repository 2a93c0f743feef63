from __future__ import annotations

import pytest

from fakes import FakeReportScreen
from portal_report_sync.errors import (
    BackendError,
    InvalidTransitionError,
    OptionUnavailableError,
    PollTimeoutError,
)
from portal_report_sync.models import ReportProgress, ReportRequest, ReportStatus
from portal_report_sync.portal.poller import ReportPoller


REQ = ReportRequest(label="Facturas a vencer próximos 12 días", file_stem="facturas12dias")


def test_ready_on_third_attempt_downloads() -> None:
    screen = FakeReportScreen(statuses=("Pendiente", "Procesando", "Finalizado"), ready_on=3)
    outcome = ReportPoller(max_attempts=5, interval_seconds=15).generate_and_poll(screen, REQ, account="u1")

    assert outcome.status is ReportStatus.READY
    assert outcome.attempts == 3
    assert outcome.download is screen.downloads[0]
    assert screen.generated == [REQ.label]
    assert screen.pauses == [15.0, 15.0]
    outcome.raise_for_status()


def test_error_on_attempt_three_is_error_not_timeout() -> None:
    screen = FakeReportScreen(statuses=("Pendiente", "Pendiente", "ERROR"))
    outcome = ReportPoller(max_attempts=10, interval_seconds=1).generate_and_poll(screen, REQ)

    assert outcome.status is ReportStatus.ERROR
    assert outcome.failure == "backend"
    assert outcome.attempts == 3
    assert len(screen.pauses) == 2
    with pytest.raises(BackendError):
        outcome.raise_for_status()


def test_never_ready_times_out_after_exactly_max_attempts() -> None:
    screen = FakeReportScreen(statuses=("Pendiente",))
    poller = ReportPoller(max_attempts=7, interval_seconds=15)
    outcome = poller.generate_and_poll(screen, REQ)

    assert outcome.status is ReportStatus.TIMED_OUT
    assert outcome.attempts == 7
    assert screen.attempt == 7
    assert outcome.download is None
    with pytest.raises(PollTimeoutError):
        outcome.raise_for_status()


@pytest.mark.parametrize("max_attempts,interval", [(1, 15.0), (3, 0.5), (40, 15.0)])
def test_total_wait_is_bounded_by_attempts_times_interval(max_attempts: int, interval: float) -> None:
    screen = FakeReportScreen(statuses=("",))
    ReportPoller(max_attempts=max_attempts, interval_seconds=interval).generate_and_poll(screen, REQ)

    assert sum(screen.pauses) <= max_attempts * interval
    assert screen.attempt == max_attempts


def test_error_takes_priority_over_ready_icon() -> None:
    screen = FakeReportScreen(statuses=("  Error ",), ready_on=1)
    outcome = ReportPoller(max_attempts=3, interval_seconds=0).generate_and_poll(screen, REQ)

    assert outcome.status is ReportStatus.ERROR
    assert screen.downloads == []


def test_missing_option_returns_error_without_generating() -> None:
    screen = FakeReportScreen(options={"Otro reporte": True})
    outcome = ReportPoller().generate_and_poll(screen, REQ)

    assert outcome.status is ReportStatus.ERROR
    assert outcome.failure == "option_unavailable"
    assert outcome.attempts == 0
    assert screen.generated == []
    with pytest.raises(OptionUnavailableError):
        outcome.raise_for_status()


def test_hidden_option_returns_error_without_generating() -> None:
    screen = FakeReportScreen(options={REQ.label: False})
    outcome = ReportPoller().generate_and_poll(screen, REQ)

    assert outcome.failure == "option_unavailable"
    assert screen.attempt == 0


@pytest.mark.parametrize(
    "screen",
    [
        FakeReportScreen(statuses=("Pendiente",), ready_on=2),
        FakeReportScreen(statuses=("Pendiente", "error")),
        FakeReportScreen(statuses=("Pendiente",)),
        FakeReportScreen(options={}),
    ],
)
def test_status_history_is_monotonic(screen: FakeReportScreen) -> None:
    outcome = ReportPoller(max_attempts=4, interval_seconds=0).generate_and_poll(screen, REQ)

    terminal = [s for s in outcome.history if s.is_terminal]
    assert outcome.history[0] is ReportStatus.PENDING
    assert terminal == [outcome.status]
    assert outcome.history[-1] is outcome.status


def test_progress_refuses_to_leave_terminal_state() -> None:
    progress = ReportProgress(REQ)
    progress.advance(ReportStatus.PENDING)
    progress.advance(ReportStatus.READY)

    for status in ReportStatus:
        with pytest.raises(InvalidTransitionError):
            progress.advance(status)
    assert progress.status is ReportStatus.READY


def test_poller_rejects_zero_attempts() -> None:
    with pytest.raises(ValueError):
        ReportPoller(max_attempts=0)
