from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Optional, Sequence, Union

from playwright.sync_api import Error as PlaywrightError

from .aggregate import ResultSet
from .errors import (
    AuthenticationError,
    BackendError,
    ExtractionError,
    NavigationError,
    OptionUnavailableError,
    PersistError,
    PollTimeoutError,
)
from .models import Credential, DownloadArtifact, NavigationTarget, ReportRequest, TableLayout
from .portal.downloads import DownloadMaterializer
from .portal.navigation import navigate
from .portal.poller import ReportPoller
from .portal.tables import extract_table


logger = logging.getLogger(__name__)

NavigateFn = Callable[[Any, NavigationTarget], None]


@dataclass(frozen=True)
class WorkUnitFailure:
    account: str
    unit: str
    kind: str
    message: str


@dataclass
class RunSummary:
    flow: str
    artifacts: list[DownloadArtifact] = field(default_factory=list)
    failures: list[WorkUnitFailure] = field(default_factory=list)
    records: int = 0
    expected_downloads: int = 0
    results_path: Optional[Path] = None
    seconds: float = 0.0

    @property
    def failed(self) -> bool:
        # Only the download flow fails on a missing unit; extraction failures are logged and tolerated.
        if self.flow == "reports":
            return len(self.artifacts) < self.expected_downloads
        return False

    def record_failure(self, account: str, unit: str, error: BaseException) -> None:
        self.failures.append(
            WorkUnitFailure(account=account, unit=unit, kind=type(error).__name__, message=str(error))
        )


class ReportDownloadRun:
    """
    For each account: log in, navigate to the report page, then generate + poll + download every report
    in declaration order before closing the session.
    """

    def __init__(
        self,
        *,
        sessions: Any,
        target: NavigationTarget,
        reports: Sequence[ReportRequest],
        poller: ReportPoller,
        materializer: DownloadMaterializer,
        screen_factory: Callable[[Any], Any],
        navigate_fn: NavigateFn = navigate,
    ) -> None:
        self.sessions = sessions
        self.target = target
        self.reports = list(reports)
        self.poller = poller
        self.materializer = materializer
        self.screen_factory = screen_factory
        self.navigate_fn = navigate_fn

    def run(self, credentials: Sequence[Credential]) -> RunSummary:
        t0 = time.time()
        summary = RunSummary(flow="reports", expected_downloads=len(credentials) * len(self.reports))

        for cred in credentials:
            logger.info("Logging in with user: %s", cred.username)
            try:
                with self.sessions.session(cred) as session:
                    _navigate_or_capture(self.sessions, session, self.navigate_fn, self.target)
                    screen = self.screen_factory(session.page)
                    for request in self.reports:
                        self._run_report(session, screen, request, summary)
            except (AuthenticationError, NavigationError, PlaywrightError) as e:
                logger.error("Skipping account %s: %s", cred.username, e)
                summary.record_failure(cred.username, "", e)

        summary.seconds = time.time() - t0
        logger.info(
            "All reports processed (downloaded=%d expected=%d seconds=%.1f)",
            len(summary.artifacts),
            summary.expected_downloads,
            summary.seconds,
        )
        return summary

    def _run_report(self, session: Any, screen: Any, request: ReportRequest, summary: RunSummary) -> None:
        account = session.account
        logger.info("Processing report: %s", request.label)
        try:
            outcome = self.poller.generate_and_poll(screen, request, account=account)
            outcome.raise_for_status()
            artifact = self.materializer.materialize(outcome.download, account, request)
        except OptionUnavailableError as e:
            logger.warning("%s (%s)", e, account)
            summary.record_failure(account, request.label, e)
            return
        except (BackendError, PollTimeoutError, PersistError, PlaywrightError) as e:
            logger.error("Report %r could not be downloaded for user %s: %s", request.label, account, e)
            self.sessions.capture(session, f"report_{request.file_stem}")
            summary.record_failure(account, request.label, e)
            return
        summary.artifacts.append(artifact)


class TableExtractionRun:
    """
    For each account: log in, navigate to the results view, then apply every filter in order and scrape the
    grid into the shared `ResultSet`. The result file is written once, after the last account.
    """

    def __init__(
        self,
        *,
        sessions: Any,
        target: NavigationTarget,
        filters: Sequence[str],
        layout: TableLayout,
        screen_factory: Callable[[Any], Any],
        results: Optional[ResultSet] = None,
        results_path: Optional[Union[str, Path]] = None,
        navigate_fn: NavigateFn = navigate,
    ) -> None:
        self.sessions = sessions
        self.target = target
        self.filters = list(filters)
        self.layout = layout
        self.screen_factory = screen_factory
        self.results = results if results is not None else ResultSet()
        self.results_path = Path(results_path) if results_path else None
        self.navigate_fn = navigate_fn

    def run(self, credentials: Sequence[Credential]) -> RunSummary:
        t0 = time.time()
        summary = RunSummary(flow="extraction")

        for cred in credentials:
            logger.info("Logging in with user: %s", cred.username)
            try:
                with self.sessions.session(cred) as session:
                    _navigate_or_capture(self.sessions, session, self.navigate_fn, self.target)
                    screen = self.screen_factory(session.page)
                    for label in self.filters:
                        self._run_filter(session, screen, label, summary)
            except (AuthenticationError, NavigationError, PlaywrightError) as e:
                logger.error("Skipping account %s: %s", cred.username, e)
                summary.record_failure(cred.username, "", e)

        summary.records = len(self.results)
        if self.results_path is not None:
            # PersistError here is fatal to the run.
            summary.results_path = self.results.flush(self.results_path)

        summary.seconds = time.time() - t0
        logger.info("Extraction finished (records=%d seconds=%.1f)", summary.records, summary.seconds)
        return summary

    def _run_filter(self, session: Any, screen: Any, label: str, summary: RunSummary) -> None:
        account = session.account
        logger.info("User: %s - Filter: %s", account, label)
        try:
            screen.apply_filter(label)
            records = list(extract_table(screen, account=account, filter_label=label, layout=self.layout))
        except (OptionUnavailableError, ExtractionError, PlaywrightError) as e:
            logger.error("Filter %r failed for user %s: %s", label, account, e)
            self.sessions.capture(session, f"filter_{label}")
            summary.record_failure(account, label, e)
            return

        added = self.results.extend(records)
        logger.info("Finished filter %r for user %s (records=%d)", label, account, added)


def _navigate_or_capture(sessions: Any, session: Any, navigate_fn: NavigateFn, target: NavigationTarget) -> None:
    try:
        navigate_fn(session.page, target)
    except NavigationError:
        sessions.capture(session, f"navigation_{target.name}")
        raise
