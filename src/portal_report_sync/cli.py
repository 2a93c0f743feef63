from __future__ import annotations

import argparse
import logging
import os
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv

from .aggregate import ResultSet
from .config import AppConfig, load_config
from .logging_config import configure_logging
from .portal.browser import launch_browser
from .portal.downloads import DownloadMaterializer
from .portal.navigation import navigate
from .portal.poller import ReportPoller
from .portal.screens import ExportablesScreen, FilteredGridScreen
from .portal.session import SessionManager
from .portals import KNOWN_PORTALS
from .runner import ReportDownloadRun, RunSummary, TableExtractionRun
from .util.debug_bundle import create_debug_bundle


logger = logging.getLogger("portal_report_sync")


def _add_browser_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--config", default="config.yaml", help="Path to YAML config (default: config.yaml)")
    p.add_argument("--headful", action="store_true", help="Run browser headful (debug)")
    p.add_argument("--slowmo-ms", type=int, default=0, help="Playwright slow motion in milliseconds (debug).")
    p.add_argument("--step-debug", action="store_true", help="Save step-by-step screenshots under the debug dir.")
    p.add_argument(
        "--no-debug-bundle",
        action="store_true",
        help="Do not write a zip of the log + page captures when the run fails.",
    )


def _build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(prog="portal_report_sync")
    p.add_argument(
        "--env-file",
        default=".env",
        help="Path to a dotenv file (default: .env). If missing, env vars must already be set.",
    )

    sub = p.add_subparsers(dest="cmd", required=True)

    run = sub.add_parser("run", help="Run the flow declared by the configured portal (download or extraction)")
    _add_browser_args(run)

    dl = sub.add_parser("download-reports", help="Generate, poll and download reports for every account")
    _add_browser_args(dl)
    dl.add_argument("--max-attempts", type=int, default=0, help="Override polling.max_attempts")
    dl.add_argument("--interval", type=float, default=-1, help="Override polling.interval_seconds")
    dl.add_argument("--out-dir", default="", help="Override output.download_dir")

    ex = sub.add_parser("extract-table", help="Scrape the results grid for every account and filter into JSON")
    _add_browser_args(ex)
    ex.add_argument("--out", default="", help="Override output.results_path")

    sub.add_parser("list-portals", help="List built-in portal profiles")
    return p


def main(argv: Optional[List[str]] = None) -> int:
    args = _build_parser().parse_args(argv)

    env_path = Path(args.env_file)
    if env_path.exists():
        load_dotenv(env_path)

    # Default logging: can be overridden once config is loaded.
    configure_logging(level=os.getenv("LOG_LEVEL", "INFO"))

    if args.cmd == "list-portals":
        for slug, profile in sorted(KNOWN_PORTALS.items()):
            print(f"{slug}\t{profile.flow}\t{profile.display_name}")
        return 0

    cfg = load_config(args.config)
    configure_logging(level=cfg.logging.level, file_path=cfg.logging.file_path)
    _apply_overrides(cfg, args)

    profile = cfg.profile()
    flow = profile.flow
    if args.cmd == "download-reports" and flow != "reports":
        raise SystemExit(f"Portal {cfg.portal!r} has no report downloads; use `extract-table`.")
    if args.cmd == "extract-table" and flow != "extraction":
        raise SystemExit(f"Portal {cfg.portal!r} has no results grid; use `download-reports`.")

    credentials = cfg.credentials()
    if not credentials:
        raise SystemExit(
            f"No accounts configured. Set {profile.env_prefix}_USER_1/{profile.env_prefix}_PASS_1 in .env, "
            "or list them under 'accounts:' in a YAML config."
        )

    logger.info("Starting %s flow for portal=%s accounts=%d", flow, cfg.portal, len(credentials))
    try:
        summary = _run(cfg, credentials)
    except Exception:
        logger.exception("Run aborted")
        _maybe_bundle(cfg, args)
        raise

    _log_summary(summary)
    if summary.failed:
        _maybe_bundle(cfg, args)
        return 1
    return 0


def _apply_overrides(cfg: AppConfig, args: argparse.Namespace) -> None:
    if args.headful:
        cfg.browser.headless = False
    if args.slowmo_ms:
        cfg.browser.slow_mo_ms = args.slowmo_ms
    if args.step_debug:
        cfg.debug.step_debug = True
    if getattr(args, "max_attempts", 0) > 0:
        cfg.polling.max_attempts = args.max_attempts
    if getattr(args, "interval", -1) >= 0:
        cfg.polling.interval_seconds = args.interval
    if getattr(args, "out_dir", ""):
        cfg.output.download_dir = args.out_dir
    if getattr(args, "out", ""):
        cfg.output.results_path = args.out


def _run(cfg: AppConfig, credentials) -> RunSummary:
    profile = cfg.profile()
    with launch_browser(headless=cfg.browser.headless, slow_mo_ms=cfg.browser.slow_mo_ms) as browser:
        sessions = SessionManager(
            browser,
            profile.login,
            accept_downloads=profile.flow == "reports",
            ignore_https_errors=cfg.browser.ignore_https_errors,
            viewport={"width": cfg.browser.viewport_width, "height": cfg.browser.viewport_height},
            debug_dir=cfg.debug.dir,
            step_debug=cfg.debug.step_debug,
        )

        def navigate_fn(page, target) -> None:
            navigate(page, target, step=sessions.step)

        if profile.flow == "reports":
            assert profile.report_screen is not None
            screen_selectors = profile.report_screen
            return ReportDownloadRun(
                sessions=sessions,
                target=profile.navigation,
                reports=cfg.report_requests(),
                poller=ReportPoller(
                    max_attempts=cfg.polling.max_attempts,
                    interval_seconds=cfg.polling.interval_seconds,
                    error_tokens=cfg.polling.error_tokens,
                ),
                materializer=DownloadMaterializer(cfg.output.download_dir),
                screen_factory=lambda page: ExportablesScreen(page, screen_selectors),
                navigate_fn=navigate_fn,
            ).run(credentials)

        assert profile.grid_screen is not None and profile.layout is not None
        grid_selectors = profile.grid_screen
        return TableExtractionRun(
            sessions=sessions,
            target=profile.navigation,
            filters=cfg.filters,
            layout=profile.layout,
            screen_factory=lambda page: FilteredGridScreen(page, grid_selectors),
            results=ResultSet(dedupe_field=cfg.output.dedupe_field or None),
            results_path=cfg.output.results_path,
            navigate_fn=navigate_fn,
        ).run(credentials)


def _log_summary(summary: RunSummary) -> None:
    for f in summary.failures:
        logger.warning("Failed: account=%s unit=%r %s: %s", f.account, f.unit, f.kind, f.message)
    if summary.flow == "reports":
        logger.info(
            "Downloaded %d/%d reports%s",
            len(summary.artifacts),
            summary.expected_downloads,
            " (run FAILED)" if summary.failed else "",
        )
    else:
        logger.info("Extracted %d records -> %s", summary.records, summary.results_path)


def _maybe_bundle(cfg: AppConfig, args: argparse.Namespace) -> None:
    if args.no_debug_bundle:
        return
    try:
        bundle = create_debug_bundle(
            debug_dir=cfg.debug.dir,
            log_file=cfg.logging.file_path,
            out_dir="data",
            portal=cfg.portal,
        )
        if bundle is not None:
            logger.error("Wrote debug bundle: %s", bundle)
    except Exception:
        logger.debug("Failed to create debug bundle.", exc_info=True)
