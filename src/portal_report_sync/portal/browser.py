from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Iterator

from playwright.sync_api import Browser, sync_playwright


logger = logging.getLogger(__name__)


@contextmanager
def launch_browser(*, headless: bool = True, slow_mo_ms: int = 0) -> Iterator[Browser]:
    """
    Start Playwright and yield a Chromium browser; everything is torn down on exit.
    """
    with sync_playwright() as p:
        # Prefer Playwright's bundled Chromium, but fall back to a system-installed browser if the
        # cache doesn't have Playwright browsers available.
        slow_mo = int(slow_mo_ms or 0)
        try:
            browser = p.chromium.launch(headless=headless, slow_mo=slow_mo)
        except Exception as e:
            msg = str(e)
            if "Executable doesn't exist" not in msg:
                raise

            logger.warning(
                "Playwright Chromium executable missing; falling back to system browser channel. (%s)",
                msg,
            )
            try:
                browser = p.chromium.launch(headless=headless, slow_mo=slow_mo, channel="chrome")
            except Exception:
                browser = p.chromium.launch(headless=headless, slow_mo=slow_mo, channel="msedge")
        try:
            yield browser
        finally:
            browser.close()
