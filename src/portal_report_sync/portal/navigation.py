from __future__ import annotations

import logging
from typing import Any, Callable, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..errors import NavigationError
from ..models import NavigationTarget, Waypoint


logger = logging.getLogger(__name__)

StepHook = Callable[[Any, str], None]


def navigate(page: Any, target: NavigationTarget, *, step: Optional[StepHook] = None) -> None:
    """
    Walk the waypoints of `target` in order.

    Menus on these portals render progressively with no readiness event, so each waypoint is followed by a
    fixed settle delay instead. `step(page, name)` is called after every settled waypoint (step screenshots).
    """
    logger.info("Navigating to %s", target.name)
    for waypoint in target.waypoints:
        _visit(page, waypoint)
        if step is not None:
            step(page, f"{target.name}_{waypoint.name}")


def _visit(page: Any, waypoint: Waypoint) -> None:
    try:
        page.wait_for_selector(waypoint.selector, timeout=waypoint.timeout_ms)
    except PlaywrightTimeoutError as e:
        raise NavigationError(waypoint.name, timeout_ms=waypoint.timeout_ms) from e

    logger.debug("Waypoint %s: %s %s", waypoint.name, waypoint.action, waypoint.selector)
    try:
        if waypoint.action == "hover":
            page.hover(waypoint.selector)
        elif waypoint.action == "select":
            page.select_option(waypoint.selector, label=waypoint.option_label)
        else:
            page.click(waypoint.selector)

        if waypoint.settle_ms > 0:
            page.wait_for_timeout(waypoint.settle_ms)
    except PlaywrightError as e:
        # Obscured element or a missing <option>.
        raise NavigationError(waypoint.name, reason=_first_line(str(e))) from e


def _first_line(text: str) -> str:
    lines = (text or "").strip().splitlines()
    return lines[0] if lines else "interaction failed"
