from __future__ import annotations

import logging
import re
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Iterator, Optional

from playwright.sync_api import Error as PlaywrightError

from ..errors import AuthenticationError
from ..models import Credential
from .selectors import LoginSelectors


logger = logging.getLogger(__name__)


@dataclass
class Session:
    """
    An isolated browser context logged in as one account. Owns exactly one page.
    """

    credential: Credential
    context: Any
    page: Any

    @property
    def account(self) -> str:
        return self.credential.username


class SessionManager:
    """
    Opens one isolated, authenticated browser context per account and guarantees its release.
    """

    def __init__(
        self,
        browser: Any,
        login: LoginSelectors,
        *,
        accept_downloads: bool = True,
        ignore_https_errors: bool = True,
        viewport: Optional[dict] = None,
        debug_dir: Optional[str] = None,
        step_debug: bool = False,
    ) -> None:
        self.browser = browser
        self.login = login
        self.accept_downloads = accept_downloads
        self.ignore_https_errors = ignore_https_errors
        self.viewport = viewport
        self.debug_dir = debug_dir
        self.step_debug = bool(step_debug)
        self._step_counter = 0

    def open_session(self, credential: Credential) -> Session:
        ctx_kwargs: dict = {
            "accept_downloads": self.accept_downloads,
            "ignore_https_errors": self.ignore_https_errors,
        }
        if self.viewport:
            ctx_kwargs["viewport"] = self.viewport

        context = self.browser.new_context(**ctx_kwargs)
        session = Session(credential=credential, context=context, page=context.new_page())
        try:
            self._login(session)
        except BaseException:
            self.capture(session, "login_failure")
            self.close_session(session)
            raise
        logger.info("Logged in as %s", credential.username)
        return session

    def close_session(self, session: Session) -> None:
        try:
            session.context.close()
        except PlaywrightError:
            logger.debug("Failed to close browser context for %s.", session.account, exc_info=True)
        logger.info("Session closed for %s", session.account)

    @contextmanager
    def session(self, credential: Credential) -> Iterator[Session]:
        s = self.open_session(credential)
        try:
            yield s
        finally:
            self.close_session(s)

    def capture(self, session: Session, name: str) -> None:
        """
        Best-effort screenshot + HTML + body text of the current page for offline debugging.
        """
        if not self.debug_dir:
            return
        page = session.page
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", f"{session.account}_{name}").strip("_")[:80] or "capture"
        try:
            out_dir = Path(self.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(out_dir / f"{safe}.png"), full_page=True)
            (out_dir / f"{safe}.html").write_text(page.content(), encoding="utf-8")
            try:
                (out_dir / f"{safe}.txt").write_text(page.inner_text("body"), encoding="utf-8")
            except PlaywrightError:
                pass
        except Exception:
            logger.debug("Failed to save debug artifacts.", exc_info=True)

    def step(self, page: Any, name: str) -> None:
        """
        With `step_debug` on, save a numbered `step_NN_<name>.png` screenshot under the debug dir.
        """
        if not self.step_debug or not self.debug_dir:
            return

        self._step_counter += 1
        safe = re.sub(r"[^a-zA-Z0-9_-]+", "_", name).strip("_")[:60] or "step"
        prefix = f"step_{self._step_counter:02d}_{safe}"
        logger.info("Step %02d %s (url=%s)", self._step_counter, name, getattr(page, "url", ""))
        try:
            out_dir = Path(self.debug_dir)
            out_dir.mkdir(parents=True, exist_ok=True)
            page.screenshot(path=str(out_dir / f"{prefix}.png"), full_page=True)
        except Exception:
            logger.debug("Failed to save step screenshot (name=%s).", name, exc_info=True)

    def _login(self, session: Session) -> None:
        login = self.login
        page = session.page
        account = session.account
        try:
            page.goto(login.url, wait_until="domcontentloaded")
            self.step(page, "login_page")
            page.fill(login.username_input, account)
            page.fill(login.password_input, session.credential.password)
            self.step(page, "credentials_filled")
            page.click(login.submit)

            if login.ready_selector:
                page.wait_for_selector(login.ready_selector, timeout=login.timeout_ms)
            if login.url_excludes:
                still_on_login = re.compile(login.url_excludes, re.I)
                page.wait_for_url(lambda url: not still_on_login.search(url), timeout=login.timeout_ms)
            self.step(page, "login_complete")
        except PlaywrightError as e:
            raise AuthenticationError(account, reason=_first_line(str(e))) from e


def _first_line(text: str) -> str:
    return (text or "").strip().splitlines()[0] if (text or "").strip() else ""
