from __future__ import annotations

import logging
from typing import Any, Iterator, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..errors import OptionUnavailableError, PersistError
from .selectors import GridScreenSelectors, ReportScreenSelectors


logger = logging.getLogger(__name__)


def _css_string(value: str) -> str:
    return value.replace("\\", "\\\\").replace('"', '\\"')


class ExportablesScreen:
    """
    A report page with a dropdown of report types, a "generate" button, and a status grid that has to be
    re-queried by hand. Row 0 of the grid is always the newest request.
    """

    def __init__(self, page: Any, selectors: ReportScreenSelectors) -> None:
        self.page = page
        self.selectors = selectors

    def find_option(self, label: str) -> Optional[Any]:
        s = self.selectors
        self.page.click(s.option_menu)
        self.page.wait_for_timeout(s.menu_settle_ms)
        return self.page.query_selector(s.option_template.format(label=_css_string(label)))

    def option_visible(self, option: Any) -> bool:
        return bool(option.is_visible())

    def select_option(self, option: Any) -> None:
        self.page.wait_for_timeout(self.selectors.option_settle_ms)
        option.click()

    def generate(self) -> None:
        s = self.selectors
        self.page.wait_for_selector(s.generate_button, state="visible", timeout=s.generate_timeout_ms)
        self.page.click(s.generate_button)
        self.page.wait_for_timeout(s.generate_settle_ms)

    def refresh(self) -> None:
        self.page.click(self.selectors.search_button)
        self.page.wait_for_timeout(self.selectors.search_settle_ms)

    def read_status(self) -> Optional[str]:
        cell = self.page.query_selector(self.selectors.status_cell)
        if cell is None:
            return None
        return cell.text_content()

    def ready_handle(self) -> Optional[Any]:
        return self.page.query_selector(self.selectors.ready_icon)

    def download(self, handle: Any) -> Any:
        try:
            with self.page.expect_download(timeout=self.selectors.download_timeout_ms) as info:
                handle.click()
            return info.value
        except PlaywrightTimeoutError as e:
            raise PersistError(f"No download started within {self.selectors.download_timeout_ms / 1000:.0f}s") from e

    def pause(self, seconds: float) -> None:
        self.page.wait_for_timeout(seconds * 1000)


class FilteredGridScreen:
    """
    A search form with a single filter dropdown whose results render into one grid.
    """

    def __init__(self, page: Any, selectors: GridScreenSelectors) -> None:
        self.page = page
        self.selectors = selectors

    def apply_filter(self, label: str) -> None:
        s = self.selectors
        try:
            self.page.select_option(s.filter_select, label=label)
        except PlaywrightError as e:
            raise OptionUnavailableError(label) from e
        self.page.click(s.submit_button)
        self.page.wait_for_timeout(s.results_settle_ms)

    def grid_present(self) -> bool:
        return self.page.query_selector(self.selectors.grid) is not None

    def first_cell_text(self) -> Optional[str]:
        grid = self.page.query_selector(self.selectors.grid)
        if grid is None:
            return None
        cell = grid.query_selector(self.selectors.cells)
        return cell.text_content() if cell is not None else None

    def iter_rows(self) -> Iterator[list[str]]:
        for row in self.page.query_selector_all(self.selectors.rows):
            yield [c.text_content() or "" for c in row.query_selector_all(self.selectors.cells)]
