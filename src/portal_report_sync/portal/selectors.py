from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class LoginSelectors:
    """
    Login form hooks. Success is confirmed by `ready_selector` appearing, or by the URL no longer
    matching `url_excludes` (a regex), whichever is configured.
    """

    url: str
    username_input: str
    password_input: str
    submit: str
    ready_selector: str = ""
    url_excludes: str = ""
    timeout_ms: int = 15_000


@dataclass(frozen=True)
class ReportScreenSelectors:
    """
    Selectors for a "generate then poll" report page. `option_template` is formatted with `label=`.
    """

    option_menu: str
    option_template: str
    generate_button: str
    search_button: str
    status_cell: str
    ready_icon: str
    menu_settle_ms: int = 1_000
    option_settle_ms: int = 500
    generate_timeout_ms: int = 5_000
    generate_settle_ms: int = 2_000
    search_settle_ms: int = 2_000
    download_timeout_ms: int = 60_000


@dataclass(frozen=True)
class GridScreenSelectors:
    filter_select: str
    submit_button: str
    grid: str
    rows: str
    cells: str = "td"
    results_settle_ms: int = 5_000
