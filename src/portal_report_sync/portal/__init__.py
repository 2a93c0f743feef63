from .downloads import DownloadMaterializer
from .navigation import navigate
from .poller import ReportPoller
from .session import Session, SessionManager
from .tables import extract_table, read_grid

__all__ = [
    "DownloadMaterializer",
    "ReportPoller",
    "Session",
    "SessionManager",
    "extract_table",
    "navigate",
    "read_grid",
]
