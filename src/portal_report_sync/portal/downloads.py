from __future__ import annotations

import logging
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..errors import PersistError
from ..models import DownloadArtifact, ReportRequest


logger = logging.getLogger(__name__)

_UNSAFE_RE = re.compile(r"[^A-Za-z0-9@._-]+")


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


def timestamp_token(when: datetime) -> str:
    # e.g. 20250314_093015
    return when.strftime("%Y%m%d_%H%M%S")


def safe_name(value: str) -> str:
    return _UNSAFE_RE.sub("_", (value or "").strip()).strip("_") or "unknown"


class DownloadMaterializer:
    """
    Saves a Playwright download under `{account}_{file_stem}_{timestamp}{extension}` in `dest_dir`.
    """

    def __init__(
        self,
        dest_dir: Union[str, Path],
        *,
        extension: str = ".xls",
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self.dest_dir = Path(dest_dir)
        self.extension = extension if extension.startswith(".") else f".{extension}"
        self.clock = clock or _utc_now

    def build_path(self, account: str, file_stem: str, when: datetime) -> Path:
        base = f"{safe_name(account)}_{safe_name(file_stem)}_{timestamp_token(when)}"
        path = self.dest_dir / f"{base}{self.extension}"
        n = 2
        # Same account + report within one second: keep both files.
        while path.exists():
            path = self.dest_dir / f"{base}-{n}{self.extension}"
            n += 1
        return path

    def materialize(self, download: Any, account: str, request: ReportRequest) -> DownloadArtifact:
        when = self.clock()
        try:
            self.dest_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise PersistError(f"Cannot create download directory {self.dest_dir}: {e}") from e

        path = self.build_path(account, request.file_stem, when)
        try:
            download.save_as(str(path))
        except Exception as e:
            raise PersistError(f"Saving {request.label!r} for {account} to {path} failed: {e}") from e
        if not path.exists():
            raise PersistError(f"Download for {request.label!r} ({account}) did not produce {path}")

        logger.info("Report downloaded: %s -> %s", request.label, path)
        return DownloadArtifact(path=path, account=account, report_label=request.label, timestamp=when)
