from __future__ import annotations

import logging
import time
import zipfile
from pathlib import Path
from typing import Optional


logger = logging.getLogger(__name__)


def create_debug_bundle(
    *,
    debug_dir: str,
    log_file: str,
    out_dir: str = "data",
    portal: str = "",
) -> Optional[Path]:
    """
    Zip the run log and page captures from a failed run. Returns None when there is nothing to bundle.

    Only the log and `debug_dir` are included; `.env` and config files never are.
    """
    dbg = Path(debug_dir)
    log = Path(log_file) if log_file else None
    captures = sorted(p for p in dbg.rglob("*") if p.is_file()) if dbg.is_dir() else []
    has_log = log is not None and log.is_file()
    if not captures and not has_log:
        return None

    out_root = Path(out_dir)
    out_root.mkdir(parents=True, exist_ok=True)
    slug = (portal or "").strip().lower()
    name = f"debug_bundle_{slug}_" if slug else "debug_bundle_"
    out_path = out_root / f"{name}{time.strftime('%Y%m%d_%H%M%S')}.zip"

    with zipfile.ZipFile(out_path, "w", compression=zipfile.ZIP_DEFLATED) as z:
        if has_log and log is not None:
            z.write(log, arcname=log.name)
        for p in captures:
            try:
                z.write(p, arcname=str(Path("debug") / p.relative_to(dbg)))
            except OSError:
                # A capture removed mid-bundle is not worth failing over.
                logger.debug("Skipping %s in debug bundle.", p, exc_info=True)

    return out_path
