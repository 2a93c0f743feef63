import logging
import os
from pathlib import Path
from typing import Iterable, Optional


LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"
QUIET_LOGGERS = ("playwright", "asyncio")


def configure_logging(
    level: str = "INFO",
    file_path: Optional[str] = None,
    *,
    quiet: Iterable[str] = QUIET_LOGGERS,
) -> Optional[Path]:
    """
    Send records to stderr and, when `file_path` is set, append them to a UTF-8 run log (the debug bundle
    picks that file up). Returns the log path, if any.

    Calling it again replaces the handlers: the CLI starts at LOG_LEVEL and switches to the configured level
    and file once the config is loaded.
    """
    root_level = logging.getLevelName((level or "INFO").strip().upper())
    if not isinstance(root_level, int):
        root_level = logging.INFO

    formatter = logging.Formatter(LOG_FORMAT)
    handlers: list[logging.Handler] = [logging.StreamHandler()]

    log_path: Optional[Path] = None
    if file_path:
        log_path = Path(file_path)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(logging.FileHandler(log_path, mode="a", encoding="utf-8"))

    for handler in handlers:
        handler.setFormatter(formatter)
    logging.basicConfig(level=root_level, handlers=handlers, force=True)

    quiet_level = (os.getenv("NOISY_LOG_LEVEL", "") or "WARNING").strip().upper()
    for name in quiet:
        logging.getLogger(name).setLevel(quiet_level)
    return log_path
