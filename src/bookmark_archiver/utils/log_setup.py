"""Logging configuration for CLI commands."""

import logging
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler

_FILE_FORMAT = "%(asctime)s %(levelname)s [%(cmd)s] %(name)s: %(message)s"


class _CommandFilter(logging.Filter):
    """Stamp every record with the running command name."""

    def __init__(self, command: str):
        super().__init__()
        self.command = command

    def filter(self, record: logging.LogRecord) -> bool:
        record.cmd = self.command
        return True


def configure_logging(
    command: str,
    log_dir: Path | None,
    verbose: bool = False,
    console: Console | None = None,
) -> Path | None:
    """Route package logs to the console and to ``<log_dir>/<command>.log``.

    Returns the log file path, or None when file logging is disabled.
    """
    root = logging.getLogger("bookmark_archiver")
    root.setLevel(logging.DEBUG)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = False

    console_handler = RichHandler(
        console=console,
        show_path=False,
        rich_tracebacks=verbose,
    )
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    root.addHandler(console_handler)

    if log_dir is None:
        return None

    log_dir.mkdir(parents=True, exist_ok=True)
    log_path = log_dir / f"{command}.log"
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(_FILE_FORMAT))
    file_handler.addFilter(_CommandFilter(command))
    root.addHandler(file_handler)

    # Silence chatty third-party loggers in the file
    for name in ("httpx", "httpcore", "trafilatura", "readability"):
        logging.getLogger(name).setLevel(logging.WARNING)

    return log_path
