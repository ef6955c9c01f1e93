import logging
import os
from collections import deque
from logging.handlers import RotatingFileHandler
from typing import Optional

from rich.logging import RichHandler

from firewall.config import LOG_FORMAT


class DashboardLogHandler(logging.Handler):
    """Keeps the most recent records for the live dashboard."""

    def __init__(self, maxlen: int = 10):
        super().__init__()
        self.records = deque(maxlen=maxlen)

    def emit(self, record):
        try:
            self.records.append((record.levelname, self.format(record)))
        except Exception:
            self.handleError(record)


def setup_logging(
    level: str = 'INFO',
    log_file: Optional[str] = None,
    console: bool = True,
    dashboard: Optional[DashboardLogHandler] = None
) -> logging.Logger:
    """
    Configure the root logger.

    Args:
        level: Level name for the root logger
        log_file: Rotating log file, None disables it
        console: Log to the terminal through rich
        dashboard: Handler feeding the live dashboard, used instead of the console

    Returns:
        The ``firewall`` logger
    """
    root = logging.getLogger()
    root.setLevel(level.upper())
    for handler in list(root.handlers):
        root.removeHandler(handler)

    formatter = logging.Formatter(LOG_FORMAT)

    if log_file:
        log_dir = os.path.dirname(log_file)
        if log_dir:
            os.makedirs(log_dir, exist_ok=True)
        file_handler = RotatingFileHandler(log_file, maxBytes=1_000_000, backupCount=3, encoding='utf-8')
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

    if dashboard is not None:
        dashboard.setFormatter(logging.Formatter('%(message)s'))
        root.addHandler(dashboard)
    elif console:
        root.addHandler(RichHandler(show_path=False, rich_tracebacks=True))

    return logging.getLogger('firewall')
