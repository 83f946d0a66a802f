"""
Logging setup. Called once from main.py; modules just use logging.getLogger(__name__).
"""

import logging
import sys
import uuid
from contextvars import ContextVar

from coachdesk.core.config import settings

request_id_var: ContextVar[str] = ContextVar("request_id", default="")

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(request_id)s%(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def generate_request_id() -> str:
    return str(uuid.uuid4())[:8]


class RequestIdFilter(logging.Filter):
    """Prefix records with the current request id, if any."""

    def filter(self, record: logging.LogRecord) -> bool:
        rid = request_id_var.get()
        record.request_id = f"[{rid}] " if rid else ""
        return True


def setup_logging(level: str | None = None) -> None:
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    # Re-running (tests, reload) must not stack handlers
    for handler in list(root.handlers):
        if getattr(handler, "_coachdesk", False):
            root.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    handler._coachdesk = True
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(RequestIdFilter())
    root.addHandler(handler)

    # httpx logs every request at INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)
