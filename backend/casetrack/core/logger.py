"""
One stream handler for the whole process. Every record carries the
correlation id of the HTTP request that produced it (``-`` outside a
request), so a single call can be followed across services.
"""
from __future__ import annotations

import logging
import sys
from contextvars import ContextVar

from casetrack.core.config import settings

correlation_id_var: ContextVar[str] = ContextVar("correlation_id", default="-")

LOG_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not getattr(record, "correlation_id", None):
            record.correlation_id = correlation_id_var.get()
        return True


def setup_logging(level: str | None = None) -> logging.Logger:
    root = logging.getLogger("casetrack")
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if not any(getattr(h, "_casetrack", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler.addFilter(CorrelationIdFilter())
        handler._casetrack = True
        root.addHandler(handler)

    return root


logger = setup_logging()
