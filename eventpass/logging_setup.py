import logging
import sys
from contextvars import ContextVar
from typing import Optional, Union

from pythonjsonlogger.json import JsonFormatter

# trace id contextvar, set per request by the http middleware
TRACE_ID_CTX: ContextVar[Optional[str]] = ContextVar("trace_id", default=None)


class TraceIdFilter(logging.Filter):
    def filter(self, record):
        record.trace_id = TRACE_ID_CTX.get(None)
        return True


def setup_logging(level: Union[int, str] = logging.INFO):
    root = logging.getLogger()
    handler = logging.StreamHandler(sys.stdout)
    fmt = JsonFormatter("%(asctime)s %(levelname)s %(name)s %(message)s %(trace_id)s")
    handler.setFormatter(fmt)
    handler.addFilter(TraceIdFilter())
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    root.setLevel(level)
    root.handlers = []
    root.addHandler(handler)
    # httpx logs every request line at INFO, including the payment token query string
    logging.getLogger("httpx").setLevel(logging.WARNING)
