"""Logging filters shared by the ``jobrelay`` and ``uvicorn jobrelay.asgi:app`` entrypoints."""

from __future__ import annotations

import logging
from typing import Any

QUIET_PATHS = ("/health",)


class SuppressHealthCheckAccessLog(logging.Filter):
    """Drop Uvicorn access log records for the health check endpoint."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        # Uvicorn access args: (client_addr, method, full_path, http_version, status_code)
        args: Any = record.args
        if isinstance(args, tuple) and len(args) >= 3:
            path = str(args[2]).split("?", 1)[0]
            return path not in QUIET_PATHS
        return True


class RedactDeepLinkTokens(logging.Filter):
    """Mask ``context=`` and ``hub.verify_token=`` values in access log paths."""

    def filter(self, record: logging.LogRecord) -> bool:  # noqa: A003 (filter)
        from jobrelay.observability.redaction import redact_text

        args: Any = record.args
        if isinstance(args, tuple) and len(args) >= 3 and "=" in str(args[2]):
            record.args = args[:2] + (redact_text(str(args[2])),) + args[3:]
        return True


def install_uvicorn_access_log_filters() -> None:
    """Install filters on the Uvicorn access logger. Safe to call repeatedly."""
    access_logger = logging.getLogger("uvicorn.access")
    installed = {type(f) for f in access_logger.filters}
    for filter_cls in (SuppressHealthCheckAccessLog, RedactDeepLinkTokens):
        if filter_cls not in installed:
            access_logger.addFilter(filter_cls())
