"""Rotating error log file.

WARNING and above from every ``jobrelay`` logger also land in a rotating file,
so failed publish runs and dropped relay deliveries can be reviewed after the
console output is gone.
"""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from jobrelay.config import RelayConfig


_error_file_handler: RotatingFileHandler | None = None


def setup_error_log_file(config: "RelayConfig") -> RotatingFileHandler | None:
    """Attach the error log file handler to the root logger.

    Calling it again replaces the previous handler.

    Returns:
        The configured RotatingFileHandler, or None if disabled or the file
        cannot be created.
    """
    global _error_file_handler

    if not config.error_log_file_enabled:
        return None

    log_level = getattr(logging, config.error_log_level.upper(), logging.WARNING)

    log_file = Path(config.error_log_file_path).expanduser()
    if not log_file.is_absolute():
        from jobrelay.config import find_repo_root

        log_file = find_repo_root(start=Path(__file__)) / log_file
    log_file = log_file.resolve()

    try:
        log_file.parent.mkdir(parents=True, exist_ok=True)
        handler = RotatingFileHandler(
            filename=str(log_file),
            maxBytes=config.error_log_max_bytes,
            backupCount=config.error_log_backup_count,
            encoding="utf-8",
        )
    except OSError as e:
        print(f"Warning: Cannot create error log file {log_file}: {e}", file=sys.stderr)
        return None

    handler.setLevel(log_level)
    handler.setFormatter(
        logging.Formatter(
            fmt="%(asctime)s - %(name)s - %(levelname)s - %(filename)s:%(lineno)d - %(message)s",
            datefmt="%Y-%m-%d %H:%M:%S",
        )
    )

    root_logger = logging.getLogger()
    if _error_file_handler is not None:
        root_logger.removeHandler(_error_file_handler)
        _error_file_handler.close()
    root_logger.addHandler(handler)
    _error_file_handler = handler

    logging.getLogger(__name__).info(
        "Error log file handler initialized: %s (level=%s)",
        log_file,
        logging.getLevelName(log_level),
    )
    return handler


def get_error_log_handler() -> RotatingFileHandler | None:
    return _error_file_handler
