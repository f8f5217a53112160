"""JSON logging configuration for easycert.

Records go to stderr as one JSON object per line, leaving stdout for the data
a command prints.
"""

import logging
import os
import sys
from collections.abc import Mapping

from pythonjsonlogger import jsonlogger

LOGGER_NAME = "easycert"
LOG_LEVEL_ENV_VAR = "EASYCERT_LOG_LEVEL"
LOG_FORMAT = "%(timestamp)s %(levelname)s %(funcName)s %(lineno)d %(message)s"

RECORD_FIELDS = frozenset({"timestamp", "level", "message", "exc_info", "funcName", "lineno"})


class CustomJsonFormatter(jsonlogger.JsonFormatter):
    """JSON formatter keeping only RECORD_FIELDS, with 'levelname' as 'level'."""

    def __init__(self, *args, **kwargs):
        kwargs.setdefault("rename_fields", {"levelname": "level"})
        kwargs.setdefault("timestamp", True)
        super().__init__(*args, **kwargs)

    def add_fields(self, log_record, record, message_dict):
        super().add_fields(log_record, record, message_dict)
        for key in [key for key in log_record if key not in RECORD_FIELDS]:
            del log_record[key]


def _setup_logger() -> logging.Logger:
    logger = logging.getLogger(LOGGER_NAME)

    # Module reloads must not stack handlers
    if logger.handlers:
        return logger

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(CustomJsonFormatter(fmt=LOG_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(logging.INFO)
    logger.propagate = False
    return logger


def get_log_level(verbose: int, env: Mapping[str, str] | None = None) -> int:
    """Return the log level from the -v count and EASYCERT_LOG_LEVEL.

    The environment sets the base level (INFO by default), each 'v' lowers it
    by one step; the result is capped to DEBUG..ERROR.

    Raises:
        ValueError: If EASYCERT_LOG_LEVEL is not a level name
    """
    if env is None:
        env = os.environ
    name = env.get(LOG_LEVEL_ENV_VAR, "INFO")
    base_level = logging.getLevelName(name.upper())
    if not isinstance(base_level, int):
        raise ValueError(f"invalid {LOG_LEVEL_ENV_VAR}: {name!r}")

    level = base_level - verbose * 10  # level steps are 10
    return max(logging.DEBUG, min(level, logging.ERROR))


def configure_log_level(verbose: int, env: Mapping[str, str] | None = None) -> None:
    LOGGER.setLevel(get_log_level(verbose, env))


LOGGER = _setup_logger()
