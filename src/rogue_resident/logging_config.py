import logging
import os
import sys
from typing import Optional

ENV_LOG_LEVEL = "RR_LOG_LEVEL"
LOG_FORMAT = "%(levelname)-7s %(name)s: %(message)s"

_HANDLER_NAME = "rogue_resident.console"


def resolve_level(default: int, raw: Optional[str] = None) -> int:
    """Level from ``raw`` (or RR_LOG_LEVEL): a name like ``debug`` or a number.

    Unrecognised values fall back to ``default``.
    """
    value = (raw if raw is not None else os.getenv(ENV_LOG_LEVEL, "")).strip()
    if not value:
        return default
    if value.isdigit():
        return int(value)
    level = logging.getLevelName(value.upper())
    return level if isinstance(level, int) else default


def configure_logging(default_level: int = logging.INFO) -> logging.Logger:
    """Send ``rogue_resident`` logs to stderr.

    Calling it again swaps the console handler instead of stacking a second one.
    """
    root = logging.getLogger("rogue_resident")
    for handler in [h for h in root.handlers if h.get_name() == _HANDLER_NAME]:
        root.removeHandler(handler)
    handler = logging.StreamHandler(sys.stderr)
    handler.set_name(_HANDLER_NAME)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(resolve_level(default_level))
    return root
