"""
one place to configure logging. library modules only call
logging.getLogger(__name__), the entry point calls configure_logging() once.
"""

import logging
import os
import sys

LOG_FORMAT = '%(asctime)s %(levelname)s %(name)s: %(message)s'
_configured = False


def _parse_level(level):
    if level is None:
        level = os.getenv('UPI_LOG_LEVEL', 'INFO')
    if isinstance(level, int):
        return level
    level = str(level).strip().upper()
    if level.isdigit():
        return int(level)
    numeric = getattr(logging, level, None)
    return numeric if isinstance(numeric, int) else logging.INFO


def configure_logging(level=None, stream=sys.stderr):
    """attach a single stream handler to the root logger. safe to call twice."""
    global _configured
    root = logging.getLogger()
    root.setLevel(_parse_level(level))
    if _configured:
        return
    handler = logging.StreamHandler(stream)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    _configured = True
