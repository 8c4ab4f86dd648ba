"""Logging setup for the server and CLI.

Modules log through ``logging.getLogger(__name__)``; this only installs
handlers on the ``pokechat`` logger according to :class:`LoggingConfig`.
"""

from __future__ import annotations

import json
import logging
import sys
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from pokechat.config.schema import LoggingConfig

_PLAIN_FORMAT = "%(asctime)s %(levelname)-7s %(name)s: %(message)s"


class JsonLineFormatter(logging.Formatter):
    """Format records as one JSON object per line."""

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, object] = {
            "ts": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc"] = self.formatException(record.exc_info)
        return json.dumps(payload, ensure_ascii=False)


def configure_logging(config: LoggingConfig) -> logging.Logger:
    """Install a single handler on the package logger.

    Calling it again replaces the previous handler, so the CLI and the
    app factory can both call it.
    """
    root = logging.getLogger("pokechat")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    handler: logging.Handler
    if config.file:
        handler = logging.FileHandler(config.file, encoding="utf-8")
    else:
        handler = logging.StreamHandler(sys.stderr)

    if config.structured:
        handler.setFormatter(JsonLineFormatter())
    else:
        handler.setFormatter(logging.Formatter(_PLAIN_FORMAT))

    root.addHandler(handler)
    root.setLevel(config.level.upper())
    root.propagate = False
    return root
