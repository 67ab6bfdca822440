"""BotLogger: JSON log output for the ``botapi`` logger tree.

Library modules log through ``logging.getLogger(__name__)`` and never
configure handlers themselves.  The application calls
:meth:`BotLogger.get_logger` once, which hangs a console handler and a
rotating file handler (``logs/botapi.log``) off the ``botapi`` logger so
every record below it comes out as one JSON object per line.

Bot tokens are part of every API URL, and :mod:`requests` repeats that URL
in its exception messages.  The formatter masks anything that looks like a
token before the line is written.
"""

import json
import logging
import os
import re
import threading
from datetime import datetime, timezone
from logging.handlers import RotatingFileHandler
from typing import List, Optional

ROOT_LOGGER_NAME = "botapi"

# "bot" + numeric bot id + ":" + secret, as it appears in request paths.
_TOKEN_RE = re.compile(r"\bbot(\d+):[A-Za-z0-9_-]+")


def redact(text: str) -> str:
    """Mask the secret part of any bot token found in *text*."""
    return _TOKEN_RE.sub(r"bot\1:***", text)


class _JsonFormatter(logging.Formatter):
    """Serialize a record to a single-line JSON object.

    ``extra`` context is merged into the object, e.g.::

        logger.warning("getUpdates failed, retrying", extra={"api_endpoint": "getUpdates", "offset": 8})

    becomes::

        {"timestamp": "...", "level": "WARNING", "logger": "botapi.poller", ..., "offset": 8}

    Records emitted from a worker thread carry its name under ``thread``.
    """

    _RESERVED: frozenset[str] = frozenset(vars(logging.LogRecord(
        name="", level=0, pathname="", lineno=0, msg="", args=(), exc_info=None,
    ))) | {"message", "asctime", "taskName"}

    def format(self, record: logging.LogRecord) -> str:
        entry: dict = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "module": record.module,
            "func_name": record.funcName,
        }
        if record.threadName and record.threadName != threading.main_thread().name:
            entry["thread"] = record.threadName

        for key, value in record.__dict__.items():
            if key in self._RESERVED or key in entry:
                continue
            entry[key] = value

        if record.exc_info:
            entry["exc_info"] = self.formatException(record.exc_info)

        return redact(json.dumps(entry, ensure_ascii=False, default=str))


def _build_handlers(level: int, log_dir: str, filename: str, max_bytes: int, backup_count: int) -> List[logging.Handler]:
    formatter = _JsonFormatter()

    console = logging.StreamHandler()
    os.makedirs(log_dir, exist_ok=True)
    rotating = RotatingFileHandler(
        os.path.join(log_dir, filename),
        maxBytes=max_bytes,
        backupCount=backup_count,
        encoding="utf-8",
    )

    handlers: List[logging.Handler] = [console, rotating]
    for handler in handlers:
        handler.setLevel(level)
        handler.setFormatter(formatter)
    return handlers


class BotLogger:
    """Process-wide owner of the ``botapi`` handlers (singleton).

    Usage::

        from core.logger import BotLogger

        logger = BotLogger.get_logger("app")
        logger.info("Echo bot is running")
    """

    _instance: Optional["BotLogger"] = None
    _logger: Optional[logging.Logger] = None

    _LOG_DIR: str = "logs"
    _LOG_FILE: str = "botapi.log"
    _MAX_BYTES: int = 5 * 1024 * 1024  # 5 MB
    _BACKUP_COUNT: int = 5

    def __new__(cls, level: int = logging.INFO, log_dir: Optional[str] = None) -> "BotLogger":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
            cls._instance._attach(level, log_dir or cls._LOG_DIR)
        return cls._instance

    def _attach(self, level: int, log_dir: str) -> None:
        self._logger = logging.getLogger(ROOT_LOGGER_NAME)
        self._logger.setLevel(level)
        if self._logger.handlers:
            return
        for handler in _build_handlers(level, log_dir, self._LOG_FILE, self._MAX_BYTES, self._BACKUP_COUNT):
            self._logger.addHandler(handler)

    @staticmethod
    def get_logger(name: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
        """Return the ``botapi`` logger, or its child *name*.

        The first call decides the level; later calls ignore *level*.
        """
        instance = BotLogger(level)
        assert instance._logger is not None  # set by __new__
        return instance._logger.getChild(name) if name else instance._logger

    def cleanup(self) -> None:
        """Flush, close and detach every handler."""
        if self._logger is None:
            return
        for handler in list(self._logger.handlers):
            handler.flush()
            handler.close()
            self._logger.removeHandler(handler)
