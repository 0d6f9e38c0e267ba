# pcapedit/utils.py
from __future__ import annotations

import atexit
import json
import logging
import os
import queue
import sys
from datetime import datetime, timezone
from logging.handlers import QueueHandler, QueueListener, TimedRotatingFileHandler
from pathlib import Path
from typing import Optional, Union

from .errors import WriteFailure


def ensure_dir(p: Path):
    p.mkdir(parents=True, exist_ok=True)


def atomic_write_json(path: Path, obj: dict):
    path = Path(path)
    tmp = path.with_suffix(path.suffix + ".tmp")
    try:
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2, ensure_ascii=False)
        tmp.replace(path)
    except OSError as e:
        try:
            tmp.unlink()
        except FileNotFoundError:
            pass
        raise WriteFailure(path, e.strerror or str(e)) from e


def now_iso():
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


__all__ = ["setup", "get_logger", "log", "shutdown", "ensure_dir", "atomic_write_json", "now_iso"]

# ---- internal globals ----
_log_name = "pcapedit"
log = logging.getLogger(_log_name)
log.addHandler(logging.NullHandler())
log.setLevel(logging.INFO)
log.propagate = False

_q: Optional[queue.SimpleQueue] = None
_listener: Optional[QueueListener] = None
_configured = False


def setup(
    log_dir: Optional[Union[str, os.PathLike]] = None,
    level: Union[int, str] = "INFO",
    console: bool = True,
    filename: str = "pcapedit.log",
    rotate_when: str = "midnight",
    rotate_backup: int = 7,
    encoding: str = "utf-8",
) -> logging.Logger:
    """
    Configure async logging. Call once at program start (cli.main does).
    - log_dir=None logs to the console only; a directory adds a file rotated
      daily, keeping rotate_backup files.
    - level accepts "DEBUG"/"INFO"/"WARNING"/"ERROR".
    """
    global _q, _listener, _configured

    if _configured:
        return log  # idempotent

    if isinstance(level, str):
        level = getattr(logging, level.upper(), logging.INFO)

    log.setLevel(level)

    fmt = "[%(asctime)s] %(levelname).1s %(process)d %(threadName)s %(name)s: %(message)s"
    datefmt = "%Y-%m-%d %H:%M:%S"
    formatter = logging.Formatter(fmt=fmt, datefmt=datefmt)

    handlers = []
    if console:
        h = logging.StreamHandler(sys.stderr)
        h.setFormatter(formatter)
        h.setLevel(level)
        handlers.append(h)

    if log_dir is not None:
        log_path = Path(log_dir)
        ensure_dir(log_path)
        file_handler = TimedRotatingFileHandler(
            filename=str(log_path / filename),
            when=rotate_when,
            backupCount=rotate_backup,
            encoding=encoding,
            utc=False,
            delay=True,
        )
        file_handler.setFormatter(formatter)
        file_handler.setLevel(level)
        handlers.append(file_handler)

    _q = queue.SimpleQueue()
    qh = QueueHandler(_q)
    qh.setLevel(level)

    _clear_handlers(log)
    log.addHandler(qh)

    _listener = QueueListener(_q, *handlers, respect_handler_level=True)
    _listener.start()
    atexit.register(shutdown)

    _configured = True
    return log


def _clear_handlers(logger: logging.Logger) -> None:
    for h in list(logger.handlers):
        logger.removeHandler(h)
        h.close()


def shutdown() -> None:
    """Stop the listener (flushing queued records) and go back to a silent logger."""
    global _listener, _q, _configured
    if _listener:
        _listener.stop()
        _listener = None
    _clear_handlers(log)
    log.addHandler(logging.NullHandler())
    _q = None
    _configured = False


def get_logger(name: Optional[str] = None) -> logging.Logger:
    """
    Get a child logger: get_logger("compare") -> pcapedit.compare.
    Records propagate to the "pcapedit" logger, which owns the handlers.
    """
    if not name:
        return log
    return logging.getLogger(f"{_log_name}.{name}")
