"""Console and file logging for the assist runtime.

Console output goes through ``rich`` when it is installed. File logging runs
on a background ``QueueListener`` so a slow disk never stalls the detection
loop.
"""

from __future__ import annotations

import atexit
import importlib
import importlib.util
import logging
import logging.handlers
from pathlib import Path
import queue
from typing import Any


LOGGER_NAME = "blind_assist"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


if importlib.util.find_spec("rich") is not None:
    RichHandler = importlib.import_module("rich.logging").RichHandler
    Text = importlib.import_module("rich.text").Text
    console = importlib.import_module("rich.console").Console(stderr=True)
else:
    RichHandler = None
    Text = None
    console = None


def _console_handler() -> logging.Handler:
    if RichHandler is not None:
        handler = RichHandler(rich_tracebacks=True, console=console, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
        return handler
    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s: %(message)s"))
    return handler


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Return the assist logger, attaching one console handler on first use."""

    assist_logger = logging.getLogger(LOGGER_NAME)
    assist_logger.setLevel(level)
    if not getattr(assist_logger, "_console_attached", False):
        assist_logger.addHandler(_console_handler())
        assist_logger._console_attached = True  # type: ignore[attr-defined]
    assist_logger.propagate = False
    return assist_logger


logger = setup_logging()


def set_level(level_name: str) -> int:
    """Apply a level name such as ``"DEBUG"`` to the assist logger."""

    level = logging.getLevelName(str(level_name).upper())
    if not isinstance(level, int):
        logger.warning("Unknown log level %r; using INFO", level_name)
        level = logging.INFO
    logger.setLevel(level)
    return level


class _FileLog:
    """The single active file sink: its path, queue handler and listener."""

    def __init__(self, path: Path, level: int) -> None:
        self.path = path
        file_handler = logging.FileHandler(path, encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(logging.Formatter(FILE_FORMAT))

        records: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
        self.queue_handler = logging.handlers.QueueHandler(records)
        self.queue_handler.setLevel(level)
        self.listener = logging.handlers.QueueListener(records, file_handler, respect_handler_level=True)

    def open(self) -> None:
        logger.addHandler(self.queue_handler)
        self.listener.start()
        thread = getattr(self.listener, "_thread", None)
        if thread is not None:
            thread.daemon = True

    def close(self) -> None:
        logger.removeHandler(self.queue_handler)
        self.listener.stop()
        for handler in self.listener.handlers:
            handler.close()


_file_log: _FileLog | None = None
_atexit_registered = False


def disable_file_logging() -> None:
    global _file_log

    if _file_log is not None:
        _file_log.close()
        _file_log = None


def enable_file_logging(log_path: Path, level: int = logging.DEBUG) -> None:
    """Mirror the assist logger into ``log_path``; replaces any earlier sink."""

    global _file_log, _atexit_registered

    log_path = Path(log_path).expanduser()
    if _file_log is not None and _file_log.path == log_path:
        return

    disable_file_logging()
    log_path.parent.mkdir(parents=True, exist_ok=True)
    _file_log = _FileLog(log_path, level)
    _file_log.open()

    if not _atexit_registered:
        atexit.register(disable_file_logging)
        _atexit_registered = True


def _styled(message: str, style: str) -> Any:
    if Text is None:
        return message
    return Text(message, style=style)


def log_info(message: str, style: str = "bold white") -> None:
    logger.info(_styled(message, style))


def log_warning(message: str) -> None:
    logger.warning(_styled(message, "bold yellow"))


def log_alarm_transition(previous: str, current: str, nearest_m: float) -> None:
    """Log a SAFE/ALERT change in red when alarming and green when clearing."""

    style = "bold red" if current == "alert" else "bold green"
    logger.info(_styled(f"[ALARM] {previous.upper()} -> {current.upper()} (nearest {nearest_m:.1f} m)", style))


def log_spoken(text: str) -> None:
    logger.info(_styled(f"🔊 {text}", "bold cyan"))
