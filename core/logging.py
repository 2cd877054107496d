"""Controller logging: rich console output plus an optional queued log file."""

from __future__ import annotations

import atexit
import importlib
import importlib.util
import logging
import logging.handlers
from pathlib import Path
import queue
from typing import Any

LOGGER_NAME = "loa_controller"
FILE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
FILE_DATEFMT = "%Y-%m-%d %H:%M:%S"

# Console styles for the operator-facing status lines.
BANNER_STYLES = {
    "alert": "bold red",
    "ok": "bold green",
    "info": "bold cyan",
}


def _rich_available() -> bool:
    return importlib.util.find_spec("rich") is not None


if _rich_available():
    rich_logging = importlib.import_module("rich.logging")
    rich_console = importlib.import_module("rich.console")
    rich_text = importlib.import_module("rich.text")
    RichHandler = rich_logging.RichHandler
    Text = rich_text.Text
    console = rich_console.Console(stderr=True)
else:
    RichHandler = None
    Text = None
    console = None


def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """Attach a single console handler to the controller logger."""

    controller_logger = logging.getLogger(LOGGER_NAME)
    controller_logger.setLevel(level)

    if RichHandler is not None:
        if not any(isinstance(h, RichHandler) for h in controller_logger.handlers):
            handler = RichHandler(console=console, rich_tracebacks=True, show_path=False)
            handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
            controller_logger.addHandler(handler)
    elif not controller_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))
        controller_logger.addHandler(handler)

    controller_logger.propagate = False
    return controller_logger


logger = setup_logging()

_queue_listener: logging.handlers.QueueListener | None = None
_queue_handler: logging.Handler | None = None
_file_log_path: Path | None = None
_atexit_registered = False


def set_level(level_name: str) -> int:
    """Set the controller logger level by name; unknown names mean INFO."""

    level = logging.getLevelName(level_name.upper())
    if not isinstance(level, int):
        level = logging.INFO
    logger.setLevel(level)
    return level


def current_log_file() -> Path | None:
    """Return the active log file, or None when logging to the console only."""

    return _file_log_path


def enable_file_logging(log_path: Path) -> None:
    """Mirror controller records into ``log_path`` through a background queue.

    Raises:
        OSError: If the log file cannot be opened for appending.
    """

    global _queue_listener, _queue_handler, _file_log_path, _atexit_registered

    log_path = log_path.expanduser()
    if _file_log_path == log_path and _queue_listener is not None:
        return

    # Open the file before touching the running sink so a bad path leaves it intact.
    log_path.parent.mkdir(parents=True, exist_ok=True)
    file_handler = logging.FileHandler(log_path, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(logging.Formatter(FILE_FORMAT, datefmt=FILE_DATEFMT))

    disable_file_logging()

    log_queue: queue.SimpleQueue[logging.LogRecord] = queue.SimpleQueue()
    _queue_handler = logging.handlers.QueueHandler(log_queue)
    logger.addHandler(_queue_handler)

    _queue_listener = logging.handlers.QueueListener(
        log_queue,
        file_handler,
        respect_handler_level=True,
    )
    _queue_listener.start()

    _file_log_path = log_path

    if not _atexit_registered:
        atexit.register(disable_file_logging)
        _atexit_registered = True


def disable_file_logging() -> None:
    """Stop the file sink, flushing queued records and closing the file."""

    global _queue_listener, _queue_handler, _file_log_path

    if _queue_handler is not None:
        logger.removeHandler(_queue_handler)
        _queue_handler = None
    if _queue_listener is not None:
        _queue_listener.stop()
        for handler in _queue_listener.handlers:
            handler.close()
        _queue_listener = None
    _file_log_path = None


def _styled(message: str, style: str) -> Any:
    if Text is None:
        return message
    return Text(message, style=style)


def log_banner(message: str, tone: str = "info") -> None:
    """Log an operator status line, coloured on the console by ``tone``."""

    logger.info(_styled(message, BANNER_STYLES.get(tone, "bold white")))
