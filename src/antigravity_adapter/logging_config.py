# src/antigravity_adapter/logging_config.py
"""
Logging setup for processes embedding the adapter.

The library itself only logs through logging.getLogger("antigravity_adapter");
nothing here runs on import. Call configure_logging() once from the entry
point.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog

from .utils.paths import get_logs_dir

LOGGER_NAME = "antigravity_adapter"
FILE_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


class AdapterDebugFilter(logging.Filter):
    """Only DEBUG records from the adapter reach the debug file."""

    def filter(self, record):
        return record.levelno == logging.DEBUG and record.name.startswith(LOGGER_NAME)


class NoLiteLLMLogFilter(logging.Filter):
    def filter(self, record):
        return not record.name.startswith("LiteLLM")


def _console_handler(level: int) -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(message)s",
            log_colors={
                "DEBUG": "cyan",
                "INFO": "green",
                "WARNING": "yellow",
                "ERROR": "red",
                "CRITICAL": "red,bg_white",
            },
        )
    )
    handler.addFilter(NoLiteLLMLogFilter())
    return handler


def configure_logging(
    console_level: int = logging.INFO,
    log_to_files: bool = True,
    root: Optional[Union[Path, str]] = None,
) -> logging.Logger:
    """
    Attach console and file handlers to the root logger.

    Files (under logs/ in the data root):
        adapter.log        INFO and above from every logger
        adapter_debug.log  DEBUG records from the adapter only

    Safe to call more than once; handlers from a previous call are replaced.
    """
    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG)

    for handler in list(root_logger.handlers):
        if getattr(handler, "_antigravity_adapter", False):
            root_logger.removeHandler(handler)
            handler.close()

    handlers = [_console_handler(console_level)]

    if log_to_files:
        log_dir = get_logs_dir(root)

        info_file_handler = logging.FileHandler(log_dir / "adapter.log", encoding="utf-8")
        info_file_handler.setLevel(logging.INFO)
        info_file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        handlers.append(info_file_handler)

        debug_file_handler = logging.FileHandler(
            log_dir / "adapter_debug.log", encoding="utf-8"
        )
        debug_file_handler.setLevel(logging.DEBUG)
        debug_file_handler.setFormatter(logging.Formatter(FILE_FORMAT))
        debug_file_handler.addFilter(AdapterDebugFilter())
        handlers.append(debug_file_handler)

    for handler in handlers:
        handler._antigravity_adapter = True
        root_logger.addHandler(handler)

    # Silence noisy libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    litellm_logger = logging.getLogger("LiteLLM")
    litellm_logger.handlers = []
    litellm_logger.propagate = False

    return logging.getLogger(LOGGER_NAME)
