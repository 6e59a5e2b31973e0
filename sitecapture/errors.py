from __future__ import annotations

import logging
import traceback
from pathlib import Path
from typing import Optional


class SiteCaptureError(Exception):
    """Base class for errors raised by sitecapture."""


class CaptureFailure(SiteCaptureError):
    """The capture backend could not produce a page for a task."""

    def __init__(self, url: str, message: str) -> None:
        super().__init__(f"{message} ({url})")
        self.url = url


class PersistFailure(SiteCaptureError):
    """Reading or writing a captured file failed."""

    def __init__(self, path: Path, cause: Exception) -> None:
        super().__init__(f"{path}: {cause}")
        self.path = path
        self.cause = cause


class SchedulerBusy(SiteCaptureError):
    """A scheduler run was requested while another one is still in progress."""


def format_error_report(url: str, error: BaseException) -> str:
    stack = "".join(traceback.format_exception(type(error), error, error.__traceback__)).rstrip("\n")
    return f"URL: {url}\nStack: {stack}\n"


class ErrorReporter:
    """Report capture failures to an error log file, or to the logger when none is configured."""

    def __init__(self, error_file: Optional[str], logger: logging.LoggerAdapter) -> None:
        self.error_file = Path(error_file) if error_file else None
        self.logger = logger
        self.count = 0

    def report(self, url: str, error: BaseException) -> None:
        self.count += 1
        block = format_error_report(url, error)
        if self.error_file is None:
            self.logger.error(block.rstrip("\n"))
            return
        try:
            with self.error_file.open("a", encoding="utf-8") as f:
                f.write(block)
        except OSError as e:
            self.logger.error(f"Failed writing error log {self.error_file}: {e}")
            self.logger.error(block.rstrip("\n"))
