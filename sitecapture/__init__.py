"""Capture web pages to local files and crawl sites, linking the saved copies together."""

from .capture import CaptureBackend, CaptureRequest, CaptureResult, HttpCaptureBackend
from .config import Config
from .errors import CaptureFailure, PersistFailure, SchedulerBusy, SiteCaptureError
from .frontier import Frontier, Task, TaskStatus
from .policy import admit, host_key
from .resolver import replace_references, resolve_references
from .rewrite import RewriteRule, parse_rewrite_rules, rewrite_url
from .scheduler import TaskScheduler
from .storage import Storage

__all__ = [
    "CaptureBackend",
    "CaptureFailure",
    "CaptureRequest",
    "CaptureResult",
    "Config",
    "Frontier",
    "HttpCaptureBackend",
    "PersistFailure",
    "RewriteRule",
    "SchedulerBusy",
    "SiteCaptureError",
    "Storage",
    "Task",
    "TaskScheduler",
    "TaskStatus",
    "admit",
    "host_key",
    "parse_rewrite_rules",
    "replace_references",
    "resolve_references",
    "rewrite_url",
]
