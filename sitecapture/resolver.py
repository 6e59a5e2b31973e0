"""
Post-crawl pass that turns references to crawled URLs into local filenames.

For each saved page, every occurrence of another saved page's original URL
is replaced when it appears as

    "url"       -> "filename"
    'url'       -> 'filename'
    =url<space> -> =filename%20escaped<space>
    =url>       -> =filename%20escaped>

Matching is case-insensitive. Unquoted values get spaces encoded as %20 so
the attribute value stays a single token.
"""

from __future__ import annotations

import logging
import re
from typing import Iterable, Optional

from .errors import PersistFailure
from .frontier import Task, TaskStatus
from .storage import Storage


def replace_references(content: str, original_url: str, filename: str) -> str:
    url = re.escape(original_url)
    escaped = filename.replace(" ", "%20")
    substitutions = (
        (f'"{url}"', f'"{filename}"'),
        (f"'{url}'", f"'{filename}'"),
        (f"={url} ", f"={escaped} "),
        (f"={url}>", f"={escaped}>"),
    )
    for pattern, replacement in substitutions:
        content = re.sub(pattern, lambda _m, r=replacement: r, content, flags=re.I)
    return content


def resolve_references(
    tasks: Iterable[Task],
    storage: Storage,
    logger: Optional[logging.LoggerAdapter] = None,
) -> int:
    """Rewrite every saved page in place. Returns the number of files written back."""
    saved = [t for t in tasks if t.status is TaskStatus.PROCESSED and t.filename]
    rewritten = 0
    for task in saved:
        try:
            content = storage.read_text(task.filename)
            for other in saved:
                if other is not task:
                    content = replace_references(content, other.original_url, other.filename)
            storage.write_text(task.filename, content)
        except PersistFailure as e:
            if logger is not None:
                logger.debug(f"Leaving {task.filename} as captured: {e}")
            continue
        rewritten += 1
    return rewritten
