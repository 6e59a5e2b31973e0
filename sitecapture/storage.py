from __future__ import annotations

import hashlib
import re
from pathlib import Path

from slugify import slugify

from .errors import PersistFailure


EXTENSION_RE = re.compile(r"(\.[^.]+)$")


# ----------------------------- Utilities ----------------------------------- #


def sha1_short(s: str) -> str:
    return hashlib.sha1(s.encode("utf-8", errors="ignore")).hexdigest()[:10]


def file_safe_name(text: str, maxlen: int = 120) -> str:
    """Readable, filesystem-safe rendition of `text` (keeps case and spaces)."""
    return slugify(text, max_length=maxlen, lowercase=False, separator=" ", allow_unicode=True).strip(" -_.")


def numbered_name(name: str, index: int) -> str:
    """`page.html`, 3 -> `page - 3.html`; `page`, 3 -> `page - 3`."""
    if index <= 1:
        return name
    if EXTENSION_RE.search(name):
        return EXTENSION_RE.sub(lambda m: f" - {index}{m.group(1)}", name, count=1)
    return f"{name} - {index}"


# ------------------------------ Storage ------------------------------------ #


class Storage:
    """Captured pages as UTF-8 text files under one output directory."""

    def __init__(self, output_dir: Path | str = ".") -> None:
        self.output_dir = Path(output_dir)

    def path_for(self, name: str) -> Path:
        return self.output_dir / name

    def exists(self, name: str) -> bool:
        return self.path_for(name).exists()

    def allocate(self, desired_name: str) -> str:
        """
        Return `desired_name` if no such file exists, otherwise the first free
        `"<stem> - N<ext>"` for N = 2, 3, ...

        Probing and writing are separate steps; callers that persist
        concurrently must serialize allocate + write themselves.
        """
        index = 1
        name = desired_name
        while self.exists(name):
            index += 1
            name = numbered_name(desired_name, index)
        return name

    def read_text(self, name: str) -> str:
        path = self.path_for(name)
        try:
            return path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise PersistFailure(path, e) from e

    def write_text(self, name: str, content: str) -> Path:
        path = self.path_for(name)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as e:
            raise PersistFailure(path, e) from e
        return path
