from __future__ import annotations

import logging
import sys
from typing import Optional
from urllib.parse import urlsplit

import tldextract

from .storage import file_safe_name, sha1_short


LOGGER_NAME = "sitecapture"
LOG_FORMAT = "%(asctime)s %(levelname)s [%(site)s] %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# bundled public suffix snapshot, no network lookups
_tld_extract = tldextract.TLDExtract(suffix_list_urls=())


class _DefaultSiteFilter(logging.Filter):
    """Give records logged without an adapter a `site` field so the format never breaks."""

    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "site"):
            record.site = "ALL"
        return True


def setup_root_logger(log_file: Optional[str] = None, level: int = logging.INFO) -> logging.Logger:
    formatter = logging.Formatter(fmt=LOG_FORMAT, datefmt=DATE_FORMAT)
    root_logger = logging.getLogger(LOGGER_NAME)
    root_logger.setLevel(level)
    root_logger.handlers.clear()
    ch = logging.StreamHandler(stream=sys.stderr)
    ch.setLevel(level)
    ch.setFormatter(formatter)
    ch.addFilter(_DefaultSiteFilter())
    root_logger.addHandler(ch)
    if log_file:
        fh = logging.FileHandler(log_file, encoding="utf-8")
        fh.setLevel(level)
        fh.setFormatter(formatter)
        fh.addFilter(_DefaultSiteFilter())
        root_logger.addHandler(fh)
    return root_logger


def derive_site_slug(url: Optional[str]) -> str:
    if not url:
        return "ALL"
    parts = urlsplit(url)
    if parts.scheme == "file":
        return "file"
    ext = _tld_extract(url)
    base = f"{ext.domain}.{ext.suffix}" if ext.domain and ext.suffix else (parts.netloc or url)
    return file_safe_name(base, maxlen=80).replace(" ", "-") or sha1_short(url)


def get_logger(site: str = "ALL") -> logging.LoggerAdapter:
    return logging.LoggerAdapter(logging.getLogger(LOGGER_NAME), extra={"site": site})
