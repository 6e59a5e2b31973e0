from __future__ import annotations

import re
from typing import TYPE_CHECKING
from urllib.parse import urlsplit

if TYPE_CHECKING:
    from .config import Config
    from .frontier import Frontier, Task


VALID_URL_RE = re.compile(r"^(?:https?|file)://", re.I)


def is_valid_url(url: str) -> bool:
    return bool(url) and bool(VALID_URL_RE.match(url))


def host_key(url: str) -> str:
    """
    Scheme, optional credentials and hostname of `url`, without port or path.

    `https://user:pw@a.com:8443/x` -> `https://user:pw@a.com`
    """
    parts = urlsplit(url)
    userinfo, _, host = parts.netloc.rpartition("@")
    if host.startswith("["):
        host = host[: host.find("]") + 1] if "]" in host else host
    else:
        host = host.partition(":")[0]
    userinfo = userinfo + "@" if userinfo else ""
    return f"{parts.scheme}://{userinfo}{host.lower()}"


def admit(candidate_url: str, parent: "Task", config: "Config", frontier: "Frontier") -> bool:
    """
    Decide whether a link discovered on `parent` becomes a new task.

    The inner-links check is a plain prefix match on the host key, so
    `https://a.com` also admits `https://a.com.example.org/`.
    """
    if not is_valid_url(candidate_url):
        return False
    if parent.depth + 1 > config.crawl_max_depth:
        return False
    if candidate_url in frontier:
        return False
    if config.crawl_inner_links_only and not candidate_url.startswith(host_key(parent.url)):
        return False
    return True
