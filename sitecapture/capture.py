from __future__ import annotations

import asyncio
import dataclasses
import datetime
import logging
import random
import time
from pathlib import Path
from typing import Optional, Protocol
from urllib.parse import urljoin, urlsplit
from urllib.request import url2pathname

import httpx
from bs4 import BeautifulSoup

from .config import Config
from .errors import CaptureFailure
from .log import get_logger
from .policy import is_valid_url
from .storage import file_safe_name, sha1_short


# ------------------------------ Interface ---------------------------------- #


@dataclasses.dataclass(frozen=True)
class CaptureRequest:
    """Options for capturing one task: the shared config plus the task's URL."""

    url: str
    config: Config


@dataclasses.dataclass(frozen=True)
class CaptureResult:
    content: str
    filename: str
    links: tuple[str, ...] = ()


class CaptureBackend(Protocol):
    async def capture(self, request: CaptureRequest) -> CaptureResult:
        ...


# ------------------------ Rate Limiter & Retries --------------------------- #


class RateLimiter:
    def __init__(self, delay: float):
        self.delay = max(0.0, delay)
        self._lock = asyncio.Lock()
        self._last_time: float = 0.0

    async def wait(self) -> None:
        if self.delay <= 0:
            return
        min_interval = self.delay + random.uniform(0, self.delay * 0.3)
        async with self._lock:
            now = time.monotonic()
            wait_for = self._last_time + min_interval - now
            if wait_for > 0:
                await asyncio.sleep(wait_for)
            self._last_time = time.monotonic()


async def fetch_with_retries(
    client: httpx.AsyncClient,
    url: str,
    *,
    logger: logging.LoggerAdapter,
    rate_limiter: RateLimiter,
    max_attempts: int = 3,
    backoff_factor: float = 0.8,
    timeout: int = 30,
) -> httpx.Response:
    """GET `url`, retrying connection errors and 5xx answers. Raises CaptureFailure when out of attempts."""
    attempt = 0
    last_error: Optional[Exception] = None
    while attempt < max_attempts:
        attempt += 1
        try:
            await rate_limiter.wait()
            resp = await client.get(url, timeout=timeout, follow_redirects=True)
            if resp.status_code >= 500:
                raise httpx.HTTPStatusError(
                    f"Server error {resp.status_code}", request=resp.request, response=resp
                )
            if resp.status_code >= 400:
                raise CaptureFailure(url, f"HTTP {resp.status_code}")
            return resp
        except (httpx.TransportError, httpx.HTTPStatusError) as e:
            last_error = e
            if attempt >= max_attempts:
                break
            wait = (2 ** (attempt - 1)) * backoff_factor
            logger.warning(f"Attempt {attempt} failed for {url}: {e}. Retrying in {wait:.1f}s")
            await asyncio.sleep(wait)
    raise CaptureFailure(url, f"exceeded retry limit: {last_error}")


# ------------------------------- HTML Parsing ------------------------------- #


def parse_page(html: str, base_url: str) -> tuple[str, list[str], str]:
    """
    Return the page title, the absolute targets of its `<a>`/`<area>` links and
    the document with those `href`s rewritten to the absolute form.
    """
    soup = BeautifulSoup(html, "lxml")
    title = soup.title.string.strip() if soup.title and soup.title.string else ""
    base_tag = soup.find("base", href=True)
    if base_tag:
        base_url = urljoin(base_url, base_tag["href"].strip())
    links: list[str] = []
    for el in soup.find_all(["a", "area"], href=True):
        href = el.get("href", "").strip()
        if not href or href.startswith("#"):
            continue
        link = urljoin(base_url, href)
        if is_valid_url(link):
            el["href"] = link
            links.append(link)
    return title, links, str(soup)


def suggested_filename(title: str, url: str, append_save_date: bool = False, now: Optional[datetime.datetime] = None) -> str:
    name = file_safe_name(title) if title else ""
    if not name:
        path_name = file_safe_name(Path(urlsplit(url).path).stem)
        name = f"{path_name} {sha1_short(url)}" if path_name else sha1_short(url)
    if append_save_date:
        now = now or datetime.datetime.now()
        name += f" ({now:%Y-%m-%d} {now:%H.%M.%S})"
    return name + ".html"


# ------------------------------ HTTP backend ------------------------------- #


class HttpCaptureBackend:
    """
    Minimal capture backend: fetches a page (no resource inlining), makes its
    link targets absolute, names it after its title and reports its outbound
    links.

    Use as an async context manager; the HTTP client lives for the duration
    of the block and is shared by every concurrent capture.
    """

    def __init__(self, cfg: Config, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        self.cfg = cfg
        self.logger = get_logger()
        self.rate_limiter = RateLimiter(cfg.delay)
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def __aenter__(self) -> "HttpCaptureBackend":
        headers = {
            "User-Agent": self.cfg.user_agent,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en;q=0.7, *;q=0.5",
        }
        limits = httpx.Limits(max_keepalive_connections=20, max_connections=max(self.cfg.max_parallel_workers, 10))
        self._client = httpx.AsyncClient(
            headers=headers,
            limits=limits,
            timeout=httpx.Timeout(self.cfg.timeout),
            follow_redirects=True,
            transport=self._transport,
        )
        return self

    async def __aexit__(self, *exc_info) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def capture(self, request: CaptureRequest) -> CaptureResult:
        url = request.url
        if urlsplit(url).scheme.lower() == "file":
            html = await asyncio.to_thread(self._read_local, url)
            base_url = url
        else:
            if self._client is None:
                raise RuntimeError("HttpCaptureBackend used outside of its 'async with' block")
            resp = await fetch_with_retries(
                self._client,
                url,
                logger=self.logger,
                rate_limiter=self.rate_limiter,
                max_attempts=request.config.max_attempts,
                timeout=request.config.timeout,
            )
            try:
                html = resp.text
            except UnicodeDecodeError:
                html = resp.content.decode("utf-8", errors="replace")
            base_url = str(resp.url)

        title, links, content = parse_page(html, base_url)
        filename = suggested_filename(title, url, request.config.append_save_date)
        return CaptureResult(content=content, filename=filename, links=tuple(links))

    @staticmethod
    def _read_local(url: str) -> str:
        path = Path(url2pathname(urlsplit(url).path))
        try:
            return path.read_text(encoding="utf-8", errors="replace")
        except OSError as e:
            raise CaptureFailure(url, f"cannot read local file: {e}") from e
