from __future__ import annotations

import dataclasses
from pathlib import Path
from typing import Any, Mapping, Optional

import yaml

from .rewrite import RewriteRule, load_rewrite_rules, parse_rewrite_rules


DEFAULT_USER_AGENT = "sitecapture/0.1 (+https://example.com/bot)"


# --------------------------- Configuration --------------------------------- #


@dataclasses.dataclass(frozen=True)
class Config:
    # Seeds
    url: Optional[str] = None
    urls_file: Optional[str] = None

    # Crawl
    max_parallel_workers: int = 8
    crawl_links: bool = False
    crawl_max_depth: int = 1
    crawl_inner_links_only: bool = True
    crawl_remove_url_fragment: bool = True
    crawl_replace_urls: bool = False
    url_rewrite_rules: tuple[RewriteRule, ...] = ()

    # Output
    output_dir: str = "."
    output: Optional[str] = None
    dump_content: bool = False
    append_save_date: bool = False
    error_file: Optional[str] = None
    log_file: Optional[str] = "sitecapture.log"

    # HTTP backend
    user_agent: str = DEFAULT_USER_AGENT
    timeout: int = 30  # seconds per request
    delay: float = 0.0  # seconds between requests (base)
    max_attempts: int = 3

    def __post_init__(self) -> None:
        if self.max_parallel_workers < 1:
            raise ValueError("max_parallel_workers must be at least 1")
        if self.crawl_max_depth < 0:
            raise ValueError("crawl_max_depth must not be negative")

    @staticmethod
    def from_mapping(data: Mapping[str, Any]) -> "Config":
        rules = parse_rewrite_rules(data.get("url_rewrite_rules") or ())
        rules_file = data.get("url_rewrite_rules_file")
        if rules_file:
            rules += load_rewrite_rules(Path(rules_file))
        return Config(
            url=data.get("url"),
            urls_file=data.get("urls_file"),
            max_parallel_workers=int(data.get("max_parallel_workers", 8)),
            crawl_links=bool(data.get("crawl_links", False)),
            crawl_max_depth=int(data.get("crawl_max_depth", 1)),
            crawl_inner_links_only=bool(data.get("crawl_inner_links_only", True)),
            crawl_remove_url_fragment=bool(data.get("crawl_remove_url_fragment", True)),
            crawl_replace_urls=bool(data.get("crawl_replace_urls", False)),
            url_rewrite_rules=tuple(rules),
            output_dir=data.get("output_dir", "."),
            output=data.get("output"),
            dump_content=bool(data.get("dump_content", False)),
            append_save_date=bool(data.get("append_save_date", False)),
            error_file=data.get("error_file"),
            log_file=data.get("log_file", "sitecapture.log"),
            user_agent=data.get("user_agent", DEFAULT_USER_AGENT),
            timeout=int(data.get("timeout", 30)),
            delay=float(data.get("delay", 0.0)),
            max_attempts=int(data.get("max_attempts", 3)),
        )

    @staticmethod
    def from_yaml(path: Path) -> "Config":
        with path.open("r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
        return Config.from_mapping(data)

    def with_overrides(self, **overrides: Any) -> "Config":
        """Return a copy with every non-None override applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        return dataclasses.replace(self, **changes) if changes else self
