from __future__ import annotations

import argparse
import asyncio
from pathlib import Path
from typing import Iterable, Optional

from .capture import HttpCaptureBackend
from .config import Config
from .log import derive_site_slug, get_logger, setup_root_logger
from .rewrite import load_rewrite_rules
from .scheduler import TaskScheduler


# ------------------------------- CLI --------------------------------------- #


def _flag(parser: argparse.ArgumentParser, name: str, help: str) -> None:
    parser.add_argument(f"--{name}", dest=name.replace("-", "_"), action=argparse.BooleanOptionalAction, default=None, help=help)


def parse_args(argv: Optional[Iterable[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Capture web pages to local files, optionally crawling their links.")
    parser.add_argument("url", nargs="?", help="URL of the page to capture.")
    parser.add_argument("--urls-file", help="File with one URL per line to capture.")
    parser.add_argument("--config", "-c", type=Path, help="Path to YAML configuration file.")
    parser.add_argument("--output-dir", help="Directory receiving captured pages.")
    parser.add_argument("--output", help="Filename for the captured page (single URL only).")
    parser.add_argument("--error-file", help="Append capture failures to this file instead of logging them.")
    parser.add_argument("--log-file", help="Log file path.")
    parser.add_argument("--max-parallel-workers", type=int, help="Maximum number of concurrent captures.")
    parser.add_argument("--crawl-max-depth", type=int, help="Maximum link depth followed from the seed pages.")
    parser.add_argument("--url-rewrite-rules-file", type=Path, help="File of '<regex> <replacement>' lines applied to every URL.")
    _flag(parser, "crawl-links", "Capture the pages linked from the seed pages.")
    _flag(parser, "crawl-inner-links-only", "Only follow links on the same host as the page.")
    _flag(parser, "crawl-remove-url-fragment", "Drop '#fragment' from discovered URLs.")
    _flag(parser, "crawl-replace-urls", "Point links between captured pages at the local files.")
    _flag(parser, "dump-content", "Write captured content to stdout instead of files.")
    _flag(parser, "append-save-date", "Append the capture date to filenames.")
    return parser.parse_args(argv)


def build_config(args: argparse.Namespace) -> Config:
    cfg = Config.from_yaml(args.config) if args.config else Config()
    rules = None
    if args.url_rewrite_rules_file:
        rules = cfg.url_rewrite_rules + tuple(load_rewrite_rules(args.url_rewrite_rules_file))
    return cfg.with_overrides(
        url=args.url,
        urls_file=args.urls_file,
        output_dir=args.output_dir,
        output=args.output,
        error_file=args.error_file,
        log_file=args.log_file,
        max_parallel_workers=args.max_parallel_workers,
        crawl_max_depth=args.crawl_max_depth,
        url_rewrite_rules=rules,
        crawl_links=args.crawl_links,
        crawl_inner_links_only=args.crawl_inner_links_only,
        crawl_remove_url_fragment=args.crawl_remove_url_fragment,
        crawl_replace_urls=args.crawl_replace_urls,
        dump_content=args.dump_content,
        append_save_date=args.append_save_date,
    )


async def main_async(cfg: Config) -> int:
    Path(cfg.output_dir).mkdir(parents=True, exist_ok=True)
    setup_root_logger(cfg.log_file)
    logger = get_logger(derive_site_slug(cfg.url))
    if not cfg.url and not cfg.urls_file:
        logger.error("No URL given (pass a URL, --urls-file, or 'url'/'urls_file' in the config)")
        return 2

    async with HttpCaptureBackend(cfg) as backend:
        scheduler = TaskScheduler(cfg, backend, logger=logger)
        frontier = await scheduler.run()
    failures = scheduler.error_reporter.count
    logger.info(f"All done. {len(frontier.processed_with_filename())} saved, {failures} failed.")
    return 1 if failures and not frontier.processed_with_filename() else 0


def main(argv: Optional[Iterable[str]] = None) -> int:
    args = parse_args(argv)
    cfg = build_config(args)
    try:
        return asyncio.run(main_async(cfg))
    except KeyboardInterrupt:
        return 130
