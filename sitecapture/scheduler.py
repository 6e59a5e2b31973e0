from __future__ import annotations

import asyncio
import logging
import sys
from pathlib import Path
from typing import Iterable, Optional

from .capture import CaptureBackend, CaptureRequest, CaptureResult
from .config import Config
from .errors import ErrorReporter, PersistFailure, SchedulerBusy
from .frontier import Frontier, Task
from .log import derive_site_slug, get_logger
from .policy import admit, is_valid_url
from .resolver import resolve_references
from .rewrite import rewrite_url
from .storage import Storage


class TaskScheduler:
    """
    Drains a growing frontier of capture tasks with a bounded pool of workers.

    Every worker loops: claim the first Pending task, capture it, persist the
    result, append admitted links to the frontier, mark it Processed. Workers
    wait on a condition while nothing is pending but other captures are still
    in flight, since those may discover more work. The run ends when no task
    is pending or processing.
    """

    def __init__(
        self,
        cfg: Config,
        backend: CaptureBackend,
        storage: Optional[Storage] = None,
        logger: Optional[logging.LoggerAdapter] = None,
        error_reporter: Optional[ErrorReporter] = None,
    ) -> None:
        self.cfg = cfg
        self.backend = backend
        self.storage = storage or Storage(cfg.output_dir)
        self.logger = logger or get_logger(derive_site_slug(cfg.url))
        self.error_reporter = error_reporter or ErrorReporter(cfg.error_file, self.logger)
        self.frontier = Frontier()

        self._processing = False
        self._single_seed = False

    # --------------------------- Public API -------------------------------- #

    @property
    def processing(self) -> bool:
        return self._processing

    def seed_urls(self) -> list[str]:
        if self.cfg.urls_file:
            content = Path(self.cfg.urls_file).read_text(encoding="utf-8")
            return [line.strip() for line in content.splitlines() if line.strip()]
        if self.cfg.url:
            return [self.cfg.url]
        return []

    def build_seed_tasks(self, urls: Optional[Iterable[str]] = None) -> list[Task]:
        tasks: list[Task] = []
        seen: set[str] = set()
        for raw in self.seed_urls() if urls is None else urls:
            url = self._rewrite(raw)
            if not is_valid_url(url):
                self.logger.warning(f"Skipping invalid URL: {raw!r}")
                continue
            if url in seen:
                continue
            seen.add(url)
            tasks.append(Task(url, raw, 0))
        return tasks

    async def run(self, seeds: Optional[Iterable[str]] = None) -> Frontier:
        """Capture every seed (and, when crawling, every admitted link), then resolve references."""
        if self._processing:
            raise SchedulerBusy("a crawl is already running on this scheduler")
        self._processing = True
        try:
            self.frontier = Frontier()
            for task in self.build_seed_tasks(seeds):
                self.frontier.add(task)
            self._single_seed = len(self.frontier) == 1
            cond = asyncio.Condition()
            persist_lock = asyncio.Lock()

            self.logger.info(
                f"Starting capture of {len(self.frontier)} URL(s) "
                f"with {self.cfg.max_parallel_workers} worker(s)"
            )
            workers = [asyncio.create_task(self._worker(cond, persist_lock)) for _ in range(self.cfg.max_parallel_workers)]
            await asyncio.gather(*workers)

            saved = self.frontier.processed_with_filename()
            self.logger.info(f"Completed: {len(saved)} of {len(self.frontier)} page(s) saved")
            if self.cfg.crawl_replace_urls:
                rewritten = await asyncio.to_thread(resolve_references, self.frontier, self.storage, self.logger)
                self.logger.info(f"Rewrote references in {rewritten} file(s)")
            return self.frontier
        finally:
            self._processing = False

    # --------------------------- Internal ---------------------------------- #

    def _rewrite(self, url: str) -> str:
        return rewrite_url(url, self.cfg.url_rewrite_rules, remove_fragment=self.cfg.crawl_remove_url_fragment)

    async def _worker(self, cond: asyncio.Condition, persist_lock: asyncio.Lock) -> None:
        while True:
            async with cond:
                while True:
                    task = self.frontier.claim_next()
                    if task is not None:
                        break
                    if self.frontier.processing_count == 0:
                        cond.notify_all()
                        return
                    await cond.wait()
            try:
                await self._process(task, cond, persist_lock)
            except Exception as e:
                self.logger.exception(f"Unhandled error processing {task.url}: {e}")
            finally:
                async with cond:
                    self.frontier.complete(task)
                    cond.notify_all()

    async def _process(self, task: Task, cond: asyncio.Condition, persist_lock: asyncio.Lock) -> None:
        request = CaptureRequest(url=task.url, config=self.cfg)
        try:
            result = await self.backend.capture(request)
        except Exception as e:
            self.error_reporter.report(task.url, e)
            return

        if self.cfg.crawl_links and task.depth < self.cfg.crawl_max_depth:
            added = self._expand(task, result.links)
            if added:
                self.logger.info(f"Discovered {added} new link(s) on {task.url} (depth {task.depth})")
                async with cond:
                    cond.notify_all()

        await self._persist(task, result, persist_lock)

    def _expand(self, task: Task, links: Iterable[str]) -> int:
        added = 0
        for link in links:
            url = self._rewrite(link)
            if admit(url, task, self.cfg, self.frontier):
                self.frontier.add(task.child(url, link))
                added += 1
        return added

    async def _persist(self, task: Task, result: CaptureResult, persist_lock: asyncio.Lock) -> None:
        if self.cfg.dump_content:
            sys.stdout.write(result.content)
            sys.stdout.flush()
            return
        desired = self.cfg.output if (self.cfg.output and self._single_seed and task.depth == 0) else result.filename
        async with persist_lock:
            name = self.storage.allocate(desired)
            try:
                await asyncio.to_thread(self.storage.write_text, name, result.content)
            except PersistFailure as e:
                self.logger.error(f"Failed saving {task.url}: {e}")
                return
        task.filename = name
        self.logger.info(f"Saved page: {task.url} -> {name}")
