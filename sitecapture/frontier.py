from __future__ import annotations

import enum
from typing import Iterator, Optional


class TaskStatus(enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    PROCESSED = "processed"


class Task:
    """One capture of one URL. `original_url` and `depth` never change after creation."""

    __slots__ = ("url", "_original_url", "_depth", "status", "filename")

    def __init__(self, url: str, original_url: Optional[str] = None, depth: int = 0) -> None:
        self.url = url
        self._original_url = original_url if original_url is not None else url
        self._depth = depth
        self.status = TaskStatus.PENDING
        self.filename: Optional[str] = None

    @property
    def original_url(self) -> str:
        return self._original_url

    @property
    def depth(self) -> int:
        return self._depth

    def child(self, url: str, original_url: str) -> "Task":
        return Task(url, original_url, self._depth + 1)

    def mark_processing(self) -> None:
        if self.status is not TaskStatus.PENDING:
            raise ValueError(f"cannot start task in state {self.status.value}: {self.url}")
        self.status = TaskStatus.PROCESSING

    def mark_processed(self) -> None:
        if self.status is not TaskStatus.PROCESSING:
            raise ValueError(f"cannot finish task in state {self.status.value}: {self.url}")
        self.status = TaskStatus.PROCESSED

    def __repr__(self) -> str:
        return f"Task(url={self.url!r}, depth={self._depth}, status={self.status.value}, filename={self.filename!r})"


class Frontier:
    """
    Append-only, insertion-ordered collection of tasks.

    Tasks are claimed strictly in insertion order, so the Pending tasks are
    always the suffix starting at `_cursor`.
    """

    def __init__(self) -> None:
        self._tasks: list[Task] = []
        self._urls: set[str] = set()
        self._cursor = 0
        self._processing = 0

    def __len__(self) -> int:
        return len(self._tasks)

    def __iter__(self) -> Iterator[Task]:
        return iter(list(self._tasks))

    def __contains__(self, url: object) -> bool:
        return url in self._urls

    def __getitem__(self, index: int) -> Task:
        return self._tasks[index]

    def add(self, task: Task) -> bool:
        """Append `task` unless its url is empty or already present. Returns True if added."""
        if not task.url or task.url in self._urls:
            return False
        if task.status is not TaskStatus.PENDING:
            raise ValueError(f"only pending tasks can join the frontier: {task!r}")
        self._tasks.append(task)
        self._urls.add(task.url)
        return True

    def claim_next(self) -> Optional[Task]:
        """Mark the first Pending task as Processing and return it, or None if nothing is pending."""
        if self._cursor >= len(self._tasks):
            return None
        task = self._tasks[self._cursor]
        self._cursor += 1
        task.mark_processing()
        self._processing += 1
        return task

    def complete(self, task: Task) -> None:
        task.mark_processed()
        self._processing -= 1

    @property
    def pending_count(self) -> int:
        return len(self._tasks) - self._cursor

    @property
    def processing_count(self) -> int:
        return self._processing

    @property
    def drained(self) -> bool:
        return self.pending_count == 0 and self._processing == 0

    def processed_with_filename(self) -> list[Task]:
        return [t for t in self._tasks if t.status is TaskStatus.PROCESSED and t.filename]
