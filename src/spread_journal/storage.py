"""Repositories: one per entity type, in memory or as locked JSON files.

Repositories hold no engine logic. They store whole entities keyed by id
and hand them back unchanged; the coordinator reloads after every write.
"""

from __future__ import annotations

import json
import logging
import os
from contextlib import contextmanager
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Generator, Generic, Protocol, TypeVar

import portalocker

from .models import Event, Note, Spread, Task

logger = logging.getLogger(__name__)

T = TypeVar("T")


class Repository(Protocol[T]):
    """Storage seam for one entity type."""

    def get_all(self) -> list[T]:
        ...

    def save(self, entity: T) -> None:
        ...

    def delete(self, entity: T) -> None:
        ...


class InMemoryRepository(Generic[T]):
    """Dict-backed repository; insertion order is preserved."""

    def __init__(self, items: list[T] | None = None):
        self._items: dict[str, T] = {}
        for item in items or []:
            self._items[item.id] = item

    def get_all(self) -> list[T]:
        return list(self._items.values())

    def save(self, entity: T) -> None:
        self._items[entity.id] = entity

    def delete(self, entity: T) -> None:
        self._items.pop(entity.id, None)


# ========== JSON files ==========

@contextmanager
def locked(path: Path, timeout: float = 10.0) -> Generator[None, None, None]:
    """Hold an exclusive lock on `<path>.lock` for the duration of the block.

    Raises:
        portalocker.LockException: If the lock is not acquired within `timeout`
    """
    lock_path = path.with_suffix(path.suffix + ".lock")
    lock_path.parent.mkdir(parents=True, exist_ok=True)
    lock_path.touch(exist_ok=True)

    with portalocker.Lock(lock_path, timeout=timeout):
        yield


def write_json_atomically(path: Path, payload: Any) -> None:
    """Write JSON to a sibling temp file, then rename it over `path`."""
    tmp_path = path.with_suffix(path.suffix + ".tmp")
    path.parent.mkdir(parents=True, exist_ok=True)

    try:
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2)
        os.replace(tmp_path, path)
    except Exception:
        if tmp_path.exists():
            tmp_path.unlink()
        raise


class JsonFileRepository(Generic[T]):
    """Repository persisted as a JSON array of `to_dict()` records.

    Every operation takes the file lock, so concurrent processes see whole
    files only. `from_dict` rebuilds entities on read.
    """

    def __init__(self, path: Path, from_dict: Callable[[dict], T], timeout: float = 10.0):
        self.path = Path(path)
        self.from_dict = from_dict
        self.timeout = timeout

    def _read(self) -> list[dict]:
        if not self.path.exists():
            return []
        with open(self.path, "r", encoding="utf-8") as f:
            data = json.load(f)
        if not isinstance(data, list):
            raise ValueError(f"{self.path} does not contain a JSON array")
        return data

    def get_all(self) -> list[T]:
        with locked(self.path, self.timeout):
            records = self._read()
        return [self.from_dict(r) for r in records]

    def save(self, entity: T) -> None:
        record = entity.to_dict()
        with locked(self.path, self.timeout):
            records = self._read()
            for i, existing in enumerate(records):
                if existing.get("id") == entity.id:
                    records[i] = record
                    break
            else:
                records.append(record)
            write_json_atomically(self.path, records)
        logger.debug("Saved %s to %s", entity.id, self.path.name)

    def delete(self, entity: T) -> None:
        with locked(self.path, self.timeout):
            records = self._read()
            kept = [r for r in records if r.get("id") != entity.id]
            if len(kept) != len(records):
                write_json_atomically(self.path, kept)
        logger.debug("Deleted %s from %s", entity.id, self.path.name)


@dataclass
class RepositorySet:
    """The four repositories the coordinator works against."""
    spreads: Repository[Spread]
    tasks: Repository[Task]
    notes: Repository[Note]
    events: Repository[Event]

    @classmethod
    def in_memory(cls) -> "RepositorySet":
        return cls(
            spreads=InMemoryRepository(),
            tasks=InMemoryRepository(),
            notes=InMemoryRepository(),
            events=InMemoryRepository(),
        )

    @classmethod
    def json_dir(cls, directory: Path) -> "RepositorySet":
        """JSON repositories stored as spreads.json, tasks.json, ... in `directory`."""
        directory = Path(directory)
        return cls(
            spreads=JsonFileRepository(directory / "spreads.json", Spread.from_dict),
            tasks=JsonFileRepository(directory / "tasks.json", Task.from_dict),
            notes=JsonFileRepository(directory / "notes.json", Note.from_dict),
            events=JsonFileRepository(directory / "events.json", Event.from_dict),
        )
