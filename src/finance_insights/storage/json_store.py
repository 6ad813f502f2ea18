import asyncio
import copy
import json
import os
from collections.abc import Iterable

from finance_insights.logger import get_logger

from .base import (
    STORE_NAMES,
    DuplicateKeyError,
    Record,
    Store,
    StorageError,
    check_store_name,
    record_id,
)

logger = get_logger(__name__)


class MemoryStore(Store):
    """Process-local store; every read and write copies so callers never share records."""

    def __init__(self) -> None:
        self._data: dict[str, dict[str, Record]] = {name: {} for name in STORE_NAMES}
        self._lock = asyncio.Lock()

    async def _commit(self) -> None:
        return None

    async def get_all(self, store: str) -> list[Record]:
        check_store_name(store)
        return [copy.deepcopy(record) for record in self._data[store].values()]

    async def put(self, store: str, record: Record) -> None:
        await self.put_many(store, [record])

    async def put_many(self, store: str, records: Iterable[Record]) -> None:
        check_store_name(store)
        staged = {record_id(record): copy.deepcopy(record) for record in records}
        async with self._lock:
            previous = dict(self._data[store])
            self._data[store].update(staged)
            await self._commit_or_restore(store, previous)

    async def add(self, store: str, record: Record) -> None:
        check_store_name(store)
        key = record_id(record)
        async with self._lock:
            if key in self._data[store]:
                raise DuplicateKeyError(f"Record '{key}' already exists in '{store}'")
            previous = dict(self._data[store])
            self._data[store][key] = copy.deepcopy(record)
            await self._commit_or_restore(store, previous)

    async def delete(self, store: str, record_id: str) -> None:
        check_store_name(store)
        async with self._lock:
            previous = dict(self._data[store])
            self._data[store].pop(record_id, None)
            await self._commit_or_restore(store, previous)

    async def clear(self, store: str) -> None:
        check_store_name(store)
        async with self._lock:
            previous = dict(self._data[store])
            self._data[store] = {}
            await self._commit_or_restore(store, previous)

    async def _commit_or_restore(self, store: str, previous: dict[str, Record]) -> None:
        try:
            await self._commit()
        except Exception:
            self._data[store] = previous
            raise


class JsonFileStore(MemoryStore):
    """Keeps all stores in one JSON document, rewritten atomically on every change."""

    def __init__(self, path: str) -> None:
        super().__init__()
        self.path = path
        self._load()

    def _load(self) -> None:
        if not os.path.exists(self.path):
            return
        try:
            with open(self.path, encoding="utf-8") as handle:
                raw = json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            raise StorageError(f"Cannot read store file {self.path}: {exc}") from exc

        for name in STORE_NAMES:
            records = raw.get(name, []) if isinstance(raw, dict) else []
            self._data[name] = {record_id(record): record for record in records}
        logger.info(
            "[STORE] Loaded %s (%s).",
            self.path,
            ", ".join(f"{name}={len(self._data[name])}" for name in STORE_NAMES),
        )

    def _write(self, snapshot: dict[str, list[Record]]) -> None:
        directory = os.path.dirname(self.path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        tmp_path = f"{self.path}.tmp"
        with open(tmp_path, "w", encoding="utf-8") as handle:
            json.dump(snapshot, handle, indent=2)
        os.replace(tmp_path, self.path)

    async def _commit(self) -> None:
        snapshot = {name: list(self._data[name].values()) for name in STORE_NAMES}
        try:
            await asyncio.to_thread(self._write, snapshot)
        except OSError as exc:
            logger.error("[STORE] Failed to write %s: %s", self.path, exc)
            raise StorageError(f"Cannot write store file {self.path}: {exc}") from exc
