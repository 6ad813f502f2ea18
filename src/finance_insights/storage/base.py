from abc import ABC, abstractmethod
from collections.abc import Iterable
from typing import Any

TRANSACTIONS = "transactions"
CATEGORIES = "categories"
RULES = "rules"
BUDGETS = "budgets"
STORE_NAMES = (TRANSACTIONS, CATEGORIES, RULES, BUDGETS)

Record = dict[str, Any]


class StorageError(RuntimeError):
    """The backing store could not complete an operation."""


class DuplicateKeyError(StorageError):
    pass


class Store(ABC):
    """Keyed object stores holding plain JSON records with an ``id`` key."""

    @abstractmethod
    async def get_all(self, store: str) -> list[Record]:
        pass

    @abstractmethod
    async def put(self, store: str, record: Record) -> None:
        """Insert or replace by id."""
        pass

    @abstractmethod
    async def put_many(self, store: str, records: Iterable[Record]) -> None:
        """Insert or replace several records as one write."""
        pass

    @abstractmethod
    async def add(self, store: str, record: Record) -> None:
        """Insert; raises :class:`DuplicateKeyError` if the id exists."""
        pass

    @abstractmethod
    async def delete(self, store: str, record_id: str) -> None:
        pass

    @abstractmethod
    async def clear(self, store: str) -> None:
        pass


def check_store_name(store: str) -> None:
    if store not in STORE_NAMES:
        raise StorageError(f"Unknown store '{store}'")


def record_id(record: Record) -> str:
    value = record.get("id")
    if not value:
        raise StorageError("Record is missing an 'id'")
    return str(value)
