from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from datetime import datetime, timezone
from typing import Any, TypeVar

from pydantic import BaseModel

from finance_insights.domain.defaults import DEFAULT_BUDGETS, DEFAULT_CATEGORIES
from finance_insights.domain.rules import rule_matches, sort_rules
from finance_insights.logger import get_logger
from finance_insights.models import UNCATEGORIZED_ID, Budget, Category, LedgerExport, Rule, Transaction
from finance_insights.storage.base import BUDGETS, CATEGORIES, RULES, TRANSACTIONS, Store

logger = get_logger(__name__)

ModelT = TypeVar("ModelT", bound=BaseModel)


class LedgerError(Exception):
    """Raised for requests the ledger refuses: unknown ids or protected records."""

    def __init__(self, message: str, *, not_found: bool = False) -> None:
        super().__init__(message)
        self.not_found = not_found


def _dump(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(by_alias=True, mode="json")


def _sortable_date(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class LedgerRepository:
    """Typed access to the four ledger collections on top of a :class:`Store`."""

    def __init__(self, store: Store) -> None:
        self.store = store

    async def _load(self, name: str, model: type[ModelT]) -> list[ModelT]:
        return [model.model_validate(record) for record in await self.store.get_all(name)]

    async def init(self) -> None:
        """Seed default categories and budgets into empty collections."""
        if not await self.store.get_all(CATEGORIES):
            await self.store.put_many(CATEGORIES, [_dump(c) for c in DEFAULT_CATEGORIES])
            logger.info("[LEDGER] Seeded %d default categories.", len(DEFAULT_CATEGORIES))
        else:
            await self._ensure_uncategorized()
        if not await self.store.get_all(BUDGETS):
            await self._seed_budgets()

    async def _ensure_uncategorized(self) -> bool:
        """Restore the reserved category if it is missing. Returns whether it was added."""
        if any(record.get("id") == UNCATEGORIZED_ID for record in await self.store.get_all(CATEGORIES)):
            return False
        reserved = next(c for c in DEFAULT_CATEGORIES if c.id == UNCATEGORIZED_ID)
        await self.store.put(CATEGORIES, _dump(reserved))
        logger.warning("[LEDGER] Reserved category '%s' was missing; restored it.", UNCATEGORIZED_ID)
        return True

    async def _seed_budgets(self) -> None:
        now = datetime.now(timezone.utc)
        await self.store.put_many(
            BUDGETS,
            [_dump(b.model_copy(update={"updated_at": now})) for b in DEFAULT_BUDGETS],
        )
        logger.info("[LEDGER] Seeded %d default budgets.", len(DEFAULT_BUDGETS))

    async def clear_all_data(self) -> None:
        for name in (TRANSACTIONS, RULES, CATEGORIES, BUDGETS):
            await self.store.clear(name)
        logger.warning("[LEDGER] All data erased; restoring defaults.")
        await self.init()

    # Transactions

    async def get_transactions(self) -> list[Transaction]:
        transactions = await self._load(TRANSACTIONS, Transaction)
        return sorted(transactions, key=lambda tx: _sortable_date(tx.date), reverse=True)

    async def get_transaction(self, transaction_id: str) -> Transaction:
        for tx in await self._load(TRANSACTIONS, Transaction):
            if tx.id == transaction_id:
                return tx
        raise LedgerError(f"Transaction '{transaction_id}' not found", not_found=True)

    async def add_transactions(self, transactions: Iterable[Transaction]) -> None:
        records = [_dump(tx) for tx in transactions]
        if records:
            await self.store.put_many(TRANSACTIONS, records)
            logger.info("[LEDGER] Stored %d transaction(s).", len(records))

    async def update_transaction(self, transaction: Transaction) -> None:
        await self.get_transaction(transaction.id)
        await self.store.put(TRANSACTIONS, _dump(transaction))

    async def batch_update_transactions(self, transactions: Sequence[Transaction]) -> None:
        if transactions:
            await self.store.put_many(TRANSACTIONS, [_dump(tx) for tx in transactions])

    async def set_category(self, transaction_id: str, category_id: str) -> Transaction:
        """Manual re-tag: the provenance flags no longer apply."""
        await self._require_category(category_id)
        tx = await self.get_transaction(transaction_id)
        updated = tx.model_copy(update={
            "category_id": category_id,
            "categorized_by_rule": False,
            "categorized_by_ai": False,
        })
        await self.store.put(TRANSACTIONS, _dump(updated))
        return updated

    async def delete_transaction(self, transaction_id: str) -> None:
        await self.store.delete(TRANSACTIONS, transaction_id)

    async def erase_transactions(self) -> None:
        await self.store.clear(TRANSACTIONS)
        logger.info("[LEDGER] Transactions erased.")

    # Categories

    async def get_categories(self) -> list[Category]:
        return await self._load(CATEGORIES, Category)

    async def _require_category(self, category_id: str) -> Category:
        for category in await self.get_categories():
            if category.id == category_id:
                return category
        raise LedgerError(f"Category '{category_id}' not found", not_found=True)

    async def add_category(self, category: Category) -> None:
        await self.store.add(CATEGORIES, _dump(category))

    async def update_category(self, category: Category) -> None:
        await self._require_category(category.id)
        await self.store.put(CATEGORIES, _dump(category))

    async def delete_category(self, category_id: str) -> int:
        """Remove a category and move its transactions to Uncategorized. Returns how many moved."""
        if category_id == UNCATEGORIZED_ID:
            raise LedgerError("The Uncategorized category cannot be deleted")
        await self._require_category(category_id)

        moved = [
            tx.model_copy(update={"category_id": UNCATEGORIZED_ID})
            for tx in await self._load(TRANSACTIONS, Transaction)
            if tx.category_id == category_id
        ]
        await self.batch_update_transactions(moved)
        await self.store.delete(CATEGORIES, category_id)
        logger.info("[LEDGER] Deleted category %s; %d transaction(s) uncategorized.", category_id, len(moved))
        return len(moved)

    # Rules

    async def get_rules(self) -> list[Rule]:
        return sort_rules(await self._load(RULES, Rule))

    async def get_rule(self, rule_id: str) -> Rule:
        for rule in await self._load(RULES, Rule):
            if rule.id == rule_id:
                return rule
        raise LedgerError(f"Rule '{rule_id}' not found", not_found=True)

    async def add_rule(self, rule: Rule) -> Rule:
        """Append after the current last rule."""
        max_order = max((r.order for r in await self._load(RULES, Rule)), default=0)
        stored = rule.model_copy(update={"order": max(max_order, 0) + 1})
        await self.store.add(RULES, _dump(stored))
        return stored

    async def update_rule(self, rule: Rule) -> Rule:
        existing = await self.get_rule(rule.id)
        stored = rule.model_copy(update={"order": existing.order})
        await self.store.put(RULES, _dump(stored))
        return stored

    async def delete_rule(self, rule_id: str) -> None:
        await self.store.delete(RULES, rule_id)

    async def reorder_rules(self, ids: Sequence[str]) -> list[Rule]:
        """Give the listed rules orders 1..n in list order; unknown ids are ignored."""
        by_id = {rule.id: rule for rule in await self._load(RULES, Rule)}
        reordered = [
            by_id[rule_id].model_copy(update={"order": position})
            for position, rule_id in enumerate(ids, start=1)
            if rule_id in by_id
        ]
        if reordered:
            await self.store.put_many(RULES, [_dump(rule) for rule in reordered])
        return await self.get_rules()

    async def apply_rule(self, rule: Rule) -> int:
        """Re-tag every matching transaction whose category differs. Returns the count."""
        updated = [
            tx.model_copy(update={
                "category_id": rule.category_id,
                "categorized_by_rule": True,
                "categorized_by_ai": False,
            })
            for tx in await self._load(TRANSACTIONS, Transaction)
            if rule_matches(rule, tx.description) and tx.category_id != rule.category_id
        ]
        await self.batch_update_transactions(updated)
        logger.info("[RULES] Rule %s re-tagged %d transaction(s).", rule.id, len(updated))
        return len(updated)

    # Budgets

    async def get_budgets(self) -> list[Budget]:
        return await self._load(BUDGETS, Budget)

    async def add_budget(self, budget: Budget) -> Budget:
        stored = budget.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        await self.store.add(BUDGETS, _dump(stored))
        return stored

    async def update_budget(self, budget: Budget) -> Budget:
        if not any(b.id == budget.id for b in await self.get_budgets()):
            raise LedgerError(f"Budget '{budget.id}' not found", not_found=True)
        stored = budget.model_copy(update={"updated_at": datetime.now(timezone.utc)})
        await self.store.put(BUDGETS, _dump(stored))
        return stored

    async def delete_budget(self, budget_id: str) -> None:
        await self.store.delete(BUDGETS, budget_id)

    async def reset_budgets(self) -> None:
        await self.store.clear(BUDGETS)
        await self._seed_budgets()

    # Export / import

    async def export_data(self) -> LedgerExport:
        return LedgerExport(
            categories=await self.get_categories(),
            rules=await self.get_rules(),
            transactions=await self.get_transactions(),
            budgets=await self.get_budgets(),
            exported_at=datetime.now(timezone.utc),
        )

    async def import_data(self, data: Mapping[str, Any]) -> dict[str, int]:
        """Replace every collection with the contents of an export document.

        Missing or empty categories and budgets fall back to the defaults, and
        the reserved uncategorized category is restored when the file omits it.
        Rules without an ``order`` take their 1-based position in the list.
        """
        raw_rules = data.get("rules") or []
        rules = [
            Rule.model_validate({**raw, "order": position if raw.get("order") is None else raw["order"]})
            for position, raw in enumerate(raw_rules, start=1)
        ]
        categories = [Category.model_validate(c) for c in data.get("categories") or []]
        transactions = [Transaction.model_validate(t) for t in data.get("transactions") or []]
        budgets = [Budget.model_validate(b) for b in data.get("budgets") or []]

        for name in (TRANSACTIONS, RULES, CATEGORIES, BUDGETS):
            await self.store.clear(name)

        if categories:
            await self.store.put_many(CATEGORIES, [_dump(c) for c in categories])
            if await self._ensure_uncategorized():
                categories.append(next(c for c in DEFAULT_CATEGORIES if c.id == UNCATEGORIZED_ID))
        else:
            await self.store.put_many(CATEGORIES, [_dump(c) for c in DEFAULT_CATEGORIES])
        if rules:
            await self.store.put_many(RULES, [_dump(r) for r in rules])
        if transactions:
            await self.store.put_many(TRANSACTIONS, [_dump(t) for t in transactions])
        if budgets:
            await self.store.put_many(BUDGETS, [_dump(b) for b in budgets])
        else:
            await self._seed_budgets()

        counts = {
            "categories": len(categories) or len(DEFAULT_CATEGORIES),
            "rules": len(rules),
            "transactions": len(transactions),
            "budgets": len(budgets) or len(DEFAULT_BUDGETS),
        }
        logger.info("[LEDGER] Imported %s.", counts)
        return counts
