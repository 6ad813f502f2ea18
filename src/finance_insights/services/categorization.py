from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass

from finance_insights.classifiers.base import AILogCallback
from finance_insights.domain.income import apply_income_fallback, find_income_category_id
from finance_insights.domain.rules import match_rule, sort_rules
from finance_insights.logger import get_logger
from finance_insights.models import (
    UNCATEGORIZED_ID,
    AIConfig,
    BatchItem,
    Category,
    ParsedTransaction,
    Rule,
    Transaction,
)
from finance_insights.services.batching import AIBatchCategorizer, ProgressCallback

logger = get_logger(__name__)


def new_transaction_id() -> str:
    return f"txn-{uuid.uuid4().hex}"


@dataclass(frozen=True)
class Outcome:
    category_id: str | None
    by_rule: bool
    by_ai: bool

    @property
    def resolved_id(self) -> str:
        return self.category_id or UNCATEGORIZED_ID


class CategorizationPipeline:
    """Rules first, then AI for the remainder, then the income fallback.

    Both entry points keep the caller's ordering: outcome ``i`` always belongs
    to input row ``i``.
    """

    def __init__(self, categorizer: AIBatchCategorizer) -> None:
        self.categorizer = categorizer

    async def _resolve(
        self,
        rows: Sequence[ParsedTransaction],
        rules: Sequence[Rule],
        categories: Sequence[Category],
        config: AIConfig,
        on_progress: ProgressCallback | None,
        on_log: AILogCallback | None,
    ) -> list[Outcome]:
        total = len(rows)
        ordered_rules = sort_rules(rules)
        outcomes: list[Outcome | None] = [None] * total
        pending: list[BatchItem] = []

        for index, row in enumerate(rows):
            category_id = match_rule(row.description, ordered_rules)
            if category_id is not None:
                outcomes[index] = Outcome(category_id=category_id, by_rule=True, by_ai=False)
            else:
                pending.append(BatchItem(description=row.description, index=index))

        rule_matched = total - len(pending)
        logger.info("[RULES] %d/%d transaction(s) matched a rule.", rule_matched, total)
        if on_progress:
            on_progress(rule_matched, total)

        def batch_done(processed: int, _batch_total: int) -> None:
            if on_progress:
                on_progress(rule_matched + processed, total)

        ai_results = await self.categorizer.categorize(
            pending,
            categories,
            config,
            on_batch_done=batch_done,
            on_log=on_log,
        )

        income_id = find_income_category_id(categories)
        income_assigned = 0
        for item in pending:
            ai_category = ai_results.get(item.index)
            category_id = apply_income_fallback(ai_category, rows[item.index].amount, income_id)
            if ai_category is None and category_id is not None:
                income_assigned += 1
            outcomes[item.index] = Outcome(
                category_id=category_id,
                by_rule=False,
                by_ai=ai_category is not None,
            )

        logger.info(
            "[PIPELINE] %d by rule, %d by AI, %d by income fallback, %d uncategorized.",
            rule_matched,
            len(ai_results),
            income_assigned,
            sum(1 for outcome in outcomes if outcome is not None and outcome.category_id is None),
        )
        return [outcome for outcome in outcomes if outcome is not None]

    async def categorize_imported(
        self,
        parsed: Sequence[ParsedTransaction],
        rules: Sequence[Rule],
        categories: Sequence[Category],
        config: AIConfig,
        *,
        on_progress: ProgressCallback | None = None,
        on_log: AILogCallback | None = None,
    ) -> list[Transaction]:
        """Turn freshly parsed rows into ledger transactions, in file order."""
        outcomes = await self._resolve(parsed, rules, categories, config, on_progress, on_log)
        return [
            Transaction(
                id=new_transaction_id(),
                date=row.date,
                raw_date=row.raw_date,
                description=row.description,
                amount=row.amount,
                category_id=outcome.resolved_id,
                categorized_by_rule=outcome.by_rule,
                categorized_by_ai=outcome.by_ai,
            )
            for row, outcome in zip(parsed, outcomes)
        ]

    async def recategorize(
        self,
        transactions: Sequence[Transaction],
        rules: Sequence[Rule],
        categories: Sequence[Category],
        config: AIConfig,
        *,
        on_progress: ProgressCallback | None = None,
        on_log: AILogCallback | None = None,
    ) -> list[Transaction]:
        """Retry uncategorized ledger transactions; return only the ones that got a category.

        Identity fields (id, date, amount, description) are never touched.
        """
        outcomes = await self._resolve(transactions, rules, categories, config, on_progress, on_log)
        updated: list[Transaction] = []
        for tx, outcome in zip(transactions, outcomes):
            if outcome.category_id is None:
                continue
            updated.append(tx.model_copy(update={
                "category_id": outcome.category_id,
                "categorized_by_rule": outcome.by_rule,
                "categorized_by_ai": outcome.by_ai,
            }))
        return updated
