from __future__ import annotations

from collections.abc import Callable, Sequence

from finance_insights.classifiers.base import AILogCallback, BatchClassifier, emit
from finance_insights.logger import get_logger
from finance_insights.models import (
    UNCATEGORIZED_ID,
    AICategorizationLog,
    AIConfig,
    BatchItem,
    BatchRequest,
    Category,
    CategoryRef,
)

logger = get_logger(__name__)

ProgressCallback = Callable[[int, int], None]

DEFAULT_BATCH_SIZE = 50


def chunked(items: Sequence[BatchItem], size: int) -> list[Sequence[BatchItem]]:
    return [items[start:start + size] for start in range(0, len(items), size)]


class AIBatchCategorizer:
    """Runs rule-unmatched descriptions through a classifier in sequential batches.

    Results are keyed by the caller's original index. Entries pointing outside
    the batch that was asked, or at an unknown category, are dropped, as is
    the reserved uncategorized id (it means "no answer").
    """

    def __init__(self, classifier: BatchClassifier | None, batch_size: int = DEFAULT_BATCH_SIZE):
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.classifier = classifier
        self.batch_size = batch_size

    async def categorize(
        self,
        items: Sequence[BatchItem],
        categories: Sequence[Category],
        config: AIConfig,
        *,
        on_batch_done: ProgressCallback | None = None,
        on_log: AILogCallback | None = None,
    ) -> dict[int, str]:
        """Return ``{original_index: category_id}`` for the items the classifier resolved.

        ``on_batch_done(processed_items, total_items)`` fires after every batch,
        including failed ones.
        """
        resolved: dict[int, str] = {}
        if not items:
            return resolved

        total = len(items)
        if self.classifier is None:
            logger.info("[AI] No classifier configured; %d item(s) left for the fallback.", total)
            if on_batch_done:
                on_batch_done(total, total)
            return resolved

        catalog = [CategoryRef(id=c.id, name=c.name) for c in categories]
        allowed_ids = {c.id for c in catalog}
        batches = chunked(items, self.batch_size)
        processed = 0

        for batch_number, batch in enumerate(batches, start=1):
            emit(on_log, AICategorizationLog(
                type="debug",
                message=f"Starting batch {batch_number}/{len(batches)} with {len(batch)} transactions",
                details={"batchNumber": batch_number, "totalBatches": len(batches), "batchSize": len(batch)},
            ))
            request = BatchRequest(
                provider=config.provider,
                model_name=config.model_name,
                enable_thinking=config.enable_thinking,
                temperature=config.temperature,
                batch=list(batch),
                categories=catalog,
            )
            response = await self.classifier.classify_batch(request, on_log=on_log)

            if response is None:
                logger.warning(
                    "[AI] Batch %d/%d failed; %d item(s) stay unresolved.",
                    batch_number,
                    len(batches),
                    len(batch),
                )
            else:
                requested = {item.index for item in batch}
                accepted = 0
                for result in response.results:
                    if result.index not in requested:
                        logger.debug("[AI] Dropping result for unrequested index %s.", result.index)
                        continue
                    if result.category_id not in allowed_ids:
                        logger.debug("[AI] Dropping unknown category id '%s'.", result.category_id)
                        continue
                    if result.category_id == UNCATEGORIZED_ID:
                        continue
                    resolved[result.index] = result.category_id
                    accepted += 1
                logger.info(
                    "[AI] Batch %d/%d: %d/%d item(s) categorized.",
                    batch_number,
                    len(batches),
                    accepted,
                    len(batch),
                )

            processed += len(batch)
            if on_batch_done:
                on_batch_done(processed, total)

        return resolved

