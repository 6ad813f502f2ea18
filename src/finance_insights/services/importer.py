from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field

from finance_insights.classifiers.base import AILogCallback
from finance_insights.core import settings
from finance_insights.domain.fingerprint import filter_new
from finance_insights.domain.statements import detect_file_type, parse_statement
from finance_insights.logger import get_logger, log_ai_event
from finance_insights.models import AICategorizationLog, AIConfig, DateFormatHint, FileType, Transaction
from finance_insights.services.batching import ProgressCallback
from finance_insights.services.categorization import CategorizationPipeline
from finance_insights.services.ledger import LedgerRepository

logger = get_logger(__name__)


@dataclass
class ImportPreview:
    transactions: list[Transaction] = field(default_factory=list)
    parsed_count: int = 0
    duplicate_count: int = 0


@dataclass
class CommitResult:
    added: int
    skipped: int
    transactions: list[Transaction] = field(default_factory=list)


@dataclass
class RecategorizeResult:
    updated: int
    total: int


class ImportService:
    """Statement import and the uncategorized retry pass, against the live ledger.

    Every operation re-reads the ledger right before acting so that rules and
    categories edited since the last call take effect.
    """

    def __init__(
        self,
        ledger: LedgerRepository,
        pipeline: CategorizationPipeline,
        import_config: AIConfig | None = None,
        recategorize_config: AIConfig | None = None,
        default_date_format: DateFormatHint | None = None,
    ) -> None:
        self.ledger = ledger
        self.pipeline = pipeline
        self.import_config = import_config or settings.import_ai_config()
        self.recategorize_config = recategorize_config or settings.recategorize_ai_config()
        self.default_date_format = default_date_format or settings.get_date_format()
        self.day_first = settings.get_day_first()

    @staticmethod
    def _observer(on_log: AILogCallback | None) -> AILogCallback:
        def observe(event: AICategorizationLog) -> None:
            log_ai_event(logger, event)
            if on_log:
                on_log(event)

        return observe

    async def preview_import(
        self,
        content: str | bytes,
        *,
        file_type: FileType | None = None,
        filename: str | None = None,
        date_format: DateFormatHint | None = None,
        on_progress: ProgressCallback | None = None,
        on_log: AILogCallback | None = None,
    ) -> ImportPreview:
        """Parse, drop rows already in the ledger, categorize the rest. Nothing is stored.

        Raises :class:`~finance_insights.domain.statements.ParseError` for unreadable files.
        """
        resolved_type = file_type or detect_file_type(filename or "")
        parsed = parse_statement(
            content,
            resolved_type,
            date_format or self.default_date_format,
            day_first=self.day_first,
        )

        existing = await self.ledger.get_transactions()
        fresh = filter_new(parsed, existing)
        duplicates = len(parsed) - len(fresh)
        logger.info(
            "[IMPORT] %s: parsed %d row(s), %d new, %d duplicate(s).",
            filename or resolved_type,
            len(parsed),
            len(fresh),
            duplicates,
        )
        if not fresh:
            return ImportPreview(parsed_count=len(parsed), duplicate_count=duplicates)

        transactions = await self.pipeline.categorize_imported(
            fresh,
            await self.ledger.get_rules(),
            await self.ledger.get_categories(),
            self.import_config,
            on_progress=on_progress,
            on_log=self._observer(on_log),
        )
        return ImportPreview(
            transactions=transactions,
            parsed_count=len(parsed),
            duplicate_count=duplicates,
        )

    async def commit(self, transactions: Sequence[Transaction]) -> CommitResult:
        """Persist previewed transactions that are still new and return the refreshed ledger.

        A preview can go stale when the same file is committed twice, so the
        duplicate check runs again against the stored transactions.
        """
        fresh = filter_new(transactions, await self.ledger.get_transactions())
        skipped = len(transactions) - len(fresh)
        if skipped:
            logger.info("[IMPORT] Commit skipped %d transaction(s) already in the ledger.", skipped)
        await self.ledger.add_transactions(fresh)
        return CommitResult(
            added=len(fresh),
            skipped=skipped,
            transactions=await self.ledger.get_transactions(),
        )

    async def import_statement(
        self,
        content: str | bytes,
        *,
        file_type: FileType | None = None,
        filename: str | None = None,
        date_format: DateFormatHint | None = None,
        on_progress: ProgressCallback | None = None,
        on_log: AILogCallback | None = None,
    ) -> ImportPreview:
        preview = await self.preview_import(
            content,
            file_type=file_type,
            filename=filename,
            date_format=date_format,
            on_progress=on_progress,
            on_log=on_log,
        )
        await self.commit(preview.transactions)
        return preview

    async def recategorize_uncategorized(
        self,
        *,
        on_progress: ProgressCallback | None = None,
        on_log: AILogCallback | None = None,
    ) -> RecategorizeResult:
        transactions = await self.ledger.get_transactions()
        pending = [tx for tx in transactions if tx.is_uncategorized]
        if not pending:
            logger.info("[RECAT] No uncategorized transactions.")
            if on_progress:
                on_progress(0, 0)
            return RecategorizeResult(updated=0, total=0)

        logger.info("[RECAT] Retrying %d uncategorized transaction(s).", len(pending))
        updated = await self.pipeline.recategorize(
            pending,
            await self.ledger.get_rules(),
            await self.ledger.get_categories(),
            self.recategorize_config,
            on_progress=on_progress,
            on_log=self._observer(on_log),
        )
        await self.ledger.batch_update_transactions(updated)
        logger.info("[RECAT] Categorized %d/%d transaction(s).", len(updated), len(pending))
        return RecategorizeResult(updated=len(updated), total=len(pending))
