from collections.abc import Callable

import pytest

from finance_insights.domain.statements import ParseError
from finance_insights.models import AIConfig, Rule
from finance_insights.services.batching import AIBatchCategorizer
from finance_insights.services.categorization import CategorizationPipeline
from finance_insights.services.importer import ImportService
from finance_insights.services.ledger import LedgerRepository
from finance_insights.storage.json_store import MemoryStore

STATEMENT = (
    "Date,Description,Amount\n"
    "03/01/2025,WOOLWORTHS METRO 1234,-45.20\n"
    "04/01/2025,NETFLIX.COM,-15.99\n"
    "05/01/2025,ACME PTY LTD PAYROLL,2000.00\n"
    "06/01/2025,MYSTERY SHOP,-10.00\n"
)

IMPORT_CONFIG = AIConfig(model_name="import-model", temperature=0.0)
RECATEGORIZE_CONFIG = AIConfig(model_name="recat-model", temperature=0.5, enable_thinking=True)


async def _service(classifier) -> ImportService:
    ledger = LedgerRepository(MemoryStore())
    await ledger.init()
    await ledger.add_rule(Rule(
        id="rule-woolies",
        condition_type="contains",
        condition_value="woolworths",
        category_id="cat-groceries",
    ))
    pipeline = CategorizationPipeline(AIBatchCategorizer(classifier, batch_size=50))
    return ImportService(
        ledger,
        pipeline,
        import_config=IMPORT_CONFIG,
        recategorize_config=RECATEGORIZE_CONFIG,
        default_date_format="DMY",
    )


@pytest.mark.anyio
async def test_import_categorizes_rules_then_ai_then_income(make_classifier: Callable) -> None:
    classifier = make_classifier({"netflix": "cat-subscriptions"})
    service = await _service(classifier)
    progress: list[tuple[int, int]] = []

    preview = await service.preview_import(
        STATEMENT,
        filename="statement.csv",
        on_progress=lambda done, total: progress.append((done, total)),
    )

    by_description = {tx.description: tx for tx in preview.transactions}
    assert [tx.description for tx in preview.transactions] == [
        "WOOLWORTHS METRO 1234",
        "NETFLIX.COM",
        "ACME PTY LTD PAYROLL",
        "MYSTERY SHOP",
    ]
    woolies = by_description["WOOLWORTHS METRO 1234"]
    assert (woolies.category_id, woolies.categorized_by_rule, woolies.categorized_by_ai) == (
        "cat-groceries", True, False,
    )
    netflix = by_description["NETFLIX.COM"]
    assert (netflix.category_id, netflix.categorized_by_rule, netflix.categorized_by_ai) == (
        "cat-subscriptions", False, True,
    )
    payroll = by_description["ACME PTY LTD PAYROLL"]
    assert (payroll.category_id, payroll.categorized_by_rule, payroll.categorized_by_ai) == (
        "cat-income", False, False,
    )
    assert by_description["MYSTERY SHOP"].category_id == "cat-uncategorized"

    assert progress[0] == (1, 4)
    assert progress[-1] == (4, 4)
    # Only rule-unmatched rows reach the classifier, under their file position.
    assert [item.index for item in classifier.requests[0].batch] == [1, 2, 3]
    assert classifier.requests[0].model_name == "import-model"
    assert classifier.requests[0].enable_thinking is False

    # Preview stores nothing.
    assert await service.ledger.get_transactions() == []


@pytest.mark.anyio
async def test_reimport_of_same_file_adds_nothing(make_classifier: Callable) -> None:
    service = await _service(make_classifier({}))

    first = await service.import_statement(STATEMENT, file_type="csv")
    second = await service.import_statement(STATEMENT, file_type="csv")

    assert len(first.transactions) == 4
    assert second.transactions == []
    assert second.parsed_count == 4
    assert second.duplicate_count == 4
    assert len(await service.ledger.get_transactions()) == 4


@pytest.mark.anyio
async def test_committing_stale_preview_skips_stored_rows(make_classifier: Callable) -> None:
    service = await _service(make_classifier({}))
    first = await service.preview_import(STATEMENT, file_type="csv")
    second = await service.preview_import(STATEMENT, file_type="csv")
    assert len(second.transactions) == 4

    committed = await service.commit(first.transactions)
    stale = await service.commit(second.transactions)

    assert (committed.added, committed.skipped) == (4, 0)
    assert (stale.added, stale.skipped) == (0, 4)
    assert len(stale.transactions) == 4
    assert len(await service.ledger.get_transactions()) == 4


@pytest.mark.anyio
async def test_parse_error_persists_nothing(make_classifier: Callable) -> None:
    service = await _service(make_classifier({}))

    with pytest.raises(ParseError):
        await service.import_statement("Date,Amount\n01/01/2025,5\n", file_type="csv")

    assert await service.ledger.get_transactions() == []


@pytest.mark.anyio
async def test_recategorize_updates_only_resolved_rows(make_classifier: Callable) -> None:
    classifier = make_classifier({})
    service = await _service(classifier)
    await service.import_statement(STATEMENT, file_type="csv")
    before = {tx.description: tx for tx in await service.ledger.get_transactions()}

    classifier.keywords = {"mystery": "cat-shopping"}
    result = await service.recategorize_uncategorized()

    # NETFLIX and MYSTERY SHOP were uncategorized; only MYSTERY SHOP resolves.
    assert (result.updated, result.total) == (1, 2)
    after = {tx.description: tx for tx in await service.ledger.get_transactions()}
    mystery = after["MYSTERY SHOP"]
    assert (mystery.category_id, mystery.categorized_by_ai) == ("cat-shopping", True)
    assert mystery.id == before["MYSTERY SHOP"].id
    assert mystery.date == before["MYSTERY SHOP"].date
    assert after["NETFLIX.COM"].category_id == "cat-uncategorized"

    last_request = classifier.requests[-1]
    assert last_request.model_name == "recat-model"
    assert last_request.enable_thinking is True


@pytest.mark.anyio
async def test_recategorize_picks_up_new_rules(make_classifier: Callable) -> None:
    service = await _service(make_classifier({}))
    await service.import_statement(STATEMENT, file_type="csv")
    await service.ledger.add_rule(Rule(
        id="rule-netflix",
        condition_type="startsWith",
        condition_value="netflix",
        category_id="cat-subscriptions",
    ))

    result = await service.recategorize_uncategorized()

    assert result.updated == 1
    netflix = next(tx for tx in await service.ledger.get_transactions() if tx.description == "NETFLIX.COM")
    assert (netflix.category_id, netflix.categorized_by_rule) == ("cat-subscriptions", True)
