import asyncio
from collections.abc import Generator
from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from finance_insights.app import app
from finance_insights.models import BatchResponse, BatchResult
from finance_insights.services.batching import AIBatchCategorizer
from finance_insights.services.categorization import CategorizationPipeline
from finance_insights.services.importer import ImportService
from finance_insights.services.ledger import LedgerRepository
from finance_insights.storage.json_store import MemoryStore

client = TestClient(app)

STATEMENT = (
    "Date,Description,Amount\n"
    "03/01/2025,WOOLWORTHS METRO,-45.20\n"
    "04/01/2025,NETFLIX.COM,-15.99\n"
)

STATE_KEYS = ("ledger", "import_service", "llm_classifier")


@pytest.fixture
def ledger(make_classifier) -> Generator[LedgerRepository, None, None]:
    originals = {key: getattr(app.state, key, None) for key in STATE_KEYS}
    repo = LedgerRepository(MemoryStore())
    asyncio.run(repo.init())
    pipeline = CategorizationPipeline(AIBatchCategorizer(make_classifier({"netflix": "cat-subscriptions"})))
    app.state.ledger = repo
    app.state.import_service = ImportService(repo, pipeline, default_date_format="DMY")
    app.state.llm_classifier = None
    yield repo
    for key, value in originals.items():
        setattr(app.state, key, value)


def test_health() -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_import_preview_then_commit(ledger: LedgerRepository) -> None:
    preview = client.post("/api/import/preview", json={"content": STATEMENT, "filename": "bank.csv"})
    assert preview.status_code == 200
    body = preview.json()
    assert body["parsedCount"] == 2
    assert body["duplicateCount"] == 0
    netflix = body["transactions"][1]
    assert (netflix["categoryId"], netflix["categorizedByAi"]) == ("cat-subscriptions", True)
    assert client.get("/api/transactions").json() == []

    commit = client.post("/api/import/commit", json={"transactions": body["transactions"]})
    assert commit.status_code == 200
    assert (commit.json()["added"], commit.json()["skipped"]) == (2, 0)

    stale = client.post("/api/import/commit", json={"transactions": body["transactions"]}).json()
    assert (stale["added"], stale["skipped"]) == (0, 2)

    conflicting = {**netflix, "categorizedByRule": True}
    assert client.post("/api/import/commit", json={"transactions": [conflicting]}).status_code == 422

    again = client.post("/api/import", json={"content": STATEMENT, "fileType": "csv"}).json()
    assert again["transactions"] == []
    assert again["duplicateCount"] == 2
    assert len(client.get("/api/transactions").json()) == 2


def test_import_parse_error_is_422(ledger: LedgerRepository) -> None:
    response = client.post("/api/import", json={"content": "Date,Amount\n01/01/2025,1\n", "fileType": "csv"})

    assert response.status_code == 422
    assert "Description" in response.json()["detail"]


def test_patch_transaction_category(ledger: LedgerRepository) -> None:
    client.post("/api/import", json={"content": STATEMENT, "fileType": "csv"})
    tx = next(t for t in client.get("/api/transactions").json() if t["description"] == "NETFLIX.COM")

    response = client.patch(f"/api/transactions/{tx['id']}", json={"categoryId": "cat-entertainment"})

    assert response.status_code == 200
    assert (response.json()["categoryId"], response.json()["categorizedByAi"]) == ("cat-entertainment", False)
    assert client.patch("/api/transactions/missing", json={"categoryId": "cat-dining"}).status_code == 404


def test_rules_crud_and_order(ledger: LedgerRepository) -> None:
    first = client.post("/api/rules", json={
        "conditionType": "contains", "conditionValue": "woolworths", "categoryId": "cat-groceries",
    }).json()
    second = client.post("/api/rules", json={
        "conditionType": "equals", "conditionValue": "netflix.com", "categoryId": "cat-subscriptions",
    }).json()
    assert [first["order"], second["order"]] == [1, 2]

    reordered = client.put("/api/rules/order", json={"ids": [second["id"], first["id"]]}).json()
    assert [r["id"] for r in reordered] == [second["id"], first["id"]]

    client.post("/api/import", json={"content": STATEMENT, "fileType": "csv"})
    applied = client.post(f"/api/rules/{first['id']}/apply").json()
    assert applied == {"updated": 0}
    assert client.post("/api/rules/rule-missing/apply").status_code == 404


def test_category_delete_rules(ledger: LedgerRepository) -> None:
    assert client.delete("/api/categories/cat-uncategorized").status_code == 400
    assert client.delete("/api/categories/cat-nope").status_code == 404

    created = client.post("/api/categories", json={"name": "Pets"})
    assert created.status_code == 201
    assert client.post("/api/categories", json={"id": created.json()["id"], "name": "Pets"}).status_code == 409
    assert client.delete(f"/api/categories/{created.json()['id']}").json()["status"] == "deleted"


def test_budgets_reset(ledger: LedgerRepository) -> None:
    budget = client.get("/api/budgets").json()[0]
    updated = client.put(f"/api/budgets/{budget['id']}", json={
        "categoryId": budget["categoryId"], "customPercent": 12.5,
    }).json()
    assert updated["customPercent"] == 12.5

    reset = client.post("/api/budgets/reset").json()
    assert all(b["customPercent"] is None for b in reset)


def test_export_and_import_data(ledger: LedgerRepository) -> None:
    client.post("/api/import", json={"content": STATEMENT, "fileType": "csv"})
    exported = client.get("/api/export").json()
    assert exported["version"] == "1.1"
    assert len(exported["transactions"]) == 2

    assert client.post("/api/reset").json() == {"status": "reset"}
    assert client.get("/api/transactions").json() == []

    restored = client.post("/api/import-data", json=exported).json()
    assert restored["counts"]["transactions"] == 2
    assert client.post("/api/import-data", json={"transactions": [{"id": "x"}]}).status_code == 400


def test_recategorize_stream(ledger: LedgerRepository) -> None:
    client.post("/api/import", json={
        "content": "Date,Description,Amount\n05/01/2025,MYSTERY SHOP,-10.00\n", "fileType": "csv",
    })

    response = client.get("/api/recategorize-stream")

    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/event-stream")
    assert '"stage": "start"' in response.text
    assert '"stage": "complete"' in response.text
    assert "event: done" in response.text


def test_ai_categorize_endpoint(ledger: LedgerRepository) -> None:
    request_body = {
        "provider": "google",
        "modelName": "gemini-flash-lite-latest",
        "enableThinking": False,
        "temperature": 0,
        "batch": [{"description": "MCDONALDS 442", "index": 0}],
        "categories": [{"id": "cat-dining", "name": "Dining"}],
    }
    assert client.post("/api/ai/categorize", json={"batch": "nope"}).status_code == 400
    assert client.post("/api/ai/categorize", json=request_body).status_code == 503

    classifier = AsyncMock()
    app.state.llm_classifier = classifier
    classifier.classify_batch.return_value = None
    assert client.post("/api/ai/categorize", json=request_body).status_code == 502

    classifier.classify_batch.return_value = BatchResponse(
        results=[BatchResult(index=0, category_id="cat-dining")],
        model_name="gemini-flash-lite-latest",
    )
    response = client.post("/api/ai/categorize", json=request_body)
    assert response.status_code == 200
    assert response.json()["results"] == [{"index": 0, "categoryId": "cat-dining"}]
