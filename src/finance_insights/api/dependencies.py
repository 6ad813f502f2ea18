from fastapi import HTTPException, Request

from finance_insights.classifiers.base import BatchClassifier
from finance_insights.services.importer import ImportService
from finance_insights.services.ledger import LedgerRepository


def get_ledger(request: Request) -> LedgerRepository:
    ledger = getattr(request.app.state, "ledger", None)
    if not ledger:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return ledger


def get_import_service(request: Request) -> ImportService:
    service = getattr(request.app.state, "import_service", None)
    if not service:
        raise HTTPException(status_code=500, detail="Service not initialized")
    return service


def get_llm_classifier_optional(request: Request) -> BatchClassifier | None:
    return getattr(request.app.state, "llm_classifier", None)
