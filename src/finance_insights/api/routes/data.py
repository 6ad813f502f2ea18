from typing import Annotated, Any

from fastapi import APIRouter, Body, Depends, HTTPException
from pydantic import ValidationError

from finance_insights.api.dependencies import get_ledger
from finance_insights.logger import get_logger
from finance_insights.services.ledger import LedgerRepository

logger = get_logger(__name__)

router = APIRouter()


@router.get("/api/export")
async def export_data(
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    export = await ledger.export_data()
    return export.model_dump(by_alias=True, mode="json")


@router.post("/api/import-data")
async def import_data(
    data: Annotated[dict[str, Any], Body()],
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    try:
        counts = await ledger.import_data(data)
    except ValidationError as exc:
        logger.warning("[LEDGER] Rejected import file: %s", exc)
        raise HTTPException(status_code=400, detail="Invalid import file") from exc
    return {"status": "imported", "counts": counts}


@router.post("/api/reset")
async def reset_all(
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, str]:
    await ledger.clear_all_data()
    logger.info("[LEDGER] Reset requested via API.")
    return {"status": "reset"}


@router.get("/health")
async def health() -> dict[str, str]:
    return {"status": "ok"}
