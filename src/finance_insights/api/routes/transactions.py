from typing import Annotated, Any

from fastapi import APIRouter, Depends

from finance_insights.api.dependencies import get_ledger
from finance_insights.api.schemas import TransactionPatch
from finance_insights.services.ledger import LedgerRepository

router = APIRouter()


@router.get("/api/transactions")
async def list_transactions(
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
    uncategorized: bool = False,
) -> list[dict[str, Any]]:
    transactions = await ledger.get_transactions()
    if uncategorized:
        transactions = [tx for tx in transactions if tx.is_uncategorized]
    return [tx.model_dump(by_alias=True, mode="json") for tx in transactions]


@router.get("/api/transactions/{transaction_id}")
async def get_transaction(
    transaction_id: str,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    tx = await ledger.get_transaction(transaction_id)
    return tx.model_dump(by_alias=True, mode="json")


@router.patch("/api/transactions/{transaction_id}")
async def patch_transaction(
    transaction_id: str,
    req: TransactionPatch,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    if req.category_id is not None:
        tx = await ledger.set_category(transaction_id, req.category_id)
    else:
        tx = await ledger.get_transaction(transaction_id)
    if req.notes is not None:
        tx = tx.model_copy(update={"notes": req.notes})
        await ledger.update_transaction(tx)
    return tx.model_dump(by_alias=True, mode="json")


@router.delete("/api/transactions/{transaction_id}")
async def delete_transaction(
    transaction_id: str,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, str]:
    await ledger.delete_transaction(transaction_id)
    return {"status": "deleted"}


@router.delete("/api/transactions")
async def erase_transactions(
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, str]:
    await ledger.erase_transactions()
    return {"status": "erased"}
