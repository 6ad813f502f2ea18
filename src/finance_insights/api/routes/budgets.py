import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from finance_insights.api.dependencies import get_ledger
from finance_insights.api.schemas import BudgetInput
from finance_insights.models import Budget
from finance_insights.services.ledger import LedgerRepository

router = APIRouter()


def _budget_payloads(budgets: list[Budget]) -> list[dict[str, Any]]:
    return [b.model_dump(by_alias=True, mode="json") for b in budgets]


@router.get("/api/budgets")
async def list_budgets(
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> list[dict[str, Any]]:
    return _budget_payloads(await ledger.get_budgets())


@router.post("/api/budgets", status_code=201)
async def create_budget(
    req: BudgetInput,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    budget = Budget.model_validate({
        **req.model_dump(exclude={"id"}),
        "id": req.id or f"budget-{uuid.uuid4().hex[:12]}",
    })
    stored = await ledger.add_budget(budget)
    return stored.model_dump(by_alias=True, mode="json")


# Declared before /{budget_id} so "reset" is not captured as an id.
@router.post("/api/budgets/reset")
async def reset_budgets(
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> list[dict[str, Any]]:
    await ledger.reset_budgets()
    return _budget_payloads(await ledger.get_budgets())


@router.put("/api/budgets/{budget_id}")
async def update_budget(
    budget_id: str,
    req: BudgetInput,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    budget = Budget.model_validate({**req.model_dump(exclude={"id"}), "id": budget_id})
    stored = await ledger.update_budget(budget)
    return stored.model_dump(by_alias=True, mode="json")


@router.delete("/api/budgets/{budget_id}")
async def delete_budget(
    budget_id: str,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, str]:
    await ledger.delete_budget(budget_id)
    return {"status": "deleted"}
