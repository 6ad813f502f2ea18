import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from finance_insights.api.dependencies import get_ledger
from finance_insights.api.schemas import RuleInput, RuleOrder
from finance_insights.models import Rule
from finance_insights.services.ledger import LedgerRepository

router = APIRouter()


@router.get("/api/rules")
async def list_rules(
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> list[dict[str, Any]]:
    return [r.model_dump(by_alias=True, mode="json") for r in await ledger.get_rules()]


@router.post("/api/rules", status_code=201)
async def create_rule(
    req: RuleInput,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    rule = Rule(id=f"rule-{uuid.uuid4().hex[:12]}", **req.model_dump())
    stored = await ledger.add_rule(rule)
    return stored.model_dump(by_alias=True, mode="json")


# Declared before /{rule_id} so "order" is not captured as an id.
@router.put("/api/rules/order")
async def reorder_rules(
    req: RuleOrder,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> list[dict[str, Any]]:
    rules = await ledger.reorder_rules(req.ids)
    return [r.model_dump(by_alias=True, mode="json") for r in rules]


@router.put("/api/rules/{rule_id}")
async def update_rule(
    rule_id: str,
    req: RuleInput,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    stored = await ledger.update_rule(Rule(id=rule_id, **req.model_dump()))
    return stored.model_dump(by_alias=True, mode="json")


@router.delete("/api/rules/{rule_id}")
async def delete_rule(
    rule_id: str,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, str]:
    await ledger.delete_rule(rule_id)
    return {"status": "deleted"}


@router.post("/api/rules/{rule_id}/apply")
async def apply_rule(
    rule_id: str,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, int]:
    count = await ledger.apply_rule(await ledger.get_rule(rule_id))
    return {"updated": count}
