import uuid
from typing import Annotated, Any

from fastapi import APIRouter, Depends

from finance_insights.api.dependencies import get_ledger
from finance_insights.api.schemas import CategoryInput
from finance_insights.models import Category
from finance_insights.services.ledger import LedgerRepository

router = APIRouter()


@router.get("/api/categories")
async def list_categories(
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> list[dict[str, Any]]:
    return [c.model_dump(by_alias=True, mode="json") for c in await ledger.get_categories()]


@router.post("/api/categories", status_code=201)
async def create_category(
    req: CategoryInput,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    category = Category.model_validate({
        **req.model_dump(exclude={"id"}),
        "id": req.id or f"cat-{uuid.uuid4().hex[:12]}",
    })
    await ledger.add_category(category)
    return category.model_dump(by_alias=True, mode="json")


@router.put("/api/categories/{category_id}")
async def update_category(
    category_id: str,
    req: CategoryInput,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    category = Category.model_validate({**req.model_dump(exclude={"id"}), "id": category_id})
    await ledger.update_category(category)
    return category.model_dump(by_alias=True, mode="json")


@router.delete("/api/categories/{category_id}")
async def delete_category(
    category_id: str,
    ledger: Annotated[LedgerRepository, Depends(get_ledger)],
) -> dict[str, Any]:
    moved = await ledger.delete_category(category_id)
    return {"status": "deleted", "uncategorized": moved}
