from typing import Annotated, Any

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError

from finance_insights.api.dependencies import get_llm_classifier_optional
from finance_insights.classifiers.base import BatchClassifier
from finance_insights.logger import get_logger
from finance_insights.models import BatchRequest

logger = get_logger(__name__)

router = APIRouter()


@router.post("/api/ai/categorize")
async def categorize_batch(
    request: Request,
    classifier: Annotated[BatchClassifier | None, Depends(get_llm_classifier_optional)],
) -> dict[str, Any]:
    """Classifier service endpoint; the wire format matches ``AIServiceClient``."""
    try:
        body = await request.json()
        batch_request = BatchRequest.model_validate(body)
    except (ValueError, ValidationError) as exc:
        logger.warning("[AI] Rejected categorize request: %s", exc)
        raise HTTPException(status_code=400, detail="Invalid request body") from exc

    if classifier is None:
        raise HTTPException(status_code=503, detail="OPENAI_API_KEY not configured")

    response = await classifier.classify_batch(batch_request)
    if response is None:
        raise HTTPException(status_code=502, detail="Model call failed")

    logger.info(
        "[AI] Served batch of %d: %d categorized.",
        len(batch_request.batch),
        len(response.results),
    )
    return response.model_dump(by_alias=True, mode="json")
