import asyncio
import os
from time import perf_counter
from typing import Any

import httpx
from pydantic import ValidationError

from finance_insights.classifiers.base import AILogCallback, BatchClassifier, emit
from finance_insights.logger import get_logger
from finance_insights.models import AICategorizationLog, BatchRequest, BatchResponse

logger = get_logger(__name__)

CATEGORIZE_PATH = "/api/ai/categorize"
DEFAULT_TIMEOUT_SECONDS = 120.0


def _is_well_typed_result(item: Any) -> bool:
    if not isinstance(item, dict):
        return False
    index = item.get("index")
    return (
        isinstance(index, int)
        and not isinstance(index, bool)
        and isinstance(item.get("categoryId"), str)
    )


def parse_batch_response(data: Any) -> BatchResponse:
    """Validate a service response, dropping individual result entries of the wrong shape."""
    if not isinstance(data, dict):
        raise ValueError(f"expected a JSON object, got {type(data).__name__}")
    raw_results = data.get("results") or []
    if not isinstance(raw_results, list):
        raw_results = []
    results = [item for item in raw_results if _is_well_typed_result(item)]
    return BatchResponse.model_validate({**data, "results": results})


class AIServiceClient(BatchClassifier):
    """Talks to the batch categorization service over HTTP.

    Non-2xx responses and transport errors are reported through ``on_log`` and
    the module logger and yield ``None``; they never raise to the caller.
    """

    def __init__(
        self,
        base_url: str | None = None,
        client: httpx.AsyncClient | None = None,
        timeout: float = DEFAULT_TIMEOUT_SECONDS,
    ):
        self.base_url = (base_url or os.getenv("AI_SERVICE_URL") or "").rstrip("/")
        self.timeout = timeout
        self._client = client
        self._client_lock = asyncio.Lock()

    @property
    def endpoint(self) -> str:
        return f"{self.base_url}{CATEGORIZE_PATH}"

    async def aclose(self) -> None:
        if self._client and not self._client.is_closed:
            await self._client.aclose()

    async def _get_client(self) -> httpx.AsyncClient:
        client = self._client
        if client is not None and not client.is_closed:
            return client

        async with self._client_lock:
            client = self._client
            if client is None or client.is_closed:
                client = httpx.AsyncClient()
                self._client = client
            return client

    async def classify_batch(
        self,
        request: BatchRequest,
        on_log: AILogCallback | None = None,
    ) -> BatchResponse | None:
        thinking_suffix = " [Thinking Enabled]" if request.enable_thinking else ""
        emit(on_log, AICategorizationLog(
            type="info",
            message=f"Requesting AI categorization via service ({request.model_name}){thinking_suffix}",
            details={
                "provider": request.provider,
                "model": request.model_name,
                "batchSize": len(request.batch),
                "enableThinking": request.enable_thinking,
                "temperature": request.temperature,
            },
        ))

        start = perf_counter()
        client = await self._get_client()
        try:
            response = await client.post(
                self.endpoint,
                json=request.model_dump(by_alias=True, mode="json"),
                timeout=self.timeout,
            )
        except httpx.HTTPError as exc:
            logger.error("[AI] Request to %s failed: %s", self.endpoint, exc)
            emit(on_log, AICategorizationLog(
                type="error",
                message=f"AI service request failed: {exc.__class__.__name__}",
                details=str(exc),
            ))
            return None

        if not response.is_success:
            logger.error("[AI] Service returned HTTP %s for batch of %d.", response.status_code, len(request.batch))
            emit(on_log, AICategorizationLog(
                type="error",
                message=f"AI service error: HTTP {response.status_code}",
                details=response.text,
            ))
            return None

        try:
            payload = parse_batch_response(response.json())
        except (ValueError, ValidationError) as exc:
            logger.error("[AI] Service returned an unreadable body: %s", exc)
            emit(on_log, AICategorizationLog(
                type="error",
                message="AI service returned an unreadable response body",
                details=str(exc),
            ))
            return None

        elapsed_ms = round((perf_counter() - start) * 1000)
        usage = payload.usage
        emit(on_log, AICategorizationLog(
            type="success",
            message=(
                f"AI service categorized {len(payload.results)}/{len(request.batch)} "
                f"in {elapsed_ms}ms"
            ),
            details={
                "categorizedCount": len(payload.results),
                "totalRequested": len(request.batch),
                "inputTokens": usage.input_tokens if usage else 0,
                "outputTokens": usage.output_tokens if usage else 0,
                "serverModelName": payload.model_name,
                "serverEnableThinking": payload.enable_thinking,
                "serverTemperature": payload.temperature,
            },
        ))
        return payload
