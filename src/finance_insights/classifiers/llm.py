import asyncio
import json
import os
import re
from typing import Any

from openai import OpenAI

from finance_insights.logger import get_logger
from finance_insights.models import (
    UNCATEGORIZED_ID,
    AICategorizationLog,
    BatchItem,
    BatchRequest,
    BatchResponse,
    BatchResult,
    BatchUsage,
    CategoryRef,
)

from .base import AILogCallback, BatchClassifier, emit

logger = get_logger(__name__)

_CODE_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)\s*```")
_BARE_ARRAY = re.compile(r"\[\s*\{[\s\S]*\}\s*\]")

FEW_SHOT_EXAMPLES = (
    ("APPLE.COM/BILL SYDNEY", "Apple Services", "Entertainment"),
    ("SHELL COLES EXP 3342", "Shell / Coles Express", "Transport"),
    ("AMZN MKTPLC PAYMENT", "Amazon", "Shopping"),
    ("TFL TRAVEL CHG", "Transport for London", "Transport"),
    ("MCDONALDS 442", "McDonalds", "Dining"),
)


def build_prompt(batch: list[BatchItem], categories: list[CategoryRef], enable_thinking: bool) -> str:
    category_lines = "\n".join(f"- {c.id}: {c.name}" for c in categories)
    example_lines = "\n".join(
        f'Input: "{raw}" -> Merchant: "{merchant}" -> Category: "{category}"'
        for raw, merchant, category in FEW_SHOT_EXAMPLES
    )
    transaction_lines = ",\n".join(
        json.dumps({"index": item.index, "description": item.description}) for item in batch
    )

    if enable_thinking:
        output_format = (
            "You may reason briefly about the merchants first. Then output the final answer as a "
            "JSON array inside a ```json fenced code block. Each element must have \"index\" and "
            f"\"categoryId\". Use \"{UNCATEGORIZED_ID}\" when no category fits."
        )
    else:
        output_format = (
            "Return only a single valid JSON array, without markdown fences or explanation. Each "
            "element must contain the original \"index\" and the most appropriate \"categoryId\" "
            f"from the list. Use \"{UNCATEGORIZED_ID}\" when no category fits."
        )

    return f"""
You categorize bank transactions for a personal budget.

Instructions:
1. Identify the merchant in each description; ignore reference numbers, dates and location codes.
2. Pick the matching categoryId from the category list.
3. Only assign a category when you are confident. A vague or ambiguous description must get "{UNCATEGORIZED_ID}".
   Leaving an item uncategorized is better than guessing wrong.

Categories:
{category_lines}

Examples:
{example_lines}

Transactions:
[
{transaction_lines}
]

Output format:
{output_format}
"""


def extract_json(text: str) -> str:
    block = _CODE_BLOCK.search(text)
    if block:
        return block.group(1)
    array = _BARE_ARRAY.search(text)
    if array:
        return array.group(0)
    return text


def validate_results(raw: Any, categories: list[CategoryRef]) -> list[BatchResult]:
    allowed = {c.id for c in categories}
    if not isinstance(raw, list):
        return []

    results: list[BatchResult] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        index = item.get("index")
        category_id = item.get("categoryId")
        if isinstance(index, float) and index.is_integer():
            index = int(index)
        # bool is an int subclass; a JSON true is not an index.
        if not isinstance(index, int) or isinstance(index, bool):
            continue
        if not isinstance(category_id, str) or category_id not in allowed:
            continue
        results.append(BatchResult(index=index, category_id=category_id))
    return results


class LLMBatchClassifier(BatchClassifier):
    def __init__(
        self,
        api_key: str | None = None,
        base_url: str | None = None,
        default_model: str = "gemini-flash-lite-latest",
    ):
        self.client = OpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url or os.getenv("OPENAI_BASE_URL") or None,
        )
        self.default_model = default_model

    def _complete(self, model: str, prompt: str, temperature: float | None) -> Any:
        kwargs: dict[str, Any] = {
            "model": model,
            "messages": [
                {"role": "system", "content": "You are an expert financial analyst."},
                {"role": "user", "content": prompt},
            ],
        }
        if temperature is not None:
            kwargs["temperature"] = temperature
        return self.client.chat.completions.create(**kwargs)

    @staticmethod
    def _extract_output_text(response: Any) -> str:
        choices = getattr(response, "choices", None) or []
        if not choices:
            return ""
        message = getattr(choices[0], "message", None)
        return (getattr(message, "content", None) or "").strip()

    @staticmethod
    def _extract_usage(response: Any) -> BatchUsage:
        usage = getattr(response, "usage", None)
        return BatchUsage(
            input_tokens=getattr(usage, "prompt_tokens", 0) or 0,
            output_tokens=getattr(usage, "completion_tokens", 0) or 0,
        )

    async def classify_batch(
        self,
        request: BatchRequest,
        on_log: AILogCallback | None = None,
    ) -> BatchResponse | None:
        model = request.model_name or self.default_model
        prompt = build_prompt(request.batch, request.categories, request.enable_thinking)
        try:
            response = await asyncio.to_thread(self._complete, model, prompt, request.temperature)
            text = self._extract_output_text(response)
            decoded = json.loads(extract_json(text))
        except json.JSONDecodeError as exc:
            logger.error("[AI] Model %s returned unparseable output: %s", model, exc)
            emit(on_log, AICategorizationLog(
                type="error",
                message=f"Model {model} returned output that is not JSON",
                details=str(exc),
            ))
            return None
        except Exception as exc:
            logger.error("[AI] LLM error (model=%s): %s", model, exc)
            emit(on_log, AICategorizationLog(type="error", message=f"LLM error: {exc}"))
            return None

        results = validate_results(decoded, request.categories)
        usage = self._extract_usage(response)
        logger.debug(
            "[AI] Model %s categorized %d/%d item(s).",
            model,
            len(results),
            len(request.batch),
        )
        return BatchResponse(
            results=results,
            usage=usage,
            model_name=request.model_name,
            enable_thinking=request.enable_thinking,
            temperature=request.temperature,
        )
