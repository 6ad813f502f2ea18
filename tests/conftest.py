from collections.abc import Callable

import pytest

from finance_insights.classifiers.base import AILogCallback, BatchClassifier
from finance_insights.domain.defaults import DEFAULT_CATEGORIES
from finance_insights.models import BatchRequest, BatchResponse, BatchResult, BatchUsage, Category


class KeywordClassifier(BatchClassifier):
    """Answers from a description keyword table and records every request."""

    def __init__(self, keywords: dict[str, str], fail_batches: set[int] | None = None) -> None:
        self.keywords = {k.lower(): v for k, v in keywords.items()}
        self.fail_batches = fail_batches or set()
        self.requests: list[BatchRequest] = []

    async def classify_batch(
        self,
        request: BatchRequest,
        on_log: AILogCallback | None = None,
    ) -> BatchResponse | None:
        self.requests.append(request)
        if len(self.requests) in self.fail_batches:
            return None
        results = []
        for item in request.batch:
            for keyword, category_id in self.keywords.items():
                if keyword in item.description.lower():
                    results.append(BatchResult(index=item.index, category_id=category_id))
                    break
        return BatchResponse(
            results=results,
            usage=BatchUsage(input_tokens=100, output_tokens=10),
            model_name=request.model_name,
        )


@pytest.fixture
def make_classifier() -> Callable[..., KeywordClassifier]:
    return KeywordClassifier


@pytest.fixture
def categories() -> list[Category]:
    return list(DEFAULT_CATEGORIES)


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"
