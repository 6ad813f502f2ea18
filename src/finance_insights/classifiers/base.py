from abc import ABC, abstractmethod
from collections.abc import Callable

from finance_insights.models import AICategorizationLog, BatchRequest, BatchResponse

AILogCallback = Callable[[AICategorizationLog], None]


class BatchClassifier(ABC):
    @abstractmethod
    async def classify_batch(
        self,
        request: BatchRequest,
        on_log: AILogCallback | None = None,
    ) -> BatchResponse | None:
        """Categorize one batch of descriptions.

        Returns ``None`` when the call failed; failures must not raise.
        """
        pass

    async def aclose(self) -> None:
        """Release any underlying client resources."""
        return None


def emit(on_log: AILogCallback | None, event: AICategorizationLog) -> None:
    if on_log is not None:
        on_log(event)
