from datetime import datetime, timezone
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

UNCATEGORIZED_ID = "cat-uncategorized"

DateFormatHint = Literal["auto", "DMY", "MDY"]
FileType = Literal["csv", "ofx"]
RuleConditionType = Literal["contains", "startsWith", "equals"]
AILogType = Literal["info", "success", "error", "debug"]


class CamelModel(BaseModel):
    """Accepts snake_case or camelCase input, dumps camelCase with by_alias=True."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def is_uncategorized(category_id: str | None) -> bool:
    return not category_id or category_id == UNCATEGORIZED_ID


class ParsedTransaction(CamelModel):
    date: datetime
    raw_date: str | None = None
    description: str
    amount: float


class Transaction(ParsedTransaction):
    id: str
    category_id: str | None = None
    notes: str | None = None
    categorized_by_rule: bool = False
    categorized_by_ai: bool = False

    @model_validator(mode="after")
    def _single_provenance(self) -> "Transaction":
        if self.categorized_by_rule and self.categorized_by_ai:
            raise ValueError("categorizedByRule and categorizedByAi cannot both be true")
        return self

    @property
    def is_uncategorized(self) -> bool:
        return is_uncategorized(self.category_id)


class Category(CamelModel):
    id: str
    name: str
    color: str = "#a0aec0"
    icon: str = "question"
    description: str | None = None


class Rule(CamelModel):
    id: str
    condition_type: RuleConditionType
    condition_value: str
    category_id: str
    order: int = 0


class Budget(CamelModel):
    id: str
    category_id: str
    recommended_min_percent: float | None = None
    recommended_max_percent: float | None = None
    custom_percent: float | None = None
    notes: str | None = None
    description: str | None = None
    updated_at: datetime | None = None


class AICategorizationLog(BaseModel):
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    type: AILogType
    message: str
    details: Any = None


class AIConfig(CamelModel):
    provider: str = "google"
    model_name: str
    temperature: float | None = None
    enable_thinking: bool = False


class BatchItem(CamelModel):
    description: str
    index: int


class CategoryRef(CamelModel):
    id: str
    name: str


class BatchRequest(CamelModel):
    provider: str = "google"
    model_name: str | None = None
    enable_thinking: bool = False
    temperature: float | None = None
    batch: list[BatchItem]
    categories: list[CategoryRef]


class BatchResult(CamelModel):
    index: int
    category_id: str


class BatchUsage(CamelModel):
    input_tokens: int = 0
    output_tokens: int = 0


class BatchResponse(CamelModel):
    results: list[BatchResult] = Field(default_factory=list)
    usage: BatchUsage | None = None
    model_name: str | None = None
    enable_thinking: bool | None = None
    temperature: float | None = None


class LedgerExport(CamelModel):
    categories: list[Category] = Field(default_factory=list)
    rules: list[Rule] = Field(default_factory=list)
    transactions: list[Transaction] = Field(default_factory=list)
    budgets: list[Budget] = Field(default_factory=list)
    exported_at: datetime | None = None
    version: str = "1.1"
