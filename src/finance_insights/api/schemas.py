from pydantic import Field

from finance_insights.models import (
    CamelModel,
    DateFormatHint,
    FileType,
    RuleConditionType,
    Transaction,
)


class ImportRequest(CamelModel):
    content: str
    filename: str | None = None
    file_type: FileType | None = None
    date_format: DateFormatHint | None = None


class ImportPreviewResponse(CamelModel):
    transactions: list[Transaction]
    parsed_count: int
    duplicate_count: int


class CommitRequest(CamelModel):
    transactions: list[Transaction]


class RecategorizeResponse(CamelModel):
    updated: int
    total: int


class TransactionPatch(CamelModel):
    category_id: str | None = None
    notes: str | None = None


class RuleInput(CamelModel):
    condition_type: RuleConditionType
    condition_value: str = Field(min_length=1)
    category_id: str


class RuleOrder(CamelModel):
    ids: list[str]


class CategoryInput(CamelModel):
    id: str | None = None
    name: str = Field(min_length=1)
    color: str = "#a0aec0"
    icon: str = "question"
    description: str | None = None


class BudgetInput(CamelModel):
    id: str | None = None
    category_id: str
    recommended_min_percent: float | None = None
    recommended_max_percent: float | None = None
    custom_percent: float | None = None
    notes: str | None = None
    description: str | None = None
