from datetime import datetime

from pydantic import Field, field_validator

from spend_categorizer.models import (
    ApiModel,
    CategoryType,
    Rule,
    RuleCandidate,
    Transaction,
    TransactionType,
)


class CategoryCreateRequest(ApiModel):
    name: str = Field(min_length=1)
    type: CategoryType = "expense"


class RuleCreateRequest(ApiModel):
    pattern: str
    category_id: str = Field(min_length=1)
    is_regex: bool = False
    merchant_only: bool = True
    priority: int = 100

    @field_validator("pattern")
    @classmethod
    def strip_pattern(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("pattern required")
        return value


class RuleUpdateRequest(ApiModel):
    pattern: str | None = None
    category_id: str | None = None
    is_regex: bool | None = None
    merchant_only: bool | None = None
    priority: int | None = None

    @field_validator("pattern")
    @classmethod
    def strip_pattern(cls, value: str | None) -> str | None:
        return value.strip() if value is not None else None


class RuleListResponse(ApiModel):
    total: int
    items: list[Rule]
    limit: int
    offset: int


class AcceptCandidateRequest(ApiModel):
    candidate: RuleCandidate
    priority: int = 100


class TransactionCreate(ApiModel):
    merchant: str | None = None
    description: str | None = None
    amount: float
    type: TransactionType = "expense"
    occurred_at: datetime = Field(default_factory=datetime.now)
    category_id: str | None = None


class BulkCreateRequest(ApiModel):
    items: list[TransactionCreate] = Field(min_length=1)


class BulkCreateResponse(ApiModel):
    count: int
    items: list[Transaction]
