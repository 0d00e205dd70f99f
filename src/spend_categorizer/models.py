from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

CategoryType = Literal["income", "expense"]
TransactionType = Literal["income", "expense", "transfer"]
CategorySource = Literal["user", "rule", "ml"]
SuggestionSource = Literal["rule", "ai", "ml", "heuristic"]
Strategy = Literal["rule-first", "rule-only", "ai-only"]


class ApiModel(BaseModel):
    # camelCase on the wire, snake_case in Python
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Category(ApiModel):
    id: str
    name: str
    type: CategoryType = "expense"


class Rule(ApiModel):
    id: str
    pattern: str
    is_regex: bool = False
    merchant_only: bool = True
    priority: int = 100 # smaller wins
    category_id: str
    created_at: datetime = Field(default_factory=datetime.now)

    @field_validator("pattern")
    @classmethod
    def pattern_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("pattern must not be empty")
        return value


class Transaction(ApiModel):
    id: str
    merchant: Optional[str] = None
    description: Optional[str] = None
    amount: float = 0.0
    type: TransactionType = "expense"
    occurred_at: datetime = Field(default_factory=datetime.now)
    category_id: Optional[str] = None
    category_source: Optional[CategorySource] = None
    suggested_category_id: Optional[str] = None
    suggested_confidence: Optional[float] = None


class TransactionText(BaseModel):
    """The text a classifier looks at, detached from storage."""
    merchant: Optional[str] = None
    description: Optional[str] = None

    @property
    def text(self) -> str:
        return f"{self.merchant or ''} {self.description or ''}".strip()


class CategorizationResult(BaseModel):
    category: Category
    confidence: float # 0.0 to 1.0
    source: SuggestionSource
    reason: str
    rule_id: Optional[str] = None


class Suggestion(ApiModel):
    id: Optional[str] = None
    merchant: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None
    category_id: Optional[str] = None
    category_name: Optional[str] = None
    source: SuggestionSource = Field(
        description="rule, ai or heuristic; ml marks the statistical (TF-IDF) stage",
    )
    confidence: float
    reason: str
    rule_id: Optional[str] = None


class Centroid(BaseModel):
    category_id: str
    vector: dict[str, float]
    norm: float


class RuleCandidate(ApiModel):
    merchant_pattern: str
    suggested_category_id: str
    suggested_category_name: Optional[str] = None
    share: float
    count: int
    total: int


class CategorizeItem(ApiModel):
    merchant: Optional[str] = None
    description: Optional[str] = None
    amount: Optional[float] = None


class CategorizeTarget(CategorizeItem):
    """A stored transaction when ``id`` is set, otherwise free text."""
    id: Optional[str] = None


class CategorizeRequest(ApiModel):
    targets: list[CategorizeTarget] = Field(default_factory=list)
    ids: list[str] = Field(default_factory=list)
    items: list[CategorizeItem] = Field(default_factory=list)
    strategy: Strategy = "rule-first"
    threshold: Optional[float] = None
    apply: bool = False
    save_rules: bool = False


class CreatedRule(ApiModel):
    id: str
    pattern: str
    category_id: str


class CategorizeResponse(ApiModel):
    threshold: float
    suggestions: list[Suggestion]
    applied: int = 0
    created_rules: list[CreatedRule] = Field(default_factory=list)
