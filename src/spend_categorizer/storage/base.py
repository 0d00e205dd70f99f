from abc import ABC, abstractmethod
from typing import Any

from spend_categorizer.models import (
    Category,
    CategorySource,
    CategoryType,
    Rule,
    Transaction,
)


class RecordNotFoundError(LookupError):
    def __init__(self, kind: str, record_id: str) -> None:
        super().__init__(f"{kind} '{record_id}' not found")
        self.kind = kind
        self.record_id = record_id


class Store(ABC):
    """Persistence collaborator: find/create/update over categories, rules and transactions."""

    @abstractmethod
    def list_categories(self) -> list[Category]:
        pass

    @abstractmethod
    def get_category(self, category_id: str) -> Category | None:
        pass

    @abstractmethod
    def create_category(self, name: str, type: CategoryType = "expense") -> Category:
        pass

    @abstractmethod
    def list_rules(self) -> list[Rule]:
        """All rules, ordered by priority then creation time."""
        pass

    @abstractmethod
    def get_rule(self, rule_id: str) -> Rule | None:
        pass

    @abstractmethod
    def find_rule(self, pattern: str, category_id: str) -> Rule | None:
        pass

    @abstractmethod
    def create_rule(
        self,
        pattern: str,
        category_id: str,
        *,
        is_regex: bool = False,
        merchant_only: bool = True,
        priority: int = 100,
    ) -> Rule:
        pass

    @abstractmethod
    def update_rule(self, rule_id: str, **fields: Any) -> Rule:
        pass

    @abstractmethod
    def delete_rule(self, rule_id: str) -> Rule:
        pass

    @abstractmethod
    def get_transactions(self, ids: list[str]) -> list[Transaction]:
        """Transactions for the given ids, in request order; unknown ids are skipped."""
        pass

    @abstractmethod
    def list_transactions(self, limit: int = 50, offset: int = 0) -> list[Transaction]:
        pass

    @abstractmethod
    def list_labeled_transactions(self, limit: int) -> list[Transaction]:
        """Up to ``limit`` transactions that carry a category."""
        pass

    @abstractmethod
    def list_recent_expenses_with_merchant(self, limit: int) -> list[Transaction]:
        """Newest expense transactions having both a merchant and a category."""
        pass

    @abstractmethod
    def create_transaction(self, **fields: Any) -> Transaction:
        pass

    @abstractmethod
    def update_transaction_category(
        self,
        transaction_id: str,
        category_id: str,
        source: CategorySource,
        *,
        confidence: float | None = None,
    ) -> Transaction:
        pass
