import uuid
from datetime import datetime
from typing import Any

from spend_categorizer.models import (
    Category,
    CategorySource,
    CategoryType,
    Rule,
    Transaction,
)

from .base import RecordNotFoundError, Store

_RULE_FIELDS = {"pattern", "is_regex", "merchant_only", "priority", "category_id"}


def _new_id() -> str:
    return uuid.uuid4().hex


class InMemoryStore(Store):
    def __init__(self) -> None:
        self.categories: dict[str, Category] = {}
        self.rules: dict[str, Rule] = {}
        self.transactions: dict[str, Transaction] = {}

    def _changed(self) -> None:
        """Hook for subclasses that persist after writes."""

    def list_categories(self) -> list[Category]:
        return list(self.categories.values())

    def get_category(self, category_id: str) -> Category | None:
        return self.categories.get(category_id)

    def create_category(self, name: str, type: CategoryType = "expense") -> Category:
        category = Category(id=_new_id(), name=name, type=type)
        self.categories[category.id] = category
        self._changed()
        return category

    def list_rules(self) -> list[Rule]:
        return sorted(self.rules.values(), key=lambda r: (r.priority, r.created_at))

    def get_rule(self, rule_id: str) -> Rule | None:
        return self.rules.get(rule_id)

    def find_rule(self, pattern: str, category_id: str) -> Rule | None:
        for rule in self.rules.values():
            if rule.pattern == pattern and rule.category_id == category_id:
                return rule
        return None

    def create_rule(
        self,
        pattern: str,
        category_id: str,
        *,
        is_regex: bool = False,
        merchant_only: bool = True,
        priority: int = 100,
    ) -> Rule:
        rule = Rule(
            id=_new_id(),
            pattern=pattern,
            category_id=category_id,
            is_regex=is_regex,
            merchant_only=merchant_only,
            priority=priority,
        )
        self.rules[rule.id] = rule
        self._changed()
        return rule

    def update_rule(self, rule_id: str, **fields: Any) -> Rule:
        current = self.rules.get(rule_id)
        if current is None:
            raise RecordNotFoundError("rule", rule_id)
        unknown = set(fields) - _RULE_FIELDS
        if unknown:
            raise ValueError(f"Unknown rule fields: {', '.join(sorted(unknown))}")
        # Re-validate through the model
        updated = Rule.model_validate({**current.model_dump(), **fields})
        self.rules[rule_id] = updated
        self._changed()
        return updated

    def delete_rule(self, rule_id: str) -> Rule:
        rule = self.rules.pop(rule_id, None)
        if rule is None:
            raise RecordNotFoundError("rule", rule_id)
        self._changed()
        return rule

    def get_transactions(self, ids: list[str]) -> list[Transaction]:
        return [self.transactions[tx_id] for tx_id in ids if tx_id in self.transactions]

    def list_transactions(self, limit: int = 50, offset: int = 0) -> list[Transaction]:
        ordered = sorted(self.transactions.values(), key=lambda t: t.occurred_at, reverse=True)
        return ordered[offset:offset + limit]

    def list_labeled_transactions(self, limit: int) -> list[Transaction]:
        labeled = [t for t in self.transactions.values() if t.category_id]
        return labeled[:limit]

    def list_recent_expenses_with_merchant(self, limit: int) -> list[Transaction]:
        rows = [
            t for t in self.transactions.values()
            if t.type == "expense" and t.merchant and t.category_id
        ]
        rows.sort(key=lambda t: t.occurred_at, reverse=True)
        return rows[:limit]

    def create_transaction(self, **fields: Any) -> Transaction:
        if isinstance(fields.get("occurred_at"), str):
            fields["occurred_at"] = datetime.fromisoformat(fields["occurred_at"])
        transaction = Transaction(id=fields.pop("id", None) or _new_id(), **fields)
        self.transactions[transaction.id] = transaction
        self._changed()
        return transaction

    def update_transaction_category(
        self,
        transaction_id: str,
        category_id: str,
        source: CategorySource,
        *,
        confidence: float | None = None,
    ) -> Transaction:
        current = self.transactions.get(transaction_id)
        if current is None:
            raise RecordNotFoundError("transaction", transaction_id)
        changes: dict[str, Any] = {"category_id": category_id, "category_source": source}
        if confidence is not None:
            changes["suggested_category_id"] = category_id
            changes["suggested_confidence"] = confidence
        updated = current.model_copy(update=changes)
        self.transactions[transaction_id] = updated
        self._changed()
        return updated
