from datetime import datetime, timedelta

import pytest

from spend_categorizer.classifiers.base import ClassificationContext, Classifier
from spend_categorizer.models import CategorizationResult, Category, TransactionText
from spend_categorizer.storage.memory import InMemoryStore


class StubClassifier(Classifier):
    """Stands in for the AI stage: always answers with one category name."""

    name = "stub"

    def __init__(self, category_name: str | None, confidence: float = 0.8):
        self.category_name = category_name
        self.confidence = confidence
        self.calls: list[TransactionText] = []

    def classify(
        self, item: TransactionText, context: ClassificationContext
    ) -> CategorizationResult | None:
        self.calls.append(item)
        category = context.category_by_name(self.category_name)
        if category is None:
            return None
        return CategorizationResult(
            category=category,
            confidence=self.confidence,
            source="ai",
            reason="ai:stub",
        )


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    for name in ("Market", "Ulaşım", "Kafe", "Diğer", "Abonelik"):
        store.create_category(name, "expense")
    store.create_category("Maaş", "income")
    return store


@pytest.fixture
def categories(store: InMemoryStore) -> dict[str, Category]:
    return {c.name: c for c in store.list_categories()}


def add_history(
    store: InMemoryStore,
    merchant: str,
    category_id: str,
    times: int = 1,
    description: str | None = None,
    start: datetime | None = None,
) -> None:
    start = start or datetime(2024, 1, 1)
    for i in range(times):
        store.create_transaction(
            merchant=merchant,
            description=description,
            amount=100.0,
            occurred_at=start + timedelta(hours=i),
            category_id=category_id,
            category_source="user",
        )
