from datetime import datetime

import pytest

from spend_categorizer.storage.base import RecordNotFoundError
from spend_categorizer.storage.json_file import JsonFileStore
from spend_categorizer.storage.memory import InMemoryStore


@pytest.fixture
def data_path(tmp_path) -> str:
    return str(tmp_path / "store.json")


def test_json_store_persists_across_reload(data_path: str) -> None:
    store = JsonFileStore(data_path=data_path)
    market = store.create_category("Market")
    rule = store.create_rule("migros", market.id, priority=10)
    tx = store.create_transaction(merchant="Şok Market", amount=12.0, occurred_at="2024-05-01T09:30:00")
    store.update_transaction_category(tx.id, market.id, "ml", confidence=0.72)

    reloaded = JsonFileStore(data_path=data_path)

    assert reloaded.get_category(market.id) == market
    assert reloaded.get_rule(rule.id) == rule
    stored = reloaded.get_transactions([tx.id])[0]
    assert stored.merchant == "Şok Market"
    assert stored.occurred_at == datetime(2024, 5, 1, 9, 30)
    assert stored.category_source == "ml"
    assert stored.suggested_confidence == pytest.approx(0.72)


def test_json_store_starts_empty_on_corrupt_file(data_path: str) -> None:
    with open(data_path, "w", encoding="utf-8") as f:
        f.write("{not json")

    store = JsonFileStore(data_path=data_path)

    assert store.list_categories() == []
    assert store.list_rules() == []


def test_rules_listed_by_priority() -> None:
    store = InMemoryStore()
    low = store.create_rule("b", "c1", priority=200)
    high = store.create_rule("a", "c1", priority=1)

    assert [r.id for r in store.list_rules()] == [high.id, low.id]


def test_update_rule_validates() -> None:
    store = InMemoryStore()
    rule = store.create_rule("migros", "c1")

    updated = store.update_rule(rule.id, priority=7, is_regex=True)
    assert updated.priority == 7
    assert updated.is_regex is True
    assert updated.created_at == rule.created_at

    with pytest.raises(ValueError):
        store.update_rule(rule.id, colour="red")
    with pytest.raises(RecordNotFoundError):
        store.update_rule("missing", priority=1)


def test_find_rule_is_exact() -> None:
    store = InMemoryStore()
    rule = store.create_rule("Migros", "c1")

    assert store.find_rule("Migros", "c1") == rule
    assert store.find_rule("Migros", "c2") is None


def test_update_unknown_transaction_raises() -> None:
    with pytest.raises(RecordNotFoundError):
        InMemoryStore().update_transaction_category("missing", "c1", "user")


def test_recent_expenses_newest_first() -> None:
    store = InMemoryStore()
    old = store.create_transaction(merchant="A", category_id="c1", occurred_at=datetime(2024, 1, 1))
    new = store.create_transaction(merchant="B", category_id="c1", occurred_at=datetime(2024, 2, 1))
    store.create_transaction(merchant=None, category_id="c1")
    store.create_transaction(merchant="C", category_id="c1", type="transfer")

    assert [t.id for t in store.list_recent_expenses_with_merchant(10)] == [new.id, old.id]
