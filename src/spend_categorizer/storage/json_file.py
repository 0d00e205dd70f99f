import json
import os

from pydantic import ValidationError

from spend_categorizer.logger import get_logger
from spend_categorizer.models import Category, Rule, Transaction

from .memory import InMemoryStore

logger = get_logger(__name__)


class JsonFileStore(InMemoryStore):
    """In-memory store that is written to a single JSON file after every change."""

    def __init__(self, data_path: str = "store.json"):
        super().__init__()
        self.data_path = data_path
        self.load()

    def load(self) -> None:
        if not os.path.exists(self.data_path):
            return
        try:
            with open(self.data_path, encoding="utf-8") as f:
                data = json.load(f)
            self.categories = {c["id"]: Category.model_validate(c) for c in data.get("categories", [])}
            self.rules = {r["id"]: Rule.model_validate(r) for r in data.get("rules", [])}
            self.transactions = {
                t["id"]: Transaction.model_validate(t) for t in data.get("transactions", [])
            }
        except (json.JSONDecodeError, KeyError, ValidationError) as exc:
            logger.error("[STORE] Could not read %s, starting empty: %s", self.data_path, exc)
            self.categories = {}
            self.rules = {}
            self.transactions = {}

    def save(self) -> None:
        payload = {
            "categories": [c.model_dump(mode="json") for c in self.categories.values()],
            "rules": [r.model_dump(mode="json") for r in self.rules.values()],
            "transactions": [t.model_dump(mode="json") for t in self.transactions.values()],
        }
        with open(self.data_path, "w", encoding="utf-8") as f:
            json.dump(payload, f, indent=2, ensure_ascii=False)

    def _changed(self) -> None:
        self.save()
