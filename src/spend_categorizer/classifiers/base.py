from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from spend_categorizer.models import CategorizationResult, Category, TransactionText


@dataclass
class ClassificationContext:
    """Request-scoped data loaded once per batch and shared by every stage."""
    categories: list[Category]
    _by_id: dict[str, Category] = field(init=False, repr=False)
    _by_name: dict[str, Category] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._by_id = {c.id: c for c in self.categories}
        self._by_name = {}
        for category in self.categories:
            # First category wins on duplicate names
            self._by_name.setdefault(category.name.strip().lower(), category)

    def category_by_id(self, category_id: str | None) -> Category | None:
        if category_id is None:
            return None
        return self._by_id.get(category_id)

    def category_by_name(self, name: str | None) -> Category | None:
        if not name:
            return None
        return self._by_name.get(name.strip().lower())

    @property
    def category_names(self) -> list[str]:
        return [c.name for c in self.categories]


class Classifier(ABC):
    name: str = "classifier"

    @abstractmethod
    def classify(
        self, item: TransactionText, context: ClassificationContext
    ) -> CategorizationResult | None:
        """Attempt to categorize the item. ``None`` means no opinion."""
        pass
