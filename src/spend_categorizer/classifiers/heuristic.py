from dataclasses import dataclass

from spend_categorizer.models import CategorizationResult, TransactionText

from .base import ClassificationContext, Classifier


@dataclass(frozen=True)
class KeywordEntry:
    keywords: tuple[str, ...]
    category_name: str
    confidence: float


DEFAULT_KEYWORDS: tuple[KeywordEntry, ...] = (
    KeywordEntry(("migros", "bim", "a101", "şok", "carrefour"), "Market", 0.65),
    KeywordEntry(("hepsiburada", "trendyol", "n11", "amazon"), "Online Alışveriş", 0.6),
    KeywordEntry(("shell", "opet", "bp", "total", "petrol"), "Yakıt", 0.7),
    KeywordEntry(("starbucks", "kahve", "cafe", "kafe"), "Kafe", 0.55),
    KeywordEntry(("eczane", "hospital", "hastane", "ilaç"), "Sağlık", 0.7),
    KeywordEntry(
        ("turk telekom", "türk telekom", "turkcell", "vodafone", "internet", "fatura"),
        "İletişim",
        0.55,
    ),
    KeywordEntry(
        ("restoran", "lokanta", "yemeksepeti", "getir yemek", "getiryemek"),
        "Yeme-İçme",
        0.6,
    ),
    KeywordEntry(("uber", "taksi", "istanbulkart", "metro", "otobüs"), "Ulaşım", 0.55),
)


class KeywordClassifier(Classifier):
    """Last-resort keyword table with fixed confidences."""

    name = "heuristic"

    def __init__(self, entries: tuple[KeywordEntry, ...] = DEFAULT_KEYWORDS):
        self.entries = entries

    def classify(
        self, item: TransactionText, context: ClassificationContext
    ) -> CategorizationResult | None:
        text = item.text.lower()
        if not text:
            return None

        for entry in self.entries:
            if not any(keyword in text for keyword in entry.keywords):
                continue
            category = context.category_by_name(entry.category_name)
            if category is None:
                continue
            return CategorizationResult(
                category=category,
                confidence=entry.confidence,
                source="heuristic",
                reason=f"keyword→{entry.category_name}",
            )
        return None
