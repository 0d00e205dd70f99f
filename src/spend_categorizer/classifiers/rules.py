import re
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from spend_categorizer.logger import get_logger
from spend_categorizer.models import CategorizationResult, Rule, TransactionText

from .base import ClassificationContext, Classifier

logger = get_logger(__name__)


@dataclass(frozen=True)
class CompiledRule:
    id: str
    pattern: str
    needle: str
    regex: re.Pattern[str] | None
    is_regex: bool
    merchant_only: bool
    priority: int
    category_id: str
    created_at: datetime

    def matches(self, merchant: str, combined: str) -> bool:
        haystack = merchant if self.merchant_only else combined
        if not haystack:
            return False
        if self.is_regex:
            # A pattern that failed to compile never matches
            return self.regex is not None and self.regex.search(haystack) is not None
        return bool(self.needle) and self.needle in haystack


def _compile_pattern(rule: Rule) -> re.Pattern[str] | None:
    try:
        return re.compile(rule.pattern, re.IGNORECASE)
    except re.error as exc:
        logger.warning("[RULES] Rule %s has an invalid regex %r: %s", rule.id, rule.pattern, exc)
        return None


class RuleMatcher:
    """Ordered, precompiled rules. Matching is pure and case-insensitive."""

    def __init__(self, compiled: list[CompiledRule]):
        self.rules = compiled

    @classmethod
    def compile(
        cls,
        rules: Iterable[Rule],
        category_ids: Iterable[str] | None = None,
    ) -> "RuleMatcher":
        known = set(category_ids) if category_ids is not None else None
        compiled: list[CompiledRule] = []
        for rule in rules:
            if known is not None and rule.category_id not in known:
                logger.debug("[RULES] Rule %s points to missing category %s; ignored.", rule.id, rule.category_id)
                continue
            compiled.append(CompiledRule(
                id=rule.id,
                pattern=rule.pattern,
                needle=rule.pattern.lower(),
                regex=_compile_pattern(rule) if rule.is_regex else None,
                is_regex=rule.is_regex,
                merchant_only=rule.merchant_only,
                priority=rule.priority,
                category_id=rule.category_id,
                created_at=rule.created_at,
            ))
        # Priority first, then the more specific (longer) pattern
        compiled.sort(key=lambda r: (r.priority, -len(r.pattern), r.created_at))
        return cls(compiled)

    def match(self, merchant: str | None, description: str | None) -> CompiledRule | None:
        m = (merchant or "").lower()
        d = (description or "").lower()
        combined = f"{m} {d}".strip()
        m = m.strip()
        for rule in self.rules:
            if rule.matches(m, combined):
                return rule
        return None

    def __len__(self) -> int:
        return len(self.rules)


class RuleClassifier(Classifier):
    name = "rules"

    def __init__(
        self,
        matcher: RuleMatcher,
        base_confidence: float = 0.9,
        length_bonus_cap: float = 0.09,
        length_bonus_divisor: float = 200.0,
    ):
        self.matcher = matcher
        self.base_confidence = base_confidence
        self.length_bonus_cap = length_bonus_cap
        self.length_bonus_divisor = length_bonus_divisor

    def confidence_for(self, pattern: str) -> float:
        """Longer patterns are more specific and earn a small bonus."""
        bonus = min(self.length_bonus_cap, len(pattern) / self.length_bonus_divisor)
        return min(0.99, self.base_confidence + bonus)

    def classify(
        self, item: TransactionText, context: ClassificationContext
    ) -> CategorizationResult | None:
        rule = self.matcher.match(item.merchant, item.description)
        if rule is None:
            return None

        category = context.category_by_id(rule.category_id)
        if category is None:
            return None

        return CategorizationResult(
            category=category,
            confidence=self.confidence_for(rule.pattern),
            source="rule",
            reason=f"rule:{rule.pattern}",
            rule_id=rule.id,
        )
