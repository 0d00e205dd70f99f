from collections import Counter, defaultdict

from spend_categorizer.logger import get_logger
from spend_categorizer.models import Rule, RuleCandidate
from spend_categorizer.storage.base import RecordNotFoundError, Store

logger = get_logger(__name__)

DEFAULT_TAKE = 500
DEFAULT_MIN_COUNT = 3
DEFAULT_MIN_SHARE = 0.7


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(value, high))


class RuleMiner:
    """Proposes literal merchant rules from consistently labeled history.

    Read-only: candidates only become rules through :meth:`accept`.
    """

    def __init__(self, store: Store) -> None:
        self.store = store

    def suggest(
        self,
        take: int = DEFAULT_TAKE,
        min_count: int = DEFAULT_MIN_COUNT,
        min_share: float = DEFAULT_MIN_SHARE,
    ) -> list[RuleCandidate]:
        take = int(_clamp(take, 50, 2000))
        min_count = int(_clamp(min_count, 1, 100))
        min_share = _clamp(min_share, 0.5, 0.99)

        rows = self.store.list_recent_expenses_with_merchant(take)

        existing = {
            (rule.pattern.strip().lower(), rule.category_id)
            for rule in self.store.list_rules()
            if not rule.is_regex
        }
        category_names = {c.id: c.name for c in self.store.list_categories()}

        by_merchant: dict[str, Counter[str]] = defaultdict(Counter)
        for row in rows:
            merchant = (row.merchant or "").strip().lower()
            if not merchant or not row.category_id:
                continue
            by_merchant[merchant][row.category_id] += 1

        candidates: list[RuleCandidate] = []
        for merchant, counts in by_merchant.items():
            total = sum(counts.values())
            if total < min_count:
                continue

            # most_common keeps first-seen order on ties
            category_id, count = counts.most_common(1)[0]
            share = count / total
            if share < min_share:
                continue
            if (merchant, category_id) in existing:
                continue

            candidates.append(RuleCandidate(
                merchant_pattern=merchant,
                suggested_category_id=category_id,
                suggested_category_name=category_names.get(category_id),
                share=round(share, 4),
                count=count,
                total=total,
            ))

        candidates.sort(key=lambda c: (-c.share, -c.count))
        logger.info(
            "[MINER] %d candidate(s) from %d transaction(s) across %d merchant(s).",
            len(candidates),
            len(rows),
            len(by_merchant),
        )
        return candidates

    def accept(self, candidate: RuleCandidate, priority: int = 100) -> Rule:
        if self.store.get_category(candidate.suggested_category_id) is None:
            raise RecordNotFoundError("category", candidate.suggested_category_id)
        existing = self.store.find_rule(candidate.merchant_pattern, candidate.suggested_category_id)
        if existing is not None:
            return existing
        rule = self.store.create_rule(
            candidate.merchant_pattern,
            candidate.suggested_category_id,
            is_regex=False,
            merchant_only=True,
            priority=priority,
        )
        logger.info("[MINER] Accepted rule '%s' -> %s", rule.pattern, rule.category_id)
        return rule
