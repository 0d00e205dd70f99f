import asyncio
import math
from dataclasses import dataclass

from spend_categorizer.logger import get_logger
from spend_categorizer.manager import CategorizerService
from spend_categorizer.models import (
    CategorizeRequest,
    CategorizeResponse,
    CreatedRule,
    Suggestion,
    TransactionText,
)
from spend_categorizer.storage.base import Store

logger = get_logger(__name__)

RULE_MINING_MIN_CONFIDENCE = 0.7
MINED_RULE_PRIORITY = 50


@dataclass(frozen=True)
class Target:
    id: str | None
    merchant: str | None
    description: str | None
    amount: float | None


def clamp_threshold(value: float | None, default: float) -> float:
    if value is None or math.isnan(value):
        return default
    return max(0.0, min(1.0, value))


class CategorizationPipeline:
    def __init__(self, service: CategorizerService, store: Store) -> None:
        self.service = service
        self.store = store

    def collect_targets(self, request: CategorizeRequest) -> list[Target]:
        limit = self.service.config.batch_limit
        targets: list[Target] = []

        entries = request.targets[:limit]
        ids = request.ids[:limit]
        wanted = [entry.id for entry in entries if entry.id] + ids
        found = {t.id: t for t in self.store.get_transactions(wanted)} if wanted else {}

        def stored(tx_id: str) -> None:
            tx = found.get(tx_id)
            if tx is None:
                logger.warning("[CATEGORIZE] Transaction %s not found; skipped.", tx_id)
                return
            targets.append(Target(tx.id, tx.merchant, tx.description, tx.amount))

        # Mixed targets keep request order
        for entry in entries:
            if entry.id:
                stored(entry.id)
            else:
                targets.append(Target(None, entry.merchant, entry.description, entry.amount))

        for tx_id in ids:
            stored(tx_id)

        for item in request.items[:limit]:
            targets.append(Target(None, item.merchant, item.description, item.amount))
        return targets

    async def run(self, request: CategorizeRequest) -> CategorizeResponse:
        threshold = clamp_threshold(request.threshold, self.service.config.threshold)
        targets = self.collect_targets(request)
        if not targets:
            return CategorizeResponse(threshold=threshold, suggestions=[])

        context, matcher = await asyncio.to_thread(self.service.load_context)
        chain = self.service.build_chain(request.strategy, matcher)
        logger.info(
            "[CATEGORIZE] %d target(s), strategy=%s, stages=%s, threshold=%.2f",
            len(targets),
            request.strategy,
            ",".join(stage.name for stage in chain),
            threshold,
        )

        suggestions: list[Suggestion] = []
        # One target at a time so AI calls stay in request order
        for target in targets:
            suggestion = await asyncio.to_thread(
                self.service.categorize,
                TransactionText(merchant=target.merchant or None, description=target.description or None),
                context,
                chain,
                strategy=request.strategy,
                target_id=target.id,
                amount=target.amount,
            )
            suggestions.append(suggestion)

        applied = 0
        if request.apply:
            applied = await asyncio.to_thread(self.apply_suggestions, suggestions, threshold)

        created_rules: list[CreatedRule] = []
        if request.save_rules:
            created_rules = await asyncio.to_thread(self.save_rules, suggestions, threshold)

        return CategorizeResponse(
            threshold=threshold,
            suggestions=suggestions,
            applied=applied,
            created_rules=created_rules,
        )

    def apply_suggestions(self, suggestions: list[Suggestion], threshold: float) -> int:
        applied = 0
        for suggestion in suggestions:
            if not suggestion.id or not suggestion.category_id:
                continue
            if suggestion.confidence < threshold:
                continue
            source = "rule" if suggestion.source == "rule" else "ml"
            try:
                self.store.update_transaction_category(
                    suggestion.id,
                    suggestion.category_id,
                    source,
                )
            except Exception as exc:
                logger.error("[APPLY] Failed to update transaction %s: %s", suggestion.id, exc)
                continue
            applied += 1
            logger.info(
                "[APPLY] Transaction %s: '%s' (confidence: %.2f >= %.2f)",
                suggestion.id,
                suggestion.category_name,
                suggestion.confidence,
                threshold,
            )
        return applied

    def save_rules(self, suggestions: list[Suggestion], threshold: float) -> list[CreatedRule]:
        """Turn confident suggestions into literal merchant rules."""
        min_confidence = max(threshold, RULE_MINING_MIN_CONFIDENCE)
        created: list[CreatedRule] = []
        for suggestion in suggestions:
            if not suggestion.category_id or suggestion.confidence < min_confidence:
                continue
            pattern = (suggestion.merchant or "").strip()
            if not pattern:
                continue
            try:
                if self.store.find_rule(pattern, suggestion.category_id) is not None:
                    continue
                rule = self.store.create_rule(
                    pattern,
                    suggestion.category_id,
                    is_regex=False,
                    merchant_only=True,
                    priority=MINED_RULE_PRIORITY,
                )
            except Exception as exc:
                logger.error("[RULES] Failed to create rule for '%s': %s", pattern, exc)
                continue
            logger.info("[RULES] Created rule '%s' -> %s", rule.pattern, rule.category_id)
            created.append(CreatedRule(id=rule.id, pattern=rule.pattern, category_id=rule.category_id))
        return created
