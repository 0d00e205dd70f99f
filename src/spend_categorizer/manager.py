from spend_categorizer.classifiers.base import ClassificationContext, Classifier
from spend_categorizer.classifiers.heuristic import KeywordClassifier
from spend_categorizer.classifiers.llm import LLMClassifier
from spend_categorizer.classifiers.rules import RuleClassifier, RuleMatcher
from spend_categorizer.classifiers.tfidf import CentroidCache, CentroidClassifier
from spend_categorizer.core.settings import CategorizerConfig
from spend_categorizer.logger import get_logger
from spend_categorizer.models import (
    CategorizationResult,
    Strategy,
    Suggestion,
    Transaction,
    TransactionText,
)
from spend_categorizer.storage.base import Store

logger = get_logger(__name__)

NO_HEURISTIC_CONFIDENCE = 0.2


class CategorizerService:
    def __init__(
        self,
        store: Store,
        config: CategorizerConfig | None = None,
        llm: Classifier | None = None,
        centroid_cache: CentroidCache | None = None,
        heuristic: KeywordClassifier | None = None,
    ):
        self.store = store
        self.config = config or CategorizerConfig()

        self.centroid_cache = centroid_cache or CentroidCache(
            loader=lambda: self.store.list_labeled_transactions(self.config.centroid_max_rows),
            ttl=self.config.centroid_cache_ttl,
        )
        self.statistical: CentroidClassifier | None = None
        if self.config.statistical_enabled:
            self.statistical = CentroidClassifier(self.centroid_cache, threshold=self.config.threshold)

        self.heuristic = heuristic or KeywordClassifier()

        # Only enabled when a key is present
        self.llm = llm
        if self.llm is None and self.config.openai_api_key:
            self.llm = LLMClassifier(
                api_key=self.config.openai_api_key,
                model=self.config.openai_model,
                base_url=self.config.openai_base_url,
                confidence=self.config.ai_confidence,
            )
            logger.info(
                "LLM Classifier enabled: model=%s, base_url=%s",
                self.config.openai_model,
                self.config.openai_base_url or "default",
            )
        elif self.llm is None:
            logger.warning("OPENAI_API_KEY not found. LLM classifier disabled.")

    def load_context(self) -> tuple[ClassificationContext, RuleMatcher]:
        categories = self.store.list_categories()
        matcher = RuleMatcher.compile(
            self.store.list_rules(),
            category_ids=[c.id for c in categories],
        )
        return ClassificationContext(categories=categories), matcher

    def rule_classifier(self, matcher: RuleMatcher) -> RuleClassifier:
        return RuleClassifier(
            matcher,
            base_confidence=self.config.rule_base_confidence,
            length_bonus_cap=self.config.rule_length_bonus_cap,
            length_bonus_divisor=self.config.rule_length_bonus_divisor,
        )

    def build_chain(self, strategy: Strategy, matcher: RuleMatcher) -> list[Classifier]:
        """Ordered stages for a strategy; the first stage with a result wins."""
        chain: list[Classifier] = []
        if strategy != "ai-only":
            chain.append(self.rule_classifier(matcher))
        if strategy == "rule-only":
            return chain

        if self.llm is not None:
            chain.append(self.llm)
        if self.statistical is not None:
            chain.append(self.statistical)
        chain.append(self.heuristic)
        return chain

    def run_chain(
        self,
        chain: list[Classifier],
        item: TransactionText,
        context: ClassificationContext,
    ) -> CategorizationResult | None:
        for classifier in chain:
            result = classifier.classify(item, context)
            if result:
                logger.debug(
                    "%s returned: '%s' (confidence: %.2f)",
                    classifier.name,
                    result.category.name,
                    result.confidence,
                )
                return result
            logger.debug("%s returned: None", classifier.name)
        return None

    def categorize(
        self,
        item: TransactionText,
        context: ClassificationContext,
        chain: list[Classifier],
        *,
        strategy: Strategy = "rule-first",
        target_id: str | None = None,
        amount: float | None = None,
    ) -> Suggestion:
        """Exactly one suggestion per target, with an empty category when nothing matched."""
        base = {
            "id": target_id,
            "merchant": item.merchant,
            "description": item.description,
            "amount": amount,
        }

        result = self.run_chain(chain, item, context)
        if result is not None:
            return Suggestion(
                **base,
                category_id=result.category.id,
                category_name=result.category.name,
                source=result.source,
                confidence=result.confidence,
                reason=result.reason,
                rule_id=result.rule_id,
            )

        logger.debug("No classifier matched for: '%s'", item.text[:50])
        if strategy == "rule-only":
            return Suggestion(**base, source="rule", confidence=0.0, reason="no-rule")
        return Suggestion(
            **base,
            source="heuristic",
            confidence=NO_HEURISTIC_CONFIDENCE,
            reason="no-heuristic",
        )

    def auto_assign(
        self,
        transaction: Transaction,
        context: ClassificationContext | None = None,
        matcher: RuleMatcher | None = None,
    ) -> Transaction:
        """Categorize a stored, uncategorized transaction from rules, then the statistical model."""
        if transaction.category_id:
            return transaction

        item = TransactionText(merchant=transaction.merchant, description=transaction.description)
        if not item.text:
            return transaction

        if context is None or matcher is None:
            context, matcher = self.load_context()

        rule_result = self.rule_classifier(matcher).classify(item, context)
        if rule_result is not None:
            return self.store.update_transaction_category(
                transaction.id, rule_result.category.id, "rule"
            )

        if self.statistical is None:
            return transaction

        category_id, confidence = self.statistical.suggest(item.merchant, item.description)
        if context.category_by_id(category_id) is None:
            return transaction
        return self.store.update_transaction_category(
            transaction.id, category_id, "ml", confidence=confidence
        )

    def status(self) -> dict[str, object]:
        return {
            "model": f"openai:{getattr(self.llm, 'model', self.llm.name)}" if self.llm else "heuristic",
            "ai": self.llm is not None,
            "statistical": self.statistical is not None,
            "centroids_warm": self.centroid_cache.is_warm(),
            "threshold": self.config.threshold,
        }
