import os

from openai import OpenAI

from spend_categorizer.logger import get_logger
from spend_categorizer.models import CategorizationResult, TransactionText

from .base import ClassificationContext, Classifier

logger = get_logger(__name__)


class LLMClassifier(Classifier):
    name = "llm"

    def __init__(
        self,
        api_key: str | None = None,
        model: str = "gpt-4o-mini",
        base_url: str | None = None,
        confidence: float = 0.8,
    ):
        self.client = OpenAI(
            api_key=api_key or os.getenv("OPENAI_API_KEY"),
            base_url=base_url or os.getenv("OPENAI_BASE_URL") or None
        )
        self.model = model
        self.confidence = confidence

    def build_prompt(self, item: TransactionText, category_names: list[str]) -> str:
        return (
            "Pick the best spending category for this transaction from the list below.\n"
            f"Categories: {', '.join(category_names)}\n\n"
            f"Merchant: {item.merchant or '(none)'}\n"
            f"Description: {item.description or '(none)'}\n\n"
            "Return exactly one name from this list, nothing else."
        )

    def classify(
        self, item: TransactionText, context: ClassificationContext
    ) -> CategorizationResult | None:
        if not context.categories:
            return None

        try:
            response = self.client.responses.create(
                model=self.model,
                instructions=(
                    "You classify personal finance transactions. "
                    "Answer only with one of the given category names."
                ),
                input=self.build_prompt(item, context.category_names),
                temperature=0.0,
            )
        except Exception as e:
            logger.error("[LLM] Request failed: %s", e)
            return None

        answer = (self._extract_output_text(response) or "").strip()
        if not answer:
            logger.debug("[LLM] Empty response.")
            return None

        category = context.category_by_name(answer)
        if category is None:
            logger.info("[LLM] Unmapped response '%s'.", answer[:80])
            return None

        return CategorizationResult(
            category=category,
            confidence=self.confidence,
            source="ai",
            reason=f"ai:{self.model}",
        )

    @staticmethod
    def _extract_output_text(response: object) -> str | None:
        output_text = getattr(response, "output_text", None)
        if isinstance(output_text, str) and output_text:
            return output_text

        output = getattr(response, "output", None)
        if not output:
            return None

        parts: list[str] = []
        for item in output:
            content = getattr(item, "content", None)
            if not content:
                continue
            for block in content:
                block_type = getattr(block, "type", None)
                if block_type in {"output_text", "text"}:
                    text = getattr(block, "text", None)
                    if text:
                        parts.append(text)

        if parts:
            return "".join(parts)
        return None
