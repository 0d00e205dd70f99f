import math
from collections import Counter
from collections.abc import Callable
from time import monotonic

import numpy as np
from scipy import sparse
from sklearn.feature_extraction.text import CountVectorizer

from spend_categorizer.logger import get_logger
from spend_categorizer.models import (
    CategorizationResult,
    Centroid,
    Transaction,
    TransactionText,
)

from .base import ClassificationContext, Classifier

logger = get_logger(__name__)


def _transaction_text(merchant: str | None, description: str | None) -> str:
    return f"{(merchant or '').lower()} {(description or '').lower()}".strip()


class CentroidIndex:
    """Per-category TF-IDF centroids over a fixed vocabulary.

    ``weights`` is a (categories x terms) sparse matrix with
    weight = tf * ln(1 + N / df), where df counts categories containing the term.
    Category ids are kept sorted so equal scores resolve to the lowest id.
    """

    def __init__(
        self,
        vectorizer: CountVectorizer | None,
        category_ids: list[str],
        weights: sparse.csr_matrix | None,
        norms: np.ndarray,
    ):
        self.vectorizer = vectorizer
        self.category_ids = category_ids
        self.weights = weights
        self.norms = norms

    @classmethod
    def empty(cls) -> "CentroidIndex":
        return cls(None, [], None, np.zeros(0))

    @classmethod
    def build(cls, rows: list[Transaction]) -> "CentroidIndex":
        texts: list[str] = []
        labels: list[str] = []
        for row in rows:
            if not row.category_id:
                continue
            text = _transaction_text(row.merchant, row.description)
            if not text:
                continue
            texts.append(text)
            labels.append(row.category_id)

        if not texts:
            return cls.empty()

        # Default token pattern keeps word tokens of two or more characters
        vectorizer = CountVectorizer(lowercase=True)
        try:
            counts = vectorizer.fit_transform(texts)
        except ValueError:
            # Empty vocabulary: every text was single-character tokens
            return cls.empty()

        category_ids = sorted(set(labels))
        position = {cid: i for i, cid in enumerate(category_ids)}
        membership = sparse.csr_matrix(
            (
                np.ones(len(labels)),
                ([position[label] for label in labels], list(range(len(labels)))),
            ),
            shape=(len(category_ids), len(labels)),
        )
        tf = (membership @ counts).tocsr()

        n_categories = len(category_ids)
        df = np.asarray((tf > 0).sum(axis=0)).ravel()
        idf = np.log(1.0 + n_categories / np.maximum(df, 1))
        weights = sparse.csr_matrix(tf.multiply(idf.reshape(1, -1)))

        norms = np.sqrt(np.asarray(weights.multiply(weights).sum(axis=1)).ravel())
        norms[norms == 0] = 1.0

        return cls(vectorizer, category_ids, weights, norms)

    def __len__(self) -> int:
        return len(self.category_ids)

    def centroids(self) -> list[Centroid]:
        if self.vectorizer is None or self.weights is None:
            return []
        terms = self.vectorizer.get_feature_names_out()
        result = []
        for i, category_id in enumerate(self.category_ids):
            row = self.weights.getrow(i)
            vector = {str(terms[j]): float(w) for j, w in zip(row.indices, row.data)}
            result.append(Centroid(category_id=category_id, vector=vector, norm=float(self.norms[i])))
        return result

    def best_match(self, text: str) -> tuple[str | None, float]:
        """Highest cosine score for ``text`` as (category_id, score)."""
        if self.vectorizer is None or self.weights is None or not text:
            return None, 0.0

        tokens = self.vectorizer.build_analyzer()(text)
        if not tokens:
            return None, 0.0

        # Query norm covers every token, not only the known vocabulary
        query_norm = math.sqrt(sum(c * c for c in Counter(tokens).values())) or 1.0
        query = self.vectorizer.transform([text])

        dots = np.asarray((self.weights @ query.T).todense()).ravel()
        scores = dots / (self.norms * query_norm)
        best = int(np.argmax(scores))
        score = float(scores[best])
        if score <= 0:
            return None, 0.0
        return self.category_ids[best], score


class CentroidCache:
    """Holds the last built index and rebuilds it once it is older than ``ttl`` seconds.

    Concurrent rebuilds are not serialized: both read the same store and the last
    one to finish replaces the other.
    """

    def __init__(
        self,
        loader: Callable[[], list[Transaction]],
        ttl: float = 300.0,
    ):
        self.loader = loader
        self.ttl = ttl
        self._index: CentroidIndex | None = None
        self._built_at: float | None = None

    def is_warm(self, now: float | None = None) -> bool:
        if self._index is None or self._built_at is None:
            return False
        current = monotonic() if now is None else now
        return current - self._built_at < self.ttl

    def get_or_rebuild(self, now: float | None = None) -> CentroidIndex:
        current = monotonic() if now is None else now
        if self._index is not None and self.is_warm(current):
            return self._index

        index = CentroidIndex.build(self.loader())
        logger.debug("[CENTROIDS] Rebuilt %d centroids.", len(index))
        self._index = index
        self._built_at = current
        return index

    def invalidate(self) -> None:
        self._index = None
        self._built_at = None


class CentroidClassifier(Classifier):
    name = "tfidf"

    def __init__(
        self,
        cache: CentroidCache,
        threshold: float = 0.35,
        clock: Callable[[], float] = monotonic,
    ):
        self.cache = cache
        self.threshold = threshold
        self.clock = clock

    def suggest(
        self, merchant: str | None, description: str | None, threshold: float | None = None
    ) -> tuple[str | None, float]:
        """Return (category_id, confidence); category_id is None below the threshold."""
        text = _transaction_text(merchant, description)
        if not text:
            return None, 0.0

        index = self.cache.get_or_rebuild(self.clock())
        if not len(index):
            return None, 0.0

        category_id, score = index.best_match(text)
        confidence = min(max(score, 0.0), 1.0)
        limit = self.threshold if threshold is None else threshold
        if category_id is None or confidence < limit:
            return None, confidence
        return category_id, confidence

    def classify(
        self, item: TransactionText, context: ClassificationContext
    ) -> CategorizationResult | None:
        category_id, confidence = self.suggest(item.merchant, item.description)
        category = context.category_by_id(category_id)
        if category is None:
            return None
        return CategorizationResult(
            category=category,
            confidence=confidence,
            source="ml",
            reason=f"tfidf:{confidence:.2f}",
        )
