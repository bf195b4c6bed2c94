# workflow_transfer/core/similarity.py
"""
Edit-distance similarity between item names.

Usage:
    from workflow_transfer.core.similarity import similarity_scorer
    similarity_scorer.similarity("Invoice Sync", "invoice sync v2")
"""

from .errors import InvalidArgumentError


class SimilarityScorer:
    """
    Levenshtein distance and normalized similarity.

    Inputs are trimmed and, unless ``case_sensitive`` is set, case-folded
    before comparison. Similarity is ``1 - distance / max(len(a), len(b))``
    over the normalized strings, so two empty strings are identical (1.0).
    """

    def __init__(self, case_sensitive: bool = False):
        self.case_sensitive = case_sensitive

    def _normalize(self, value: str) -> str:
        if not isinstance(value, str):
            raise InvalidArgumentError(
                f"Expected a string to compare, got {type(value).__name__}"
            )
        value = value.strip()
        return value if self.case_sensitive else value.casefold()

    def distance(self, a: str, b: str) -> int:
        """Minimum insertions, deletions and substitutions turning ``a`` into ``b``."""
        a, b = self._normalize(a), self._normalize(b)
        if not a:
            return len(b)
        if not b:
            return len(a)

        # Rows follow b, columns follow a
        previous = list(range(len(a) + 1))
        for i, char_b in enumerate(b, start=1):
            current = [i] + [0] * len(a)
            for j, char_a in enumerate(a, start=1):
                cost = 0 if char_a == char_b else 1
                current[j] = min(
                    previous[j] + 1,
                    current[j - 1] + 1,
                    previous[j - 1] + cost,
                )
            previous = current
        return previous[-1]

    def similarity(self, a: str, b: str) -> float:
        """Similarity in [0, 1]; 1.0 means identical after normalization."""
        longest = max(len(self._normalize(a)), len(self._normalize(b)))
        if longest == 0:
            return 1.0
        return 1.0 - self.distance(a, b) / longest


# Global scorer instance (case-insensitive)
similarity_scorer = SimilarityScorer()
