# workflow_transfer/dedup/fuzzy.py
"""
Fuzzy duplicate detection on item names using edit-distance similarity.

Usage:
    dedup = FuzzyDeduplicator(threshold=0.9)
    result = dedup.check(item, target_items)
    if result.is_duplicate:
        print(result.reason)  # Similar item found: 'Invoice Sync' (similarity: 92.5%)
"""

import logging
from collections.abc import Mapping
from typing import Any, Optional, Sequence

from ..core.errors import InvalidArgumentError
from ..core.similarity import SimilarityScorer
from ..models.result_models import DuplicateCheckResult
from .base import BaseDeduplicator

logger = logging.getLogger("workflow_transfer.dedup.fuzzy")

DEFAULT_THRESHOLD = 0.85


class FuzzyDeduplicator(BaseDeduplicator):
    """
    Duplicate when an existing item's name is at least ``threshold`` similar.

    The best match wins; ties resolve to the earliest existing item.
    Tags are not compared.
    """

    name = "fuzzy"
    description = "Duplicate when name similarity reaches the threshold (Levenshtein)"

    def __init__(self, threshold: float = DEFAULT_THRESHOLD, case_sensitive: bool = False):
        if isinstance(threshold, bool) or not isinstance(threshold, (int, float)):
            raise InvalidArgumentError(f"Threshold must be a number, got {threshold!r}")
        if not 0.0 <= threshold <= 1.0:
            raise InvalidArgumentError(f"Threshold must be between 0 and 1, got {threshold}")
        self.threshold = float(threshold)
        self.scorer = SimilarityScorer(case_sensitive=case_sensitive)

    def check(self, candidate: Mapping, existing: Sequence[Any]) -> DuplicateCheckResult:
        entries = self._require_inputs(candidate, existing)
        name = candidate.get("name")
        if not isinstance(name, str):
            return DuplicateCheckResult.unique("Candidate has no comparable name")

        best_item: Optional[Mapping] = None
        best_score = -1.0
        for item in entries:
            other = item.get("name")
            if not isinstance(other, str):
                continue
            score = self.scorer.similarity(name, other)
            if score > best_score:
                best_item, best_score = item, score

        if best_item is not None and best_score >= self.threshold:
            logger.debug(f"Fuzzy duplicate for '{name}': '{best_item.get('name')}' ({best_score:.3f})")
            return DuplicateCheckResult.duplicate_of(
                best_item,
                reason=f"Similar item found: '{best_item.get('name')}' (similarity: {best_score * 100:.1f}%)",
                similarity=best_score,
            )
        if best_item is not None:
            return DuplicateCheckResult.unique(
                f"No similar item found (best: '{best_item.get('name')}' at {best_score * 100:.1f}%)"
            )
        return DuplicateCheckResult.unique()

    def get_info(self):
        info = super().get_info()
        info["threshold"] = self.threshold
        return info
