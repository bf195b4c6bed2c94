# workflow_transfer/dedup/exact.py
"""
Exact duplicate detection: same name (case-sensitive) and same tag multiset.
"""

import json
import logging
from collections.abc import Mapping
from typing import Any, Sequence

from ..models.item_models import same_tag_multiset, tag_names
from ..models.result_models import DuplicateCheckResult
from .base import BaseDeduplicator

logger = logging.getLogger("workflow_transfer.dedup.exact")


class ExactDeduplicator(BaseDeduplicator):
    name = "exact"
    description = "Duplicate when name and tag set match exactly (tag order ignored)"

    def check(self, candidate: Mapping, existing: Sequence[Any]) -> DuplicateCheckResult:
        entries = self._require_inputs(candidate, existing)
        name = candidate.get("name")
        tags = candidate.get("tags")

        for item in entries:
            if item.get("name") == name and same_tag_multiset(item.get("tags"), tags):
                logger.debug(f"Exact duplicate for '{name}' (existing id {item.get('id')})")
                return DuplicateCheckResult.duplicate_of(
                    item,
                    reason=(
                        f"Duplicate found: item '{name}' with tags "
                        f"{json.dumps(sorted(tag_names(tags)))} already exists"
                    ),
                    similarity=1.0,
                )
        return DuplicateCheckResult.unique()
