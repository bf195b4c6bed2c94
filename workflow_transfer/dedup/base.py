# workflow_transfer/dedup/base.py
"""
Base class for duplicate detection strategies.

A deduplicator answers one question: does an item equivalent to the
candidate already exist at the destination? Implementations keep no
per-call state, so one instance may serve concurrent workers.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from typing import Any, Dict, List, Sequence

from ..core.errors import InvalidArgumentError
from ..models.result_models import DuplicateCheckResult


class BaseDeduplicator(ABC):
    name: str = "base"
    version: str = "1.0.0"
    description: str = ""

    @abstractmethod
    def check(self, candidate: Mapping, existing: Sequence[Any]) -> DuplicateCheckResult:
        """
        Check ``candidate`` against the destination snapshot.

        Args:
            candidate: Item about to be mutated
            existing: Items already at the destination; malformed entries are skipped

        Raises:
            InvalidArgumentError: If ``candidate`` is not a mapping or
                ``existing`` is not a list
        """

    @staticmethod
    def _require_inputs(candidate: Any, existing: Any) -> List[Mapping]:
        if not isinstance(candidate, Mapping):
            raise InvalidArgumentError(
                f"Candidate must be an object, got {type(candidate).__name__}"
            )
        if not isinstance(existing, (list, tuple)):
            raise InvalidArgumentError(
                f"Existing items must be a list, got {type(existing).__name__}"
            )
        return [item for item in existing if isinstance(item, Mapping)]

    def get_info(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "version": self.version,
            "description": self.description,
        }
