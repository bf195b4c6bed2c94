# workflow_transfer/models/result_models.py
"""
Result types produced by the dedup strategies, validators, remote service
and batch engine.

Key Classes:
    - DuplicateCheckResult: Outcome of a single dedup check
    - ValidationResult: Errors, warnings and metadata for one item
    - MutationResult: Classified outcome of one remote mutation
    - ItemOutcome: Terminal outcome of one item in a run
    - BatchStats: Aggregate counters for one run
    - RunResult: Everything a run returns to its caller
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional

from ..core.errors import ErrorCategory


class ItemStatus(str, Enum):
    """Terminal status of an item in a run."""
    TRANSFERRED = "transferred"
    SKIPPED_DUPLICATE = "skipped-duplicate"
    SKIPPED_INVALID = "skipped-invalid"
    SKIPPED_FILTERED = "skipped-filtered"
    FAILED = "failed"
    DRY_RUN = "dry-run"

    @property
    def is_skip(self) -> bool:
        return self in (
            ItemStatus.SKIPPED_DUPLICATE,
            ItemStatus.SKIPPED_INVALID,
            ItemStatus.SKIPPED_FILTERED,
        )


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    COMPLETED = "completed"
    ABORTED = "aborted"


@dataclass(frozen=True)
class DuplicateCheckResult:
    """
    Result of a dedup check.

    ``matched_item`` is set exactly when ``is_duplicate`` is true.
    """
    is_duplicate: bool
    reason: str
    matched_item: Optional[Mapping[str, Any]] = None
    similarity: Optional[float] = None

    def __post_init__(self):
        if self.is_duplicate != (self.matched_item is not None):
            raise ValueError("matched_item must be set if and only if is_duplicate is true")

    @classmethod
    def unique(cls, reason: str = "No duplicate found") -> "DuplicateCheckResult":
        return cls(is_duplicate=False, reason=reason)

    @classmethod
    def duplicate_of(
        cls, matched_item: Mapping[str, Any], reason: str, similarity: Optional[float] = None
    ) -> "DuplicateCheckResult":
        return cls(is_duplicate=True, reason=reason, matched_item=matched_item, similarity=similarity)

    def to_dict(self) -> Dict[str, Any]:
        matched = self.matched_item or {}
        return {
            "is_duplicate": self.is_duplicate,
            "reason": self.reason,
            "matched_id": matched.get("id"),
            "matched_name": matched.get("name"),
            "similarity": self.similarity,
        }


@dataclass
class ValidationResult:
    """Result of validating one item. ``valid`` is derived from ``errors``."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)

    @property
    def valid(self) -> bool:
        return not self.errors

    def merge(self, other: "ValidationResult") -> "ValidationResult":
        return ValidationResult(
            errors=self.errors + other.errors,
            warnings=self.warnings + other.warnings,
            metadata={**self.metadata, **other.metadata},
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "valid": self.valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "error_count": len(self.errors),
            "warning_count": len(self.warnings),
            "metadata": dict(self.metadata),
        }


@dataclass
class ErrorInfo:
    category: ErrorCategory
    message: str
    status_code: Optional[int] = None

    @property
    def retryable(self) -> bool:
        return self.category.is_retryable

    def to_dict(self) -> Dict[str, Any]:
        return {
            "category": self.category.value,
            "message": self.message,
            "status_code": self.status_code,
            "retryable": self.retryable,
        }


@dataclass
class MutationResult:
    """
    Classified outcome of one mutate call.

    ``category`` is None on plain success; benign and failing outcomes carry
    the category, the HTTP status when there was one and any server
    ``Retry-After`` hint in seconds.
    """
    category: Optional[ErrorCategory] = None
    item: Optional[Dict[str, Any]] = None
    status_code: Optional[int] = None
    retry_after: Optional[float] = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.category is None

    def to_error(self) -> ErrorInfo:
        return ErrorInfo(
            category=self.category or ErrorCategory.CLIENT_ERROR,
            message=self.message,
            status_code=self.status_code,
        )


@dataclass
class ItemOutcome:
    item_id: Optional[str]
    name: Optional[str]
    status: ItemStatus
    reason: Optional[str] = None
    error: Optional[ErrorInfo] = None
    attempts: int = 0
    duration_ms: float = 0.0
    target_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item_id": self.item_id,
            "name": self.name,
            "status": self.status.value,
            "reason": self.reason,
            "error": self.error.to_dict() if self.error else None,
            "attempts": self.attempts,
            "duration_ms": round(self.duration_ms, 2),
            "target_id": self.target_id,
        }


@dataclass
class BatchStats:
    total: int = 0
    succeeded: int = 0
    skipped: int = 0
    failed: int = 0
    dry_run: int = 0
    total_retries: int = 0

    @property
    def processed(self) -> int:
        return self.succeeded + self.skipped + self.failed + self.dry_run

    @property
    def success_rate(self) -> float:
        """Share of attempted items that succeeded; 1.0 before any attempt."""
        attempted = self.succeeded + self.dry_run + self.failed
        if attempted == 0:
            return 1.0
        return (self.succeeded + self.dry_run) / attempted

    def record(self, outcome: ItemOutcome) -> None:
        if outcome.status == ItemStatus.TRANSFERRED:
            self.succeeded += 1
        elif outcome.status == ItemStatus.DRY_RUN:
            self.dry_run += 1
        elif outcome.status == ItemStatus.FAILED:
            self.failed += 1
        else:
            self.skipped += 1

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total": self.total,
            "processed": self.processed,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "dry_run": self.dry_run,
            "total_retries": self.total_retries,
            "success_rate": round(self.success_rate, 4),
        }


@dataclass
class RunResult:
    state: RunState
    stats: BatchStats
    outcomes: List[ItemOutcome] = field(default_factory=list)
    abort_reason: Optional[str] = None
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None

    @property
    def aborted(self) -> bool:
        return self.state == RunState.ABORTED

    @property
    def duration_seconds(self) -> float:
        if not self.started_at or not self.finished_at:
            return 0.0
        return (self.finished_at - self.started_at).total_seconds()

    def outcomes_with_status(self, status: ItemStatus) -> List[ItemOutcome]:
        return [o for o in self.outcomes if o.status == status]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "aborted": self.aborted,
            "abort_reason": self.abort_reason,
            "started_at": self.started_at.isoformat() if self.started_at else None,
            "finished_at": self.finished_at.isoformat() if self.finished_at else None,
            "duration_seconds": round(self.duration_seconds, 3),
            "stats": self.stats.to_dict(),
            "outcomes": [o.to_dict() for o in self.outcomes],
        }
