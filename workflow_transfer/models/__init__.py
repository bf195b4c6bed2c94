"""Data models: raw item helpers, result types, run options and YAML config."""

from .item_models import Edge, ItemFilter, ParsedConnections, parse_connections, tag_names
from .result_models import (
    BatchStats,
    DuplicateCheckResult,
    ErrorInfo,
    ItemOutcome,
    ItemStatus,
    MutationResult,
    RunResult,
    RunState,
    ValidationResult,
)
from .run_models import PacingPolicy, RetryPolicy, RunOptions

__all__ = [
    "BatchStats",
    "DuplicateCheckResult",
    "Edge",
    "ErrorInfo",
    "ItemFilter",
    "ItemOutcome",
    "ItemStatus",
    "MutationResult",
    "PacingPolicy",
    "ParsedConnections",
    "RetryPolicy",
    "RunOptions",
    "RunResult",
    "RunState",
    "ValidationResult",
    "parse_connections",
    "tag_names",
]
