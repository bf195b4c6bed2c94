# workflow_transfer/validators/base.py
"""
Base class for item validators.

Validators never raise on malformed items: every problem becomes an error
or warning string in the returned ``ValidationResult``. Only a bad
``phase`` argument raises.
"""

from abc import ABC, abstractmethod
from collections.abc import Mapping
from datetime import datetime, timezone
from typing import Any, Dict

from ..core.errors import InvalidArgumentError
from ..core.graph_analyzer import graph_analyzer
from ..models.item_models import Edge, item_nodes, node_key_index, parse_connections
from ..models.result_models import ValidationResult

VALID_PHASES = ("pre", "post")


class BaseValidator(ABC):
    name: str = "base"
    version: str = "1.0.0"
    description: str = ""

    def validate(self, item: Any, phase: str = "pre") -> ValidationResult:
        """
        Validate ``item`` before (``pre``) or after (``post``) mutation.

        Raises:
            InvalidArgumentError: If ``phase`` is not ``pre`` or ``post``
        """
        if phase not in VALID_PHASES:
            raise InvalidArgumentError(f"Unknown validation phase '{phase}'")
        result = self._validate(item, phase)
        result.metadata = {**self._base_metadata(item, phase), **result.metadata}
        return result

    @abstractmethod
    def _validate(self, item: Any, phase: str) -> ValidationResult:
        ...

    def _base_metadata(self, item: Any, phase: str) -> Dict[str, Any]:
        metadata = {
            "validator": self.name,
            "version": self.version,
            "phase": phase,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "node_count": 0,
            "connection_count": 0,
            "orphan_count": 0,
            "has_cycle": False,
        }
        if isinstance(item, Mapping):
            metadata["item_name"] = item.get("name")
            metadata.update(graph_counts(item))
        return metadata

    def get_info(self) -> Dict[str, Any]:
        return {"name": self.name, "version": self.version, "description": self.description}


def graph_counts(item: Mapping) -> Dict[str, Any]:
    """Derived node/edge/orphan/cycle counts for an item."""
    nodes = item_nodes(item)
    node_ids, lookup = node_key_index(nodes)
    parsed = parse_connections(item.get("connections"))
    edges = resolve_edges(parsed.edges, lookup)
    has_cycle, _ = graph_analyzer.detect_cycle(node_ids, edges)
    return {
        "node_count": len(nodes),
        "connection_count": parsed.edge_count,
        "orphan_count": len(graph_analyzer.detect_orphans(node_ids, edges)),
        "has_cycle": has_cycle,
    }


def resolve_edges(edges, lookup):
    """Rewrite source keys and targets given as names to node ids."""
    resolved = {}
    for source, targets in edges.items():
        key = lookup.get(source, source)
        bucket = resolved.setdefault(key, [])
        for edge in targets:
            target = edge.target_node_id
            bucket.append(Edge(
                target_node_id=lookup.get(target, target) if target is not None else None,
                channel=edge.channel,
                output_index=edge.output_index,
            ))
    return resolved
