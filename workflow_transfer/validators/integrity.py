# workflow_transfer/validators/integrity.py
"""
Integrity Validator - structural soundness of a workflow graph.

Errors (item is skipped):
    - no nodes
    - connections from or to unknown nodes, connections without a target
    - circular dependencies
    - missing server-assigned id after mutation (phase ``post``)

Warnings (item still transfers):
    - orphaned nodes, malformed connection structure, no connections
    - empty or unidentifiable credential references, disabled nodes
"""

import logging
from collections.abc import Mapping
from typing import Any, Dict

from ..core.graph_analyzer import graph_analyzer
from ..models.item_models import item_nodes, node_key_index, node_label, parse_connections
from ..models.result_models import ValidationResult
from .base import BaseValidator, resolve_edges

logger = logging.getLogger("workflow_transfer.validators.integrity")


class IntegrityValidator(BaseValidator):
    name = "integrity"
    description = "Node references, orphaned nodes, circular dependencies and credentials"

    def _validate(self, item: Any, phase: str) -> ValidationResult:
        result = ValidationResult()
        if not isinstance(item, Mapping):
            result.errors.append("Item must be an object")
            return result

        if phase == "post" and not item.get("id"):
            result.errors.append("Item has no server-assigned id after mutation")

        nodes = item_nodes(item)
        if not nodes:
            result.errors.append("Item has no nodes")
            return result

        node_ids, lookup = node_key_index(nodes)
        labels: Dict[str, str] = {}
        for index, node in enumerate(nodes):
            node_id = node.get("id") or node.get("name")
            if not isinstance(node_id, str) or not node_id:
                result.warnings.append(f"Node at index {index} has neither id nor name")
                continue
            labels[node_id] = node_label(node)

        self._check_connections(item, node_ids, lookup, labels, result)
        self._check_nodes(nodes, result)
        return result

    def _check_connections(self, item, node_ids, lookup, labels, result: ValidationResult) -> None:
        connections = item.get("connections")
        if not isinstance(connections, Mapping) or not connections:
            if len(node_ids) > 1:
                result.warnings.append("Item has no connections defined")

        parsed = parse_connections(connections)
        result.warnings.extend(parsed.warnings)

        edges = resolve_edges(parsed.edges, lookup)
        reported_sources = set()
        for dangling in graph_analyzer.find_dangling_edges(node_ids, edges):
            if dangling.missing == "source":
                if dangling.source not in reported_sources:
                    reported_sources.add(dangling.source)
                    result.errors.append(
                        f"Connection references unknown source node '{dangling.source}'"
                    )
            else:
                result.errors.append(
                    f"Connection from {labels.get(dangling.source, dangling.source)} references "
                    f"unknown target node '{dangling.target}'"
                )
        for source, targets in edges.items():
            if source in labels:
                for edge in targets:
                    if edge.target_node_id is None:
                        result.errors.append(f"Connection from {labels[source]} has no target node")

        for orphan in graph_analyzer.detect_orphans(node_ids, edges):
            result.warnings.append(f"Orphaned node {labels.get(orphan, orphan)} has no connections")

        has_cycle, path = graph_analyzer.detect_cycle(node_ids, edges)
        if has_cycle:
            result.errors.append(
                "Circular dependency detected: " + " -> ".join(labels.get(n, n) for n in path)
            )
        result.metadata["circular_dependencies"] = [path] if has_cycle else []

    def _check_nodes(self, nodes, result: ValidationResult) -> None:
        credential_nodes = 0
        for node in nodes:
            label = node_label(node)
            credentials = node.get("credentials")
            if isinstance(credentials, Mapping):
                if not credentials:
                    result.warnings.append(f"Node {label} has an empty credentials object")
                else:
                    credential_nodes += 1
                    if any(
                        not isinstance(ref, Mapping) or not (ref.get("id") or ref.get("name"))
                        for ref in credentials.values()
                    ):
                        result.warnings.append(f"Node {label} references a credential without id or name")
            if node.get("disabled") is True:
                result.warnings.append(f"Node {label} is disabled")
        result.metadata["credential_node_count"] = credential_nodes
