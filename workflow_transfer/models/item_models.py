# workflow_transfer/models/item_models.py
"""
Helpers over raw n8n workflow items.

Items stay plain dicts exactly as the remote API returns them. This module
extracts the few structured views the engine needs: tag names, nodes,
parsed connection edges, and the selection filter applied before a run.

Raw connection shape::

    connections[source][channel][output_index] = [{"node": target, "type": ..., "index": ...}]
"""

from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple


def tag_names(tags: Any) -> List[str]:
    """
    Return tag names from a tag list that mixes strings and ``{id, name}`` objects.

    Missing or non-list tags yield an empty list; malformed entries are ignored.
    """
    if not isinstance(tags, list):
        return []
    names = []
    for tag in tags:
        if isinstance(tag, str):
            names.append(tag)
        elif isinstance(tag, Mapping) and isinstance(tag.get("name"), str):
            names.append(tag["name"])
    return names


def same_tag_multiset(left: Any, right: Any) -> bool:
    """Order-insensitive, multiplicity-sensitive tag comparison."""
    return Counter(tag_names(left)) == Counter(tag_names(right))


def item_nodes(item: Mapping[str, Any]) -> List[Dict[str, Any]]:
    nodes = item.get("nodes")
    if not isinstance(nodes, list):
        return []
    return [node for node in nodes if isinstance(node, Mapping)]


def node_label(node: Mapping[str, Any]) -> str:
    name = node.get("name")
    node_id = node.get("id")
    if name and node_id:
        return f'"{name}" ({node_id})'
    return f'"{name or node_id or "unnamed"}"'


def has_credentials(item: Mapping[str, Any]) -> bool:
    """True when any node references a non-empty credentials map."""
    return any(
        isinstance(node.get("credentials"), Mapping) and node["credentials"]
        for node in item_nodes(item)
    )


# =========================================================================
# CONNECTION EDGES
# =========================================================================

@dataclass(frozen=True)
class Edge:
    """One outbound connection from a source node."""
    target_node_id: Optional[str]
    channel: str = "main"
    output_index: int = 0


@dataclass
class ParsedConnections:
    edges: Dict[str, List[Edge]] = field(default_factory=dict)
    warnings: List[str] = field(default_factory=list)

    @property
    def edge_count(self) -> int:
        return sum(len(edges) for edges in self.edges.values())


def parse_connections(connections: Any) -> ParsedConnections:
    """
    Flatten raw n8n connections into ``source -> [Edge]``.

    Structural oddities (non-list channels or outputs, non-object entries)
    become warnings. Entries without a ``node`` field are kept with
    ``target_node_id=None`` so the caller can report them.
    """
    parsed = ParsedConnections()
    if not isinstance(connections, Mapping):
        return parsed

    for source, channels in connections.items():
        edges = parsed.edges.setdefault(str(source), [])
        if not isinstance(channels, Mapping):
            parsed.warnings.append(f"Connections for node '{source}' are not an object")
            continue
        for channel, outputs in channels.items():
            if not isinstance(outputs, list):
                parsed.warnings.append(
                    f"Connection type '{channel}' for node '{source}' is not an array"
                )
                continue
            for output_index, output in enumerate(outputs):
                if output is None:
                    continue
                if not isinstance(output, list):
                    parsed.warnings.append(
                        f"Output {output_index} of '{channel}' for node '{source}' is not an array"
                    )
                    continue
                for entry in output:
                    if not isinstance(entry, Mapping):
                        parsed.warnings.append(
                            f"Connection entry from node '{source}' is not an object"
                        )
                        continue
                    target = entry.get("node")
                    edges.append(Edge(
                        target_node_id=str(target) if target not in (None, "") else None,
                        channel=str(channel),
                        output_index=output_index,
                    ))
    return parsed


def node_key_index(nodes: Sequence[Mapping[str, Any]]) -> Tuple[List[str], Dict[str, str]]:
    """
    Build the ordered node id list and a lookup from id or name to id.

    n8n keys connections by node name while other exports use ids, so both
    resolve; ids win when a name collides with another node's id. Nodes
    without an id are identified by their name.
    """
    node_ids: List[str] = []
    lookup: Dict[str, str] = {}
    for node in nodes:
        node_id = node.get("id") or node.get("name")
        if not isinstance(node_id, str) or not node_id:
            continue
        node_ids.append(node_id)
        lookup[node_id] = node_id
    for node in nodes:
        node_id = node.get("id") or node.get("name")
        name = node.get("name")
        if isinstance(name, str) and isinstance(node_id, str) and name not in lookup:
            lookup[name] = node_id
    return node_ids, lookup


# =========================================================================
# SELECTION FILTER
# =========================================================================

@dataclass
class ItemFilter:
    """
    Selects which source items enter a run.

    ``ids``, ``names`` and ``tags`` are include filters combined with AND;
    ``tags`` matches when an item carries any of them. ``exclude_tags``
    drops items carrying any listed tag.
    """
    ids: List[str] = field(default_factory=list)
    names: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    exclude_tags: List[str] = field(default_factory=list)

    @property
    def is_empty(self) -> bool:
        return not (self.ids or self.names or self.tags or self.exclude_tags)

    def matches(self, item: Mapping[str, Any]) -> bool:
        if self.ids and str(item.get("id")) not in self.ids:
            return False
        if self.names and item.get("name") not in self.names:
            return False
        names = set(tag_names(item.get("tags")))
        if self.tags and not names.intersection(self.tags):
            return False
        if self.exclude_tags and names.intersection(self.exclude_tags):
            return False
        return True

    def apply(self, items: Iterable[Any]) -> List[Any]:
        if self.is_empty:
            return list(items)
        return [item for item in items if isinstance(item, Mapping) and self.matches(item)]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ids": list(self.ids),
            "names": list(self.names),
            "tags": list(self.tags),
            "exclude_tags": list(self.exclude_tags),
        }
