# workflow_transfer/core/graph_analyzer.py
"""
Graph checks over a workflow's node/edge structure.

Edges are given as ``source_id -> [Edge]``. The analyzer is stateless; the
integrity validator decides which findings are errors and which are
warnings.
"""

from dataclasses import dataclass
from typing import Dict, Iterable, List, Mapping, Sequence, Tuple

from ..models.item_models import Edge

EdgeMap = Mapping[str, Sequence[Edge]]

_WHITE, _GRAY, _BLACK = 0, 1, 2


@dataclass(frozen=True)
class DanglingEdge:
    source: str
    target: str
    missing: str  # "source" or "target"


class GraphAnalyzer:

    def detect_orphans(self, node_ids: Sequence[str], edges: EdgeMap) -> List[str]:
        """
        Nodes with neither outbound nor inbound edges, in ``node_ids`` order.

        A single-node graph has no orphans; with two or more nodes and no
        edges every node is an orphan.
        """
        if len(node_ids) < 2:
            return []
        connected = set()
        for source, targets in edges.items():
            for edge in targets:
                connected.add(source)
                if edge.target_node_id is not None:
                    connected.add(edge.target_node_id)

        orphans: List[str] = []
        seen = set()
        for node_id in node_ids:
            if node_id not in connected and node_id not in seen:
                orphans.append(node_id)
                seen.add(node_id)
        return orphans

    def detect_cycle(self, node_ids: Sequence[str], edges: EdgeMap) -> Tuple[bool, List[str]]:
        """
        Find a directed cycle with an iterative three-color DFS.

        Returns:
            ``(True, path)`` where ``path`` closes on its first node, e.g.
            ``["A", "B", "A"]``; ``(False, [])`` when the graph is acyclic.
        """
        color: Dict[str, int] = {}

        def targets(node: str) -> Iterable[str]:
            return (e.target_node_id for e in edges.get(node, ()) if e.target_node_id is not None)

        known = set(node_ids)
        roots = list(node_ids) + [source for source in edges if source not in known]
        for root in roots:
            if color.get(root, _WHITE) != _WHITE:
                continue
            color[root] = _GRAY
            path = [root]
            stack = [iter(targets(root))]
            while stack:
                for nxt in stack[-1]:
                    state = color.get(nxt, _WHITE)
                    if state == _GRAY:
                        start = path.index(nxt)
                        return True, path[start:] + [nxt]
                    if state == _WHITE:
                        color[nxt] = _GRAY
                        path.append(nxt)
                        stack.append(iter(targets(nxt)))
                        break
                else:
                    color[path.pop()] = _BLACK
                    stack.pop()
        return False, []

    def find_dangling_edges(self, node_ids: Sequence[str], edges: EdgeMap) -> List[DanglingEdge]:
        """Edges whose source or target is not a known node."""
        known = set(node_ids)
        dangling: List[DanglingEdge] = []
        for source, targets in edges.items():
            source_known = source in known
            for edge in targets:
                target = edge.target_node_id
                if not source_known:
                    dangling.append(DanglingEdge(source, target or "", "source"))
                elif target is not None and target not in known:
                    dangling.append(DanglingEdge(source, target, "target"))
        return dangling


# Global analyzer instance
graph_analyzer = GraphAnalyzer()
