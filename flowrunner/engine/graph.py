"""
Workflow graph model.

A Graph is an immutable set of nodes plus directed edges. Building one
validates it: unique ids, no dangling edges, no cycles.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Mapping

from ..core.exceptions import ValidationError
from .types import Edge, NodeDefinition


@dataclass(frozen=True)
class Graph:
    """Validated, immutable workflow graph."""

    nodes: tuple[NodeDefinition, ...]
    edges: tuple[Edge, ...]
    _node_map: Mapping[str, NodeDefinition]
    _children: Mapping[str, tuple[str, ...]]
    _parents: Mapping[str, tuple[str, ...]]

    def __len__(self) -> int:
        return len(self.nodes)

    def __contains__(self, node_id: object) -> bool:
        return node_id in self._node_map

    def node(self, node_id: str) -> NodeDefinition:
        try:
            return self._node_map[node_id]
        except KeyError:
            raise ValidationError(f'Node "{node_id}" not found in graph', field="id") from None

    @property
    def node_ids(self) -> tuple[str, ...]:
        return tuple(n.id for n in self.nodes)

    def child_ids(self, node_id: str) -> tuple[str, ...]:
        return self._children.get(node_id, ())

    def parent_ids(self, node_id: str) -> tuple[str, ...]:
        return self._parents.get(node_id, ())

    def subgraph(self, node_ids: Iterable[str]) -> Graph:
        """Induced subgraph over `node_ids`, preserving insertion order."""
        keep = set(node_ids)
        return _assemble(
            [n for n in self.nodes if n.id in keep],
            [e for e in self.edges if e.source in keep and e.target in keep],
        )


def build_graph(
    nodes: Iterable[NodeDefinition | Mapping[str, Any]],
    edges: Iterable[Edge | Mapping[str, Any]],
) -> Graph:
    """
    Build and validate a workflow graph.

    Accepts NodeDefinition/Edge objects or the plain `{id, type, config}` /
    `{source, target}` records produced by the builder UI.

    Raises:
        ValidationError: duplicate or empty ids, dangling edges, or a cycle
    """
    node_list = [n if isinstance(n, NodeDefinition) else NodeDefinition.from_dict(n) for n in nodes]
    edge_list = [e if isinstance(e, Edge) else Edge.from_dict(e) for e in edges]

    seen: set[str] = set()
    for node in node_list:
        if not node.id:
            raise ValidationError("Node is missing an id", field="id")
        if not node.type:
            raise ValidationError(f'Node "{node.id}" is missing a type', field="type")
        if node.id in seen:
            raise ValidationError(
                f'Duplicate node id "{node.id}"', field="id", details={"node_id": node.id}
            )
        seen.add(node.id)

    unique_edges: list[Edge] = []
    edge_seen: set[tuple[str, str]] = set()
    for edge in edge_list:
        for endpoint in ("source", "target"):
            ref = getattr(edge, endpoint)
            if ref not in seen:
                raise ValidationError(
                    f'Edge {edge.source} -> {edge.target} references missing node "{ref}"',
                    field=endpoint,
                    details={"source": edge.source, "target": edge.target},
                )
        key = (edge.source, edge.target)
        if key not in edge_seen:
            edge_seen.add(key)
            unique_edges.append(edge)

    graph = _assemble(node_list, unique_edges)
    _check_acyclic(graph)
    return graph


def start_nodes(graph: Graph) -> tuple[NodeDefinition, ...]:
    """Nodes with no incoming edge, in insertion order."""
    starts = tuple(n for n in graph.nodes if not graph.parent_ids(n.id))
    if not starts and graph.nodes:
        raise ValidationError("Graph has no start node (every node has an incoming edge)")
    return starts


def children_of(graph: Graph, node_id: str) -> tuple[NodeDefinition, ...]:
    """Direct children of `node_id` in edge-insertion order."""
    graph.node(node_id)
    return tuple(graph.node(c) for c in graph.child_ids(node_id))


def parents_of(graph: Graph, node_id: str) -> tuple[NodeDefinition, ...]:
    """Direct predecessors of `node_id` in edge-insertion order."""
    graph.node(node_id)
    return tuple(graph.node(p) for p in graph.parent_ids(node_id))


def descendants_of(graph: Graph, node_id: str) -> tuple[NodeDefinition, ...]:
    """All transitive children of `node_id`, in graph insertion order."""
    graph.node(node_id)
    found: set[str] = set()
    stack = list(graph.child_ids(node_id))
    while stack:
        current = stack.pop()
        if current in found:
            continue
        found.add(current)
        stack.extend(graph.child_ids(current))
    return tuple(n for n in graph.nodes if n.id in found)


def _assemble(nodes: list[NodeDefinition], edges: list[Edge]) -> Graph:
    children: dict[str, list[str]] = {n.id: [] for n in nodes}
    parents: dict[str, list[str]] = {n.id: [] for n in nodes}
    for edge in edges:
        children[edge.source].append(edge.target)
        parents[edge.target].append(edge.source)
    return Graph(
        nodes=tuple(nodes),
        edges=tuple(edges),
        _node_map={n.id: n for n in nodes},
        _children={k: tuple(v) for k, v in children.items()},
        _parents={k: tuple(v) for k, v in parents.items()},
    )


_WHITE, _GREY, _BLACK = 0, 1, 2


def _check_acyclic(graph: Graph) -> None:
    """Iterative DFS with an on-stack (grey) marker; raises on the first back edge."""
    color = {node_id: _WHITE for node_id in graph.node_ids}

    roots = [n.id for n in graph.nodes if not graph.parent_ids(n.id)]
    # Nodes left white after walking from the roots can only sit on or behind a cycle
    for root in roots + list(graph.node_ids):
        if color[root] != _WHITE:
            continue
        path: list[str] = [root]
        stack: list[tuple[str, int]] = [(root, 0)]
        color[root] = _GREY
        while stack:
            node_id, idx = stack[-1]
            children = graph.child_ids(node_id)
            if idx < len(children):
                stack[-1] = (node_id, idx + 1)
                child = children[idx]
                if color[child] == _GREY:
                    cycle = path[path.index(child):] + [child]
                    raise ValidationError(
                        f"Graph contains a cycle: {' -> '.join(cycle)}",
                        details={"cycle": cycle},
                    )
                if color[child] == _WHITE:
                    color[child] = _GREY
                    path.append(child)
                    stack.append((child, 0))
            else:
                color[node_id] = _BLACK
                path.pop()
                stack.pop()
