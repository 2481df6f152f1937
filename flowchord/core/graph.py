"""Port-indexed workflow graph.

The diagram collaborator owns nodes and connectors; the engine only needs
port-aware queries over them. `WorkflowGraph` is the in-process
implementation of that handle.
"""

from __future__ import annotations

from typing import Any, Callable, Protocol, runtime_checkable

from flowchord.core.types import NodeCategory, WorkflowEdge, WorkflowNode
from flowchord.errors.exceptions import InvalidConfigError


@runtime_checkable
class DiagramHandle(Protocol):
    """Graph operations the engine consumes."""

    def get_node(self, node_id: str) -> WorkflowNode | None: ...

    def get_outgoing_edges(
        self, node_id: str, port_id: str | None = None
    ) -> list[WorkflowEdge]: ...

    def find_node(self, name: str) -> WorkflowNode | None: ...

    def add_node(self, node: WorkflowNode) -> None: ...

    def add_edge(self, edge: WorkflowEdge) -> None: ...

    def commit(self) -> None: ...


class WorkflowGraph:
    """Nodes plus edges with an index from (node id, port id) to edges.

    Edges keep insertion order, which is the order siblings execute in.

    Example:
        >>> graph = WorkflowGraph()
        >>> graph.add_node(WorkflowNode("t", NodeCategory.TRIGGER, "Manual Click"))
        >>> graph.add_node(WorkflowNode("a", NodeCategory.ACTION, "HTTP Request"))
        >>> graph.add_edge(WorkflowEdge("e1", "t", "a"))
        >>> [e.target for e in graph.get_outgoing_edges("t", "right-port")]
        ['a']
    """

    def __init__(self) -> None:
        self._nodes: dict[str, WorkflowNode] = {}
        self._edges: dict[str, WorkflowEdge] = {}
        self._by_source: dict[str, list[WorkflowEdge]] = {}
        self._by_port: dict[tuple[str, str], list[WorkflowEdge]] = {}
        self._commit_hooks: list[Callable[[WorkflowGraph], None]] = []
        self._revision = 0

    @property
    def nodes(self) -> list[WorkflowNode]:
        return list(self._nodes.values())

    @property
    def edges(self) -> list[WorkflowEdge]:
        return list(self._edges.values())

    @property
    def revision(self) -> int:
        """Number of commits so far."""
        return self._revision

    def add_node(self, node: WorkflowNode) -> None:
        if node.id in self._nodes:
            raise InvalidConfigError("node.id", node.id, "Node ids must be unique.")
        self._nodes[node.id] = node

    def add_edge(self, edge: WorkflowEdge) -> None:
        if edge.id in self._edges:
            raise InvalidConfigError("edge.id", edge.id, "Connector ids must be unique.")
        for endpoint in (edge.source, edge.target):
            if endpoint not in self._nodes:
                raise InvalidConfigError(
                    "edge", edge.id, f"Unknown node '{endpoint}'."
                )
        self._edges[edge.id] = edge
        self._by_source.setdefault(edge.source, []).append(edge)
        self._by_port.setdefault((edge.source, edge.port), []).append(edge)

    def get_node(self, node_id: str) -> WorkflowNode | None:
        return self._nodes.get(node_id)

    def get_outgoing_edges(
        self, node_id: str, port_id: str | None = None
    ) -> list[WorkflowEdge]:
        """Outgoing edges of a node, optionally only those leaving one port."""
        if port_id is None:
            return list(self._by_source.get(node_id, []))
        return list(self._by_port.get((node_id, port_id), []))

    def get_incoming_edges(self, node_id: str) -> list[WorkflowEdge]:
        return [edge for edge in self._edges.values() if edge.target == node_id]

    def find_node(self, name: str) -> WorkflowNode | None:
        """Find a node by id, then by display label."""
        if name in self._nodes:
            return self._nodes[name]
        for node in self._nodes.values():
            if node.label == name:
                return node
        return None

    def trigger_nodes(self) -> list[WorkflowNode]:
        return [n for n in self._nodes.values() if n.category == NodeCategory.TRIGGER]

    def on_commit(self, hook: Callable[[WorkflowGraph], None]) -> None:
        """Register a refresh hook run on every commit."""
        self._commit_hooks.append(hook)

    def commit(self) -> None:
        """Publish visual-state mutations to refresh hooks."""
        self._revision += 1
        for hook in self._commit_hooks:
            hook(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WorkflowGraph:
        """Build a graph from `{"nodes": [...], "connectors": [...]}`.

        `edges` is accepted as an alias for `connectors`.
        """
        graph = cls()
        for node_data in data.get("nodes", []):
            graph.add_node(WorkflowNode.from_dict(node_data))
        for edge_data in data.get("connectors", data.get("edges", [])):
            graph.add_edge(WorkflowEdge.from_dict(edge_data))
        return graph
