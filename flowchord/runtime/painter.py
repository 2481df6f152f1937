"""Node and connector status painting."""

from __future__ import annotations

from datetime import datetime

from flowchord.core.graph import DiagramHandle
from flowchord.core.types import NodeStatus
from flowchord.runtime.ui import ExecutionUI

_TERMINAL = (NodeStatus.SUCCESS, NodeStatus.ERROR)


class StatusPainter:
    """Applies a node status to the graph and the UI.

    On success/error the node's outgoing connectors are painted too:

    - `restrict_to_port` paints only that port's connectors and clears the
      node's other connectors first, unless `append` is set.
    - `append` adds the status without clearing earlier highlights.
    """

    def __init__(self, ui: ExecutionUI, diagram: DiagramHandle) -> None:
        self.ui = ui
        self.diagram = diagram

    def update_node_status(
        self,
        node_id: str,
        status: NodeStatus,
        *,
        restrict_to_port: str | None = None,
        append: bool = False,
        paint_connectors: bool = True,
    ) -> None:
        node = self.diagram.get_node(node_id)
        if node is None:
            return

        node.status = status
        if status == NodeStatus.RUNNING:
            node.started_at = datetime.now()
            node.completed_at = None
        elif status in _TERMINAL:
            node.completed_at = datetime.now()
        self.ui.set_node_status(node_id, status)

        if status in _TERMINAL and paint_connectors:
            outgoing = self.diagram.get_outgoing_edges(node_id)
            if restrict_to_port is not None and not append:
                for edge in outgoing:
                    self.ui.set_connector_status(edge.id, None)
            for edge in outgoing:
                if restrict_to_port is not None and edge.port != restrict_to_port:
                    continue
                self.ui.set_connector_status(edge.id, status, append=append)

        self.diagram.commit()

    def paint_port(self, node_id: str, port: str, status: NodeStatus) -> None:
        """Additively mark one port's connectors, leaving the node as is."""
        for edge in self.diagram.get_outgoing_edges(node_id, port):
            self.ui.set_connector_status(edge.id, status, append=True)
        self.diagram.commit()

    def reset(self, node_ids: list[str]) -> None:
        """Return nodes to idle and strip status from their connectors.

        Only executed nodes paint connectors, so clearing the connectors of
        `node_ids` clears every painted connector of the run.
        """
        for node_id in dict.fromkeys(node_ids):
            node = self.diagram.get_node(node_id)
            if node is None:
                continue
            node.status = NodeStatus.IDLE
            self.ui.set_node_status(node_id, NodeStatus.IDLE)
            for edge in self.diagram.get_outgoing_edges(node_id):
                self.ui.set_connector_status(edge.id, None)
        self.diagram.commit()
