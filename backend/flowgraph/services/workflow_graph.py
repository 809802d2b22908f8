"""
In-memory graph operations over a workflow's node list and connection map.

Connections are stored the way n8n stores them:
``{sourceRef: {channel: [[{node, type, index}, ...], ...]}}`` where the outer
list is indexed by output slot. References may be node ids or node names;
resolution tries ids first, then names (first match wins).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Tuple

from loguru import logger

from flowgraph.schemas.workflow import (
    DEFAULT_CHANNEL,
    ConnectionTarget,
    Node,
    Workflow,
)
from flowgraph.utils.exceptions import NotFoundError


@dataclass(frozen=True)
class ConnectionRef:
    """One flattened edge of the connection map."""
    source: str
    target: str
    channel: str = DEFAULT_CHANNEL
    output_index: int = 0
    input_channel: str = DEFAULT_CHANNEL
    input_index: int = 0


@dataclass
class ConnectionSpec:
    """Requested edge, with endpoints given as node id or name."""
    source: str
    target: str
    output_index: int = 0
    input_index: int = 0
    channel: str = DEFAULT_CHANNEL
    input_channel: str = DEFAULT_CHANNEL

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ConnectionSpec":
        return cls(
            source=str(data.get("source") or data.get("from") or ""),
            target=str(data.get("target") or data.get("to") or ""),
            output_index=int(data.get("output_index", data.get("sourceOutput", 0)) or 0),
            input_index=int(data.get("input_index", data.get("targetInput", 0)) or 0),
            channel=str(data.get("channel") or DEFAULT_CHANNEL),
            input_channel=str(data.get("input_channel") or DEFAULT_CHANNEL),
        )


@dataclass
class ConnectionChange:
    success: bool
    status: str
    message: str
    connection: Optional[Dict[str, Any]] = None
    warnings: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"success": self.success, "status": self.status, "message": self.message}
        if self.connection is not None:
            data["connection"] = self.connection
        if self.warnings:
            data["warnings"] = self.warnings
        return data


class WorkflowGraph:
    """Accessors and edits over a :class:`Workflow`. Edits mutate the wrapped model."""

    def __init__(self, workflow: Workflow):
        self.workflow = workflow

    @property
    def nodes(self) -> List[Node]:
        return self.workflow.nodes

    @property
    def connections(self):
        return self.workflow.connections

    # ------------------------------------------------------------------
    # Resolution
    # ------------------------------------------------------------------

    def find_node(self, ref: Optional[str]) -> Optional[Node]:
        """Resolve a node by id, falling back to the first node with that name."""
        if ref is None:
            return None
        for node in self.nodes:
            if node.id == ref:
                return node
        for node in self.nodes:
            if node.name == ref:
                return node
        return None

    def require_node(self, ref: str) -> Node:
        node = self.find_node(ref)
        if node is None:
            raise NotFoundError("Node", ref, detail=f"workflow={self.workflow.id or self.workflow.name}")
        return node

    def canonical_id(self, ref: str) -> Optional[str]:
        node = self.find_node(ref)
        return node.id if node else None

    def uses_name_references(self) -> bool:
        """True when existing connection keys refer to nodes by name (the n8n editor convention)."""
        ids = {n.id for n in self.nodes}
        names = {n.name for n in self.nodes}
        return any(key in names and key not in ids for key in self.connections)

    def reference_for(self, node: Node) -> str:
        return node.name if self.uses_name_references() else node.id

    # ------------------------------------------------------------------
    # Reading
    # ------------------------------------------------------------------

    def list_connections(self) -> List[ConnectionRef]:
        edges: List[ConnectionRef] = []
        for source, channels in self.connections.items():
            for channel, slots in channels.items():
                for output_index, slot in enumerate(slots):
                    for target in slot:
                        edges.append(
                            ConnectionRef(
                                source=source,
                                target=target.node,
                                channel=channel,
                                output_index=output_index,
                                input_channel=target.type,
                                input_index=target.index,
                            )
                        )
        return edges

    def describe_connection(self, edge: ConnectionRef) -> Dict[str, Any]:
        source = self.find_node(edge.source)
        target = self.find_node(edge.target)
        return {
            "from": {
                "id": source.id if source else edge.source,
                "name": source.name if source else None,
                "output": edge.channel,
                "index": edge.output_index,
            },
            "to": {
                "id": target.id if target else edge.target,
                "name": target.name if target else None,
                "input": edge.input_channel,
                "index": edge.input_index,
            },
        }

    def build_adjacency(self) -> Dict[str, Dict[str, Any]]:
        """
        Build an adjacency view keyed by node id.

        Returns:
            Dict mapping node id to:
            - node: The Node object
            - outgoing: List of target node ids
            - incoming: List of source node ids
        """
        graph: Dict[str, Dict[str, Any]] = {
            node.id: {"node": node, "outgoing": [], "incoming": []} for node in self.nodes
        }
        for edge in self.list_connections():
            source_id = self.canonical_id(edge.source)
            target_id = self.canonical_id(edge.target)
            if source_id is None or target_id is None:
                continue
            if target_id not in graph[source_id]["outgoing"]:
                graph[source_id]["outgoing"].append(target_id)
            if source_id not in graph[target_id]["incoming"]:
                graph[target_id]["incoming"].append(source_id)
        return graph

    def dangling_connections(self) -> List[ConnectionRef]:
        return [
            edge for edge in self.list_connections()
            if self.find_node(edge.source) is None or self.find_node(edge.target) is None
        ]

    def referenced_refs(self) -> set:
        """Every reference that appears as a source key or as a connection target."""
        refs = set(self.connections.keys())
        refs.update(edge.target for edge in self.list_connections())
        return refs

    # ------------------------------------------------------------------
    # Editing
    # ------------------------------------------------------------------

    def _source_keys_for(self, node: Node) -> List[str]:
        return [key for key in self.connections if self.canonical_id(key) == node.id]

    def _matches(self, target: ConnectionTarget, node: Node, input_channel: str, input_index: int) -> bool:
        return (
            self.canonical_id(target.node) == node.id
            and target.type == input_channel
            and target.index == input_index
        )

    def add_connection(self, spec: ConnectionSpec) -> ConnectionChange:
        """Add an edge. Adding an edge that already exists is reported, not duplicated."""
        source = self.require_node(spec.source)
        target = self.require_node(spec.target)
        if spec.output_index < 0 or spec.input_index < 0:
            return ConnectionChange(False, "invalid", "Output and input indices must be non-negative")

        description = {
            "from": {"id": source.id, "name": source.name, "output": spec.channel, "index": spec.output_index},
            "to": {"id": target.id, "name": target.name, "input": spec.input_channel, "index": spec.input_index},
        }

        for key in self._source_keys_for(source):
            slots = self.connections[key].get(spec.channel, [])
            if spec.output_index < len(slots) and any(
                self._matches(t, target, spec.input_channel, spec.input_index) for t in slots[spec.output_index]
            ):
                return ConnectionChange(
                    False,
                    "already_exists",
                    f"Connection from '{source.name}' to '{target.name}' already exists",
                    description,
                )

        existing_keys = self._source_keys_for(source)
        key = existing_keys[0] if existing_keys else self.reference_for(source)
        target_ref = target.id if key == source.id else target.name

        channels = self.connections.setdefault(key, {})
        slots = channels.setdefault(spec.channel, [])
        while len(slots) <= spec.output_index:
            slots.append([])
        slots[spec.output_index].append(
            ConnectionTarget(node=target_ref, type=spec.input_channel, index=spec.input_index)
        )
        logger.debug(f"Added connection {source.name} -> {target.name} ({spec.channel}[{spec.output_index}])")
        return ConnectionChange(True, "added", f"Connected '{source.name}' to '{target.name}'", description)

    def remove_connection(self, spec: ConnectionSpec) -> ConnectionChange:
        """Remove an edge and prune containers it leaves empty."""
        source = self.require_node(spec.source)
        target = self.require_node(spec.target)

        removed = 0
        for key in self._source_keys_for(source):
            slots = self.connections[key].get(spec.channel)
            if not slots or spec.output_index >= len(slots):
                continue
            before = len(slots[spec.output_index])
            slots[spec.output_index] = [
                t for t in slots[spec.output_index]
                if not self._matches(t, target, spec.input_channel, spec.input_index)
            ]
            removed += before - len(slots[spec.output_index])

        if not removed:
            return ConnectionChange(
                False, "not_found", f"No connection from '{source.name}' to '{target.name}' on that slot"
            )

        self.prune()
        return ConnectionChange(True, "removed", f"Disconnected '{source.name}' from '{target.name}'")

    def prune(self) -> None:
        """
        Drop trailing empty output slots, empty channels and empty source entries.

        Interior empty slots stay so later output indices keep their position.
        """
        for key in list(self.connections.keys()):
            channels = self.connections[key]
            for channel in list(channels.keys()):
                slots = channels[channel]
                while slots and not slots[-1]:
                    slots.pop()
                if not slots:
                    del channels[channel]
            if not channels:
                del self.connections[key]

    def replace_connections(self, specs: Iterable[ConnectionSpec]) -> ConnectionChange:
        """Replace the whole connection map. Edges naming unknown nodes are skipped with a warning."""
        self.workflow.connections = {}
        warnings: List[str] = []
        added = 0
        for spec in specs:
            if self.find_node(spec.source) is None or self.find_node(spec.target) is None:
                warnings.append(f"Skipped connection {spec.source} -> {spec.target}: node not found")
                continue
            if self.add_connection(spec).success:
                added += 1
        if warnings:
            logger.warning(f"replace_connections skipped {len(warnings)} edge(s)")
        return ConnectionChange(True, "replaced", f"Replaced connections with {added} edge(s)", warnings=warnings)

    def rename_node(self, ref: str, new_name: str) -> Tuple[str, str]:
        """Rename a node and rewrite connection references that used its old name."""
        node = self.require_node(ref)
        old_name = node.name
        if old_name == new_name:
            return old_name, new_name

        if old_name in self.connections and old_name != node.id:
            self.connections[new_name] = self.connections.pop(old_name)
        for channels in self.connections.values():
            for slots in channels.values():
                for slot in slots:
                    for target in slot:
                        if target.node == old_name and old_name != node.id:
                            target.node = new_name
        node.name = new_name
        return old_name, new_name

    def remove_node(self, ref: str) -> Node:
        """Delete a node and every edge touching it."""
        node = self.require_node(ref)
        for key in self._source_keys_for(node):
            del self.connections[key]
        for channels in self.connections.values():
            for slots in channels.values():
                for i, slot in enumerate(slots):
                    slots[i] = [t for t in slot if self.canonical_id(t.node) != node.id]
        self.workflow.nodes = [n for n in self.nodes if n.id != node.id]
        self.prune()
        return node
