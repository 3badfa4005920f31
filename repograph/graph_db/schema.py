"""Knowledge graph schema: typed nodes, edges, metadata and their invariants."""

import logging
from dataclasses import dataclass, field, fields
from datetime import datetime
from enum import Enum
from typing import Any, Dict, Iterator, List, Optional

import blake3

from ..errors import GraphFormatError, GraphIntegrityError, IncompatibleGraphVersionError

logger = logging.getLogger(__name__)

GRAPH_VERSION = "1.0.0"


class NodeType(str, Enum):
    """Kind of declaration a node represents."""

    FILE = "file"
    FUNCTION = "function"
    CLASS = "class"
    INTERFACE = "interface"
    TYPE = "type"
    VARIABLE = "variable"
    ENUM = "enum"


class EdgeType(str, Enum):
    """Kind of relationship between two nodes."""

    IMPORTS = "imports"
    EXPORTS = "exports"
    CALLS = "calls"
    EXTENDS = "extends"
    IMPLEMENTS = "implements"
    USES = "uses"
    CONTAINS = "contains"


# Which node types may carry which optional fields
COMPLEXITY_NODE_TYPES = {NodeType.FILE, NodeType.FUNCTION}
FILE_ONLY_FIELDS = ("language", "line_count", "import_count", "export_count")
FUNCTION_ONLY_FIELDS = ("parameters", "is_async")
HERITAGE_FIELDS = ("extends", "implements")
HERITAGE_NODE_TYPES = {NodeType.CLASS, NodeType.INTERFACE}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def edge_id(edge_type: EdgeType, source: str, target: str) -> str:
    """Deterministic edge id for a (type, source, target) triple."""
    return blake3.blake3(f"{edge_type.value}:{source}->{target}".encode()).hexdigest()[:16]


@dataclass(frozen=True)
class GraphNode:
    """A file or a declared symbol.

    The ``type`` field gates the optional fields: only file and function nodes
    carry ``complexity`` (a file's is the sum of its functions), file-only and
    function-only fields are rejected on other kinds.
    """

    id: str
    type: NodeType
    name: str
    file_path: str
    line_start: int
    line_end: int
    exported: bool = False
    complexity: Optional[int] = None
    last_modified: Optional[str] = None
    modification_count: Optional[int] = None
    contributors: Optional[List[str]] = None
    documentation: Optional[str] = None
    # file nodes
    language: Optional[str] = None
    line_count: Optional[int] = None
    import_count: Optional[int] = None
    export_count: Optional[int] = None
    # function nodes
    parameters: Optional[List[str]] = None
    is_async: Optional[bool] = None
    # class and interface nodes
    extends: Optional[List[str]] = None
    implements: Optional[List[str]] = None

    def __post_init__(self):
        if not isinstance(self.type, NodeType):
            object.__setattr__(self, "type", NodeType(self.type))
        if self.line_start < 1 or self.line_end < self.line_start:
            raise GraphIntegrityError(
                f"Node {self.id} has invalid span {self.line_start}-{self.line_end}"
            )
        if self.complexity is not None:
            if self.type not in COMPLEXITY_NODE_TYPES:
                raise GraphIntegrityError(f"{self.type.value} node {self.id} cannot carry complexity")
            if self.complexity < 1:
                raise GraphIntegrityError(f"Node {self.id} has complexity {self.complexity} < 1")
        self._reject_fields(FILE_ONLY_FIELDS, self.type == NodeType.FILE)
        self._reject_fields(FUNCTION_ONLY_FIELDS, self.type == NodeType.FUNCTION)
        self._reject_fields(HERITAGE_FIELDS, self.type in HERITAGE_NODE_TYPES)

    def _reject_fields(self, names, allowed: bool) -> None:
        if allowed:
            return
        for name in names:
            if getattr(self, name) is not None:
                raise GraphIntegrityError(f"{self.type.value} node {self.id} cannot set {name}")

    @property
    def is_file(self) -> bool:
        return self.type == NodeType.FILE

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {}
        for f in fields(self):
            value = getattr(self, f.name)
            if value is None:
                continue
            if f.name == "type":
                value = value.value
            elif isinstance(value, list):
                value = list(value)
            data[_camel(f.name)] = value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphNode":
        kwargs = {}
        for f in fields(cls):
            key = _camel(f.name)
            if key in data:
                kwargs[f.name] = data[key]
        return cls(**kwargs)


@dataclass(frozen=True)
class GraphEdge:
    """A directed, typed relationship between two nodes."""

    id: str
    source: str
    target: str
    type: EdgeType
    weight: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        if not isinstance(self.type, EdgeType):
            object.__setattr__(self, "type", EdgeType(self.type))

    @classmethod
    def create(
        cls,
        edge_type: EdgeType,
        source: str,
        target: str,
        weight: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> "GraphEdge":
        return cls(
            id=edge_id(edge_type, source, target),
            source=source,
            target=target,
            type=edge_type,
            weight=weight,
            metadata=dict(metadata or {}),
        )

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "id": self.id,
            "source": self.source,
            "target": self.target,
            "type": self.type.value,
        }
        if self.weight is not None:
            data["weight"] = self.weight
        if self.metadata:
            data["metadata"] = self.metadata
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphEdge":
        return cls(
            id=data["id"],
            source=data["source"],
            target=data["target"],
            type=EdgeType(data["type"]),
            weight=data.get("weight"),
            metadata=dict(data.get("metadata") or {}),
        )


@dataclass(frozen=True)
class GraphMetadata:
    """Scan-level summary, also persisted on its own for fast status checks."""

    scanned_at: str  # ISO 8601, UTC
    scan_duration_ms: int
    root_dir: str
    file_count: int
    total_lines: int
    languages: Dict[str, int]
    node_count: int
    edge_count: int

    def scanned_at_timestamp(self) -> float:
        """POSIX timestamp of scanned_at."""
        return datetime.fromisoformat(self.scanned_at).timestamp()

    def to_dict(self) -> Dict[str, Any]:
        return {_camel(f.name): getattr(self, f.name) for f in fields(self)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "GraphMetadata":
        try:
            metadata = cls(
                scanned_at=str(data["scannedAt"]),
                scan_duration_ms=int(data["scanDurationMs"]),
                root_dir=str(data["rootDir"]),
                file_count=int(data["fileCount"]),
                total_lines=int(data["totalLines"]),
                languages={str(k): int(v) for k, v in dict(data["languages"]).items()},
                node_count=int(data["nodeCount"]),
                edge_count=int(data["edgeCount"]),
            )
            metadata.scanned_at_timestamp()
            return metadata
        except (KeyError, TypeError, ValueError) as e:
            raise GraphFormatError(f"Invalid graph metadata: {e}") from e


@dataclass
class KnowledgeGraph:
    """Aggregate root: every node and edge produced by one scan.

    Treated as read-only once built; analyses return derived views.
    """

    metadata: GraphMetadata
    nodes: Dict[str, GraphNode] = field(default_factory=dict)
    edges: List[GraphEdge] = field(default_factory=list)
    version: str = GRAPH_VERSION

    def get_node(self, node_id: str) -> Optional[GraphNode]:
        return self.nodes.get(node_id)

    def file_nodes(self) -> Iterator[GraphNode]:
        return (node for node in self.nodes.values() if node.type == NodeType.FILE)

    def nodes_in_file(self, file_path: str) -> List[GraphNode]:
        return [
            node
            for node in self.nodes.values()
            if node.file_path == file_path and node.type != NodeType.FILE
        ]

    def edges_of_type(self, edge_type: EdgeType) -> List[GraphEdge]:
        return [edge for edge in self.edges if edge.type == edge_type]

    def stats(self) -> Dict[str, Any]:
        """Counts by node/edge type plus average and max symbol complexity."""
        nodes_by_type = {t.value: 0 for t in NodeType}
        edges_by_type = {t.value: 0 for t in EdgeType}
        complexities = []

        for node in self.nodes.values():
            nodes_by_type[node.type.value] += 1
            if node.type != NodeType.FILE and node.complexity is not None:
                complexities.append(node.complexity)
        for edge in self.edges:
            edges_by_type[edge.type.value] += 1

        return {
            "totalNodes": len(self.nodes),
            "totalEdges": len(self.edges),
            "nodesByType": nodes_by_type,
            "edgesByType": edges_by_type,
            "avgComplexity": round(sum(complexities) / len(complexities), 2) if complexities else 0,
            "maxComplexity": max(complexities) if complexities else 0,
        }

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "metadata": self.metadata.to_dict(),
            "nodes": {node_id: node.to_dict() for node_id, node in self.nodes.items()},
            "edges": [edge.to_dict() for edge in self.edges],
        }

    @classmethod
    def from_dict(cls, data: Any) -> "KnowledgeGraph":
        """Deserialize and validate graph JSON read from disk.

        Raises:
            IncompatibleGraphVersionError: If the major version differs
            GraphFormatError: If the data is malformed or violates an invariant
        """
        if not isinstance(data, dict):
            raise GraphFormatError("Graph data must be a JSON object")

        version = data.get("version")
        if not isinstance(version, str):
            raise GraphFormatError("Graph data has no version")
        if version.split(".")[0] != GRAPH_VERSION.split(".")[0]:
            raise IncompatibleGraphVersionError(version, GRAPH_VERSION)

        try:
            metadata = GraphMetadata.from_dict(data["metadata"])
            nodes = {}
            for node_id, node_data in dict(data["nodes"]).items():
                node = GraphNode.from_dict(node_data)
                if node.id != node_id:
                    raise GraphFormatError(f"Node key {node_id} does not match id {node.id}")
                nodes[node_id] = node
            edges = [GraphEdge.from_dict(edge) for edge in list(data["edges"])]
            graph = cls(metadata=metadata, nodes=nodes, edges=edges, version=version)
            validate_graph(graph)
            return graph
        except GraphFormatError:
            raise
        except (KeyError, TypeError, ValueError, GraphIntegrityError) as e:
            raise GraphFormatError(f"Invalid graph data: {e}") from e


def find_integrity_problems(graph: KnowledgeGraph) -> List[str]:
    """List every violated node/edge invariant (empty when the graph is consistent)."""
    problems = []

    for node_id, node in graph.nodes.items():
        if node.id != node_id:
            problems.append(f"Node key {node_id} does not match id {node.id}")
        if node.type == NodeType.FILE:
            if node.file_path != node.id:
                problems.append(f"File node {node.id} has file_path {node.file_path}")
        else:
            owner = graph.nodes.get(node.file_path)
            if owner is None or owner.type != NodeType.FILE:
                problems.append(f"Node {node.id} references missing file {node.file_path}")

    seen_edge_ids = set()
    for edge in graph.edges:
        if edge.id in seen_edge_ids:
            problems.append(f"Duplicate edge id {edge.id}")
        seen_edge_ids.add(edge.id)

        source = graph.nodes.get(edge.source)
        target = graph.nodes.get(edge.target)
        if source is None or target is None:
            problems.append(f"Edge {edge.id} ({edge.type.value}) dangles: {edge.source} -> {edge.target}")
            continue
        if edge.type == EdgeType.CONTAINS:
            if source.type != NodeType.FILE:
                problems.append(f"Contains edge {edge.id} has non-file source {source.id}")
            elif target.type == NodeType.FILE or target.file_path != source.file_path:
                problems.append(f"Contains edge {edge.id} crosses files: {source.id} -> {target.id}")

    return problems


def validate_graph(graph: KnowledgeGraph) -> None:
    """Raise GraphIntegrityError if the graph violates any invariant."""
    problems = find_integrity_problems(graph)
    if problems:
        for problem in problems[:10]:
            logger.error(problem)
        raise GraphIntegrityError(f"{len(problems)} integrity problem(s): {problems[0]}")
