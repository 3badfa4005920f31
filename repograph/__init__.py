"""Knowledge graph builder and query engine for source trees."""

from .errors import (
    ConfigError,
    GraphFormatError,
    GraphIntegrityError,
    IncompatibleGraphVersionError,
    RepographError,
    ScanError,
)
from .graph_db.json_store import (
    GraphStore,
    delete_graph,
    graph_exists,
    is_graph_stale,
    load_graph,
    load_metadata,
    save_graph,
)
from .graph_db.schema import EdgeType, GraphEdge, GraphMetadata, GraphNode, KnowledgeGraph, NodeType
from .indexer.assembler import ScanResult, scan

__version__ = "0.1.0"

__all__ = [
    "ConfigError",
    "EdgeType",
    "GraphEdge",
    "GraphFormatError",
    "GraphIntegrityError",
    "GraphMetadata",
    "GraphNode",
    "GraphStore",
    "IncompatibleGraphVersionError",
    "KnowledgeGraph",
    "NodeType",
    "RepographError",
    "ScanError",
    "ScanResult",
    "delete_graph",
    "graph_exists",
    "is_graph_stale",
    "load_graph",
    "load_metadata",
    "save_graph",
    "scan",
]
