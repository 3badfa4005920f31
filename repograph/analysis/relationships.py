"""File-level import relationships and pairwise coupling."""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Set

from ..graph_db.schema import EdgeType, KnowledgeGraph, NodeType


@dataclass
class FileRelationships:
    file_path: str
    imports: List[Dict[str, Any]] = field(default_factory=list)
    imported_by: List[Dict[str, Any]] = field(default_factory=list)
    symbols: List[Dict[str, Any]] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filePath": self.file_path,
            "imports": list(self.imports),
            "importedBy": list(self.imported_by),
            "symbols": list(self.symbols),
        }


def _dependencies(graph: KnowledgeGraph) -> Dict[str, Set[str]]:
    deps: Dict[str, Set[str]] = {}
    for edge in graph.edges_of_type(EdgeType.IMPORTS):
        deps.setdefault(edge.source, set()).add(edge.target)
    return deps


def _importers(graph: KnowledgeGraph) -> Dict[str, Set[str]]:
    importers: Dict[str, Set[str]] = {}
    for edge in graph.edges_of_type(EdgeType.IMPORTS):
        importers.setdefault(edge.target, set()).add(edge.source)
    return importers


def _is_file(graph: KnowledgeGraph, file_path: str) -> bool:
    node = graph.get_node(file_path)
    return node is not None and node.type == NodeType.FILE


def import_coupling_score(graph: KnowledgeGraph, file_a: str, file_b: str) -> Optional[float]:
    """Score 0..1 for how entangled two files are through imports.

    Each import direction adds 0.3; shared dependencies and shared importers
    add 0.05 apiece, each capped at 0.2.

    Returns:
        The score rounded to 2 places, or None if either file is not in the graph
    """
    if not _is_file(graph, file_a) or not _is_file(graph, file_b):
        return None

    deps = _dependencies(graph)
    importers = _importers(graph)
    deps_a, deps_b = deps.get(file_a, set()), deps.get(file_b, set())
    importers_a, importers_b = importers.get(file_a, set()), importers.get(file_b, set())

    score = 0.0
    if file_b in deps_a:
        score += 0.3
    if file_a in deps_b:
        score += 0.3
    score += min(0.2, len(deps_a & deps_b) * 0.05)
    score += min(0.2, len(importers_a & importers_b) * 0.05)
    return round(min(1.0, score), 2)


def file_relationships(graph: KnowledgeGraph, file_path: str) -> Optional[FileRelationships]:
    """What a file imports, who imports it and what it declares.

    Returns:
        FileRelationships, or None when the file is not in the graph
    """
    if not _is_file(graph, file_path):
        return None

    result = FileRelationships(file_path=file_path)
    for edge in graph.edges_of_type(EdgeType.IMPORTS):
        if edge.source == file_path:
            result.imports.append(
                {
                    "source": edge.target,
                    "symbols": list(edge.metadata.get("symbols", [])),
                    "isDefault": bool(edge.metadata.get("isDefault", False)),
                    "isTypeOnly": bool(edge.metadata.get("isTypeOnly", False)),
                }
            )
        elif edge.target == file_path:
            result.imported_by.append(
                {
                    "filePath": edge.source,
                    "symbols": list(edge.metadata.get("symbols", [])),
                }
            )

    for node in graph.nodes_in_file(file_path):
        symbol = {
            "id": node.id,
            "name": node.name,
            "type": node.type.value,
            "exported": node.exported,
            "lineStart": node.line_start,
            "lineEnd": node.line_end,
        }
        if node.complexity is not None:
            symbol["complexity"] = node.complexity
        result.symbols.append(symbol)

    return result
