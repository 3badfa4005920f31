"""Convert one parsed file into graph nodes and the edges resolvable within it."""

import logging
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

from ..graph_db.schema import EdgeType, GraphEdge, GraphNode, NodeType
from .complexity import cyclomatic_complexity
from .models import Declaration, ImportStatement, ParsedFile

logger = logging.getLogger(__name__)

SELF_QUALIFIERS = ("self", "this", "cls")


@dataclass
class PendingReference:
    """A calls/extends/implements/uses reference left for cross-file resolution."""

    source_id: str
    edge_type: EdgeType
    name: str
    qualifier: Optional[str] = None


@dataclass
class FileExtraction:
    """Nodes, local edges and unresolved references owned by one file."""

    file_id: str
    language: str
    line_count: int
    nodes: List[GraphNode] = field(default_factory=list)
    edges: List[GraphEdge] = field(default_factory=list)
    imports: List[ImportStatement] = field(default_factory=list)
    references: List[PendingReference] = field(default_factory=list)
    # top-level declared name -> node id (first declaration wins)
    symbols: Dict[str, str] = field(default_factory=dict)
    default_symbol: Optional[str] = None

    @property
    def file_node(self) -> GraphNode:
        return self.nodes[0]


def symbol_id(file_path: str, kind: str, name: str) -> str:
    return f"{file_path}:{kind}:{name}"


def _assign_ids(parsed: ParsedFile) -> List[str]:
    """One collision-free id per declaration, suffixing repeats with #2, #3, ..."""
    seen: Counter = Counter()
    ids = []
    for decl in parsed.declarations:
        base = symbol_id(parsed.path, decl.kind, decl.name)
        seen[base] += 1
        ids.append(base if seen[base] == 1 else f"{base}#{seen[base]}")
    return ids


def _symbol_node(node_id: str, decl: Declaration, file_path: str) -> GraphNode:
    node_type = NodeType(decl.kind)
    is_function = node_type == NodeType.FUNCTION
    has_heritage = node_type in (NodeType.CLASS, NodeType.INTERFACE)
    return GraphNode(
        id=node_id,
        type=node_type,
        name=decl.name,
        file_path=file_path,
        line_start=decl.line_start,
        line_end=max(decl.line_end, decl.line_start),
        exported=decl.exported,
        complexity=cyclomatic_complexity(decl.decision_points or {}) if is_function else None,
        documentation=decl.documentation,
        parameters=list(decl.parameters) if is_function else None,
        is_async=decl.is_async if is_function else None,
        extends=list(decl.bases) if has_heritage and decl.bases else None,
        implements=list(decl.interfaces) if has_heritage and decl.interfaces else None,
    )


def extract_file(parsed: ParsedFile) -> FileExtraction:
    """Build the nodes and same-file edges for one parsed file.

    Args:
        parsed: Parser output for the file

    Returns:
        FileExtraction whose first node is the file node
    """
    file_id = parsed.path
    ids = _assign_ids(parsed)
    symbol_nodes = [_symbol_node(node_id, decl, file_id) for node_id, decl in zip(ids, parsed.declarations)]

    function_complexities = [n.complexity for n in symbol_nodes if n.complexity is not None]
    file_node = GraphNode(
        id=file_id,
        type=NodeType.FILE,
        name=file_id.rsplit("/", 1)[-1],
        file_path=file_id,
        line_start=1,
        line_end=max(parsed.line_count, 1),
        exported=False,
        complexity=sum(function_complexities) if function_complexities else None,
        language=parsed.language,
        line_count=parsed.line_count,
        import_count=sum(1 for stmt in parsed.imports if not stmt.is_reexport),
        export_count=sum(1 for n in symbol_nodes if n.exported),
    )

    extraction = FileExtraction(
        file_id=file_id,
        language=parsed.language,
        line_count=parsed.line_count,
        nodes=[file_node] + symbol_nodes,
        imports=list(parsed.imports),
    )

    # name -> id for lookups; methods are addressable as "Class.method"
    local_ids: Dict[str, str] = {}
    node_types: Dict[str, NodeType] = {}
    for node_id, decl, node in zip(ids, parsed.declarations, symbol_nodes):
        local_ids.setdefault(decl.name, node_id)
        node_types[node_id] = node.type
        if decl.parent is None:
            extraction.symbols.setdefault(decl.name, node_id)
            if parsed.default_export == decl.name and extraction.default_symbol is None:
                extraction.default_symbol = node_id

    for node in symbol_nodes:
        extraction.edges.append(GraphEdge.create(EdgeType.CONTAINS, file_id, node.id))

    # Only names an import could have bound are worth resolving across files
    bound_names = {binding.local for stmt in parsed.imports for binding in stmt.bindings}
    has_wildcard = any(stmt.wildcard for stmt in parsed.imports)

    def resolvable(name: str, qualifier: Optional[str]) -> bool:
        if has_wildcard:
            return True
        return (qualifier or name) in bound_names

    for node_id, decl in zip(ids, parsed.declarations):
        _extract_references(extraction, node_id, decl, local_ids, node_types, resolvable)

    logger.debug(
        f"Extracted {len(extraction.nodes)} nodes, {len(extraction.edges)} local edges, "
        f"{len(extraction.references)} pending references from {file_id}"
    )
    return extraction


def _extract_references(
    extraction: FileExtraction,
    source_id: str,
    decl: Declaration,
    local_ids: Dict[str, str],
    node_types: Dict[str, NodeType],
    resolvable: Callable[[str, Optional[str]], bool],
) -> None:
    local_edges: Dict[Tuple[EdgeType, str], int] = defaultdict(int)
    called_names = set()

    for call in decl.calls:
        called_names.add(call.name)
        target_id = None
        if call.qualifier in SELF_QUALIFIERS:
            if decl.parent:
                target_id = local_ids.get(f"{decl.parent}.{call.name}")
            if target_id is None:
                continue
        elif call.qualifier is None:
            target_id = local_ids.get(call.name)

        if target_id is None:
            if resolvable(call.name, call.qualifier):
                extraction.references.append(
                    PendingReference(source_id, EdgeType.CALLS, call.name, call.qualifier)
                )
            continue

        # Calling a class constructs it: that is a use, not a call
        edge_type = EdgeType.CALLS if node_types[target_id] == NodeType.FUNCTION else EdgeType.USES
        local_edges[(edge_type, target_id)] += 1

    for edge_type, names in ((EdgeType.EXTENDS, decl.bases), (EdgeType.IMPLEMENTS, decl.interfaces)):
        for name in names:
            qualifier, _, short_name = name.rpartition(".")
            target_id = local_ids.get(name) if not qualifier else None
            if target_id is not None and target_id != source_id:
                local_edges[(edge_type, target_id)] += 1
            elif resolvable(short_name, qualifier or None):
                extraction.references.append(
                    PendingReference(source_id, edge_type, short_name, qualifier or None)
                )

    for name in sorted(decl.references - called_names):
        target_id = local_ids.get(name)
        if target_id is not None:
            if target_id != source_id:
                local_edges[(EdgeType.USES, target_id)] += 1
        elif resolvable(name, None):
            extraction.references.append(PendingReference(source_id, EdgeType.USES, name))

    for (edge_type, target_id), count in sorted(local_edges.items(), key=lambda item: (item[0][0].value, item[0][1])):
        weight = float(count) if edge_type == EdgeType.CALLS else None
        extraction.edges.append(GraphEdge.create(edge_type, source_id, target_id, weight=weight))
