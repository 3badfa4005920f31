"""Graph assembly: scan a tree, merge per-file extractions, resolve cross-file edges."""

import logging
import posixpath
import time
from collections import Counter
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Set, Tuple, Union

from ..config import ProjectConfig, load_project_config
from ..errors import GraphIntegrityError, ScanError
from ..graph_db.schema import (
    EdgeType,
    GraphEdge,
    GraphMetadata,
    GraphNode,
    KnowledgeGraph,
    NodeType,
    validate_graph,
)
from .extractor import FileExtraction, extract_file
from .file_discovery import collect_source_files
from .git_history import GitHistoryProvider, SubprocessGitHistoryProvider, enrich_with_git_history
from .grammars import LanguageRegistry
from .models import ImportStatement, ParsedFile, ParseFailure
from .module_resolver import resolve_import, resolve_python_module
from .source_parser import SourceParser

logger = logging.getLogger(__name__)

# (phase, completed, total, current_item)
ProgressCallback = Callable[[str, int, int, Optional[str]], None]

PHASE_DISCOVERING = "discovering"
PHASE_PARSING = "parsing"
PHASE_RESOLVING = "resolving imports"
PHASE_GIT = "git history"
PHASE_COMPLETE = "complete"

NO_SOURCE_FILES_ERROR = "No source files found"
NOT_A_REPOSITORY_WARNING = "Not a git repository. Git history analysis skipped."

# Binding target: (file id, exported name) where "*" binds the whole module
Binding = Tuple[str, str]


@dataclass
class ScanResult:
    """A freshly built graph plus everything that went wrong along the way."""

    graph: KnowledgeGraph
    errors: List[Dict[str, str]] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)
    unresolved_imports: int = 0


@dataclass
class _EdgeAccumulator:
    edge_type: EdgeType
    source: str
    target: str
    weight: Optional[float] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def merge(self, weight: Optional[float], metadata: Optional[Dict[str, Any]]) -> None:
        if weight is not None:
            self.weight = weight if self.weight is None else self.weight + weight
        for key, value in (metadata or {}).items():
            if key not in self.metadata:
                self.metadata[key] = list(value) if isinstance(value, list) else value
            elif key == "symbols":
                self.metadata[key].extend(v for v in value if v not in self.metadata[key])
            elif key == "isTypeOnly":
                self.metadata[key] = self.metadata[key] and value
            elif isinstance(value, bool):
                self.metadata[key] = self.metadata[key] or value

    def to_edge(self) -> GraphEdge:
        return GraphEdge.create(self.edge_type, self.source, self.target, self.weight, self.metadata)


def _report(on_progress: Optional[ProgressCallback], phase: str, completed: int, total: int, item: Optional[str] = None) -> None:
    if on_progress is None:
        return
    try:
        on_progress(phase, completed, total, item)
    except Exception as e:
        # Progress reporting is observational only
        logger.debug(f"Progress callback failed: {e}")


def _python_module_name(path: str) -> str:
    if posixpath.basename(path) == "__init__.py":
        return posixpath.basename(posixpath.dirname(path))
    return posixpath.splitext(posixpath.basename(path))[0]


class GraphAssembler:
    """Merges per-file extractions into one consistent node/edge set."""

    def __init__(self, extractions: List[FileExtraction], registry: LanguageRegistry):
        self.extractions = sorted(extractions, key=lambda e: e.file_id)
        self.by_file: Dict[str, FileExtraction] = {e.file_id: e for e in self.extractions}
        self.registry = registry
        self._edges: Dict[Tuple[EdgeType, str, str], _EdgeAccumulator] = {}
        self._reexports: Dict[str, List[Tuple[ImportStatement, str]]] = {}
        self.unresolved_imports = 0

    def _add_edge(
        self,
        edge_type: EdgeType,
        source: str,
        target: str,
        weight: Optional[float] = None,
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        key = (edge_type, source, target)
        accumulator = self._edges.get(key)
        if accumulator is None:
            self._edges[key] = _EdgeAccumulator(
                edge_type, source, target, weight, {} if metadata is None else {}
            )
            self._edges[key].merge(None, metadata)
        else:
            accumulator.merge(weight, metadata)

    def assemble(self, on_progress: Optional[ProgressCallback] = None) -> Tuple[Dict[str, GraphNode], List[GraphEdge]]:
        """Merge nodes, resolve imports and cross-file references.

        Returns:
            Nodes keyed by id (file order) and edges sorted by (type, source, target)

        Raises:
            GraphIntegrityError: If two files produced the same node id
        """
        nodes: Dict[str, GraphNode] = {}
        for extraction in self.extractions:
            for node in extraction.nodes:
                if node.id in nodes:
                    raise GraphIntegrityError(f"Duplicate node id {node.id}")
                nodes[node.id] = node
            for edge in extraction.edges:
                self._add_edge(edge.type, edge.source, edge.target, edge.weight, edge.metadata)

        known_files = set(self.by_file)
        total = len(self.extractions)

        # Imports first, so re-export chains are known before references resolve
        bindings_by_file: Dict[str, Dict[str, Binding]] = {}
        wildcards_by_file: Dict[str, List[str]] = {}
        for index, extraction in enumerate(self.extractions, start=1):
            bindings, wildcards = self._resolve_imports(extraction, known_files)
            bindings_by_file[extraction.file_id] = bindings
            wildcards_by_file[extraction.file_id] = wildcards
            _report(on_progress, PHASE_RESOLVING, index, total, extraction.file_id)

        for extraction in self.extractions:
            self._resolve_references(
                extraction,
                bindings_by_file[extraction.file_id],
                wildcards_by_file[extraction.file_id],
                nodes,
            )

        ordered = sorted(self._edges.items(), key=lambda item: (item[0][0].value, item[0][1], item[0][2]))
        edges = [accumulator.to_edge() for _, accumulator in ordered]
        logger.info(
            f"Assembled {len(nodes)} nodes and {len(edges)} edges "
            f"({self.unresolved_imports} external or unresolved imports dropped)"
        )
        return nodes, edges

    def _resolve_imports(
        self, extraction: FileExtraction, known_files: Set[str]
    ) -> Tuple[Dict[str, Binding], List[str]]:
        lang_config = self.registry.get_language_config(extraction.language)
        module_system = lang_config.module_system if lang_config else ""
        file_id = extraction.file_id

        bindings: Dict[str, Binding] = {}
        wildcards: List[str] = []

        for statement in extraction.imports:
            targets = resolve_import(file_id, statement, module_system, known_files)
            if not targets:
                self.unresolved_imports += 1
                logger.debug(f"Unresolved import '{statement.specifier}' in {file_id}")
                continue

            module_target = targets[0]
            submodules: Dict[str, str] = {}
            if module_system == "python":
                module_only = resolve_python_module(file_id, statement.specifier, [], known_files)
                module_target = module_only[0] if module_only else None
                submodules = {_python_module_name(t): t for t in targets if t != module_target}

            imported = [binding.imported for binding in statement.bindings]
            if module_target is not None:
                self._add_edge(
                    EdgeType.IMPORTS,
                    file_id,
                    module_target,
                    metadata={
                        "symbols": [name for name in imported if name not in submodules] or (["*"] if statement.wildcard else []),
                        "isTypeOnly": statement.type_only,
                        "isDefault": "default" in imported,
                        "isNamespace": "*" in imported,
                    },
                )
            for name, submodule in submodules.items():
                self._add_edge(
                    EdgeType.IMPORTS,
                    file_id,
                    submodule,
                    metadata={"symbols": [name], "isTypeOnly": False, "isDefault": False, "isNamespace": True},
                )

            if statement.is_reexport and module_target is not None:
                self._reexports.setdefault(file_id, []).append((statement, module_target))
                self._add_reexport_edges(file_id, statement, module_target)

            if statement.wildcard and module_target is not None:
                wildcards.append(module_target)

            for binding in statement.bindings:
                if binding.imported in submodules:
                    bindings[binding.local] = (submodules[binding.imported], "*")
                elif module_target is not None:
                    bindings[binding.local] = (module_target, binding.imported)

        return bindings, wildcards

    def _add_reexport_edges(self, file_id: str, statement: ImportStatement, target_file: str) -> None:
        target = self.by_file[target_file]
        for name in statement.reexported:
            if name == "*":
                target_id = target_file
            elif name == "default":
                target_id = target.default_symbol or target_file
            else:
                target_id = target.symbols.get(name, target_file)
            self._add_edge(
                EdgeType.EXPORTS,
                file_id,
                target_id,
                metadata={"symbols": [name], "reExport": True},
            )

    def _lookup_export(self, file_id: str, name: str, seen: Optional[Set[str]] = None) -> Optional[str]:
        """Find the node a module exposes under a name, following re-export chains."""
        seen = seen if seen is not None else set()
        if file_id in seen:
            return None
        seen.add(file_id)

        extraction = self.by_file.get(file_id)
        if extraction is None:
            return None
        if name == "default":
            if extraction.default_symbol is not None:
                return extraction.default_symbol
        elif name in extraction.symbols:
            return extraction.symbols[name]

        for statement, target_file in self._reexports.get(file_id, []):
            if name in statement.reexported or ("*" in statement.reexported and name != "default"):
                found = self._lookup_export(target_file, name, seen)
                if found is not None:
                    return found
        return None

    def _resolve_references(
        self,
        extraction: FileExtraction,
        bindings: Dict[str, Binding],
        wildcards: List[str],
        nodes: Dict[str, GraphNode],
    ) -> None:
        for ref in extraction.references:
            target_id = None
            if ref.qualifier is None:
                binding = bindings.get(ref.name)
                if binding is not None:
                    if binding[1] != "*":
                        target_id = self._lookup_export(binding[0], binding[1])
                else:
                    for wildcard_file in wildcards:
                        target_id = self._lookup_export(wildcard_file, ref.name)
                        if target_id is not None:
                            break
            else:
                binding = bindings.get(ref.qualifier)
                if binding is not None and binding[1] == "*":
                    # ns.fn() against `import * as ns` / `import pkg.mod as ns`
                    target_id = self._lookup_export(binding[0], ref.name)

            if target_id is None or target_id == ref.source_id:
                continue
            target = nodes.get(target_id)
            if target is None or target.type == NodeType.FILE:
                continue

            edge_type = ref.edge_type
            if edge_type == EdgeType.CALLS and target.type != NodeType.FUNCTION:
                edge_type = EdgeType.USES
            weight = 1.0 if edge_type == EdgeType.CALLS else None
            self._add_edge(edge_type, ref.source_id, target_id, weight=weight)


def _parse_files(
    files: List[Path],
    root: Path,
    parser: SourceParser,
    max_workers: int,
    on_progress: Optional[ProgressCallback],
) -> List[Union[ParsedFile, ParseFailure]]:
    """Parse files on a bounded pool; results come back in input order."""
    total = len(files)
    results: List[Union[ParsedFile, ParseFailure]] = []

    if max_workers <= 1:
        for index, file_path in enumerate(files, start=1):
            results.append(parser.parse_file(file_path, root))
            _report(on_progress, PHASE_PARSING, index, total, results[-1].path)
        return results

    with ThreadPoolExecutor(max_workers=max_workers) as executor:
        futures = [executor.submit(parser.parse_file, file_path, root) for file_path in files]
        for index, future in enumerate(futures, start=1):
            results.append(future.result())
            _report(on_progress, PHASE_PARSING, index, total, results[-1].path)
    return results


def build_knowledge_graph(
    root_dir: Union[str, Path],
    include_git_history: bool = True,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[ProjectConfig] = None,
    git_provider: Optional[GitHistoryProvider] = None,
    parser: Optional[SourceParser] = None,
) -> ScanResult:
    """Scan a directory tree and build its knowledge graph.

    Args:
        root_dir: Project root to scan
        include_git_history: Attach churn and contributors from git
        on_progress: Optional callback (phase, completed, total, current_item)
        config: Project configuration (loaded from the root when omitted)
        git_provider: History source (git subprocess when omitted)
        parser: Source parser to reuse across scans

    Returns:
        ScanResult with the graph, per-file errors and warnings

    Raises:
        ScanError: If the root is missing or the tree cannot be walked
    """
    started = time.monotonic()
    # Files modified after this instant must make the graph stale
    scanned_at = datetime.now(timezone.utc)
    root = Path(root_dir).resolve()
    if not root.is_dir():
        raise ScanError(f"Root directory does not exist: {root}")

    config = config or load_project_config(root)
    parser = parser or SourceParser(max_file_size=config.scan.max_file_size_bytes)

    logger.info(f"Scanning {root}")
    _report(on_progress, PHASE_DISCOVERING, 0, 0, str(root))
    try:
        files = collect_source_files(
            root,
            parser.registry,
            config.scan.exclude_patterns,
            config.scan.follow_gitignore,
        )
    except OSError as e:
        raise ScanError(f"Failed to walk {root}: {e}") from e
    _report(on_progress, PHASE_DISCOVERING, len(files), len(files), None)

    errors: List[Dict[str, str]] = []
    warnings: List[str] = []

    if not files:
        logger.warning(f"No source files found under {root}")
        errors.append({"file": str(root), "error": NO_SOURCE_FILES_ERROR})
        graph = KnowledgeGraph(
            metadata=GraphMetadata(
                scanned_at=scanned_at.isoformat(),
                scan_duration_ms=int((time.monotonic() - started) * 1000),
                root_dir=str(root),
                file_count=0,
                total_lines=0,
                languages={},
                node_count=0,
                edge_count=0,
            )
        )
        _report(on_progress, PHASE_COMPLETE, 0, 0, None)
        return ScanResult(graph=graph, errors=errors, warnings=warnings)

    results = _parse_files(files, root, parser, config.scan.max_workers, on_progress)

    extractions: List[FileExtraction] = []
    total_lines = 0
    for result in results:
        total_lines += result.line_count
        if isinstance(result, ParseFailure):
            logger.warning(f"Skipping {result.path}: {result.error}")
            errors.append({"file": result.path, "error": result.error})
            continue
        extractions.append(extract_file(result))

    assembler = GraphAssembler(extractions, parser.registry)
    nodes, edges = assembler.assemble(on_progress)

    if include_git_history:
        provider = git_provider or SubprocessGitHistoryProvider(root)
        _report(on_progress, PHASE_GIT, 0, len(extractions), None)
        if provider.is_available():
            nodes = enrich_with_git_history(
                nodes,
                provider,
                max_commits=config.git.max_commits_per_file,
                batch_size=config.git.batch_size,
            )
        else:
            logger.info(NOT_A_REPOSITORY_WARNING)
            warnings.append(NOT_A_REPOSITORY_WARNING)
        _report(on_progress, PHASE_GIT, len(extractions), len(extractions), None)

    languages = Counter(extraction.language for extraction in extractions)
    metadata = GraphMetadata(
        scanned_at=scanned_at.isoformat(),
        scan_duration_ms=int((time.monotonic() - started) * 1000),
        root_dir=str(root),
        file_count=len(extractions),
        total_lines=total_lines,
        languages=dict(sorted(languages.items())),
        node_count=len(nodes),
        edge_count=len(edges),
    )
    graph = KnowledgeGraph(metadata=metadata, nodes=nodes, edges=edges)
    validate_graph(graph)

    logger.info(
        f"Scan complete: {metadata.file_count} files, {metadata.node_count} nodes, "
        f"{metadata.edge_count} edges, {len(errors)} errors in {metadata.scan_duration_ms}ms"
    )
    _report(on_progress, PHASE_COMPLETE, len(extractions), len(extractions), None)
    return ScanResult(
        graph=graph,
        errors=errors,
        warnings=warnings,
        unresolved_imports=assembler.unresolved_imports,
    )


def scan(
    root_dir: Union[str, Path],
    include_git_history: bool = True,
    on_progress: Optional[ProgressCallback] = None,
    config: Optional[ProjectConfig] = None,
    git_provider: Optional[GitHistoryProvider] = None,
) -> ScanResult:
    """Build the knowledge graph for a project root (does not persist it)."""
    return build_knowledge_graph(
        root_dir,
        include_git_history=include_git_history,
        on_progress=on_progress,
        config=config,
        git_provider=git_provider,
    )
