"""JSON persistence of the knowledge graph under <root>/.repograph/."""

import json
import logging
import os
import shutil
import tempfile
from pathlib import Path
from typing import Any, Dict, Optional, Union

from ..config import ProjectConfig, load_project_config
from ..errors import GraphFormatError, ScanError
from ..indexer.file_discovery import STATE_DIR_NAME, collect_source_files
from ..indexer.git_history import SubprocessGitHistoryProvider
from .history import HistoryStore, create_snapshot
from .schema import GraphMetadata, KnowledgeGraph

logger = logging.getLogger(__name__)

GRAPH_FILE_NAME = "graph.json"
METADATA_FILE_NAME = "metadata.json"
GITIGNORE_COMMENT = "# repograph knowledge graph cache"

EXPORT_FORMATS = ("json", "summary")


def _write_json_atomic(path: Path, data: Any) -> None:
    """Write JSON to a temp file in the same directory, then swap it into place."""
    fd, tmp_name = tempfile.mkstemp(dir=path.parent, prefix=f".{path.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(data, f, indent=2)
        os.replace(tmp_name, path)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise


def _read_json(path: Path) -> Any:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except json.JSONDecodeError as e:
        raise GraphFormatError(f"Corrupt JSON in {path}: {e}") from e


class GraphStore:
    """Reads and writes one project's graph, metadata and health history."""

    def __init__(self, root_dir: Union[str, Path], config: Optional[ProjectConfig] = None):
        """Initialize the store.

        Args:
            root_dir: Project root; state lives in <root>/.repograph
            config: Project configuration (loaded from the root when omitted)
        """
        self.root_dir = Path(root_dir).resolve()
        self.config = config or load_project_config(self.root_dir)
        self.state_dir = self.root_dir / STATE_DIR_NAME
        self.graph_path = self.state_dir / GRAPH_FILE_NAME
        self.metadata_path = self.state_dir / METADATA_FILE_NAME
        self.history = HistoryStore(self.state_dir)

    def save(self, graph: KnowledgeGraph, commit_hash: Optional[str] = None) -> None:
        """Persist a graph, keep .gitignore current and record a health snapshot.

        Args:
            graph: Graph to save
            commit_hash: HEAD commit for the snapshot (looked up via git when omitted)
        """
        self.state_dir.mkdir(parents=True, exist_ok=True)
        _write_json_atomic(self.graph_path, graph.to_dict())
        _write_json_atomic(self.metadata_path, graph.metadata.to_dict())
        logger.info(
            f"Saved knowledge graph to {self.graph_path} "
            f"({graph.metadata.node_count} nodes, {graph.metadata.edge_count} edges)"
        )

        self._ensure_gitignored()
        self._record_snapshot(graph, commit_hash)

    def _ensure_gitignored(self) -> None:
        gitignore_path = self.root_dir / ".gitignore"
        entry = f"{STATE_DIR_NAME}/"
        try:
            content = gitignore_path.read_text(encoding="utf-8") if gitignore_path.exists() else ""
            lines = [line.strip() for line in content.splitlines()]
            if entry in lines or STATE_DIR_NAME in lines:
                return
            prefix = "" if not content or content.endswith("\n") else "\n"
            with open(gitignore_path, "a", encoding="utf-8") as f:
                f.write(f"{prefix}\n{GITIGNORE_COMMENT}\n{entry}\n")
            logger.debug(f"Added {entry} to {gitignore_path}")
        except (OSError, UnicodeDecodeError) as e:
            logger.warning(f"Could not update .gitignore: {e}")

    def _record_snapshot(self, graph: KnowledgeGraph, commit_hash: Optional[str]) -> None:
        try:
            if commit_hash is None:
                commit_hash = SubprocessGitHistoryProvider(self.root_dir).head_commit()
            snapshot = create_snapshot(graph, commit_hash, self.config.complexity)
            self.history.save_snapshot(snapshot, self.config.history.max_snapshots)
        except Exception as e:
            logger.warning(f"Could not record health snapshot: {e}")

    def load(self) -> Optional[KnowledgeGraph]:
        """Load the saved graph.

        Returns:
            The graph, or None when none has been saved

        Raises:
            GraphFormatError: If the file is corrupt or from an incompatible version
        """
        if not self.graph_path.exists():
            return None
        graph = KnowledgeGraph.from_dict(_read_json(self.graph_path))
        logger.debug(f"Loaded knowledge graph from {self.graph_path}")
        return graph

    def load_metadata(self) -> Optional[GraphMetadata]:
        """Load only the scan metadata (cheap status check)."""
        if not self.metadata_path.exists():
            return None
        return GraphMetadata.from_dict(_read_json(self.metadata_path))

    def exists(self) -> bool:
        return self.graph_path.exists()

    def is_stale(self) -> bool:
        """True when no usable metadata exists or a source file changed after the scan.

        Only file modification times are consulted, never contents.
        """
        try:
            metadata = self.load_metadata()
        except (OSError, GraphFormatError) as e:
            logger.debug(f"Treating graph as stale, metadata unreadable: {e}")
            return True
        if metadata is None:
            return True

        scanned_at = metadata.scanned_at_timestamp()
        try:
            files = collect_source_files(
                self.root_dir,
                exclude_patterns=self.config.scan.exclude_patterns,
                follow_gitignore=self.config.scan.follow_gitignore,
            )
        except ScanError as e:
            logger.debug(f"Treating graph as stale, tree unreadable: {e}")
            return True

        for file_path in files:
            try:
                if file_path.stat().st_mtime > scanned_at:
                    logger.debug(f"Graph is stale: {file_path} modified after scan")
                    return True
            except OSError:
                # Vanished between listing and stat
                continue
        return False

    def delete(self) -> bool:
        """Remove the whole state directory (graph, metadata and history).

        Returns:
            True if anything was deleted
        """
        if not self.state_dir.exists():
            return False
        shutil.rmtree(self.state_dir)
        logger.info(f"Deleted knowledge graph state in {self.state_dir}")
        return True

    def export(self, graph: KnowledgeGraph, format: str = "json") -> Dict[str, Any]:
        """Render a graph for external consumers.

        Args:
            graph: Graph to export
            format: "json" for the full document, "summary" for metadata and stats

        Raises:
            ValueError: For an unknown format
        """
        if format == "json":
            return graph.to_dict()
        if format == "summary":
            return {
                "version": graph.version,
                "metadata": graph.metadata.to_dict(),
                "stats": graph.stats(),
            }
        raise ValueError(f"Unknown export format '{format}', expected one of {', '.join(EXPORT_FORMATS)}")


def save_graph(root_dir: Union[str, Path], graph: KnowledgeGraph, config: Optional[ProjectConfig] = None) -> None:
    GraphStore(root_dir, config).save(graph)


def load_graph(root_dir: Union[str, Path]) -> Optional[KnowledgeGraph]:
    return GraphStore(root_dir, ProjectConfig()).load()


def load_metadata(root_dir: Union[str, Path]) -> Optional[GraphMetadata]:
    return GraphStore(root_dir, ProjectConfig()).load_metadata()


def graph_exists(root_dir: Union[str, Path]) -> bool:
    return GraphStore(root_dir, ProjectConfig()).exists()


def is_graph_stale(root_dir: Union[str, Path], config: Optional[ProjectConfig] = None) -> bool:
    return GraphStore(root_dir, config).is_stale()


def delete_graph(root_dir: Union[str, Path]) -> bool:
    return GraphStore(root_dir, ProjectConfig()).delete()
