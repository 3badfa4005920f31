"""MCP tool for building, saving and deleting a project's knowledge graph."""

import logging
from pathlib import Path
from typing import Optional, Union

from ..analysis.complexity_report import diff_complexity
from ..config import ConfigCache
from ..errors import GraphFormatError
from ..graph_db.json_store import GraphStore
from ..indexer.assembler import ProgressCallback, scan
from ..indexer.git_history import GitHistoryProvider

logger = logging.getLogger(__name__)

# Per-file errors echoed back in a scan result
MAX_REPORTED_ERRORS = 20


class IndexTool:
    """Tool for scanning a project root into a persisted knowledge graph."""

    def __init__(
        self,
        root_dir: Union[str, Path],
        config_cache: Optional[ConfigCache] = None,
        git_provider: Optional[GitHistoryProvider] = None,
    ):
        """Initialize index tool.

        Args:
            root_dir: Project root to scan
            config_cache: Shared per-root config cache
            git_provider: History source (git subprocess when omitted)
        """
        self.root_dir = Path(root_dir).resolve()
        self.config_cache = config_cache or ConfigCache()
        self.git_provider = git_provider

    def scan_codebase(
        self,
        include_git_history: bool = True,
        on_progress: Optional[ProgressCallback] = None,
    ) -> dict:
        """Scan the root, save the graph and report what changed.

        Args:
            include_git_history: Attach churn and contributors from git
            on_progress: Optional callback (phase, completed, total, current_item)

        Returns:
            Dictionary with scan statistics, per-file errors and warnings
        """
        logger.info(f"Starting knowledge graph scan: {self.root_dir}")

        if not self.root_dir.exists():
            return {"success": False, "error": f"Root directory does not exist: {self.root_dir}"}

        try:
            config = self.config_cache.get(self.root_dir)
            store = GraphStore(self.root_dir, config)

            try:
                previous = store.load()
            except GraphFormatError as e:
                logger.warning(f"Ignoring unreadable previous graph: {e}")
                previous = None

            result = scan(
                self.root_dir,
                include_git_history=include_git_history,
                on_progress=on_progress,
                config=config,
                git_provider=self.git_provider,
            )
            metadata = result.graph.metadata

            if metadata.file_count == 0:
                return {
                    "success": False,
                    "error": result.errors[0]["error"] if result.errors else "No source files found",
                    "errors": result.errors[:MAX_REPORTED_ERRORS],
                    "warnings": result.warnings,
                }

            head = self.git_provider.head_commit() if self.git_provider is not None else None
            store.save(result.graph, commit_hash=head)

            response = {
                "success": True,
                "rootDir": metadata.root_dir,
                "fileCount": metadata.file_count,
                "totalLines": metadata.total_lines,
                "nodeCount": metadata.node_count,
                "edgeCount": metadata.edge_count,
                "languages": metadata.languages,
                "scanDurationMs": metadata.scan_duration_ms,
                "unresolvedImports": result.unresolved_imports,
                "errorCount": len(result.errors),
                "errors": result.errors[:MAX_REPORTED_ERRORS],
                "warnings": result.warnings,
            }

            if previous is not None:
                diff = diff_complexity(previous, result.graph)
                response["complexityChanges"] = {
                    "improved": len(diff.improved),
                    "worsened": len(diff.worsened),
                    "unchanged": diff.unchanged_count,
                }

            logger.info(
                f"Scan saved: {metadata.file_count} files, {metadata.node_count} nodes, "
                f"{metadata.edge_count} edges, {len(result.errors)} errors"
            )
            return response

        except Exception as e:
            logger.error(f"Error during scan: {e}")
            return {"success": False, "error": str(e)}

    def delete_graph(self) -> dict:
        """Remove all persisted graph state for the root."""
        try:
            config = self.config_cache.get(self.root_dir)
            deleted = GraphStore(self.root_dir, config).delete()
            return {
                "success": True,
                "deleted": deleted,
                "message": "Knowledge graph deleted" if deleted else "No knowledge graph to delete",
            }

        except Exception as e:
            logger.error(f"Error deleting graph: {e}")
            return {"success": False, "error": str(e)}
