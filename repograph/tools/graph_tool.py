"""MCP tool for querying a saved knowledge graph."""

import logging
from datetime import datetime
from pathlib import Path
from typing import Optional, Tuple, Union

from ..analysis.churn_hotspots import rank_churn_hotspots
from ..analysis.complexity_report import (
    complexity_report,
    coupling_by_directory,
    hotspots,
    refactor_suggestions,
)
from ..analysis.cycles import find_cycles
from ..analysis.relationships import file_relationships, import_coupling_score
from ..config import ConfigCache, ProjectConfig
from ..graph_db.history import create_snapshot
from ..graph_db.json_store import GraphStore
from ..graph_db.schema import KnowledgeGraph

logger = logging.getLogger(__name__)

NO_GRAPH_ERROR = "No knowledge graph found. Run a scan first."

HEALTH_METRICS = ("file_count", "total_lines", "avg_complexity", "max_complexity", "hotspot_count", "health_score")


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


class GraphQueryTool:
    """Read-only analyses over the graph saved for one project root."""

    def __init__(self, root_dir: Union[str, Path], config_cache: Optional[ConfigCache] = None):
        """Initialize graph query tool.

        Args:
            root_dir: Project root whose .repograph state is queried
            config_cache: Shared per-root config cache
        """
        self.root_dir = Path(root_dir).resolve()
        self.config_cache = config_cache or ConfigCache()

    @property
    def config(self) -> ProjectConfig:
        return self.config_cache.get(self.root_dir)

    def _load(self) -> Tuple[Optional[KnowledgeGraph], Optional[dict]]:
        graph = GraphStore(self.root_dir, self.config).load()
        if graph is None:
            return None, {"success": False, "error": NO_GRAPH_ERROR}
        return graph, None

    def graph_status(self) -> dict:
        """Whether a graph exists, whether it is stale, and its summary."""
        try:
            store = GraphStore(self.root_dir, self.config)
            metadata = store.load_metadata()
            if metadata is None:
                return {"success": False, "error": NO_GRAPH_ERROR}

            result = {
                "success": True,
                "rootDir": str(self.root_dir),
                "stale": store.is_stale(),
                "metadata": metadata.to_dict(),
            }
            graph = store.load()
            if graph is not None:
                result["stats"] = graph.stats()
            return result

        except Exception as e:
            logger.error(f"Error getting graph status: {e}")
            return {"success": False, "error": str(e)}

    def complexity_report(self, hotspot_limit: Optional[int] = None) -> dict:
        """Complexity aggregates, category distribution and top hotspots."""
        try:
            graph, error = self._load()
            if error:
                return error

            config = self.config
            report = complexity_report(
                graph,
                config.complexity,
                hotspot_limit or config.limits.max_report_hotspots,
            )
            return {"success": True, **report.to_dict()}

        except Exception as e:
            logger.error(f"Error building complexity report: {e}")
            return {"success": False, "error": str(e)}

    def complexity_hotspots(
        self,
        limit: Optional[int] = None,
        threshold: Optional[int] = None,
        include_files: bool = False,
    ) -> dict:
        """Most complex symbols (and optionally files), highest first."""
        try:
            graph, error = self._load()
            if error:
                return error

            config = self.config
            ranked = hotspots(
                graph,
                limit=limit or config.limits.default_hotspots_limit,
                threshold=threshold,
                include_files=include_files,
                thresholds=config.complexity,
            )
            return {
                "success": True,
                "threshold": config.complexity.medium if threshold is None else threshold,
                "total_results": len(ranked),
                "hotspots": [h.to_dict() for h in ranked],
            }

        except Exception as e:
            logger.error(f"Error ranking hotspots: {e}")
            return {"success": False, "error": str(e)}

    def churn_hotspots(self, limit: Optional[int] = None) -> dict:
        """Files ranked by complexity combined with git churn."""
        try:
            graph, error = self._load()
            if error:
                return error

            report = rank_churn_hotspots(graph, limit=limit or self.config.limits.default_hotspots_limit)
            result = {"success": True, **report.to_dict()}
            if not any(node.modification_count for node in graph.file_nodes()):
                result["warning"] = "Graph has no git history; rescan inside a git repository for churn data."
            return result

        except Exception as e:
            logger.error(f"Error ranking churn hotspots: {e}")
            return {"success": False, "error": str(e)}

    def import_cycles(self, max_cycles: Optional[int] = None) -> dict:
        """Circular import chains between files."""
        try:
            graph, error = self._load()
            if error:
                return error

            report = find_cycles(graph, max_cycles=max_cycles or self.config.limits.max_cycles)
            return {"success": True, **report.to_dict()}

        except Exception as e:
            logger.error(f"Error detecting cycles: {e}")
            return {"success": False, "error": str(e)}

    def directory_coupling(self) -> dict:
        """Complexity totals and averages per directory."""
        try:
            graph, error = self._load()
            if error:
                return error

            directories = coupling_by_directory(graph)
            return {
                "success": True,
                "total_directories": len(directories),
                "directories": {name: stats.to_dict() for name, stats in directories.items()},
            }

        except Exception as e:
            logger.error(f"Error aggregating directories: {e}")
            return {"success": False, "error": str(e)}

    def coupling_score(self, file_a: str, file_b: str) -> dict:
        """Import coupling between two files, 0 (independent) to 1."""
        try:
            graph, error = self._load()
            if error:
                return error

            score = import_coupling_score(graph, file_a, file_b)
            if score is None:
                missing = file_a if graph.get_node(file_a) is None else file_b
                return {"success": False, "error": f"File not found in graph: {missing}"}
            return {"success": True, "fileA": file_a, "fileB": file_b, "score": score}

        except Exception as e:
            logger.error(f"Error scoring coupling: {e}")
            return {"success": False, "error": str(e)}

    def refactor_suggestions(self, limit: Optional[int] = None) -> dict:
        """Overly complex or long symbols, highest priority first."""
        try:
            graph, error = self._load()
            if error:
                return error

            config = self.config
            suggestions = refactor_suggestions(
                graph,
                config.complexity,
                long_function_lines=config.refactor.long_function_lines,
            )
            total = len(suggestions)
            if limit:
                suggestions = suggestions[:limit]
            return {
                "success": True,
                "total_suggestions": total,
                "suggestions": [s.to_dict() for s in suggestions],
            }

        except Exception as e:
            logger.error(f"Error building refactor suggestions: {e}")
            return {"success": False, "error": str(e)}

    def file_relationships(self, file_path: str) -> dict:
        """Imports, importers and declared symbols of one file."""
        try:
            graph, error = self._load()
            if error:
                return error

            relationships = file_relationships(graph, file_path)
            if relationships is None:
                return {"success": False, "error": f"File not found in graph: {file_path}"}
            return {"success": True, **relationships.to_dict()}

        except Exception as e:
            logger.error(f"Error reading file relationships: {e}")
            return {"success": False, "error": str(e)}

    def compare_with_snapshot(self) -> dict:
        """Health of the saved graph against the last snapshot taken before its scan."""
        try:
            store = GraphStore(self.root_dir, self.config)
            graph = store.load()
            if graph is None:
                return {"success": False, "error": NO_GRAPH_ERROR}

            current = create_snapshot(graph, thresholds=self.config.complexity)
            scanned_at = datetime.fromisoformat(graph.metadata.scanned_at)
            earlier = [
                snapshot
                for snapshot in store.history.load_snapshots()
                if datetime.fromisoformat(snapshot.timestamp) < scanned_at
            ]
            if not earlier:
                return {
                    "success": True,
                    "current": current.to_dict(),
                    "baseline": None,
                    "message": "No earlier snapshot to compare with",
                }

            baseline = earlier[-1]
            changes = {
                _camel(metric): round(getattr(current, metric) - getattr(baseline, metric), 2)
                for metric in HEALTH_METRICS
            }
            delta = changes["healthScore"]
            return {
                "success": True,
                "current": current.to_dict(),
                "baseline": baseline.to_dict(),
                "changes": changes,
                "trend": "improving" if delta > 0 else "declining" if delta < 0 else "stable",
            }

        except Exception as e:
            logger.error(f"Error comparing with snapshot: {e}")
            return {"success": False, "error": str(e)}
