"""Complexity aggregates, hotspots, refactor targets and scan-to-scan diffs."""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_THRESHOLDS, ComplexityThresholds
from ..graph_db.schema import GraphNode, KnowledgeGraph, NodeType

logger = logging.getLogger(__name__)

PRIORITY_ORDER = {"high": 0, "medium": 1, "low": 2}


@dataclass
class ComplexityHotspot:
    """A node singled out for its complexity."""

    file_path: str
    name: str
    type: str
    complexity: int
    line_start: int
    line_end: int

    @classmethod
    def from_node(cls, node: GraphNode) -> "ComplexityHotspot":
        return cls(
            file_path=node.file_path,
            name=node.name,
            type=node.type.value,
            complexity=node.complexity or 0,
            line_start=node.line_start,
            line_end=node.line_end,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "filePath": self.file_path,
            "name": self.name,
            "type": self.type,
            "complexity": self.complexity,
            "lineStart": self.line_start,
            "lineEnd": self.line_end,
        }


@dataclass
class ComplexityReport:
    average_complexity: float
    max_complexity: int
    total_complexity: int
    distribution: Dict[str, int]
    hotspots: List[ComplexityHotspot] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "averageComplexity": self.average_complexity,
            "maxComplexity": self.max_complexity,
            "totalComplexity": self.total_complexity,
            "distribution": dict(self.distribution),
            "hotspots": [h.to_dict() for h in self.hotspots],
        }


@dataclass
class DirectoryStats:
    total_complexity: int
    file_count: int
    avg_complexity: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "totalComplexity": self.total_complexity,
            "fileCount": self.file_count,
            "avgComplexity": self.avg_complexity,
        }


@dataclass
class RefactorSuggestion:
    node: GraphNode
    reason: str
    priority: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node": ComplexityHotspot.from_node(self.node).to_dict(),
            "nodeId": self.node.id,
            "reason": self.reason,
            "priority": self.priority,
        }


@dataclass
class ComplexityDiff:
    improved: List[ComplexityHotspot] = field(default_factory=list)
    worsened: List[ComplexityHotspot] = field(default_factory=list)
    unchanged_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "improved": [h.to_dict() for h in self.improved],
            "worsened": [h.to_dict() for h in self.worsened],
            "unchangedCount": self.unchanged_count,
        }


def _empty_distribution() -> Dict[str, int]:
    return {"low": 0, "medium": 0, "high": 0, "veryHigh": 0}


def _symbols_with_complexity(graph: KnowledgeGraph) -> List[GraphNode]:
    return [
        node
        for node in graph.nodes.values()
        if node.type != NodeType.FILE and node.complexity is not None
    ]


def hotspots(
    graph: KnowledgeGraph,
    limit: int = 10,
    threshold: Optional[int] = None,
    include_files: bool = False,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
) -> List[ComplexityHotspot]:
    """Most complex nodes, highest first.

    Args:
        graph: Graph to inspect
        limit: Maximum number of hotspots
        threshold: Minimum complexity (defaults to the medium threshold)
        include_files: Also rank file nodes by their aggregate complexity
        thresholds: Category boundaries

    Returns:
        Hotspots sorted by complexity descending; ties keep graph order
    """
    minimum = thresholds.medium if threshold is None else threshold
    candidates = [
        node
        for node in graph.nodes.values()
        if node.complexity is not None
        and node.complexity >= minimum
        and (include_files or node.type != NodeType.FILE)
    ]
    # sorted() is stable, so equal complexities keep iteration order
    ranked = sorted(candidates, key=lambda node: -(node.complexity or 0))
    return [ComplexityHotspot.from_node(node) for node in ranked[: max(0, limit)]]


def complexity_report(
    graph: KnowledgeGraph,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
    hotspot_limit: int = 20,
) -> ComplexityReport:
    """Aggregate complexity over every non-file node that has one."""
    nodes = _symbols_with_complexity(graph)
    distribution = _empty_distribution()
    if not nodes:
        return ComplexityReport(0, 0, 0, distribution, [])

    complexities = [node.complexity for node in nodes]
    for complexity in complexities:
        distribution[thresholds.category(complexity)] += 1

    total = sum(complexities)
    return ComplexityReport(
        average_complexity=round(total / len(complexities), 2),
        max_complexity=max(complexities),
        total_complexity=total,
        distribution=distribution,
        hotspots=hotspots(graph, limit=hotspot_limit, thresholds=thresholds),
    )


def coupling_by_directory(graph: KnowledgeGraph) -> Dict[str, DirectoryStats]:
    """Sum file complexity per directory ("." for the root).

    Files without functions count with complexity 0.
    """
    totals: Dict[str, List[int]] = {}
    for node in graph.file_nodes():
        directory = node.file_path.rpartition("/")[0] or "."
        entry = totals.setdefault(directory, [0, 0])
        entry[0] += node.complexity or 0
        entry[1] += 1

    return {
        directory: DirectoryStats(
            total_complexity=total,
            file_count=count,
            avg_complexity=round(total / count, 2),
        )
        for directory, (total, count) in sorted(totals.items())
    }


def refactor_suggestions(
    graph: KnowledgeGraph,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
    long_function_lines: int = 50,
) -> List[RefactorSuggestion]:
    """Flag overly complex or overly long symbols.

    A node can be flagged twice: once for complexity, once for length.

    Returns:
        Suggestions sorted high, medium, low; ties keep graph order
    """
    suggestions = []
    for node in _symbols_with_complexity(graph):
        complexity = node.complexity
        if complexity > thresholds.high:
            suggestions.append(
                RefactorSuggestion(
                    node,
                    f"Cyclomatic complexity of {complexity} is very high. "
                    "Consider breaking into smaller functions.",
                    "high",
                )
            )
        elif complexity > thresholds.medium:
            suggestions.append(
                RefactorSuggestion(
                    node,
                    f"Cyclomatic complexity of {complexity} is above recommended threshold.",
                    "medium",
                )
            )

        span = node.line_end - node.line_start
        if span > long_function_lines and complexity > thresholds.low:
            suggestions.append(
                RefactorSuggestion(
                    node,
                    f"Function spans {span} lines. Consider extracting helper functions.",
                    "medium",
                )
            )

    return sorted(suggestions, key=lambda s: PRIORITY_ORDER[s.priority])


def diff_complexity(before: KnowledgeGraph, after: KnowledgeGraph) -> ComplexityDiff:
    """Classify nodes present in both scans by the sign of their complexity change.

    Nodes added or removed between the scans are not compared.
    """
    diff = ComplexityDiff()
    for node_id, after_node in after.nodes.items():
        before_node = before.nodes.get(node_id)
        if before_node is None or before_node.complexity is None or after_node.complexity is None:
            continue

        delta = after_node.complexity - before_node.complexity
        if delta > 0:
            diff.worsened.append(ComplexityHotspot.from_node(after_node))
        elif delta < 0:
            diff.improved.append(ComplexityHotspot.from_node(after_node))
        else:
            diff.unchanged_count += 1

    logger.debug(
        f"Complexity diff: {len(diff.improved)} improved, {len(diff.worsened)} worsened, "
        f"{diff.unchanged_count} unchanged"
    )
    return diff
