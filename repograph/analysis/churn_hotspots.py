"""Files that are both complex and frequently changed."""

import logging
import math
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from ..graph_db.schema import GraphNode, KnowledgeGraph, NodeType

logger = logging.getLogger(__name__)

# Normalized score at which a file counts as high complexity or high churn
QUADRANT_MIDPOINT = 50


@dataclass
class ChurnHotspot:
    file: str
    complexity: int  # raw, see file_complexity
    churn: int  # raw commit count
    complexity_score: float  # 0-100, relative to the most complex file
    churn_score: float  # 0-100, relative to the most changed file
    hotspot_score: float
    priority: str
    last_modified: Optional[str] = None
    top_contributors: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "file": self.file,
            "complexity": self.complexity,
            "churn": self.churn,
            "complexityScore": self.complexity_score,
            "churnScore": self.churn_score,
            "hotspotScore": self.hotspot_score,
            "priority": self.priority,
            "lastModified": self.last_modified,
            "topContributors": list(self.top_contributors),
        }


@dataclass
class ChurnHotspotReport:
    hotspots: List[ChurnHotspot] = field(default_factory=list)
    critical_count: int = 0
    high_count: int = 0
    quadrants: Dict[str, List[str]] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hotspots": [h.to_dict() for h in self.hotspots],
            "summary": {"criticalCount": self.critical_count, "highCount": self.high_count},
            "quadrants": {name: list(files) for name, files in self.quadrants.items()},
        }


def hotspot_priority(score: float) -> str:
    if score >= 75:
        return "critical"
    if score >= 50:
        return "high"
    if score >= 25:
        return "medium"
    return "low"


def file_complexity(graph: KnowledgeGraph, file_node: GraphNode) -> int:
    """A file's aggregate complexity, falling back to its most complex function."""
    if file_node.complexity is not None:
        return file_node.complexity
    values = [
        node.complexity
        for node in graph.nodes_in_file(file_node.file_path)
        if node.type == NodeType.FUNCTION and node.complexity is not None
    ]
    return max(values) if values else 0


def _normalize(value: float, maximum: float) -> float:
    return 100.0 * value / maximum if maximum > 0 else 0.0


def rank_churn_hotspots(
    graph: KnowledgeGraph,
    churn: Optional[Mapping[str, int]] = None,
    limit: int = 10,
) -> ChurnHotspotReport:
    """Rank files by combined complexity and churn.

    Both inputs are scaled to 0-100 against their maxima and combined as a
    geometric mean, so raising either one never lowers a file's score.

    Args:
        graph: Graph to inspect
        churn: Commit counts keyed by file path (defaults to each file's
            modification_count from git enrichment)
        limit: Maximum number of hotspots returned

    Returns:
        ChurnHotspotReport; quadrants cover every ranked file, not just the top
    """
    rows = []
    for node in graph.file_nodes():
        raw_churn = churn.get(node.file_path, 0) if churn is not None else (node.modification_count or 0)
        raw_complexity = file_complexity(graph, node)
        if raw_churn == 0 and raw_complexity == 0:
            continue
        rows.append((node, raw_complexity, raw_churn))

    max_complexity = max((row[1] for row in rows), default=0)
    max_churn = max((row[2] for row in rows), default=0)

    ranked = []
    for node, raw_complexity, raw_churn in rows:
        complexity_score = _normalize(raw_complexity, max_complexity)
        churn_score = _normalize(raw_churn, max_churn)
        score = round(math.sqrt(complexity_score * churn_score), 2)
        ranked.append(
            ChurnHotspot(
                file=node.file_path,
                complexity=raw_complexity,
                churn=raw_churn,
                complexity_score=round(complexity_score, 2),
                churn_score=round(churn_score, 2),
                hotspot_score=score,
                priority=hotspot_priority(score),
                last_modified=node.last_modified,
                top_contributors=list(node.contributors or [])[:3],
            )
        )

    ranked.sort(key=lambda h: (-h.hotspot_score, -h.complexity, -h.churn, h.file))

    quadrants: Dict[str, List[str]] = {
        "highComplexityHighChurn": [],
        "highComplexityLowChurn": [],
        "lowComplexityHighChurn": [],
        "lowComplexityLowChurn": [],
    }
    for hotspot in ranked:
        complexity_part = "highComplexity" if hotspot.complexity_score >= QUADRANT_MIDPOINT else "lowComplexity"
        churn_part = "HighChurn" if hotspot.churn_score >= QUADRANT_MIDPOINT else "LowChurn"
        quadrants[complexity_part + churn_part].append(hotspot.file)

    top = ranked[: max(0, limit)]
    return ChurnHotspotReport(
        hotspots=top,
        critical_count=sum(1 for h in top if h.priority == "critical"),
        high_count=sum(1 for h in top if h.priority == "high"),
        quadrants=quadrants,
    )
