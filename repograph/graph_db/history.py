"""Health snapshots of past scans, kept under the state directory's history/."""

import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..config import DEFAULT_THRESHOLDS, ComplexityThresholds
from ..errors import GraphFormatError
from .schema import KnowledgeGraph, NodeType

logger = logging.getLogger(__name__)

HISTORY_DIR_NAME = "history"
# Functions above this complexity count against the health score
HEALTH_HOTSPOT_COMPLEXITY = 15


@dataclass
class HealthSnapshot:
    """Point-in-time health metrics of a graph."""

    timestamp: str
    commit_hash: Optional[str]
    file_count: int
    total_lines: int
    avg_complexity: float
    max_complexity: int
    hotspot_count: int
    health_score: int
    distribution: Dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "commitHash": self.commit_hash,
            "metrics": {
                "fileCount": self.file_count,
                "totalLines": self.total_lines,
                "avgComplexity": self.avg_complexity,
                "maxComplexity": self.max_complexity,
                "hotspotCount": self.hotspot_count,
                "healthScore": self.health_score,
            },
            "distribution": dict(self.distribution),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HealthSnapshot":
        try:
            metrics = data["metrics"]
            return cls(
                timestamp=str(data["timestamp"]),
                commit_hash=data.get("commitHash"),
                file_count=int(metrics["fileCount"]),
                total_lines=int(metrics["totalLines"]),
                avg_complexity=float(metrics["avgComplexity"]),
                max_complexity=int(metrics["maxComplexity"]),
                hotspot_count=int(metrics["hotspotCount"]),
                health_score=int(metrics["healthScore"]),
                distribution={str(k): int(v) for k, v in dict(data.get("distribution", {})).items()},
            )
        except (KeyError, TypeError, ValueError) as e:
            raise GraphFormatError(f"Invalid health snapshot: {e}") from e


def health_score(avg_complexity: float, hotspot_count: int, very_high_count: int) -> int:
    """100 minus penalties for average complexity, hotspots and very complex functions, clamped to 0..100."""
    score = 100 - avg_complexity * 3 - hotspot_count * 2 - very_high_count * 5
    return int(round(max(0.0, min(100.0, score))))


def create_snapshot(
    graph: KnowledgeGraph,
    commit_hash: Optional[str] = None,
    thresholds: ComplexityThresholds = DEFAULT_THRESHOLDS,
) -> HealthSnapshot:
    """Summarize a graph's health.

    Args:
        graph: Graph to summarize
        commit_hash: HEAD commit the scan corresponds to, if known
        thresholds: Category boundaries for the distribution

    Returns:
        HealthSnapshot stamped with the current UTC time
    """
    complexities = [
        node.complexity
        for node in graph.nodes.values()
        if node.type != NodeType.FILE and node.complexity is not None
    ]
    distribution = {"low": 0, "medium": 0, "high": 0, "veryHigh": 0}
    for complexity in complexities:
        distribution[thresholds.category(complexity)] += 1

    avg = round(sum(complexities) / len(complexities), 2) if complexities else 0.0
    hotspot_count = sum(1 for c in complexities if c > HEALTH_HOTSPOT_COMPLEXITY)

    return HealthSnapshot(
        timestamp=datetime.now(timezone.utc).isoformat(),
        commit_hash=commit_hash,
        file_count=graph.metadata.file_count,
        total_lines=graph.metadata.total_lines,
        avg_complexity=avg,
        max_complexity=max(complexities) if complexities else 0,
        hotspot_count=hotspot_count,
        health_score=health_score(avg, hotspot_count, distribution["veryHigh"]),
        distribution=distribution,
    )


def _snapshot_file_name(timestamp: str) -> str:
    moment = datetime.fromisoformat(timestamp).astimezone(timezone.utc)
    return moment.strftime("%Y-%m-%dT%H-%M-%S")


class HistoryStore:
    """Snapshot files in <state dir>/history, one JSON document each."""

    def __init__(self, state_dir: Union[str, Path]):
        self.history_dir = Path(state_dir) / HISTORY_DIR_NAME

    def save_snapshot(self, snapshot: HealthSnapshot, max_snapshots: int = 100) -> Path:
        """Write a snapshot and prune the oldest ones beyond max_snapshots.

        Returns:
            Path of the written snapshot file
        """
        self.history_dir.mkdir(parents=True, exist_ok=True)

        stem = _snapshot_file_name(snapshot.timestamp)
        path = self.history_dir / f"{stem}.json"
        suffix = 2
        while path.exists():
            path = self.history_dir / f"{stem}_{suffix}.json"
            suffix += 1

        fd, tmp_name = tempfile.mkstemp(dir=self.history_dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(snapshot.to_dict(), f, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise

        self._prune(max_snapshots)
        logger.debug(f"Saved health snapshot {path.name} (score {snapshot.health_score})")
        return path

    def _snapshot_files(self) -> List[Path]:
        if not self.history_dir.is_dir():
            return []
        return sorted(self.history_dir.glob("*.json"), key=lambda p: p.name)

    def _prune(self, max_snapshots: int) -> None:
        files = self._snapshot_files()
        for stale in files[: max(0, len(files) - max_snapshots)]:
            try:
                stale.unlink()
            except OSError as e:
                logger.warning(f"Could not prune snapshot {stale}: {e}")

    def load_snapshots(self) -> List[HealthSnapshot]:
        """All readable snapshots, oldest first. Unreadable files are skipped."""
        snapshots = []
        for path in self._snapshot_files():
            try:
                with open(path, "r", encoding="utf-8") as f:
                    snapshots.append(HealthSnapshot.from_dict(json.load(f)))
            except (OSError, json.JSONDecodeError, GraphFormatError) as e:
                logger.warning(f"Skipping unreadable snapshot {path.name}: {e}")
        return snapshots

    def latest(self) -> Optional[HealthSnapshot]:
        snapshots = self.load_snapshots()
        return snapshots[-1] if snapshots else None
