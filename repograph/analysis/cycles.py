"""Circular import detection over the file-level import graph."""

import logging
from collections import Counter
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional

from ..graph_db.schema import EdgeType, KnowledgeGraph

logger = logging.getLogger(__name__)

SEVERITY_ORDER = {"high": 0, "medium": 1, "low": 2}

# DFS steps allowed per requested cycle before the search gives up
SEARCH_STEPS_PER_CYCLE = 1000


@dataclass
class ImportCycle:
    files: List[str]
    length: int
    severity: str

    def to_dict(self) -> Dict[str, Any]:
        return {"files": list(self.files), "length": self.length, "severity": self.severity}


@dataclass
class CycleReport:
    cycles: List[ImportCycle] = field(default_factory=list)
    affected_files: List[str] = field(default_factory=list)
    total_cycles: int = 0
    truncated: bool = False
    suggestions: List[str] = field(default_factory=list)

    @property
    def worst_cycle(self) -> Optional[ImportCycle]:
        return self.cycles[0] if self.cycles else None

    def to_dict(self) -> Dict[str, Any]:
        worst = self.worst_cycle
        return {
            "cycles": [cycle.to_dict() for cycle in self.cycles],
            "affectedFiles": list(self.affected_files),
            "totalCycles": self.total_cycles,
            "truncated": self.truncated,
            "worstCycle": worst.to_dict() if worst else None,
            "suggestions": list(self.suggestions),
        }


def cycle_severity(length: int) -> str:
    if length <= 3:
        return "low"
    if length <= 5:
        return "medium"
    return "high"


def import_adjacency(graph: KnowledgeGraph) -> Dict[str, List[str]]:
    """File id -> sorted imported file ids, for every file node."""
    adjacency: Dict[str, set] = {node.id: set() for node in graph.file_nodes()}
    for edge in graph.edges_of_type(EdgeType.IMPORTS):
        if edge.source != edge.target and edge.source in adjacency and edge.target in adjacency:
            adjacency[edge.source].add(edge.target)
    return {file_id: sorted(targets) for file_id, targets in sorted(adjacency.items())}


def strongly_connected_components(adjacency: Dict[str, List[str]]) -> List[List[str]]:
    """Tarjan's algorithm with an explicit work stack.

    Returns:
        Components as sorted member lists, in discovery order
    """
    index_of: Dict[str, int] = {}
    lowlink: Dict[str, int] = {}
    stack: List[str] = []
    on_stack = set()
    components = []
    counter = 0

    for start in adjacency:
        if start in index_of:
            continue
        index_of[start] = lowlink[start] = counter
        counter += 1
        stack.append(start)
        on_stack.add(start)
        work = [(start, 0)]

        while work:
            node, position = work[-1]
            neighbors = adjacency.get(node, [])
            if position < len(neighbors):
                work[-1] = (node, position + 1)
                neighbor = neighbors[position]
                if neighbor not in index_of:
                    index_of[neighbor] = lowlink[neighbor] = counter
                    counter += 1
                    stack.append(neighbor)
                    on_stack.add(neighbor)
                    work.append((neighbor, 0))
                elif neighbor in on_stack:
                    lowlink[node] = min(lowlink[node], index_of[neighbor])
                continue

            work.pop()
            if work:
                parent = work[-1][0]
                lowlink[parent] = min(lowlink[parent], lowlink[node])
            if lowlink[node] == index_of[node]:
                component = []
                while True:
                    member = stack.pop()
                    on_stack.discard(member)
                    component.append(member)
                    if member == node:
                        break
                components.append(sorted(component))

    return components


def _component_cycles(
    component: List[str],
    adjacency: Dict[str, List[str]],
    budget: Dict[str, int],
) -> Iterator[List[str]]:
    """Elementary cycles of one component, each rooted at its smallest file.

    Searching from each member only through larger members yields every
    cycle exactly once, already in its smallest rotation.
    """
    members = set(component)

    for start in component:
        path = [start]
        on_path = {start}
        frontier = [iter(n for n in adjacency[start] if n in members and n >= start)]

        while frontier:
            budget["steps"] -= 1
            if budget["steps"] < 0:
                return
            neighbor = next(frontier[-1], None)
            if neighbor is None:
                frontier.pop()
                on_path.discard(path.pop())
                continue
            if neighbor == start:
                yield list(path)
            elif neighbor not in on_path:
                path.append(neighbor)
                on_path.add(neighbor)
                frontier.append(iter(n for n in adjacency[neighbor] if n in members and n >= start))


def _suggestions(cycles: List[ImportCycle]) -> List[str]:
    if not cycles:
        return ["No circular dependencies detected"]

    suggestions = []
    counts = Counter(file for cycle in cycles for file in cycle.files)
    top_file, count = sorted(counts.items(), key=lambda item: (-item[1], item[0]))[0]
    suggestions.append(f'Consider refactoring "{top_file.rsplit("/", 1)[-1]}" - it appears in {count} cycle(s)')

    if any(cycle.severity == "high" for cycle in cycles):
        suggestions.append("Break long cycles first, they indicate deeper architectural issues")
    if len(cycles) > 5:
        suggestions.append("Consider introducing interface modules to break dependency chains")
    if any(cycle.length == 2 for cycle in cycles):
        suggestions.append("2-file cycles can often be resolved by extracting shared logic to a third module")
    if sum(1 for cycle in cycles if cycle.severity == "medium") > 3:
        suggestions.append("Many medium cycles suggest the need for clearer module boundaries")
    return suggestions


def find_cycles(graph: KnowledgeGraph, max_cycles: int = 1000) -> CycleReport:
    """Find every elementary import cycle, up to max_cycles.

    Args:
        graph: Graph to inspect
        max_cycles: Stop after this many cycles (the report is then truncated)

    Returns:
        CycleReport ordered by severity (high first), then length (longest
        first), then file path
    """
    adjacency = import_adjacency(graph)
    budget = {"steps": max(1, max_cycles) * SEARCH_STEPS_PER_CYCLE}
    found: List[List[str]] = []
    truncated = False

    for component in strongly_connected_components(adjacency):
        if len(component) < 2:
            continue
        for files in _component_cycles(component, adjacency, budget):
            if len(found) >= max_cycles:
                truncated = True
                break
            found.append(files)
        if truncated or budget["steps"] < 0:
            truncated = True
            break

    if truncated:
        logger.warning(f"Cycle search stopped early after {len(found)} cycles")

    cycles = [ImportCycle(files, len(files), cycle_severity(len(files))) for files in found]
    cycles.sort(key=lambda c: (SEVERITY_ORDER[c.severity], -c.length, c.files))

    return CycleReport(
        cycles=cycles,
        affected_files=sorted({file for cycle in cycles for file in cycle.files}),
        total_cycles=len(cycles),
        truncated=truncated,
        suggestions=_suggestions(cycles),
    )
