import textwrap
from pathlib import Path
from typing import Dict, List, Optional

import pytest

from repograph.graph_db.schema import (
    EdgeType,
    GraphEdge,
    GraphMetadata,
    GraphNode,
    KnowledgeGraph,
    NodeType,
)
from repograph.indexer.git_history import StaticGitHistoryProvider
from repograph.indexer.source_parser import SourceParser


def write_files(root: Path, files: Dict[str, str]) -> Path:
    """Create files (dedented) under root and return root."""
    for rel_path, content in files.items():
        path = root / rel_path
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(textwrap.dedent(content).lstrip("\n"), encoding="utf-8")
    return root


CYCLE_PROJECT = {
    "a.ts": """
        import { b } from './b';

        export function a(x: number): number {
          if (x > 0) {
            return b(x - 1);
          }
          return 0;
        }
    """,
    "b.ts": """
        import { c } from './c';

        export function b(x: number): number {
          if (x > 1) {
            return c(x - 1);
          }
          return 1;
        }
    """,
    "c.ts": """
        import { a } from './a';

        export function c(x: number): number {
          if (x > 2) {
            return a(x - 1);
          }
          return 2;
        }
    """,
}


PYTHON_PROJECT = {
    "app/__init__.py": "",
    "app/models.py": '''
        class User:
            """A registered user."""

            def __init__(self, user_id):
                self.user_id = user_id


        class Admin(User):
            def can_delete(self, other):
                return other.user_id != self.user_id
    ''',
    "app/service.py": '''
        from .models import User


        def find_user(user_id):
            """Look a user up by id."""
            if user_id and user_id > 0:
                return User(user_id)
            return None


        def describe(user_id):
            user = find_user(user_id)
            return str(user)
    ''',
}


@pytest.fixture(scope="session")
def source_parser() -> SourceParser:
    """One parser for the whole run; grammars are loaded once."""
    return SourceParser()


@pytest.fixture
def no_git() -> StaticGitHistoryProvider:
    """History provider for a directory that is not a repository."""
    return StaticGitHistoryProvider({}, available=False)


@pytest.fixture
def cycle_project(tmp_path: Path) -> Path:
    """Three TypeScript files importing each other in a ring."""
    return write_files(tmp_path, CYCLE_PROJECT)


@pytest.fixture
def python_project(tmp_path: Path) -> Path:
    """Small Python package with relative imports and inheritance."""
    return write_files(tmp_path, PYTHON_PROJECT)


class GraphBuilder:
    """Assembles hand-made graphs for analysis tests."""

    def __init__(self):
        self.nodes: Dict[str, GraphNode] = {}
        self.edges: List[GraphEdge] = []

    def file(
        self,
        path: str,
        complexity: Optional[int] = None,
        churn: Optional[int] = None,
        contributors: Optional[List[str]] = None,
        line_count: int = 100,
    ) -> "GraphBuilder":
        self.nodes[path] = GraphNode(
            id=path,
            type=NodeType.FILE,
            name=path.rsplit("/", 1)[-1],
            file_path=path,
            line_start=1,
            line_end=line_count,
            complexity=complexity,
            modification_count=churn,
            contributors=contributors,
            language="typescript",
            line_count=line_count,
            import_count=0,
            export_count=0,
        )
        return self

    def function(
        self,
        path: str,
        name: str,
        complexity: int,
        line_start: int = 1,
        line_end: int = 10,
    ) -> "GraphBuilder":
        node_id = f"{path}:function:{name}"
        self.nodes[node_id] = GraphNode(
            id=node_id,
            type=NodeType.FUNCTION,
            name=name,
            file_path=path,
            line_start=line_start,
            line_end=line_end,
            exported=True,
            complexity=complexity,
            parameters=[],
            is_async=False,
        )
        self.edges.append(GraphEdge.create(EdgeType.CONTAINS, path, node_id))
        return self

    def imports(self, source: str, target: str, symbols: Optional[List[str]] = None) -> "GraphBuilder":
        self.edges.append(
            GraphEdge.create(EdgeType.IMPORTS, source, target, metadata={"symbols": symbols or []})
        )
        return self

    def build(self, scanned_at: str = "2026-01-01T00:00:00+00:00") -> KnowledgeGraph:
        file_nodes = [node for node in self.nodes.values() if node.type == NodeType.FILE]
        metadata = GraphMetadata(
            scanned_at=scanned_at,
            scan_duration_ms=5,
            root_dir="/project",
            file_count=len(file_nodes),
            total_lines=sum(node.line_count or 0 for node in file_nodes),
            languages={"typescript": len(file_nodes)} if file_nodes else {},
            node_count=len(self.nodes),
            edge_count=len(self.edges),
        )
        return KnowledgeGraph(metadata=metadata, nodes=dict(self.nodes), edges=list(self.edges))


@pytest.fixture
def graph_builder() -> GraphBuilder:
    return GraphBuilder()
