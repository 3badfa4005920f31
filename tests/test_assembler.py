from datetime import datetime

import pytest

from repograph.analysis.complexity_report import complexity_report
from repograph.analysis.cycles import find_cycles
from repograph.errors import ScanError
from repograph.graph_db.schema import EdgeType, NodeType, find_integrity_problems
from repograph.indexer.assembler import (
    NO_SOURCE_FILES_ERROR,
    NOT_A_REPOSITORY_WARNING,
    PHASE_COMPLETE,
    PHASE_PARSING,
    build_knowledge_graph,
    scan,
)
from repograph.indexer.git_history import CommitInfo, StaticGitHistoryProvider

from conftest import write_files


def _edge(graph, edge_type, source, target):
    return next(
        (e for e in graph.edges if e.type == edge_type and e.source == source and e.target == target),
        None,
    )


class TestImportCycleProject:
    """Three TypeScript files importing each other in a ring."""

    def test_counts_and_metadata(self, cycle_project, no_git):
        result = scan(cycle_project, git_provider=no_git)
        graph = result.graph

        assert result.errors == []
        assert graph.metadata.file_count == 3
        assert graph.metadata.node_count == 6
        assert graph.metadata.edge_count == len(graph.edges)
        assert graph.metadata.languages == {"typescript": 3}
        assert graph.metadata.root_dir == str(cycle_project.resolve())

    def test_import_edges_carry_symbols(self, cycle_project, no_git):
        graph = scan(cycle_project, git_provider=no_git).graph

        edge = _edge(graph, EdgeType.IMPORTS, "a.ts", "b.ts")
        assert edge is not None
        assert edge.metadata["symbols"] == ["b"]
        assert edge.metadata["isDefault"] is False

    def test_cross_file_calls(self, cycle_project, no_git):
        graph = scan(cycle_project, git_provider=no_git).graph

        call = _edge(graph, EdgeType.CALLS, "a.ts:function:a", "b.ts:function:b")
        assert call is not None
        assert call.weight == 1.0

    def test_cycle_and_complexity(self, cycle_project, no_git):
        graph = scan(cycle_project, git_provider=no_git).graph

        cycles = find_cycles(graph)
        assert cycles.total_cycles == 1
        assert cycles.cycles[0].files == ["a.ts", "b.ts", "c.ts"]
        assert cycles.cycles[0].severity == "low"

        report = complexity_report(graph)
        assert report.average_complexity == 2
        assert report.distribution["low"] == 3

    def test_graph_is_consistent(self, cycle_project, no_git):
        graph = scan(cycle_project, git_provider=no_git).graph

        assert find_integrity_problems(graph) == []
        assert len({e.id for e in graph.edges}) == len(graph.edges)
        for node in graph.nodes.values():
            if node.type != NodeType.FILE:
                assert _edge(graph, EdgeType.CONTAINS, node.file_path, node.id) is not None

    def test_rescan_is_deterministic(self, cycle_project, no_git):
        first = scan(cycle_project, git_provider=no_git).graph
        second = scan(cycle_project, git_provider=no_git).graph

        assert list(first.nodes) == list(second.nodes)
        assert [e.to_dict() for e in first.edges] == [e.to_dict() for e in second.edges]

    def test_progress_reports_every_phase(self, cycle_project, no_git):
        events = []
        scan(cycle_project, git_provider=no_git, on_progress=lambda *args: events.append(args))

        phases = [event[0] for event in events]
        assert PHASE_PARSING in phases
        assert phases[-1] == PHASE_COMPLETE
        assert (PHASE_PARSING, 3, 3) in [event[:3] for event in events]


class TestPythonProject:
    """Python package with relative imports."""

    def test_relative_import_and_class_use(self, python_project, no_git):
        graph = scan(python_project, git_provider=no_git).graph

        assert _edge(graph, EdgeType.IMPORTS, "app/service.py", "app/models.py") is not None
        assert _edge(graph, EdgeType.USES, "app/service.py:function:find_user", "app/models.py:class:User") is not None
        assert _edge(graph, EdgeType.CALLS, "app/service.py:function:describe", "app/service.py:function:find_user") is not None
        assert _edge(graph, EdgeType.EXTENDS, "app/models.py:class:Admin", "app/models.py:class:User") is not None

    def test_method_nodes(self, python_project, no_git):
        graph = scan(python_project, git_provider=no_git).graph

        init = graph.get_node("app/models.py:function:User.__init__")
        assert init is not None
        assert init.parameters == ["user_id"]
        assert graph.get_node("app/service.py:function:find_user").complexity == 3


class TestReexports:
    """Barrel files forward symbols to their source."""

    def test_call_through_barrel_reaches_definition(self, tmp_path, no_git):
        write_files(
            tmp_path,
            {
                "lib/util.ts": """
                    export function helper(): number {
                      return 1;
                    }
                """,
                "lib/index.ts": "export { helper } from './util';\n",
                "main.ts": """
                    import { helper } from './lib';

                    export function run(): number {
                      return helper();
                    }
                """,
            },
        )
        graph = scan(tmp_path, git_provider=no_git).graph

        assert _edge(graph, EdgeType.IMPORTS, "main.ts", "lib/index.ts") is not None
        exports = _edge(graph, EdgeType.EXPORTS, "lib/index.ts", "lib/util.ts:function:helper")
        assert exports is not None
        assert exports.metadata["reExport"] is True
        assert _edge(graph, EdgeType.CALLS, "main.ts:function:run", "lib/util.ts:function:helper") is not None


class TestScanEdgeCases:
    """Missing roots, empty trees, parse failures and git history."""

    def test_missing_root_raises(self, tmp_path):
        with pytest.raises(ScanError):
            build_knowledge_graph(tmp_path / "nope", include_git_history=False)

    def test_empty_root_reports_error(self, tmp_path, no_git):
        write_files(tmp_path, {"README.md": "# nothing to scan\n"})
        result = scan(tmp_path, git_provider=no_git)

        assert result.graph.metadata.file_count == 0
        assert result.graph.nodes == {}
        assert result.errors[0]["error"] == NO_SOURCE_FILES_ERROR

    def test_syntax_error_is_recorded_not_fatal(self, tmp_path, no_git):
        write_files(
            tmp_path,
            {
                "good.py": "def ok():\n    return 1\n",
                "bad.py": "def broken(:\n    pass\n",
            },
        )
        result = scan(tmp_path, git_provider=no_git)

        assert result.graph.metadata.file_count == 1
        assert result.graph.metadata.total_lines == 4
        assert [error["file"] for error in result.errors] == ["bad.py"]
        assert "bad.py" not in result.graph.nodes

    def test_excluded_directories_and_state_dir(self, tmp_path, no_git):
        write_files(
            tmp_path,
            {
                "src/keep.ts": "export const x = 1;\n",
                "node_modules/pkg/index.js": "module.exports = 1;\n",
                ".repograph/stray.py": "x = 1\n",
            },
        )
        graph = scan(tmp_path, git_provider=no_git).graph

        assert [node.id for node in graph.file_nodes()] == ["src/keep.ts"]

    def test_not_a_repository_warns(self, cycle_project, no_git):
        result = scan(cycle_project, git_provider=no_git)

        assert NOT_A_REPOSITORY_WARNING in result.warnings
        assert all(node.modification_count is None for node in result.graph.file_nodes())

    def test_git_history_is_attached_to_files(self, cycle_project):
        provider = StaticGitHistoryProvider(
            {
                "a.ts": [
                    CommitInfo("Ada", "ada@example.com", "2026-03-02T10:00:00+00:00"),
                    CommitInfo("Ada L.", "ADA@example.com", "2026-01-15T09:00:00+00:00"),
                    CommitInfo("Grace", "grace@example.com", "2026-02-01T12:00:00+00:00"),
                ]
            },
            head="abc123",
        )
        result = scan(cycle_project, git_provider=provider)
        node = result.graph.get_node("a.ts")

        assert result.warnings == []
        assert node.modification_count == 3
        assert node.contributors == ["Ada", "Grace"]
        assert node.last_modified == "2026-03-02T10:00:00+00:00"
        assert result.graph.get_node("b.ts").modification_count is None

    def test_scanned_at_precedes_scan_completion(self, cycle_project, no_git):
        before = datetime.now().astimezone()
        graph = scan(cycle_project, git_provider=no_git).graph

        scanned_at = datetime.fromisoformat(graph.metadata.scanned_at)
        assert scanned_at.tzinfo is not None
        assert scanned_at >= before.replace(microsecond=0)
