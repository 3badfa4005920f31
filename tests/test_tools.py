import json

import pytest

from repograph.graph_db.history import HealthSnapshot, HistoryStore
from repograph.graph_db.json_store import GraphStore
from repograph.tools.graph_tool import NO_GRAPH_ERROR, GraphQueryTool
from repograph.tools.index_tool import IndexTool

from conftest import write_files


@pytest.fixture
def scanned_project(cycle_project, no_git):
    result = IndexTool(cycle_project, git_provider=no_git).scan_codebase()
    assert result["success"] is True
    return cycle_project


class TestIndexTool:
    def test_scan_reports_statistics(self, cycle_project, no_git):
        result = IndexTool(cycle_project, git_provider=no_git).scan_codebase()

        assert result["success"] is True
        assert result["fileCount"] == 3
        assert result["nodeCount"] == 6
        assert result["languages"] == {"typescript": 3}
        assert result["errorCount"] == 0
        assert "complexityChanges" not in result
        assert GraphStore(cycle_project).exists()

    def test_rescan_reports_complexity_changes(self, scanned_project, no_git):
        (scanned_project / "c.ts").write_text(
            "import { a } from './a';\n\n"
            "export function c(x: number): number {\n"
            "  if (x > 2 && x < 100) {\n"
            "    return a(x - 1);\n"
            "  }\n"
            "  return 2;\n"
            "}\n",
            encoding="utf-8",
        )
        result = IndexTool(scanned_project, git_provider=no_git).scan_codebase()

        # the function and its file both got more complex
        assert result["complexityChanges"]["worsened"] == 2
        assert result["complexityChanges"]["improved"] == 0

    def test_empty_directory_is_not_saved(self, tmp_path, no_git):
        result = IndexTool(tmp_path, git_provider=no_git).scan_codebase()

        assert result["success"] is False
        assert result["error"] == "No source files found"
        assert not GraphStore(tmp_path).exists()

    def test_missing_root(self, tmp_path):
        result = IndexTool(tmp_path / "missing").scan_codebase()
        assert result["success"] is False

    def test_delete_graph(self, scanned_project):
        tool = IndexTool(scanned_project)
        assert tool.delete_graph()["deleted"] is True
        assert tool.delete_graph()["deleted"] is False


class TestGraphQueryToolWithoutGraph:
    @pytest.mark.parametrize(
        "call",
        [
            lambda t: t.graph_status(),
            lambda t: t.complexity_report(),
            lambda t: t.complexity_hotspots(),
            lambda t: t.churn_hotspots(),
            lambda t: t.import_cycles(),
            lambda t: t.directory_coupling(),
            lambda t: t.coupling_score("a.ts", "b.ts"),
            lambda t: t.refactor_suggestions(),
            lambda t: t.file_relationships("a.ts"),
            lambda t: t.compare_with_snapshot(),
        ],
    )
    def test_reports_missing_graph(self, tmp_path, call):
        assert call(GraphQueryTool(tmp_path)) == {"success": False, "error": NO_GRAPH_ERROR}

    def test_corrupt_graph_is_an_error_dict(self, tmp_path):
        state_dir = tmp_path / ".repograph"
        state_dir.mkdir()
        (state_dir / "graph.json").write_text("{", encoding="utf-8")

        result = GraphQueryTool(tmp_path).complexity_report()
        assert result["success"] is False
        assert "Corrupt JSON" in result["error"]


class TestGraphQueryTool:
    def test_graph_status(self, scanned_project):
        result = GraphQueryTool(scanned_project).graph_status()

        assert result["success"] is True
        assert result["stale"] is False
        assert result["metadata"]["fileCount"] == 3
        assert result["stats"]["nodesByType"]["function"] == 3

    def test_complexity_report(self, scanned_project):
        result = GraphQueryTool(scanned_project).complexity_report()

        assert result["averageComplexity"] == 2
        assert result["distribution"]["low"] == 3

    def test_import_cycles(self, scanned_project):
        result = GraphQueryTool(scanned_project).import_cycles()

        assert result["totalCycles"] == 1
        assert result["worstCycle"]["files"] == ["a.ts", "b.ts", "c.ts"]

    def test_churn_without_history_warns(self, scanned_project):
        result = GraphQueryTool(scanned_project).churn_hotspots()

        assert result["success"] is True
        assert "warning" in result

    def test_coupling_score(self, scanned_project):
        tool = GraphQueryTool(scanned_project)

        assert tool.coupling_score("a.ts", "b.ts")["score"] == 0.3
        assert tool.coupling_score("a.ts", "zzz.ts") == {
            "success": False,
            "error": "File not found in graph: zzz.ts",
        }

    def test_file_relationships(self, scanned_project):
        tool = GraphQueryTool(scanned_project)
        result = tool.file_relationships("b.ts")

        assert [i["source"] for i in result["imports"]] == ["c.ts"]
        assert [i["filePath"] for i in result["importedBy"]] == ["a.ts"]
        assert tool.file_relationships("nope.ts")["error"] == "File not found in graph: nope.ts"

    def test_directory_coupling(self, scanned_project):
        result = GraphQueryTool(scanned_project).directory_coupling()
        assert result["directories"]["."]["fileCount"] == 3

    def test_project_config_thresholds_apply(self, scanned_project):
        (scanned_project / "repograph.config.json").write_text(
            json.dumps({"complexity": {"low": 1, "medium": 1, "high": 1}}), encoding="utf-8"
        )
        result = GraphQueryTool(scanned_project).complexity_hotspots()

        assert result["threshold"] == 1
        assert result["total_results"] == 3


class TestCompareWithSnapshot:
    def test_no_earlier_snapshot(self, scanned_project):
        result = GraphQueryTool(scanned_project).compare_with_snapshot()

        assert result["success"] is True
        assert result["baseline"] is None

    def test_trend_against_earlier_snapshot(self, scanned_project):
        store = HistoryStore(scanned_project / ".repograph")
        store.save_snapshot(
            HealthSnapshot(
                timestamp="2020-01-01T00:00:00+00:00",
                commit_hash=None,
                file_count=2,
                total_lines=10,
                avg_complexity=10.0,
                max_complexity=30,
                hotspot_count=3,
                health_score=50,
            )
        )
        result = GraphQueryTool(scanned_project).compare_with_snapshot()

        assert result["baseline"]["metrics"]["healthScore"] == 50
        assert result["changes"]["fileCount"] == 1
        assert result["trend"] == "improving"


class TestFileWatcher:
    def test_relative_source_path_filters(self, tmp_path):
        from repograph.indexer.file_watcher import SourceChangeHandler

        write_files(tmp_path, {"src/app.ts": "", "node_modules/x/index.js": "", "README.md": ""})
        handler = SourceChangeHandler(tmp_path.resolve())

        assert handler.relative_source_path(str(tmp_path / "src" / "app.ts")) == "src/app.ts"
        assert handler.relative_source_path(str(tmp_path / "node_modules" / "x" / "index.js")) is None
        assert handler.relative_source_path(str(tmp_path / "README.md")) is None
        assert handler.relative_source_path("/elsewhere/app.ts") is None

    def test_debounced_callback_receives_drained_changes(self, tmp_path):
        import asyncio

        from watchdog.events import FileDeletedEvent, FileModifiedEvent

        from repograph.indexer.file_watcher import CodebaseWatcher

        received = []

        async def on_change(changed, deleted):
            received.append((changed, deleted))

        watcher = CodebaseWatcher(str(tmp_path), on_change, debounce_seconds=0)
        watcher.event_handler.on_modified(FileModifiedEvent(str(tmp_path / "a.py")))
        watcher.event_handler.on_deleted(FileDeletedEvent(str(tmp_path / "b.ts")))

        assert asyncio.run(watcher.process_pending()) is True
        assert received == [({"a.py"}, {"b.ts"})]
        assert asyncio.run(watcher.process_pending()) is False
