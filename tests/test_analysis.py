import pytest

from repograph.analysis.churn_hotspots import hotspot_priority, rank_churn_hotspots
from repograph.analysis.complexity_report import (
    complexity_report,
    coupling_by_directory,
    diff_complexity,
    hotspots,
    refactor_suggestions,
)
from repograph.analysis.cycles import cycle_severity, find_cycles, strongly_connected_components
from repograph.analysis.relationships import file_relationships, import_coupling_score


class TestComplexityReport:
    def test_aggregates_over_functions_only(self, graph_builder):
        graph = (
            graph_builder.file("src/a.ts", complexity=30)
            .function("src/a.ts", "low", 3)
            .function("src/a.ts", "medium", 8)
            .function("src/a.ts", "very_high", 25)
            .build()
        )
        report = complexity_report(graph)

        assert report.max_complexity == 25
        assert report.total_complexity == 36
        assert report.average_complexity == 12
        assert report.distribution == {"low": 1, "medium": 1, "high": 0, "veryHigh": 1}
        assert [h.name for h in report.hotspots] == ["very_high"]

    def test_empty_graph(self, graph_builder):
        report = complexity_report(graph_builder.build())
        assert report.average_complexity == 0
        assert report.hotspots == []


class TestHotspots:
    def test_sorted_descending_with_limit(self, graph_builder):
        graph = (
            graph_builder.file("src/a.ts")
            .function("src/a.ts", "f1", 12)
            .function("src/a.ts", "f2", 30)
            .function("src/a.ts", "f3", 15)
            .function("src/a.ts", "f4", 4)
            .build()
        )
        ranked = hotspots(graph, limit=2)
        assert [(h.name, h.complexity) for h in ranked] == [("f2", 30), ("f3", 15)]

    def test_threshold_is_inclusive(self, graph_builder):
        graph = graph_builder.file("src/a.ts").function("src/a.ts", "edge", 10).build()
        assert [h.name for h in hotspots(graph)] == ["edge"]
        assert hotspots(graph, threshold=11) == []

    def test_files_only_when_requested(self, graph_builder):
        graph = graph_builder.file("src/a.ts", complexity=40).function("src/a.ts", "f", 11).build()

        assert [h.type for h in hotspots(graph)] == ["function"]
        assert [h.name for h in hotspots(graph, include_files=True)] == ["a.ts", "f"]

    def test_to_dict_shape(self, graph_builder):
        graph = graph_builder.file("src/a.ts").function("src/a.ts", "f", 11, line_start=3, line_end=9).build()
        assert hotspots(graph)[0].to_dict() == {
            "filePath": "src/a.ts",
            "name": "f",
            "type": "function",
            "complexity": 11,
            "lineStart": 3,
            "lineEnd": 9,
        }


class TestChurnHotspots:
    def _graph(self, graph_builder):
        return (
            graph_builder.file("src/core.ts", complexity=40, churn=20, contributors=["a", "b", "c", "d"])
            .file("src/util.ts", complexity=10, churn=20)
            .file("src/stable.ts", complexity=40, churn=1)
            .file("src/empty.ts")
            .build()
        )

    def test_ranking_and_priority(self, graph_builder):
        report = rank_churn_hotspots(self._graph(graph_builder))

        files = [h.file for h in report.hotspots]
        assert files == ["src/core.ts", "src/util.ts", "src/stable.ts"]
        top = report.hotspots[0]
        assert top.hotspot_score == 100
        assert top.priority == "critical"
        assert top.top_contributors == ["a", "b", "c"]
        assert report.critical_count == 1

    def test_files_without_churn_or_complexity_are_skipped(self, graph_builder):
        report = rank_churn_hotspots(self._graph(graph_builder))
        assert "src/empty.ts" not in [h.file for h in report.hotspots]

    def test_quadrants(self, graph_builder):
        quadrants = rank_churn_hotspots(self._graph(graph_builder)).quadrants

        assert quadrants["highComplexityHighChurn"] == ["src/core.ts"]
        assert quadrants["lowComplexityHighChurn"] == ["src/util.ts"]
        assert quadrants["highComplexityLowChurn"] == ["src/stable.ts"]

    def test_more_churn_never_lowers_score(self, graph_builder):
        graph = self._graph(graph_builder)
        base = rank_churn_hotspots(graph, churn={"src/core.ts": 20, "src/util.ts": 5, "src/stable.ts": 1})
        bumped = rank_churn_hotspots(graph, churn={"src/core.ts": 20, "src/util.ts": 10, "src/stable.ts": 1})

        def score(report, file):
            return next(h.hotspot_score for h in report.hotspots if h.file == file)

        assert score(bumped, "src/util.ts") > score(base, "src/util.ts")
        assert score(bumped, "src/stable.ts") == score(base, "src/stable.ts")

    @pytest.mark.parametrize("score,priority", [(75, "critical"), (74.9, "high"), (50, "high"), (25, "medium"), (0, "low")])
    def test_priority_bands(self, score, priority):
        assert hotspot_priority(score) == priority


class TestCycles:
    def test_ring_is_one_cycle(self, graph_builder):
        graph = (
            graph_builder.file("c.ts").file("a.ts").file("b.ts")
            .imports("a.ts", "b.ts").imports("b.ts", "c.ts").imports("c.ts", "a.ts")
            .build()
        )
        report = find_cycles(graph)

        assert report.total_cycles == 1
        assert report.cycles[0].files == ["a.ts", "b.ts", "c.ts"]
        assert report.affected_files == ["a.ts", "b.ts", "c.ts"]
        assert report.truncated is False

    def test_two_file_cycle_suggestion(self, graph_builder):
        graph = graph_builder.file("x.ts").file("y.ts").imports("x.ts", "y.ts").imports("y.ts", "x.ts").build()
        report = find_cycles(graph)

        assert report.cycles[0].length == 2
        assert any("2-file cycles" in s for s in report.suggestions)

    def test_acyclic_graph(self, graph_builder):
        graph = graph_builder.file("x.ts").file("y.ts").imports("x.ts", "y.ts").build()
        report = find_cycles(graph)

        assert report.cycles == []
        assert report.worst_cycle is None
        assert report.suggestions == ["No circular dependencies detected"]

    def test_overlapping_cycles_are_each_reported_once(self, graph_builder):
        graph = (
            graph_builder.file("a.ts").file("b.ts").file("c.ts")
            .imports("a.ts", "b.ts").imports("b.ts", "a.ts")
            .imports("b.ts", "c.ts").imports("c.ts", "a.ts")
            .build()
        )
        report = find_cycles(graph)

        assert sorted(c.files for c in report.cycles) == [["a.ts", "b.ts"], ["a.ts", "b.ts", "c.ts"]]

    def test_max_cycles_truncates(self, graph_builder):
        builder = graph_builder
        names = [f"m{i}.ts" for i in range(4)]
        for name in names:
            builder.file(name)
        for source in names:
            for target in names:
                if source != target:
                    builder.imports(source, target)
        report = find_cycles(builder.build(), max_cycles=3)

        assert report.total_cycles == 3
        assert report.truncated is True

    def test_severity_bands(self):
        assert [cycle_severity(n) for n in (2, 3, 4, 5, 6)] == ["low", "low", "medium", "medium", "high"]

    def test_scc(self):
        components = strongly_connected_components({"a": ["b"], "b": ["a"], "c": ["a"]})
        assert sorted(sorted(c) for c in components) == [["a", "b"], ["c"]]


class TestDirectoryCoupling:
    def test_totals_per_directory(self, graph_builder):
        graph = (
            graph_builder.file("src/a.ts", complexity=6)
            .file("src/b.ts", complexity=2)
            .file("src/types.ts")
            .file("main.ts", complexity=1)
            .build()
        )
        directories = coupling_by_directory(graph)

        assert directories["src"].total_complexity == 8
        assert directories["src"].file_count == 3
        assert directories["src"].avg_complexity == 2.67
        assert directories["."].file_count == 1


class TestRefactorSuggestions:
    def test_complex_and_long_functions(self, graph_builder):
        graph = (
            graph_builder.file("src/a.ts")
            .function("src/a.ts", "monster", 25)
            .function("src/a.ts", "tangled", 12)
            .function("src/a.ts", "long", 7, line_start=1, line_end=80)
            .function("src/a.ts", "simple_long", 2, line_start=1, line_end=200)
            .build()
        )
        suggestions = refactor_suggestions(graph)

        assert [(s.node.name, s.priority) for s in suggestions] == [
            ("monster", "high"),
            ("tangled", "medium"),
            ("long", "medium"),
        ]
        assert suggestions[0].reason.startswith("Cyclomatic complexity of 25 is very high.")
        assert suggestions[2].reason == "Function spans 79 lines. Consider extracting helper functions."


class TestComplexityDiff:
    def test_changes_are_classified_once(self, graph_builder):
        from conftest import GraphBuilder

        before = (
            GraphBuilder().file("src/a.ts")
            .function("src/a.ts", "better", 9)
            .function("src/a.ts", "worse", 3)
            .function("src/a.ts", "same", 4)
            .function("src/a.ts", "removed", 4)
            .build()
        )
        after = (
            graph_builder.file("src/a.ts")
            .function("src/a.ts", "better", 5)
            .function("src/a.ts", "worse", 6)
            .function("src/a.ts", "same", 4)
            .function("src/a.ts", "added", 20)
            .build()
        )
        diff = diff_complexity(before, after)

        assert [h.name for h in diff.improved] == ["better"]
        assert [h.name for h in diff.worsened] == ["worse"]
        assert diff.unchanged_count == 1


class TestFileRelationships:
    def _graph(self, graph_builder):
        return (
            graph_builder.file("a.ts").file("b.ts").file("c.ts").file("shared.ts")
            .function("a.ts", "run", 2)
            .imports("a.ts", "b.ts", ["b"])
            .imports("b.ts", "a.ts", ["run"])
            .imports("a.ts", "shared.ts")
            .imports("b.ts", "shared.ts")
            .build()
        )

    def test_imports_and_importers(self, graph_builder):
        relationships = file_relationships(self._graph(graph_builder), "a.ts")

        assert [i["source"] for i in relationships.imports] == ["b.ts", "shared.ts"]
        assert relationships.imported_by == [{"filePath": "b.ts", "symbols": ["run"]}]
        assert [s["name"] for s in relationships.symbols] == ["run"]

    def test_unknown_file(self, graph_builder):
        assert file_relationships(self._graph(graph_builder), "nope.ts") is None

    def test_coupling_score(self, graph_builder):
        graph = self._graph(graph_builder)

        # both directions plus one shared dependency
        assert import_coupling_score(graph, "a.ts", "b.ts") == pytest.approx(0.65)
        assert import_coupling_score(graph, "a.ts", "c.ts") == 0.0
        assert import_coupling_score(graph, "a.ts", "missing.ts") is None
