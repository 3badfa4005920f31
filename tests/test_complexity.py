import pytest

from repograph.config import DEFAULT_THRESHOLDS, ComplexityThresholds
from repograph.errors import ConfigError
from repograph.indexer.complexity import cyclomatic_complexity

from conftest import write_files


def _complexity(source_parser, tmp_path, file_name, source, function_name):
    write_files(tmp_path, {file_name: source})
    parsed = source_parser.parse_file(tmp_path / file_name, tmp_path)
    decl = next(d for d in parsed.declarations if d.name == function_name)
    return cyclomatic_complexity(decl.decision_points)


class TestCyclomaticComplexity:
    """Decision point counting per language."""

    def test_straight_line_function_is_one(self, source_parser, tmp_path):
        source = """
            def add(a, b):
                return a + b
        """
        assert _complexity(source_parser, tmp_path, "m.py", source, "add") == 1

    def test_python_branches_loops_and_handlers(self, source_parser, tmp_path):
        source = """
            def process(items):
                total = 0
                for item in items:
                    if item > 10:
                        total += item
                    elif item < 0 or item == -1:
                        total -= 1
                try:
                    check(total)
                except ValueError:
                    pass
                return [x for x in items if x]
        """
        # for, if, elif, or, except, comprehension for, comprehension if
        assert _complexity(source_parser, tmp_path, "m.py", source, "process") == 8

    def test_typescript_switch_ignores_default(self, source_parser, tmp_path):
        source = """
            export function label(code: number): string {
              switch (code) {
                case 1:
                  return "one";
                case 2:
                  return "two";
                default:
                  return "many";
              }
            }
        """
        assert _complexity(source_parser, tmp_path, "m.ts", source, "label") == 3

    def test_typescript_ternary_and_logical_operators(self, source_parser, tmp_path):
        source = """
            export function pick(a: number, b: number): number {
              const ok = a > 0 && b > 0;
              return ok || a === b ? a : b;
            }
        """
        assert _complexity(source_parser, tmp_path, "m.ts", source, "pick") == 4

    def test_python_match_wildcard_is_not_a_branch(self, source_parser, tmp_path):
        source = """
            def describe(x):
                match x:
                    case 1:
                        return "one"
                    case _:
                        return "other"
        """
        assert _complexity(source_parser, tmp_path, "m.py", source, "describe") == 2

    def test_python_guarded_wildcard_still_branches(self, source_parser, tmp_path):
        source = """
            def describe(x, strict):
                match x:
                    case 1:
                        return "one"
                    case _ if strict:
                        return "other"
        """
        # case 1, guarded case, guard if_clause
        assert _complexity(source_parser, tmp_path, "m.py", source, "describe") == 4

    def test_counts_are_summed(self):
        assert cyclomatic_complexity({}) == 1
        assert cyclomatic_complexity({"if_statement": 2, "for_statement": 1}) == 4


class TestComplexityIsMonotonic:
    """Adding a branch raises the score by one; unchanged source keeps it."""

    PYTHON_BEFORE = """
        def grade(score):
            if score > 90:
                return "A"
            return "F"
    """
    PYTHON_AFTER = """
        def grade(score):
            if score > 90:
                return "A"
            elif score > 80:
                return "B"
            return "F"
    """
    TS_BEFORE = """
        export function grade(score: number): string {
          if (score > 90) {
            return "A";
          }
          return "F";
        }
    """
    TS_AFTER = """
        export function grade(score: number): string {
          if (score > 90) {
            return "A";
          } else if (score > 80) {
            return "B";
          }
          return "F";
        }
    """

    @pytest.mark.parametrize(
        "file_name,before,after",
        [("m.py", PYTHON_BEFORE, PYTHON_AFTER), ("m.ts", TS_BEFORE, TS_AFTER)],
    )
    def test_extra_branch_adds_one(self, source_parser, tmp_path, file_name, before, after):
        old = _complexity(source_parser, tmp_path, file_name, before, "grade")
        new = _complexity(source_parser, tmp_path, file_name, after, "grade")

        assert new >= old
        assert new == old + 1

    @pytest.mark.parametrize("file_name,source", [("m.py", PYTHON_AFTER), ("m.ts", TS_AFTER)])
    def test_reparsing_identical_source_is_stable(self, source_parser, tmp_path, file_name, source):
        first = _complexity(source_parser, tmp_path, file_name, source, "grade")
        second = _complexity(source_parser, tmp_path, file_name, source, "grade")

        assert first == second == 3


class TestComplexityThresholds:
    """Category boundaries are inclusive upper bounds."""

    @pytest.mark.parametrize(
        "complexity,category",
        [(1, "low"), (5, "low"), (6, "medium"), (10, "medium"), (11, "high"), (20, "high"), (21, "veryHigh")],
    )
    def test_default_categories(self, complexity, category):
        assert DEFAULT_THRESHOLDS.category(complexity) == category

    def test_rejects_unordered_thresholds(self):
        with pytest.raises(ConfigError):
            ComplexityThresholds(low=10, medium=5, high=20)
