import pytest

from repograph.indexer.models import ParsedFile, ParseFailure

from conftest import write_files


def _by_name(parsed):
    return {decl.name: decl for decl in parsed.declarations}


class TestPythonParsing:
    """Declarations, imports and complexity from Python sources."""

    def test_functions_classes_and_methods(self, source_parser, python_project):
        parsed = source_parser.parse_file(python_project / "app" / "models.py", python_project)

        assert isinstance(parsed, ParsedFile)
        assert parsed.path == "app/models.py"
        assert parsed.language == "python"

        decls = _by_name(parsed)
        assert decls["User"].kind == "class"
        assert decls["User"].documentation == "A registered user."
        assert decls["User.__init__"].kind == "function"
        assert decls["User.__init__"].parent == "User"
        assert decls["User.__init__"].parameters == ["user_id"]
        assert decls["Admin"].bases == ["User"]

    def test_decision_points_include_boolean_operators(self, source_parser, python_project):
        parsed = source_parser.parse_file(python_project / "app" / "service.py", python_project)

        find_user = _by_name(parsed)["find_user"]
        # one if + one `and`
        assert sum(find_user.decision_points.values()) == 2
        assert find_user.documentation == "Look a user up by id."
        assert find_user.exported is True

    def test_relative_from_import(self, source_parser, python_project):
        parsed = source_parser.parse_file(python_project / "app" / "service.py", python_project)

        assert len(parsed.imports) == 1
        statement = parsed.imports[0]
        assert statement.specifier == ".models"
        assert [(b.local, b.imported) for b in statement.bindings] == [("User", "User")]

    def test_dunder_all_controls_exports(self, source_parser, tmp_path):
        write_files(
            tmp_path,
            {
                "mod.py": """
                    __all__ = ["visible"]


                    def visible():
                        return 1


                    def hidden():
                        return 2
                """
            },
        )
        decls = _by_name(source_parser.parse_file(tmp_path / "mod.py", tmp_path))

        assert decls["visible"].exported is True
        assert decls["hidden"].exported is False

    def test_enum_and_protocol_kinds(self, source_parser, tmp_path):
        write_files(
            tmp_path,
            {
                "kinds.py": """
                    from enum import Enum
                    from typing import Protocol


                    class Color(Enum):
                        RED = 1


                    class Greeter(Protocol):
                        def greet(self) -> str: ...
                """
            },
        )
        decls = _by_name(source_parser.parse_file(tmp_path / "kinds.py", tmp_path))

        assert decls["Color"].kind == "enum"
        assert decls["Greeter"].kind == "interface"


class TestTypeScriptParsing:
    """Declarations and imports from TypeScript sources."""

    def test_exported_function_with_branch(self, source_parser, cycle_project):
        parsed = source_parser.parse_file(cycle_project / "a.ts", cycle_project)

        assert isinstance(parsed, ParsedFile)
        assert parsed.language == "typescript"
        decl = _by_name(parsed)["a"]
        assert decl.kind == "function"
        assert decl.exported is True
        assert decl.parameters == ["x"]
        assert sum(decl.decision_points.values()) == 1

    def test_named_import_bindings(self, source_parser, cycle_project):
        parsed = source_parser.parse_file(cycle_project / "a.ts", cycle_project)

        assert [stmt.specifier for stmt in parsed.imports] == ["./b"]
        assert [(b.local, b.imported) for b in parsed.imports[0].bindings] == [("b", "b")]

    def test_class_methods_and_interfaces(self, source_parser, tmp_path):
        write_files(
            tmp_path,
            {
                "shapes.ts": """
                    export interface Shape {
                      area(): number;
                    }

                    export class Square implements Shape {
                      constructor(private side: number) {}

                      area(): number {
                        return this.side * this.side;
                      }
                    }
                """
            },
        )
        decls = _by_name(source_parser.parse_file(tmp_path / "shapes.ts", tmp_path))

        assert decls["Shape"].kind == "interface"
        assert decls["Square"].kind == "class"
        assert decls["Square"].interfaces == ["Shape"]
        assert decls["Square.area"].parent == "Square"

    def test_reexport_statement(self, source_parser, tmp_path):
        write_files(tmp_path, {"index.ts": "export { helper } from './util';\n"})
        parsed = source_parser.parse_file(tmp_path / "index.ts", tmp_path)

        statement = parsed.imports[0]
        assert statement.is_reexport is True
        assert statement.reexported == ["helper"]


class TestParseFailures:
    """Files that cannot be parsed come back as failures, never exceptions."""

    def test_syntax_error_reports_line(self, source_parser, tmp_path):
        write_files(tmp_path, {"broken.py": "def ok():\n    return 1\n\ndef broken(:\n    pass\n"})
        result = source_parser.parse_file(tmp_path / "broken.py", tmp_path)

        assert isinstance(result, ParseFailure)
        assert result.path == "broken.py"
        assert result.error.startswith("Syntax error at line")
        assert result.line_count == 5

    def test_unsupported_extension(self, source_parser, tmp_path):
        write_files(tmp_path, {"notes.txt": "hello\n"})
        result = source_parser.parse_file(tmp_path / "notes.txt", tmp_path)

        assert isinstance(result, ParseFailure)
        assert "Unsupported file type" in result.error

    def test_oversized_file(self, tmp_path):
        from repograph.indexer.source_parser import SourceParser

        write_files(tmp_path, {"big.py": "x = 1\n" * 50})
        result = SourceParser(max_file_size=10).parse_file(tmp_path / "big.py", tmp_path)

        assert isinstance(result, ParseFailure)
        assert result.error == "File too large"
        assert result.line_count == 50


class TestLanguageRegistry:
    def test_detects_by_extension(self):
        from repograph.indexer.grammars import get_language_registry

        registry = get_language_registry()
        assert registry.detect_language("src/App.TSX") == "tsx"
        assert registry.detect_language("pkg/mod.pyi") == "python"
        assert registry.detect_language("README.md") is None
        assert registry.get_language_config("go").module_system == "go"

    def test_malformed_grammar_file(self, tmp_path):
        from repograph.errors import ConfigError
        from repograph.indexer.grammars import LanguageRegistry

        path = tmp_path / "languages.json"
        path.write_text('{"cobol": {"extensions": [".cob"]}}', encoding="utf-8")
        with pytest.raises(ConfigError):
            LanguageRegistry(path)
