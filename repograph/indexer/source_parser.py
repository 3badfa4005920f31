"""Tree-sitter source parser producing per-file declaration IR."""

import logging
from pathlib import Path
from typing import Any, Dict, Optional, Union

import tree_sitter_go as tsgo
import tree_sitter_java as tsjava
import tree_sitter_javascript as tsjavascript
import tree_sitter_python as tspython
import tree_sitter_typescript as tstypescript
from tree_sitter import Language, Parser

from .complexity import count_decision_points
from .grammars import LanguageConfig, LanguageRegistry, get_language_registry
from .models import CallSite, Declaration, ParsedFile, ParseFailure
from .relationship_extractors import (
    ExtractorRegistry,
    RelationshipExtractor,
    collect_identifiers,
    find_nodes_by_type,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_FILE_SIZE = 1024 * 1024


def count_lines(data: bytes) -> int:
    """Number of lines in a file's raw contents."""
    if not data:
        return 0
    return data.count(b"\n") + (0 if data.endswith(b"\n") else 1)


class SourceParser:
    """Parse source files into ParsedFile IR with tree-sitter.

    Language objects are loaded once and shared. Each parse_file call builds
    its own Parser, so one SourceParser can be used from several threads.
    """

    # Language module mapping
    LANGUAGE_MODULES = {
        "python": tspython,
        "javascript": tsjavascript,
        "typescript": tstypescript,
        "tsx": tstypescript,
        "go": tsgo,
        "java": tsjava,
    }

    # Modules that use non-standard language function names
    LANGUAGE_FUNCTION_OVERRIDES = {
        "typescript": "language_typescript",
        "tsx": "language_tsx",
    }

    def __init__(
        self,
        registry: Optional[LanguageRegistry] = None,
        max_file_size: int = DEFAULT_MAX_FILE_SIZE,
    ):
        """Initialize source parser.

        Args:
            registry: Language registry (defaults to the bundled languages.json)
            max_file_size: Files larger than this many bytes are reported as failures
        """
        self.registry = registry or get_language_registry()
        self.max_file_size = max_file_size
        self.languages: Dict[str, Language] = {}
        self._init_languages()

    def _init_languages(self) -> None:
        """Initialize tree-sitter languages."""
        for lang_name in self.registry.get_supported_languages():
            lang_config = self.registry.get_language_config(lang_name)
            if not lang_config:
                continue

            ts_lang_name = lang_config.tree_sitter_language

            try:
                module = self.LANGUAGE_MODULES.get(ts_lang_name)
                if not module:
                    logger.warning(f"No module found for language: {ts_lang_name}")
                    continue

                lang_func_name = self.LANGUAGE_FUNCTION_OVERRIDES.get(ts_lang_name, "language")
                lang_func = getattr(module, lang_func_name, None)
                if not lang_func:
                    logger.warning(f"Module {ts_lang_name} has no function '{lang_func_name}'")
                    continue

                self.languages[lang_name] = Language(lang_func())
                logger.debug(f"Initialized grammar for {lang_name}")

            except Exception as e:
                logger.error(f"Error initializing language {lang_name}: {e}")

    def _relative_path(self, file_path: Path, repo_root: Optional[Path]) -> str:
        if repo_root is not None:
            try:
                return file_path.resolve().relative_to(repo_root.resolve()).as_posix()
            except ValueError:
                pass
        return file_path.as_posix()

    def parse_file(
        self, file_path: Union[str, Path], repo_root: Optional[Union[str, Path]] = None
    ) -> Union[ParsedFile, ParseFailure]:
        """Parse one file into declaration IR.

        Never raises for problems with the file itself: unreadable, oversized,
        undecodable or syntactically broken files come back as ParseFailure.

        Args:
            file_path: Path to the source file
            repo_root: Scan root that ParsedFile.path is made relative to

        Returns:
            ParsedFile on success, ParseFailure otherwise
        """
        path = Path(file_path)
        rel_path = self._relative_path(path, Path(repo_root) if repo_root is not None else None)

        language = self.registry.detect_language(str(path))
        if not language or language not in self.languages:
            return ParseFailure(rel_path, f"Unsupported file type: {path.suffix}")

        lang_config = self.registry.get_language_config(language)
        extractor = ExtractorRegistry.get_extractor(language)
        if lang_config is None or extractor is None:
            return ParseFailure(rel_path, f"No extractor for language: {language}")

        try:
            source_code = path.read_bytes()
        except OSError as e:
            logger.error(f"Error reading file {path}: {e}")
            return ParseFailure(rel_path, f"Could not read file: {e}")

        line_count = count_lines(source_code)

        if len(source_code) > self.max_file_size:
            return ParseFailure(rel_path, "File too large", line_count)

        try:
            source_code.decode("utf-8")
        except UnicodeDecodeError:
            return ParseFailure(rel_path, "File is not valid UTF-8", line_count)

        try:
            parser = Parser()
            parser.language = self.languages[language]
            tree = parser.parse(source_code)
            root_node = tree.root_node

            if root_node.has_error:
                return ParseFailure(rel_path, self._describe_syntax_error(root_node), line_count)

            parsed = self._build_parsed_file(rel_path, language, line_count, root_node, lang_config, extractor)
            logger.debug(f"Parsed {rel_path}: {len(parsed.declarations)} declarations")
            return parsed

        except Exception as e:
            logger.error(f"Error parsing file {path}: {e}")
            return ParseFailure(rel_path, f"Extraction failed: {e}", line_count)

    def _describe_syntax_error(self, root_node: Any) -> str:
        stack = [root_node]
        while stack:
            node = stack.pop()
            if node.type == "ERROR" or node.is_missing:
                return f"Syntax error at line {node.start_point[0] + 1}"
            stack.extend(reversed(node.children))
        return "Syntax error"

    def _build_parsed_file(
        self,
        rel_path: str,
        language: str,
        line_count: int,
        root_node: Any,
        lang_config: LanguageConfig,
        extractor: RelationshipExtractor,
    ) -> ParsedFile:
        local_exports, default_export = extractor.collect_exports(root_node)
        declarations = []

        for decl, node in extractor.collect_declarations(root_node, lang_config, local_exports):
            if decl.parent is None and decl.name in local_exports:
                decl.exported = True
            if decl.is_default_export and default_export is None:
                default_export = decl.name
            self._analyze_body(decl, node, lang_config, extractor)
            declarations.append(decl)

        return ParsedFile(
            path=rel_path,
            language=language,
            line_count=line_count,
            declarations=declarations,
            imports=extractor.collect_imports(root_node),
            local_exports=local_exports,
            default_export=default_export,
        )

    def _analyze_body(
        self,
        decl: Declaration,
        node: Any,
        lang_config: LanguageConfig,
        extractor: RelationshipExtractor,
    ) -> None:
        """Attach decision points, call sites and referenced names to a declaration."""
        if decl.kind == "function":
            decl.decision_points = count_decision_points(node, lang_config)
            for call_node in find_nodes_by_type(node, extractor.get_call_node_types()):
                target = extractor.extract_call_target(call_node)
                if target is None:
                    continue
                name, qualifier = target
                decl.calls.append(CallSite(name=name, qualifier=qualifier, line=call_node.start_point[0] + 1))

        if decl.kind == "class":
            # Members are their own declarations
            return

        references = collect_identifiers(node, lang_config.reference_types)
        references.discard(decl.short_name)
        decl.references = references
