"""Language-specific declaration and relationship extractors using strategy pattern.

Each language has its own extractor class that knows how to turn a tree-sitter
syntax tree into declarations, import statements, call targets and
inheritance lists. Extractors hold no per-file state and are shared across
worker threads.
"""

import inspect
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple

from .grammars import LanguageConfig
from .models import Declaration, ImportBinding, ImportStatement

logger = logging.getLogger(__name__)

# A declaration paired with the syntax node its body metrics are read from
DeclarationNode = Tuple[Declaration, Any]


def node_text(node: Any) -> str:
    if node is None:
        return ""
    return node.text.decode("utf-8", errors="replace")


def node_span(node: Any) -> Tuple[int, int]:
    """1-indexed (line_start, line_end) of a node."""
    return node.start_point[0] + 1, node.end_point[0] + 1


def strip_string_quotes(text: str) -> str:
    """Strip prefixes and quotes from a string literal's source text."""
    text = text.strip()
    start = 0
    while start < len(text) and text[start] in "rRbBuUfF":
        start += 1
    body = text[start:]
    for quote in ('"""', "'''", '"', "'", "`"):
        if len(body) >= 2 * len(quote) and body.startswith(quote) and body.endswith(quote):
            return body[len(quote):-len(quote)]
    return body


def clean_block_comment(text: str) -> Optional[str]:
    """Turn a /** ... */ comment into plain text."""
    body = text.strip()
    if body.startswith("/**"):
        body = body[3:]
    elif body.startswith("/*"):
        body = body[2:]
    if body.endswith("*/"):
        body = body[:-2]

    lines = []
    for line in body.splitlines():
        line = line.strip()
        if line.startswith("*"):
            line = line[1:].strip()
        lines.append(line)

    cleaned = "\n".join(lines).strip()
    return cleaned or None


def find_nodes_by_type(node: Any, node_types: Iterable[str]) -> List[Any]:
    """Find all descendants (and the node itself) of the given types, in document order."""
    wanted = set(node_types)
    found = []
    stack = [node]
    while stack:
        current = stack.pop()
        if current.type in wanted:
            found.append(current)
        stack.extend(reversed(current.children))
    return found


def collect_identifiers(node: Any, identifier_types: Iterable[str]) -> Set[str]:
    """Collect the text of every identifier-like node beneath a node."""
    return {node_text(n) for n in find_nodes_by_type(node, identifier_types)}


class RelationshipExtractor(ABC):
    """Base class for language-specific extraction."""

    def __init__(self, language: str):
        self.language = language

    @abstractmethod
    def get_call_node_types(self) -> List[str]:
        """Return AST node types that represent function/method calls."""
        pass

    @abstractmethod
    def get_import_node_types(self) -> List[str]:
        """Return AST node types that may hold imports, requires or re-exports."""
        pass

    @abstractmethod
    def extract_call_target(self, call_node: Any) -> Optional[Tuple[str, Optional[str]]]:
        """Extract (name, qualifier) of the function/method being called."""
        pass

    @abstractmethod
    def extract_import_info(self, import_node: Any) -> List[ImportStatement]:
        """Extract import statements from an import-like node."""
        pass

    @abstractmethod
    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        """Extract base classes and interfaces from a class node."""
        pass

    @abstractmethod
    def collect_declarations(
        self, root: Any, lang_config: LanguageConfig, local_exports: Set[str]
    ) -> List[DeclarationNode]:
        """Collect top-level declarations and class members in source order."""
        pass

    def collect_imports(self, root: Any) -> List[ImportStatement]:
        statements = []
        for node in find_nodes_by_type(root, self.get_import_node_types()):
            try:
                statements.extend(self.extract_import_info(node))
            except Exception as e:
                logger.debug(f"Error extracting {self.language} import info: {e}")
        return statements

    def collect_exports(self, root: Any) -> Tuple[Set[str], Optional[str]]:
        """Return names exported by name (export lists, __all__) and the default export."""
        return set(), None


class PythonExtractor(RelationshipExtractor):
    """Python-specific extraction."""

    ENUM_BASES = {"Enum", "IntEnum", "StrEnum", "Flag", "IntFlag"}
    INTERFACE_BASES = {"Protocol"}

    def __init__(self):
        super().__init__("python")

    def get_call_node_types(self) -> List[str]:
        return ["call"]

    def get_import_node_types(self) -> List[str]:
        return ["import_statement", "import_from_statement"]

    def extract_call_target(self, call_node: Any) -> Optional[Tuple[str, Optional[str]]]:
        """Extract function/method name from Python call node."""
        func_node = call_node.child_by_field_name("function")
        if func_node is None:
            return None
        if func_node.type == "identifier":
            return node_text(func_node), None
        if func_node.type == "attribute":
            attr_node = func_node.child_by_field_name("attribute")
            object_node = func_node.child_by_field_name("object")
            if attr_node is None:
                return None
            qualifier = node_text(object_node) if object_node is not None and object_node.type == "identifier" else None
            return node_text(attr_node), qualifier
        return None

    def extract_import_info(self, import_node: Any) -> List[ImportStatement]:
        """Extract import information from Python import node."""
        line = import_node.start_point[0] + 1

        if import_node.type == "import_statement":
            # import a.b [as alias], c
            statements = []
            for name_node in import_node.children_by_field_name("name"):
                if name_node.type == "aliased_import":
                    module = node_text(name_node.child_by_field_name("name"))
                    alias = node_text(name_node.child_by_field_name("alias"))
                    bindings = [ImportBinding(alias, "*")]
                else:
                    module = node_text(name_node)
                    # `import a.b` binds `a`, which is not the imported module
                    bindings = [] if "." in module else [ImportBinding(module, "*")]
                statements.append(ImportStatement(specifier=module, line=line, bindings=bindings))
            return statements

        if import_node.type == "import_from_statement":
            # from module import name [as alias]
            module_node = import_node.child_by_field_name("module_name")
            if module_node is None:
                return []
            statement = ImportStatement(specifier=node_text(module_node), line=line)
            statement.wildcard = any(c.type == "wildcard_import" for c in import_node.children)
            for name_node in import_node.children_by_field_name("name"):
                if name_node.type == "aliased_import":
                    imported = node_text(name_node.child_by_field_name("name"))
                    local = node_text(name_node.child_by_field_name("alias"))
                else:
                    imported = local = node_text(name_node)
                statement.bindings.append(ImportBinding(local, imported))
            return [statement]

        return []

    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        """Extract base classes from Python class node."""
        info = {"extends": [], "implements": []}
        # class ClassName(BaseClass, module.Mixin, Generic[T], metaclass=Meta):
        bases_node = class_node.child_by_field_name("superclasses")
        if bases_node is None:
            return info
        for child in bases_node.named_children:
            if child.type in ("identifier", "attribute"):
                info["extends"].append(node_text(child))
            elif child.type == "subscript":
                value = child.child_by_field_name("value")
                if value is not None:
                    info["extends"].append(node_text(value))
        return info

    def collect_declarations(
        self, root: Any, lang_config: LanguageConfig, local_exports: Set[str]
    ) -> List[DeclarationNode]:
        all_names = self._dunder_all(root)
        declarations: List[DeclarationNode] = []
        for child in root.named_children:
            self._collect_statement(child, declarations, all_names)
        return declarations

    def collect_exports(self, root: Any) -> Tuple[Set[str], Optional[str]]:
        all_names = self._dunder_all(root)
        return (set(all_names) if all_names is not None else set()), None

    def _is_public(self, name: str, all_names: Optional[Set[str]]) -> bool:
        if all_names is not None:
            return name in all_names
        return not name.startswith("_")

    def _collect_statement(
        self, node: Any, out: List[DeclarationNode], all_names: Optional[Set[str]]
    ) -> None:
        if node.type == "decorated_definition":
            definition = node.child_by_field_name("definition")
            if definition is not None:
                self._collect_statement(definition, out, all_names)
            return

        if node.type == "function_definition":
            name = node_text(node.child_by_field_name("name"))
            out.append((self._function(name, node, self._is_public(name, all_names)), node))
            return

        if node.type == "class_definition":
            self._collect_class(node, out, all_names)
            return

        if node.type == "type_alias_statement":
            # type Alias[T] = ...
            left = node.child_by_field_name("left")
            name = node_text(left).split("[", 1)[0].strip()
            if name:
                line_start, line_end = node_span(node)
                decl = Declaration(
                    kind="type",
                    name=name,
                    line_start=line_start,
                    line_end=line_end,
                    exported=self._is_public(name, all_names),
                )
                right = node.child_by_field_name("right")
                out.append((decl, right if right is not None else node))
            return

        if node.type == "expression_statement":
            for child in node.named_children:
                if child.type == "assignment":
                    self._collect_assignment(child, node, out, all_names)

    def _collect_class(
        self, node: Any, out: List[DeclarationNode], all_names: Optional[Set[str]]
    ) -> None:
        name = node_text(node.child_by_field_name("name"))
        bases = self.extract_inheritance_info(node)["extends"]
        base_names = {base.rsplit(".", 1)[-1] for base in bases}

        kind = "class"
        if base_names & self.ENUM_BASES:
            kind = "enum"
        elif base_names & self.INTERFACE_BASES:
            kind = "interface"

        special = self.ENUM_BASES | self.INTERFACE_BASES | {"object"}
        exported = self._is_public(name, all_names)
        line_start, line_end = node_span(node)
        decl = Declaration(
            kind=kind,
            name=name,
            line_start=line_start,
            line_end=line_end,
            exported=exported,
            documentation=self._docstring(node),
            bases=[] if kind == "enum" else [b for b in bases if b.rsplit(".", 1)[-1] not in special],
        )
        out.append((decl, node))

        body = node.child_by_field_name("body")
        if body is None:
            return
        for member in body.named_children:
            target = member
            if member.type == "decorated_definition":
                target = member.child_by_field_name("definition")
            if target is None or target.type != "function_definition":
                continue
            method = node_text(target.child_by_field_name("name"))
            dunder = method.startswith("__") and method.endswith("__")
            public = exported and (dunder or not method.startswith("_"))
            out.append((self._function(f"{name}.{method}", target, public, parent=name), target))

    def _collect_assignment(
        self,
        assignment: Any,
        statement: Any,
        out: List[DeclarationNode],
        all_names: Optional[Set[str]],
    ) -> None:
        left = assignment.child_by_field_name("left")
        if left is None or left.type != "identifier":
            return
        name = node_text(left)
        if name.startswith("__") and name.endswith("__"):
            return
        if not self._is_public(name, all_names):
            return

        line_start, line_end = node_span(statement)
        decl = Declaration(
            kind="variable",
            name=name,
            line_start=line_start,
            line_end=line_end,
            exported=True,
        )
        right = assignment.child_by_field_name("right")
        out.append((decl, right if right is not None else assignment))

    def _function(self, name: str, node: Any, exported: bool, parent: Optional[str] = None) -> Declaration:
        line_start, line_end = node_span(node)
        parameters = self._parameters(node)
        if parent and parameters and parameters[0] in ("self", "cls"):
            parameters = parameters[1:]
        return Declaration(
            kind="function",
            name=name,
            line_start=line_start,
            line_end=line_end,
            exported=exported,
            documentation=self._docstring(node),
            parameters=parameters,
            is_async=any(child.type == "async" for child in node.children),
            parent=parent,
        )

    def _parameters(self, node: Any) -> List[str]:
        params = node.child_by_field_name("parameters")
        if params is None:
            return []
        names = []
        for child in params.named_children:
            if child.type in ("identifier", "list_splat_pattern", "dictionary_splat_pattern"):
                names.append(node_text(child))
            elif child.type in ("default_parameter", "typed_default_parameter"):
                names.append(node_text(child.child_by_field_name("name")))
            elif child.type == "typed_parameter" and child.named_children:
                names.append(node_text(child.named_children[0]))
        return names

    def _docstring(self, node: Any) -> Optional[str]:
        body = node.child_by_field_name("body")
        if body is None:
            return None
        statements = [c for c in body.named_children if c.type != "comment"]
        if not statements or statements[0].type != "expression_statement":
            return None
        expressions = statements[0].named_children
        if not expressions or expressions[0].type != "string":
            return None
        return inspect.cleandoc(strip_string_quotes(node_text(expressions[0]))) or None

    def _dunder_all(self, root: Any) -> Optional[Set[str]]:
        names: Optional[Set[str]] = None
        for statement in root.named_children:
            if statement.type != "expression_statement":
                continue
            for child in statement.named_children:
                if child.type not in ("assignment", "augmented_assignment"):
                    continue
                left = child.child_by_field_name("left")
                right = child.child_by_field_name("right")
                if node_text(left) != "__all__" or right is None:
                    continue
                if right.type not in ("list", "tuple"):
                    continue
                if names is None:
                    names = set()
                for item in right.named_children:
                    if item.type == "string":
                        names.add(strip_string_quotes(node_text(item)))
        return names


class JavaScriptExtractor(RelationshipExtractor):
    """JavaScript-specific extraction (ES modules and CommonJS)."""

    FUNCTION_VALUE_TYPES = {"arrow_function", "function_expression", "function", "generator_function"}
    VARIABLE_DECLARATION_TYPES = {"lexical_declaration", "variable_declaration"}

    def __init__(self, language: str = "javascript"):
        super().__init__(language)

    def get_call_node_types(self) -> List[str]:
        return ["call_expression"]

    def get_import_node_types(self) -> List[str]:
        return ["import_statement", "export_statement", "call_expression"]

    def extract_call_target(self, call_node: Any) -> Optional[Tuple[str, Optional[str]]]:
        """Extract function/method name from JavaScript call node."""
        func_node = call_node.child_by_field_name("function")
        if func_node is None:
            return None
        if func_node.type == "identifier":
            return node_text(func_node), None
        if func_node.type == "member_expression":
            # object.method() -> method
            prop_node = func_node.child_by_field_name("property")
            object_node = func_node.child_by_field_name("object")
            if prop_node is None:
                return None
            qualifier = None
            if object_node is not None and object_node.type in ("identifier", "this"):
                qualifier = node_text(object_node)
            return node_text(prop_node), qualifier
        return None

    def extract_import_info(self, import_node: Any) -> List[ImportStatement]:
        """Extract import, re-export and require information."""
        line = import_node.start_point[0] + 1
        type_only = any(child.type == "type" for child in import_node.children)

        if import_node.type == "import_statement":
            source_node = import_node.child_by_field_name("source")
            require_clause = next(
                (c for c in import_node.named_children if c.type == "import_require_clause"), None
            )
            if source_node is None and require_clause is not None:
                # import x = require("./x")
                source_node = require_clause.child_by_field_name("source")
                local = next((c for c in require_clause.named_children if c.type == "identifier"), None)
                bindings = [ImportBinding(node_text(local), "*")] if local is not None else []
                if source_node is None:
                    return []
                return [ImportStatement(strip_string_quotes(node_text(source_node)), line, bindings)]
            if source_node is None:
                return []

            statement = ImportStatement(
                specifier=strip_string_quotes(node_text(source_node)),
                line=line,
                type_only=type_only,
            )
            for child in import_node.named_children:
                if child.type == "import_clause":
                    statement.bindings.extend(self._import_clause_bindings(child))
            return [statement]

        if import_node.type == "export_statement":
            # export { a, b as c } from "./x" / export * from "./x"
            source_node = import_node.child_by_field_name("source")
            if source_node is None:
                return []
            statement = ImportStatement(
                specifier=strip_string_quotes(node_text(source_node)),
                line=line,
                type_only=type_only,
                is_reexport=True,
            )
            clause = next((c for c in import_node.named_children if c.type == "export_clause"), None)
            if clause is None:
                statement.reexported = ["*"]
            else:
                for spec in clause.named_children:
                    if spec.type == "export_specifier":
                        statement.reexported.append(node_text(spec.child_by_field_name("name")))
            return [statement]

        if import_node.type == "call_expression":
            return self._require_info(import_node, line)

        return []

    def _require_info(self, call_node: Any, line: int) -> List[ImportStatement]:
        func_node = call_node.child_by_field_name("function")
        if func_node is None:
            return []
        is_require = func_node.type == "identifier" and node_text(func_node) == "require"
        if not is_require and func_node.type != "import":
            return []
        args = call_node.child_by_field_name("arguments")
        if args is None or not args.named_children or args.named_children[0].type != "string":
            return []

        statement = ImportStatement(strip_string_quotes(node_text(args.named_children[0])), line)
        parent = call_node.parent
        if parent is not None and parent.type == "variable_declarator":
            target = parent.child_by_field_name("name")
            if target is not None and target.type == "identifier":
                statement.bindings.append(ImportBinding(node_text(target), "*"))
            elif target is not None and target.type == "object_pattern":
                # const { a, b: c } = require("./x")
                for prop in target.named_children:
                    if prop.type == "shorthand_property_identifier_pattern":
                        statement.bindings.append(ImportBinding(node_text(prop), node_text(prop)))
                    elif prop.type == "pair_pattern":
                        key = node_text(prop.child_by_field_name("key"))
                        value = node_text(prop.child_by_field_name("value"))
                        statement.bindings.append(ImportBinding(value, key))
        return [statement]

    def _import_clause_bindings(self, clause: Any) -> List[ImportBinding]:
        bindings = []
        for child in clause.named_children:
            if child.type == "identifier":
                bindings.append(ImportBinding(node_text(child), "default"))
            elif child.type == "namespace_import":
                local = next((c for c in child.named_children if c.type == "identifier"), None)
                if local is not None:
                    bindings.append(ImportBinding(node_text(local), "*"))
            elif child.type == "named_imports":
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    imported = node_text(spec.child_by_field_name("name"))
                    alias = spec.child_by_field_name("alias")
                    local = node_text(alias) if alias is not None else imported
                    bindings.append(ImportBinding(local, imported))
        return bindings

    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        """Extract extends/implements lists from a class or interface node."""
        info = {"extends": [], "implements": []}
        for child in class_node.children:
            if child.type == "class_heritage":
                clauses = [c for c in child.named_children if c.type in ("extends_clause", "implements_clause")]
                if not clauses:
                    # JavaScript: class A extends B
                    info["extends"].extend(self._heritage_names(child))
                for clause in clauses:
                    key = "extends" if clause.type == "extends_clause" else "implements"
                    info[key].extend(self._heritage_names(clause))
            elif child.type == "extends_type_clause":
                # interface A extends B, C
                info["extends"].extend(self._heritage_names(child))
        return info

    def _heritage_names(self, clause: Any) -> List[str]:
        names = []
        for child in clause.named_children:
            if child.type in ("identifier", "type_identifier"):
                names.append(node_text(child))
            elif child.type == "generic_type":
                name = child.child_by_field_name("name")
                names.append(node_text(name if name is not None else child.named_children[0]))
            elif child.type == "member_expression":
                names.append(f"{node_text(child.child_by_field_name('object'))}.{node_text(child.child_by_field_name('property'))}")
            elif child.type == "nested_type_identifier":
                names.append(node_text(child))
        return names

    def collect_exports(self, root: Any) -> Tuple[Set[str], Optional[str]]:
        local_exports: Set[str] = set()
        default_export = None
        for node in root.named_children:
            if node.type != "export_statement" or node.child_by_field_name("source") is not None:
                continue
            is_default = any(child.type == "default" for child in node.children)
            value = node.child_by_field_name("value")
            if is_default and value is not None and value.type == "identifier":
                # export default foo
                default_export = node_text(value)
                local_exports.add(default_export)
                continue
            for clause in node.named_children:
                if clause.type != "export_clause":
                    continue
                for spec in clause.named_children:
                    if spec.type != "export_specifier":
                        continue
                    name = node_text(spec.child_by_field_name("name"))
                    alias = spec.child_by_field_name("alias")
                    local_exports.add(name)
                    if alias is not None and node_text(alias) == "default":
                        default_export = name
        return local_exports, default_export

    def collect_declarations(
        self, root: Any, lang_config: LanguageConfig, local_exports: Set[str]
    ) -> List[DeclarationNode]:
        declarations: List[DeclarationNode] = []
        for child in root.named_children:
            self._collect_statement(child, lang_config, declarations, local_exports, False, False, child)
        return declarations

    def _collect_statement(
        self,
        node: Any,
        lang_config: LanguageConfig,
        out: List[DeclarationNode],
        local_exports: Set[str],
        exported: bool,
        is_default: bool,
        anchor: Any,
    ) -> None:
        if node.type == "export_statement":
            if node.child_by_field_name("source") is not None:
                return
            is_default = any(child.type == "default" for child in node.children)
            declaration = node.child_by_field_name("declaration")
            if declaration is not None:
                self._collect_statement(declaration, lang_config, out, local_exports, True, is_default, node)
                return
            value = node.child_by_field_name("value")
            if is_default and value is not None and value.type != "identifier":
                self._collect_statement(value, lang_config, out, local_exports, True, True, node)
            return

        if node.type == "ambient_declaration":
            # declare function f(): void; declare class C {}
            for child in node.named_children:
                self._collect_statement(child, lang_config, out, local_exports, exported, is_default, anchor)
            return

        if node.type in self.VARIABLE_DECLARATION_TYPES:
            for declarator in node.named_children:
                if declarator.type == "variable_declarator":
                    self._collect_variable(declarator, out, local_exports, exported, anchor)
            return

        if node.type in self.FUNCTION_VALUE_TYPES and is_default:
            # export default function () {} / export default () => {}
            name_node = node.child_by_field_name("name")
            name = node_text(name_node) if name_node is not None else "default"
            out.append((self._function(name, node, anchor, True, is_default=True), node))
            return

        kind = lang_config.get_declaration_kind(node.type)
        if kind is None:
            return

        name_field = lang_config.get_name_field(node.type)
        name_node = node.child_by_field_name(name_field) if name_field else None
        name = node_text(name_node) if name_node is not None else ("default" if is_default else "")
        if not name:
            return

        if kind == "function":
            out.append((self._function(name, node, anchor, exported, is_default=is_default), node))
            return

        line_start, line_end = node_span(node)
        decl = Declaration(
            kind=kind,
            name=name,
            line_start=line_start,
            line_end=line_end,
            exported=exported,
            documentation=self._jsdoc(anchor),
            is_default_export=is_default,
        )
        if kind in ("class", "interface"):
            info = self.extract_inheritance_info(node)
            decl.bases = info["extends"]
            decl.interfaces = info["implements"] if kind == "class" else []
        out.append((decl, node))

        if kind == "class":
            self._collect_methods(node, name, exported, out)

    def _collect_variable(
        self,
        declarator: Any,
        out: List[DeclarationNode],
        local_exports: Set[str],
        exported: bool,
        anchor: Any,
    ) -> None:
        name_node = declarator.child_by_field_name("name")
        if name_node is None or name_node.type != "identifier":
            return
        name = node_text(name_node)
        exported = exported or name in local_exports
        value = declarator.child_by_field_name("value")

        if value is not None and value.type in self.FUNCTION_VALUE_TYPES:
            decl = self._function(name, value, anchor, exported)
            decl.line_start, decl.line_end = node_span(declarator)
            out.append((decl, value))
        elif exported:
            line_start, line_end = node_span(declarator)
            decl = Declaration(
                kind="variable",
                name=name,
                line_start=line_start,
                line_end=line_end,
                exported=True,
                documentation=self._jsdoc(anchor),
            )
            out.append((decl, value if value is not None else declarator))

    def _collect_methods(self, class_node: Any, class_name: str, exported: bool, out: List[DeclarationNode]) -> None:
        body = class_node.child_by_field_name("body")
        if body is None:
            return
        for member in body.named_children:
            if member.type != "method_definition":
                continue
            name_node = member.child_by_field_name("name")
            if name_node is None:
                continue
            method = node_text(name_node)
            private = method.startswith("#") or any(
                c.type == "accessibility_modifier" and node_text(c) == "private" for c in member.children
            )
            decl = self._function(
                f"{class_name}.{method}", member, member, exported and not private, parent=class_name
            )
            out.append((decl, member))

    def _function(
        self,
        name: str,
        node: Any,
        anchor: Any,
        exported: bool,
        is_default: bool = False,
        parent: Optional[str] = None,
    ) -> Declaration:
        line_start, line_end = node_span(node)
        return Declaration(
            kind="function",
            name=name,
            line_start=line_start,
            line_end=line_end,
            exported=exported,
            documentation=self._jsdoc(anchor),
            parameters=self._parameters(node),
            is_async=any(child.type == "async" for child in node.children),
            parent=parent,
            is_default_export=is_default,
        )

    def _parameters(self, node: Any) -> List[str]:
        params = node.child_by_field_name("parameters")
        if params is None:
            # x => x * 2
            single = node.child_by_field_name("parameter")
            return [node_text(single)] if single is not None else []
        names = []
        for child in params.named_children:
            if child.type == "comment":
                continue
            if child.type == "identifier":
                names.append(node_text(child))
                continue
            target = child.child_by_field_name("pattern")
            if target is None:
                target = child.child_by_field_name("left")
            names.append(node_text(target if target is not None else child))
        return names

    def _jsdoc(self, anchor: Any) -> Optional[str]:
        prev = anchor.prev_named_sibling
        if prev is None or prev.type != "comment":
            return None
        text = node_text(prev)
        if not text.startswith("/**"):
            return None
        if anchor.start_point[0] - prev.end_point[0] > 1:
            return None
        return clean_block_comment(text)


class TypeScriptExtractor(JavaScriptExtractor):
    """TypeScript/TSX extraction; interfaces, types and enums come from the language config."""

    def __init__(self, language: str = "typescript"):
        super().__init__(language)


class GoExtractor(RelationshipExtractor):
    """Go-specific extraction."""

    def __init__(self):
        super().__init__("go")

    def get_call_node_types(self) -> List[str]:
        return ["call_expression"]

    def get_import_node_types(self) -> List[str]:
        return ["import_declaration"]

    def extract_call_target(self, call_node: Any) -> Optional[Tuple[str, Optional[str]]]:
        """Extract function name from Go call expression."""
        func_node = call_node.child_by_field_name("function")
        if func_node is None:
            return None
        if func_node.type == "identifier":
            return node_text(func_node), None
        if func_node.type == "selector_expression":
            field_node = func_node.child_by_field_name("field")
            operand = func_node.child_by_field_name("operand")
            if field_node is None:
                return None
            qualifier = node_text(operand) if operand is not None and operand.type == "identifier" else None
            return node_text(field_node), qualifier
        return None

    def extract_import_info(self, import_node: Any) -> List[ImportStatement]:
        """Extract import specs from a Go import declaration."""
        statements = []
        for spec in find_nodes_by_type(import_node, ["import_spec"]):
            path_node = spec.child_by_field_name("path")
            if path_node is None:
                continue
            specifier = strip_string_quotes(node_text(path_node))
            name_node = spec.child_by_field_name("name")
            if name_node is not None and name_node.type == "package_identifier":
                local = node_text(name_node)
            else:
                local = specifier.rsplit("/", 1)[-1]
            statements.append(
                ImportStatement(specifier, spec.start_point[0] + 1, [ImportBinding(local, "*")])
            )
        return statements

    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        # Go has no inheritance; embedding is not modelled
        return {"extends": [], "implements": []}

    def collect_declarations(
        self, root: Any, lang_config: LanguageConfig, local_exports: Set[str]
    ) -> List[DeclarationNode]:
        declarations: List[DeclarationNode] = []
        for node in root.named_children:
            if node.type == "function_declaration":
                name = node_text(node.child_by_field_name("name"))
                declarations.append((self._function(name, node, node), node))

            elif node.type == "method_declaration":
                method = node_text(node.child_by_field_name("name"))
                receiver = self._receiver_type(node)
                name = f"{receiver}.{method}" if receiver else method
                decl = self._function(name, node, node, parent=receiver)
                decl.exported = method[:1].isupper()
                declarations.append((decl, node))

            elif node.type == "type_declaration":
                for spec in node.named_children:
                    if spec.type not in ("type_spec", "type_alias"):
                        continue
                    name = node_text(spec.child_by_field_name("name"))
                    type_node = spec.child_by_field_name("type")
                    kind = "type"
                    if type_node is not None and type_node.type == "struct_type":
                        kind = "class"
                    elif type_node is not None and type_node.type == "interface_type":
                        kind = "interface"
                    line_start, line_end = node_span(spec)
                    decl = Declaration(
                        kind=kind,
                        name=name,
                        line_start=line_start,
                        line_end=line_end,
                        exported=name[:1].isupper(),
                        documentation=self._leading_comments(node),
                    )
                    declarations.append((decl, type_node if type_node is not None else spec))

            elif node.type in ("const_declaration", "var_declaration"):
                for spec in find_nodes_by_type(node, ["const_spec", "var_spec"]):
                    for name_node in spec.children_by_field_name("name"):
                        name = node_text(name_node)
                        if not name[:1].isupper():
                            continue
                        line_start, line_end = node_span(spec)
                        decl = Declaration(
                            kind="variable",
                            name=name,
                            line_start=line_start,
                            line_end=line_end,
                            exported=True,
                            documentation=self._leading_comments(node),
                        )
                        declarations.append((decl, spec))
        return declarations

    def _function(self, name: str, node: Any, anchor: Any, parent: Optional[str] = None) -> Declaration:
        line_start, line_end = node_span(node)
        return Declaration(
            kind="function",
            name=name,
            line_start=line_start,
            line_end=line_end,
            exported=name[:1].isupper(),
            documentation=self._leading_comments(anchor),
            parameters=self._parameters(node),
            parent=parent,
        )

    def _receiver_type(self, method_node: Any) -> Optional[str]:
        receiver = method_node.child_by_field_name("receiver")
        if receiver is None:
            return None
        type_names = find_nodes_by_type(receiver, ["type_identifier"])
        return node_text(type_names[0]) if type_names else None

    def _parameters(self, node: Any) -> List[str]:
        params = node.child_by_field_name("parameters")
        if params is None:
            return []
        names = []
        for child in params.named_children:
            for name_node in child.children_by_field_name("name"):
                names.append(node_text(name_node))
        return names

    def _leading_comments(self, anchor: Any) -> Optional[str]:
        lines = []
        expected_row = anchor.start_point[0] - 1
        prev = anchor.prev_named_sibling
        while prev is not None and prev.type == "comment" and prev.end_point[0] == expected_row:
            text = node_text(prev)
            if text.startswith("/*"):
                lines.append(clean_block_comment(text) or "")
            else:
                lines.append(text.lstrip("/").strip())
            expected_row = prev.start_point[0] - 1
            prev = prev.prev_named_sibling
        lines.reverse()
        return "\n".join(lines).strip() or None


class JavaExtractor(RelationshipExtractor):
    """Java-specific extraction."""

    TYPE_DECLARATIONS = {
        "class_declaration",
        "record_declaration",
        "interface_declaration",
        "annotation_type_declaration",
        "enum_declaration",
    }

    def __init__(self):
        super().__init__("java")

    def get_call_node_types(self) -> List[str]:
        return ["method_invocation"]

    def get_import_node_types(self) -> List[str]:
        return ["import_declaration"]

    def extract_call_target(self, call_node: Any) -> Optional[Tuple[str, Optional[str]]]:
        """Extract method name from Java method invocation."""
        name_node = call_node.child_by_field_name("name")
        if name_node is None:
            return None
        object_node = call_node.child_by_field_name("object")
        qualifier = None
        if object_node is not None and object_node.type in ("identifier", "this"):
            qualifier = node_text(object_node)
        return node_text(name_node), qualifier

    def extract_import_info(self, import_node: Any) -> List[ImportStatement]:
        """Extract import information from Java import declaration."""
        if any(child.type == "asterisk" for child in import_node.children):
            # Package wildcard imports do not name a single file
            return []
        target = next(
            (c for c in import_node.named_children if c.type in ("scoped_identifier", "identifier")), None
        )
        if target is None:
            return []
        specifier = node_text(target)
        line = import_node.start_point[0] + 1

        if any(child.type == "static" for child in import_node.children):
            # import static com.x.Util.max -> com.x.Util
            return [ImportStatement(specifier.rsplit(".", 1)[0], line)]

        class_name = specifier.rsplit(".", 1)[-1]
        return [ImportStatement(specifier, line, [ImportBinding(class_name, class_name)])]

    def extract_inheritance_info(self, class_node: Any) -> Dict[str, List[str]]:
        """Extract superclass and interfaces from Java class node."""
        info = {"extends": [], "implements": []}
        superclass = class_node.child_by_field_name("superclass")
        if superclass is not None:
            info["extends"].extend(self._type_names(superclass))
        interfaces = class_node.child_by_field_name("interfaces")
        if interfaces is not None:
            info["implements"].extend(self._type_names(interfaces))
        for child in class_node.named_children:
            if child.type == "extends_interfaces":
                info["extends"].extend(self._type_names(child))
        return info

    def _type_names(self, node: Any) -> List[str]:
        names = []
        for child in node.named_children:
            if child.type == "type_list":
                names.extend(self._type_names(child))
            elif child.type == "type_identifier":
                names.append(node_text(child))
            elif child.type == "generic_type" and child.named_children:
                names.append(node_text(child.named_children[0]))
            elif child.type == "scoped_type_identifier":
                names.append(node_text(child))
        return names

    def collect_declarations(
        self, root: Any, lang_config: LanguageConfig, local_exports: Set[str]
    ) -> List[DeclarationNode]:
        declarations: List[DeclarationNode] = []
        for node in root.named_children:
            if node.type in self.TYPE_DECLARATIONS:
                self._collect_type(node, lang_config, declarations)
        return declarations

    def _collect_type(self, node: Any, lang_config: LanguageConfig, out: List[DeclarationNode]) -> None:
        kind = lang_config.get_declaration_kind(node.type)
        name = node_text(node.child_by_field_name("name"))
        if not kind or not name:
            return

        exported = self._is_public(node)
        info = self.extract_inheritance_info(node)
        line_start, line_end = node_span(node)
        decl = Declaration(
            kind=kind,
            name=name,
            line_start=line_start,
            line_end=line_end,
            exported=exported,
            documentation=self._javadoc(node),
            bases=info["extends"] if kind in ("class", "interface") else [],
            interfaces=info["implements"] if kind == "class" else [],
        )
        out.append((decl, node))

        body = node.child_by_field_name("body")
        if body is None:
            return
        members = list(body.named_children)
        for child in body.named_children:
            if child.type == "enum_body_declarations":
                members.extend(child.named_children)

        for member in members:
            if member.type not in ("method_declaration", "constructor_declaration"):
                continue
            if member.child_by_field_name("body") is None:
                continue
            method = node_text(member.child_by_field_name("name"))
            member_start, member_end = node_span(member)
            method_decl = Declaration(
                kind="function",
                name=f"{name}.{method}",
                line_start=member_start,
                line_end=member_end,
                exported=exported and (kind == "interface" or self._is_public(member)),
                documentation=self._javadoc(member),
                parameters=self._parameters(member),
                parent=name,
            )
            out.append((method_decl, member))

    def _is_public(self, node: Any) -> bool:
        modifiers = next((c for c in node.children if c.type == "modifiers"), None)
        if modifiers is None:
            return False
        return any(child.type == "public" for child in modifiers.children)

    def _parameters(self, node: Any) -> List[str]:
        params = node.child_by_field_name("parameters")
        if params is None:
            return []
        names = []
        for child in params.named_children:
            name_node = child.child_by_field_name("name")
            if name_node is None:
                identifiers = find_nodes_by_type(child, ["identifier"])
                name_node = identifiers[-1] if identifiers else None
            if name_node is not None:
                names.append(node_text(name_node))
        return names

    def _javadoc(self, anchor: Any) -> Optional[str]:
        prev = anchor.prev_named_sibling
        if prev is None or prev.type != "block_comment":
            return None
        text = node_text(prev)
        if not text.startswith("/**") or anchor.start_point[0] - prev.end_point[0] > 1:
            return None
        return clean_block_comment(text)


class ExtractorRegistry:
    """Registry of language-specific extractors."""

    _extractors: Dict[str, RelationshipExtractor] = {
        "python": PythonExtractor(),
        "javascript": JavaScriptExtractor(),
        "typescript": TypeScriptExtractor(),
        "tsx": TypeScriptExtractor("tsx"),
        "go": GoExtractor(),
        "java": JavaExtractor(),
    }

    @classmethod
    def get_extractor(cls, language: str) -> Optional[RelationshipExtractor]:
        """Get extractor for a specific language."""
        return cls._extractors.get(language)

    @classmethod
    def register_extractor(cls, language: str, extractor: RelationshipExtractor) -> None:
        """Register a custom extractor for a language."""
        cls._extractors[language] = extractor

    @classmethod
    def get_supported_languages(cls) -> List[str]:
        """Get list of languages with extractors."""
        return list(cls._extractors.keys())
