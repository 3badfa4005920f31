"""Intermediate representation produced by the source parser."""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Set


@dataclass
class CallSite:
    """A call expression found inside a declaration body."""

    name: str  # called identifier (last segment for member calls)
    qualifier: Optional[str]  # receiver identifier for `obj.name()`, e.g. "self", "ns"
    line: int


@dataclass
class Declaration:
    """A top-level declaration (or class member) found in one file."""

    kind: str  # function, class, interface, type, variable, enum
    name: str  # methods are "Class.method"
    line_start: int
    line_end: int
    exported: bool = False
    documentation: Optional[str] = None
    decision_points: Optional[Dict[str, int]] = None  # functions only
    parameters: List[str] = field(default_factory=list)
    is_async: bool = False
    parent: Optional[str] = None  # owning class for methods
    bases: List[str] = field(default_factory=list)
    interfaces: List[str] = field(default_factory=list)
    calls: List[CallSite] = field(default_factory=list)
    references: Set[str] = field(default_factory=set)
    is_default_export: bool = False

    @property
    def short_name(self) -> str:
        return self.name.rsplit(".", 1)[-1] if self.parent else self.name


@dataclass
class ImportBinding:
    """A name an import statement introduces into the importing file."""

    local: str  # name used inside the importing file
    imported: str  # exported name, "default", or "*" for a namespace import


@dataclass
class ImportStatement:
    """An import, require, or re-export statement."""

    specifier: str  # module specifier as written ("./util", "..models", "java.util.List")
    line: int
    bindings: List[ImportBinding] = field(default_factory=list)
    type_only: bool = False
    is_reexport: bool = False
    reexported: List[str] = field(default_factory=list)  # "*" for `export * from`
    wildcard: bool = False  # Python `from x import *`


@dataclass
class ParsedFile:
    """Everything the extractor needs from one successfully parsed file."""

    path: str  # POSIX path relative to the scan root
    language: str
    line_count: int
    declarations: List[Declaration] = field(default_factory=list)
    imports: List[ImportStatement] = field(default_factory=list)
    local_exports: Set[str] = field(default_factory=set)
    default_export: Optional[str] = None


@dataclass
class ParseFailure:
    """A file that could not be read or parsed."""

    path: str
    error: str
    line_count: int = 0
