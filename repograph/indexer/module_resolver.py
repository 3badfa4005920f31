"""Resolve module specifiers to scanned file paths, per module system."""

import logging
import posixpath
from typing import AbstractSet, List, Optional

from .models import ImportStatement

logger = logging.getLogger(__name__)

ECMASCRIPT_EXTENSIONS = [".ts", ".tsx", ".mts", ".cts", ".js", ".jsx", ".mjs", ".cjs"]

# Compiled-output extensions written in ESM imports that map back to sources
ECMASCRIPT_SOURCE_EXTENSIONS = {
    ".js": [".ts", ".tsx"],
    ".jsx": [".tsx"],
    ".mjs": [".mts"],
    ".cjs": [".cts"],
}

# Directories commonly used as Python import roots
PYTHON_SOURCE_ROOTS = ["", "src", "lib"]


def _normalize(path: str) -> Optional[str]:
    normalized = posixpath.normpath(path)
    if normalized == ".." or normalized.startswith("../"):
        return None
    return "" if normalized == "." else normalized


def resolve_ecmascript_specifier(source_file: str, specifier: str, known_files: AbstractSet[str]) -> Optional[str]:
    """Resolve a relative JS/TS specifier.

    Tries the exact path, TypeScript sources for compiled extensions, each
    known extension, then an index file in the directory.

    Args:
        source_file: Root-relative path of the importing file
        specifier: Module specifier as written
        known_files: Root-relative paths of every scanned file

    Returns:
        Root-relative path of the target file, or None for packages and misses
    """
    if specifier.startswith("/"):
        base = _normalize(specifier.lstrip("/"))
    elif specifier in (".", "..") or specifier.startswith(("./", "../")):
        base = _normalize(posixpath.join(posixpath.dirname(source_file), specifier))
    else:
        # bare specifier: an npm package or a path alias
        return None
    if base is None:
        return None

    candidates = []
    if base:
        candidates.append(base)
        stem, ext = posixpath.splitext(base)
        for source_ext in ECMASCRIPT_SOURCE_EXTENSIONS.get(ext, []):
            candidates.append(stem + source_ext)
        candidates.extend(base + candidate_ext for candidate_ext in ECMASCRIPT_EXTENSIONS)
    index_base = posixpath.join(base, "index") if base else "index"
    candidates.extend(index_base + candidate_ext for candidate_ext in ECMASCRIPT_EXTENSIONS)

    for candidate in candidates:
        if candidate in known_files:
            return candidate
    return None


def _python_module_file(base: str, known_files: AbstractSet[str]) -> Optional[str]:
    if base:
        for candidate in (base + ".py", base + ".pyi", posixpath.join(base, "__init__.py")):
            if candidate in known_files:
                return candidate
    elif "__init__.py" in known_files:
        return "__init__.py"
    return None


def resolve_python_module(
    source_file: str,
    specifier: str,
    imported_names: List[str],
    known_files: AbstractSet[str],
) -> List[str]:
    """Resolve a Python import to the module file plus any imported submodules.

    ``from pkg import mod`` resolves to ``pkg/__init__.py`` (when present) and
    ``pkg/mod.py`` (when ``mod`` is a submodule).

    Args:
        source_file: Root-relative path of the importing file
        specifier: Dotted module, with leading dots for relative imports
        imported_names: Names listed after ``import`` in a from-import
        known_files: Root-relative paths of every scanned file

    Returns:
        Root-relative target paths, module first, without duplicates
    """
    dots = len(specifier) - len(specifier.lstrip("."))
    module = specifier[dots:]
    module_path = module.replace(".", "/")

    if dots:
        package_dir = posixpath.dirname(source_file)
        for _ in range(dots - 1):
            if not package_dir:
                return []
            package_dir = posixpath.dirname(package_dir)
        bases = [posixpath.join(package_dir, module_path) if module_path else package_dir]
    else:
        # Absolute imports: try the project's usual import roots, then the importer's directory
        roots = PYTHON_SOURCE_ROOTS + [posixpath.dirname(source_file)]
        bases = []
        for root in roots:
            base = posixpath.join(root, module_path) if root else module_path
            if base not in bases:
                bases.append(base)

    targets: List[str] = []
    for base in bases:
        module_file = _python_module_file(base, known_files)
        submodules = [_python_module_file(posixpath.join(base, name), known_files) for name in imported_names]
        found = [f for f in [module_file] + submodules if f is not None]
        if found:
            for target in found:
                if target not in targets and target != source_file:
                    targets.append(target)
            break
    return targets


def resolve_java_import(specifier: str, known_files: AbstractSet[str]) -> Optional[str]:
    """Resolve a fully qualified class name to its source file by path suffix."""
    suffix = specifier.replace(".", "/") + ".java"
    matches = sorted(
        (f for f in known_files if f == suffix or f.endswith("/" + suffix)),
        key=lambda f: (len(f), f),
    )
    return matches[0] if matches else None


def resolve_import(
    source_file: str,
    statement: ImportStatement,
    module_system: str,
    known_files: AbstractSet[str],
) -> List[str]:
    """Resolve an import statement to scanned files.

    Args:
        source_file: Root-relative path of the importing file
        statement: Import statement from the parser
        module_system: ecmascript, python, java or go
        known_files: Root-relative paths of every scanned file

    Returns:
        Target file paths; empty when the import points outside the scanned tree
    """
    if module_system == "ecmascript":
        target = resolve_ecmascript_specifier(source_file, statement.specifier, known_files)
        return [target] if target and target != source_file else []

    if module_system == "python":
        names = [binding.imported for binding in statement.bindings]
        return resolve_python_module(source_file, statement.specifier, names, known_files)

    if module_system == "java":
        target = resolve_java_import(statement.specifier, known_files)
        return [target] if target and target != source_file else []

    # Go imports name packages (directories), not files
    return []
