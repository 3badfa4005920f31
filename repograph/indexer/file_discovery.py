"""Source file discovery honouring default excludes, .gitignore and user patterns."""

import fnmatch
import logging
import os
from pathlib import Path, PurePosixPath
from typing import Callable, List, Optional, Sequence, Union

from gitignore_parser import parse_gitignore

from ..errors import ScanError
from .grammars import LanguageRegistry, get_language_registry

logger = logging.getLogger(__name__)

STATE_DIR_NAME = ".repograph"

# Directories never descended into
DEFAULT_EXCLUDE_DIRS = {
    "node_modules",
    ".git",
    "__pycache__",
    ".pytest_cache",
    "venv",
    ".venv",
    "dist",
    "build",
    "coverage",
    ".next",
    ".nuxt",
    "vendor",
    STATE_DIR_NAME,
}

# Generated or test files that would skew the graph
DEFAULT_EXCLUDE_FILES = ["*.d.ts", "*.test.*", "*.spec.*", "*.min.js"]


def _load_gitignore(root: Path) -> Optional[Callable[[str], bool]]:
    gitignore_path = root / ".gitignore"
    if not gitignore_path.exists():
        return None
    try:
        matcher = parse_gitignore(gitignore_path, base_dir=str(root))
        logger.info(f"Loaded .gitignore from {gitignore_path}")
        return matcher
    except Exception as e:
        logger.warning(f"Error parsing .gitignore: {e}")
        return None


def is_excluded_dir(name: str) -> bool:
    return name in DEFAULT_EXCLUDE_DIRS or name.startswith(".")


def is_excluded_file(rel_path: str, exclude_patterns: Sequence[str] = ()) -> bool:
    """Check a root-relative POSIX path against default and user exclude globs."""
    name = PurePosixPath(rel_path).name
    if any(fnmatch.fnmatch(name, pattern) for pattern in DEFAULT_EXCLUDE_FILES):
        return True
    pure = PurePosixPath(rel_path)
    return any(pure.match(pattern) for pattern in exclude_patterns)


def collect_source_files(
    root_dir: Union[str, Path],
    registry: Optional[LanguageRegistry] = None,
    exclude_patterns: Optional[Sequence[str]] = None,
    follow_gitignore: bool = True,
) -> List[Path]:
    """Recursively collect supported source files under a root.

    Args:
        root_dir: Directory to scan
        registry: Language registry deciding which extensions are supported
        exclude_patterns: Extra glob patterns to exclude (e.g. "generated/*", "*.pb.go")
        follow_gitignore: Whether to respect the root .gitignore

    Returns:
        Absolute file paths sorted by their root-relative POSIX path

    Raises:
        ScanError: If the root does not exist or cannot be listed
    """
    root = Path(root_dir).resolve()
    if not root.exists():
        raise ScanError(f"Root directory does not exist: {root}")
    if not root.is_dir():
        raise ScanError(f"Root path is not a directory: {root}")
    try:
        os.listdir(root)
    except OSError as e:
        raise ScanError(f"Cannot read root directory {root}: {e}") from e

    registry = registry or get_language_registry()
    exclude_patterns = list(exclude_patterns or [])
    gitignore_matcher = _load_gitignore(root) if follow_gitignore else None

    def on_walk_error(error: OSError) -> None:
        logger.warning(f"Skipping unreadable directory: {error}")

    found = []
    for dirpath, dirnames, filenames in os.walk(root, onerror=on_walk_error):
        current = Path(dirpath)
        dirnames[:] = sorted(
            d
            for d in dirnames
            if not is_excluded_dir(d)
            and not (gitignore_matcher and gitignore_matcher(str(current / d)))
        )

        for filename in filenames:
            file_path = current / filename
            if not registry.is_supported_file(filename):
                continue
            rel_path = file_path.relative_to(root).as_posix()
            if is_excluded_file(rel_path, exclude_patterns):
                continue
            if gitignore_matcher and gitignore_matcher(str(file_path)):
                continue
            found.append((rel_path, file_path))

    found.sort(key=lambda item: item[0])
    logger.info(f"Found {len(found)} source files under {root}")
    return [file_path for _, file_path in found]
