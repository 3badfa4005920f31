"""Project configuration loaded from repograph.config.json."""

import json
import os
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from ..errors import ConfigError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "repograph.config.json"


@dataclass(frozen=True)
class ComplexityThresholds:
    """Upper bounds (inclusive) of the low/medium/high complexity categories."""

    low: int = 5
    medium: int = 10
    high: int = 20

    def __post_init__(self):
        if self.low < 1:
            raise ConfigError(f"complexity.low must be >= 1, got {self.low}")
        if not self.low <= self.medium <= self.high:
            raise ConfigError(
                "complexity thresholds must satisfy low <= medium <= high, "
                f"got {self.low}/{self.medium}/{self.high}"
            )

    def category(self, complexity: int) -> str:
        """Map a complexity score onto low, medium, high or veryHigh."""
        if complexity <= self.low:
            return "low"
        if complexity <= self.medium:
            return "medium"
        if complexity <= self.high:
            return "high"
        return "veryHigh"


DEFAULT_THRESHOLDS = ComplexityThresholds()


@dataclass
class HistoryConfig:
    max_snapshots: int = 100


@dataclass
class GitConfig:
    max_commits_per_file: int = 50
    batch_size: int = 10


@dataclass
class LimitsConfig:
    default_hotspots_limit: int = 10
    max_report_hotspots: int = 20
    max_cycles: int = 1000


@dataclass
class RefactorConfig:
    long_function_lines: int = 50


@dataclass
class ScanConfig:
    max_workers: int = 4
    exclude_patterns: List[str] = field(default_factory=list)
    follow_gitignore: bool = True
    max_file_size_bytes: int = 1024 * 1024


@dataclass
class ProjectConfig:
    """Per-project settings. Every section falls back to its defaults."""

    complexity: ComplexityThresholds = field(default_factory=ComplexityThresholds)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    git: GitConfig = field(default_factory=GitConfig)
    limits: LimitsConfig = field(default_factory=LimitsConfig)
    refactor: RefactorConfig = field(default_factory=RefactorConfig)
    scan: ScanConfig = field(default_factory=ScanConfig)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProjectConfig":
        """Build a config from the camelCase JSON layout.

        Args:
            data: Parsed contents of repograph.config.json

        Returns:
            Validated project configuration

        Raises:
            ConfigError: If a value has the wrong type or is out of range
        """
        if not isinstance(data, dict):
            raise ConfigError("Config root must be a JSON object")

        complexity = _section(data, "complexity")
        history = _section(data, "history")
        git = _section(data, "git")
        limits = _section(data, "limits")
        refactor = _section(data, "refactor")
        scan = _section(data, "scan")

        exclude_patterns = scan.get("excludePatterns", [])
        if not isinstance(exclude_patterns, list) or not all(
            isinstance(p, str) for p in exclude_patterns
        ):
            raise ConfigError("scan.excludePatterns must be a list of strings")

        follow_gitignore = scan.get("followGitignore", True)
        if not isinstance(follow_gitignore, bool):
            raise ConfigError("scan.followGitignore must be a boolean")

        return cls(
            complexity=ComplexityThresholds(
                low=_positive_int(complexity, "complexity", "low", 5),
                medium=_positive_int(complexity, "complexity", "medium", 10),
                high=_positive_int(complexity, "complexity", "high", 20),
            ),
            history=HistoryConfig(
                max_snapshots=_positive_int(history, "history", "maxSnapshots", 100),
            ),
            git=GitConfig(
                max_commits_per_file=_positive_int(git, "git", "maxCommitsPerFile", 50),
                batch_size=_positive_int(git, "git", "batchSize", 10),
            ),
            limits=LimitsConfig(
                default_hotspots_limit=_positive_int(limits, "limits", "defaultHotspotsLimit", 10),
                max_report_hotspots=_positive_int(limits, "limits", "maxReportHotspots", 20),
                max_cycles=_positive_int(limits, "limits", "maxCycles", 1000),
            ),
            refactor=RefactorConfig(
                long_function_lines=_positive_int(refactor, "refactor", "longFunctionLines", 50),
            ),
            scan=ScanConfig(
                max_workers=_positive_int(scan, "scan", "maxWorkers", 4),
                exclude_patterns=list(exclude_patterns),
                follow_gitignore=follow_gitignore,
                max_file_size_bytes=_positive_int(scan, "scan", "maxFileSizeBytes", 1024 * 1024),
            ),
        )


def _section(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    section = data.get(name, {})
    if not isinstance(section, dict):
        raise ConfigError(f"Config section '{name}' must be an object")
    return section


def _positive_int(section: Dict[str, Any], section_name: str, key: str, default: int) -> int:
    value = section.get(key, default)
    # bool is an int subclass
    if isinstance(value, bool) or not isinstance(value, int):
        raise ConfigError(f"{section_name}.{key} must be an integer, got {value!r}")
    if value < 1:
        raise ConfigError(f"{section_name}.{key} must be >= 1, got {value}")
    return value


def load_project_config(root_dir: Union[str, Path]) -> ProjectConfig:
    """Load repograph.config.json from a project root.

    Args:
        root_dir: Project root directory

    Returns:
        Project configuration (defaults when no config file exists)

    Raises:
        ConfigError: If the file exists but is not valid
    """
    config_path = Path(root_dir) / CONFIG_FILE_NAME
    if not config_path.exists():
        return ProjectConfig()

    try:
        with open(config_path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"Invalid JSON in {config_path}: {e}") from e
    except OSError as e:
        raise ConfigError(f"Could not read {config_path}: {e}") from e

    config = ProjectConfig.from_dict(data)
    logger.info(f"Loaded project config from {config_path}")
    return config


class ConfigCache:
    """Caches loaded project configs keyed by resolved root directory."""

    def __init__(self):
        self._configs: Dict[str, ProjectConfig] = {}

    def get(self, root_dir: Union[str, Path]) -> ProjectConfig:
        key = str(Path(root_dir).resolve())
        config = self._configs.get(key)
        if config is None:
            config = load_project_config(key)
            self._configs[key] = config
        return config

    def clear(self) -> None:
        self._configs.clear()

    def __len__(self) -> int:
        return len(self._configs)


def resolve_config(
    root_dir: Union[str, Path],
    config: Optional[ProjectConfig] = None,
    cache: Optional[ConfigCache] = None,
) -> ProjectConfig:
    """Return an explicit config, a cached one, or load it from disk."""
    if config is not None:
        return config
    if cache is not None:
        return cache.get(root_dir)
    return load_project_config(root_dir)


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def get_env_config() -> Dict[str, Any]:
    """Get process-level configuration from environment variables."""
    return {
        "workspace_path": os.getenv("WORKSPACE_PATH", "/workspace"),
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_file": os.getenv("LOG_FILE", "/tmp/repograph.log"),
        "include_git_history": _env_flag("INCLUDE_GIT_HISTORY", "true"),
        "enable_watcher": _env_flag("ENABLE_FILE_WATCHER", "false"),
        "watcher_debounce": float(os.getenv("WATCHER_DEBOUNCE_SECONDS", "2.0")),
    }
