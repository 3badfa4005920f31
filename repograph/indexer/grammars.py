"""Per-language grammar data: which tree-sitter nodes declare symbols, branch, or import."""

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, FrozenSet, List, Optional

from ..errors import ConfigError

logger = logging.getLogger(__name__)

DEFAULT_LANGUAGES_PATH = Path(__file__).parent.parent / "config" / "languages.json"

MODULE_SYSTEMS = ("ecmascript", "python", "go", "java")


@dataclass(frozen=True)
class LanguageConfig:
    """Node-type tables driving extraction and complexity for one language.

    Attributes:
        name: Language name (python, typescript, ...)
        extensions: File extensions, lower case with the leading dot
        tree_sitter_language: Grammar module key used by the source parser
        module_system: Import resolution rules (ecmascript, python, go, java)
        declaration_types: Node type -> {"kind": graph node kind, "name_field": field}
        decision_types: Node types that add a branch to cyclomatic complexity
        logical_operator_types: Node types that may hold a short-circuit operator
        logical_operators: Operator tokens counted as decision points
        default_case_markers: First-child token types of a default switch label
        default_case_patterns: Match patterns that make a case clause the catch-all
        reference_types: Identifier node types collected as "uses" references
    """

    name: str
    extensions: List[str]
    tree_sitter_language: str
    module_system: str
    declaration_types: Dict[str, Dict[str, str]] = field(default_factory=dict)
    decision_types: FrozenSet[str] = frozenset()
    logical_operator_types: FrozenSet[str] = frozenset()
    logical_operators: FrozenSet[str] = frozenset()
    default_case_markers: FrozenSet[str] = frozenset()
    default_case_patterns: FrozenSet[str] = frozenset()
    reference_types: FrozenSet[str] = frozenset()

    @classmethod
    def from_dict(cls, name: str, data: Dict[str, Any]) -> "LanguageConfig":
        """Build one language entry of languages.json.

        Raises:
            ConfigError: If a required key is missing or the module system is unknown
        """
        try:
            module_system = data["module_system"]
            if module_system not in MODULE_SYSTEMS:
                raise ConfigError(f"Language {name} has unknown module system '{module_system}'")
            return cls(
                name=name,
                extensions=[ext.lower() for ext in data["extensions"]],
                tree_sitter_language=data["tree_sitter_language"],
                module_system=module_system,
                declaration_types=dict(data["declaration_types"]),
                decision_types=frozenset(data["decision_types"]),
                logical_operator_types=frozenset(data.get("logical_operator_types", [])),
                logical_operators=frozenset(data.get("logical_operators", [])),
                default_case_markers=frozenset(data.get("default_case_markers", [])),
                default_case_patterns=frozenset(data.get("default_case_patterns", [])),
                reference_types=frozenset(data.get("reference_types", ["identifier"])),
            )
        except (KeyError, TypeError) as e:
            raise ConfigError(f"Invalid grammar config for {name}: {e}") from e

    def get_declaration_kind(self, node_type: str) -> Optional[str]:
        """Graph node kind (function, class, ...) declared by a node type, if any."""
        entry = self.declaration_types.get(node_type)
        return entry.get("kind") if entry else None

    def get_name_field(self, node_type: str) -> Optional[str]:
        entry = self.declaration_types.get(node_type)
        return entry.get("name_field") if entry else None


class LanguageRegistry:
    """Supported languages keyed by name, with an extension lookup."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize language registry.

        Args:
            config_path: languages.json to load (defaults to the bundled one)

        Raises:
            ConfigError: If the file cannot be read or an entry is malformed
        """
        self.config_path = config_path or DEFAULT_LANGUAGES_PATH
        self.languages: Dict[str, LanguageConfig] = {}
        self.extension_map: Dict[str, str] = {}
        self._load_config()

    def _load_config(self) -> None:
        try:
            with open(self.config_path, "r", encoding="utf-8") as f:
                config_data = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.error(f"Error loading language config from {self.config_path}: {e}")
            raise ConfigError(f"Could not load {self.config_path}: {e}") from e

        for lang_name, entry in config_data.items():
            language = LanguageConfig.from_dict(lang_name, entry)
            self.languages[lang_name] = language
            for ext in language.extensions:
                self.extension_map[ext] = lang_name

        logger.info(f"Loaded {len(self.languages)} language configurations")

    def detect_language(self, file_path: str) -> Optional[str]:
        """Language name for a path by its extension, or None."""
        return self.extension_map.get(Path(file_path).suffix.lower())

    def get_language_config(self, language: str) -> Optional[LanguageConfig]:
        return self.languages.get(language)

    def get_supported_languages(self) -> List[str]:
        return list(self.languages)

    def is_supported_file(self, file_path: str) -> bool:
        return self.detect_language(file_path) is not None


# Grammar tables are read-only, so one registry serves every scan
_registry: Optional[LanguageRegistry] = None


def get_language_registry(config_path: Optional[Path] = None) -> LanguageRegistry:
    """Get the shared language registry.

    Args:
        config_path: Path to config file (only used on first call)
    """
    global _registry
    if _registry is None:
        _registry = LanguageRegistry(config_path)
    return _registry
