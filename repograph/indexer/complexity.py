"""McCabe cyclomatic complexity from tree-sitter control-flow nodes."""

from collections import Counter
from typing import Any, Dict, Mapping

from .grammars import LanguageConfig


def count_decision_points(node: Any, lang_config: LanguageConfig) -> Dict[str, int]:
    """Count branching constructs beneath a function node.

    Every descendant is visited, so nested callbacks and lambdas contribute to
    the enclosing function's score.

    Args:
        node: Tree-sitter node of the function (or function-valued expression)
        lang_config: Language configuration listing decision node types

    Returns:
        Mapping of construct name to occurrence count
    """
    counts: Counter = Counter()
    stack = [node]

    while stack:
        current = stack.pop()
        node_type = current.type

        if node_type in lang_config.decision_types:
            if not _is_default_case(current, lang_config):
                counts[node_type] += 1
        elif node_type in lang_config.logical_operator_types:
            operator = current.child_by_field_name("operator")
            if operator is not None and operator.type in lang_config.logical_operators:
                counts[operator.type] += 1

        stack.extend(current.children)

    return dict(counts)


def _is_default_case(node: Any, lang_config: LanguageConfig) -> bool:
    if not node.children:
        return False
    if node.children[0].type in lang_config.default_case_markers:
        return True
    if lang_config.default_case_patterns and node.child_by_field_name("guard") is None:
        # `case _:` is the catch-all of a match statement
        patterns = [child for child in node.named_children if child.type == "case_pattern"]
        if len(patterns) == 1:
            text = patterns[0].text.decode("utf-8", errors="replace")
            return text in lang_config.default_case_patterns
    return False


def cyclomatic_complexity(decision_points: Mapping[str, int]) -> int:
    """Base score 1 plus one per decision point."""
    return 1 + sum(decision_points.values())
