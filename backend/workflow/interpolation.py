"""Variable interpolation and condition evaluation.

Placeholders use ``{{name}}`` syntax and are matched literally (no spaces
are trimmed inside the braces).

Resolution runs as successive passes over the whole intermediate string:
1. Variables: every ``{{key}}`` for a variable name is replaced.
2. Params: the same over the result of pass 1. A param can only hit a
   placeholder still present after pass 1, so a name defined in both
   mappings resolves to the variable. A variable value that itself contains
   ``{{param}}`` is picked up here.
3. ``{{_repo:org/repo}}`` is looked up in the repo path table (fallback ``~``).
4. Every placeholder still left becomes an empty string.

Treat variables and params as disjoint namespaces.
"""

import re
from typing import Mapping, Optional

_PLACEHOLDER = re.compile(r"\{\{([^{}]*)\}\}")
_REPO_PLACEHOLDER = re.compile(r"\{\{_repo:([^}]+)\}\}")
REPO_FALLBACK = "~"


def _replace_all(text: str, mapping: Mapping[str, str]) -> str:
    for key, value in mapping.items():
        text = text.replace(f"{{{{{key}}}}}", str(value))
    return text


def interpolate(
    text: str,
    variables: Mapping[str, str],
    params: Mapping[str, str],
    repos: Optional[Mapping[str, str]] = None,
) -> str:
    """Replace ``{{name}}`` placeholders with variable and param values.

    Args:
        text: Template text
        variables: Values produced by steps
        params: Values supplied by the caller
        repos: ``org/repo`` -> local path table for ``{{_repo:org/repo}}``

    Returns:
        The interpolated text; unknown placeholders resolve to ``""``.

    Example:
        >>> interpolate("Hi {{name}}, {{missing}}!", {"name": "Ann"}, {})
        'Hi Ann, !'
    """
    if "{{" not in text:
        return text

    result = _replace_all(text, variables)
    result = _replace_all(result, params)

    repos = repos or {}
    result = _REPO_PLACEHOLDER.sub(
        lambda m: repos.get(m.group(1).strip()) or REPO_FALLBACK, result
    )
    return _PLACEHOLDER.sub("", result)


def truncate_for_display(text: str, max_len: int) -> str:
    """Truncate text for display, adding an ellipsis if too long."""
    if len(text) <= max_len:
        return text
    return f"{text[:max_len]}..."


def _strip_quotes(value: str) -> str:
    value = value.strip()
    if len(value) >= 2 and value[0] == value[-1] and value[0] in ("'", '"'):
        return value[1:-1]
    return value


def evaluate_condition(condition: str) -> bool:
    """Evaluate an already-interpolated control.if condition.

    Supports:
    - ``left == 'literal'`` and ``left != "literal"``: exact string comparison,
      no numeric coercion. ``==`` takes priority when present anywhere.
    - Truthiness: anything except ``""``, ``"false"`` and ``"0"``.
    """
    trimmed = condition.strip()

    eq_pos = trimmed.find("==")
    if eq_pos != -1:
        left = trimmed[:eq_pos].strip()
        right = _strip_quotes(trimmed[eq_pos + 2:])
        return left == right

    neq_pos = trimmed.find("!=")
    if neq_pos != -1:
        left = trimmed[:neq_pos].strip()
        right = _strip_quotes(trimmed[neq_pos + 2:])
        return left != right

    return trimmed not in ("", "false", "0")
