"""Three-way and two-way structural merge of parsed key-value trees.

The merge folds a user's previous configuration (``old``) into freshly
deployed template content (``new``).  When the template's own previous
content (``base``) is available, it tells apart values the user never
touched from values the user customized:

* key only in ``new``            -> template added it, adopt it.
* ``old`` equals ``base``        -> user left the default, take the new default.
* ``old`` differs from ``base``  -> user customized it, keep the user value.
* key absent from ``base``       -> user added it, keep the user value.
* key only in ``old``            -> template removed it, drop it.
* system fields                  -> always the new value.

Without a baseline the two-way merge keeps every user value (and every
user-only key): it errs in the user's favour.

Tree values are discriminated explicitly with ``value_kind`` so the
"map on one side, scalar on the other" case is an ordinary leaf
comparison rather than a failed recursion.
"""

from __future__ import annotations

from collections.abc import Mapping
from enum import Enum
from typing import Any

import yaml

from scaffold_sync.errors import MergeParseError

SYSTEM_FIELDS = frozenset({"template_version", "version"})


class ValueKind(str, Enum):
    SCALAR = "scalar"
    LIST = "list"
    MAP = "map"


def value_kind(value: Any) -> ValueKind:
    """Classify a parsed tree value."""
    if isinstance(value, Mapping):
        return ValueKind.MAP
    if isinstance(value, (list, tuple)):
        return ValueKind.LIST
    return ValueKind.SCALAR


def values_equal(a: Any, b: Any) -> bool:
    """Value-based equality for leaves parsed from a structured format.

    ``None`` only equals ``None``.  Otherwise values are equal when they
    compare equal or render to the same string (``1`` and ``"1"``).
    """
    if a is None and b is None:
        return True
    if a is None or b is None:
        return False
    return a == b or str(a) == str(b)


def _as_map(value: Any) -> Mapping[str, Any]:
    return value if value_kind(value) is ValueKind.MAP else {}


def merge_trees_3way(
    new: Mapping[str, Any],
    old: Mapping[str, Any] | None,
    base: Mapping[str, Any] | None,
    system_fields: frozenset[str] = SYSTEM_FIELDS,
) -> dict[str, Any]:
    """Three-way merge driven by the template baseline.

    Args:
        new: Freshly deployed template tree.
        old: The user's pre-sync tree (``None`` on first sync).
        base: The template's pre-sync tree (``None`` when not captured).
        system_fields: Keys that always take the new value at any depth.

    Returns:
        The merged tree, shaped like *new*.
    """
    old = old or {}
    base = base or {}
    result: dict[str, Any] = {}

    for key, new_value in new.items():
        if key in system_fields:
            result[key] = new_value
            continue
        if key not in old:
            result[key] = new_value
            continue

        old_value = old[key]
        if (
            value_kind(new_value) is ValueKind.MAP
            and value_kind(old_value) is ValueKind.MAP
        ):
            result[key] = merge_trees_3way(
                new_value, old_value, _as_map(base.get(key)), system_fields
            )
            continue

        # Leaf pair: scalars, lists, or a map/non-map mismatch.
        if key not in base:
            result[key] = old_value
        elif values_equal(old_value, base[key]):
            result[key] = new_value
        else:
            result[key] = old_value

    return result


def merge_trees_2way(
    new: Mapping[str, Any],
    old: Mapping[str, Any] | None,
    system_fields: frozenset[str] = SYSTEM_FIELDS,
) -> dict[str, Any]:
    """Two-way fallback: new structure, old values win, old-only keys are kept.

    System fields always come from *new*; a stale one only present in *old*
    is dropped.
    """
    result: dict[str, Any] = dict(new)

    for key, old_value in (old or {}).items():
        if key in system_fields:
            continue
        if key not in new:
            result[key] = old_value
            continue

        new_value = new[key]
        if (
            value_kind(new_value) is ValueKind.MAP
            and value_kind(old_value) is ValueKind.MAP
        ):
            result[key] = merge_trees_2way(new_value, old_value, system_fields)
        else:
            result[key] = old_value

    return result


# ---------------------------------------------------------------------------
# YAML entry points
# ---------------------------------------------------------------------------


def load_yaml_mapping(text: str, label: str = "document") -> dict[str, Any]:
    """Parse YAML text into a mapping.

    Empty documents yield ``{}``.

    Raises:
        MergeParseError: On syntax errors or a non-mapping root.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise MergeParseError(str(exc), operation="parse", path=label) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise MergeParseError(
            f"expected a mapping at the root, got {type(data).__name__}",
            operation="parse",
            path=label,
        )
    return data


def dump_yaml(data: Mapping[str, Any]) -> str:
    return yaml.safe_dump(
        dict(data),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )


def merge_yaml_3way(new_text: str, old_text: str, base_text: str) -> str:
    """Three-way merge of YAML documents; raises ``MergeParseError`` on bad input."""
    new = load_yaml_mapping(new_text, "new")
    old = load_yaml_mapping(old_text, "old")
    base = load_yaml_mapping(base_text, "base")
    return dump_yaml(merge_trees_3way(new, old, base))


def merge_yaml_2way(new_text: str, old_text: str) -> str:
    """Two-way merge of YAML documents; raises ``MergeParseError`` on bad input."""
    new = load_yaml_mapping(new_text, "new")
    old = load_yaml_mapping(old_text, "old")
    return dump_yaml(merge_trees_2way(new, old))
