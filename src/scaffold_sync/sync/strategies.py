"""File-level merge strategies for user-owned template targets.

``merge_file`` dispatches on the ``MergeStrategy`` chosen by
``risk.determine_strategy``.  Every strategy takes the template content
recorded at the previous deploy (``base``, may be ``None``), the file as
it is on disk now (``current``) and the freshly rendered template
(``updated``), and returns a ``MergeResult``.

Conflict markers follow Git convention with custom labels:
``<<<<<<< CURRENT``, ``=======``, ``>>>>>>> TEMPLATE``.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Mapping
from typing import Any

from merge3 import Merge3

from scaffold_sync.errors import MergeParseError

from .merger import (
    ValueKind,
    dump_yaml,
    load_yaml_mapping,
    merge_trees_2way,
    value_kind,
    values_equal,
)
from .models import MergeResult, MergeStrategy, TextConflict

logger = logging.getLogger(__name__)

START_MARKER = "<<<<<<< CURRENT"
MID_MARKER = "======="
END_MARKER = ">>>>>>> TEMPLATE"

USER_PATTERNS_HEADER = "# User Custom Patterns (preserved by scaffold-sync)"

_NO_SYSTEM_FIELDS: frozenset[str] = frozenset()


def _ensure_newline(lines: list[str]) -> list[str]:
    if lines and not lines[-1].endswith("\n"):
        return lines[:-1] + [lines[-1] + "\n"]
    return lines


def _strip_block(lines: list[str]) -> str:
    return "".join(lines).rstrip("\n")


# ---------------------------------------------------------------------------
# LineMerge
# ---------------------------------------------------------------------------


def merge_lines(base: str | None, current: str, updated: str) -> MergeResult:
    """Three-way line merge using ``merge3``.

    Without a baseline there is nothing to tell user edits from template
    edits: an unchanged file takes the template, anything else keeps the
    user's content and records a whole-file conflict.
    """
    if base is None:
        if current == updated:
            return MergeResult(content=updated, strategy=MergeStrategy.LINE_MERGE)
        return MergeResult(
            content=current,
            strategy=MergeStrategy.LINE_MERGE,
            has_conflict=True,
            conflicts=[
                TextConflict(location="whole file", current=current, updated=updated)
            ],
        )

    m3 = Merge3(
        base.splitlines(True),
        current.splitlines(True),
        updated.splitlines(True),
    )

    out: list[str] = []
    conflicts: list[TextConflict] = []
    for group in m3.merge_groups():
        kind = group[0]
        if kind in ("unchanged", "a", "same", "b"):
            out.extend(group[1])
            continue

        # ("conflict", base_lines, a_lines, b_lines)
        _, _, a_lines, b_lines = group
        start = len(out) + 1
        conflicts.append(
            TextConflict(
                location=f"line {start}",
                current=_strip_block(a_lines),
                updated=_strip_block(b_lines),
            )
        )
        out = _ensure_newline(out)
        out.append(START_MARKER + "\n")
        out.extend(_ensure_newline(list(a_lines)))
        out.append(MID_MARKER + "\n")
        out.extend(_ensure_newline(list(b_lines)))
        out.append(END_MARKER + "\n")

    return MergeResult(
        content="".join(out),
        strategy=MergeStrategy.LINE_MERGE,
        has_conflict=bool(conflicts),
        conflicts=conflicts,
    )


# ---------------------------------------------------------------------------
# EntryMerge
# ---------------------------------------------------------------------------


def _entry(line: str) -> str | None:
    stripped = line.strip()
    if not stripped or stripped.startswith("#"):
        return None
    return stripped


def _entries(text: str) -> list[str]:
    seen: dict[str, None] = {}
    for line in text.splitlines():
        entry = _entry(line)
        if entry is not None:
            seen.setdefault(entry)
    return list(seen)


def merge_entries(base: str | None, current: str, updated: str) -> MergeResult:
    """Set-union merge for ignore-style files.

    Template lines are kept in template order.  With a baseline, entries
    the user deleted are not brought back.  Entries only the user has are
    appended under ``USER_PATTERNS_HEADER``.
    """
    current_entries = set(_entries(current))
    template_entries = set(_entries(updated))
    base_entries = set(_entries(base)) if base is not None else set()

    lines: list[str] = []
    emitted: set[str] = set()
    for line in updated.splitlines():
        entry = _entry(line)
        if entry is None:
            lines.append(line)
            continue
        if entry in emitted:
            continue
        if base is not None and entry in base_entries and entry not in current_entries:
            continue
        emitted.add(entry)
        lines.append(line)

    additions = [
        e
        for e in _entries(current)
        if e not in template_entries and e not in base_entries
    ]
    if additions:
        while lines and not lines[-1].strip():
            lines.pop()
        if lines:
            lines.append("")
        lines.append(USER_PATTERNS_HEADER)
        lines.extend(additions)

    content = "\n".join(lines)
    if content and (additions or updated.endswith("\n")):
        content += "\n"
    return MergeResult(content=content, strategy=MergeStrategy.ENTRY_MERGE)


# ---------------------------------------------------------------------------
# SectionMerge
# ---------------------------------------------------------------------------


def split_sections(text: str) -> dict[str, str]:
    """Split Markdown on ``## `` headings.

    Returns an ordered mapping of heading line to section text (heading
    included).  Text before the first heading is keyed by ``""`` and only
    present when it holds something besides whitespace.
    """
    sections: dict[str, list[str]] = {"": []}
    key = ""
    for line in text.splitlines(True):
        if line.startswith("## "):
            key = line.strip()
            # Repeated headings collapse into the first occurrence.
            sections.setdefault(key, [])
        sections[key].append(line)

    result: dict[str, str] = {}
    for heading, lines in sections.items():
        chunk = "".join(lines)
        if heading == "" and not chunk.strip():
            continue
        result[heading] = chunk
    return result


def _same(a: str | None, b: str | None) -> bool:
    if a is None or b is None:
        return a is b
    return [line.rstrip() for line in a.strip("\n").splitlines()] == [
        line.rstrip() for line in b.strip("\n").splitlines()
    ]


def merge_sections(base: str | None, current: str, updated: str) -> MergeResult:
    """Section-level three-way merge for Markdown instruction files."""
    base_sections = split_sections(base) if base is not None else {}
    current_sections = split_sections(current)
    updated_sections = split_sections(updated)

    chunks: list[str] = []
    conflicts: list[TextConflict] = []

    for heading, template_text in updated_sections.items():
        base_text = base_sections.get(heading)
        user_text = current_sections.get(heading)

        if user_text is None:
            # User deleted a section the template did not touch.
            if base_text is not None and _same(base_text, template_text):
                continue
            chunks.append(template_text)
        elif _same(user_text, template_text) or _same(user_text, base_text):
            chunks.append(template_text)
        elif _same(template_text, base_text):
            chunks.append(user_text)
        else:
            chunks.append(user_text)
            conflicts.append(
                TextConflict(
                    location=heading or "(preamble)",
                    current=user_text.rstrip("\n"),
                    updated=template_text.rstrip("\n"),
                )
            )

    for heading, user_text in current_sections.items():
        if heading in updated_sections:
            continue
        base_text = base_sections.get(heading)
        if base_text is not None and _same(user_text, base_text):
            # Template removed it and the user never changed it.
            continue
        chunks.append(user_text)

    content = "\n".join(chunk.rstrip("\n") for chunk in chunks)
    if content and updated.endswith("\n"):
        content += "\n"
    return MergeResult(
        content=content,
        strategy=MergeStrategy.SECTION_MERGE,
        has_conflict=bool(conflicts),
        conflicts=conflicts,
    )


# ---------------------------------------------------------------------------
# JSONMerge / YAMLDeep
# ---------------------------------------------------------------------------


def _merge_structured_tree(
    new: Mapping[str, Any],
    current: Mapping[str, Any],
    base: Mapping[str, Any],
    prefix: str,
    conflicts: list[TextConflict],
) -> dict[str, Any]:
    result: dict[str, Any] = {}

    for key, new_value in new.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if key not in current:
            result[key] = new_value
            continue

        cur_value = current[key]
        if (
            value_kind(new_value) is ValueKind.MAP
            and value_kind(cur_value) is ValueKind.MAP
        ):
            base_value = base.get(key)
            result[key] = _merge_structured_tree(
                new_value,
                cur_value,
                base_value if value_kind(base_value) is ValueKind.MAP else {},
                path,
                conflicts,
            )
            continue

        if key in base and values_equal(cur_value, base[key]):
            result[key] = new_value
            continue

        result[key] = cur_value
        template_changed = key not in base or not values_equal(new_value, base[key])
        if template_changed and not values_equal(cur_value, new_value):
            conflicts.append(
                TextConflict(location=path, current=str(cur_value), updated=str(new_value))
            )

    for key, cur_value in current.items():
        if key not in new and key not in base:
            result[key] = cur_value

    return result


def _load_json_object(text: str, label: str) -> dict[str, Any]:
    if not text.strip():
        return {}
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MergeParseError(str(exc), operation="parse", path=label) from exc
    if not isinstance(data, dict):
        raise MergeParseError(
            f"expected an object at the root, got {type(data).__name__}",
            operation="parse",
            path=label,
        )
    return data


def _dump_json(data: Mapping[str, Any]) -> str:
    return json.dumps(data, indent=2, ensure_ascii=False) + "\n"


def merge_structured(
    strategy: MergeStrategy,
    base: str | None,
    current: str,
    updated: str,
) -> MergeResult:
    """Structured three-way merge for JSON and YAML documents.

    Raises:
        MergeParseError: If any side fails to parse or has a non-mapping root.
    """
    if strategy == MergeStrategy.JSON_MERGE:
        load, dump = _load_json_object, _dump_json
    else:
        load, dump = load_yaml_mapping, dump_yaml

    new_tree = load(updated, "template")
    current_tree = load(current, "current")

    conflicts: list[TextConflict] = []
    if base is None:
        merged = merge_trees_2way(new_tree, current_tree, _NO_SYSTEM_FIELDS)
    else:
        merged = _merge_structured_tree(
            new_tree, current_tree, load(base, "baseline"), "", conflicts
        )

    return MergeResult(
        content=dump(merged),
        strategy=strategy,
        has_conflict=bool(conflicts),
        conflicts=conflicts,
    )


# ---------------------------------------------------------------------------
# Dispatcher
# ---------------------------------------------------------------------------


def merge_file(
    strategy: MergeStrategy,
    base: str | None,
    current: str,
    updated: str,
) -> MergeResult:
    """Merge one file with the given strategy.

    Args:
        strategy: Strategy from ``risk.determine_strategy``.
        base: Template content from the previous deploy, or ``None``.
        current: The file as it is on disk.
        updated: The newly rendered template content.

    Returns:
        A ``MergeResult``; text strategies embed conflict markers,
        structured strategies keep the user's value and list conflicts.

    Raises:
        MergeParseError: For unparsable JSON/YAML input.
    """
    logger.debug("Merging with %s (baseline: %s)", strategy.value, base is not None)
    if strategy == MergeStrategy.SECTION_MERGE:
        return merge_sections(base, current, updated)
    if strategy == MergeStrategy.ENTRY_MERGE:
        return merge_entries(base, current, updated)
    if strategy in (MergeStrategy.JSON_MERGE, MergeStrategy.YAML_DEEP):
        return merge_structured(strategy, base, current, updated)
    return merge_lines(base, current, updated)
