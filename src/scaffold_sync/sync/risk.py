"""Per-file risk tier and merge strategy classification.

Pure functions of the file name and an existence flag.  The results feed
the confirmation summary, so they must match what the deployer actually
does with each file: same input, same output, on every run.
"""

from __future__ import annotations

from pathlib import PurePosixPath

from .layout import IGNORE_FILE, INSTRUCTIONS_FILE, SETTINGS_FILE
from .models import ChangeType, MergeStrategy, RiskTier

HIGH_RISK_FILES = frozenset({INSTRUCTIONS_FILE, SETTINGS_FILE})


def _name_and_suffix(path: str) -> tuple[str, str]:
    pure = PurePosixPath(path.replace("\\", "/"))
    return pure.name, pure.suffix.lower()


def classify_risk(path: str, existed_before: bool) -> RiskTier:
    """Core config files are always high risk; otherwise new = low, existing = medium."""
    name, _ = _name_and_suffix(path)
    if name in HIGH_RISK_FILES:
        return RiskTier.HIGH
    if not existed_before:
        return RiskTier.LOW
    return RiskTier.MEDIUM


def determine_strategy(path: str) -> MergeStrategy:
    name, suffix = _name_and_suffix(path)
    if name == INSTRUCTIONS_FILE:
        return MergeStrategy.SECTION_MERGE
    if name == IGNORE_FILE:
        return MergeStrategy.ENTRY_MERGE
    if suffix == ".json":
        return MergeStrategy.JSON_MERGE
    if suffix in (".yaml", ".yml"):
        return MergeStrategy.YAML_DEEP
    return MergeStrategy.LINE_MERGE


def determine_change_type(existed_before: bool) -> ChangeType:
    if existed_before:
        return ChangeType.UPDATE_EXISTING
    return ChangeType.NEW_FILE


def classify(path: str, existed_before: bool) -> tuple[RiskTier, MergeStrategy]:
    """Return the ``(risk_tier, merge_strategy)`` pair for *path*."""
    return classify_risk(path, existed_before), determine_strategy(path)
