"""Confirmation prompts shown before a sync touches the filesystem.

A confirmer is any callable taking the ``MergeAnalysis`` and returning
``True`` to proceed.  It may raise ``ConfirmationError`` when no answer
can be obtained, which the orchestrator treats as fatal.
"""

from __future__ import annotations

import logging
import sys
from collections.abc import Callable
from typing import Protocol, TextIO

from scaffold_sync.errors import ConfirmationError

from .models import MergeAnalysis
from .reporter import format_merge_analysis

logger = logging.getLogger(__name__)

_YES = ("y", "yes")
_NO = ("n", "no")


class Confirmer(Protocol):
    def __call__(self, analysis: MergeAnalysis) -> bool: ...  # pragma: no cover


def auto_confirm(analysis: MergeAnalysis) -> bool:
    """Always proceed."""
    logger.debug("Auto-confirming sync of %d files", analysis.total)
    return True


class PromptConfirmer:
    """Ask on the terminal whether to proceed.

    The default answer (an empty reply) is "yes" only when the analysis is
    safe to merge.

    Args:
        input_fn: Reads one line of user input.
        out: Stream the analysis and prompt are written to.
        max_attempts: Unrecognised replies tolerated before giving up.
    """

    def __init__(
        self,
        input_fn: Callable[[str], str] = input,
        out: TextIO | None = None,
        max_attempts: int = 3,
    ) -> None:
        self._input = input_fn
        self._out = out or sys.stderr
        self._max_attempts = max_attempts

    def __call__(self, analysis: MergeAnalysis) -> bool:
        default = analysis.safe_to_merge
        print(format_merge_analysis(analysis), file=self._out)
        prompt = "Proceed with sync? [Y/n] " if default else "Proceed with sync? [y/N] "

        for _ in range(self._max_attempts):
            try:
                answer = self._input(prompt).strip().lower()
            except (EOFError, KeyboardInterrupt) as exc:
                raise ConfirmationError(
                    "no answer from prompt", operation="confirm"
                ) from exc
            if not answer:
                return default
            if answer in _YES:
                return True
            if answer in _NO:
                return False
            print("Please answer 'y' or 'n'.", file=self._out)

        raise ConfirmationError(
            f"no valid answer after {self._max_attempts} attempts",
            operation="confirm",
        )
