# cleanup.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable, List, Tuple

from .ui.console import Console

CleanupStep = Tuple[str, Callable[[], object]]


@dataclass
class CleanupFailure:
    step: str
    error: Exception

    def __str__(self) -> str:
        return f"{self.step} failed: {self.error}"


def run_all(steps: Iterable[CleanupStep], console: Console) -> List[CleanupFailure]:
    """
    Run every cleanup step in order, whatever the previous ones did.

    Failures are printed as warnings and returned, never raised.
    """
    failures: List[CleanupFailure] = []
    for name, fn in steps:
        try:
            fn()
        except Exception as e:
            failures.append(CleanupFailure(step=name, error=e))
    for f in failures:
        console.print_warning(str(f))
    return failures
