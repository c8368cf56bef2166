# resolver.py
from __future__ import annotations

import re
import threading
from typing import Callable, Dict, Mapping, Optional

from .ui.console import get_console

# $NAME or ${NAME}
_VAR_RE = re.compile(r"\$(\{[A-Za-z0-9_.]+\}|[A-Za-z0-9_]+)")


def replace_macro(text: str, variables: Mapping[str, str]) -> str:
    """
    Replace `$NAME` and `${NAME}` with values from `variables`.

    Variables that are not in the mapping are left as they are, so that a
    later expansion pass can still pick them up.
    """
    def _sub(match: re.Match) -> str:
        name = match.group(1)
        if name.startswith("{"):
            name = name[1:-1]
        value = variables.get(name)
        return match.group(0) if value is None else str(value)

    return _VAR_RE.sub(_sub, text)


class Resolver:
    """Expands placeholder variables in configuration strings of a build."""

    def __init__(
        self,
        build_variables: Mapping[str, str],
        environment: Callable[[], Mapping[str, str]],
    ):
        """
        Args:
            build_variables: Build parameters, substituted first
            environment: Computes the build environment used for the second
                expansion pass. Called at most once; may raise if the
                environment is unavailable.
        """
        self.build_variables = dict(build_variables)
        self._environment_factory = environment
        self._environment: Optional[Dict[str, str]] = None
        self._environment_error: Optional[Exception] = None
        self._lock = threading.Lock()

    def build_environment(self) -> Dict[str, str]:
        """
        The build environment, computed on first use and kept for the build.

        Raises:
            Exception: Whatever computing the environment raised, every time
        """
        with self._lock:
            if self._environment is None and self._environment_error is None:
                try:
                    self._environment = dict(self._environment_factory())
                except Exception as e:
                    self._environment_error = e
        if self._environment_error is not None:
            raise self._environment_error
        return self._environment

    def resolve(self, text: Optional[str]) -> Optional[str]:
        if text is None:
            return None

        resolved = replace_macro(text, self.build_variables)
        try:
            env = self.build_environment()
        except Exception as e:
            # best effort, keep what the build variables gave us
            get_console().print_debug(f"Build environment unavailable, skipping expansion: {e}")
            return resolved
        return replace_macro(resolved, env)
