# config/sources.py
# Collaborators providing the launcher scripts and the benchmark scenario.
from __future__ import annotations

import enum
import os
import stat
import tempfile
from pathlib import Path
from typing import Optional, Protocol

from ..errors import ConfigurationError


class ScriptSource(Protocol):
    def master_script_path(self, workspace: Path) -> str: ...

    def slave_script_path(self, workspace: Path) -> str: ...

    def cleanup(self) -> None: ...


class ScenarioSource(Protocol):
    def scenario_path(self, workspace: Path) -> str: ...

    def cleanup(self) -> None: ...


class RemoteLoginProgram(enum.Enum):
    SSH = "ssh"
    RSH = "rsh"

    @classmethod
    def from_name(cls, name: Optional[str]) -> "RemoteLoginProgram":
        # unset means ssh, older configurations don't have the option at all
        if not name:
            return cls.SSH
        try:
            return cls(name.lower())
        except ValueError:
            known = ", ".join(p.value for p in cls)
            raise ConfigurationError(f"Unknown remote login program '{name}' (known: {known})")


def make_executable(path: str | Path) -> None:
    p = Path(path)
    mode = p.stat().st_mode
    p.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)


class RemoteLoginScriptSource:
    """Runs the remote-login program (ssh/rsh) directly for both master and slaves."""

    def __init__(self, program: RemoteLoginProgram = RemoteLoginProgram.SSH):
        self.program = program

    def master_script_path(self, workspace: Path) -> str:
        return self.program.value

    def slave_script_path(self, workspace: Path) -> str:
        return self.program.value

    def cleanup(self) -> None:
        pass


class CustomScriptSource:
    """
    User supplied launcher scripts. Relative paths are taken relative to the
    workspace. The scripts get `<host> <remote command...>` as arguments.
    """

    def __init__(self, master_script: str, slave_script: Optional[str] = None):
        self.master_script = master_script
        self.slave_script = slave_script or master_script

    def _script(self, workspace: Path, script: str) -> str:
        path = Path(script).expanduser()
        if not path.is_absolute():
            path = workspace / path
        if not path.exists():
            raise ConfigurationError(f"Script not found: {path}")
        make_executable(path)
        return str(path)

    def master_script_path(self, workspace: Path) -> str:
        return self._script(workspace, self.master_script)

    def slave_script_path(self, workspace: Path) -> str:
        return self._script(workspace, self.slave_script)

    def cleanup(self) -> None:
        pass


class FileScenarioSource:
    """Scenario kept in a file (absolute, or relative to the workspace)."""

    def __init__(self, path: str):
        self.path = path

    def scenario_path(self, workspace: Path) -> str:
        p = Path(self.path).expanduser()
        if not p.is_absolute():
            p = workspace / p
        return str(p)

    def cleanup(self) -> None:
        pass


class TextScenarioSource:
    """Scenario given inline; written to a temporary file inside the workspace."""

    def __init__(self, text: str):
        self.text = text
        self._tmp_path: Optional[Path] = None

    def scenario_path(self, workspace: Path) -> str:
        if self._tmp_path is None:
            fd, name = tempfile.mkstemp(prefix="radargun_scenario_", suffix=".xml", dir=workspace)
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                fh.write(self.text)
            self._tmp_path = Path(name)
        return str(self._tmp_path)

    def cleanup(self) -> None:
        if self._tmp_path is not None:
            self._tmp_path.unlink(missing_ok=True)
            self._tmp_path = None
