# launcher.py
from __future__ import annotations

import subprocess
from pathlib import Path
from typing import Callable, Dict, Optional, Protocol, Sequence

LineCallback = Callable[[str], None]
StartCallback = Callable[["subprocess.Popen"], None]


class Launcher(Protocol):
    """
    Runs an external command to completion.

    Returns the exit code; raises if the command could not be started.
    `on_start` receives the running process so that it can be killed.
    """

    def launch(
        self,
        argv: Sequence[str],
        cwd: Path,
        env: Optional[Dict[str, str]],
        on_line: LineCallback,
        on_start: Optional[StartCallback] = None,
    ) -> int: ...


class LocalLauncher:
    """Starts commands on this machine, merging stderr into stdout."""

    def launch(
        self,
        argv: Sequence[str],
        cwd: Path,
        env: Optional[Dict[str, str]],
        on_line: LineCallback,
        on_start: Optional[StartCallback] = None,
    ) -> int:
        proc = subprocess.Popen(
            list(argv),
            cwd=str(cwd),
            env=env,
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT,
            text=True,
            errors="replace",
            bufsize=1,
        )
        try:
            if on_start is not None:
                on_start(proc)
            with proc.stdout:
                for line in iter(proc.stdout.readline, ""):
                    on_line(line.rstrip("\n"))
        except BaseException:
            # never leave the command running behind a failed reader
            proc.kill()
            proc.wait()
            raise
        return proc.wait()
