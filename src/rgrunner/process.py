# process.py
# Master and slave RadarGun processes, each wrapping one command execution.
from __future__ import annotations

import enum
import threading
from concurrent.futures import CancelledError, Executor, Future
from typing import List, Optional, Protocol

from .command import master_command_line, slave_command_line
from .config.sources import ScenarioSource, ScriptSource
from .errors import BuildInterrupted, ProcessExecutionError
from .model import RgBuild
from .script_config import MasterScriptConfig, SlaveScriptConfig
from .ui.console import Console, get_console


class ProcessState(enum.Enum):
    CREATED = "created"
    STARTED = "started"
    COMPLETED = "completed"
    FAILED = "failed"
    KILLED = "killed"


class CommandExecution:
    """
    One external command run through the build's launcher.

    `run` is executed on a worker thread; `kill` may be called from any thread,
    any number of times.
    """

    def __init__(self, name: str, build: RgBuild, console: Console):
        self.name = name
        self.build = build
        self.console = console
        self.argv: Optional[List[str]] = None
        self.state = ProcessState.CREATED
        self.exit_code: Optional[int] = None
        self._proc = None
        self._kill_requested = False
        self._lock = threading.Lock()

    def _on_start(self, proc) -> None:
        with self._lock:
            self._proc = proc
            kill_now = self._kill_requested
        if kill_now:
            self._terminate(proc)

    def _on_line(self, line: str) -> None:
        self.console.print_process_line(self.name, line)

    def run(self) -> int:
        self.console.print_debug(f"[{self.name}] starting: {' '.join(self.argv or [])}")
        try:
            code = self.build.launcher.launch(
                self.argv,
                self.build.workspace,
                self.build.environment or None,
                self._on_line,
                self._on_start,
            )
        except BaseException:
            with self._lock:
                if self.state is not ProcessState.KILLED:
                    self.state = ProcessState.FAILED
            raise
        with self._lock:
            self.exit_code = code
            if self.state is not ProcessState.KILLED:
                self.state = ProcessState.COMPLETED
        self.console.print_debug(f"[{self.name}] finished with exit code {code}")
        return code

    def _terminate(self, proc) -> None:
        try:
            if proc.poll() is None:
                proc.kill()
                proc.wait(timeout=10)
        except Exception as e:
            self.console.print_warning(f"Killing {self.name} failed: {e}")

    def kill(self) -> None:
        """Best-effort forced termination; never raises."""
        with self._lock:
            if self.state is ProcessState.FAILED:
                # the reader failed; the command itself may still be running
                proc = self._proc
            elif self.state in (ProcessState.CREATED, ProcessState.COMPLETED):
                return
            else:
                self._kill_requested = True
                self.state = ProcessState.KILLED
                proc = self._proc
        if proc is not None:
            self._terminate(proc)


class RgProcess(Protocol):
    name: str

    @property
    def state(self) -> ProcessState: ...

    @property
    def future(self) -> Optional[Future]: ...

    def start(self, executor: Executor) -> None: ...

    def kill(self) -> None: ...


class _Submitted:
    """Start/kill plumbing shared by master and slave processes."""

    def __init__(self, name: str, build: RgBuild, console: Optional[Console]):
        self.name = name
        self.build = build
        self.execution = CommandExecution(name, build, console or get_console())
        self.future: Optional[Future] = None

    @property
    def state(self) -> ProcessState:
        return self.execution.state

    def submit(self, executor: Executor, argv: List[str]) -> None:
        if self.future is not None:
            raise RuntimeError(f"Process {self.name} has already been started")
        self.execution.argv = argv
        self.execution.state = ProcessState.STARTED
        self.future = executor.submit(self.execution.run)

    def kill(self) -> None:
        try:
            if self.future is not None and self.future.cancel():
                self.execution.state = ProcessState.KILLED
                return
            self.execution.kill()
        except Exception as e:
            self.execution.console.print_warning(f"Killing {self.name} failed: {e}")


class MasterProcess:
    """The RadarGun master; its exit code decides the result of the build."""

    def __init__(
        self,
        build: RgBuild,
        script_source: ScriptSource,
        scenario_source: ScenarioSource,
        console: Optional[Console] = None,
    ):
        self.name = "master"
        self._proc = _Submitted(self.name, build, console)
        self.build = build
        self.script_source = script_source
        self.scenario_source = scenario_source

    @property
    def state(self) -> ProcessState:
        return self._proc.state

    @property
    def future(self) -> Optional[Future]:
        return self._proc.future

    def command_line(self) -> List[str]:
        scenario = self.scenario_source.scenario_path(self.build.workspace)
        config = MasterScriptConfig.for_build(self.build, scenario)
        return master_command_line(self.build, self.script_source, config)

    def start(self, executor: Executor) -> None:
        self._proc.submit(executor, self.command_line())

    def wait_for_result(self) -> int:
        """
        Block until the master finishes and return its exit code.

        Raises:
            ProcessExecutionError: If the master could not be launched or crashed
            BuildInterrupted: If waiting was interrupted or the run was cancelled
        """
        future = self._proc.future
        if future is None:
            raise RuntimeError(f"Process {self.name} has not been started")
        try:
            return future.result()
        except (CancelledError, KeyboardInterrupt) as e:
            raise BuildInterrupted(f"Waiting for {self.name} interrupted") from e
        except Exception as e:
            raise ProcessExecutionError(process=self.name, message=str(e) or type(e).__name__) from e

    def kill(self) -> None:
        self._proc.kill()


class SlaveProcess:
    """A RadarGun slave; runs unattended, its failures are detected by the master."""

    def __init__(
        self,
        build: RgBuild,
        index: int,
        script_source: ScriptSource,
        console: Optional[Console] = None,
    ):
        self.index = index
        self.name = f"slave{index}"
        self._proc = _Submitted(self.name, build, console)
        self.build = build
        self.script_source = script_source

    @property
    def state(self) -> ProcessState:
        return self._proc.state

    @property
    def future(self) -> Optional[Future]:
        return self._proc.future

    def command_line(self) -> List[str]:
        config = SlaveScriptConfig.for_build(self.build, self.index)
        return slave_command_line(self.build, self.script_source, config)

    def start(self, executor: Executor) -> None:
        self._proc.submit(executor, self.command_line())

    def kill(self) -> None:
        self._proc.kill()
