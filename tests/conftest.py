from __future__ import annotations

import threading
from concurrent.futures import Future, ThreadPoolExecutor
from pathlib import Path

import pytest

from rgrunner.builder import RadarGunBuilder
from rgrunner.config.installations import Installations
from rgrunner.config.sources import RemoteLoginScriptSource
from rgrunner.model import BuilderSettings, Installation, Node, NodeList
from rgrunner.ui.console import Console


class FakeProc:
    def __init__(self):
        self.killed = 0
        self.returncode = None
        self.done = threading.Event()

    def poll(self):
        return self.returncode

    def kill(self):
        self.killed += 1
        self.returncode = -9
        self.done.set()

    def wait(self, timeout=None):
        self.done.wait(timeout)
        return self.returncode


class FakeLauncher:
    """
    Pretends to run commands. The master (argv containing master.sh) returns
    `master_code` or raises `master_error`; slaves block until killed.
    """

    def __init__(self, master_code=0, master_error=None, block_master=False):
        self.master_code = master_code
        self.master_error = master_error
        self.block_master = block_master
        self.launched = []
        self.procs = {}
        self.started = threading.Event()
        self._lock = threading.Lock()

    def launch(self, argv, cwd, env, on_line, on_start=None):
        is_master = any(a.endswith("master.sh") for a in argv)
        with self._lock:
            self.launched.append(list(argv))
        if is_master and self.master_error is not None:
            raise self.master_error
        proc = FakeProc()
        with self._lock:
            self.procs[argv[1]] = proc
        if on_start is not None:
            on_start(proc)
        self.started.set()
        on_line(f"started {argv[1]}")
        if is_master and not self.block_master:
            proc.returncode = self.master_code
            proc.done.set()
            return self.master_code
        proc.done.wait(5)
        return proc.returncode


class CountingSource:
    def __init__(self, fail=False):
        self.cleanups = 0
        self.fail = fail

    def scenario_path(self, workspace):
        return str(Path(workspace) / "scenario.xml")

    def cleanup(self):
        self.cleanups += 1
        if self.fail:
            raise OSError("cannot remove temp file")


class CountingScriptSource(RemoteLoginScriptSource):
    def __init__(self, fail=False):
        super().__init__()
        self.cleanups = 0
        self.fail = fail

    def cleanup(self):
        self.cleanups += 1
        if self.fail:
            raise OSError("cannot remove script")


class RecordingExecutor(ThreadPoolExecutor):
    instances = []

    def __init__(self, max_workers=None):
        super().__init__(max_workers=max_workers)
        self.max_workers = max_workers
        self.shutdowns = []
        RecordingExecutor.instances.append(self)

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.shutdowns.append((wait, cancel_futures))
        super().shutdown(wait=wait, cancel_futures=cancel_futures)


class InterruptedFuture(Future):
    def result(self, timeout=None):
        raise KeyboardInterrupt


class InterruptingExecutor:
    """Accepts work without running it; waiting on any of it is interrupted."""

    instances = []

    def __init__(self, max_workers=None):
        self.max_workers = max_workers
        self.submitted = []
        self.shutdowns = []
        InterruptingExecutor.instances.append(self)

    def submit(self, fn, *args, **kwargs):
        self.submitted.append(fn)
        return InterruptedFuture()

    def shutdown(self, wait=True, *, cancel_futures=False):
        self.shutdowns.append((wait, cancel_futures))


class StaticNodeSource:
    def __init__(self, nodes):
        self.nodes = nodes

    def get_nodes_list(self):
        return self.nodes


@pytest.fixture
def console():
    return Console(debug=True)


@pytest.fixture
def installations():
    return Installations([Installation(name="rg3", home="/opt/radargun")])


@pytest.fixture
def nodes():
    return NodeList((
        Node(hostname="master.example.com"),
        Node(hostname="slave-a.example.com"),
        Node(hostname="slave-b.example.com"),
    ))


@pytest.fixture
def make_builder(installations, console):
    RecordingExecutor.instances = []
    InterruptingExecutor.instances = []

    def _make(nodes, script_source=None, scenario_source=None, **settings):
        executor_factory = settings.pop("executor_factory", RecordingExecutor)
        return RadarGunBuilder(
            BuilderSettings(installation_name=settings.pop("installation_name", "rg3"), **settings),
            StaticNodeSource(nodes),
            script_source or CountingScriptSource(),
            scenario_source or CountingSource(),
            installations,
            console=console,
            executor_factory=executor_factory,
        )

    return _make
