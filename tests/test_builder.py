from __future__ import annotations

import pytest

from conftest import CountingScriptSource, CountingSource, FakeLauncher, InterruptingExecutor, RecordingExecutor

from rgrunner.errors import AbortError
from rgrunner.model import BuildResult, Node, NodeList
from rgrunner.process import MasterProcess, SlaveProcess


def _slave_count(n):
    return NodeList(tuple(Node(hostname=f"node{i}") for i in range(n)))


@pytest.mark.parametrize("count", [1, 2, 5])
def test_one_master_and_contiguous_slaves(make_builder, tmp_path, count):
    builder = make_builder(_slave_count(count))
    build = builder.prepare_build(tmp_path, FakeLauncher(), {}, lambda: {})

    processes = builder.prepare_processes(build)

    assert len(processes) == count
    assert isinstance(processes[0], MasterProcess)
    assert all(isinstance(p, SlaveProcess) for p in processes[1:])
    assert [p.index for p in processes[1:]] == list(range(count - 1))


def test_success(make_builder, nodes, tmp_path):
    scripts, scenario = CountingScriptSource(), CountingSource()
    builder = make_builder(nodes, scripts, scenario)
    launcher = FakeLauncher(master_code=0)

    result = builder.perform(tmp_path, launcher)

    assert result is BuildResult.SUCCESS
    assert result.success
    pool = RecordingExecutor.instances[0]
    assert pool.max_workers == 3
    assert pool.shutdowns == [(False, True)]
    assert scripts.cleanups == 1 and scenario.cleanups == 1
    assert ["master.example.com"] == [argv[1] for argv in launcher.launched if argv[1].startswith("master")]


def test_nonzero_master_fails_and_master_is_killed(make_builder, nodes, tmp_path, monkeypatch):
    kills = []
    original_kill = MasterProcess.kill

    def recording_kill(self):
        kills.append(self.name)
        original_kill(self)

    monkeypatch.setattr(MasterProcess, "kill", recording_kill)
    builder = make_builder(nodes)

    result = builder.perform(tmp_path, FakeLauncher(master_code=1))

    assert result is BuildResult.FAILURE
    assert not result.success
    assert kills == ["master"]


def test_execution_failure_aborts(make_builder, nodes, tmp_path):
    scripts, scenario = CountingScriptSource(), CountingSource()
    builder = make_builder(nodes, scripts, scenario)

    with pytest.raises(AbortError, match="ssh not found"):
        builder.perform(tmp_path, FakeLauncher(master_error=FileNotFoundError("ssh not found")))

    assert RecordingExecutor.instances[0].shutdowns == [(False, True)]
    assert scripts.cleanups == 1 and scenario.cleanups == 1


def test_interruption_cancels_and_cleans_up(make_builder, nodes, tmp_path, capsys):
    scripts, scenario = CountingScriptSource(), CountingSource()
    builder = make_builder(nodes, scripts, scenario, executor_factory=InterruptingExecutor)
    launcher = FakeLauncher(block_master=True)

    result = builder.perform(tmp_path, launcher)

    assert result is BuildResult.CANCELLED
    assert not result.success
    executor = InterruptingExecutor.instances[0]
    assert executor.max_workers == 3
    assert len(executor.submitted) == 3
    assert executor.shutdowns == [(False, True)]
    assert scripts.cleanups == 1 and scenario.cleanups == 1
    # nothing ever ran, every queued submission was cancelled
    assert launcher.launched == []
    assert "Stopping the build, build interrupted: Waiting for master interrupted" in capsys.readouterr().out



def test_missing_installation_is_failure(make_builder, nodes, tmp_path, capsys):
    scripts, scenario = CountingScriptSource(), CountingSource()
    builder = make_builder(nodes, scripts, scenario, installation_name="unknown")

    result = builder.perform(tmp_path, FakeLauncher())

    assert result is BuildResult.FAILURE
    assert RecordingExecutor.instances == []
    # collaborators are cleaned up even though nothing was started
    assert scripts.cleanups == 1 and scenario.cleanups == 1
    assert "installation 'unknown' not found" in capsys.readouterr().err


def test_launch_failure_still_cleans_up(make_builder, nodes, tmp_path):
    class BrokenSlaveScripts(CountingScriptSource):
        def slave_script_path(self, workspace):
            raise FileNotFoundError("slave script missing")

    scripts = BrokenSlaveScripts()
    launcher = FakeLauncher(block_master=True)
    builder = make_builder(nodes, scripts)

    result = builder.perform(tmp_path, launcher)

    assert result is BuildResult.FAILURE
    assert RecordingExecutor.instances[0].shutdowns == [(False, True)]
    assert scripts.cleanups == 1
    # the master may have been started; it must not outlive the build
    master_proc = launcher.procs.get("master.example.com")
    assert master_proc is None or master_proc.done.wait(5)


def test_cleanup_errors_never_propagate(make_builder, nodes, tmp_path, capsys):
    scripts, scenario = CountingScriptSource(fail=True), CountingSource(fail=True)
    builder = make_builder(nodes, scripts, scenario)

    result = builder.perform(tmp_path, FakeLauncher(master_code=0))

    assert result is BuildResult.SUCCESS
    assert scripts.cleanups == 1 and scenario.cleanups == 1
    err = capsys.readouterr().err
    assert "Removing temporary script files failed: cannot remove script" in err
    assert "Removing temporary scenario files failed: cannot remove temp file" in err


def test_deprecated_config_only_warns(make_builder, tmp_path, capsys):
    nodes = NodeList((Node(hostname="m", java_props={"a": "b"}),))
    builder = make_builder(nodes)

    assert builder.perform(tmp_path, FakeLauncher(master_code=0)) is BuildResult.SUCCESS
    assert "deprecated" in capsys.readouterr().err


def test_build_variables_reach_command_line(make_builder, tmp_path):
    nodes = NodeList((Node(hostname="m-$SUFFIX"),))
    launcher = FakeLauncher(master_code=0)
    builder = make_builder(nodes)

    builder.perform(tmp_path, launcher, build_variables={"SUFFIX": "01"}, environment=lambda: {})

    assert launcher.launched[0][1] == "m-01"


def test_environment_computed_once_per_build(make_builder, tmp_path):
    nodes = NodeList((
        Node(hostname="m-$SUFFIX", env_vars={"LOG": "$LOG_DIR/m"}),
        Node(hostname="s-$SUFFIX", env_vars={"LOG": "$LOG_DIR/s"}, before_cmds=("cd $LOG_DIR",)),
    ))
    calls = []

    def environment():
        calls.append(1)
        return {"LOG_DIR": "/var/log/rg"}

    launcher = FakeLauncher(master_code=0)
    builder = make_builder(nodes)

    result = builder.perform(tmp_path, launcher, build_variables={"SUFFIX": "01"}, environment=environment)

    assert result is BuildResult.SUCCESS
    assert len(calls) == 1
    master_argv = next(argv for argv in launcher.launched if argv[1] == "m-01")
    assert 'LOG="/var/log/rg/m" ' in master_argv
