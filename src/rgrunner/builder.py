# builder.py
# Runs one RadarGun benchmark: master + slaves on remote nodes, then teardown.
from __future__ import annotations

import os
from concurrent.futures import Executor, ThreadPoolExecutor
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Optional

from .cleanup import run_all
from .config.installations import Installations
from .config.nodes import check_deprecated_configs
from .config.sources import ScenarioSource, ScriptSource
from .errors import AbortError, BuildInterrupted, ProcessExecutionError
from .launcher import Launcher, LocalLauncher
from .model import BuilderSettings, BuildResult, NodeList, RgBuild
from .process import MasterProcess, RgProcess, SlaveProcess
from .resolver import Resolver
from .ui.console import Console, get_console

ExecutorFactory = Callable[..., Executor]


class RadarGunBuilder:
    """
    Orchestrates one distributed RadarGun run.

    The first node runs the master, every other node a slave. All processes are
    started concurrently on a pool with one worker per process; only the master
    is waited for. Cleanup always runs: the pool is shut down without waiting,
    script and scenario sources are cleaned up and the master is killed.
    """

    def __init__(
        self,
        settings: BuilderSettings,
        node_source,
        script_source: ScriptSource,
        scenario_source: ScenarioSource,
        installations: Installations,
        console: Optional[Console] = None,
        executor_factory: ExecutorFactory = ThreadPoolExecutor,
    ):
        """
        Args:
            settings: Builder configuration (installation name, login, paths)
            node_source: Anything with `get_nodes_list() -> NodeList`
            script_source: Provides the remote-login scripts
            scenario_source: Provides the benchmark scenario
            installations: Known RadarGun installations
            console: Output sink; defaults to the global console
            executor_factory: Creates the worker pool, called with `max_workers`
        """
        self.settings = settings
        self.node_source = node_source
        self.script_source = script_source
        self.scenario_source = scenario_source
        self.installations = installations
        self.console = console or get_console()
        self.executor_factory = executor_factory

    # ------------------------------------------------------------------
    # Preparing
    # ------------------------------------------------------------------

    def prepare_build(
        self,
        workspace: Path,
        launcher: Launcher,
        build_variables: Mapping[str, str],
        environment: Callable[[], Mapping[str, str]],
    ) -> RgBuild:
        installation = self.installations.require(self.settings.installation_name)
        nodes: NodeList = self.node_source.get_nodes_list()
        check_deprecated_configs(nodes, self.console)

        resolver = Resolver(build_variables, environment)
        try:
            process_env: Dict[str, str] = dict(resolver.build_environment())
        except Exception as e:
            self.console.print_debug(f"Build environment unavailable, using process environment: {e}")
            process_env = dict(os.environ)

        return RgBuild(
            settings=self.settings,
            workspace=Path(workspace),
            launcher=launcher,
            nodes=nodes,
            installation=installation,
            resolver=resolver,
            environment=process_env,
        )

    def prepare_processes(self, build: RgBuild) -> List[RgProcess]:
        processes: List[RgProcess] = [
            MasterProcess(build, self.script_source, self.scenario_source, self.console)
        ]
        for i in range(len(build.nodes.slaves)):
            processes.append(SlaveProcess(build, i, self.script_source, self.console))
        return processes

    # ------------------------------------------------------------------
    # Run
    # ------------------------------------------------------------------

    def perform(
        self,
        workspace: str | Path,
        launcher: Optional[Launcher] = None,
        build_variables: Optional[Mapping[str, str]] = None,
        environment: Optional[Callable[[], Mapping[str, str]]] = None,
    ) -> BuildResult:
        """
        Run the benchmark and return the build result.

        Raises:
            AbortError: If the master result could not be obtained at all
        """
        build_variables = dict(build_variables or {})
        if environment is None:
            environment = lambda: {**os.environ, **build_variables}

        processes: Optional[List[RgProcess]] = None
        executor: Optional[Executor] = None
        try:
            build = self.prepare_build(Path(workspace), launcher or LocalLauncher(), build_variables, environment)
            processes = self.prepare_processes(build)
            self.console.print_run_started(
                installation=build.installation.name,
                master=build.nodes.master.hostname,
                slave_count=len(processes) - 1,
            )

            executor = self.executor_factory(max_workers=len(processes))
            for process in processes:
                process.start(executor)
            return self._wait_for_master(processes[0])
        except AbortError:
            raise
        except Exception as e:
            self.console.print_error("RadarGun run failed", f"Something went wrong, caught exception: {e}")
            self.console.print_exception(e)
            return BuildResult.FAILURE
        finally:
            self.cleanup(processes, executor)

    def _wait_for_master(self, master: MasterProcess) -> BuildResult:
        # slave failures are detected by the master itself
        try:
            code = master.wait_for_result()
        except BuildInterrupted as e:
            self.console.print_info(f"Stopping the build, build interrupted: {e}")
            return BuildResult.CANCELLED
        except ProcessExecutionError as e:
            self.console.print_info(f"Failing the build, getting master result has failed: {e}")
            raise AbortError(str(e)) from e
        self.console.print_info(f"RadarGun master finished with exit code {code}")
        return BuildResult.SUCCESS if code == 0 else BuildResult.FAILURE

    # ------------------------------------------------------------------
    # Cleaning up
    # ------------------------------------------------------------------

    def _shutdown_now(self, executor: Executor, processes: Optional[List[RgProcess]]) -> None:
        executor.shutdown(wait=False, cancel_futures=True)
        procs = processes or []
        not_started = sum(1 for p in procs if p.future is not None and p.future.cancelled())
        self.console.print_debug(f"Number of tasks that weren't started: {not_started}")
        # worker threads can't be interrupted, stop what the slaves are running instead
        for p in procs[1:]:
            p.kill()

    def cleanup(self, processes: Optional[List[RgProcess]], executor: Optional[Executor]) -> None:
        steps = []
        if executor is not None:
            steps.append(("Shutting down worker pool", lambda: self._shutdown_now(executor, processes)))
        steps.append(("Removing temporary script files", self.script_source.cleanup))
        steps.append(("Removing temporary scenario files", self.scenario_source.cleanup))
        if processes:
            steps.append(("Killing RadarGun master", processes[0].kill))
        run_all(steps, self.console)
