# cli.py
from __future__ import annotations

import sys
from pathlib import Path
from typing import Dict, Tuple

import click

from rgrunner.builder import RadarGunBuilder
from rgrunner.config.installations import DEFAULT_INSTALLATIONS_FILE, Installations
from rgrunner.config.nodes import YamlNodeSource
from rgrunner.config.sources import (
    CustomScriptSource,
    FileScenarioSource,
    RemoteLoginProgram,
    RemoteLoginScriptSource,
    TextScenarioSource,
)
from rgrunner.errors import AbortError, RadarGunError
from rgrunner.model import BuilderSettings, BuildResult, Installation
from rgrunner.ui.console import Console, get_console, set_console

EXIT_CODES = {
    BuildResult.SUCCESS: 0,
    BuildResult.FAILURE: 1,
    BuildResult.CANCELLED: 130,
}
EXIT_ABORT = 2


def parse_defines(defines: Tuple[str, ...]) -> Dict[str, str]:
    """
    Parse `-D KEY=VALUE` options into build variables.

    Raises:
        click.BadParameter: If an item has no `=`
    """
    result: Dict[str, str] = {}
    for item in defines:
        key, sep, value = item.partition("=")
        if not sep or not key:
            raise click.BadParameter(f"expected KEY=VALUE, got {item!r}", param_hint="-D")
        result[key] = value
    return result


@click.group()
@click.option(
    "--debug",
    is_flag=True,
    default=False,
    help="Enable debug mode (show stack traces and detailed output)",
)
@click.option(
    "--installations-file",
    default=str(DEFAULT_INSTALLATIONS_FILE),
    show_default=True,
    help="JSON file with known RadarGun installations",
)
@click.pass_context
def cli(ctx, debug, installations_file):
    """rgrunner: run distributed RadarGun benchmarks over ssh."""
    console = Console(debug=debug)
    set_console(console)
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    ctx.obj["installations_file"] = installations_file


def _load_installations(ctx) -> Installations:
    try:
        return Installations.load(ctx.obj["installations_file"])
    except RadarGunError as e:
        get_console().print_error("Invalid installations file", str(e))
        sys.exit(1)


@cli.command()
@click.option("--nodes", "nodes_file", required=True, type=click.Path(dir_okay=False), help="YAML node configuration")
@click.option("--installation", required=True, help="Name of the RadarGun installation to use")
@click.option("--scenario", default=None, type=click.Path(dir_okay=False), help="Benchmark scenario file")
@click.option("--scenario-text", default=None, help="Benchmark scenario given inline")
@click.option("--workspace", default=".", show_default=True, type=click.Path(file_okay=False), help="Local workspace")
@click.option("--workspace-path", default=None, help="Remote directory to start RadarGun from (defaults to workspace)")
@click.option(
    "--remote-login-program",
    default="ssh",
    show_default=True,
    type=click.Choice([p.value for p in RemoteLoginProgram], case_sensitive=False),
)
@click.option("--remote-login", default=None, help="Remote user, unless set per node")
@click.option("--master-script", default=None, help="Custom script launching the master (instead of ssh)")
@click.option("--slave-script", default=None, help="Custom script launching the slaves")
@click.option("--plugin-path", default=None)
@click.option("--plugin-config-path", default=None)
@click.option("--reporter-path", default=None)
@click.option("-D", "--define", "defines", multiple=True, help="Build variable KEY=VALUE (repeatable)")
@click.pass_context
def run(
    ctx,
    nodes_file,
    installation,
    scenario,
    scenario_text,
    workspace,
    workspace_path,
    remote_login_program,
    remote_login,
    master_script,
    slave_script,
    plugin_path,
    plugin_config_path,
    reporter_path,
    defines,
):
    """Run a RadarGun benchmark on the configured nodes."""
    console = get_console()

    if bool(scenario) == bool(scenario_text):
        console.print_error(
            "No scenario",
            "Exactly one of --scenario and --scenario-text is required.",
        )
        sys.exit(1)

    build_variables = parse_defines(defines)
    known = _load_installations(ctx)

    if master_script:
        script_source = CustomScriptSource(master_script, slave_script)
    else:
        script_source = RemoteLoginScriptSource(RemoteLoginProgram.from_name(remote_login_program))
    scenario_source = FileScenarioSource(scenario) if scenario else TextScenarioSource(scenario_text)

    settings = BuilderSettings(
        installation_name=installation,
        remote_login=remote_login,
        workspace_path=workspace_path,
        plugin_path=plugin_path,
        plugin_config_path=plugin_config_path,
        reporter_path=reporter_path,
    )
    builder = RadarGunBuilder(
        settings,
        YamlNodeSource(nodes_file),
        script_source,
        scenario_source,
        known,
        console=console,
    )

    try:
        result = builder.perform(Path(workspace).resolve(), build_variables=build_variables)
    except AbortError as e:
        console.print_error("RadarGun run aborted", str(e))
        sys.exit(EXIT_ABORT)
    except KeyboardInterrupt:
        console.print_info("\nInterrupted by user")
        sys.exit(EXIT_CODES[BuildResult.CANCELLED])

    console.print_result(result.value)
    sys.exit(EXIT_CODES[result])


@cli.group()
def installations():
    """Manage known RadarGun installations."""


@installations.command("list")
@click.pass_context
def list_installations(ctx):
    """List known installations."""
    console = get_console()
    insts = _load_installations(ctx).all()
    if not insts:
        console.print_info("No RadarGun installations configured.")
        return
    for inst in insts:
        console.print_info(f"{inst.name}: {inst.home}")


@installations.command("add")
@click.argument("name")
@click.argument("home")
@click.pass_context
def add_installation(ctx, name, home):
    """Add (or replace) installation NAME located at HOME on the nodes."""
    insts = _load_installations(ctx)
    insts.add(Installation(name=name, home=home))
    path = insts.save()
    get_console().print_info(f"Saved installation {name} to {path}")


@installations.command("remove")
@click.argument("name")
@click.pass_context
def remove_installation(ctx, name):
    """Remove installation NAME."""
    console = get_console()
    insts = _load_installations(ctx)
    if not insts.remove(name):
        console.print_error("Unknown installation", f"No installation named {name}")
        sys.exit(1)
    insts.save()
    console.print_info(f"Removed installation {name}")


if __name__ == "__main__":
    cli()
