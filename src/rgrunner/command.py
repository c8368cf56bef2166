# command.py
# Builds the argument vector that starts a RadarGun script on a remote node.
from __future__ import annotations

import re
from pathlib import Path
from typing import Dict, List, Mapping, Optional, Sequence

from .model import Node, RgBuild
from .script_config import MasterScriptConfig, ScriptConfig, SlaveScriptConfig

CD_CMD = "cd"
ENV_CMD = "env"
CMD_SEPARATOR = ";"
ENV_KEY_VAL_SEPARATOR = "="
ENV_VAR_QUOTE = '"'
VAR_SEPARATOR = " "

# characters the remote shell still interprets inside double quotes
_ENV_SPECIAL_RE = re.compile(r'(["\\$`])')
_ENV_PAIR_RE = re.compile(r'([^=\s]+)="((?:[^"\\]|\\.)*)"\s*', re.DOTALL)
_ENV_UNESCAPE_RE = re.compile(r"\\(.)", re.DOTALL)


def user_cmds_to_tokens(cmds: Sequence[str], separator: str, after_script: bool) -> List[str]:
    """
    Turn user commands into arguments, each command terminated by `separator`.

    Every command stays a single argument, exactly as the user wrote it, so its
    own quoting reaches the remote shell unchanged when the remote-login
    program joins the arguments with spaces.

    Args:
        cmds: Commands, one per item
        separator: Command separator token
        after_script: The commands follow another command on the same line, so a
            separator is emitted first to terminate it

    Returns:
        Tokens; empty when there are no commands
    """
    tokens: List[str] = []
    for cmd in cmds:
        cmd = cmd.strip()
        if not cmd:
            continue
        tokens += [cmd, separator]
    if tokens and after_script:
        tokens.insert(0, separator)
    return tokens


def _escape_env_value(value: str) -> str:
    return _ENV_SPECIAL_RE.sub(r"\\\1", value)


def prepare_env_vars(env_vars: Mapping[str, str]) -> str:
    """
    Flatten env vars into `KEY="VALUE" ` pairs, in mapping order.

    `"`, `\\`, `$` and backticks in values are backslash-escaped so the remote
    shell takes them literally.
    """
    return "".join(
        f"{key}{ENV_KEY_VAL_SEPARATOR}{ENV_VAR_QUOTE}{_escape_env_value(str(value))}"
        f"{ENV_VAR_QUOTE}{VAR_SEPARATOR}"
        for key, value in env_vars.items()
    )


def parse_env_vars(flat: str) -> Dict[str, str]:
    """Inverse of prepare_env_vars."""
    result: Dict[str, str] = {}
    for match in _ENV_PAIR_RE.finditer(flat):
        result[match.group(1)] = _ENV_UNESCAPE_RE.sub(r"\1", match.group(2))
    return result


def build_command_line(
    script_path: str,
    node: Node,
    script_config: ScriptConfig,
    workspace: str,
    default_login: Optional[str] = None,
) -> List[str]:
    """
    Compose the command line starting a RadarGun script on `node`.

    The result is `<script> <host> cd <workspace> ; [before cmds] [env K="V" ...]
    <radargun script> -t -w [; after cmds]`.
    """
    cmd = [script_path, node.remote_host(default_login), CD_CMD, workspace, CMD_SEPARATOR]

    cmd += user_cmds_to_tokens(node.before_cmds, CMD_SEPARATOR, False)

    # env takes the command to run as its argument, so it has to come right before the script
    if node.env_vars:
        cmd += [ENV_CMD, prepare_env_vars(node.env_vars)]

    # Without tail+wait the script returns as soon as RadarGun is started in the
    # background and the session teardown would kill it.
    script_config.with_tail_follow().with_wait()
    cmd += script_config.script_cmd()

    cmd += user_cmds_to_tokens(node.after_cmds, CMD_SEPARATOR, True)
    return cmd


def resolved_node(build: RgBuild, node: Node) -> Node:
    """Copy of `node` with build variables expanded in all user supplied strings."""
    resolve = build.resolver.resolve
    env = None
    if node.env_vars is not None:
        env = {k: resolve(v) for k, v in node.env_vars.items()}
    return Node(
        hostname=resolve(node.hostname),
        login=resolve(node.login),
        before_cmds=tuple(resolve(c) for c in node.before_cmds),
        after_cmds=tuple(resolve(c) for c in node.after_cmds),
        env_vars=env,
        jvm_opts=node.jvm_opts,
        java_props=node.java_props,
    )


def master_command_line(build: RgBuild, script_source, script_config: MasterScriptConfig) -> List[str]:
    script_path = script_source.master_script_path(Path(build.workspace))
    return build_command_line(
        script_path,
        resolved_node(build, build.nodes.master),
        script_config,
        build.remote_workspace,
        build.resolver.resolve(build.settings.remote_login),
    )


def slave_command_line(build: RgBuild, script_source, script_config: SlaveScriptConfig) -> List[str]:
    script_path = script_source.slave_script_path(Path(build.workspace))
    node = build.nodes.slaves[script_config.slave_index]
    return build_command_line(
        script_path,
        resolved_node(build, node),
        script_config,
        build.remote_workspace,
        build.resolver.resolve(build.settings.remote_login),
    )
