# script_config.py
from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, List, Optional

from .model import Node

if TYPE_CHECKING:
    from .model import RgBuild

MASTER_SCRIPT = "master.sh"
SLAVE_SCRIPT = "slave.sh"

TAIL_FOLLOW_OPT = "-t"
WAIT_OPT = "-w"
CONFIG_OPT = "-c"
MASTER_OPT = "-m"
SLAVE_INDEX_OPT = "-i"
JVM_OPTS_OPT = "-J"
PLUGIN_OPT = "--add-plugin"
PLUGIN_CONFIG_OPT = "--add-config"
REPORTER_OPT = "--add-reporter"
JAVA_PROP_PREFIX = "-D"


def node_jvm_opts(node: Node) -> Optional[str]:
    """JVM options of a node, including the deprecated java_props rendered as -Dkey=value."""
    parts: List[str] = []
    if node.jvm_opts:
        parts.append(node.jvm_opts.strip())
    for key, value in (node.java_props or {}).items():
        parts.append(f"{JAVA_PROP_PREFIX}{key}={value}")
    return " ".join(parts) or None


@dataclass
class ScriptConfig:
    """Invocation of a RadarGun script on a node, built fresh for each node."""
    script_path: str
    jvm_opts: Optional[str] = None
    plugin_path: Optional[str] = None
    plugin_config_path: Optional[str] = None
    reporter_path: Optional[str] = None
    tail_follow: bool = False
    wait: bool = False

    def with_tail_follow(self) -> "ScriptConfig":
        self.tail_follow = True
        return self

    def with_wait(self) -> "ScriptConfig":
        self.wait = True
        return self

    def role_args(self) -> List[str]:
        return []

    def script_cmd(self) -> List[str]:
        cmd = [self.script_path, *self.role_args()]
        if self.jvm_opts:
            cmd += [JVM_OPTS_OPT, f'"{self.jvm_opts}"']
        if self.plugin_path:
            cmd += [PLUGIN_OPT, self.plugin_path]
        if self.plugin_config_path:
            cmd += [PLUGIN_CONFIG_OPT, self.plugin_config_path]
        if self.reporter_path:
            cmd += [REPORTER_OPT, self.reporter_path]
        if self.tail_follow:
            cmd.append(TAIL_FOLLOW_OPT)
        if self.wait:
            cmd.append(WAIT_OPT)
        return cmd


def _common(build: "RgBuild", node: Node, script: str) -> dict:
    resolve = build.resolver.resolve
    settings = build.settings
    return dict(
        script_path=f"{build.installation.bin_dir}/{script}",
        jvm_opts=resolve(node_jvm_opts(node)),
        plugin_path=resolve(settings.plugin_path),
        plugin_config_path=resolve(settings.plugin_config_path),
        reporter_path=resolve(settings.reporter_path),
    )


@dataclass
class MasterScriptConfig(ScriptConfig):
    config_path: Optional[str] = None

    def role_args(self) -> List[str]:
        return [CONFIG_OPT, self.config_path] if self.config_path else []

    @classmethod
    def for_build(cls, build: "RgBuild", scenario_path: str) -> "MasterScriptConfig":
        return cls(config_path=scenario_path, **_common(build, build.nodes.master, MASTER_SCRIPT))


@dataclass
class SlaveScriptConfig(ScriptConfig):
    master_host: str = ""
    slave_index: int = 0

    def role_args(self) -> List[str]:
        return [MASTER_OPT, self.master_host, SLAVE_INDEX_OPT, str(self.slave_index)]

    @classmethod
    def for_build(cls, build: "RgBuild", index: int) -> "SlaveScriptConfig":
        node = build.nodes.slaves[index]
        return cls(
            master_host=build.resolver.resolve(build.nodes.master.hostname),
            slave_index=index,
            **_common(build, node, SLAVE_SCRIPT),
        )
