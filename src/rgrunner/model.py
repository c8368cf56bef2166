# model.py
from __future__ import annotations

import enum
from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from .errors import ConfigurationError

if TYPE_CHECKING:
    from .launcher import Launcher
    from .resolver import Resolver


@dataclass(frozen=True)
class Node:
    """
    One target machine of a RadarGun run.

    `login` is the remote user handed to the remote-login program. `java_props`
    is the deprecated way of passing JVM system properties; prefer `jvm_opts`.
    """
    hostname: str
    login: Optional[str] = None
    before_cmds: Tuple[str, ...] = ()
    after_cmds: Tuple[str, ...] = ()
    env_vars: Optional[Dict[str, str]] = None
    jvm_opts: Optional[str] = None
    java_props: Optional[Dict[str, str]] = None

    def remote_host(self, default_login: Optional[str] = None) -> str:
        """Host argument for the remote-login program (`login@hostname` when a login is known)."""
        login = self.login or default_login
        if login:
            return f"{login}@{self.hostname}"
        return self.hostname


@dataclass(frozen=True)
class NodeList:
    """Ordered nodes of a run: the first one runs the master, the rest run slaves."""
    nodes: Tuple[Node, ...]

    def __post_init__(self) -> None:
        if not self.nodes:
            raise ConfigurationError("Node list is empty, at least the master node has to be configured")

    @property
    def master(self) -> Node:
        return self.nodes[0]

    @property
    def slaves(self) -> List[Node]:
        return list(self.nodes[1:])

    @property
    def node_count(self) -> int:
        return len(self.nodes)

    def __iter__(self):
        return iter(self.nodes)

    def __len__(self) -> int:
        return len(self.nodes)


@dataclass(frozen=True)
class Installation:
    """A RadarGun distribution available on the nodes, anchored at `home`."""
    name: str
    home: str

    @property
    def bin_dir(self) -> str:
        return f"{self.home.rstrip('/')}/bin"


@dataclass(frozen=True)
class BuilderSettings:
    """
    Per-job settings of the builder, as the user configured them.

    Paths may contain `$VAR` placeholders; they are resolved per build.
    """
    installation_name: str
    remote_login: Optional[str] = None
    workspace_path: Optional[str] = None
    plugin_path: Optional[str] = None
    plugin_config_path: Optional[str] = None
    reporter_path: Optional[str] = None


@dataclass(frozen=True)
class RgBuild:
    """
    Read-only context of one build, threaded through process construction.
    """
    settings: BuilderSettings
    workspace: Path
    launcher: "Launcher"
    nodes: NodeList
    installation: Installation
    resolver: "Resolver"
    environment: Dict[str, str] = field(default_factory=dict)

    @property
    def remote_workspace(self) -> str:
        """Directory the remote scripts are started from."""
        resolved = self.resolver.resolve(self.settings.workspace_path)
        return resolved or str(self.workspace)


class BuildResult(enum.Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    CANCELLED = "cancelled"

    @property
    def success(self) -> bool:
        return self is BuildResult.SUCCESS
