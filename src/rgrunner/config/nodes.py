# config/nodes.py
from __future__ import annotations

from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

from ..errors import ConfigurationError
from ..model import Node, NodeList
from ..ui.console import Console

KNOWN_KEYS = {
    "hostname",
    "fqdn",
    "login",
    "before_cmds",
    "after_cmds",
    "env_vars",
    "jvm_opts",
    "java_props",
}

DEPRECATED_KEYS = {
    "java_props": "use jvm_opts (e.g. jvm_opts: \"-Dkey=value\") instead",
}


def _cmds(value: Any, key: str, hostname: str) -> Tuple[str, ...]:
    """Accept either a list of commands or a multi-line string, one command per line."""
    if value is None:
        return ()
    if isinstance(value, str):
        lines = value.splitlines()
    elif isinstance(value, list):
        lines = [str(v) for v in value]
    else:
        raise ConfigurationError(f"Node '{hostname}': {key} must be a list or a string, got {type(value).__name__}")
    return tuple(line.strip() for line in lines if line.strip())


def _str_map(value: Any, key: str, hostname: str) -> Optional[Dict[str, str]]:
    if value is None:
        return None
    if not isinstance(value, dict):
        raise ConfigurationError(f"Node '{hostname}': {key} must be a mapping, got {type(value).__name__}")
    return {str(k): "" if v is None else str(v) for k, v in value.items()}


def parse_node(raw: Any) -> Node:
    if isinstance(raw, str):
        return Node(hostname=raw)
    if not isinstance(raw, dict):
        raise ConfigurationError(f"Node entry must be a hostname or a mapping, got: {raw!r}")

    hostname = raw.get("hostname") or raw.get("fqdn")
    if not hostname:
        raise ConfigurationError(f"Node entry without hostname: {raw!r}")
    hostname = str(hostname)

    unknown = sorted(set(raw) - KNOWN_KEYS)
    if unknown:
        raise ConfigurationError(f"Node '{hostname}': unknown option(s) {', '.join(unknown)}")

    return Node(
        hostname=hostname,
        login=raw.get("login"),
        before_cmds=_cmds(raw.get("before_cmds"), "before_cmds", hostname),
        after_cmds=_cmds(raw.get("after_cmds"), "after_cmds", hostname),
        env_vars=_str_map(raw.get("env_vars"), "env_vars", hostname),
        jvm_opts=raw.get("jvm_opts"),
        java_props=_str_map(raw.get("java_props"), "java_props", hostname),
    )


def parse_nodes(data: Any) -> NodeList:
    """
    Build a NodeList from parsed YAML.

    Accepts either a top-level list or a mapping with a `nodes` list. The first
    node is the master.
    """
    if isinstance(data, dict):
        data = data.get("nodes")
    if not isinstance(data, list):
        raise ConfigurationError("Node configuration must contain a list of nodes")
    return NodeList(tuple(parse_node(raw) for raw in data))


def load_nodes(path: str | Path) -> NodeList:
    """
    Load the node list from a YAML file.

    Raises:
        ConfigurationError: If the file is missing or malformed
    """
    nodes_path = Path(path).expanduser()
    if not nodes_path.exists():
        raise ConfigurationError(f"Node configuration file not found: {nodes_path}")
    try:
        data = yaml.safe_load(nodes_path.read_text(encoding="utf-8"))
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {nodes_path}: {e}") from e
    return parse_nodes(data)


class YamlNodeSource:
    """Node source backed by a YAML file, read once per build."""

    def __init__(self, path: str | Path):
        self.path = Path(path)

    def get_nodes_list(self) -> NodeList:
        return load_nodes(self.path)


def check_deprecated_configs(nodes: NodeList, console: Console) -> List[str]:
    """
    Warn about deprecated options still used by the nodes. Never fails.

    Returns:
        The warnings that were printed
    """
    warnings: List[str] = []
    for node in nodes:
        if node.java_props:
            warnings.append(
                f"Node '{node.hostname}': java_props option is deprecated, {DEPRECATED_KEYS['java_props']}"
            )
    for w in warnings:
        console.print_warning(w)
    return warnings
