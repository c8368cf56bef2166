# config/installations.py
from __future__ import annotations

import json
from pathlib import Path
from typing import Dict, List, Optional

from ..errors import ConfigurationError
from ..model import Installation

DEFAULT_INSTALLATIONS_FILE = Path("~/.rgrunner/installations.json")


class Installations:
    """
    Known RadarGun installations, stored as JSON.

    The object is created explicitly (usually via `load`) and passed to whoever
    needs it; changes are persisted only when `save` is called.
    """

    def __init__(self, installations: Optional[List[Installation]] = None, path: str | Path | None = None):
        self._by_name: Dict[str, Installation] = {}
        for inst in installations or []:
            self.add(inst)
        self.path = Path(path).expanduser() if path is not None else None

    @classmethod
    def load(cls, path: str | Path = DEFAULT_INSTALLATIONS_FILE) -> "Installations":
        """Load installations from `path`; a missing file means no installations yet."""
        p = Path(path).expanduser()
        if not p.exists():
            return cls(path=p)
        try:
            data = json.loads(p.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Invalid installations file {p}: {e}") from e

        items = data.get("installations", []) if isinstance(data, dict) else None
        if not isinstance(items, list):
            raise ConfigurationError(f"Invalid installations file {p}: expected an 'installations' list")
        try:
            installations = [Installation(name=i["name"], home=i["home"]) for i in items]
        except (KeyError, TypeError) as e:
            raise ConfigurationError(f"Invalid installation entry in {p}: {e}") from e
        return cls(installations, path=p)

    def save(self, path: str | Path | None = None) -> Path:
        target = Path(path).expanduser() if path is not None else self.path
        if target is None:
            raise ConfigurationError("No path to save installations to")
        target.parent.mkdir(parents=True, exist_ok=True)
        data = {"installations": [{"name": i.name, "home": i.home} for i in self.all()]}
        target.write_text(json.dumps(data, indent=2) + "\n", encoding="utf-8")
        self.path = target
        return target

    def all(self) -> List[Installation]:
        return sorted(self._by_name.values(), key=lambda i: i.name)

    def add(self, installation: Installation) -> None:
        if not installation.name:
            raise ConfigurationError("Installation name must not be empty")
        self._by_name[installation.name] = installation

    def remove(self, name: str) -> bool:
        return self._by_name.pop(name, None) is not None

    def get(self, name: Optional[str]) -> Optional[Installation]:
        if not name:
            return None
        return self._by_name.get(name)

    def require(self, name: Optional[str]) -> Installation:
        inst = self.get(name)
        if inst is None:
            known = ", ".join(i.name for i in self.all()) or "none"
            raise ConfigurationError(f"RadarGun installation '{name}' not found (known: {known})")
        return inst
