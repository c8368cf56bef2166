# errors.py
from __future__ import annotations

from dataclasses import dataclass


class RadarGunError(Exception):
    """Base class for all rgrunner errors."""


class ConfigurationError(RadarGunError):
    """Missing installation, malformed node config and similar setup problems."""


@dataclass(eq=False)
class ProcessExecutionError(RadarGunError):
    """
    The remote invocation could not be launched, or crashed before an exit code
    was produced.
    """
    process: str
    message: str

    def __str__(self) -> str:
        return f"[{self.process}] execution failed: {self.message}"


class BuildInterrupted(RadarGunError):
    """The thread waiting on the master was interrupted; the build is cancelled."""


class AbortError(RadarGunError):
    """Fatal abort: the outcome of the build cannot be determined."""
