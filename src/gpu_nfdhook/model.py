from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from typing import Dict, List, Mapping, Optional, TypedDict


LabelMap = Dict[str, str]

MEMORY_OVERRIDE_ENV = "GPU_MEMORY_OVERRIDE"
MEMORY_RESERVED_ENV = "GPU_MEMORY_RESERVED"
PCI_GROUPING_ENV = "GPU_PCI_GROUPING_LEVEL"


class Capabilities(TypedDict, total=False):
    platform: str
    gen: str
    graphics_version: str
    media_version: str


@dataclass(frozen=True)
class Device:
    name: str
    gpu_num: str
    tiles: int = 1
    memory: int = 0
    numa_node: int = -1
    capabilities: Capabilities = field(default_factory=Capabilities)

    def as_dict(self) -> Dict[str, object]:
        return {
            "name": self.name,
            "gpu_num": self.gpu_num,
            "tiles": self.tiles,
            "memory": self.memory,
            "numa_node": self.numa_node,
            "capabilities": dict(self.capabilities),
        }


class ScanResult(TypedDict):
    devices: List[Dict[str, object]]
    labels: LabelMap


def env_number(environ: Mapping[str, str], name: str) -> int:
    """Return the unsigned base-10 value of an environment variable, or 0."""
    value = environ.get(name, "")
    if re.fullmatch(r"[0-9]+", value):
        return int(value)
    return 0


@dataclass(frozen=True)
class Config:
    memory_override: int = 0
    memory_reserved: int = 0
    pci_grouping_level: int = 0

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Config":
        env = os.environ if environ is None else environ
        return cls(
            memory_override=env_number(env, MEMORY_OVERRIDE_ENV),
            memory_reserved=env_number(env, MEMORY_RESERVED_ENV),
            pci_grouping_level=env_number(env, PCI_GROUPING_ENV),
        )


class LabelerError(Exception):
    """Base class for errors that abort a labeling run."""


class ScanError(LabelerError):
    """The DRM device tree could not be enumerated."""
