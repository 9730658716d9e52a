"""Label names and encoding of aggregated GPU facts into NFD label values.

Label values are limited to 63 characters. Longer values are split over
numbered continuation keys: ``key``, ``key2``, ``key3``, ...
"""

from __future__ import annotations

import re
from typing import List, Mapping

from .model import LabelMap

LABEL_NAMESPACE = "gpu.intel.com/"
GPU_LIST_LABEL = "cards"
GPU_NUM_LIST_LABEL = "gpu-numbers"
MILLICORE_LABEL = "millicores"
PCI_GROUP_LABEL = "pci-groups"
TILES_LABEL = "tiles"
NUMA_MAPPING_LABEL = "numa-gpu-map"
MEMORY_LABEL = "memory.max"
PLATFORM_GEN_LABEL = "platform_gen"
GRAPHICS_VERSION_LABEL = "graphics_version"
MEDIA_VERSION_LABEL = "media_version"

MILLICORES_PER_GPU = 1000
LABEL_MAX_LENGTH = 63

# separators inside composite values
DEVICE_SEPARATOR = "."
GROUP_SEPARATOR = "_"
NUMA_NODE_SEPARATOR = "-"

_NUMBER_RE = re.compile(r"^\s*([+-]?[0-9]+)")


def label_key(name: str) -> str:
    return LABEL_NAMESPACE + name


def platform_label_key(platform: str, suffix: str) -> str:
    return label_key(f"platform_{platform}.{suffix}")


def split(value: str, max_length: int) -> List[str]:
    """Cut ``value`` into chunks of at most ``max_length`` characters.

    The last chunk holds the remainder and may be shorter or empty, so
    ``split("foo_bar", 4) == ["foo_", "bar"]`` and ``split("", 4) == [""]``.
    """
    if max_length <= 0:
        raise ValueError(f"max_length must be positive, got {max_length}")
    chunks: List[str] = []
    remaining = value
    while len(remaining) > max_length:
        chunks.append(remaining[:max_length])
        remaining = remaining[max_length:]
    chunks.append(remaining)
    return chunks


def set_split_label(labels: LabelMap, key: str, value: str, max_length: int = LABEL_MAX_LENGTH) -> None:
    """Store ``value`` under ``key``, spilling over into ``key2``, ``key3``..."""
    for index, chunk in enumerate(split(value, max_length), start=1):
        labels[key if index == 1 else f"{key}{index}"] = chunk


def add_numeric_label(labels: LabelMap, key: str, amount: int) -> None:
    """Add ``amount`` to the integer held by ``key``, creating it when missing."""
    current = 0
    m = _NUMBER_RE.match(labels.get(key, ""))
    if m:
        current = int(m.group(1))
    labels[key] = str(current + amount)


def numa_mapping_value(mapping: Mapping[int, List[str]]) -> str:
    """Return e.g. ``"0-0.1.2.3_1-4.5.6.7"``, nodes in ascending order."""
    parts = [
        f"{node}{NUMA_NODE_SEPARATOR}{DEVICE_SEPARATOR.join(mapping[node])}"
        for node in sorted(mapping)
    ]
    return GROUP_SEPARATOR.join(parts)


def pci_groups_value(groups: Mapping[str, List[str]]) -> str:
    """Return e.g. ``"0.1.2.3_4.5.6.7"``, groups ordered by their PCI path."""
    return GROUP_SEPARATOR.join(DEVICE_SEPARATOR.join(groups[key]) for key in sorted(groups))


def format_labels(labels: Mapping[str, str]) -> List[str]:
    return [f"{key}={value}" for key, value in labels.items()]

