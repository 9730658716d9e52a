from __future__ import annotations

import glob
import logging
import os
import re
from pathlib import Path
from typing import Callable, Dict, List, Tuple

from ..model import Config, ScanError

logger = logging.getLogger(__name__)

SYSFS_DRM_DIR = "/sys/class/drm"
DEBUGFS_DRI_DIR = "/sys/kernel/debug/dri"

GPU_DEVICE_RE = re.compile(r"^card[0-9]+$")
VENDOR_ID = "0x8086"

SriovCheck = Callable[[str], bool]
FatalErrorCheck = Callable[[str], Tuple[int, str]]

UINT64_MAX = 2**64 - 1
_OCTAL_RE = re.compile(r"0[0-7]+")


def _read_text(path: str) -> str:
    with open(path, "r", encoding="utf-8") as f:
        return f.read().strip()


def parse_uint(raw: str) -> int:
    """Parse an unsigned 64-bit integer the way sysfs prints them.

    Accepts decimal, ``0x``, ``0o``, ``0b`` and leading-zero octal (``010`` is 8).
    """
    if raw[:1] in ("+", "-", ""):
        raise ValueError(f"invalid unsigned integer {raw!r}")
    value = int(raw, 8) if _OCTAL_RE.fullmatch(raw) else int(raw, 0)
    if value > UINT64_MAX:
        raise ValueError(f"{raw!r} out of range")
    return value


def gpu_num(gpu_name: str) -> str:
    """``card12`` -> ``12``."""
    return gpu_name[len("card"):]


def scan_gpus(
    sysfs_drm_dir: str,
    is_sriov_pf_with_vfs: SriovCheck,
    gpu_fatal_errors: FatalErrorCheck,
) -> List[str]:
    """Return names of usable Intel GPUs under ``sysfs_drm_dir``.

    Devices keep directory listing order. Raises ScanError when the DRM
    directory, or the drm folder of an Intel GPU, cannot be listed.
    """
    try:
        entries = os.listdir(sysfs_drm_dir)
    except OSError as err:
        raise ScanError(f"Can't read sysfs folder: {err}") from err

    gpu_names: List[str] = []
    for name in entries:
        if not GPU_DEVICE_RE.match(name):
            logger.debug("Not compatible device %s", name)
            continue

        sys_path = os.path.join(sysfs_drm_dir, name)

        try:
            vendor = _read_text(os.path.join(sys_path, "device", "vendor"))
        except (OSError, UnicodeDecodeError) as err:
            logger.warning("Skipping. Can't read vendor file: %s", err)
            continue

        if vendor != VENDOR_ID:
            logger.debug("Non-Intel GPU %s", name)
            continue

        if is_sriov_pf_with_vfs(sys_path):
            logger.debug("Skipping PF with VF %s", name)
            continue

        try:
            os.listdir(os.path.join(sys_path, "device", "drm"))
        except OSError as err:
            raise ScanError(f"Can't read device folder: {err}") from err

        errors, error_name = gpu_fatal_errors(sys_path)
        if errors != 0:
            logger.debug("Skipping device %s with %d '%s' errors", name, errors, error_name)
            continue

        gpu_names.append(name)

    return gpu_names


def get_tile_count(sysfs_drm_dir: str, gpu_name: str) -> int:
    tiles = glob.glob(os.path.join(sysfs_drm_dir, gpu_name, "gt", "gt*"))
    return len(tiles) or 1


def get_memory_amount(sysfs_drm_dir: str, gpu_name: str, num_tiles: int, config: Config) -> int:
    """Local memory of the GPU in bytes, minus the configured reserve.

    Falls back to ``config.memory_override`` when the sysfs value is missing
    or malformed (integrated GPUs have no local memory file).
    """
    path = os.path.join(sysfs_drm_dir, gpu_name, "lmem_total_bytes")
    try:
        raw = _read_text(path)
    except (OSError, UnicodeDecodeError) as err:
        logger.warning("Can't read file: %s", err)
        return config.memory_override

    try:
        per_tile = parse_uint(raw)
    except ValueError as err:
        logger.warning("Can't convert lmem_total_bytes: %s", err)
        return config.memory_override

    total = per_tile * num_tiles - config.memory_reserved
    if total < 0:
        logger.warning(
            "%s: reserved memory %d exceeds total %d, reporting 0",
            gpu_name,
            config.memory_reserved,
            per_tile * num_tiles,
        )
        return 0
    return total


def get_numa_node(sysfs_drm_dir: str, gpu_name: str) -> int:
    """NUMA node of the GPU, -1 when unknown."""
    path = os.path.join(sysfs_drm_dir, gpu_name, "device", "numa_node")
    try:
        return int(_read_text(path), 10)
    except OSError as err:
        logger.warning("Can't read file: %s", err)
    except ValueError as err:
        logger.warning("Can't convert numa_node: %s", err)
    return -1


def pci_path_parts(num_folders: int, full_path: str) -> str:
    """Return ``num_folders`` path segments starting at the first ``pci*`` one.

    ``pci_path_parts(2, "/sys/devices/pci0000:00/0000:00:02.0/drm/card0")``
    is ``"pci0000:00/0000:00:02.0"``. Returns "" when the path is too short.
    """
    parts = full_path.split("/")
    if len(parts) == 1 or num_folders <= 0:
        return ""
    for index, part in enumerate(parts):
        if part.startswith("pci"):
            selected = parts[index:index + num_folders]
            if len(selected) < num_folders:
                return ""
            return "/".join(selected)
    return ""


def group_by_pci_path(sysfs_drm_dir: str, gpu_nums: List[str], level: int) -> Dict[str, List[str]]:
    """Bucket GPUs whose sysfs device paths share the first ``level`` PCI segments.

    GPUs whose symlink cannot be resolved, or whose path is too shallow, are
    left out. ``level`` 0 disables grouping.
    """
    groups: Dict[str, List[str]] = {}
    if level == 0:
        return groups

    for num in gpu_nums:
        link = os.path.join(sysfs_drm_dir, "card" + num)
        try:
            target = str(Path(link).resolve(strict=True))
        except (OSError, RuntimeError) as err:
            logger.debug("Can't resolve %s: %s", link, err)
            continue
        key = pci_path_parts(level, target)
        if key:
            groups.setdefault(key, []).append(num)
    return groups
