from __future__ import annotations

import glob
import logging
import os
from typing import Tuple

logger = logging.getLogger(__name__)

# error_counter entries that mean the device is unusable
FATAL_ERROR_COUNTERS: Tuple[str, ...] = (
    "driver_engine_other",
    "driver_ggtt",
    "driver_gt_interrupt",
    "driver_gt_other",
    "driver_guc_communication",
    "driver_rps",
    "fatal_array_bist",
    "fatal_eu_grf",
    "fatal_eu_ic",
    "fatal_fpu",
    "fatal_guc",
    "fatal_l3_fabric",
    "fatal_l3bank",
    "fatal_sampler",
    "fatal_slm",
    "fatal_sqidi",
    "soc_fatal_hbm0",
    "soc_fatal_hbm1",
    "soc_fatal_mdfi_east",
    "soc_fatal_mdfi_south",
    "soc_fatal_mdfi_west",
    "soc_fatal_psf_csc_0",
    "soc_fatal_punit",
)


def _read_int(path: str) -> int:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return int(f.read().strip())
    except (OSError, ValueError):
        return 0


def is_sriov_pf_with_vfs(sys_path: str) -> bool:
    """True when the device is an SR-IOV physical function with VFs enabled."""
    return _read_int(os.path.join(sys_path, "device", "sriov_numvfs")) > 0


def gpu_fatal_errors(sys_path: str) -> Tuple[int, str]:
    """Return ``(count, counter_name)`` of the first nonzero fatal error counter.

    Counters live under ``device/tile*/gt*/error_counter/``. ``(0, "")`` means
    no fatal errors were reported, which is also the answer for drivers that
    do not expose the counters at all.
    """
    pattern = os.path.join(sys_path, "device", "tile*", "gt*", "error_counter")
    for counter_dir in sorted(glob.glob(pattern)):
        for name in FATAL_ERROR_COUNTERS:
            count = _read_int(os.path.join(counter_dir, name))
            if count > 0:
                logger.debug("%s: %d '%s' errors", counter_dir, count, name)
                return count, name
    return 0, ""
