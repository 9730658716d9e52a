from __future__ import annotations

import logging
from typing import Dict, List, Optional

from .collect import health
from .collect.capabilities import read_capabilities
from .collect.linux import (
    DEBUGFS_DRI_DIR,
    SYSFS_DRM_DIR,
    FatalErrorCheck,
    SriovCheck,
    get_memory_amount,
    get_numa_node,
    get_tile_count,
    gpu_num,
    group_by_pci_path,
    scan_gpus,
)
from .labels import (
    DEVICE_SEPARATOR,
    GPU_LIST_LABEL,
    GPU_NUM_LIST_LABEL,
    GRAPHICS_VERSION_LABEL,
    MEDIA_VERSION_LABEL,
    MEMORY_LABEL,
    MILLICORE_LABEL,
    MILLICORES_PER_GPU,
    NUMA_MAPPING_LABEL,
    PCI_GROUP_LABEL,
    PLATFORM_GEN_LABEL,
    TILES_LABEL,
    add_numeric_label,
    label_key,
    numa_mapping_value,
    pci_groups_value,
    platform_label_key,
    set_split_label,
)
from .model import Config, Device, LabelMap, ScanResult

logger = logging.getLogger(__name__)


class Labeler:
    """Builds the ``gpu.intel.com/`` label set for the GPUs of one node.

    A Labeler performs a single pass: ``create_labels`` scans the devices,
    reads their attributes and encodes everything into ``self.labels``.
    """

    def __init__(
        self,
        sysfs_drm_dir: str = SYSFS_DRM_DIR,
        debugfs_dri_dir: str = DEBUGFS_DRI_DIR,
        config: Optional[Config] = None,
        is_sriov_pf_with_vfs: SriovCheck = health.is_sriov_pf_with_vfs,
        gpu_fatal_errors: FatalErrorCheck = health.gpu_fatal_errors,
    ) -> None:
        self.sysfs_drm_dir = sysfs_drm_dir
        self.debugfs_dri_dir = debugfs_dri_dir
        self.config = config if config is not None else Config()
        self.is_sriov_pf_with_vfs = is_sriov_pf_with_vfs
        self.gpu_fatal_errors = gpu_fatal_errors
        self.labels: LabelMap = {}
        self.devices: List[Device] = []

    def scan(self) -> List[str]:
        return scan_gpus(self.sysfs_drm_dir, self.is_sriov_pf_with_vfs, self.gpu_fatal_errors)

    def read_device(self, gpu_name: str) -> Device:
        num = gpu_num(gpu_name)
        tiles = get_tile_count(self.sysfs_drm_dir, gpu_name)
        return Device(
            name=gpu_name,
            gpu_num=num,
            tiles=tiles,
            memory=get_memory_amount(self.sysfs_drm_dir, gpu_name, tiles, self.config),
            numa_node=get_numa_node(self.sysfs_drm_dir, gpu_name),
            capabilities=read_capabilities(self.debugfs_dri_dir, num),
        )

    def _add_capability_labels(self, device: Device) -> None:
        caps = device.capabilities
        platform = caps.get("platform")
        if platform:
            add_numeric_label(self.labels, platform_label_key(platform, "count"), 1)
            add_numeric_label(self.labels, platform_label_key(platform, "tiles"), device.tiles)
            self.labels[platform_label_key(platform, "present")] = "true"
        if "media_version" in caps:
            self.labels[label_key(MEDIA_VERSION_LABEL)] = caps["media_version"]
        if "graphics_version" in caps:
            self.labels[label_key(GRAPHICS_VERSION_LABEL)] = caps["graphics_version"]
        if "gen" in caps:
            self.labels[label_key(PLATFORM_GEN_LABEL)] = caps["gen"]

    def create_labels(self) -> LabelMap:
        """Scan the GPUs and fill ``self.labels``.

        Raises ScanError when the device tree cannot be read; no labels are
        produced in that case.
        """
        gpu_names = self.scan()

        gpu_nums: List[str] = []
        tile_count = 0
        numa_mapping: Dict[int, List[str]] = {}

        for gpu_name in gpu_names:
            device = self.read_device(gpu_name)
            self.devices.append(device)
            gpu_nums.append(device.gpu_num)
            tile_count += device.tiles

            if device.numa_node >= 0:
                numa_mapping.setdefault(device.numa_node, []).append(device.gpu_num)

            self._add_capability_labels(device)
            add_numeric_label(self.labels, label_key(MEMORY_LABEL), device.memory)

        if not gpu_names:
            logger.info("No usable GPUs found under %s", self.sysfs_drm_dir)
            return self.labels

        # "card0.card1.card2", deprecated in favour of gpu-numbers
        set_split_label(self.labels, label_key(GPU_LIST_LABEL), DEVICE_SEPARATOR.join(gpu_names))
        # "0.1.2"
        set_split_label(self.labels, label_key(GPU_NUM_LIST_LABEL), DEVICE_SEPARATOR.join(gpu_nums))

        if numa_mapping:
            set_split_label(
                self.labels, label_key(NUMA_MAPPING_LABEL), numa_mapping_value(numa_mapping)
            )

        add_numeric_label(
            self.labels, label_key(MILLICORE_LABEL), MILLICORES_PER_GPU * len(gpu_names)
        )
        add_numeric_label(self.labels, label_key(TILES_LABEL), tile_count)

        pci_groups = group_by_pci_path(self.sysfs_drm_dir, gpu_nums, self.config.pci_grouping_level)
        if pci_groups:
            set_split_label(self.labels, label_key(PCI_GROUP_LABEL), pci_groups_value(pci_groups))

        return self.labels

    def result(self) -> ScanResult:
        return {"devices": [d.as_dict() for d in self.devices], "labels": dict(self.labels)}
