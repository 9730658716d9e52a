from __future__ import annotations

from pathlib import Path
from typing import Optional

import pytest

from gpu_nfdhook.labeler import Labeler
from gpu_nfdhook.model import Config


class FakeSysfs:
    """A minimal sysfs/debugfs layout for DRM cards under a temp directory."""

    def __init__(self, root: Path) -> None:
        self.root = root
        self.drm = root / "sys" / "class" / "drm"
        self.devices = root / "sys" / "devices"
        self.debugfs = root / "debug" / "dri"
        self.drm.mkdir(parents=True)
        self.devices.mkdir(parents=True)
        self.debugfs.mkdir(parents=True)

    def add_card(
        self,
        num: int,
        vendor: Optional[str] = "0x8086",
        tiles: int = 0,
        lmem: Optional[str] = "1073741824",
        numa: Optional[str] = "-1",
        drm: bool = True,
        pci_path: Optional[str] = None,
        capabilities: Optional[str] = None,
    ) -> Path:
        name = f"card{num}"
        if pci_path is not None:
            card = self.devices / pci_path / "drm" / name
            card.mkdir(parents=True)
            (self.drm / name).symlink_to(card, target_is_directory=True)
        else:
            card = self.drm / name
            card.mkdir()

        device = card / "device"
        device.mkdir()
        if vendor is not None:
            (device / "vendor").write_text(vendor + "\n")
        if numa is not None:
            (device / "numa_node").write_text(numa + "\n")
        if drm:
            (device / "drm").mkdir()
        if lmem is not None:
            (card / "lmem_total_bytes").write_text(lmem + "\n")
        for tile in range(tiles):
            (card / "gt" / f"gt{tile}").mkdir(parents=True)
        if capabilities is not None:
            caps_dir = self.debugfs / str(num)
            caps_dir.mkdir()
            (caps_dir / "i915_capabilities").write_text(capabilities)
        return card

    def labeler(self, config: Optional[Config] = None, **kwargs) -> Labeler:
        return Labeler(str(self.drm), str(self.debugfs), config=config, **kwargs)


@pytest.fixture
def sysfs(tmp_path: Path) -> FakeSysfs:
    return FakeSysfs(tmp_path)
