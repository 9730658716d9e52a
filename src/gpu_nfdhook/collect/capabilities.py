"""Parsing of the i915 debugfs capability file.

Only four lines are of interest::

    platform: ALDERLAKE_S
    gen: 12
    graphics version: 12.0
    media version: 12.0

Kernels up to 5.14 print ``gen:`` only, newer ones print the graphics and
media versions only. Both formats resolve to the same set of fields.
"""

from __future__ import annotations

import logging
import os
from typing import Dict, Iterable

from ..model import Capabilities

logger = logging.getLogger(__name__)

CAPABILITIES_FILE = "i915_capabilities"

# line prefix -> capability field
LINE_PREFIXES: Dict[str, str] = {
    "platform:": "platform",
    "media version:": "media_version",
    "graphics version:": "graphics_version",
    "gen:": "gen",
}


def parse_capabilities(lines: Iterable[str], source: str = "") -> Capabilities:
    """Collect the raw value of each known prefix from ``lines``.

    The first line matching a prefix wins. Reading stops as soon as every
    prefix has been seen.
    """
    pending = dict(LINE_PREFIXES)
    found: Capabilities = {}
    for raw in lines:
        line = raw.rstrip("\r\n")
        for prefix, field in pending.items():
            if not line.startswith(prefix):
                continue
            _, sep, value = line.partition(": ")
            if sep and value:
                found[field] = value  # type: ignore[literal-required]
            else:
                logger.warning("invalid '%s' line format: '%s'", source, line)
            del pending[prefix]
            break
        if not pending:
            break
    return found


def major_version(version: str) -> str:
    return version.split(".", 1)[0]


def resolve_capabilities(found: Capabilities) -> Capabilities:
    """Fill in the fields one capability file format leaves out.

    ``gen`` is reduced to its major number. Without an explicit ``gen`` it is
    taken from the graphics version, or the media version. With ``gen`` but
    no versions, both versions mirror ``gen``.
    """
    resolved: Capabilities = dict(found)  # type: ignore[assignment]
    graphics = found.get("graphics_version", "")
    media = found.get("media_version", "")
    gen = found.get("gen", "")

    if not gen:
        gen = graphics or media
    elif not graphics and not media:
        resolved["media_version"] = gen
        resolved["graphics_version"] = gen

    if gen:
        resolved["gen"] = major_version(gen)
    return resolved


def read_capabilities(debugfs_dri_dir: str, gpu_num: str) -> Capabilities:
    """Read and resolve the capability file of one GPU.

    debugfs is optional and not stable, so a missing file only returns an
    empty result.
    """
    path = os.path.join(debugfs_dri_dir, gpu_num, CAPABILITIES_FILE)
    try:
        with open(path, "r", encoding="utf-8", errors="replace") as f:
            found = parse_capabilities(f, source=path)
    except OSError as err:
        logger.info("Couldn't open file: %s", err)
        return {}
    return resolve_capabilities(found)
