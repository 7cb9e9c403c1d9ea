# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/input/source.py
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Callable, Dict, Optional, Tuple


@dataclass(frozen=True)
class Disk:
    """One guest disk: where qemu can read it from, and its format if known."""
    access_locator: str
    format: Optional[str] = None
    target_dev: Optional[str] = None


@dataclass(frozen=True)
class Source:
    """
    Adapter-independent description of the guest being converted.
    Only `disks` is interpreted here; `metadata` is carried through as-is.
    """
    name: str
    disks: Tuple[Disk, ...] = ()
    metadata: Dict[str, Any] = field(default_factory=dict)

    def with_disks(self, disks: Tuple[Disk, ...]) -> "Source":
        return replace(self, disks=tuple(disks))


def remap_disks(
    source: Source,
    mapf: Callable[[str, Optional[str]], Tuple[str, Optional[str]]],
) -> Source:
    """Return a copy of `source` with every (locator, format) pair passed through mapf."""
    disks = []
    for d in source.disks:
        locator, fmt = mapf(d.access_locator, d.format)
        disks.append(replace(d, access_locator=locator, format=fmt))
    return source.with_disks(tuple(disks))


__all__ = ["Disk", "Source", "remap_disks"]
