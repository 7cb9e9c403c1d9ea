# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/core/sizes.py
"""
Size specifications for image allocation.

    <digits><unit>   unit is one of k m g t p e (either case, powers of 1024)
                     or s (512-byte sectors)
    <digits>         kilobytes, NOT bytes: "100" means 102400

The bare-number-means-KiB rule is the historical guestfish convention and
scripts depend on it.
"""
from __future__ import annotations

import re

from .exceptions import invalid_size_spec

SECTOR_SIZE = 512

_SIZE_RE = re.compile(r"\A([0-9]+)([A-Za-z]?)\Z")

_MULTIPLIERS = {
    "k": 1024,
    "m": 1024 ** 2,
    "g": 1024 ** 3,
    "t": 1024 ** 4,
    "p": 1024 ** 5,
    "e": 1024 ** 6,
}


def parse_size(spec: str) -> int:
    """Return the number of bytes described by `spec` or raise InvalidSizeSpec."""
    m = _SIZE_RE.match(spec or "")
    if m is None:
        raise invalid_size_spec(spec)

    n = int(m.group(1))
    unit = m.group(2)

    if not unit:
        return n * 1024
    # sectors are lowercase only
    if unit == "s":
        return n * SECTOR_SIZE

    mult = _MULTIPLIERS.get(unit.lower())
    if mult is None:
        raise invalid_size_spec(spec)
    return n * mult


__all__ = ["SECTOR_SIZE", "parse_size"]
