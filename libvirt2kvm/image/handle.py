# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/image/handle.py
"""libguestfs-backed drive registry and backend query."""
from __future__ import annotations

import logging
import os
from typing import Any, List, Optional

from ..core.exceptions import Fatal, registration_failure
from .registry import DriveRegistry


def _guestfs_module() -> Any:
    try:
        import guestfs  # type: ignore
    except ImportError as e:
        raise Fatal(
            code=2,
            msg="python libguestfs bindings are not installed (package python3-libguestfs)",
            cause=e,
        ) from e
    return guestfs


def apply_backend_override(logger: logging.Logger, backend: Optional[str]) -> None:
    """Export a configured backend so every handle created afterwards uses it."""
    if not backend:
        return
    prev = os.environ.get("LIBGUESTFS_BACKEND")
    if prev and prev != backend:
        logger.debug("Overriding LIBGUESTFS_BACKEND=%s with configured %s", prev, backend)
    os.environ["LIBGUESTFS_BACKEND"] = backend


def new_handle() -> Any:
    guestfs = _guestfs_module()
    return guestfs.GuestFS(python_return_dict=True)


def guestfs_backend_name(g: Any = None) -> str:
    """
    Name of the backend libguestfs will use ("direct", "libvirt", "libvirt:URI", ...).
    Honors LIBGUESTFS_BACKEND because the handle does.
    """
    own = g is None
    if own:
        g = new_handle()
    try:
        return str(g.get_backend())
    finally:
        if own:
            g.close()


class GuestfsDriveRegistry(DriveRegistry):
    """Adds images to a libguestfs handle that hasn't been launched yet."""

    def __init__(self, logger: logging.Logger, g: Any = None, *, fmt: str = "raw"):
        self.logger = logger
        self.g = g if g is not None else new_handle()
        self.fmt = fmt
        self.drives: List[str] = []

    def is_config(self) -> bool:
        return bool(self.g.is_config())

    def add_drive(self, path: str) -> int:
        try:
            self.g.add_drive_opts(path, format=self.fmt)
        except RuntimeError as e:
            raise registration_failure(path, e) from e
        self.drives.append(path)
        index = len(self.drives) - 1
        self.logger.debug("Added drive #%d: %s (format=%s)", index, path, self.fmt)
        return index

    def close(self) -> None:
        self.g.close()


__all__ = ["GuestfsDriveRegistry", "apply_backend_override", "guestfs_backend_name", "new_handle"]
