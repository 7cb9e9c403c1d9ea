# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/image/registry.py
from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any


class DriveRegistry(ABC):
    """
    Where provisioned images are attached.

    is_config() reports whether the engine is still in its pre-launch
    configuration state. add_drive() attaches an image file; it raises
    RegistrationFailure (or RuntimeError, which is what the libguestfs
    bindings raise) when the drive is refused.
    """

    @abstractmethod
    def is_config(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def add_drive(self, path: str) -> Any:
        raise NotImplementedError
