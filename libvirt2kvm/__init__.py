# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/__init__.py
"""
libvirt2kvm - libvirt input selection and disk image allocation

Usage as a library:

    from libvirt2kvm import select_source_adapter, ImageProvisioner

    adapter = select_source_adapter(logger, "xen+ssh://root@xen1", "rhel5")
    source = adapter.fetch_source()

    prov = ImageProvisioner(logger, registry)
    prov.allocate_sparse("/var/tmp/scratch.img", "10G")
"""

__version__ = "0.1.0"

from .core import Fatal, Libvirt2KvmError, parse_size
from .image import DriveRegistry, ImageProvisioner, ProvisionedImage
from .input.input_libvirt import InputCollaborators, SourceAdapter, select_source_adapter
from .input.source import Disk, Source
from .libvirt import ConnectionTarget, SourceAdapterKind, classify

__all__ = [
    "__version__",
    # errors
    "Fatal",
    "Libvirt2KvmError",
    # sizes + images
    "parse_size",
    "DriveRegistry",
    "ImageProvisioner",
    "ProvisionedImage",
    # input
    "ConnectionTarget",
    "Disk",
    "InputCollaborators",
    "Source",
    "SourceAdapter",
    "SourceAdapterKind",
    "classify",
    "select_source_adapter",
]
