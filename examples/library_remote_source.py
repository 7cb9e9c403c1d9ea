#!/usr/bin/env python3
# SPDX-License-Identifier: LGPL-3.0-or-later
"""
Example: read a remote guest through libvirt and give it a scratch disk.

This example demonstrates:
- Picking the input adapter from a libvirt connection URI
- Fetching the guest's disks as qemu-readable locators
- Allocating a sparse scratch image on a libguestfs handle

Usage:
    python library_remote_source.py 'xen+ssh://root@xen.example.com' rhel5 /var/tmp/scratch.img
"""

import sys
import logging

from libvirt2kvm import Fatal, ImageProvisioner, select_source_adapter
from libvirt2kvm.image.handle import GuestfsDriveRegistry

# Setup logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def show_source(uri: str, guest: str):
    adapter = select_source_adapter(logger, uri, guest)
    logger.info(f"Input: {adapter.as_options()} ({adapter.kind.value})")

    source = adapter.fetch_source()
    for i, disk in enumerate(source.disks):
        logger.info(f"  disk {i}: {disk.access_locator} (format={disk.format or 'auto'})")
    return source


def add_scratch_disk(path: str, size: str = "10G"):
    registry = GuestfsDriveRegistry(logger)
    try:
        image = ImageProvisioner(logger, registry).allocate_sparse(path, size)
        logger.info(f"Scratch disk {image.path} added as drive #{image.drive}")
    finally:
        registry.close()


def main():
    if len(sys.argv) != 4:
        print(__doc__)
        sys.exit(1)

    uri, guest, scratch = sys.argv[1:4]
    try:
        show_source(uri, guest)
        add_scratch_disk(scratch)
    except Fatal as e:
        logger.error(str(e))
        sys.exit(e.code)


if __name__ == "__main__":
    main()
