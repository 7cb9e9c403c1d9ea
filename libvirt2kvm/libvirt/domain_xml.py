# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/libvirt/domain_xml.py
"""
Default collaborators for fetching a guest descriptor through virsh.

parse_descriptor() is deliberately shallow: it pulls the guest name and
the disk sources, and keeps a few other top-level facts as opaque
metadata. Full descriptor rewriting lives elsewhere.
"""
from __future__ import annotations

import logging
import subprocess
import xml.etree.ElementTree as ET
from typing import Dict, List, Optional

from ..core.exceptions import Fatal, GuestIsRunning
from ..core.utils import U
from ..input.source import Disk, Source

# domstate values for which a conversion would read inconsistent disks
_LIVE_STATES = ("running", "paused", "in shutdown", "pmsuspended", "blocked")


def _virsh(uri: Optional[str]) -> List[str]:
    cmd = ["virsh", "-q"]
    if uri is not None:
        cmd += ["-c", uri]
    return cmd


def guest_state(logger: logging.Logger, uri: Optional[str], guest: str) -> str:
    cp = U.run_cmd(logger, _virsh(uri) + ["domstate", guest], check=True, capture=True, fatal=True)
    return (cp.stdout or "").strip().lower()


def dump_guest_xml(logger: logging.Logger, uri: Optional[str], guest: str) -> str:
    """
    Return the inactive domain XML for `guest`.

    Doubles as the liveness check: a running guest is refused, since its
    disks are changing underneath us.
    """
    if U.which("virsh") is None:
        raise Fatal(code=2, msg="virsh not found in PATH; install libvirt client tools")

    state = guest_state(logger, uri, guest)
    if state in _LIVE_STATES:
        raise GuestIsRunning(
            code=1,
            msg=f"guest '{guest}' is {state}; shut it down before converting it",
            context={"guest": guest, "state": state},
        )

    try:
        cp = U.run_cmd(logger, _virsh(uri) + ["dumpxml", "--inactive", guest], check=True, capture=True)
    except subprocess.CalledProcessError as e:
        raise Fatal(code=1, msg=f"virsh dumpxml failed for guest '{guest}'", cause=e, context={"uri": uri}) from e
    return cp.stdout or ""


def _disk_locator(src: Optional[ET.Element]) -> Optional[str]:
    if src is None:
        return None
    for attr in ("file", "dev", "name", "volume"):
        v = src.get(attr)
        if v:
            return v
    return None


def parse_descriptor(xml: str) -> Source:
    try:
        root = ET.fromstring(xml)
    except ET.ParseError as e:
        raise Fatal(code=1, msg=f"cannot parse guest XML: {e}", cause=e) from e

    if root.tag != "domain":
        raise Fatal(code=1, msg=f"guest XML root is <{root.tag}>, expected <domain>")

    name = (root.findtext("name") or "").strip()
    if not name:
        raise Fatal(code=1, msg="guest XML has no <name>")

    disks: List[Disk] = []
    for d in root.findall("./devices/disk"):
        if d.get("device", "disk") != "disk":
            continue
        locator = _disk_locator(d.find("source"))
        if locator is None:
            continue
        drv = d.find("driver")
        tgt = d.find("target")
        disks.append(
            Disk(
                access_locator=locator,
                format=drv.get("type") if drv is not None else None,
                target_dev=tgt.get("dev") if tgt is not None else None,
            )
        )

    metadata: Dict[str, str] = {}
    if root.get("type"):
        metadata["hypervisor"] = root.get("type", "")
    for tag in ("uuid", "memory", "vcpu"):
        v = root.findtext(tag)
        if v is not None:
            metadata[tag] = v.strip()

    return Source(name=name, disks=tuple(disks), metadata=metadata)


__all__ = ["dump_guest_xml", "guest_state", "parse_descriptor"]
