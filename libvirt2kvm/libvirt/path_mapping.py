# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/libvirt/path_mapping.py
"""
Turn disk locators from a remote libvirt descriptor into something qemu
can open from here.

vCenter/ESX descriptors name disks as "[datastore] folder/disk.vmdk"; the
flat extent is served over https by the /folder handler. Xen descriptors
name plain paths on the dom0, which we reach through qemu's ssh driver.
Both produce "json: {...}" pseudo-URIs understood by qemu's block layer.
"""
from __future__ import annotations

import json
import logging
import re
from dataclasses import dataclass
from typing import Callable, Optional, Tuple
from urllib.parse import quote

from ..core.logger import Log
from .uri import ConnectionTarget

Locator = Tuple[str, Optional[str]]
PathMapper = Callable[[str, Optional[str]], Locator]
PathMapperFactory = Callable[[logging.Logger, ConnectionTarget], PathMapper]

_VMDK_SOURCE_RE = re.compile(r"\A\[(.*)\] (.*)\.vmdk\Z")

HTTPS_DEFAULT_PORT = 443
SSH_DEFAULT_PORT = 22
HTTPS_TIMEOUT_S = 600


def _json_uri(params: dict) -> str:
    return "json: " + json.dumps(params, sort_keys=False, separators=(", ", ": "))


def datacenter_path(logger: logging.Logger, target: ConnectionTarget) -> str:
    """
    dcPath for the /folder URL.

    esx/gsx talk to a single host, which is always "ha-datacenter".
    vpx URIs look like vpx://vcenter/Datacenter/esxi-host; the datacenter
    is everything before the final (host) component.
    """
    if target.scheme != "vpx":
        return "ha-datacenter"

    path = (target.path or "").strip("/")
    if not path:
        Log.warn_once(
            logger,
            ("vcenter-no-path", target.raw),
            "vcenter: URI (-ic parameter) contains no path, so we cannot determine the datacenter name",
        )
        return "ha-datacenter"

    head, sep, _host = path.rpartition("/")
    return head if sep else path


@dataclass(frozen=True)
class VCenterPathMapper:
    logger: logging.Logger
    target: ConnectionTarget

    def __call__(self, locator: str, fmt: Optional[str]) -> Locator:
        m = _VMDK_SOURCE_RE.match(locator or "")
        if m is None:
            self.logger.debug("vcenter: leaving non-datastore locator alone: %s", locator)
            return locator, fmt

        datastore, path = m.group(1), m.group(2)
        server = self.target.server or ""
        port = self.target.port
        port_s = f":{port}" if port and port != HTTPS_DEFAULT_PORT else ""
        dc = datacenter_path(self.logger, self.target)

        url = (
            f"https://{server}{port_s}/folder/{quote(path)}-flat.vmdk"
            f"?dcPath={quote(dc, safe='')}&dsName={quote(datastore, safe='')}"
        )
        params = {
            "file.driver": "https",
            "file.url": url,
            "file.timeout": HTTPS_TIMEOUT_S,
        }
        if self.target.query_params().get("no_verify") == "1":
            params["file.sslverify"] = "off"

        Log.trace(self.logger, "vcenter: %s -> %s", locator, url)
        # the flat extent is always raw, whatever the descriptor claimed
        return _json_uri(params), "raw"


@dataclass(frozen=True)
class XenPathMapper:
    logger: logging.Logger
    target: ConnectionTarget

    def __call__(self, locator: str, fmt: Optional[str]) -> Locator:
        if not (locator or "").startswith("/"):
            self.logger.debug("xen: leaving non-local locator alone: %s", locator)
            return locator, fmt

        params = {
            "file.driver": "ssh",
            "file.path": locator,
            "file.host": self.target.server or "",
        }
        if self.target.port and self.target.port != SSH_DEFAULT_PORT:
            params["file.port"] = self.target.port
        if self.target.user:
            params["file.user"] = self.target.user
        params["file.host_key_check"] = "no"

        Log.trace(self.logger, "xen: %s -> ssh://%s%s", locator, self.target.server, locator)
        return _json_uri(params), fmt


def vcenter_path_mapper(logger: logging.Logger, target: ConnectionTarget) -> PathMapper:
    return VCenterPathMapper(logger, target)


def xen_path_mapper(logger: logging.Logger, target: ConnectionTarget) -> PathMapper:
    return XenPathMapper(logger, target)


__all__ = [
    "Locator",
    "PathMapper",
    "PathMapperFactory",
    "VCenterPathMapper",
    "XenPathMapper",
    "datacenter_path",
    "vcenter_path_mapper",
    "xen_path_mapper",
]
