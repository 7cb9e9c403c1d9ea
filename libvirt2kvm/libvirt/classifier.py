# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/libvirt/classifier.py
"""
Pick the input adapter for a libvirt connection URI.

    server  | scheme          | adapter
    --------+-----------------+----------------------------------
    none    | any             | DEFAULT (local)
    set     | none            | DEFAULT
    set     | esx, gsx, vpx   | VCENTER_HTTPS
    set     | xen+ssh         | XEN_SSH
    set     | anything else   | DEFAULT, with a warning

qemu+ssh:// is deliberately not special-cased: a guest that already runs
on KVM doesn't need converting.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Optional

from ..core.exceptions import invalid_connection_uri
from ..core.logger import Log
from .uri import ConnectionTarget, parse_connection_uri

UriParser = Callable[[str], ConnectionTarget]

VCENTER_SCHEMES = frozenset({"esx", "gsx", "vpx"})
XEN_SSH_SCHEME = "xen+ssh"


class SourceAdapterKind(str, Enum):
    DEFAULT = "default"
    VCENTER_HTTPS = "vcenter_https"
    XEN_SSH = "xen_ssh"


@dataclass(frozen=True)
class Classification:
    kind: SourceAdapterKind
    target: Optional[ConnectionTarget] = None
    # set when a remote scheme is unsupported; the run goes on with DEFAULT
    warning: Optional[str] = None


def unsupported_scheme_warning(uri: str) -> str:
    return (
        f"no support for remote libvirt connections to '-ic {uri}'.  "
        "The conversion may fail when it tries to read the source disks."
    )


def kind_for(target: ConnectionTarget) -> SourceAdapterKind:
    """Decision table above, as a pure function of the parsed target."""
    if not target.is_remote:
        return SourceAdapterKind.DEFAULT
    if not target.scheme:
        return SourceAdapterKind.DEFAULT
    if target.scheme in VCENTER_SCHEMES:
        return SourceAdapterKind.VCENTER_HTTPS
    if target.scheme == XEN_SSH_SCHEME:
        return SourceAdapterKind.XEN_SSH
    return SourceAdapterKind.DEFAULT


def _is_unsupported_remote(target: ConnectionTarget, kind: SourceAdapterKind) -> bool:
    return kind is SourceAdapterKind.DEFAULT and target.is_remote and bool(target.scheme)


def classify_target(target: ConnectionTarget) -> Classification:
    kind = kind_for(target)
    warning = unsupported_scheme_warning(target.raw) if _is_unsupported_remote(target, kind) else None
    return Classification(kind=kind, target=target, warning=warning)


def classify(
    logger: logging.Logger,
    uri: Optional[str],
    *,
    parse_uri: UriParser = parse_connection_uri,
) -> Classification:
    """
    Classify a connection URI. None means "default libvirt connection".
    Raises InvalidConnectionUri when the URI can't be parsed.
    """
    if uri is None:
        return Classification(kind=SourceAdapterKind.DEFAULT)

    try:
        target = parse_uri(uri)
    except ValueError as e:
        raise invalid_connection_uri(uri, str(e)) from e

    result = classify_target(target)
    if result.warning:
        Log.warn(logger, result.warning, scheme=target.scheme, server=target.server)
    Log.trace(logger, "classify(%s) -> %s", uri, result.kind.value)
    return result


__all__ = [
    "Classification",
    "SourceAdapterKind",
    "VCENTER_SCHEMES",
    "XEN_SSH_SCHEME",
    "classify",
    "classify_target",
    "kind_for",
]
