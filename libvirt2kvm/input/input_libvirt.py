# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/input/input_libvirt.py
"""
-i libvirt: read a guest's descriptor through libvirt and normalise it.

Three variants, chosen from the -ic URI (see libvirt/classifier.py):

  DEFAULT        dumpxml + parse
  VCENTER_HTTPS  backend check, dumpxml + parse, disks -> https json: URIs
  XEN_SSH        backend + ssh-agent checks, dumpxml + parse, disks -> ssh json: URIs

Each run is linear and fails on the first error; nothing is retried.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from typing import Any, Callable, Mapping, Optional

from ..core.exceptions import missing_ssh_agent, unsupported_backend
from ..core.logger import Log
from ..image.handle import guestfs_backend_name
from ..libvirt.classifier import SourceAdapterKind, classify
from ..libvirt.domain_xml import dump_guest_xml, parse_descriptor
from ..libvirt.path_mapping import PathMapperFactory, vcenter_path_mapper, xen_path_mapper
from ..libvirt.uri import ConnectionTarget
from .source import Source, remap_disks

SSH_AUTH_SOCK = "SSH_AUTH_SOCK"


# ---------------------------------------------------------------------------
# Environment guards
# ---------------------------------------------------------------------------

def backend_is_unsupported(backend: str) -> bool:
    """
    The libvirt backend mishandles https/ssh json: disks
    (https://bugzilla.redhat.com/show_bug.cgi?id=1134592).
    """
    b = (backend or "").strip()
    return b == "libvirt" or b.startswith("libvirt:")


def ssh_agent_configured(environ: Mapping[str, str]) -> bool:
    # qemu's ssh driver only authenticates through ssh-agent
    return SSH_AUTH_SOCK in environ


def error_if_libvirt_backend(backend: str) -> None:
    if backend_is_unsupported(backend):
        raise unsupported_backend(backend)


def error_if_no_ssh_agent(environ: Mapping[str, str]) -> None:
    if not ssh_agent_configured(environ):
        raise missing_ssh_agent()


# ---------------------------------------------------------------------------
# Collaborators
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class InputCollaborators:
    dump_xml: Callable[[logging.Logger, Optional[str], str], str] = dump_guest_xml
    parse_descriptor: Callable[[str], Source] = parse_descriptor
    vcenter_mapper: PathMapperFactory = vcenter_path_mapper
    xen_mapper: PathMapperFactory = xen_path_mapper
    backend_name: Callable[[], str] = guestfs_backend_name
    environ: Mapping[str, str] = field(default_factory=lambda: os.environ)


# ---------------------------------------------------------------------------
# Adapter
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class SourceAdapter:
    kind: SourceAdapterKind
    guest: str
    uri: Optional[str] = None
    target: Optional[ConnectionTarget] = None
    logger: Any = field(default=None, compare=False, repr=False)
    collab: InputCollaborators = field(default_factory=InputCollaborators, compare=False, repr=False)

    def as_options(self) -> str:
        ic = f" -ic {self.uri}" if self.uri is not None else ""
        return f"-i libvirt{ic} {self.guest}"

    def check_preconditions(self) -> None:
        check_preconditions(self)

    def fetch_source(self) -> Source:
        return fetch_source(self)


def check_preconditions(adapter: SourceAdapter) -> None:
    if adapter.kind is SourceAdapterKind.DEFAULT:
        return
    error_if_libvirt_backend(adapter.collab.backend_name())
    if adapter.kind is SourceAdapterKind.XEN_SSH:
        error_if_no_ssh_agent(adapter.collab.environ)


def _mapper_factory(adapter: SourceAdapter) -> PathMapperFactory:
    if adapter.kind is SourceAdapterKind.VCENTER_HTTPS:
        return adapter.collab.vcenter_mapper
    if adapter.kind is SourceAdapterKind.XEN_SSH:
        return adapter.collab.xen_mapper
    raise ValueError(f"no path mapping for adapter kind {adapter.kind!r}")


def fetch_source(adapter: SourceAdapter) -> Source:
    logger = adapter.logger or logging.getLogger("libvirt2kvm")
    Log.trace(logger, "input_libvirt_%s: source()", adapter.kind.value)

    check_preconditions(adapter)

    # dumpxml also refuses running guests
    xml = adapter.collab.dump_xml(logger, adapter.uri, adapter.guest)
    source = adapter.collab.parse_descriptor(xml)
    Log.trace(logger, "parsed %s: %d disk(s)", source.name, len(source.disks))

    if adapter.kind is SourceAdapterKind.DEFAULT:
        return source

    if adapter.target is None:
        raise ValueError(f"adapter kind {adapter.kind.value!r} needs a parsed connection target")
    mapf = _mapper_factory(adapter)(logger, adapter.target)
    return remap_disks(source, mapf)


def select_source_adapter(
    logger: logging.Logger,
    uri: Optional[str],
    guest: str,
    *,
    collab: Optional[InputCollaborators] = None,
) -> SourceAdapter:
    """
    Classify `uri` and build the matching adapter. Environment preconditions
    are checked here too, so a misconfigured host fails before any libvirt
    traffic.
    """
    result = classify(logger, uri)
    adapter = SourceAdapter(
        kind=result.kind,
        guest=guest,
        uri=uri,
        target=result.target,
        logger=logger,
        collab=collab or InputCollaborators(),
    )
    check_preconditions(adapter)
    logger.debug("input (%s): %s", adapter.kind.value, adapter.as_options())
    return adapter


__all__ = [
    "InputCollaborators",
    "SSH_AUTH_SOCK",
    "SourceAdapter",
    "backend_is_unsupported",
    "check_preconditions",
    "error_if_libvirt_backend",
    "error_if_no_ssh_agent",
    "fetch_source",
    "select_source_adapter",
    "ssh_agent_configured",
]
