# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/orchestrator/orchestrator.py
from __future__ import annotations

import argparse
import logging
import sys
from typing import Callable, Dict, Optional, TextIO

from ..core.exceptions import Fatal
from ..core.logger import Log
from ..core.utils import U
from ..image.alloc import ImageProvisioner
from ..image.commands import AllocShell, do_alloc, do_sparse
from ..image.handle import GuestfsDriveRegistry, apply_backend_override
from ..image.registry import DriveRegistry
from ..input.input_libvirt import InputCollaborators, select_source_adapter
from ..input.source import Source
from ..libvirt.classifier import classify

RegistryFactory = Callable[[logging.Logger], DriveRegistry]


def _default_registry(logger: logging.Logger) -> DriveRegistry:
    return GuestfsDriveRegistry(logger)


def format_source(src: Source) -> str:
    lines = [f"guest: {src.name}"]
    for k in sorted(src.metadata):
        lines.append(f"  {k}: {src.metadata[k]}")
    for i, d in enumerate(src.disks):
        dev = f" ({d.target_dev})" if d.target_dev else ""
        lines.append(f"disk {i}{dev}: format={d.format or 'auto'} {d.access_locator}")
    if not src.disks:
        lines.append("(no disks)")
    return "\n".join(lines)


class Orchestrator:
    """
    Runs one CLI command.

    run() returns the process exit code; Fatal errors propagate to main().
    """

    def __init__(
        self,
        logger: logging.Logger,
        args: argparse.Namespace,
        *,
        collab: Optional[InputCollaborators] = None,
        registry_factory: RegistryFactory = _default_registry,
        out: TextIO = sys.stdout,
    ):
        self.logger = logger
        self.args = args
        self.collab = collab
        self.registry_factory = registry_factory
        self.out = out

    def _print(self, text: str) -> None:
        print(text, file=self.out)

    def run(self) -> int:
        apply_backend_override(self.logger, getattr(self.args, "libguestfs_backend", None))

        handlers: Dict[str, Callable[[], int]] = {
            "classify": self._classify,
            "source": self._source,
            "alloc": self._alloc,
            "sparse": self._sparse,
            "shell": self._shell,
        }
        fn = handlers.get(self.args.cmd)
        if fn is None:
            raise Fatal(code=2, msg=f"unknown command: {self.args.cmd!r}")
        return fn()

    # ------------------------------------------------------------------

    def _classify(self) -> int:
        result = classify(self.logger, self.args.connect)
        self._print(result.kind.value)
        if result.target is not None:
            self._print(U.json_dump(result.target))
        return 0

    def _source(self) -> int:
        adapter = select_source_adapter(self.logger, self.args.connect, self.args.guest, collab=self.collab)
        Log.step(self.logger, "Reading source", input=adapter.as_options())
        src = adapter.fetch_source()
        if getattr(self.args, "as_json", False):
            self._print(U.json_dump(src))
        else:
            self._print(format_source(src))
        Log.ok(self.logger, "Source ready", guest=src.name, disks=len(src.disks))
        return 0

    def _provisioner(self, registry: DriveRegistry) -> ImageProvisioner:
        return ImageProvisioner(self.logger, registry, chunk_size=int(self.args.alloc_chunk_size))

    def _with_registry(self, fn: Callable[[ImageProvisioner], int]) -> int:
        registry = self.registry_factory(self.logger)
        try:
            return fn(self._provisioner(registry))
        finally:
            close = getattr(registry, "close", None)
            if callable(close):
                close()

    def _alloc(self) -> int:
        def go(prov: ImageProvisioner) -> int:
            img = do_alloc(prov, self.args.image_args)
            self._print(f"{img.path}\t{img.size}")
            return 0

        return self._with_registry(go)

    def _sparse(self) -> int:
        def go(prov: ImageProvisioner) -> int:
            img = do_sparse(prov, self.args.image_args)
            self._print(f"{img.path}\t{img.size}")
            return 0

        return self._with_registry(go)

    def _shell(self) -> int:
        def go(prov: ImageProvisioner) -> int:
            sh = AllocShell(self.logger, prov, verbose=int(self.args.verbose or 0))
            sh.cmdloop()
            return 1 if sh.last_error is not None else 0

        return self._with_registry(go)


__all__ = ["Orchestrator", "format_source"]
