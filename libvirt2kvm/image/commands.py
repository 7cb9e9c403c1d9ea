# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/image/commands.py
from __future__ import annotations

import cmd
import logging
import shlex
from typing import List, Optional, Sequence

from ..core.exceptions import Libvirt2KvmError, UsageError, already_launched, format_exception_for_cli
from ..core.logger import Log
from .alloc import ImageProvisioner, ProvisionedImage

ALLOC_USAGE = "use 'alloc file size' to create an image"
SPARSE_USAGE = "use 'sparse file size' to create a sparse image"


def _two_args(argv: Sequence[str], usage: str) -> List[str]:
    if len(argv) != 2:
        raise UsageError(code=2, msg=usage, context={"argc": len(argv)})
    return list(argv)


def do_alloc(prov: ImageProvisioner, argv: Sequence[str]) -> ProvisionedImage:
    """alloc FILE SIZE"""
    path, size = _two_args(argv, ALLOC_USAGE)
    return prov.allocate(path, size)


def do_sparse(prov: ImageProvisioner, argv: Sequence[str]) -> ProvisionedImage:
    """sparse FILE SIZE"""
    path, size = _two_args(argv, SPARSE_USAGE)
    return prov.allocate_sparse(path, size)


class AllocShell(cmd.Cmd):
    """
    Minimal interactive front end over one drive registry.

    A failing command is reported and the loop keeps going; nothing a command
    created survives its own failure.
    """

    intro = "Type 'help' for commands. 'alloc'/'sparse' only work before launch."
    prompt = "><libvirt2kvm> "

    def __init__(self, logger: logging.Logger, prov: ImageProvisioner, *, verbose: int = 0, **kw):
        super().__init__(**kw)
        self.logger = logger
        self.prov = prov
        self.verbose = verbose
        self.images: List[ProvisionedImage] = []
        self.last_error: Optional[Libvirt2KvmError] = None

    def _argv(self, line: str) -> Optional[List[str]]:
        try:
            return shlex.split(line)
        except ValueError as e:
            Log.fail(self.logger, f"cannot parse command line: {e}")
            return None

    def _run(self, fn, line: str) -> None:
        argv = self._argv(line)
        if argv is None:
            return
        try:
            img = fn(self.prov, argv)
        except Libvirt2KvmError as e:
            self.last_error = e
            Log.fail(self.logger, format_exception_for_cli(e, verbose=self.verbose))
            return
        self.last_error = None
        self.images.append(img)

    def do_alloc(self, line: str) -> None:
        """alloc FILE SIZE: create a fully allocated image and add it"""
        self._run(do_alloc, line)

    def do_sparse(self, line: str) -> None:
        """sparse FILE SIZE: create a sparse image and add it"""
        self._run(do_sparse, line)

    def do_add(self, line: str) -> None:
        """add FILE: add an existing image"""
        argv = self._argv(line)
        if argv is None:
            return
        if len(argv) != 1:
            Log.fail(self.logger, "use 'add file' to add an existing image")
            return
        try:
            if not self.prov.registry.is_config():
                raise already_launched()
            self.prov.registry.add_drive(argv[0])
        except Libvirt2KvmError as e:
            self.last_error = e
            Log.fail(self.logger, format_exception_for_cli(e, verbose=self.verbose))
            return
        Log.ok(self.logger, "Drive added", path=argv[0])

    def do_list(self, _line: str) -> None:
        """list: show images created in this session"""
        for img in self.images:
            kind = "sparse" if img.sparse else "allocated"
            print(f"{img.path}\t{img.size}\t{kind}", file=self.stdout)

    def do_quit(self, _line: str) -> bool:
        """quit: leave the shell"""
        return True

    do_exit = do_quit
    do_EOF = do_quit

    def emptyline(self) -> bool:
        return False


__all__ = ["ALLOC_USAGE", "SPARSE_USAGE", "AllocShell", "do_alloc", "do_sparse"]
