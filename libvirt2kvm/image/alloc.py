# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/image/alloc.py
"""
Create blank disk images and attach them as drives.

Two flavours:
  - allocate():        every block is reserved (posix_fallocate, or zero
                       writes where the filesystem can't do that)
  - allocate_sparse(): one zero byte at size-1; the rest is a hole

Whatever happens, a failed call never leaves a partial image behind.
"""
from __future__ import annotations

import errno
import io
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Optional, Union

from ..core.exceptions import (
    Libvirt2KvmError,
    already_launched,
    image_io_error,
    registration_failure,
)
from ..core.logger import Log
from ..core.sizes import parse_size
from ..core.utils import U
from .registry import DriveRegistry

try:
    from rich.progress import (
        BarColumn,
        Progress,
        TextColumn,
        TimeElapsedColumn,
        TransferSpeedColumn,
    )
except Exception:  # pragma: no cover
    Progress = None  # type: ignore

PathLike = Union[str, Path]
Fallocate = Callable[[int, int, int], None]
Writer = Callable[[int, bytes], int]

_OPEN_FLAGS = os.O_WRONLY | os.O_CREAT | os.O_TRUNC | getattr(os, "O_NOCTTY", 0)
_OPEN_MODE = 0o666

# errnos meaning "this filesystem/platform can't preallocate", not "disk full"
_FALLOCATE_UNSUPPORTED = frozenset(
    e for e in (
        getattr(errno, "EOPNOTSUPP", None),
        getattr(errno, "ENOTSUP", None),
        getattr(errno, "ENOSYS", None),
    )
    if e is not None
)


@dataclass(frozen=True)
class ProvisionedImage:
    path: Path
    size: int
    sparse: bool
    drive: Any = None


class ImageProvisioner:
    def __init__(
        self,
        logger: logging.Logger,
        registry: DriveRegistry,
        *,
        chunk_size: int = io.DEFAULT_BUFFER_SIZE,
        fallocate: Optional[Fallocate] = getattr(os, "posix_fallocate", None),
        writer: Writer = os.write,
    ):
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be > 0 (got {chunk_size})")
        self.logger = logger
        self.registry = registry
        self.chunk_size = int(chunk_size)
        self._fallocate = fallocate
        self._write = writer

    # ------------------------------------------------------------------
    # public entry points
    # ------------------------------------------------------------------

    def allocate(self, path: PathLike, size_spec: str) -> ProvisionedImage:
        """Create a fully allocated, zero-filled image and add it as a drive."""
        size = parse_size(size_spec)
        self._require_config()
        p = str(path)

        Log.step(self.logger, "Allocating image", path=p, size=U.human_bytes(size))
        fd = self._create(p)
        try:
            self._preallocate(fd, p, size)
        except BaseException:
            self._abort(fd, p)
            raise
        self._close(fd, p)
        return self._register(p, size, sparse=False)

    def allocate_sparse(self, path: PathLike, size_spec: str) -> ProvisionedImage:
        """Create a sparse image of exactly the requested length and add it as a drive."""
        size = parse_size(size_spec)
        self._require_config()
        p = str(path)

        Log.step(self.logger, "Creating sparse image", path=p, size=U.human_bytes(size))
        fd = self._create(p)
        try:
            # size == 0 seeks to -1, which the kernel refuses with EINVAL
            self._seek(fd, p, size - 1)
            self._write_exact(fd, p, b"\0")
        except BaseException:
            self._abort(fd, p)
            raise
        self._close(fd, p)
        return self._register(p, size, sparse=True)

    # ------------------------------------------------------------------
    # steps
    # ------------------------------------------------------------------

    def _require_config(self) -> None:
        if not self.registry.is_config():
            raise already_launched()

    def _create(self, path: str) -> int:
        try:
            return os.open(path, _OPEN_FLAGS, _OPEN_MODE)
        except OSError as e:
            raise image_io_error(path, "open", e) from e

    def _preallocate(self, fd: int, path: str, size: int) -> None:
        if size == 0:
            return
        if self._fallocate is not None:
            try:
                self._fallocate(fd, 0, size)
                Log.trace(self.logger, "posix_fallocate(%s, 0, %d) ok", path, size)
                return
            except OSError as e:
                if e.errno not in _FALLOCATE_UNSUPPORTED:
                    raise image_io_error(path, "fallocate", e) from e
                self.logger.debug("posix_fallocate unsupported on %s (%s); writing zeroes", path, e)
        self._zero_fill(fd, path, size)

    def _zero_fill(self, fd: int, path: str, size: int) -> None:
        buf = bytes(self.chunk_size)
        rich_ok = Progress is not None and getattr(sys.stderr, "isatty", lambda: False)()

        if not rich_ok:
            self._write_zeroes(fd, path, size, buf, None)
            return

        with Progress(
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TextColumn("[progress.percentage]{task.percentage:>3.0f}%"),
            TransferSpeedColumn(),
            TimeElapsedColumn(),
        ) as progress:
            task = progress.add_task(f"Zeroing {os.path.basename(path)}", total=size)
            self._write_zeroes(fd, path, size, buf, lambda n: progress.update(task, advance=n))

    def _write_zeroes(
        self,
        fd: int,
        path: str,
        size: int,
        buf: bytes,
        advance: Optional[Callable[[int], None]],
    ) -> None:
        remaining = size
        view = memoryview(buf)
        while remaining > 0:
            n = min(remaining, len(buf))
            try:
                written = self._write(fd, view[:n])
            except OSError as e:
                raise image_io_error(path, "write", e) from e
            if written <= 0:
                raise image_io_error(path, "write", OSError(errno.EIO, "write made no progress"))
            # short writes just leave more for the next round
            remaining -= written
            if advance is not None:
                advance(written)

    def _seek(self, fd: int, path: str, offset: int) -> None:
        try:
            os.lseek(fd, offset, os.SEEK_SET)
        except (OSError, ValueError, OverflowError) as e:
            err = e if isinstance(e, OSError) else OSError(errno.EINVAL, str(e))
            raise image_io_error(path, "lseek", err) from e

    def _write_exact(self, fd: int, path: str, data: bytes) -> None:
        try:
            written = self._write(fd, data)
        except OSError as e:
            raise image_io_error(path, "write", e) from e
        if written != len(data):
            raise image_io_error(path, "write", OSError(errno.EIO, f"short write ({written}/{len(data)} bytes)"))

    def _close(self, fd: int, path: str) -> None:
        try:
            os.close(fd)
        except OSError as e:
            self._unlink(path)
            raise image_io_error(path, "close", e) from e

    def _abort(self, fd: int, path: str) -> None:
        try:
            os.close(fd)
        except OSError as e:
            self.logger.debug("close(%s) during cleanup failed: %s", path, e)
        self._unlink(path)

    def _unlink(self, path: str) -> None:
        try:
            os.unlink(path)
            Log.trace(self.logger, "removed partial image %s", path)
        except FileNotFoundError:
            pass
        except OSError as e:
            Log.warn(self.logger, f"could not remove partial image {path}: {e}")

    def _register(self, path: str, size: int, *, sparse: bool) -> ProvisionedImage:
        try:
            drive = self.registry.add_drive(path)
        except Libvirt2KvmError:
            self._unlink(path)
            raise
        except (RuntimeError, OSError) as e:
            self._unlink(path)
            raise registration_failure(path, e) from e
        except BaseException:
            self._unlink(path)
            raise

        Log.ok(self.logger, "Image ready", path=path, size=size, sparse=sparse)
        return ProvisionedImage(path=Path(path), size=size, sparse=sparse, drive=drive)


__all__ = ["ImageProvisioner", "ProvisionedImage"]
