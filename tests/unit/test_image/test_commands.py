# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the alloc/sparse command surface."""
from __future__ import annotations

import io

import pytest

from fakes.fake_logger import FakeLogger
from fakes.fake_registry import FakeDriveRegistry
from libvirt2kvm.core.exceptions import AlreadyLaunched, UsageError
from libvirt2kvm.image.alloc import ImageProvisioner
from libvirt2kvm.image.commands import (
    ALLOC_USAGE,
    SPARSE_USAGE,
    AllocShell,
    do_alloc,
    do_sparse,
)


def _prov(reg=None):
    return ImageProvisioner(FakeLogger(), reg or FakeDriveRegistry(), fallocate=None)


@pytest.mark.unit
class TestCommands:
    @pytest.mark.parametrize("argv", [[], ["only-one"], ["a", "1M", "extra"]])
    def test_alloc_usage(self, argv):
        with pytest.raises(UsageError) as ei:
            do_alloc(_prov(), argv)
        assert str(ei.value) == ALLOC_USAGE
        assert ei.value.code == 2

    @pytest.mark.parametrize("argv", [[], ["x"], ["x", "1M", "y"]])
    def test_sparse_usage(self, argv):
        with pytest.raises(UsageError) as ei:
            do_sparse(_prov(), argv)
        assert str(ei.value) == SPARSE_USAGE

    def test_alloc(self, tmp_path):
        img = do_alloc(_prov(), [str(tmp_path / "a.img"), "8k"])
        assert img.size == 8192
        assert not img.sparse

    def test_sparse(self, tmp_path):
        img = do_sparse(_prov(), [str(tmp_path / "s.img"), "8k"])
        assert img.sparse
        assert (tmp_path / "s.img").stat().st_size == 8192

    def test_usage_checked_before_anything_else(self, tmp_path):
        reg = FakeDriveRegistry(launched=True)
        with pytest.raises(UsageError):
            do_alloc(_prov(reg), ["x"])
        with pytest.raises(AlreadyLaunched):
            do_alloc(_prov(reg), [str(tmp_path / "x"), "1M"])


def _shell(script, reg=None):
    out = io.StringIO()
    logger = FakeLogger()
    sh = AllocShell(logger, _prov(reg), stdin=io.StringIO(script), stdout=out)
    sh.use_rawinput = False
    sh.cmdloop(intro="")
    return sh, logger, out.getvalue()


@pytest.mark.unit
class TestAllocShell:
    def test_session(self, tmp_path):
        a = tmp_path / "a.img"
        b = tmp_path / "b c.img"
        script = f"alloc {a} 4k\nsparse '{b}' 1M\nlist\nquit\n"

        sh, logger, out = _shell(script)

        assert sh.last_error is None
        assert [img.path for img in sh.images] == [a, b]
        assert f"{a}\t4096\tallocated" in out
        assert f"{b}\t1048576\tsparse" in out
        assert b.stat().st_size == 1048576

    def test_errors_are_reported_and_loop_continues(self, tmp_path):
        good = tmp_path / "ok.img"
        script = f"alloc onlyone\nsparse {tmp_path / 'z.img'} 0\nalloc {good} 1k\n"

        sh, logger, _ = _shell(script)

        errors = logger.messages("error")
        assert any(ALLOC_USAGE in m for m in errors)
        assert any("lseek" in m for m in errors)
        assert good.exists()
        assert not (tmp_path / "z.img").exists()
        # a later success clears the error
        assert sh.last_error is None

    def test_last_error_survives_eof(self, tmp_path):
        sh, _, _ = _shell("alloc x 12q\n")
        assert sh.last_error is not None

    def test_unbalanced_quotes(self):
        sh, logger, _ = _shell("alloc 'unterminated 1M\n")
        assert sh.images == []
        assert any("cannot parse" in m for m in logger.messages("error"))

    def test_add_existing(self, tmp_path):
        reg = FakeDriveRegistry()
        existing = tmp_path / "existing.img"
        existing.write_bytes(b"")
        _shell(f"add {existing}\n", reg)
        assert reg.drives == [str(existing)]

    def test_add_after_launch(self, tmp_path):
        reg = FakeDriveRegistry(launched=True)
        sh, logger, _ = _shell(f"add {tmp_path}/x.img\n", reg)
        assert isinstance(sh.last_error, AlreadyLaunched)
        assert reg.drives == []
