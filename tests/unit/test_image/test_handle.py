# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the libguestfs drive registry."""
from __future__ import annotations

import builtins
import os
from unittest.mock import Mock, patch

import pytest

from fakes.fake_guestfs import FakeGuestFS
from libvirt2kvm.core.exceptions import Fatal, RegistrationFailure
from libvirt2kvm.image.alloc import ImageProvisioner
from libvirt2kvm.image.handle import (
    GuestfsDriveRegistry,
    apply_backend_override,
    guestfs_backend_name,
    new_handle,
)


@pytest.mark.unit
class TestGuestfsDriveRegistry:
    def test_add_drive_passes_format(self):
        g = FakeGuestFS()
        reg = GuestfsDriveRegistry(Mock(), g)
        assert reg.is_config()
        assert reg.add_drive("/tmp/a.img") == 0
        assert reg.add_drive("/tmp/b.img") == 1
        assert g.drives == [("/tmp/a.img", {"format": "raw"}), ("/tmp/b.img", {"format": "raw"})]
        assert reg.drives == ["/tmp/a.img", "/tmp/b.img"]

    def test_not_config_after_launch(self):
        g = FakeGuestFS()
        reg = GuestfsDriveRegistry(Mock(), g)
        g.launch()
        assert not reg.is_config()

    def test_refused_drive(self):
        reg = GuestfsDriveRegistry(Mock(), FakeGuestFS(refuse_drives=True))
        with pytest.raises(RegistrationFailure) as ei:
            reg.add_drive("/tmp/a.img")
        assert isinstance(ei.value.cause, RuntimeError)
        assert reg.drives == []

    def test_close(self):
        g = FakeGuestFS()
        GuestfsDriveRegistry(Mock(), g).close()
        assert g.closed

    def test_allocate_through_handle(self, tmp_path):
        g = FakeGuestFS()
        prov = ImageProvisioner(Mock(), GuestfsDriveRegistry(Mock(), g, fmt="raw"))
        prov.allocate_sparse(tmp_path / "d.img", "10M")
        assert g.drives == [(str(tmp_path / "d.img"), {"format": "raw"})]

    def test_launched_handle_refuses_allocation(self, tmp_path):
        g = FakeGuestFS()
        g.launch()
        prov = ImageProvisioner(Mock(), GuestfsDriveRegistry(Mock(), g))
        with pytest.raises(Fatal):
            prov.allocate(tmp_path / "d.img", "1M")
        assert not (tmp_path / "d.img").exists()


@pytest.mark.unit
class TestBackend:
    def test_backend_name_from_given_handle(self):
        g = FakeGuestFS(backend="libvirt:qemu:///system")
        assert guestfs_backend_name(g) == "libvirt:qemu:///system"
        assert not g.closed

    def test_backend_name_closes_own_handle(self):
        g = FakeGuestFS(backend="direct")
        with patch("libvirt2kvm.image.handle.new_handle", return_value=g):
            assert guestfs_backend_name() == "direct"
        assert g.closed

    def test_apply_backend_override(self, monkeypatch):
        monkeypatch.setenv("LIBGUESTFS_BACKEND", "libvirt")
        apply_backend_override(Mock(), None)
        assert os.environ["LIBGUESTFS_BACKEND"] == "libvirt"
        apply_backend_override(Mock(), "direct")
        assert os.environ["LIBGUESTFS_BACKEND"] == "direct"

    def test_missing_bindings(self):
        real_import = builtins.__import__

        def fake_import(name, *args, **kwargs):
            if name == "guestfs":
                raise ImportError("No module named 'guestfs'")
            return real_import(name, *args, **kwargs)

        with patch("builtins.__import__", side_effect=fake_import):
            with pytest.raises(Fatal) as ei:
                new_handle()
        assert "python3-libguestfs" in str(ei.value)
