# SPDX-License-Identifier: LGPL-3.0-or-later
from __future__ import annotations

from unittest.mock import Mock, patch

import pytest

from fakes.fake_registry import FakeDriveRegistry
from libvirt2kvm.__main__ import main
from libvirt2kvm.core.exceptions import already_launched


@pytest.mark.unit
class TestMain:
    def test_fatal_maps_to_exit_code(self, tmp_path):
        with patch("libvirt2kvm.orchestrator.orchestrator.GuestfsDriveRegistry", return_value=FakeDriveRegistry()):
            with pytest.raises(SystemExit) as ei:
                main(["-q", "alloc", str(tmp_path / "x.img"), "12q"])
        assert ei.value.code == 2
        assert not (tmp_path / "x.img").exists()

    def test_broken_config(self, tmp_path, capsys):
        cfg = tmp_path / "bad.yaml"
        cfg.write_text("- not a mapping\n", encoding="utf-8")
        with pytest.raises(SystemExit) as ei:
            main(["--config", str(cfg), "classify"])
        assert ei.value.code == 2
        assert "mapping" in capsys.readouterr().err

    def test_success(self):
        with patch("libvirt2kvm.__main__.Orchestrator") as orch:
            orch.return_value.run.return_value = 0
            with pytest.raises(SystemExit) as ei:
                main(["-q", "classify"])
        assert ei.value.code == 0

    def test_fatal_from_run(self):
        with patch("libvirt2kvm.__main__.Orchestrator") as orch:
            orch.return_value.run.side_effect = already_launched()
            with pytest.raises(SystemExit) as ei:
                main(["-q", "shell"])
        assert ei.value.code == 2

    def test_unhandled_is_one(self):
        with patch("libvirt2kvm.__main__.Orchestrator") as orch:
            orch.return_value.run.side_effect = RuntimeError("boom")
            with pytest.raises(SystemExit) as ei:
                main(["-q", "shell"])
        assert ei.value.code == 1

    def test_ctrl_c(self):
        with patch("libvirt2kvm.__main__.Orchestrator") as orch:
            orch.return_value.run.side_effect = KeyboardInterrupt
            with pytest.raises(SystemExit) as ei:
                main(["-q", "shell"])
        assert ei.value.code == 130
