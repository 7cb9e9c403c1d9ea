# SPDX-License-Identifier: LGPL-3.0-or-later
"""Tests for the libvirt input adapters."""
from __future__ import annotations

import json
from unittest.mock import Mock

import pytest

from fakes.fake_logger import FakeLogger
from libvirt2kvm.core.exceptions import InvalidConnectionUri, MissingSshAgent, UnsupportedBackend
from libvirt2kvm.input.input_libvirt import (
    InputCollaborators,
    SourceAdapter,
    backend_is_unsupported,
    select_source_adapter,
    ssh_agent_configured,
)
from libvirt2kvm.input.source import Disk, Source
from libvirt2kvm.libvirt.classifier import SourceAdapterKind

AGENT = {"SSH_AUTH_SOCK": "/run/user/1000/ssh-agent.sock"}


class Recorder:
    """Collaborator set that records what the adapter asked for."""

    def __init__(self, source, *, backend="direct", environ=None):
        self.source = source
        self.backend = backend
        self.environ = AGENT if environ is None else environ
        self.dumped = []
        self.parsed = []
        self.backend_queries = 0

    def dump_xml(self, logger, uri, guest):
        self.dumped.append((uri, guest))
        return "<domain/>"

    def parse(self, xml):
        self.parsed.append(xml)
        return self.source

    def backend_name(self):
        self.backend_queries += 1
        return self.backend

    def collab(self, **kw):
        return InputCollaborators(
            dump_xml=self.dump_xml,
            parse_descriptor=self.parse,
            backend_name=self.backend_name,
            environ=self.environ,
            **kw,
        )


def _source(*locators):
    return Source(name="guest1", disks=tuple(Disk(loc, "vmdk") for loc in locators))


@pytest.mark.unit
class TestGuards:
    @pytest.mark.parametrize("backend", ["libvirt", "libvirt:qemu:///session", " libvirt "])
    def test_libvirt_backends_unsupported(self, backend):
        assert backend_is_unsupported(backend)

    @pytest.mark.parametrize("backend", ["direct", "appliance", "", "libvirtx"])
    def test_other_backends_ok(self, backend):
        assert not backend_is_unsupported(backend)

    def test_ssh_agent_presence_only(self):
        assert ssh_agent_configured({"SSH_AUTH_SOCK": ""})
        assert not ssh_agent_configured({})


@pytest.mark.unit
class TestSelectSourceAdapter:
    def test_default(self):
        rec = Recorder(_source("/var/lib/libvirt/images/g.img"))
        adapter = select_source_adapter(FakeLogger(), None, "guest1", collab=rec.collab())
        assert adapter.kind is SourceAdapterKind.DEFAULT
        assert adapter.target is None
        # local input never needs the backend
        assert rec.backend_queries == 0

    def test_vcenter(self):
        rec = Recorder(_source())
        adapter = select_source_adapter(FakeLogger(), "vpx://vc/DC/esx1", "guest1", collab=rec.collab())
        assert adapter.kind is SourceAdapterKind.VCENTER_HTTPS
        assert adapter.target.server == "vc"
        assert rec.backend_queries == 1

    def test_xen_without_agent(self):
        rec = Recorder(_source(), backend="direct", environ={})
        with pytest.raises(MissingSshAgent):
            select_source_adapter(FakeLogger(), "xen+ssh://xen", "guest1", collab=rec.collab())
        assert rec.dumped == []

    @pytest.mark.parametrize("uri", ["esx://esxi", "xen+ssh://xen"])
    def test_libvirt_backend_rejected(self, uri):
        rec = Recorder(_source(), backend="libvirt")
        with pytest.raises(UnsupportedBackend) as ei:
            select_source_adapter(FakeLogger(), uri, "guest1", collab=rec.collab())
        assert "LIBGUESTFS_BACKEND=direct" in str(ei.value)
        assert rec.dumped == []

    def test_xen_backend_checked_before_agent(self):
        rec = Recorder(_source(), backend="libvirt", environ={})
        with pytest.raises(UnsupportedBackend):
            select_source_adapter(FakeLogger(), "xen+ssh://xen", "guest1", collab=rec.collab())

    def test_unsupported_scheme_falls_back_to_default(self):
        logger = FakeLogger()
        rec = Recorder(_source())
        adapter = select_source_adapter(logger, "qemu+tcp://h/system", "guest1", collab=rec.collab())
        assert adapter.kind is SourceAdapterKind.DEFAULT
        assert len(logger.messages("warning")) == 1

    def test_bad_uri(self):
        with pytest.raises(InvalidConnectionUri):
            select_source_adapter(FakeLogger(), "bad uri", "guest1", collab=Recorder(_source()).collab())


@pytest.mark.unit
class TestFetchSource:
    def test_default_returns_descriptor_unchanged(self):
        src = _source("/var/lib/libvirt/images/g.img")
        rec = Recorder(src)
        adapter = select_source_adapter(FakeLogger(), "qemu:///system", "guest1", collab=rec.collab())

        assert adapter.fetch_source() is src
        assert rec.dumped == [("qemu:///system", "guest1")]
        assert rec.parsed == ["<domain/>"]

    def test_vcenter_remaps_every_disk(self):
        rec = Recorder(_source("[ds1] g/g.vmdk", "[ds1] g/g_1.vmdk"))
        adapter = select_source_adapter(FakeLogger(), "esx://esxi?no_verify=1", "guest1", collab=rec.collab())

        src = adapter.fetch_source()

        assert [d.format for d in src.disks] == ["raw", "raw"]
        urls = [json.loads(d.access_locator[len("json: "):])["file.url"] for d in src.disks]
        assert urls == [
            "https://esxi/folder/g/g-flat.vmdk?dcPath=ha-datacenter&dsName=ds1",
            "https://esxi/folder/g/g_1-flat.vmdk?dcPath=ha-datacenter&dsName=ds1",
        ]

    def test_xen_remaps_with_injected_mapper(self):
        seen = []

        def factory(logger, target):
            seen.append(target.server)
            return lambda loc, fmt: (f"ssh://{target.server}{loc}", fmt)

        rec = Recorder(_source("/img/a", "/img/b"))
        adapter = select_source_adapter(
            FakeLogger(), "xen+ssh://root@xen", "guest1", collab=rec.collab(xen_mapper=factory)
        )

        src = adapter.fetch_source()

        assert seen == ["xen"]
        assert [d.access_locator for d in src.disks] == ["ssh://xen/img/a", "ssh://xen/img/b"]
        assert [d.format for d in src.disks] == ["vmdk", "vmdk"]

    def test_preconditions_rechecked_at_fetch(self):
        env = dict(AGENT)
        rec = Recorder(_source("/img/a"), environ=env)
        adapter = select_source_adapter(FakeLogger(), "xen+ssh://xen", "guest1", collab=rec.collab())

        env.clear()
        with pytest.raises(MissingSshAgent):
            adapter.fetch_source()
        assert rec.dumped == []

    def test_remote_kind_without_target_is_rejected(self):
        rec = Recorder(_source("[ds1] g/g.vmdk"))
        adapter = SourceAdapter(kind=SourceAdapterKind.VCENTER_HTTPS, guest="g", logger=Mock(), collab=rec.collab())
        with pytest.raises(ValueError, match="connection target"):
            adapter.fetch_source()

    def test_dump_failure_propagates(self):
        def boom(logger, uri, guest):
            raise RuntimeError("virsh exploded")

        rec = Recorder(_source())
        collab = InputCollaborators(dump_xml=boom, parse_descriptor=rec.parse, backend_name=rec.backend_name)
        adapter = SourceAdapter(kind=SourceAdapterKind.DEFAULT, guest="g", logger=Mock(), collab=collab)
        with pytest.raises(RuntimeError):
            adapter.fetch_source()
        assert rec.parsed == []


@pytest.mark.unit
class TestAsOptions:
    def test_without_uri(self):
        adapter = SourceAdapter(kind=SourceAdapterKind.DEFAULT, guest="rhel6")
        assert adapter.as_options() == "-i libvirt rhel6"

    def test_with_uri(self):
        rec = Recorder(_source())
        adapter = select_source_adapter(FakeLogger(), "esx://esxi", "win2k8", collab=rec.collab())
        assert adapter.as_options() == "-i libvirt -ic esx://esxi win2k8"
