# libvirt2kvm/input/__init__.py
# input_libvirt is not re-exported here: libvirt.domain_xml imports .source
from .source import Disk, Source

__all__ = ["Disk", "Source"]
