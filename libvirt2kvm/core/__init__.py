# libvirt2kvm/core/__init__.py
from .exceptions import Fatal, Libvirt2KvmError
from .sizes import parse_size

__all__ = ["Fatal", "Libvirt2KvmError", "parse_size"]
