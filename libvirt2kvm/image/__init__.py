# libvirt2kvm/image/__init__.py
from .alloc import ImageProvisioner, ProvisionedImage
from .registry import DriveRegistry

__all__ = ["DriveRegistry", "ImageProvisioner", "ProvisionedImage"]
