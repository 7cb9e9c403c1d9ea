# libvirt2kvm/orchestrator/__init__.py
from .orchestrator import Orchestrator

__all__ = ["Orchestrator"]
