# libvirt2kvm/libvirt/__init__.py
from .classifier import Classification, SourceAdapterKind, classify
from .uri import ConnectionTarget, parse_connection_uri

__all__ = ["Classification", "ConnectionTarget", "SourceAdapterKind", "classify", "parse_connection_uri"]
