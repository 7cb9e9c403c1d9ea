# SPDX-License-Identifier: LGPL-3.0-or-later
# -*- coding: utf-8 -*-
# libvirt2kvm/libvirt/uri.py
"""Parsing of libvirt connection URIs (the -ic argument)."""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Optional, Tuple
from urllib.parse import parse_qsl, unquote, urlsplit

# RFC 3986 unreserved + reserved + '%'
_URI_CHARS_RE = re.compile(r"\A[A-Za-z0-9\-._~:/?#\[\]@!$&'()*+,;=%]*\Z")
_BAD_ESCAPE_RE = re.compile(r"%(?![0-9A-Fa-f]{2})")


@dataclass(frozen=True)
class ConnectionTarget:
    """
    Parsed connection URI. Empty components are stored as None so that
    "xen+ssh://" and "xen+ssh:///" both have no server.
    """
    raw: str
    scheme: Optional[str] = None
    server: Optional[str] = None
    user: Optional[str] = None
    port: Optional[int] = None
    path: Optional[str] = None
    query: Optional[str] = None

    @property
    def is_remote(self) -> bool:
        return self.server is not None

    def query_params(self) -> Dict[str, str]:
        return dict(parse_qsl(self.query or "", keep_blank_values=True))


def _none_if_empty(s: Optional[str]) -> Optional[str]:
    return s if s else None


def _split_netloc(netloc: str) -> Tuple[Optional[str], str, Optional[int]]:
    user: Optional[str] = None
    hostport = netloc
    if "@" in netloc:
        userinfo, _, hostport = netloc.rpartition("@")
        # user:password -> user
        user = unquote(userinfo.split(":", 1)[0])

    port_s = ""
    if hostport.startswith("["):
        end = hostport.find("]")
        if end < 0:
            raise ValueError("unterminated IPv6 address")
        host = hostport[1:end]
        rest = hostport[end + 1:]
        if rest:
            if not rest.startswith(":"):
                raise ValueError(f"unexpected characters after IPv6 address: {rest!r}")
            port_s = rest[1:]
    elif ":" in hostport:
        host, _, port_s = hostport.rpartition(":")
    else:
        host = hostport

    port: Optional[int] = None
    if port_s:
        if not port_s.isdigit():
            raise ValueError(f"invalid port: {port_s!r}")
        port = int(port_s)

    return _none_if_empty(user), unquote(host), port


def parse_connection_uri(raw: str) -> ConnectionTarget:
    """
    Split a libvirt URI into its parts.

    Raises ValueError with a human readable reason when the string is not a
    URI at all (whitespace, stray characters, broken %-escapes, bad port).
    """
    if raw is None:
        raise ValueError("no URI given")
    if not _URI_CHARS_RE.match(raw):
        bad = next(ch for ch in raw if not _URI_CHARS_RE.match(ch))
        raise ValueError(f"invalid character {bad!r} in URI")
    if _BAD_ESCAPE_RE.search(raw):
        raise ValueError("malformed %-escape in URI")

    try:
        parts = urlsplit(raw)
    except ValueError as e:
        raise ValueError(str(e)) from e

    user, server, port = _split_netloc(parts.netloc)

    return ConnectionTarget(
        raw=raw,
        scheme=_none_if_empty(parts.scheme),
        server=_none_if_empty(server),
        user=user,
        port=port,
        path=_none_if_empty(unquote(parts.path)),
        query=_none_if_empty(parts.query),
    )


__all__ = ["ConnectionTarget", "parse_connection_uri"]
