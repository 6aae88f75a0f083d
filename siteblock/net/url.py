"""
URL and authority parsing for request targets.

Hosts are validated with `siteblock.net.check`, so anything returned here is
safe to connect to and to compare against registered domains.
"""

from __future__ import annotations

import re
import urllib.parse

from siteblock.net.check import is_valid_host
from siteblock.net.check import is_valid_port

# host[:port], where host may be a bracketed IPv6 address.
_authority_re = re.compile(r"(?P<host>\[[^\]]+\]|[^:\[\]]+)(?::(?P<port>\d+))?")

DEFAULT_PORTS = {
    "http": 80,
    "https": 443,
}


def default_port(scheme: str) -> int | None:
    return DEFAULT_PORTS.get(scheme)


def split(url: str) -> tuple[str, str, int | None, str, str]:
    """
    Split an absolute URL into `(scheme, host, port, path, query)`.

    The scheme and host are lowercased and an empty path becomes "/". The
    port is `None` if the URL has none, whatever the scheme.

    *Raises:*
     - ValueError, if there is no valid host or the port is out of range.
    """
    parts = urllib.parse.urlsplit(url)
    host = parts.hostname
    if not host:
        raise ValueError("No hostname given")
    if not is_valid_host(host):
        raise ValueError(f"Invalid host: {host!r}")
    return parts.scheme.lower(), host, parts.port, parts.path or "/", parts.query


def parse(url: str) -> tuple[str, str, int, str, str]:
    """
    Like `split`, but a missing port is filled in from the scheme.

    *Raises:*
     - ValueError, if `split` fails, or the port is missing and the scheme
       has no default port.
    """
    scheme, host, port, path, query = split(url)
    port = port or default_port(scheme)
    if not port:
        raise ValueError(f"Unknown scheme: {scheme!r}")
    return scheme, host, port, path, query


def hostport(scheme: str, host: str, port: int) -> str:
    """
    The authority for a Host header: the port is left out if it is the
    scheme's default.
    """
    if ":" in host:
        host = f"[{host}]"
    if default_port(scheme) == port:
        return host
    return f"{host}:{port}"


def parse_authority(authority: str) -> tuple[str, int | None]:
    """
    Split `host[:port]` as found in Host headers and CONNECT targets.
    IPv6 hosts are returned without brackets.

    *Raises:*
     - ValueError, if the host or the port is malformed.
    """
    m = _authority_re.fullmatch(authority)
    if not m:
        raise ValueError(f"Invalid authority: {authority!r}")
    host = m["host"].removeprefix("[").removesuffix("]")
    if not is_valid_host(host):
        raise ValueError(f"Invalid host: {host!r}")
    if m["port"] is None:
        return host, None
    port = int(m["port"])
    if not is_valid_port(port):
        raise ValueError(f"Port out of range: {port}")
    return host, port
