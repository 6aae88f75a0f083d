"""
The two kinds of requests a client can send to the proxy.

The listener parses the request head once and turns it into either a
`PlainRequest` or a `TunnelRequest`. Everything after that point only deals with
one of the two.
"""

from __future__ import annotations

import urllib.parse
from dataclasses import dataclass

import h11

from siteblock.exceptions import ProtocolError
from siteblock.net import url


@dataclass
class PlainRequest:
    method: bytes
    url: str
    """Absolute URL, used for classification and in the block page."""
    scheme: str
    host: str
    port: int
    path: str
    """Origin-form request target (path and query) as sent by the client."""
    headers: list[tuple[bytes, bytes]]
    """Header fields in their original order and casing."""


@dataclass
class TunnelRequest:
    authority: str
    host: str
    port: int


ProxyRequest = PlainRequest | TunnelRequest


def _str(b: bytes) -> str:
    return b.decode("utf-8", "surrogateescape")


def from_h11(request: h11.Request) -> ProxyRequest:
    """
    Build the request variant from a parsed request head.

    *Raises:*
     - ProtocolError, if the request target or the Host header is malformed.
    """
    target = _str(request.target)
    if request.method == b"CONNECT":
        try:
            host, port = url.parse_authority(target)
        except ValueError:
            raise ProtocolError(f"Invalid CONNECT target: {target!r}")
        return TunnelRequest(authority=target, host=host, port=port or 443)

    if target.startswith("/"):
        host_header = next(
            (value for name, value in request.headers if name == b"host"), None
        )
        if not host_header:
            raise ProtocolError("Missing Host header.")
        try:
            host, port = url.parse_authority(_str(host_header))
        except ValueError as e:
            raise ProtocolError(f"Invalid Host header: {e}")
        authority = url.hostport("http", host, port or url.DEFAULT_PORTS["http"])
        absolute_url = f"http://{authority}{target}"
        path = target
    else:
        absolute_url = target
        parts = urllib.parse.urlsplit(target)
        path = parts.path or "/"
        if parts.query:
            path += "?" + parts.query

    try:
        scheme, host, port, _, _ = url.parse(absolute_url)
    except ValueError as e:
        raise ProtocolError(f"Invalid request target {absolute_url!r}: {e}")

    return PlainRequest(
        method=request.method,
        url=absolute_url,
        scheme=scheme,
        host=host,
        port=port,
        path=path,
        headers=list(request.headers.raw_items()),
    )
