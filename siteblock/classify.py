"""
Traffic classification: decide whether a request target is blocked.

Plain HTTP requests expose the full URL and are matched against the domain's
whitelisted path prefixes. CONNECT tunnels only expose host and port, so a
tunnel to a registered domain is blocked outright, whatever its whitelist.

Classification fails open: a target we cannot parse is never blocked.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass

from siteblock.net import url
from siteblock.rules import canonical_domain
from siteblock.rules import RuleRegistry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RequestDescriptor:
    raw_target: str
    domain: str
    normalized_path: str | None
    """Lowercased path and query string, or `None` if the path is unknown (tunnels)."""


def describe_url(target: str) -> RequestDescriptor:
    """
    *Raises:*
     - ValueError, if the target is not an absolute URL with a valid host.
    """
    _, host, _, path, query = url.split(target)
    full_path = path.lower()
    if query:
        full_path += "?" + query.lower()
    return RequestDescriptor(
        raw_target=target,
        domain=canonical_domain(host),
        normalized_path=full_path,
    )


def describe_authority(authority: str) -> RequestDescriptor:
    """
    *Raises:*
     - ValueError, if the authority is not a valid host with an optional port.
    """
    host, _ = url.parse_authority(authority)
    return RequestDescriptor(
        raw_target=authority,
        domain=canonical_domain(host),
        normalized_path=None,
    )


def path_whitelisted(full_path: str, whitelist: Iterable[str]) -> bool:
    """
    A whitelist entry matches the path itself, its sub-paths and the path with a query string.
    "/not" matches "/not", "/not/x" and "/not?y=1", but not "/nothing".
    """
    for w in whitelist:
        if full_path == w or full_path.startswith((w + "/", w + "?")):
            return True
    return False


class Classifier:
    def __init__(self, registry: RuleRegistry) -> None:
        self.registry = registry

    def classify(self, request: RequestDescriptor) -> bool:
        rule = self.registry.lookup(request.domain)
        if rule is None or not rule.blocked:
            return False
        if request.normalized_path is None:
            return True
        return not path_whitelisted(request.normalized_path, rule.whitelist_paths)

    def is_blocked(self, target: str) -> bool:
        """Classify an absolute URL."""
        try:
            request = describe_url(target)
        except ValueError as e:
            logger.debug(f"Cannot classify {target!r}, allowing: {e}")
            return False
        return self.classify(request)

    def is_tunnel_blocked(self, authority: str) -> bool:
        """Classify a CONNECT target of the form host[:port]."""
        try:
            request = describe_authority(authority)
        except ValueError as e:
            logger.debug(f"Cannot classify {authority!r}, allowing: {e}")
            return False
        return self.classify(request)
