"""
The rule registry maps canonical domains to their blocking rules.

It is written only by the configuration path (options, control plane) and read
by the classifier for every request. Writes are serialized with a lock, reads
see the newest state without taking a snapshot.
"""

from __future__ import annotations

import dataclasses
import logging
import threading
from collections.abc import Iterable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


def canonical_domain(domain: str) -> str:
    """
    Lowercase a hostname and strip at most one leading "www.".

    Other subdomains are left alone, so "m.example.com" and "example.com" stay distinct.
    """
    domain = domain.strip().lower()
    if domain.startswith("www."):
        domain = domain[4:]
    return domain


@dataclass(frozen=True)
class SiteRule:
    domain: str
    whitelist_paths: tuple[str, ...] = ()
    blocked: bool = True

    def to_json(self) -> dict:
        return {
            "domain": self.domain,
            "whitelist": list(self.whitelist_paths),
            "blocked": self.blocked,
        }


def parse_site_spec(spec: str) -> tuple[str, list[str]]:
    """
    Parses strings in one of the following formats:

        example.com
        |example.com|/path|/other/path?query=1

    In the second form the first character is the separator and can be any
    character that cannot appear in a hostname.

    *Raises:*
     - ValueError, if the specification is invalid.
    """
    spec = spec.strip()
    if not spec:
        raise ValueError("Empty site specification.")
    if spec[0].isalnum():
        return spec, []

    sep, rem = spec[0], spec[1:]
    domain, *paths = rem.split(sep)
    if not domain:
        raise ValueError(f"Missing domain in site specification: {spec}")
    if any(not p for p in paths):
        raise ValueError(f"Empty whitelist entry in site specification: {spec}")
    return domain, paths


def _make_rule(domain: str, whitelist_paths: Iterable[str]) -> SiteRule:
    rule = SiteRule(
        domain=canonical_domain(domain),
        whitelist_paths=tuple(p.lower() for p in whitelist_paths),
    )
    if not rule.domain:
        raise ValueError("Cannot register an empty domain.")
    return rule


class RuleRegistry:
    def __init__(self) -> None:
        self._rules: dict[str, SiteRule] = {}
        self._lock = threading.Lock()

    def __repr__(self) -> str:
        return f"RuleRegistry({len(self)} rules)"

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, domain: str) -> bool:
        return canonical_domain(domain) in self._rules

    def register(self, domain: str, whitelist_paths: Iterable[str] = ()) -> SiteRule:
        """
        Block a domain, except for the given path prefixes.

        Registering a domain again replaces its rule, the old whitelist is not kept.
        """
        rule = _make_rule(domain, whitelist_paths)
        with self._lock:
            self._rules[rule.domain] = rule
        logger.debug(f"Registered {rule.domain} (whitelist: {list(rule.whitelist_paths)})")
        return rule

    def lookup(self, domain: str) -> SiteRule | None:
        return self._rules.get(canonical_domain(domain))

    def enable(self, domain: str) -> SiteRule:
        return self._set_blocked(domain, True)

    def disable(self, domain: str) -> SiteRule:
        """
        Stop enforcing a rule without forgetting its whitelist.

        *Raises:*
         - KeyError, if the domain is not registered.
        """
        return self._set_blocked(domain, False)

    def _set_blocked(self, domain: str, blocked: bool) -> SiteRule:
        key = canonical_domain(domain)
        with self._lock:
            rule = dataclasses.replace(self._rules[key], blocked=blocked)
            self._rules[key] = rule
        return rule

    def clear(self) -> None:
        with self._lock:
            self._rules = {}

    def replace(self, sites: Iterable[tuple[str, Iterable[str]]]) -> None:
        """
        Swap all rules for the given `(domain, whitelist_paths)` pairs at once,
        so readers never observe a partially rebuilt registry.
        """
        rules = {}
        for domain, paths in sites:
            rule = _make_rule(domain, paths)
            rules[rule.domain] = rule
        with self._lock:
            self._rules = rules
        logger.debug(f"Loaded {len(rules)} site rules.")

    def rules(self) -> list[SiteRule]:
        return sorted(list(self._rules.values()), key=lambda r: r.domain)

    def domains(self) -> list[str]:
        """All registered domains, e.g. to hand them to a host firewall."""
        return [r.domain for r in self.rules()]
