"""Endpoint-to-team routing: pure functions over an ordered rule set.

Resolution order:

1. Exact match of the endpoint against any rule pattern (regardless of kind).
2. Rules in declaration order, first match wins:
   - ``regex`` : pattern ``/.../``; the interior is searched in the endpoint.
   - ``url``   : absolute URL pattern, optionally with a ``[tld]`` marker in
     the hostname, compared by hostname and path prefix.
   - ``prefix``: the endpoint starts with the pattern.
3. Otherwise the default team.

Nothing in here raises on bad input: invalid regexes and unparsable URLs are
treated as a no-match.
"""

import functools
import logging
import re
from typing import Optional
from urllib.parse import urljoin, urlsplit

from error_sentinel.config import KIND_REGEX, KIND_URL, RoutingRule

logger = logging.getLogger(__name__)

TLD_MARKER = "[tld]"


@functools.lru_cache(maxsize=64)
def _exact_index(rules: tuple) -> dict:
    index = {}
    for rule in rules:
        index.setdefault(rule.pattern, rule.team)
    return index


@functools.lru_cache(maxsize=256)
def _compile(pattern: str) -> Optional[re.Pattern]:
    try:
        return re.compile(pattern[1:-1])
    except re.error as exc:
        logger.warning("Skipping invalid regex routing pattern %s: %s", pattern, exc)
        return None


def resolve_team(
    endpoint: str,
    rules: tuple,
    default_team: str,
    origin: Optional[str] = None,
) -> str:
    """Return the team owning *endpoint*, or *default_team* when no rule matches."""
    rules = tuple(rules)
    team = _exact_index(rules).get(endpoint)
    if team is not None:
        return team

    for rule in rules:
        if rule_matches(endpoint, rule, origin):
            return rule.team
    return default_team


def rule_matches(endpoint: str, rule: RoutingRule, origin: Optional[str] = None) -> bool:
    if rule.kind == KIND_REGEX:
        compiled = _compile(rule.pattern)
        return compiled is not None and compiled.search(endpoint) is not None
    if rule.kind == KIND_URL:
        return match_url_pattern(endpoint, rule.pattern, origin)
    return endpoint.startswith(rule.pattern)


def resolve_endpoint_url(endpoint: str, origin: Optional[str]):
    """Resolve *endpoint* to a split absolute URL, or None when it cannot be."""
    if endpoint.startswith("http://") or endpoint.startswith("https://"):
        absolute = endpoint
    elif origin:
        absolute = urljoin(origin, endpoint)
    else:
        return None
    try:
        parts = urlsplit(absolute)
        if not parts.hostname:
            return None
        return parts
    except ValueError:
        return None


def match_url_pattern(endpoint: str, pattern: str, origin: Optional[str] = None) -> bool:
    """Match an endpoint against an absolute-URL pattern.

    Without a ``[tld]`` marker the hostname must be equal. With the marker, the
    text before it is a base hostname of ``n`` labels; the endpoint hostname
    must have more than ``n`` labels and start with exactly those ``n``. In both
    cases the endpoint path must start with the pattern path.
    """
    target = resolve_endpoint_url(endpoint, origin)
    if target is None:
        return False
    path = target.path or "/"
    host = target.hostname

    if TLD_MARKER not in pattern:
        try:
            expected = urlsplit(pattern)
        except ValueError:
            return False
        if not expected.hostname:
            return False
        return host == expected.hostname and path.startswith(expected.path or "/")

    scheme_end = pattern.find("://")
    if scheme_end == -1:
        return False
    before, _, after = pattern[scheme_end + 3:].partition(TLD_MARKER)
    base_host = before.rstrip(".").lower()
    if not base_host or "/" in base_host:
        return False

    slash = after.find("/")
    pattern_path = after[slash:] if slash != -1 else "/"

    base_labels = base_host.split(".")
    host_labels = host.split(".")
    if len(host_labels) <= len(base_labels):
        return False
    if host_labels[: len(base_labels)] != base_labels:
        return False
    return path.startswith(pattern_path)
