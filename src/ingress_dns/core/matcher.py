"""
Ingress Host Matching

Decides whether a query name is covered by the current set of ingress host
rules. Rules are either literal hostnames or wildcards of the form
``*.<suffix>``.
"""

import logging
import re
from dataclasses import dataclass
from typing import Iterable, Optional

logger = logging.getLogger(__name__)

WILDCARD_PATTERN = re.compile(r"^\*\.(?P<suffix>[^*]+)$")

SUFFIX_MODE = "suffix"
REGEX_MODE = "regex"


@dataclass(frozen=True)
class HostRule:
    """A single host exposed by an ingress rule"""

    host: str
    namespace: Optional[str] = None
    ingress: Optional[str] = None

    @property
    def wildcard_suffix(self) -> Optional[str]:
        """Suffix of a well-formed ``*.<suffix>`` rule, None otherwise"""
        match = WILDCARD_PATTERN.match(self.host)
        return match.group("suffix") if match else None

    def matches(self, name: str, wildcard_mode: str = SUFFIX_MODE) -> bool:
        """Check whether this rule covers ``name`` (no trailing dot)."""
        if name == self.host:
            return True

        suffix = self.wildcard_suffix
        if suffix is None:
            return False

        if wildcard_mode == REGEX_MODE:
            return _regex_suffix_match(suffix, name)
        return name == suffix or name.endswith("." + suffix)


def _regex_suffix_match(pattern: str, name: str) -> bool:
    # The suffix is used as an unanchored pattern; unusable patterns never match.
    try:
        return re.search(pattern, name) is not None
    except re.error as e:
        logger.debug(f"Skipping wildcard with invalid pattern {pattern!r}: {e}")
        return False


def match_rules(
    rules: Iterable[HostRule], name: str, wildcard_mode: str = SUFFIX_MODE
) -> bool:
    """Return True as soon as any rule covers ``name``.

    Args:
        rules: Current ingress host rules
        name: Query name with the trailing dot already stripped
        wildcard_mode: ``"suffix"`` for literal suffix matching, ``"regex"`` to
            treat the wildcard suffix as a regular expression

    Returns:
        Whether the name is covered
    """
    if wildcard_mode not in (SUFFIX_MODE, REGEX_MODE):
        raise ValueError(f"Unknown wildcard mode: {wildcard_mode}")

    return any(rule.matches(name, wildcard_mode) for rule in rules)
