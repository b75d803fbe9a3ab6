"""Access control for remote shell connections.

An access list is a plain text file with one rule per line::

    # comments and blank lines are ignored
    allow 192.168.0.0/16
    allow 10.1.2.*
    deny  10.1.2.99
    127.0.0.1            # a bare pattern means "allow"
    deny all

Rules are evaluated top to bottom and the first matching rule decides.
When a list is loaded and no rule matches, the connection is denied.
Without a list every connection is permitted.
"""

from __future__ import annotations

import fnmatch
import ipaddress
import logging
import re
from collections.abc import Sequence
from pathlib import Path

from dhtshell.shell.errors import AccessListError

logger = logging.getLogger(__name__)

_WILDCARDS = ("all", "*")
_GLOB_RE = re.compile(r"^[0-9A-Fa-f:.*?]+$")
_KEYWORDS = {"allow": True, "permit": True, "deny": False, "reject": False}


class AccessRule:
    """A single allow/deny decision for an address pattern."""

    __slots__ = ("pattern", "allow", "_network", "_glob")

    def __init__(
        self,
        pattern: str,
        allow: bool,
        network: ipaddress.IPv4Network | ipaddress.IPv6Network | None = None,
        glob: str | None = None,
    ) -> None:
        self.pattern = pattern
        self.allow = allow
        self._network = network
        self._glob = glob

    @classmethod
    def parse(cls, pattern: str, allow: bool = True) -> AccessRule:
        """Build a rule from an address, CIDR network, glob or ``all``.

        Raises:
            ValueError: If the pattern is not a recognizable address pattern.
        """
        if pattern.lower() in _WILDCARDS:
            return cls(pattern, allow, glob="*")
        try:
            return cls(pattern, allow, network=ipaddress.ip_network(pattern, strict=False))
        except ValueError:
            pass
        if _GLOB_RE.match(pattern) and ("*" in pattern or "?" in pattern):
            return cls(pattern, allow, glob=pattern)
        raise ValueError(f"invalid address pattern {pattern!r}")

    def matches(self, identity: str) -> bool:
        if self._glob is not None:
            return fnmatch.fnmatchcase(identity, self._glob)
        try:
            address = ipaddress.ip_address(identity)
        except ValueError:
            return False
        if isinstance(address, ipaddress.IPv6Address) and address.ipv4_mapped is not None:
            if address.ipv4_mapped in self._network:
                return True
        return address in self._network

    def __repr__(self) -> str:
        return f"AccessRule({'allow' if self.allow else 'deny'} {self.pattern})"


class AccessController:
    """Decides whether a remote client may open a session."""

    def __init__(self, rules: Sequence[AccessRule] | None = None, source: str = "") -> None:
        self._rules = tuple(rules) if rules is not None else None
        self._source = source

    @property
    def enabled(self) -> bool:
        """Whether an access list was loaded."""
        return self._rules is not None

    @property
    def rules(self) -> tuple[AccessRule, ...]:
        return self._rules or ()

    @classmethod
    def load(cls, path: Path | str) -> AccessController:
        """Load an access list file.

        Raises:
            AccessListError: If the file cannot be read or a line is malformed.
        """
        path = Path(path)
        try:
            text = path.read_text(encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            raise AccessListError(f"cannot read access list: {e}", source=str(path)) from e
        controller = cls.parse(text, source=str(path))
        logger.info("Loaded %d access rules from %s", len(controller.rules), path)
        if not controller.rules:
            logger.warning("Access list %s is empty, all remote connections will be denied", path)
        return controller

    @classmethod
    def parse(cls, text: str, source: str = "<string>") -> AccessController:
        rules: list[AccessRule] = []
        for lineno, raw in enumerate(text.splitlines(), start=1):
            line = raw.split("#", 1)[0].strip()
            if not line:
                continue
            fields = line.split()
            if len(fields) == 1:
                allow, pattern = True, fields[0]
            elif len(fields) == 2 and fields[0].lower() in _KEYWORDS:
                allow, pattern = _KEYWORDS[fields[0].lower()], fields[1]
            else:
                raise AccessListError(f"malformed rule {line!r}", source=source, line=lineno)
            try:
                rules.append(AccessRule.parse(pattern, allow))
            except ValueError as e:
                raise AccessListError(str(e), source=source, line=lineno) from e
        return cls(rules, source=source)

    def permit(self, identity: str) -> bool:
        """Whether the client at ``identity`` may connect."""
        if self._rules is None:
            return True
        for rule in self._rules:
            if rule.matches(identity):
                logger.debug("Access %s for %s by %r", "granted" if rule.allow else "denied", identity, rule)
                return rule.allow
        logger.debug("Access denied for %s (no matching rule)", identity)
        return False
