"""
Route table for payment-protected paths

Patterns are matched in list order and the first match wins. Supported
pattern forms:

- exact paths: ``/api/report``
- ``*`` as a whole segment matches one segment: ``/api/*/summary``
- a trailing ``/*`` matches the prefix and anything below it: ``/api/*``
- ``:name`` segments capture one segment: ``/users/:id``
- ``*`` alone matches every path
"""

import re
from dataclasses import dataclass, field
from typing import Any

from x402_armory.server.x402_server import ResourceConfig
from x402_armory.types import ProtocolVersion


def compile_route_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a route pattern to an anchored regex"""
    if pattern.strip() in ("*", "/*"):
        return re.compile(r"^.*$")

    normalized = pattern if pattern.startswith("/") else f"/{pattern}"
    segments = [s for s in normalized.split("/") if s]

    tail = ""
    if segments and segments[-1] == "*":
        segments = segments[:-1]
        tail = r"(?:/.*)?"

    parts = []
    names: set[str] = set()
    for segment in segments:
        if segment == "*":
            parts.append(r"[^/]+")
        elif segment.startswith(":"):
            name = segment[1:]
            if not name.isidentifier() or name in names:
                raise ValueError(f"Invalid parameter {segment!r} in route pattern {pattern!r}")
            names.add(name)
            parts.append(rf"(?P<{name}>[^/]+)")
        elif "*" in segment:
            parts.append("[^/]*".join(re.escape(p) for p in segment.split("*")))
        else:
            parts.append(re.escape(segment))

    body = "".join(f"/{p}" for p in parts)
    return re.compile(rf"^{body}{tail}/?$" if body else rf"^/?{tail}$")


@dataclass
class RouteConfig:
    """Payment configuration for a path pattern.

    ``resources`` lists the accepted payment options; ``methods`` (if set)
    restricts the route to those HTTP methods.
    """

    pattern: str
    resources: list[ResourceConfig]
    methods: list[str] | None = None
    version: ProtocolVersion = ProtocolVersion.V2
    description: str | None = None
    mime_type: str | None = None
    extensions: dict[str, Any] | None = None
    _regex: re.Pattern[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        if not self.resources:
            raise ValueError(f"Route {self.pattern!r} has no payment options")
        self._regex = compile_route_pattern(self.pattern)
        if self.methods is not None:
            self.methods = [m.upper() for m in self.methods]

    def match(self, path: str, method: str | None = None) -> dict[str, str] | None:
        """Return captured path parameters, or None when the route does not apply"""
        if self.methods is not None and method is not None and method.upper() not in self.methods:
            return None
        found = self._regex.match(path if path.startswith("/") else f"/{path}")
        if found is None:
            return None
        return found.groupdict()


def match_route(
    routes: list[RouteConfig],
    path: str,
    method: str | None = None,
) -> tuple[RouteConfig, dict[str, str]] | None:
    """First route matching *path* (and *method*), with its path parameters"""
    for route in routes:
        params = route.match(path, method)
        if params is not None:
            return route, params
    return None
