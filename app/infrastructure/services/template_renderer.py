"""Step templates: {{dot.path}} substitution over the execution context.

Paths are case-sensitive and walk nested dicts (and list indexes). A
placeholder whose path does not resolve, or resolves to None, is left in
the output as written and reported in RenderResult.unresolved.
"""

from __future__ import annotations

import re
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any

_PLACEHOLDER_RE = re.compile(r"\{\{\s*([A-Za-z0-9_\-]+(?:\.[A-Za-z0-9_\-]+)*)\s*\}\}")


class _Missing:
    def __repr__(self) -> str:
        return "MISSING"


MISSING: Any = _Missing()


def resolve_path(data: Any, path: str) -> Any:
    """Walk a dot path through dicts/lists. Returns MISSING when any segment is absent."""
    current = data
    for part in path.split("."):
        if isinstance(current, Mapping):
            if part not in current:
                return MISSING
            current = current[part]
        elif isinstance(current, (list, tuple)) and part.isdigit():
            index = int(part)
            if index >= len(current):
                return MISSING
            current = current[index]
        else:
            return MISSING
    return current


def _to_text(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


@dataclass(frozen=True)
class RenderResult:
    text: str
    unresolved: list[str] = field(default_factory=list)

    @property
    def complete(self) -> bool:
        return not self.unresolved


class TemplateRenderer:
    """Renders step fields (message, subject, recipient) against a context dict."""

    def render(
        self,
        template: str | None,
        context: Mapping[str, Any],
        escape: Callable[[str], str] | None = None,
    ) -> RenderResult:
        """Substitute every {{path}} in template.

        escape, when given, is applied to substituted values only (the
        template text itself is trusted), e.g. html.escape for email HTML.
        """
        if not template:
            return RenderResult(text="")
        unresolved: list[str] = []

        def _replace(match: re.Match[str]) -> str:
            path = match.group(1)
            value = resolve_path(context, path)
            if value is MISSING or value is None:
                if path not in unresolved:
                    unresolved.append(path)
                return match.group(0)
            text = _to_text(value)
            return escape(text) if escape else text

        return RenderResult(text=_PLACEHOLDER_RE.sub(_replace, template), unresolved=unresolved)

