# === NAVMAP v1 ===
# {
#   "module": "GuardedFetch.formatting",
#   "purpose": "Rendering strategies used to turn error fields into display text",
#   "sections": [
#     {"id": "format-type", "name": "FormatType", "anchor": "class-formattype", "kind": "class"},
#     {"id": "renderer", "name": "Renderer", "anchor": "class-renderer", "kind": "class"},
#     {"id": "plain-renderer", "name": "PlainRenderer", "anchor": "class-plainrenderer", "kind": "class"},
#     {"id": "rich-renderer", "name": "RichRenderer", "anchor": "class-richrenderer", "kind": "class"},
#     {"id": "plain-value", "name": "plain_value", "anchor": "function-plain-value", "kind": "function"}
#   ]
# }
# === /NAVMAP ===

"""Rendering strategies used to turn error fields into display text.

Errors are frequently created before any configuration is available, so they
never import the configuration layer. Instead a :class:`Renderer` is injected
and consulted only when the message text is produced. Two strategies exist:

- :class:`PlainRenderer`: no styling, stable output for logs and tests.
- :class:`RichRenderer`: colours and terminal hyperlinks through ``rich``.

When no renderer is attached, :func:`plain_value` provides the context-free
fallback.
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import PurePath
from typing import Any, Dict, Iterable, Optional, Protocol

from rich.console import Console
from rich.style import Style
from rich.text import Text

__all__ = [
    "FormatType",
    "Renderer",
    "PlainRenderer",
    "RichRenderer",
    "plain_value",
]


class FormatType(str, Enum):
    """Render hints attached to values shown to end users."""

    NO_HINT = "no_hint"
    CODE = "code"
    NUMBER = "number"
    URL = "url"
    PATH = "path"
    SETTING = "setting"


class Renderer(Protocol):
    """Narrow formatting interface consumed by errors and the dispatcher."""

    def pretty(self, value: Any, format_type: FormatType) -> str: ...

    def pretty_list(self, values: Iterable[Any], format_type: FormatType) -> str: ...

    def hyperlink(self, text: str, href: str) -> str: ...


def plain_value(value: Any, format_type: FormatType = FormatType.NO_HINT) -> str:
    """Render ``value`` without any styling or configuration.

    Strings, numbers and paths are rendered verbatim; containers are rendered as
    JSON so the output stays machine readable.

    Examples:
        >>> plain_value("1")
        '1'
        >>> plain_value(["a", "b"])
        '["a", "b"]'
    """
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (str, int, float)):
        return str(value)
    if isinstance(value, PurePath):
        return value.as_posix()
    try:
        return json.dumps(value, default=str)
    except (TypeError, ValueError):
        return repr(value)


class PlainRenderer:
    """Renderer that never styles its output."""

    def pretty(self, value: Any, format_type: FormatType) -> str:
        return plain_value(value, format_type)

    def pretty_list(self, values: Iterable[Any], format_type: FormatType) -> str:
        return ", ".join(self.pretty(value, format_type) for value in values)

    def hyperlink(self, text: str, href: str) -> str:
        return text


_STYLES: Dict[FormatType, str] = {
    FormatType.NO_HINT: "",
    FormatType.CODE: "bold",
    FormatType.NUMBER: "yellow",
    FormatType.URL: "cyan underline",
    FormatType.PATH: "magenta",
    FormatType.SETTING: "bold cyan",
}


class RichRenderer:
    """Renderer producing ANSI-styled text through a ``rich`` console.

    Args:
        enable_colors: Apply the per-type styles.
        enable_hyperlinks: Wrap hyperlinks in OSC 8 terminal escapes.
        console: Optional console override; by default a truecolor console
            that always emits terminal codes is used.
    """

    def __init__(
        self,
        *,
        enable_colors: bool = True,
        enable_hyperlinks: bool = False,
        console: Optional[Console] = None,
    ) -> None:
        self.enable_colors = enable_colors
        self.enable_hyperlinks = enable_hyperlinks
        self._console = console or Console(
            force_terminal=True,
            color_system="truecolor",
            width=10_000,
            soft_wrap=True,
        )

    def _render(self, text: Text) -> str:
        with self._console.capture() as capture:
            self._console.print(text, end="")
        return capture.get()

    def pretty(self, value: Any, format_type: FormatType) -> str:
        raw = plain_value(value, format_type)
        if not self.enable_colors:
            return raw
        style = _STYLES.get(format_type, "")
        if not style:
            return raw
        return self._render(Text(raw, style=style))

    def pretty_list(self, values: Iterable[Any], format_type: FormatType) -> str:
        return ", ".join(self.pretty(value, format_type) for value in values)

    def hyperlink(self, text: str, href: str) -> str:
        if not self.enable_hyperlinks:
            return text
        return self._render(Text.from_ansi(text, style=Style(link=href)))
