"""
HTML building helpers shared by the built-in renderers.

Everything author-supplied passes through escape() or one of the
markdown helpers below before it reaches the page. Data for browser
widgets is emitted with json_data() as an inert application/json script.
"""

import html
import json
import re
from typing import Any, List, Optional

_SAFE_URL = re.compile(r"^(?:https?:|mailto:|tel:|/|#|\?|\.{1,2}/)", re.IGNORECASE)
_RELATIVE_URL = re.compile(r"^[A-Za-z0-9_\-][A-Za-z0-9_\-./]*$")
_LINK = re.compile(r"\[([^\]]+)\]\(([^)\s]+)\)")
_HEADING = re.compile(r"^(#{1,6})\s+(.*)$")
_UNORDERED_ITEM = re.compile(r"^[-*+]\s+(.*)$")
_ORDERED_ITEM = re.compile(r"^\d+[.)]\s+(.*)$")


def escape(text: Any) -> str:
    if text is None:
        return ""
    return html.escape(str(text), quote=True)


def safe_url(url: Any, fallback: str = "#") -> str:
    """Escaped URL, or fallback when the scheme is not web-safe."""
    url = str(url or "").strip()
    if not url:
        return fallback
    if _SAFE_URL.match(url) or _RELATIVE_URL.match(url):
        return escape(url)
    return fallback


def attr(name: str, value: Any) -> str:
    """Render ` name="value"`, or nothing when value is empty."""
    if value is None or value == "":
        return ""
    return f' {name}="{escape(value)}"'


def _json_payload(data: Any) -> str:
    return (
        json.dumps(data, sort_keys=True, separators=(",", ":"))
        .replace("&", "\\u0026")
        .replace("<", "\\u003c")
        .replace(">", "\\u003e")
    )


def json_data(data: Any, element_class: str) -> str:
    """Serialize data into an inert <script type="application/json"> element."""
    return f'<script type="application/json" class="{escape(element_class)}">{_json_payload(data)}</script>'


def ld_json(data: Any) -> str:
    """Serialize structured data into a <script type="application/ld+json"> element."""
    return f'<script type="application/ld+json">{_json_payload(data)}</script>'


def _render_emphasis(escaped: str) -> str:
    escaped = re.sub(r"`([^`]+)`", r"<code>\1</code>", escaped)
    escaped = re.sub(r"\*\*([^*]+)\*\*", r"<strong>\1</strong>", escaped)
    escaped = re.sub(r"\*([^*]+)\*", r"<em>\1</em>", escaped)
    return escaped


def render_inline(text: str) -> str:
    """Inline markdown: **strong**, *em*, `code` and [label](url)."""
    raw = text or ""
    parts: List[str] = []
    last = 0
    for match in _LINK.finditer(raw):
        parts.append(_render_emphasis(escape(raw[last:match.start()])))
        label = _render_emphasis(escape(match.group(1)))
        parts.append(f'<a href="{safe_url(match.group(2))}">{label}</a>')
        last = match.end()
    parts.append(_render_emphasis(escape(raw[last:])))
    return "".join(parts)


def render_paragraphs(text: Optional[str]) -> str:
    chunks = re.split(r"\n\s*\n", (text or "").strip())
    return "\n".join(f"<p>{render_inline(chunk.strip())}</p>" for chunk in chunks if chunk.strip())


def render_markdown(text: Optional[str]) -> str:
    """
    Light markdown to HTML.

    Supports headings (# → h2, shifted one level under the page h1),
    unordered and ordered lists, paragraphs and inline formatting.
    Raw HTML in the source is escaped, never passed through.
    """
    lines = (text or "").replace("\r\n", "\n").split("\n")
    rendered: List[str] = []
    current: List[str] = []
    mode = None  # "ul", "ol", "p"

    def flush():
        nonlocal mode, current
        if current:
            if mode in ("ul", "ol"):
                items = "".join(f"<li>{render_inline(item)}</li>" for item in current)
                rendered.append(f"<{mode}>{items}</{mode}>")
            else:
                rendered.append(f"<p>{render_inline(' '.join(current))}</p>")
        current = []
        mode = None

    for line in lines:
        stripped = line.strip()
        if not stripped:
            flush()
            continue

        heading = _HEADING.match(stripped)
        if heading:
            flush()
            level = min(len(heading.group(1)) + 1, 6)
            rendered.append(f"<h{level}>{render_inline(heading.group(2))}</h{level}>")
            continue

        unordered = _UNORDERED_ITEM.match(stripped)
        ordered = _ORDERED_ITEM.match(stripped)
        if unordered or ordered:
            item_mode = "ul" if unordered else "ol"
            if mode != item_mode:
                flush()
                mode = item_mode
            current.append((unordered or ordered).group(1))
            continue

        if mode in ("ul", "ol"):
            flush()
        mode = "p"
        current.append(stripped)

    flush()
    return "\n".join(rendered)
