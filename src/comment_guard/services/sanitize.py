"""Markup and field sanitisation for user-submitted comments.

Only a small formatting subset of HTML survives :func:`sanitize_html`; every
other tag is dropped (its text kept), ``script``/``style`` bodies are removed
entirely, and all text is re-escaped on output.
"""

from __future__ import annotations

import html
import re
from html.parser import HTMLParser
from urllib.parse import urlsplit

ALLOWED_TAGS = frozenset({
    "p", "br", "strong", "em", "u", "s",
    "ul", "ol", "li", "blockquote", "code", "pre",
    "a",
})
ALLOWED_ATTRIBUTES = {"a": ("href", "title")}
ALLOWED_SCHEMES = frozenset({"http", "https", "mailto"})
VOID_TAGS = frozenset({"br"})
DROP_CONTENT_TAGS = frozenset({"script", "style", "iframe", "object", "textarea", "noscript"})
LINK_REL = "noopener noreferrer nofollow"

_TAG_RE = re.compile(r"<[^>]*>")
_WHITESPACE_RE = re.compile(r"\s+")
_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
_ENTITIES = {
    "&amp;": "&",
    "&lt;": "<",
    "&gt;": ">",
    "&quot;": '"',
    "&#39;": "'",
    "&nbsp;": " ",
}
_ENTITY_RE = re.compile("|".join(re.escape(entity) for entity in _ENTITIES))


def _is_safe_href(value: str) -> bool:
    candidate = value.strip()
    scheme = urlsplit(candidate).scheme.lower()
    # Protocol-relative and scheme-less links are dropped.
    return bool(scheme) and scheme in ALLOWED_SCHEMES


class _CommentHTMLSanitizer(HTMLParser):
    """Streaming allow-list filter built on the standard HTML tokenizer."""

    def __init__(self) -> None:
        super().__init__(convert_charrefs=True)
        self._out: list[str] = []
        self._open: list[str] = []
        self._skip_depth = 0

    def handle_starttag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._skip_depth += 1
            return
        if self._skip_depth or tag not in ALLOWED_TAGS:
            return

        kept: list[tuple[str, str]] = []
        allowed = ALLOWED_ATTRIBUTES.get(tag, ())
        for name, value in attrs:
            if name not in allowed or value is None:
                continue
            if name == "href" and not _is_safe_href(value):
                continue
            kept.append((name, value.strip()))
        if tag == "a":
            kept.append(("target", "_blank"))
            kept.append(("rel", LINK_REL))

        rendered = "".join(f' {name}="{html.escape(value, quote=True)}"' for name, value in kept)
        self._out.append(f"<{tag}{rendered}>")
        if tag not in VOID_TAGS:
            self._open.append(tag)

    def handle_startendtag(self, tag: str, attrs: list[tuple[str, str | None]]) -> None:
        if tag in DROP_CONTENT_TAGS:
            return
        self.handle_starttag(tag, attrs)
        if tag in self._open and self._open[-1] == tag:
            self.handle_endtag(tag)

    def handle_endtag(self, tag: str) -> None:
        if tag in DROP_CONTENT_TAGS:
            self._skip_depth = max(0, self._skip_depth - 1)
            return
        if self._skip_depth or tag not in ALLOWED_TAGS or tag in VOID_TAGS:
            return
        if tag not in self._open:
            return
        # Close anything left open inside this element first.
        while self._open:
            current = self._open.pop()
            self._out.append(f"</{current}>")
            if current == tag:
                break

    def handle_data(self, data: str) -> None:
        if not self._skip_depth:
            self._out.append(html.escape(data, quote=False))

    def result(self) -> str:
        self.close()
        while self._open:
            self._out.append(f"</{self._open.pop()}>")
        return "".join(self._out)


def sanitize_html(value: str) -> str:
    """Return ``value`` reduced to the allowed comment markup."""
    if not value:
        return ""
    parser = _CommentHTMLSanitizer()
    parser.feed(value)
    return parser.result()


def _decode_entities(value: str) -> str:
    return _ENTITY_RE.sub(lambda match: _ENTITIES[match.group(0)], value)


def sanitize_text(value: str) -> str:
    """Strip tags, decode basic entities and collapse whitespace."""
    if not value:
        return ""
    stripped = _TAG_RE.sub("", value)
    decoded = _decode_entities(stripped)
    return _WHITESPACE_RE.sub(" ", decoded.strip())


def sanitize_email(value: str | None) -> str | None:
    """Return a normalised email address, or None if it does not look valid."""
    if not value:
        return None
    candidate = value.strip().lower()
    return candidate if _EMAIL_RE.match(candidate) else None


def sanitize_url(value: str | None) -> str | None:
    """Return a trimmed http(s) URL with a host, or None."""
    if not value:
        return None
    candidate = value.strip()
    try:
        parts = urlsplit(candidate)
    except ValueError:
        return None
    if parts.scheme.lower() not in {"http", "https"} or not parts.netloc:
        return None
    return candidate
