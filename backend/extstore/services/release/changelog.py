"""Strip unsafe markup from third-party release notes."""

from __future__ import annotations

import re
from typing import Optional

from extstore.config import settings

TRUNCATION_MARKER = "\n\n... (truncated)"

# Element names a markdown renderer would pass through as raw HTML. Anything
# else in angle brackets ("List<Item>", "<https://...>") is left as text.
HTML_ELEMENTS = frozenset(
    """
    a abbr address area article aside audio b base bdi bdo blockquote body br
    button canvas caption cite code col colgroup data datalist dd del details
    dfn dialog div dl dt em embed fieldset figcaption figure font footer form
    frame frameset h1 h2 h3 h4 h5 h6 head header hr html i iframe img input ins
    kbd label legend li link main map mark marquee math menu meta meter nav
    noscript object ol optgroup option output p param picture pre progress q rp
    rt ruby s samp script section select slot small source span strong style
    sub summary sup svg table tbody td template textarea tfoot th thead time
    title tr track u ul var video wbr
    """.split()
)

_DANGEROUS_BLOCK_RE = re.compile(
    r"<(script|style|iframe|object|embed)\b[^>]*>.*?</\1\s*>",
    re.IGNORECASE | re.DOTALL,
)
_COMMENT_RE = re.compile(r"<!--.*?-->|<![^<>]*>|<\?[^<>]*\?>", re.DOTALL)
_TAG_RE = re.compile(r"</?([A-Za-z][A-Za-z0-9-]*)((?:\s[^<>]*)?)/?>")
# Handlers only count inside an opening tag, closed or not
_EVENT_HANDLER_RE = re.compile(
    r"""(<[A-Za-z][^<>]*?)\s+on[a-z]+\s*=\s*(?:"[^"]*"|'[^']*'|[^\s>]*)""",
    re.IGNORECASE,
)
_SCRIPT_SCHEME_RE = re.compile(r"\b(?:javascript|vbscript)\s*:", re.IGNORECASE)
_DATA_URL_RE = re.compile(
    r"\bdata:(?!image/(?:png|jpeg|gif|webp)[;,])[^\s;,)]*", re.IGNORECASE
)


def _drop_tag(match: re.Match) -> str:
    name = match.group(1).lower()
    attributes = match.group(2)
    if name in HTML_ELEMENTS or "-" in name or "=" in attributes:
        return ""
    return match.group(0)


def _strip_once(text: str) -> str:
    text = _DANGEROUS_BLOCK_RE.sub("", text)
    text = _COMMENT_RE.sub("", text)
    text = _EVENT_HANDLER_RE.sub(r"\1", text)
    text = _TAG_RE.sub(_drop_tag, text)
    text = _SCRIPT_SCHEME_RE.sub("", text)
    text = _DATA_URL_RE.sub("", text)
    return text


def sanitize_changelog(body: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Remove script-bearing markup while keeping plain text and markdown.

    Removing one construct can expose another ("<scr<script>ipt>"), so the
    passes repeat until the text stops changing. The result is a fixed point,
    which makes the function idempotent.
    """
    if not body:
        return ""

    limit = max_length or settings.CHANGELOG_MAX_LENGTH
    sanitized = body
    while True:
        stripped = _strip_once(sanitized)
        if stripped == sanitized:
            break
        sanitized = stripped

    sanitized = sanitized.strip()
    already_truncated = (
        sanitized.endswith(TRUNCATION_MARKER)
        and len(sanitized) - len(TRUNCATION_MARKER) <= limit
    )
    if len(sanitized) > limit and not already_truncated:
        sanitized = sanitized[:limit].rstrip() + TRUNCATION_MARKER
    return sanitized
