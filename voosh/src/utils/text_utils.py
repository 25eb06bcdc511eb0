"""
Voosh - Text Utilities
========================
Helpers for reading free-form hit payloads and shaping text for the
prompt: payload alias lookup, query/title tokenisation and
boundary-aware truncation.

These utilities are consumed by the ranking, context-building and
featured-items code and must remain stateless and side-effect-free.
"""

from __future__ import annotations

import re
from collections.abc import Mapping


# ── Payload alias table ────────────────────────────────────────────────
# One logical field → the payload keys that may carry it, in precedence
# order.  Every component that needs a logical field goes through this
# table so alias precedence stays identical everywhere.
PAYLOAD_ALIASES: dict[str, tuple[str, ...]] = {
    "title": ("title", "headline", "name"),
    "text": ("text", "content", "chunk", "body", "summary", "description", "article", "excerpt", "title"),
    "citation": ("url", "source"),
    "link": ("url", "source", "link"),
    "source": ("url", "source", "link", "title"),
    "published": ("published", "date"),
    "excerpt": ("text", "excerpt", "description"),
}

_TOKEN_SPLIT_RE = re.compile(r"[\s\W]+")
_SENTENCE_END_RE = re.compile(r"[.!?] ")
_WHITESPACE_RE = re.compile(r"\s+")

ELLIPSIS = " ..."


# ── Public API ─────────────────────────────────────────────────────────

def first_present(payload: Mapping[str, object] | None, field: str, strings_only: bool = False) -> str | None:
    """
    Return the first non-empty value among the aliases of *field*.

    Values are stringified and stripped before the emptiness check.  With
    ``strings_only`` set, non-string values are skipped entirely (used for
    display text, where a number is never a useful snippet).

    Raises:
        KeyError: if *field* is not a known logical field.
    """
    if not payload:
        return None
    for key in PAYLOAD_ALIASES[field]:
        value = payload.get(key)
        if value is None:
            continue
        if strings_only and not isinstance(value, str):
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def tokenize(text: str) -> list[str]:
    """Lowercase and split on runs of whitespace / non-word characters."""
    return [token for token in _TOKEN_SPLIT_RE.split(text.lower()) if token]


def collapse_whitespace(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()


def safe_truncate(text: str, max_chars: int) -> str:
    """
    Shorten *text* to roughly *max_chars* without cutting mid-word.

    Priority:
        1. Short enough → returned unchanged.
        2. Last ``". "`` / ``"! "`` / ``"? "`` inside the cut, if it sits
           beyond 30 % of the budget → cut after the punctuation.
        3. Last space inside the cut, if beyond 25 % → cut there.
        4. Otherwise cut ``max_chars - 8`` characters in.

    Every truncated result ends with ``" ..."``; the output never exceeds
    ``max_chars + 4`` characters.
    """
    max_chars = max(0, max_chars)
    if len(text) <= max_chars:
        return text

    cut = text[:max_chars]

    boundary = -1
    for match in _SENTENCE_END_RE.finditer(cut):
        boundary = match.start()
    if boundary > int(max_chars * 0.3):
        return cut[: boundary + 1].strip() + ELLIPSIS

    last_space = cut.rfind(" ")
    if last_space > int(max_chars * 0.25):
        return cut[:last_space].strip() + ELLIPSIS

    return cut[: max(0, max_chars - 8)].strip() + ELLIPSIS
