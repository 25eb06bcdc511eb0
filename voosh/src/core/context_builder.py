"""
Voosh - Context Assembly
==========================
Renders ranked hits into the bounded text block handed to the answer
model.

Each hit becomes one *piece*::

    <title>
    <snippet, with a leading copy of the title removed>
    Source: <url>

Pieces are joined with a blank line.  The running budget starts at
``max_chars``; every whole piece costs its length plus the two-character
separator.  Assembly stops once the remaining budget falls to the safety
margin, and the first piece that does not fit is truncated on a sentence
or word boundary and emitted as the last piece.
"""

from __future__ import annotations

import re
from collections.abc import Iterable
from dataclasses import dataclass, field

from voosh.src.core.ranking import NormalizedHit, extract_text
from voosh.src.utils.logger import get_logger
from voosh.src.utils.text_utils import first_present, safe_truncate

logger = get_logger(__name__)

PIECE_SEPARATOR = "\n\n"

# Remaining budget at or below which no further piece is started
SAFETY_MARGIN_CHARS = 80

# Held back from the budget of a truncated piece for its ellipsis
ELLIPSIS_RESERVE_CHARS = 3

# Punctuation, whitespace and dashes left over after stripping a title
_TITLE_RESIDUE_RE = re.compile(r"^[\s\-–—:;,.|!?]+")


@dataclass(slots=True)
class ContextBundle:
    context: str = ""
    pieces: list[str] = field(default_factory=list)


def _strip_title(snippet: str, title: str) -> str:
    if title and snippet.lower().startswith(title.lower()):
        return _TITLE_RESIDUE_RE.sub("", snippet[len(title):])
    return snippet


def format_piece(hit: NormalizedHit) -> str:
    """Render one hit as ``title / snippet / Source:`` lines; ``""`` when there is nothing to show."""
    title = first_present(hit.payload, "title") or ""
    snippet = _strip_title(extract_text(hit.payload).strip(), title)
    citation = first_present(hit.payload, "citation")

    lines = [title, snippet, f"Source: {citation}" if citation else ""]
    return "\n".join(line for line in lines if line).strip()


def assemble_context(hits: Iterable[NormalizedHit], max_hits: int = 5, max_chars: int = 1500) -> ContextBundle:
    """
    Build the prompt context from hits already sorted best-first.

    Parameters
    ----------
    hits
        Ranked hits (descending score).
    max_hits
        Upper bound on the number of hits rendered.
    max_chars
        Character budget.  The result never exceeds it.

    Returns
    -------
    ContextBundle
        The joined ``context`` and the individual ``pieces``.
    """
    pieces: list[str] = []
    remaining = max_chars

    for position, hit in enumerate(hits):
        if position >= max_hits or remaining <= SAFETY_MARGIN_CHARS:
            break

        piece = format_piece(hit)
        if not piece:
            continue

        if len(piece) <= remaining:
            pieces.append(piece)
            remaining -= len(piece) + len(PIECE_SEPARATOR)
            continue

        truncated = safe_truncate(piece, remaining - ELLIPSIS_RESERVE_CHARS)
        pieces.append(truncated)
        logger.debug("[CONTEXT] Piece %d truncated %d → %d chars.", position, len(piece), len(truncated))
        break

    context = PIECE_SEPARATOR.join(pieces)
    logger.debug("[CONTEXT] %d piece(s), %d/%d chars.", len(pieces), len(context), max_chars)
    return ContextBundle(context=context, pieces=pieces)
