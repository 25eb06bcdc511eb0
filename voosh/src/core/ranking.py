"""
Voosh - Hit Normalisation, Re-ranking & De-duplication
========================================================
Pure functions that take raw search hits to a ranked, de-duplicated list.

Pipeline (applied by ``RetrievalPipeline``, in this order):
    1. ``normalize_hits`` — any provider hit shape → ``NormalizedHit``.
    2. ``rescore_hits``   — semantic score + ``alpha × title-match``.
    3. ``dedupe_hits``    — one hit per logical source, best score wins.
       Only the first ``consider_limit`` hits *in provider order* are
       looked at; ranking by the boosted score happens afterwards.
    4. ``sort_hits``      — stable sort, descending score.

Nothing here performs I/O or logs above DEBUG.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass, field

from voosh.src.utils.logger import get_logger
from voosh.src.utils.text_utils import first_present, tokenize

logger = get_logger(__name__)

# ── Type aliases ───────────────────────────────────────────────────────
Payload = dict[str, object]
HitId = str | int | None
DedupKey = str | tuple[str, int]


@dataclass(slots=True)
class NormalizedHit:
    """Canonical search hit: identifier, similarity score (higher is better), metadata."""

    id: HitId
    score: float | None
    payload: Payload = field(default_factory=dict)


@dataclass(slots=True)
class RescoredHit(NormalizedHit):
    """A ``NormalizedHit`` whose ``score`` includes the title-match boost."""

    base_score: float | None = None
    title_match: float = 0.0


def _as_score(value: object) -> float | None:
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return float(value)
    return None


# ══════════════════════════════════════════════════════════════════════
#  NORMALISATION
# ══════════════════════════════════════════════════════════════════════


def normalize_hit(raw: Mapping[str, object]) -> NormalizedHit:
    """
    Map one provider hit onto ``NormalizedHit``.

    - ``id``      ← ``id``, else ``_id``, else ``None``.
    - ``payload`` ← ``payload`` when it is a mapping, else the whole hit
      (providers that flatten metadata to the top level).
    - ``score``   ← numeric ``score``, else the payload's numeric ``score``,
      else ``None``.
    """
    hit_id = raw.get("id")
    if hit_id is None:
        hit_id = raw.get("_id")

    nested = raw.get("payload")
    payload: Payload = dict(nested) if isinstance(nested, Mapping) else dict(raw)

    score = _as_score(raw.get("score"))
    if score is None:
        score = _as_score(payload.get("score"))

    return NormalizedHit(id=hit_id, score=score, payload=payload)  # type: ignore[arg-type]


def normalize_hits(raw_hits: Iterable[object]) -> list[NormalizedHit]:
    """Order-preserving ``normalize_hit`` over a provider hit list; non-mapping entries are dropped."""
    normalized: list[NormalizedHit] = []
    for position, raw in enumerate(raw_hits):
        if not isinstance(raw, Mapping):
            logger.debug("[RANK] Skipping non-object hit at position %d (%s).", position, type(raw).__name__)
            continue
        normalized.append(normalize_hit(raw))
    return normalized


def extract_text(payload: Mapping[str, object] | None) -> str:
    """Display text of a payload: first non-empty string among the text aliases, else ``""``."""
    return first_present(payload, "text", strings_only=True) or ""


# ══════════════════════════════════════════════════════════════════════
#  TITLE-MATCH RE-RANKING
# ══════════════════════════════════════════════════════════════════════


def title_match_fraction(query_tokens: Sequence[str], title: str) -> float:
    """Share of query tokens that also occur among the title's tokens (0.0 – 1.0)."""
    if not query_tokens or not title:
        return 0.0
    title_tokens = set(tokenize(title))
    matched = sum(1 for token in query_tokens if token in title_tokens)
    return matched / len(query_tokens)


def rescore_hits(hits: Iterable[NormalizedHit], query: str, alpha: float) -> list[RescoredHit]:
    """
    Add a lexical title-match boost to each hit's semantic score.

    ``score = (score or 0) + alpha × title_match``; ``base_score`` keeps the
    provider's value.  Input order is preserved.
    """
    query_tokens = tokenize(query)
    rescored: list[RescoredHit] = []
    for hit in hits:
        title = first_present(hit.payload, "title") or ""
        fraction = title_match_fraction(query_tokens, title)
        adjusted = (hit.score or 0.0) + alpha * fraction
        rescored.append(RescoredHit(id=hit.id, score=adjusted, payload=hit.payload, base_score=hit.score, title_match=fraction))
    return rescored


# ══════════════════════════════════════════════════════════════════════
#  DE-DUPLICATION
# ══════════════════════════════════════════════════════════════════════


def dedup_key(hit: NormalizedHit, position: int) -> DedupKey:
    """
    Identity of the source a hit came from.

    ``url`` > ``source`` > ``link`` > ``title`` > ``id`` (first non-empty,
    trimmed, compared as strings).  A hit with none of them gets a synthetic
    per-position key, so it is never merged with anything.
    """
    key = first_present(hit.payload, "source")
    if key:
        return key
    if hit.id is not None and str(hit.id).strip():
        return str(hit.id).strip()
    return ("__anonymous__", position)


def dedupe_hits(hits: Sequence[RescoredHit], consider_limit: int) -> list[RescoredHit]:
    """
    Keep the best-scoring hit per ``dedup_key`` among the first *consider_limit*.

    A later hit replaces the kept one only on a strictly greater score, so
    ties keep the first-seen hit.  Output order is first-seen key order;
    callers sort afterwards.
    """
    best: dict[DedupKey, RescoredHit] = {}
    for position, hit in enumerate(hits[: max(0, consider_limit)]):
        key = dedup_key(hit, position)
        current = best.get(key)
        if current is None or (hit.score or 0.0) > (current.score or 0.0):
            best[key] = hit
    logger.debug("[RANK] Dedup: %d considered → %d kept.", min(len(hits), max(0, consider_limit)), len(best))
    return list(best.values())


def sort_hits(hits: Iterable[RescoredHit]) -> list[RescoredHit]:
    """Descending by score; equal scores keep their relative order (``sorted`` is stable)."""
    return sorted(hits, key=lambda hit: hit.score or 0.0, reverse=True)
