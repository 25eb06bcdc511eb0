"""
Voosh - Featured Items
========================
Turns a retrieval for a default query ("latest news") into display
cards for the landing page.

Each card carries ``id``, ``score``, ``headline``, a short ``excerpt``,
``source`` and ``published``.  When the search yields no hits but a
context was still produced, a single "Top stories" card is built from
the context instead.
"""

from __future__ import annotations

import time

from voosh.config.prompt_templates import FEATURED_FALLBACK_HEADLINE, FEATURED_FALLBACK_SOURCE
from voosh.src.core.rag_engine import RetrievalPipeline
from voosh.src.core.ranking import NormalizedHit
from voosh.src.utils.logger import get_logger
from voosh.src.utils.text_utils import ELLIPSIS, collapse_whitespace, first_present, safe_truncate

logger = get_logger(__name__)

FeaturedCard = dict[str, object]


class FeaturedService:
    """
    Featured-card builder on top of ``RetrievalPipeline.get_context``.

    Parameters
    ----------
    pipeline
        Shared retrieval pipeline.
    default_query
        Query used when the caller sends none.
    default_k
        Number of cards when the caller sends no ``k``.
    excerpt_chars
        Hard length limit of an excerpt (ellipsis included).
    """

    __slots__ = ("_pipeline", "_default_query", "_default_k", "_excerpt_chars")

    def __init__(self, pipeline: RetrievalPipeline, default_query: str = "latest news", default_k: int = 3, excerpt_chars: int = 200) -> None:
        self._pipeline = pipeline
        self._default_query = default_query
        self._default_k = default_k
        self._excerpt_chars = excerpt_chars


    def _excerpt(self, text: str) -> str:
        # safe_truncate may overshoot its budget by the ellipsis length
        return safe_truncate(text, self._excerpt_chars - len(ELLIPSIS))


    def _card(self, hit: NormalizedHit) -> FeaturedCard:
        payload = hit.payload
        return {
            "id": hit.id,
            "score": hit.score,
            "headline": first_present(payload, "title") or "",
            "excerpt": self._excerpt(first_present(payload, "excerpt") or ""),
            "source": first_present(payload, "link"),
            "published": first_present(payload, "published"),
        }


    async def fetch(self, query: str | None = None, k: int | None = None) -> dict[str, object]:
        """
        Build up to *k* featured cards for *query*.

        Returns
        -------
        dict
            ``{"featured": [...], "raw": <retrieval dict>, "meta": {"elapsed_ms", "hits_count", "top_k_used"}}``
        """
        query = (query or "").strip() or self._default_query
        k = k or self._default_k

        t_start = time.perf_counter()
        result = await self._pipeline.get_context(query, k)
        elapsed_ms = (time.perf_counter() - t_start) * 1000

        if result.hits:
            featured = [self._card(hit) for hit in result.hits[:k]]
        elif result.context.strip():
            featured = [{"id": None, "score": None, "headline": FEATURED_FALLBACK_HEADLINE, "excerpt": self._excerpt(collapse_whitespace(result.context)), "source": FEATURED_FALLBACK_SOURCE, "published": None}]
        else:
            featured = []

        logger.info("[FEATURED] q='%s' k=%d → %d card(s) from %d hit(s) in %.1fms", query[:50], k, len(featured), len(result.hits), elapsed_ms)
        return {"featured": featured, "raw": result.to_dict(), "meta": {"elapsed_ms": round(elapsed_ms, 1), "hits_count": len(result.hits), "top_k_used": result.top_k_used}}
