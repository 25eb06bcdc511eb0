"""
Voosh - Service Diagnostics Script
====================================
CLI entry point that checks every upstream the retrieval path depends on:
    1. Load ``Settings`` from ``.env`` (fail-fast with a readable message).
    2. Embed a probe query and print the vector dimension and a sample.
    3. Qdrant backend only: print collection info and the exact point count.
    4. Run ``RetrievalPipeline.get_context`` and print the ranked hits.
    5. Print a timing breakdown.

Flags:
    --query       Probe query (default: "latest news").
    --top-k       Hits requested in phase 4 (default: DEFAULT_TOP_K).
    --no-context  Skip phase 4 (embed + collection checks only).

Usage:
    python -m voosh.scripts.check_services
    python -m voosh.scripts.check_services --query "election results" --top-k 10
    python -m voosh.scripts.check_services --no-context
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

# ── Ensure project root is importable when run directly ────────────────
_PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
if str(_PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(_PROJECT_ROOT))


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="check_services", description="Voosh — Probe the embedding provider and vector store.")
    parser.add_argument("--query", default="latest news", help="Probe query used for embedding and retrieval.")
    parser.add_argument("--top-k", type=int, default=None, help="Hits requested for the retrieval check.")
    parser.add_argument("--no-context", action="store_true", default=False, help="Skip the full get_context run.")
    return parser.parse_args()


def _mask(secret: object | None) -> str:
    if secret is None:
        return "(not set)"
    value = secret.get_secret_value()  # type: ignore[attr-defined]
    return f"****{value[-4:]}" if len(value) > 4 else "****"


# ── Main Orchestration ─────────────────────────────────────────────────

async def _run(args: argparse.Namespace) -> int:
    t_start = time.perf_counter()

    # ── 0. Load settings + .env (timed) ────────────────────────────────
    t_settings = time.perf_counter()
    try:
        from voosh.config.settings import Settings

        settings = Settings()
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    settings_ms = (time.perf_counter() - t_settings) * 1000

    from voosh.src.container import build_embed_provider, build_http_client, build_pipeline, build_vector_store
    from voosh.src.core.embedder import EmbeddingClient
    from voosh.src.core.exceptions import RetrievalError
    from voosh.src.database.vector_store import QdrantVectorStore
    from voosh.src.utils.logger import get_logger, quiet_third_party

    quiet_third_party()
    logger = get_logger(__name__)
    logger.info("Settings loaded in %.1fms", settings_ms)
    _print_header(settings)

    http_client = build_http_client()
    failures = 0
    timings: dict[str, float] = {"Settings + .env load": settings_ms}
    try:
        # ── 1. Embedding probe ─────────────────────────────────────────
        t_embed = time.perf_counter()
        embedder = EmbeddingClient(build_embed_provider(settings, http_client), settings.EMBEDDING_MODEL, settings.EMBED_TIMEOUT_MS)
        try:
            vector = await embedder.embed(args.query)
            print(f"  [OK]   {embedder.provider_label} embedding: dim={len(vector)} sample={[round(v, 4) for v in vector[:5]]}")
        except RetrievalError as exc:
            failures += 1
            print(f"  [FAIL] {embedder.provider_label} embed failed: {exc}")
        timings["Embedding probe"] = (time.perf_counter() - t_embed) * 1000

        # ── 2. Collection checks (Qdrant) ──────────────────────────────
        store = build_vector_store(settings, http_client)
        if isinstance(store, QdrantVectorStore):
            t_collection = time.perf_counter()
            try:
                info = await store.collection_info(settings.COLLECTION_NAME, settings.SEARCH_TIMEOUT_MS)
                status = info.get("result", {}).get("status") if isinstance(info, dict) else None
                count = await store.count_points(settings.COLLECTION_NAME, settings.SEARCH_TIMEOUT_MS)
                print(f"  [OK]   Qdrant collection '{settings.COLLECTION_NAME}': status={status} points={count}")
            except Exception as exc:
                failures += 1
                logger.debug("Collection check failed.", exc_info=True)
                print(f"  [FAIL] Qdrant collection '{settings.COLLECTION_NAME}': {exc}")
            timings["Collection checks"] = (time.perf_counter() - t_collection) * 1000
        else:
            print(f"  [SKIP] Collection checks ({store.label} backend)")

        # ── 3. Full retrieval ──────────────────────────────────────────
        if not args.no_context:
            t_context = time.perf_counter()
            pipeline = build_pipeline(settings, http_client)
            result = await pipeline.get_context(args.query, args.top_k)
            timings["get_context"] = (time.perf_counter() - t_context) * 1000
            if result.error is not None:
                failures += 1
                print(f"  [FAIL] get_context: {result.error}")
            else:
                print(f"  [OK]   get_context: {len(result.hits)} hit(s), context {len(result.context)} chars (top_k_used={result.top_k_used})")
                for hit in result.hit_dicts():
                    print(f"         {hit['score']:.4f}  {hit['source']}")
    finally:
        await http_client.aclose()

    _print_footer(failures, time.perf_counter() - t_start, timings)
    return 1 if failures else 0


def main() -> None:
    sys.exit(asyncio.run(_run(_parse_args())))


# ── Pretty-print helpers ──────────────────────────────────────────────

def _print_header(settings: object) -> None:
    mongo_uri_val = settings.MONGO_URI.get_secret_value()  # type: ignore[attr-defined]
    mongo_masked = mongo_uri_val.split("@")[-1] if "@" in mongo_uri_val else mongo_uri_val

    print()
    print("=" * 60)
    print("  VOOSH — Service Diagnostics")
    print("=" * 60)
    print(f"  Environment  : {settings.ENV}")                                              # type: ignore[attr-defined]
    print(f"  Embedding    : {settings.EMBEDDING_PROVIDER} / {settings.EMBEDDING_MODEL}")  # type: ignore[attr-defined]
    print(f"  Vector store : {settings.VECTOR_BACKEND} / {settings.COLLECTION_NAME}")      # type: ignore[attr-defined]
    print(f"  Qdrant URL   : {settings.QDRANT_URL}")                                       # type: ignore[attr-defined]
    print(f"  MongoDB      : {mongo_masked} (db: {settings.MONGO_DB_NAME})")               # type: ignore[attr-defined]
    print(f"  Cohere Key   : {_mask(settings.COHERE_API_KEY)}")                            # type: ignore[attr-defined]
    print(f"  Qdrant Key   : {_mask(settings.QDRANT_API_KEY)}")                            # type: ignore[attr-defined]
    print(f"  Google Key   : {_mask(settings.GOOGLE_API_KEY)}")                            # type: ignore[attr-defined]
    print("=" * 60)
    print()


def _print_footer(failures: int, elapsed: float, timings: dict[str, float]) -> None:
    print()
    print("=" * 60)
    print(f"  RESULT: {'ALL CHECKS PASSED' if not failures else f'{failures} CHECK(S) FAILED'}")
    print("-" * 60)
    print("  TIMING BREAKDOWN")
    print("-" * 60)
    for label, ms in timings.items():
        print(f"  {label:<21}: {ms:>8.1f}ms")
    print(f"  {'Total elapsed':<21}: {elapsed:>8.2f}s")
    print("=" * 60)
    print()


# ── Entry point ────────────────────────────────────────────────────────

if __name__ == "__main__":
    main()
