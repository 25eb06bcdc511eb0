"""
Voosh - Retrieval Exceptions
==============================
Error taxonomy of the retrieval pipeline.

``RetrievalPipeline.get_context`` is the recovery boundary: it catches
``EmbeddingError`` / ``SearchError`` and turns them into an empty
``RetrievalResult`` carrying an ``error`` string, so none of these ever
reach an HTTP caller.
"""

from __future__ import annotations


class RetrievalError(Exception):
    """Base class for every failure raised by the retrieval pipeline."""


class InvalidQueryError(RetrievalError, ValueError):
    """Blank text handed to the embedding client."""


class EmbeddingError(RetrievalError):
    """The embedding provider failed, timed out or answered garbage."""


class UpstreamShapeError(EmbeddingError):
    """A provider answered successfully but in a shape we cannot read."""

    def __init__(self, message: str, raw: object = None) -> None:
        super().__init__(message)
        self.raw = raw


class SearchError(RetrievalError):
    """The vector-search provider failed or timed out."""
