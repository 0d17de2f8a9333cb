# storyforest/ranking.py
"""
Reorders recommendation candidates by how close their titles are to
books the child already gave a thumbs-up.

The sentence-transformer model is loaded on first use and kept for the
life of the process.
"""

import logging
import threading
from typing import List, Optional, Sequence, TypeVar

import numpy as np

from .config import get_settings


logger = logging.getLogger(__name__)

T = TypeVar("T")

_embedder = None
_embedder_lock = threading.Lock()


def get_embedder():
    global _embedder
    if _embedder is None:
        with _embedder_lock:
            if _embedder is None:
                from sentence_transformers import SentenceTransformer

                model_name = get_settings().embedding_model
                logger.info("Loading embedding model %s", model_name)
                _embedder = SentenceTransformer(model_name)
    return _embedder


def _cosine_similarity(a: np.ndarray, b: np.ndarray) -> float:
    denom = np.linalg.norm(a) * np.linalg.norm(b)
    if denom == 0:
        return 0.0
    return float(np.dot(a, b) / denom)


def similarity_scores(texts: Sequence[str], liked: Sequence[str]) -> List[float]:
    """For each text, its best cosine similarity against any liked title."""
    embedder = get_embedder()
    text_vecs = embedder.encode(list(texts), convert_to_numpy=True)
    liked_vecs = embedder.encode(list(liked), convert_to_numpy=True)
    return [max(_cosine_similarity(t, l) for l in liked_vecs) for t in text_vecs]


def rank_by_similarity(
    candidates: Sequence[T], texts: Sequence[str], liked: Optional[Sequence[str]]
) -> List[T]:
    """Return ``candidates`` sorted by similarity of ``texts`` to ``liked``.

    The input order is kept as-is when there is nothing to compare
    against, when ranking is switched off, or when the model fails.
    """
    items = list(candidates)
    if not items or not liked or not get_settings().ranking_enabled:
        return items
    try:
        scores = similarity_scores(texts, liked)
    except Exception as exc:  # model download or inference failure
        logger.warning("Recommendation ranking skipped: %s", exc)
        return items
    order = sorted(range(len(items)), key=lambda i: scores[i], reverse=True)
    return [items[i] for i in order]
