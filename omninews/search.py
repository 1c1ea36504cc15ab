"""Nearest-neighbour lookup of stored embeddings."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Sequence

import numpy as np

from .embedding import EmbeddingService, embedding_sentence
from .models import EmbeddingError

DISTANCE_THRESHOLD = 0.6
DIMENSION = 384
SEARCH_K = 10000

CHANNEL_INDEX_PATH = Path("../resources/channel_embeddings.ann")
RSS_INDEX_PATH = Path("../resources/rss_embeddings.ann")
NEWS_INDEX_PATH = Path("../resources/news_embeddings.ann")


class VectorIndex:
    """Exact nearest-neighbour index using angular distance."""

    def __init__(self, dimension: int = DIMENSION) -> None:
        if dimension <= 0:
            raise ValueError("dimension must be positive")
        self.dimension = dimension
        self._items: dict[int, np.ndarray] = {}

    def __len__(self) -> int:
        return len(self._items)

    def _vector(self, vector: Sequence[float]) -> np.ndarray:
        values = np.asarray(vector, dtype=np.float64)
        if values.shape != (self.dimension,):
            raise ValueError(
                f"vector must have {self.dimension} components, got shape {values.shape}"
            )
        return values

    def add_item(self, item_id: int, vector: Sequence[float]) -> None:
        """Store a vector under an id, replacing any earlier one."""
        self._items[int(item_id)] = self._vector(vector)

    def get_nns_by_vector(
        self, vector: Sequence[float], n: int, search_k: int = -1
    ) -> tuple[list[int], list[float]]:
        """Return up to ``n`` ids and distances, nearest first.

        The search is exhaustive, so ``search_k`` does not limit it.
        """
        query = self._vector(vector)
        if n <= 0 or not self._items:
            return [], []
        ids = list(self._items)
        matrix = np.stack(list(self._items.values()))
        denominators = np.linalg.norm(matrix, axis=1) * np.linalg.norm(query)
        dots = matrix @ query
        cosines = np.divide(
            dots, denominators, out=np.zeros_like(dots), where=denominators > 0
        )
        distances = np.sqrt(np.maximum(0.0, 2.0 - 2.0 * cosines))
        order = np.argsort(distances, kind="stable")[:n]
        return [ids[i] for i in order], [float(distances[i]) for i in order]

    def save(self, path: str | os.PathLike) -> None:
        vectors = (
            np.stack(list(self._items.values()))
            if self._items
            else np.zeros((0, self.dimension))
        )
        with open(path, "wb") as handle:
            np.savez(
                handle,
                dimension=np.array(self.dimension),
                ids=np.array(list(self._items), dtype=np.int64),
                vectors=vectors,
            )

    def load(self, path: str | os.PathLike) -> None:
        """Replace the index's contents with those saved at ``path``."""
        with np.load(path, allow_pickle=False) as data:
            dimension = int(data["dimension"])
            if dimension != self.dimension:
                raise ValueError(
                    f"index at {path} has dimension {dimension}, expected {self.dimension}"
                )
            ids = data["ids"].tolist()
            vectors = np.array(data["vectors"], dtype=np.float64)
        self._items = {int(item_id): vector for item_id, vector in zip(ids, vectors)}


def search_query_text(search_value: str) -> str:
    return f"제목: {search_value}. 내용: {search_value}"


def _search(
    service: EmbeddingService, index: VectorIndex, search_value: str, n: int
) -> tuple[list[int], list[float]]:
    query = embedding_sentence(service, search_query_text(search_value))
    if query.size == 0:
        raise EmbeddingError("failed to embed the search value")
    ids, distances = index.get_nns_by_vector(query, n, SEARCH_K)
    kept = [(item_id, d) for item_id, d in zip(ids, distances) if d < DISTANCE_THRESHOLD]
    return [item_id for item_id, _ in kept], [d for _, d in kept]


def load_channel_annoy(
    service: EmbeddingService, index: VectorIndex, search_value: str
) -> tuple[list[int], list[float]]:
    """Channel embedding ids close to the search value, without repeats."""
    ids, distances = _search(service, index, search_value, 200)
    return list(dict.fromkeys(ids)), distances


def load_rss_annoy(
    service: EmbeddingService, index: VectorIndex, search_value: str
) -> tuple[list[int], list[float]]:
    """Item embedding ids close to the search value."""
    return _search(service, index, search_value, 200)


def load_news_annoy(
    service: EmbeddingService, index: VectorIndex, search_value: str
) -> tuple[list[int], list[float]]:
    """News embedding ids close to the search value."""
    return _search(service, index, search_value, 10)