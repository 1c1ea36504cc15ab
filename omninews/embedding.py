"""Sentence embeddings computed on a dedicated worker thread."""

from __future__ import annotations

import logging
import queue
import threading
from dataclasses import dataclass, field, replace
from typing import Callable, Sequence

import numpy as np

from . import repository
from .db import Database
from .models import EmbeddingError, NewEmbedding

logger = logging.getLogger(__name__)

Encoder = Callable[[str], Sequence[float]]

_STOP = object()


@dataclass
class _Request:
    text: str
    response: "queue.Queue[list[float]]" = field(default_factory=lambda: queue.Queue(maxsize=1))


class EmbeddingService:
    """Serialises encoder calls through one worker thread."""

    def __init__(self, encoder: Encoder) -> None:
        self._requests: queue.Queue = queue.Queue()
        self._lock = threading.Lock()
        self._closed = False
        self._worker = threading.Thread(
            target=self._run, args=(encoder,), name="embedding-worker", daemon=True
        )
        self._worker.start()

    def __enter__(self) -> "EmbeddingService":
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.close()

    def _run(self, encoder: Encoder) -> None:
        logger.info("embedding worker started")
        while (request := self._requests.get()) is not _STOP:
            try:
                vector = [float(x) for x in encoder(request.text)]
            except Exception:
                logger.exception("encoder failed")
                vector = []
            request.response.put(vector)
        logger.info("embedding worker terminated")

    def embed_text(self, text: str) -> list[float]:
        """Return the raw embedding of ``text``; empty if the encoder failed."""
        request = _Request(text)
        with self._lock:
            if self._closed:
                raise EmbeddingError("embedding worker is not running")
            self._requests.put(request)
        return request.response.get()

    def close(self) -> None:
        with self._lock:
            if self._closed:
                return
            self._closed = True
            self._requests.put(_STOP)
        self._worker.join()


def normalize(vector: Sequence[float]) -> np.ndarray:
    """Scale a vector to unit length; a zero vector is returned unchanged."""
    values = np.asarray(vector, dtype=np.float32)
    norm = float(np.sqrt(np.sum(values * values)))
    if norm > 0.0:
        values = values / np.float32(norm)
    return values


def embedding_sentence(service: EmbeddingService, sentence: str) -> np.ndarray:
    """Embed a sentence and normalise the result."""
    return normalize(service.embed_text(sentence))


def encode_embedding(embedding: Sequence[float]) -> bytes:
    """Little-endian 32-bit floats, one after another."""
    return np.asarray(embedding, dtype="<f4").tobytes()


def decode_embedding(data: bytes) -> np.ndarray:
    if len(data) % 4:
        raise ValueError("embedding data length must be a multiple of 4")
    return np.frombuffer(data, dtype="<f4").astype(np.float32)


def create_embedding(
    db: Database, service: EmbeddingService, sentence: str, embedding: NewEmbedding
) -> int:
    """Embed a sentence, store it with the given owner ids and return its id."""
    value = encode_embedding(embedding_sentence(service, sentence))
    try:
        return repository.insert_embedding(db, replace(embedding, embedding_value=value))
    except Exception as exc:
        logger.error("failed to insert embedding: %s", exc)
        raise EmbeddingError("failed to insert embedding") from exc