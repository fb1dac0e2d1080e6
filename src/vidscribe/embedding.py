"""Embedding generation: batched, order-preserving, dimension-checked."""

from __future__ import annotations

from collections.abc import Iterator, Sequence
from dataclasses import dataclass
from typing import Protocol

import httpx
import numpy as np

from vidscribe.errors import EmbeddingError
from vidscribe.models.config import EmbeddingConfig


@dataclass(frozen=True)
class EmbeddingResponse:
    vectors: list[list[float]]
    total_tokens: int = 0


@dataclass(frozen=True)
class EmbeddedBatch:
    """Vectors for ``texts[start:start + len(vectors)]``."""

    start: int
    vectors: list[list[float]]
    total_tokens: int
    cost_usd: float


class EmbeddingClient(Protocol):
    """Protocol for embedding backends. One call embeds one batch."""

    def embed_batch(self, texts: list[str]) -> EmbeddingResponse: ...


class OpenAIEmbeddingClient:
    """OpenAI-compatible ``POST /embeddings`` over httpx."""

    def __init__(self, client: httpx.Client, *, api_base: str, api_key: str | None, model: str):
        self._client = client
        self.api_base = api_base.rstrip("/")
        self.api_key = api_key
        self.model = model

    def embed_batch(self, texts: list[str]) -> EmbeddingResponse:
        if not self.api_key:
            raise EmbeddingError("OPENAI_API_KEY is not set")
        try:
            response = self._client.post(
                f"{self.api_base}/embeddings",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"model": self.model, "input": texts},
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            raise EmbeddingError(
                f"Embedding request failed ({e.response.status_code}): {e.response.text[:200]}"
            ) from e
        except httpx.HTTPError as e:
            raise EmbeddingError(f"Embedding request failed: {e}") from e
        except ValueError as e:
            raise EmbeddingError("Embedding response was not valid JSON") from e

        try:
            data = sorted(payload.get("data") or [], key=lambda item: item["index"])
            usage = payload.get("usage") or {}
            return EmbeddingResponse(
                vectors=[item["embedding"] for item in data],
                total_tokens=int(usage.get("total_tokens", 0)),
            )
        except (AttributeError, KeyError, TypeError, ValueError) as e:
            raise EmbeddingError(f"Malformed embedding response: {type(e).__name__}: {e}") from e


class EmbeddingGenerator:
    """Splits texts into batches and validates each batch before handing it out.

    A batch either yields a full, validated set of vectors or raises
    EmbeddingError; callers never see part of a batch.
    """

    def __init__(self, client: EmbeddingClient, config: EmbeddingConfig | None = None):
        self.client = client
        self.config = config or EmbeddingConfig()

    def iter_batches(self, texts: Sequence[str]) -> Iterator[EmbeddedBatch]:
        size = self.config.batch_size
        for start in range(0, len(texts), size):
            batch = list(texts[start : start + size])
            response = self.client.embed_batch(batch)
            vectors = self._validate(response.vectors, expected=len(batch))
            yield EmbeddedBatch(
                start=start,
                vectors=vectors,
                total_tokens=response.total_tokens,
                cost_usd=self.cost_for_tokens(response.total_tokens),
            )

    def embed(self, texts: Sequence[str]) -> list[list[float]]:
        """Return one vector per text, in input order."""
        return [v for batch in self.iter_batches(texts) for v in batch.vectors]

    def cost_for_tokens(self, tokens: int) -> float:
        return tokens / 1000 * self.config.cost_per_1k_tokens

    def _validate(self, vectors: list[list[float]], *, expected: int) -> list[list[float]]:
        if len(vectors) != expected:
            raise EmbeddingError(f"Expected {expected} vectors, got {len(vectors)}")
        try:
            matrix = np.asarray(vectors, dtype=np.float64)
        except (TypeError, ValueError) as e:
            raise EmbeddingError(f"Embedding vectors are ragged or non-numeric: {e}") from e
        if matrix.ndim != 2 or matrix.shape[1] != self.config.dimension:
            raise EmbeddingError(
                f"Expected {self.config.dimension}-dimensional vectors, got shape {matrix.shape}"
            )
        if not np.isfinite(matrix).all():
            raise EmbeddingError("Embedding contains non-finite values")
        return matrix.tolist()
