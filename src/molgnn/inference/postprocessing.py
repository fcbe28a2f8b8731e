"""Embedding normalization, similarity metrics and score fusion.

All functions are pure: inputs are never mutated and every result is a fresh
buffer. Degenerate inputs (empty vectors, zero norms, no overlapping weights)
raise instead of producing a silent default.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from enum import Enum

import numpy as np

from ..config import GNNModelConfig, SimilarityConfig
from ..exceptions import (
    DimensionMismatchError,
    NoMatchingWeightsError,
    NumericError,
    ValidationError,
    ZeroVectorError,
)

logger = logging.getLogger(__name__)

ZERO_NORM_EPSILON: float = 1e-12
DEFAULT_SIMILARITY = SimilarityConfig()


class SimilarityLevel(str, Enum):
    """Discrete similarity verdict, ordered from strongest to weakest."""

    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"
    NONE = "NONE"


@dataclass(frozen=True)
class EmbeddingResult:
    """A unit-length embedding.

    Attributes:
        vector: L2-normalized float32 vector (read-only)
        l2_norm: Norm of the raw vector, computed in float64
        model_version: Version of the model that produced the vector
        inference_ms: Backend inference time reported with the vector
    """

    vector: np.ndarray
    l2_norm: float
    model_version: str = ""
    inference_ms: float = 0.0

    @property
    def dim(self) -> int:
        return int(self.vector.shape[0])


def l2_normalize(
    raw: Sequence[float] | np.ndarray,
    expected_dim: int = 0,
    model_version: str = "",
    inference_ms: float = 0.0,
) -> EmbeddingResult:
    """Scale a raw embedding to unit length.

    Args:
        raw: Raw model output
        expected_dim: Required length; 0 disables the check

    Raises:
        DimensionMismatchError: If ``raw`` is empty or has the wrong length
        ZeroVectorError: If the norm is below 1e-12 or not finite
    """
    values = np.asarray(raw, dtype=np.float64).ravel()
    if values.size == 0:
        raise DimensionMismatchError("Cannot normalize an empty vector")
    if expected_dim > 0 and values.size != expected_dim:
        raise DimensionMismatchError(
            f"Embedding has {values.size} dimensions; expected {expected_dim}"
        )

    norm = float(np.sqrt(np.dot(values, values)))
    if not math.isfinite(norm) or norm < ZERO_NORM_EPSILON:
        raise ZeroVectorError(f"Cannot normalize vector with norm {norm}")

    vector = (values / norm).astype(np.float32)
    vector.setflags(write=False)
    return EmbeddingResult(
        vector=vector,
        l2_norm=norm,
        model_version=model_version,
        inference_ms=inference_ms,
    )


def cosine_similarity(a: Sequence[float] | np.ndarray, b: Sequence[float] | np.ndarray) -> float:
    """Cosine similarity of two dense vectors, clamped to [-1, 1].

    Raises:
        DimensionMismatchError: If lengths differ or either vector is empty
        ZeroVectorError: If either vector has zero norm
    """
    va = np.asarray(a, dtype=np.float64).ravel()
    vb = np.asarray(b, dtype=np.float64).ravel()
    if va.size == 0 or va.size != vb.size:
        raise DimensionMismatchError(
            f"Cannot compare vectors of length {va.size} and {vb.size}"
        )

    norm_a = float(np.sqrt(np.dot(va, va)))
    norm_b = float(np.sqrt(np.dot(vb, vb)))
    if norm_a < ZERO_NORM_EPSILON or norm_b < ZERO_NORM_EPSILON:
        raise ZeroVectorError("Cannot compute cosine similarity with a zero vector")

    similarity = float(np.dot(va, vb)) / (norm_a * norm_b)
    return min(1.0, max(-1.0, similarity))


def tanimoto_similarity(a: bytes, b: bytes) -> float:
    """Tanimoto (Jaccard) similarity of two bit-packed fingerprints.

    Two all-zero fingerprints have similarity 0.0.

    Raises:
        DimensionMismatchError: If lengths differ or either fingerprint is empty
    """
    if len(a) == 0 or len(a) != len(b):
        raise DimensionMismatchError(
            f"Cannot compare fingerprints of {len(a)} and {len(b)} bytes"
        )

    bits_a = np.unpackbits(np.frombuffer(a, dtype=np.uint8))
    bits_b = np.unpackbits(np.frombuffer(b, dtype=np.uint8))
    intersection = int(np.count_nonzero(bits_a & bits_b))
    union = int(np.count_nonzero(bits_a)) + int(np.count_nonzero(bits_b)) - intersection
    if union == 0:
        return 0.0
    return intersection / union


def fuse_scores(scores: Mapping[str, float], weights: Mapping[str, float]) -> float:
    """Weighted mean of the scores that have a weight, clamped to [0, 1].

    Scores without a weight are skipped, and the weights of missing scores are
    redistributed, so ``fuse_scores({"gnn": 0.9}, {"gnn": 0.35, "morgan": 0.3})``
    is 0.9.

    Raises:
        NoMatchingWeightsError: If no score has a positive weight
        NumericError: If a contributing score is not finite
    """
    weighted_sum = 0.0
    effective_weight = 0.0
    for key, score in scores.items():
        weight = weights.get(key)
        if weight is None:
            continue
        if not math.isfinite(score):
            raise NumericError(f"Score for {key!r} is not finite: {score}")
        weighted_sum += weight * score
        effective_weight += weight

    if effective_weight <= ZERO_NORM_EPSILON:
        raise NoMatchingWeightsError(
            f"No weights for scores {sorted(scores)}; weighted keys are {sorted(weights)}"
        )
    return min(1.0, max(0.0, weighted_sum / effective_weight))


def classify_similarity(
    score: float, thresholds: SimilarityConfig = DEFAULT_SIMILARITY
) -> SimilarityLevel:
    """Map a score to a SimilarityLevel using inclusive lower bounds."""
    if score >= thresholds.high_threshold:
        return SimilarityLevel.HIGH
    if score >= thresholds.medium_threshold:
        return SimilarityLevel.MEDIUM
    if score >= thresholds.low_threshold:
        return SimilarityLevel.LOW
    return SimilarityLevel.NONE


class GNNPostprocessor:
    """Postprocessing bound to a model configuration.

    Args:
        config: Model configuration; supplies the expected embedding width, the
            similarity thresholds and the default fusion weights

    Example:
        >>> post = GNNPostprocessor(GNNModelConfig(embedding_dim=3))
        >>> post.normalize([3.0, 4.0, 0.0]).vector.tolist()
        [0.6000000238418579, 0.800000011920929, 0.0]
    """

    def __init__(self, config: GNNModelConfig | None = None) -> None:
        self.config = config or GNNModelConfig()

    @property
    def fusion_weights(self) -> Mapping[str, float]:
        return self.config.similarity.fusion_weights

    def normalize(
        self,
        raw: Sequence[float] | np.ndarray,
        inference_ms: float = 0.0,
    ) -> EmbeddingResult:
        return l2_normalize(
            raw,
            expected_dim=self.config.embedding_dim,
            model_version=self.config.model_version,
            inference_ms=inference_ms,
        )

    def process_batch(self, raws: Sequence[Sequence[float] | np.ndarray]) -> list[EmbeddingResult]:
        """Normalize every vector, stopping at the first invalid one.

        Raises:
            DimensionMismatchError, ZeroVectorError: Re-raised with the failing
                index prefixed to the message
        """
        results = []
        for i, raw in enumerate(raws):
            try:
                results.append(self.normalize(raw))
            except (ValidationError, NumericError) as e:
                raise type(e)(f"Batch item {i}: {e}") from e
        return results

    def cosine_similarity(self, a, b) -> float:
        return cosine_similarity(a, b)

    def tanimoto_similarity(self, a: bytes, b: bytes) -> float:
        return tanimoto_similarity(a, b)

    def fuse_scores(
        self,
        scores: Mapping[str, float],
        weights: Mapping[str, float] | None = None,
    ) -> float:
        return fuse_scores(scores, self.fusion_weights if weights is None else weights)

    def classify_similarity(self, score: float) -> SimilarityLevel:
        return classify_similarity(score, self.config.similarity)
