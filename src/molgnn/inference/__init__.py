"""Embedding inference, similarity and model lifecycle."""

from .backends import (
    BackendType,
    HTTPBackend,
    ModelBackend,
    PredictRequest,
    PredictResponse,
    TorchBackend,
    create_backend,
    decode_embedding,
)
from .engine import (
    BatchEmbedItem,
    BatchEmbedResponse,
    EmbedResponse,
    GNNInferenceEngine,
    SimilarityResponse,
)
from .lifecycle import ModelLifecycleManager, ModelState
from .metrics import InferenceMetricParams, InMemoryInferenceMetrics, NoopInferenceMetrics
from .postprocessing import (
    EmbeddingResult,
    GNNPostprocessor,
    SimilarityLevel,
    classify_similarity,
    cosine_similarity,
    fuse_scores,
    l2_normalize,
    tanimoto_similarity,
)
from .retry import RetryPolicy, RetryState, call_with_retry
from .search import SearchHit, SimilarMatch, VectorSearcher

__all__ = [
    # Engine
    "GNNInferenceEngine",
    "EmbedResponse",
    "BatchEmbedItem",
    "BatchEmbedResponse",
    "SimilarityResponse",
    # Backends
    "ModelBackend",
    "BackendType",
    "HTTPBackend",
    "TorchBackend",
    "PredictRequest",
    "PredictResponse",
    "create_backend",
    "decode_embedding",
    # Lifecycle
    "ModelLifecycleManager",
    "ModelState",
    # Postprocessing
    "EmbeddingResult",
    "GNNPostprocessor",
    "SimilarityLevel",
    "l2_normalize",
    "cosine_similarity",
    "tanimoto_similarity",
    "fuse_scores",
    "classify_similarity",
    # Retry
    "RetryPolicy",
    "RetryState",
    "call_with_retry",
    # Metrics and search
    "InferenceMetricParams",
    "NoopInferenceMetrics",
    "InMemoryInferenceMetrics",
    "SearchHit",
    "SimilarMatch",
    "VectorSearcher",
]
