"""Inference orchestration: SMILES in, unit embeddings and similarity verdicts out.

Each request runs the same pipeline::

    validate -> featurize -> predict (with retry) -> decode -> normalize -> metrics

The engine holds no mutable state of its own; it is safe to share between
threads as long as its collaborators are.
"""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field

import numpy as np

from ..cancellation import CancellationToken, check_cancelled
from ..config import GNNModelConfig
from ..data.transforms.featurizer import MoleculeFeaturizer
from ..data.transforms.fingerprints import FingerprintGenerator
from ..exceptions import (
    FatalBackendError,
    GNNError,
    InvalidSMILESError,
    NoMatchingWeightsError,
    SearchNotConfiguredError,
)
from .backends import ModelBackend, PredictRequest, PredictResponse, decode_embedding
from .lifecycle import ModelLifecycleManager
from .metrics import InferenceMetricParams, InferenceMetrics, NoopInferenceMetrics
from .postprocessing import GNNPostprocessor, SimilarityLevel
from .retry import RetryPolicy, call_with_retry
from .search import SimilarMatch, VectorSearcher

GNN_SCORE_KEY: str = "gnn"


@dataclass(frozen=True)
class EmbedResponse:
    """A unit embedding plus timing information.

    Attributes:
        vector: L2-normalized float32 embedding
        l2_norm: Norm of the raw model output
        latency_ms: Wall-clock time of the whole request
        backend_inference_ms: Inference time reported by the backend
        model_version: Version of the model that produced the vector
        request_id: Identifier sent to the backend with the request
    """

    vector: np.ndarray
    l2_norm: float
    latency_ms: float
    backend_inference_ms: float
    model_version: str
    request_id: str = ""


@dataclass(frozen=True)
class BatchEmbedItem:
    """Outcome for one molecule of a batch; exactly one of response/error is set."""

    index: int
    smiles: str
    response: EmbedResponse | None = None
    error: GNNError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class BatchEmbedResponse:
    items: list[BatchEmbedItem] = field(default_factory=list)
    latency_ms: float = 0.0

    @property
    def succeeded(self) -> int:
        return sum(1 for item in self.items if item.ok)

    @property
    def failed(self) -> int:
        return len(self.items) - self.succeeded

    @property
    def vectors(self) -> list[np.ndarray | None]:
        """Embedding per input position, None where the item failed."""
        return [item.response.vector if item.response is not None else None for item in self.items]


@dataclass(frozen=True)
class SimilarityResponse:
    """Fused similarity of two molecules.

    Attributes:
        score: Fused score, or the raw GNN cosine when no weight matched
        level: Classification of ``score``
        scores: Individual signals that went into the fusion
    """

    score: float
    level: SimilarityLevel
    scores: dict[str, float]


class GNNInferenceEngine:
    """Embedding and similarity service in front of a model backend.

    Args:
        backend: Serving backend used for predictions
        config: Model configuration
        featurizer: Builds graphs from SMILES; derived from ``config`` when omitted
        postprocessor: Normalization and similarity math; derived from ``config``
        metrics: Sink receiving one event per request
        searcher: Optional vector index for :meth:`search_similar`
        fingerprinter: Optional fingerprint generator adding Tanimoto signals to
            :meth:`compute_similarity`
        lifecycle: Optional lifecycle manager gating every request on READY
        logger: Logger for per-request detail
        request_id_factory: Produces the request id sent to the backend
        retry_policy: Overrides the policy derived from ``config.retry``

    Example:
        >>> engine = GNNInferenceEngine(backend, config)
        >>> response = engine.embed("CCO")
        >>> response.vector.shape
        (256,)
    """

    def __init__(
        self,
        backend: ModelBackend,
        config: GNNModelConfig | None = None,
        featurizer: MoleculeFeaturizer | None = None,
        postprocessor: GNNPostprocessor | None = None,
        metrics: InferenceMetrics | None = None,
        searcher: VectorSearcher | None = None,
        fingerprinter: FingerprintGenerator | None = None,
        lifecycle: ModelLifecycleManager | None = None,
        logger: logging.Logger | None = None,
        request_id_factory: Callable[[], str] | None = None,
        retry_policy: RetryPolicy | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or GNNModelConfig()
        self.featurizer = featurizer or MoleculeFeaturizer.from_config(self.config.graph)
        self.postprocessor = postprocessor or GNNPostprocessor(self.config)
        self.metrics = metrics or NoopInferenceMetrics()
        self.searcher = searcher
        self.fingerprinter = fingerprinter
        self.lifecycle = lifecycle
        self.logger = logger or logging.getLogger(__name__)
        self.request_id_factory = request_id_factory or (lambda: uuid.uuid4().hex)
        self.retry_policy = retry_policy or RetryPolicy.from_config(self.config.retry)

    def embed(self, smiles: str, cancel_token: CancellationToken | None = None) -> EmbedResponse:
        """Embed one molecule.

        Raises:
            ModelNotReadyError: If a lifecycle manager is attached and not READY
            InvalidSMILESError: If the SMILES is rejected (never retried)
            FeaturizationError: If the molecule cannot be featurized
            ModelBackendUnavailableError: If transient backend failures persist
            FatalBackendError: On non-retryable backend failures
            InvalidModelOutputError: If the backend output is not a valid embedding
            InferenceTimeoutError: If ``cancel_token`` is cancelled
        """
        start = time.perf_counter()
        try:
            response = self._embed(smiles, cancel_token, start)
        except Exception as e:
            self._record("embed", start, success=False, error=e)
            raise
        self._record("embed", start, success=True)
        return response

    def batch_embed(
        self,
        smiles_list: Sequence[str],
        cancel_token: CancellationToken | None = None,
    ) -> BatchEmbedResponse:
        """Embed many molecules, isolating per-item failures.

        Inputs are processed in chunks of ``max_batch_size``; the items of a chunk
        run concurrently. Results keep input order.

        Raises:
            ModelNotReadyError: If a lifecycle manager is attached and not READY
            InferenceTimeoutError: If ``cancel_token`` is cancelled at a chunk boundary
        """
        start = time.perf_counter()
        if self.lifecycle is not None:
            self.lifecycle.ensure_ready()
        if not smiles_list:
            return BatchEmbedResponse(items=[], latency_ms=0.0)

        chunk_size = self.config.max_batch_size
        items: list[BatchEmbedItem] = []
        with ThreadPoolExecutor(max_workers=min(chunk_size, len(smiles_list))) as executor:
            for offset in range(0, len(smiles_list), chunk_size):
                try:
                    check_cancelled(cancel_token, "batch embedding")
                except GNNError as e:
                    self._record("batch_embed", start, success=False, error=e, batch_size=len(smiles_list))
                    raise
                chunk = smiles_list[offset : offset + chunk_size]
                futures = [
                    executor.submit(self._embed_item, offset + i, smiles, cancel_token)
                    for i, smiles in enumerate(chunk)
                ]
                items.extend(future.result() for future in futures)

        response = BatchEmbedResponse(items=items, latency_ms=_elapsed_ms(start))
        self._record("batch_embed", start, success=response.failed == 0, batch_size=len(items))
        self.logger.debug(
            "Batch of %d embedded: %d ok, %d failed", len(items), response.succeeded, response.failed
        )
        return response

    def compute_similarity(
        self,
        smiles_a: str,
        smiles_b: str,
        cancel_token: CancellationToken | None = None,
    ) -> SimilarityResponse:
        """Fused similarity of two molecules.

        The GNN cosine similarity is reported under ``"gnn"``. When a fingerprint
        generator is attached, Tanimoto scores for each fingerprint type are added.
        The signals are fused with the configured weights; if no signal has a
        weight the raw GNN cosine is used instead.
        """
        start = time.perf_counter()
        try:
            embedding_a = self.embed(smiles_a, cancel_token)
            embedding_b = self.embed(smiles_b, cancel_token)
            scores = {
                GNN_SCORE_KEY: self.postprocessor.cosine_similarity(
                    embedding_a.vector, embedding_b.vector
                )
            }
            scores.update(self._fingerprint_scores(smiles_a, smiles_b))

            try:
                score = self.postprocessor.fuse_scores(scores)
            except NoMatchingWeightsError:
                self.logger.debug("No fusion weights match %s; using raw GNN score", sorted(scores))
                score = scores[GNN_SCORE_KEY]
        except Exception as e:
            self._record("similarity", start, success=False, error=e, batch_size=2)
            raise

        self._record("similarity", start, success=True, batch_size=2)
        return SimilarityResponse(
            score=score,
            level=self.postprocessor.classify_similarity(score),
            scores=scores,
        )

    def search_similar(
        self,
        smiles: str,
        top_k: int = 10,
        threshold: float = 0.55,
        cancel_token: CancellationToken | None = None,
    ) -> list[SimilarMatch]:
        """Find stored molecules similar to ``smiles``.

        Non-positive ``top_k`` or ``threshold`` fall back to the configured
        defaults.

        Raises:
            SearchNotConfiguredError: If no vector searcher is attached; raised
                before any embedding work
        """
        if self.searcher is None:
            raise SearchNotConfiguredError("Similarity search requires a vector searcher")
        if top_k <= 0:
            top_k = self.config.similarity.default_top_k
        if threshold <= 0:
            threshold = self.config.similarity.low_threshold

        embedding = self.embed(smiles, cancel_token)
        hits = self.searcher.search(embedding.vector, top_k, threshold)
        return [
            SimilarMatch(
                molecule_id=hit.molecule_id,
                smiles=hit.smiles,
                score=hit.score,
                level=self.postprocessor.classify_similarity(hit.score),
            )
            for hit in hits
        ]

    def _embed(
        self,
        smiles: str,
        cancel_token: CancellationToken | None,
        start: float,
    ) -> EmbedResponse:
        if self.lifecycle is not None:
            self.lifecycle.ensure_ready()
        check_cancelled(cancel_token, "embedding")

        graph = self.featurizer.featurize(smiles)
        request_id = self.request_id_factory()
        request = PredictRequest(
            model_name=self.config.model_id,
            input_data=graph.to_json_bytes(),
            metadata={"request_id": request_id},
        )

        response = call_with_retry(
            lambda: self._predict(request, cancel_token),
            self.retry_policy,
            cancel_token=cancel_token,
            what=f"predict {request_id}",
        )
        raw = decode_embedding(response.outputs, self.config.embedding_dim)
        result = self.postprocessor.normalize(raw, inference_ms=response.inference_time_ms)

        latency_ms = _elapsed_ms(start)
        self.logger.debug(
            "Embedded %r (request %s) in %.1f ms", smiles, request_id, latency_ms
        )
        return EmbedResponse(
            vector=result.vector,
            l2_norm=result.l2_norm,
            latency_ms=latency_ms,
            backend_inference_ms=response.inference_time_ms,
            model_version=response.model_version or result.model_version,
            request_id=request_id,
        )

    def _predict(
        self, request: PredictRequest, cancel_token: CancellationToken | None
    ) -> PredictResponse:
        check_cancelled(cancel_token, "backend call")
        try:
            return self.backend.predict(request)
        except GNNError:
            raise
        except Exception as e:
            raise FatalBackendError(
                f"Backend {type(self.backend).__name__} failed: {type(e).__name__}: {e}"
            ) from e

    def _embed_item(
        self, index: int, smiles: str, cancel_token: CancellationToken | None
    ) -> BatchEmbedItem:
        try:
            response = self.embed(smiles, cancel_token)
        except GNNError as e:
            self.logger.debug("Batch item %d (%r) failed: %s", index, smiles, e)
            return BatchEmbedItem(index=index, smiles=smiles, error=e)
        return BatchEmbedItem(index=index, smiles=smiles, response=response)

    def _fingerprint_scores(self, smiles_a: str, smiles_b: str) -> dict[str, float]:
        if self.fingerprinter is None:
            return {}
        try:
            fps_a = self.fingerprinter.generate(smiles_a)
            fps_b = self.fingerprinter.generate(smiles_b)
        except InvalidSMILESError as e:
            self.logger.warning("Fingerprints unavailable, fusing GNN score only: %s", e)
            return {}
        return {
            name: self.postprocessor.tanimoto_similarity(fps_a[name], fps_b[name])
            for name in fps_a
        }

    def _record(
        self,
        task_type: str,
        start: float,
        success: bool,
        error: Exception | None = None,
        batch_size: int = 1,
    ) -> None:
        self.metrics.record_inference(
            InferenceMetricParams(
                model_name=self.config.model_id,
                task_type=task_type,
                duration_ms=_elapsed_ms(start),
                success=success,
                batch_size=batch_size,
                error_type=type(error).__name__ if error is not None else None,
            )
        )


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000.0
