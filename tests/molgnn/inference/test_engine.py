"""Tests for GNNInferenceEngine."""

import base64
import threading
import time
from unittest.mock import MagicMock

import numpy as np
import pytest
import requests

from molgnn.cancellation import CancellationToken
from molgnn.config import GNNModelConfig, SimilarityConfig
from molgnn.data.graph import MolecularGraph
from molgnn.data.transforms.fingerprints import FingerprintGenerator
from molgnn.exceptions import (
    EmptyInputError,
    FatalBackendError,
    InferenceTimeoutError,
    InvalidCharacterError,
    InvalidModelOutputError,
    InvalidSMILESError,
    ModelBackendUnavailableError,
    ModelNotReadyError,
    SearchNotConfiguredError,
    ServingUnavailableError,
    ZeroVectorError,
)
from molgnn.inference.backends import EMBEDDING_OUTPUT, HTTPBackend, PredictRequest, PredictResponse
from molgnn.inference.engine import GNNInferenceEngine
from molgnn.inference.lifecycle import ModelLifecycleManager
from molgnn.inference.metrics import InMemoryInferenceMetrics
from molgnn.inference.postprocessing import SimilarityLevel
from molgnn.inference.retry import RetryPolicy
from molgnn.inference.search import SearchHit

EMBEDDING_DIM = 8
NO_DELAY = RetryPolicy(max_retries=2, base_delay=0.0, max_delay=0.0)


def atom_count_vector(graph: MolecularGraph) -> np.ndarray:
    """One-hot on the atom count, scaled so the raw norm is atom_count."""
    vector = np.zeros(EMBEDDING_DIM, dtype=np.float32)
    vector[graph.atom_count % EMBEDDING_DIM] = float(graph.atom_count)
    return vector


class FakeBackend:
    """Returns ``vector_fn(graph)`` as the embedding, after any queued errors."""

    def __init__(self, vector_fn=atom_count_vector, errors=None, model_version="9.9"):
        self.vector_fn = vector_fn
        self.errors = list(errors or [])
        self.model_version = model_version
        self.requests: list[PredictRequest] = []
        self._lock = threading.Lock()

    @property
    def calls(self) -> int:
        return len(self.requests)

    def predict(self, request: PredictRequest) -> PredictResponse:
        with self._lock:
            self.requests.append(request)
            error = self.errors.pop(0) if self.errors else None
        if error is not None:
            raise error
        graph = MolecularGraph.from_json_bytes(request.input_data)
        vector = np.asarray(self.vector_fn(graph), dtype="<f4")
        return PredictResponse(
            model_name=request.model_name,
            outputs={EMBEDDING_OUTPUT: vector.tobytes()},
            model_version=self.model_version,
            inference_time_ms=1.5,
        )

    def healthy(self) -> None:
        return None

    def close(self) -> None:
        return None


class BarrierBackend(FakeBackend):
    """Blocks every call until ``parties`` calls are in flight at once.

    Records the peak number of concurrent calls and the start and end time of
    each call, keyed by SMILES.
    """

    def __init__(self, parties: int):
        super().__init__()
        self.barrier = threading.Barrier(parties, timeout=5)
        self.in_flight = 0
        self.peak = 0
        self.spans: dict[str, tuple[float, float]] = {}

    def predict(self, request: PredictRequest) -> PredictResponse:
        smiles = MolecularGraph.from_json_bytes(request.input_data).source_smiles
        with self._lock:
            self.in_flight += 1
            self.peak = max(self.peak, self.in_flight)
        started = time.monotonic()
        try:
            self.barrier.wait()
            return super().predict(request)
        finally:
            with self._lock:
                self.in_flight -= 1
                self.spans[smiles] = (started, time.monotonic())


def embedding_response(vector):
    response = MagicMock()
    response.status_code = 200
    response.json.return_value = {
        "outputs": {EMBEDDING_OUTPUT: base64.b64encode(np.asarray(vector, dtype="<f4").tobytes()).decode()}
    }
    return response


class FakeSearcher:
    def __init__(self, hits):
        self.hits = hits
        self.calls = []

    def search(self, vector, top_k, threshold):
        self.calls.append((vector, top_k, threshold))
        return self.hits


@pytest.fixture
def config() -> GNNModelConfig:
    return GNNModelConfig(embedding_dim=EMBEDDING_DIM, max_batch_size=2, warmup_samples=0)


@pytest.fixture
def metrics() -> InMemoryInferenceMetrics:
    return InMemoryInferenceMetrics()


def make_engine(config, backend=None, **kwargs) -> GNNInferenceEngine:
    kwargs.setdefault("retry_policy", NO_DELAY)
    return GNNInferenceEngine(backend or FakeBackend(), config, **kwargs)


# ============================================================================
# embed
# ============================================================================


class TestEmbed:
    """Tests for single-molecule embedding."""

    def test_unit_vector(self, config, metrics):
        """Test the embedding is unit length and keeps the raw norm."""
        backend = FakeBackend()
        engine = make_engine(config, backend, metrics=metrics, request_id_factory=lambda: "req-1")

        response = engine.embed("CCO")

        assert response.vector.shape == (EMBEDDING_DIM,)
        assert np.linalg.norm(response.vector) == pytest.approx(1.0)
        assert response.l2_norm == pytest.approx(3.0)
        assert response.model_version == "9.9"
        assert response.backend_inference_ms == 1.5
        assert response.latency_ms >= 0.0
        assert response.request_id == "req-1"

        (request,) = backend.requests
        assert request.model_name == config.model_id
        assert request.metadata == {"request_id": "req-1"}
        assert MolecularGraph.from_json_bytes(request.input_data).source_smiles == "CCO"

        (event,) = metrics.events
        assert event.task_type == "embed"
        assert event.success

    def test_model_version_fallback(self, config):
        """Test the configured version is used when the backend reports none."""
        engine = make_engine(config, FakeBackend(model_version=""))
        assert engine.embed("C").model_version == config.model_version

    @pytest.mark.parametrize("smiles,error", [("", EmptyInputError), ("XYZ", InvalidCharacterError)])
    def test_invalid_smiles_not_sent(self, config, metrics, smiles, error):
        """Test rejected SMILES never reach the backend."""
        backend = FakeBackend()
        engine = make_engine(config, backend, metrics=metrics)
        with pytest.raises(error):
            engine.embed(smiles)
        assert backend.calls == 0
        (event,) = metrics.events
        assert not event.success
        assert event.error_type == error.__name__

    def test_retries_transient_failures(self, config):
        """Test two transient failures are retried transparently."""
        backend = FakeBackend(errors=[ServingUnavailableError("down"), InferenceTimeoutError("slow")])
        response = make_engine(config, backend).embed("CC")
        assert backend.calls == 3
        assert response.l2_norm == pytest.approx(2.0)

    def test_retries_exhausted(self, config):
        """Test persistent transient failures surface as ModelBackendUnavailableError."""
        backend = FakeBackend(errors=[ServingUnavailableError("down")] * 3)
        with pytest.raises(ModelBackendUnavailableError) as exc_info:
            make_engine(config, backend).embed("CC")
        assert exc_info.value.attempts == 3
        assert backend.calls == 3

    def test_fatal_not_retried(self, config):
        """Test fatal backend errors fail on the first attempt."""
        backend = FakeBackend(errors=[FatalBackendError("bad request")])
        with pytest.raises(FatalBackendError):
            make_engine(config, backend).embed("CC")
        assert backend.calls == 1

    def test_unexpected_backend_exception(self, config):
        """Test an exception outside the error hierarchy becomes a fatal backend error."""
        cause = RuntimeError("CUDA out of memory")
        backend = FakeBackend(errors=[cause])
        with pytest.raises(FatalBackendError) as exc_info:
            make_engine(config, backend).embed("CC")
        assert exc_info.value.__cause__ is cause
        assert backend.calls == 1

    def test_wrong_dimension(self, config):
        """Test a wrongly sized model output is rejected."""
        backend = FakeBackend(vector_fn=lambda graph: np.ones(EMBEDDING_DIM + 1))
        with pytest.raises(InvalidModelOutputError):
            make_engine(config, backend).embed("C")
        assert backend.calls == 1

    def test_zero_output(self, config):
        """Test an all-zero model output is an error, not a zero embedding."""
        backend = FakeBackend(vector_fn=lambda graph: np.zeros(EMBEDDING_DIM))
        with pytest.raises(ZeroVectorError):
            make_engine(config, backend).embed("C")

    def test_cancelled(self, config):
        """Test a cancelled token stops before the backend is called."""
        backend = FakeBackend()
        token = CancellationToken()
        token.cancel()
        with pytest.raises(InferenceTimeoutError):
            make_engine(config, backend).embed("C", cancel_token=token)
        assert backend.calls == 0

    def test_lifecycle_gate(self, config):
        """Test requests are refused until the model is READY."""
        backend = FakeBackend()
        lifecycle = ModelLifecycleManager(backend, config)
        engine = make_engine(config, backend, lifecycle=lifecycle)

        with pytest.raises(ModelNotReadyError):
            engine.embed("C")
        with pytest.raises(ModelNotReadyError):
            engine.batch_embed(["C"])
        assert backend.calls == 0

        lifecycle.load()
        assert engine.embed("C").l2_norm == pytest.approx(1.0)

    def test_default_collaborators(self):
        """Test the engine builds its featurizer, postprocessor and retry policy from config."""
        config = GNNModelConfig(embedding_dim=EMBEDDING_DIM)
        engine = GNNInferenceEngine(FakeBackend(), config)
        assert engine.featurizer.max_atoms == config.graph.max_atoms
        assert engine.retry_policy.max_retries == config.retry.max_retries
        assert engine.postprocessor.config is config


# ============================================================================
# batch_embed
# ============================================================================


class TestBatchEmbed:
    """Tests for batch embedding with per-item isolation."""

    def test_order_and_isolation(self, config, metrics):
        """Test failures stay with their item and output order matches input order."""
        smiles = ["C", "XYZ", "CC", "CCO", "", "CCCC"]
        engine = make_engine(config, metrics=metrics)

        response = engine.batch_embed(smiles)

        assert [item.index for item in response.items] == list(range(len(smiles)))
        assert [item.smiles for item in response.items] == smiles
        assert [item.ok for item in response.items] == [True, False, True, True, False, True]
        assert response.succeeded == 4
        assert response.failed == 2
        assert isinstance(response.items[1].error, InvalidSMILESError)
        assert isinstance(response.items[4].error, EmptyInputError)
        assert [item.response.l2_norm for item in response.items if item.ok] == pytest.approx([1, 2, 3, 4])

        vectors = response.vectors
        assert vectors[1] is None and vectors[4] is None
        assert vectors[0].shape == (EMBEDDING_DIM,)

        batch_events = [e for e in metrics.events if e.task_type == "batch_embed"]
        assert len(batch_events) == 1
        assert batch_events[0].batch_size == len(smiles)
        assert not batch_events[0].success

    def test_backend_failure_isolated(self, config):
        """Test a backend failure on one item does not fail the others."""
        backend = FakeBackend(errors=[FatalBackendError("bad")])
        response = make_engine(config, backend).batch_embed(["C", "CC", "CCC"])
        assert response.succeeded == 2
        assert response.failed == 1

    def test_unexpected_backend_exception_isolated(self, config):
        """Test a non-library exception from the backend fails only its own item."""
        backend = FakeBackend(errors=[RuntimeError("boom")])
        response = make_engine(config, backend).batch_embed(["C", "CC", "CCC"])
        assert response.succeeded == 2
        (failed,) = [item for item in response.items if not item.ok]
        assert isinstance(failed.error, FatalBackendError)
        assert isinstance(failed.error.__cause__, RuntimeError)

    def test_http_request_exception_isolated(self, config):
        """Test a requests error other than timeout or connection failure stays per item."""
        vector = np.zeros(EMBEDDING_DIM, dtype=np.float32)
        vector[0] = 1.0
        session = MagicMock()
        session.request.side_effect = [
            embedding_response(vector),
            requests.TooManyRedirects("Exceeded 30 redirects"),
            embedding_response(vector),
        ]
        backend = HTTPBackend("http://serving:8501", session=session)

        response = make_engine(config, backend).batch_embed(["C", "CC", "CCC"])

        assert len(response.items) == 3
        assert response.succeeded == 2
        (failed,) = [item for item in response.items if not item.ok]
        assert isinstance(failed.error, FatalBackendError)
        assert session.request.call_count == 3

    def test_chunk_items_run_concurrently(self):
        """Test the items of a chunk are in flight together and chunks run in order."""
        config = GNNModelConfig(embedding_dim=EMBEDDING_DIM, max_batch_size=3, warmup_samples=0)
        backend = BarrierBackend(parties=3)
        smiles = ["C", "CC", "CCC", "CCCC", "CCCCC", "CCCCCC"]

        response = make_engine(config, backend).batch_embed(smiles)

        assert response.failed == 0
        assert backend.peak == 3
        first_chunk_end = max(backend.spans[s][1] for s in smiles[:3])
        second_chunk_start = min(backend.spans[s][0] for s in smiles[3:])
        assert second_chunk_start >= first_chunk_end

    def test_empty(self, config):
        """Test an empty batch returns no items."""
        backend = FakeBackend()
        response = make_engine(config, backend).batch_embed([])
        assert response.items == []
        assert backend.calls == 0

    def test_all_succeed(self, config, metrics):
        """Test the batch metric reports success when every item succeeds."""
        response = make_engine(config, metrics=metrics).batch_embed(["C", "CC", "CCC"])
        assert response.failed == 0
        assert metrics.events[-1].task_type == "batch_embed"
        assert metrics.events[-1].success

    def test_cancelled(self, config):
        """Test a cancelled token aborts the batch at a chunk boundary."""
        backend = FakeBackend()
        token = CancellationToken()
        token.cancel()
        with pytest.raises(InferenceTimeoutError):
            make_engine(config, backend).batch_embed(["C", "CC", "CCC"], cancel_token=token)
        assert backend.calls == 0


# ============================================================================
# compute_similarity
# ============================================================================


class TestComputeSimilarity:
    """Tests for fused pairwise similarity."""

    def test_same_molecule(self, config, metrics):
        """Test identical molecules are highly similar."""
        result = make_engine(config, metrics=metrics).compute_similarity("CCO", "OCC")
        assert result.scores == {"gnn": pytest.approx(1.0)}
        assert result.score == pytest.approx(1.0)
        assert result.level == SimilarityLevel.HIGH
        assert metrics.events[-1].task_type == "similarity"
        assert metrics.events[-1].success

    def test_orthogonal_embeddings(self, config):
        """Test unrelated embeddings fuse to zero."""
        result = make_engine(config).compute_similarity("C", "CC")
        assert result.scores["gnn"] == pytest.approx(0.0)
        assert result.level == SimilarityLevel.NONE

    def test_with_fingerprints(self, config):
        """Test fingerprint Tanimoto scores are fused with the GNN score."""
        engine = make_engine(config, fingerprinter=FingerprintGenerator())
        result = engine.compute_similarity("CCO", "OCC")
        assert set(result.scores) == {"gnn", "morgan", "rdkit", "atompair"}
        assert result.score == pytest.approx(1.0)

    def test_fallback_to_raw_cosine(self):
        """Test the raw GNN cosine is used when no weight matches any score."""
        config = GNNModelConfig(
            embedding_dim=EMBEDDING_DIM,
            similarity=SimilarityConfig(fusion_weights={"morgan": 1.0}),
        )

        def signed(graph):
            vector = np.zeros(EMBEDDING_DIM, dtype=np.float32)
            vector[0] = 1.0 if graph.atom_count == 1 else -1.0
            return vector

        result = make_engine(config, FakeBackend(vector_fn=signed)).compute_similarity("C", "CC")
        assert result.score == pytest.approx(-1.0)
        assert result.level == SimilarityLevel.NONE

    def test_invalid_smiles(self, config, metrics):
        """Test invalid input fails the similarity call."""
        with pytest.raises(InvalidSMILESError):
            make_engine(config, metrics=metrics).compute_similarity("C", "C(")
        assert metrics.events[-1].task_type == "similarity"
        assert not metrics.events[-1].success


# ============================================================================
# search_similar
# ============================================================================


class TestSearchSimilar:
    """Tests for vector search."""

    def test_not_configured(self, config):
        """Test search without a searcher fails before any embedding work."""
        backend = FakeBackend()
        with pytest.raises(SearchNotConfiguredError):
            make_engine(config, backend).search_similar("CCO")
        assert backend.calls == 0

    def test_classified_matches(self, config):
        """Test hits are returned in order with similarity levels."""
        searcher = FakeSearcher(
            [
                SearchHit(molecule_id="m1", smiles="CCO", score=0.93),
                SearchHit(molecule_id="m2", smiles="CCN", score=0.72),
                SearchHit(molecule_id="m3", smiles="CCC", score=0.56),
            ]
        )
        matches = make_engine(config, searcher=searcher).search_similar("CCO", top_k=3, threshold=0.5)

        assert [m.molecule_id for m in matches] == ["m1", "m2", "m3"]
        assert [m.level for m in matches] == [SimilarityLevel.HIGH, SimilarityLevel.MEDIUM, SimilarityLevel.LOW]
        vector, top_k, threshold = searcher.calls[0]
        assert np.linalg.norm(vector) == pytest.approx(1.0)
        assert (top_k, threshold) == (3, 0.5)

    def test_defaults_for_non_positive_arguments(self, config):
        """Test non-positive top_k and threshold fall back to configured defaults."""
        searcher = FakeSearcher([])
        assert make_engine(config, searcher=searcher).search_similar("C", top_k=0, threshold=0.0) == []
        _, top_k, threshold = searcher.calls[0]
        assert top_k == config.similarity.default_top_k
        assert threshold == config.similarity.low_threshold


class TestMetricsSummary:
    """Tests for the in-memory metrics summary."""

    def test_summary(self, config, metrics):
        """Test per-task counts after mixed traffic."""
        engine = make_engine(config, metrics=metrics)
        engine.embed("C")
        with pytest.raises(InvalidSMILESError):
            engine.embed("C(")

        summary = metrics.summary()
        assert summary["embed"]["count"] == 2
        assert summary["embed"]["success"] == 1
        assert summary["embed"]["failure"] == 1
        assert summary["embed"]["mean_ms"] >= 0.0

        metrics.clear()
        assert metrics.summary() == {}
