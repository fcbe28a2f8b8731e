"""Model lifecycle state machine.

::

    UNLOADED -> LOADING -> READY -> UNLOADING -> UNLOADED
                   |          |
                   +-> ERROR <+

The state lock is only held while a transition is inspected or applied, never
while the backend is being health-checked, warmed up or closed.
"""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum

from ..config import GNNModelConfig
from ..data.transforms.featurizer import MoleculeFeaturizer
from ..exceptions import ModelLifecycleError, ModelLoadError, ModelNotReadyError
from .backends import ModelBackend, PredictRequest
from .metrics import InferenceMetricParams, InferenceMetrics, NoopInferenceMetrics

WARMUP_SMILES: str = "C"


class ModelState(str, Enum):
    UNLOADED = "unloaded"
    LOADING = "loading"
    READY = "ready"
    ERROR = "error"
    UNLOADING = "unloading"


_TRANSITIONING = (ModelState.LOADING, ModelState.UNLOADING)


class ModelLifecycleManager:
    """Loads, health-checks, warms up and unloads a model backend.

    Args:
        backend: Serving backend to manage
        config: Model configuration (model name, warmup sample count)
        featurizer: Featurizer used to build warmup requests
        metrics: Sink for load outcome and latency
        logger: Logger for lifecycle milestones

    Example:
        >>> manager = ModelLifecycleManager(backend, config)
        >>> manager.load()
        >>> manager.state
        <ModelState.READY: 'ready'>
    """

    def __init__(
        self,
        backend: ModelBackend,
        config: GNNModelConfig | None = None,
        featurizer: MoleculeFeaturizer | None = None,
        metrics: InferenceMetrics | None = None,
        logger: logging.Logger | None = None,
    ) -> None:
        self.backend = backend
        self.config = config or GNNModelConfig()
        self.featurizer = featurizer or MoleculeFeaturizer.from_config(self.config.graph)
        self.metrics = metrics or NoopInferenceMetrics()
        self.logger = logger or logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._state = ModelState.UNLOADED
        self._last_error: Exception | None = None

    @property
    def state(self) -> ModelState:
        with self._lock:
            return self._state

    @property
    def is_ready(self) -> bool:
        return self.state == ModelState.READY

    @property
    def last_error(self) -> Exception | None:
        with self._lock:
            return self._last_error

    def ensure_ready(self) -> None:
        """Raise ModelNotReadyError unless the model is READY."""
        state = self.state
        if state != ModelState.READY:
            raise ModelNotReadyError(f"Model {self.config.model_id!r} is {state.value}, not ready")

    def load(self) -> None:
        """Bring the model to READY.

        A no-op when already READY. Loading from ERROR is allowed and retries the
        whole sequence.

        Raises:
            ModelLifecycleError: If another load or unload is in progress
            ModelLoadError: If the backend health check fails; the state becomes ERROR
        """
        with self._lock:
            if self._state == ModelState.READY:
                return
            if self._state in _TRANSITIONING:
                raise ModelLifecycleError(
                    f"Cannot load model while it is {self._state.value}"
                )
            self._state = ModelState.LOADING

        self.logger.info("Loading model %s (version %s)", self.config.model_id, self.config.model_version)
        start = time.perf_counter()
        try:
            self.backend.healthy()
        except Exception as e:
            duration_ms = (time.perf_counter() - start) * 1000.0
            self._set_state(ModelState.ERROR, error=e)
            self._record_load(duration_ms, success=False, error=e)
            self.logger.error("Model %s failed its health check: %s", self.config.model_id, e)
            raise ModelLoadError(f"Backend health check failed: {e}") from e

        self._warmup()

        duration_ms = (time.perf_counter() - start) * 1000.0
        self._set_state(ModelState.READY)
        self._record_load(duration_ms, success=True)
        self.logger.info("Model %s ready in %.1f ms", self.config.model_id, duration_ms)

    def unload(self) -> None:
        """Close the backend and return to UNLOADED.

        Raises:
            ModelLifecycleError: If another load or unload is in progress
        """
        with self._lock:
            if self._state == ModelState.UNLOADED:
                return
            if self._state in _TRANSITIONING:
                raise ModelLifecycleError(
                    f"Cannot unload model while it is {self._state.value}"
                )
            self._state = ModelState.UNLOADING

        try:
            self.backend.close()
        except Exception as e:
            self._set_state(ModelState.ERROR, error=e)
            raise ModelLifecycleError(f"Failed to close backend: {e}") from e

        self._set_state(ModelState.UNLOADED)
        self.logger.info("Model %s unloaded", self.config.model_id)

    def _warmup(self) -> None:
        samples = self.config.warmup_samples
        if samples <= 0:
            return

        request = PredictRequest(
            model_name=self.config.model_id,
            input_data=self.featurizer.featurize(WARMUP_SMILES).to_json_bytes(),
            metadata={"request_id": "warmup"},
        )
        for i in range(samples):
            try:
                self.backend.predict(request)
            except Exception as e:
                # Warmup is best effort; the model still becomes READY
                self.logger.warning(
                    "Warmup prediction %d/%d for %s failed: %s",
                    i + 1,
                    samples,
                    self.config.model_id,
                    e,
                )

    def _set_state(self, state: ModelState, error: Exception | None = None) -> None:
        with self._lock:
            self._state = state
            self._last_error = error

    def _record_load(self, duration_ms: float, success: bool, error: Exception | None = None) -> None:
        self.metrics.record_inference(
            InferenceMetricParams(
                model_name=self.config.model_id,
                task_type="load",
                duration_ms=duration_ms,
                success=success,
                batch_size=0,
                error_type=type(error).__name__ if error is not None else None,
            )
        )

    def __repr__(self) -> str:
        return f"ModelLifecycleManager(model={self.config.model_id!r}, state={self.state.value})"
