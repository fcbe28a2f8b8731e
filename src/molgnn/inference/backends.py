"""Model serving backends.

A backend turns a :class:`PredictRequest` carrying a JSON-encoded molecular graph
into a :class:`PredictResponse` whose ``"embedding"`` output holds little-endian
float32 bytes. Two implementations are provided: :class:`HTTPBackend` talks to a
remote serving endpoint with requests, :class:`TorchBackend` runs a local PyTorch
Geometric model in-process.
"""

from __future__ import annotations

import base64
import binascii
import logging
import threading
import time
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Protocol, runtime_checkable

import numpy as np
import requests
import torch

from ..config import GNNModelConfig
from ..data.graph import MolecularGraph
from ..data.transforms.to_pyg import graph_to_pyg_data
from ..exceptions import (
    FatalBackendError,
    FeaturizationError,
    InferenceTimeoutError,
    InvalidModelOutputError,
    ServingUnavailableError,
)

logger = logging.getLogger(__name__)

EMBEDDING_OUTPUT: str = "embedding"
INPUT_FORMAT_JSON: str = "json"
_UNAVAILABLE_STATUS_CODES = frozenset({502, 503, 504})


@dataclass(frozen=True)
class PredictRequest:
    model_name: str
    input_data: bytes
    input_format: str = INPUT_FORMAT_JSON
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class PredictResponse:
    model_name: str
    outputs: dict[str, bytes]
    model_version: str = ""
    inference_time_ms: float = 0.0


@runtime_checkable
class ModelBackend(Protocol):
    """Interface every serving backend implements."""

    def predict(self, request: PredictRequest) -> PredictResponse: ...

    def healthy(self) -> None:
        """Return normally when the backend can serve; raise otherwise."""
        ...

    def close(self) -> None: ...


class BackendType(str, Enum):
    HTTP = "http"
    TORCH = "torch"


class HTTPBackend:
    """Remote serving backend reached over HTTP.

    Requests are POSTed as JSON to ``{endpoint}/v1/models/{model}/predict`` with the
    input bytes base64-encoded; output tensors come back base64-encoded as well.

    Args:
        endpoint: Base URL of the serving process
        timeout: Per-request timeout in seconds
        session: Optional pre-configured ``requests.Session``, shared by every
            calling thread. When omitted each thread gets its own session, since
            ``requests.Session`` is not thread-safe.
        headers: Extra headers sent with every request
    """

    def __init__(
        self,
        endpoint: str,
        timeout: float = 5.0,
        session: requests.Session | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if not endpoint:
            raise ValueError("endpoint must not be empty")
        self.endpoint = endpoint.rstrip("/")
        self.timeout = timeout
        self._shared_session = session
        self._thread_sessions: dict[int, requests.Session] = {}
        self._sessions_lock = threading.Lock()
        self.headers = {"Content-Type": "application/json", **(headers or {})}

    def predict(self, request: PredictRequest) -> PredictResponse:
        url = f"{self.endpoint}/v1/models/{request.model_name}/predict"
        body = {
            "model_name": request.model_name,
            "input_data": base64.b64encode(request.input_data).decode("ascii"),
            "input_format": request.input_format,
            "metadata": request.metadata,
        }

        response = self._send("post", url, json=body)
        try:
            payload = response.json()
            outputs = {
                name: base64.b64decode(value, validate=True)
                for name, value in payload.get("outputs", {}).items()
            }
        except (ValueError, AttributeError, TypeError, binascii.Error) as e:
            raise InvalidModelOutputError(f"Malformed response from {url}: {e}") from e

        return PredictResponse(
            model_name=payload.get("model_name", request.model_name),
            outputs=outputs,
            model_version=str(payload.get("model_version", "")),
            inference_time_ms=float(payload.get("inference_time_ms", 0.0)),
        )

    def healthy(self) -> None:
        self._send("get", f"{self.endpoint}/v1/health")

    @property
    def session(self) -> requests.Session:
        """The session used by the calling thread."""
        if self._shared_session is not None:
            return self._shared_session
        ident = threading.get_ident()
        with self._sessions_lock:
            session = self._thread_sessions.get(ident)
            if session is None:
                session = requests.Session()
                self._thread_sessions[ident] = session
        return session

    def close(self) -> None:
        if self._shared_session is not None:
            self._shared_session.close()
        with self._sessions_lock:
            sessions = list(self._thread_sessions.values())
            self._thread_sessions.clear()
        for session in sessions:
            session.close()

    def _send(self, method: str, url: str, **kwargs: Any) -> requests.Response:
        try:
            response = self.session.request(
                method, url, headers=self.headers, timeout=self.timeout, **kwargs
            )
        except requests.Timeout as e:
            raise InferenceTimeoutError(f"Request to {url} timed out after {self.timeout}s") from e
        except requests.ConnectionError as e:
            raise ServingUnavailableError(f"Cannot reach {url}: {e}") from e
        except requests.RequestException as e:
            raise FatalBackendError(f"Request to {url} failed: {e}") from e

        if response.status_code in _UNAVAILABLE_STATUS_CODES:
            raise ServingUnavailableError(
                f"{url} returned {response.status_code}: {response.text[:200]}"
            )
        if not 200 <= response.status_code < 300:
            raise FatalBackendError(f"{url} returned {response.status_code}: {response.text[:200]}")
        return response

    def __repr__(self) -> str:
        return f"HTTPBackend(endpoint={self.endpoint!r}, timeout={self.timeout})"


class TorchBackend:
    """In-process backend running a PyTorch Geometric model.

    The model receives a single-graph ``torch_geometric.data.Data`` object and must
    return a tensor with ``embedding_dim`` elements.

    Args:
        model: The embedding network
        model_name: Name reported in responses
        model_version: Version reported in responses
        device: Torch device the model runs on
    """

    def __init__(
        self,
        model: torch.nn.Module,
        model_name: str = "molgnn-embedder",
        model_version: str = "",
        device: str = "cpu",
    ) -> None:
        self.device = torch.device(device)
        self.model = model.to(self.device)
        self.model.eval()
        self.model_name = model_name
        self.model_version = model_version
        self._closed = False

    @classmethod
    def from_checkpoint(cls, path: str, **kwargs: Any) -> TorchBackend:
        """Load a pickled ``nn.Module`` saved with ``torch.save(model, path)``."""
        device = kwargs.get("device", "cpu")
        model = torch.load(path, map_location=device, weights_only=False)
        if not isinstance(model, torch.nn.Module):
            raise ValueError(f"Checkpoint {path} does not contain an nn.Module")
        logger.info("Loaded torch model from %s", path)
        return cls(model, **kwargs)

    def predict(self, request: PredictRequest) -> PredictResponse:
        if self._closed:
            raise ServingUnavailableError("Torch backend has been closed")
        if request.input_format != INPUT_FORMAT_JSON:
            raise FatalBackendError(f"Unsupported input format {request.input_format!r}")
        try:
            graph = MolecularGraph.from_json_bytes(request.input_data)
        except FeaturizationError as e:
            raise FatalBackendError(f"Cannot decode graph payload: {e}") from e

        start = time.perf_counter()
        try:
            data = graph_to_pyg_data(graph).to(self.device)
            with torch.no_grad():
                output = self.model(data)
            embedding = output.detach().cpu().numpy().astype("<f4").ravel()
        except Exception as e:
            raise FatalBackendError(f"Model forward pass failed: {type(e).__name__}: {e}") from e
        inference_ms = (time.perf_counter() - start) * 1000.0

        return PredictResponse(
            model_name=self.model_name,
            outputs={EMBEDDING_OUTPUT: embedding.tobytes()},
            model_version=self.model_version,
            inference_time_ms=inference_ms,
        )

    def healthy(self) -> None:
        if self._closed:
            raise ServingUnavailableError("Torch backend has been closed")

    def close(self) -> None:
        self._closed = True

    def __repr__(self) -> str:
        return f"TorchBackend(model={type(self.model).__name__}, device={self.device})"


def decode_embedding(outputs: dict[str, bytes], expected_dim: int) -> np.ndarray:
    """Decode the ``"embedding"`` output into a float32 vector.

    Raises:
        InvalidModelOutputError: If the output is missing, its byte length is not
            a multiple of 4, or it does not hold exactly ``expected_dim`` values
    """
    raw = outputs.get(EMBEDDING_OUTPUT)
    if raw is None:
        raise InvalidModelOutputError(f"Model response has no {EMBEDDING_OUTPUT!r} output")
    if len(raw) % 4:
        raise InvalidModelOutputError(
            f"Embedding byte length {len(raw)} is not a multiple of 4"
        )
    count = len(raw) // 4
    if count != expected_dim:
        raise InvalidModelOutputError(
            f"Embedding has {count} values; expected {expected_dim}"
        )
    return np.frombuffer(raw, dtype="<f4").astype(np.float32)


def create_backend(
    config: GNNModelConfig,
    model: torch.nn.Module | None = None,
    session: requests.Session | None = None,
) -> ModelBackend:
    """Build the backend selected by ``config.backend_type``.

    Args:
        config: Model configuration
        model: Module for the torch backend; loaded from ``config.model_path``
            when omitted
        session: Optional requests session for the http backend
    """
    backend_type = BackendType(config.backend_type)
    if backend_type == BackendType.HTTP:
        return HTTPBackend(
            endpoint=config.endpoint or "",
            timeout=config.timeout_seconds,
            session=session,
        )

    kwargs = {
        "model_name": config.model_id,
        "model_version": config.model_version,
        "device": config.device,
    }
    if model is not None:
        return TorchBackend(model, **kwargs)
    if not config.model_path:
        raise ValueError("model_path is required for the torch backend when no model is given")
    return TorchBackend.from_checkpoint(config.model_path, **kwargs)
