"""Model descriptors and registration with a model registry."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable

from .exceptions import ModelRegistrationError

logger = logging.getLogger(__name__)

MODEL_NAME: str = "MolPatent-GNN"
MODEL_TYPE: str = "gnn"
FRAMEWORK: str = "pytorch-geometric"
CAPABILITIES: tuple[str, ...] = ("embedding", "similarity")


@dataclass(frozen=True)
class ModelDescriptor:
    """How to reach a model and what it can do.

    Attributes:
        model_id: Model name used in predict requests
        model_version: Version reported with every embedding
        model_type: Model family, always ``"gnn"`` here
        framework: Framework the model is built with
        backend_type: ``"http"`` or ``"torch"``
        endpoint: Serving URL for the ``http`` backend
        capabilities: Tasks the model supports
        metadata: Free-form string labels
    """

    model_id: str
    model_version: str
    backend_type: str
    model_type: str = MODEL_TYPE
    framework: str = FRAMEWORK
    endpoint: str | None = None
    capabilities: tuple[str, ...] = CAPABILITIES
    metadata: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class ModelMetadata:
    """Registry record for one model version."""

    model_id: str
    name: str
    version: str
    artifact_path: str = ""
    framework: str = FRAMEWORK
    description: str = ""
    labels: dict[str, str] = field(default_factory=dict)


@runtime_checkable
class ModelRegistry(Protocol):
    def register(self, metadata: ModelMetadata) -> None: ...


class InMemoryModelRegistry:
    """Thread-safe in-process registry keyed by model id and version."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._models: dict[tuple[str, str], ModelMetadata] = {}

    def register(self, metadata: ModelMetadata) -> None:
        """Add a model version.

        Raises:
            ModelRegistrationError: If the id or version is empty, or the version
                is already registered
        """
        if not metadata.model_id or not metadata.version:
            raise ModelRegistrationError("model_id and version are required")
        key = (metadata.model_id, metadata.version)
        with self._lock:
            if key in self._models:
                raise ModelRegistrationError(
                    f"{metadata.model_id} version {metadata.version} is already registered"
                )
            self._models[key] = metadata
        logger.info("Registered %s version %s", metadata.model_id, metadata.version)

    def get(self, model_id: str, version: str) -> ModelMetadata | None:
        with self._lock:
            return self._models.get((model_id, version))

    def versions(self, model_id: str) -> list[str]:
        """Registered versions of ``model_id`` in registration order."""
        with self._lock:
            return [version for mid, version in self._models if mid == model_id]
