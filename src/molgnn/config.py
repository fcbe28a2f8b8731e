"""Structured configuration for the embedding pipeline.

The dataclasses below are the schema; YAML files and Hydra-composed configs are
merged into them with OmegaConf, then validated once. Configuration objects are
frozen and shared read-only by every component.

Example:
    >>> config = load_config("configs/gnn.yaml", overrides=["max_batch_size=32"])
    >>> config.max_batch_size
    32
"""

import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Union

from omegaconf import DictConfig, OmegaConf

from .data.transforms.constants import ATOM_FEATURE_DIM, BOND_FEATURE_DIM
from .registry import CAPABILITIES, MODEL_NAME, ModelDescriptor, ModelMetadata, ModelRegistry

BACKEND_TYPES = ("http", "torch")
FRAGMENT_POLICIES = ("all", "largest")
READOUT_TYPES = ("mean", "sum", "max", "attention")
MAX_BATCH_SIZE_LIMIT = 256


def _default_fusion_weights() -> Dict[str, float]:
    return {"morgan": 0.30, "rdkit": 0.20, "atompair": 0.15, "gnn": 0.35}


def _default_relation_types() -> List[str]:
    return ["CITES", "SIMILAR_TO", "CONTAINS_MOLECULE"]


@dataclass(frozen=True)
class MolecularGraphConfig:
    """Limits, feature widths and message-passing layout of the molecular graph."""

    max_atoms: int = 200
    max_smiles_length: int = 5000
    node_feature_dim: int = ATOM_FEATURE_DIM
    edge_feature_dim: int = BOND_FEATURE_DIM
    fragment_policy: str = "all"
    message_passing_steps: int = 3
    readout_type: str = "mean"

    def validate(self) -> None:
        if self.max_atoms <= 0:
            raise ValueError(f"max_atoms must be positive, got {self.max_atoms}")
        if self.max_smiles_length <= 0:
            raise ValueError(f"max_smiles_length must be positive, got {self.max_smiles_length}")
        if self.node_feature_dim != ATOM_FEATURE_DIM:
            raise ValueError(
                f"node_feature_dim must be {ATOM_FEATURE_DIM}, got {self.node_feature_dim}"
            )
        if self.edge_feature_dim != BOND_FEATURE_DIM:
            raise ValueError(
                f"edge_feature_dim must be {BOND_FEATURE_DIM}, got {self.edge_feature_dim}"
            )
        if self.fragment_policy not in FRAGMENT_POLICIES:
            raise ValueError(
                f"fragment_policy must be one of {FRAGMENT_POLICIES}, got {self.fragment_policy!r}"
            )
        if self.message_passing_steps < 1:
            raise ValueError(
                f"message_passing_steps must be >= 1, got {self.message_passing_steps}"
            )
        if self.readout_type not in READOUT_TYPES:
            raise ValueError(
                f"readout_type must be one of {READOUT_TYPES}, got {self.readout_type!r}"
            )


@dataclass(frozen=True)
class PatentGraphConfig:
    """Relation layout of the patent graph the molecule embeddings are linked into."""

    relation_types: List[str] = field(default_factory=_default_relation_types)
    max_hops: int = 2
    attention_heads: int = 4

    def validate(self) -> None:
        if not self.relation_types:
            raise ValueError("relation_types must not be empty")
        if any(not relation for relation in self.relation_types):
            raise ValueError(f"relation_types must not contain empty names, got {self.relation_types}")
        if len(set(self.relation_types)) != len(self.relation_types):
            raise ValueError(f"relation_types must be unique, got {self.relation_types}")
        if self.max_hops < 1:
            raise ValueError(f"max_hops must be >= 1, got {self.max_hops}")
        if self.attention_heads < 1:
            raise ValueError(f"attention_heads must be >= 1, got {self.attention_heads}")


@dataclass(frozen=True)
class SimilarityConfig:
    """Similarity level thresholds and fusion weights.

    Thresholds must satisfy ``1 >= high > medium > low >= 0``.
    """

    high_threshold: float = 0.85
    medium_threshold: float = 0.70
    low_threshold: float = 0.55
    fusion_weights: Dict[str, float] = field(default_factory=_default_fusion_weights)
    default_top_k: int = 10

    def validate(self) -> None:
        thresholds = (self.high_threshold, self.medium_threshold, self.low_threshold)
        if not all(math.isfinite(t) for t in thresholds):
            raise ValueError(f"Similarity thresholds must be finite, got {thresholds}")
        if not 1.0 >= self.high_threshold > self.medium_threshold > self.low_threshold >= 0.0:
            raise ValueError(
                "Similarity thresholds must satisfy 1 >= high > medium > low >= 0, "
                f"got high={self.high_threshold}, medium={self.medium_threshold}, "
                f"low={self.low_threshold}"
            )
        for name, weight in self.fusion_weights.items():
            if not math.isfinite(weight) or weight < 0:
                raise ValueError(f"Fusion weight for {name!r} must be finite and >= 0, got {weight}")
        if self.default_top_k <= 0:
            raise ValueError(f"default_top_k must be positive, got {self.default_top_k}")


@dataclass(frozen=True)
class RetryConfig:
    """Backoff settings for transient backend failures."""

    max_retries: int = 2
    base_delay_ms: float = 100.0
    max_delay_ms: float = 5000.0

    def validate(self) -> None:
        if self.max_retries < 0:
            raise ValueError(f"max_retries must be >= 0, got {self.max_retries}")
        if self.base_delay_ms < 0:
            raise ValueError(f"base_delay_ms must be >= 0, got {self.base_delay_ms}")
        if self.max_delay_ms < self.base_delay_ms:
            raise ValueError(
                f"max_delay_ms ({self.max_delay_ms}) must be >= base_delay_ms ({self.base_delay_ms})"
            )


@dataclass(frozen=True)
class GNNModelConfig:
    """Top-level configuration of the embedding model and its serving backend.

    Attributes:
        model_id: Model name sent to the serving backend
        model_version: Version string reported with every embedding
        model_path: Checkpoint path for the ``torch`` backend
        backend_type: ``"http"`` or ``"torch"``
        endpoint: Base URL of the serving backend (``http`` only)
        device: Torch device for the ``torch`` backend
        embedding_dim: Expected width of the model output
        max_batch_size: Items per concurrent chunk in batch embedding (1..256)
        timeout_ms: Per-call backend timeout
        warmup_samples: Warmup predictions run after loading
        graph: Graph construction limits and message-passing layout
        patent_graph: Patent graph relations
        similarity: Similarity thresholds and fusion weights
        retry: Retry and backoff settings
    """

    model_id: str = "molgnn-embedder"
    model_version: str = "1.0.0"
    model_path: Optional[str] = None
    backend_type: str = "http"
    endpoint: Optional[str] = "http://localhost:8501"
    device: str = "cpu"
    embedding_dim: int = 256
    max_batch_size: int = 64
    timeout_ms: int = 5000
    warmup_samples: int = 1
    graph: MolecularGraphConfig = field(default_factory=MolecularGraphConfig)
    patent_graph: PatentGraphConfig = field(default_factory=PatentGraphConfig)
    similarity: SimilarityConfig = field(default_factory=SimilarityConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)

    def validate(self) -> "GNNModelConfig":
        """Check every section; returns ``self`` so calls can be chained.

        Raises:
            ValueError: On the first invalid setting
        """
        if not self.model_id:
            raise ValueError("model_id must not be empty")
        if self.backend_type not in BACKEND_TYPES:
            raise ValueError(
                f"backend_type must be one of {BACKEND_TYPES}, got {self.backend_type!r}"
            )
        if self.backend_type == "http" and not self.endpoint:
            raise ValueError("endpoint is required for the http backend")
        if self.embedding_dim <= 0:
            raise ValueError(f"embedding_dim must be positive, got {self.embedding_dim}")
        if not 1 <= self.max_batch_size <= MAX_BATCH_SIZE_LIMIT:
            raise ValueError(
                f"max_batch_size must be in [1, {MAX_BATCH_SIZE_LIMIT}], got {self.max_batch_size}"
            )
        if self.timeout_ms <= 0:
            raise ValueError(f"timeout_ms must be positive, got {self.timeout_ms}")
        if self.warmup_samples < 0:
            raise ValueError(f"warmup_samples must be >= 0, got {self.warmup_samples}")
        self.graph.validate()
        self.patent_graph.validate()
        self.similarity.validate()
        self.retry.validate()
        return self

    @property
    def timeout_seconds(self) -> float:
        return self.timeout_ms / 1000.0

    def model_descriptor(self) -> ModelDescriptor:
        return ModelDescriptor(
            model_id=self.model_id,
            model_version=self.model_version,
            backend_type=self.backend_type,
            endpoint=self.endpoint if self.backend_type == "http" else None,
            metadata=self._labels(),
        )

    def model_metadata(self) -> ModelMetadata:
        return ModelMetadata(
            model_id=self.model_id,
            name=MODEL_NAME,
            version=self.model_version,
            artifact_path=self.model_path or "",
            labels=self._labels(),
        )

    def register_to_registry(self, registry: ModelRegistry) -> ModelMetadata:
        """Register this model version and return the stored metadata.

        Raises:
            ModelRegistrationError: If the registry refuses the version
        """
        metadata = self.model_metadata()
        registry.register(metadata)
        return metadata

    def _labels(self) -> Dict[str, str]:
        return {
            "architecture": "GNN",
            "tasks": ",".join(CAPABILITIES),
            "embedding_dim": str(self.embedding_dim),
            "node_feature_dim": str(self.graph.node_feature_dim),
            "edge_feature_dim": str(self.graph.edge_feature_dim),
            "message_passing_steps": str(self.graph.message_passing_steps),
            "readout_type": self.graph.readout_type,
        }

    @classmethod
    def from_omegaconf(cls, cfg: DictConfig) -> "GNNModelConfig":
        """Merge a YAML- or Hydra-provided config into the schema and validate it.

        Keys not present in the schema are rejected by OmegaConf.
        """
        schema = OmegaConf.structured(cls)
        merged = OmegaConf.merge(schema, cfg)
        config = OmegaConf.to_object(merged)
        return config.validate()


def load_config(
    path: Optional[Union[str, Path]] = None,
    overrides: Optional[List[str]] = None,
) -> GNNModelConfig:
    """Load a validated GNNModelConfig.

    Args:
        path: Optional YAML file merged over the defaults
        overrides: Optional dotlist overrides such as ``["retry.max_retries=3"]``

    Raises:
        ValueError: If the resulting configuration is invalid
    """
    cfg = OmegaConf.create()
    if path is not None:
        cfg = OmegaConf.merge(cfg, OmegaConf.load(path))
    if overrides:
        cfg = OmegaConf.merge(cfg, OmegaConf.from_dotlist(list(overrides)))
    return GNNModelConfig.from_omegaconf(cfg)
