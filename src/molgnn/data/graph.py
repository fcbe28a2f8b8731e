"""The molecular graph value type passed between featurizer and predictor."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import numpy as np

from ..exceptions import FeaturizationError


@dataclass(frozen=True)
class MolecularGraph:
    """Encoded molecule, ready for a GNN.

    Attributes:
        node_features: Atom features of shape (atom_count, node_feature_dim), float32
        edge_index: Directed edges of shape (2 * bond_count, 2), int64
        edge_features: Edge features of shape (2 * bond_count, edge_feature_dim), float32
        global_features: Molecule-level features of shape (6,), float32
        atom_count: Number of atoms (nodes)
        bond_count: Number of undirected bonds
        source_smiles: SMILES the graph was built from

    All arrays are read-only once the graph is constructed.
    """

    node_features: np.ndarray
    edge_index: np.ndarray
    edge_features: np.ndarray
    global_features: np.ndarray
    atom_count: int
    bond_count: int
    source_smiles: str

    def __post_init__(self) -> None:
        if self.node_features.shape[0] != self.atom_count:
            raise FeaturizationError(
                f"node_features has {self.node_features.shape[0]} rows; expected {self.atom_count}"
            )
        num_edges = 2 * self.bond_count
        if self.edge_index.shape != (num_edges, 2):
            raise FeaturizationError(
                f"edge_index has shape {self.edge_index.shape}; expected ({num_edges}, 2)"
            )
        if self.edge_features.shape[0] != num_edges:
            raise FeaturizationError(
                f"edge_features has {self.edge_features.shape[0]} rows; expected {num_edges}"
            )
        for array in (self.node_features, self.edge_index, self.edge_features, self.global_features):
            array.setflags(write=False)

    @property
    def num_edges(self) -> int:
        return int(self.edge_index.shape[0])

    @property
    def node_feature_dim(self) -> int:
        return int(self.node_features.shape[1])

    @property
    def edge_feature_dim(self) -> int:
        return int(self.edge_features.shape[1])

    def adjacency_matrix(self) -> np.ndarray:
        """Dense (atom_count, atom_count) float32 matrix with 1.0 for every directed edge."""
        adjacency = np.zeros((self.atom_count, self.atom_count), dtype=np.float32)
        if self.num_edges:
            adjacency[self.edge_index[:, 0], self.edge_index[:, 1]] = 1.0
        return adjacency

    def to_dict(self) -> dict[str, Any]:
        """Plain-Python representation (lists and scalars only)."""
        return {
            "node_features": self.node_features.tolist(),
            "edge_index": self.edge_index.tolist(),
            "edge_features": self.edge_features.tolist(),
            "global_features": self.global_features.tolist(),
            "node_feature_dim": self.node_feature_dim,
            "edge_feature_dim": self.edge_feature_dim,
            "num_atoms": self.atom_count,
            "num_bonds": self.bond_count,
            "smiles": self.source_smiles,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> MolecularGraph:
        """Rebuild a graph from :meth:`to_dict` output.

        Raises:
            FeaturizationError: If keys are missing or shapes are inconsistent
        """
        try:
            node_features = np.asarray(data["node_features"], dtype=np.float32)
            edge_features = np.asarray(data["edge_features"], dtype=np.float32)
            edge_index = np.asarray(data["edge_index"], dtype=np.int64)
            atom_count = int(data["num_atoms"])
            bond_count = int(data["num_bonds"])
            node_feature_dim = int(data["node_feature_dim"])
            edge_feature_dim = int(data["edge_feature_dim"])
            global_features = np.asarray(data["global_features"], dtype=np.float32)
            smiles = str(data.get("smiles", ""))
        except (KeyError, TypeError, ValueError) as e:
            raise FeaturizationError(f"Malformed graph payload: {e}") from e

        # Empty lists lose their trailing dimension
        try:
            if node_features.size == 0:
                node_features = node_features.reshape(0, node_feature_dim)
            if edge_index.size == 0:
                edge_index = edge_index.reshape(0, 2)
            if edge_features.size == 0:
                edge_features = edge_features.reshape(0, edge_feature_dim)
        except ValueError as e:
            raise FeaturizationError(f"Malformed graph payload: {e}") from e
        if node_features.ndim != 2 or node_features.shape[1] != node_feature_dim:
            raise FeaturizationError(
                f"node_features has shape {node_features.shape}; expected width {node_feature_dim}"
            )
        if edge_features.ndim != 2 or edge_features.shape[1] != edge_feature_dim:
            raise FeaturizationError(
                f"edge_features has shape {edge_features.shape}; expected width {edge_feature_dim}"
            )

        return cls(
            node_features=node_features,
            edge_index=edge_index,
            edge_features=edge_features,
            global_features=global_features,
            atom_count=atom_count,
            bond_count=bond_count,
            source_smiles=smiles,
        )

    def to_json_bytes(self) -> bytes:
        return json.dumps(self.to_dict(), separators=(",", ":")).encode("utf-8")

    @classmethod
    def from_json_bytes(cls, payload: bytes) -> MolecularGraph:
        try:
            data = json.loads(payload.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as e:
            raise FeaturizationError(f"Graph payload is not valid JSON: {e}") from e
        return cls.from_dict(data)
