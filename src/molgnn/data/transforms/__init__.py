"""Molecular feature transforms for GNN input."""

from .atom_features import encode_atom, get_atom_features
from .bond_features import encode_bond, get_bond_features, get_edge_index
from .constants import (
    ALLOWED_ATOMS,
    ATOM_FEATURE_DIM,
    BOND_FEATURE_DIM,
    BOND_STEREO_TYPES,
    BOND_TYPES,
    GLOBAL_FEATURE_DIM,
    HYBRIDIZATION_TYPES,
)
from .featurizer import MoleculeFeaturizer
from .fingerprints import FingerprintGenerator
from .global_features import get_global_features
from .to_pyg import graph_to_pyg_data, graphs_to_pyg_batch

__all__ = [
    # Main featurizer
    "MoleculeFeaturizer",
    "FingerprintGenerator",
    # Individual feature functions
    "encode_atom",
    "encode_bond",
    "get_atom_features",
    "get_bond_features",
    "get_edge_index",
    "get_global_features",
    # PyG conversion
    "graph_to_pyg_data",
    "graphs_to_pyg_batch",
    # Constants
    "ATOM_FEATURE_DIM",
    "BOND_FEATURE_DIM",
    "GLOBAL_FEATURE_DIM",
    "ALLOWED_ATOMS",
    "HYBRIDIZATION_TYPES",
    "BOND_TYPES",
    "BOND_STEREO_TYPES",
]
