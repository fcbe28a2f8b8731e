"""Molecule parsing, featurization and graph construction."""

from .graph import MolecularGraph
from .loaders import canonicalize_smiles, parse_mol_block, parse_smiles, validate_smiles
from .molecule import Atom, Bond, BondOrder, InputFormat, MolecularInput, ParsedMolecule
from .transforms import (
    ATOM_FEATURE_DIM,
    BOND_FEATURE_DIM,
    GLOBAL_FEATURE_DIM,
    FingerprintGenerator,
    MoleculeFeaturizer,
    get_atom_features,
    get_bond_features,
    get_edge_index,
    get_global_features,
    graph_to_pyg_data,
    graphs_to_pyg_batch,
)

__all__ = [
    # Value types
    "Atom",
    "Bond",
    "BondOrder",
    "ParsedMolecule",
    "MolecularInput",
    "InputFormat",
    "MolecularGraph",
    # Loaders
    "parse_smiles",
    "validate_smiles",
    "canonicalize_smiles",
    "parse_mol_block",
    # Featurizers
    "MoleculeFeaturizer",
    "FingerprintGenerator",
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
]
