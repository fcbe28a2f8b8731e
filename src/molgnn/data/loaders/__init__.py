"""Molecular structure loaders."""

from .mol_block import load_mol_block, parse_mol_block
from .smiles import (
    DEFAULT_MAX_SMILES_LENGTH,
    canonicalize_smiles,
    parse_smiles,
    validate_smiles,
)

__all__ = [
    "parse_smiles",
    "validate_smiles",
    "canonicalize_smiles",
    "load_mol_block",
    "parse_mol_block",
    "DEFAULT_MAX_SMILES_LENGTH",
]
