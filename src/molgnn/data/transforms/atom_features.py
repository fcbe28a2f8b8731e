"""Atom feature extraction for molecular graphs.

This module turns parsed :class:`~molgnn.data.molecule.Atom` objects into
fixed-width float32 vectors for use in Graph Neural Networks.
"""

from collections.abc import Sequence
from typing import Any

import numpy as np

from ..elements import ELECTRONEGATIVITY, atomic_mass, vdw_radius
from ..molecule import Atom
from .constants import (
    ALLOWED_ATOMS,
    ATOM_FEATURE_DIM,
    CHIRALITY_TYPES,
    DEFAULT_CHIRALITY,
    DEFAULT_HYBRIDIZATION,
    DEFAULT_RING_SIZE,
    ELECTRONEGATIVITY_NORM,
    FORMAL_CHARGE_OFFSET,
    HYBRIDIZATION_TYPES,
    MASS_NORM,
    MAX_DEGREE,
    MAX_NUM_HS,
    NUM_ATOM_TYPES,
    NUM_CHIRALITY_TYPES,
    NUM_DEGREE_BINS,
    NUM_FORMAL_CHARGE_BINS,
    NUM_HS_BINS,
    NUM_HYBRIDIZATION_TYPES,
    NUM_RING_SIZES,
    RADICAL_ELECTRONS_NORM,
    RING_SIZES,
    VDW_RADIUS_NORM,
)


def get_atom_features(atoms: Sequence[Atom]) -> np.ndarray:
    """Extract atom features for every atom of a molecule.

    Args:
        atoms: Parsed atoms in graph order

    Returns:
        Array of shape (num_atoms, ATOM_FEATURE_DIM) with dtype float32

    Feature dimensions (total: 49):
        - Atomic number one-hot: 11 (C, N, O, F, P, S, Cl, Br, I, B, other)
        - Degree one-hot: 5 (0, 1, 2, 3, 4+)
        - Formal charge one-hot: 5 (-2, -1, 0, +1, +2; clamped)
        - Num Hs one-hot: 4 (0, 1, 2, 3+)
        - Hybridization one-hot: 7 (S, SP, SP2, SP3, SP3D, SP3D2, other)
        - Chirality one-hot: 4 (none, CW, CCW, other)
        - Ring size one-hot: 7 (not in ring, 3, 4, 5, 6, 7, other)
        - Is aromatic: 1
        - Is in ring: 1
        - Mass, electronegativity, vdW radius, radical electrons: 4

    Example:
        >>> from molgnn.data.loaders import parse_smiles
        >>> features = get_atom_features(parse_smiles("C(F)(F)F").atoms)
        >>> features.shape
        (4, 49)
    """
    if not atoms:
        # Handle empty molecule edge case
        return np.zeros((0, ATOM_FEATURE_DIM), dtype=np.float32)

    return np.array([_get_single_atom_features(atom) for atom in atoms], dtype=np.float32)


def encode_atom(atom: Atom) -> np.ndarray:
    """Encode a single atom as a float32 vector of length ATOM_FEATURE_DIM."""
    return np.asarray(_get_single_atom_features(atom), dtype=np.float32)


def _get_single_atom_features(atom: Atom) -> list[float]:
    """Extract features for a single atom.

    Args:
        atom: Parsed Atom

    Returns:
        List of feature values
    """
    atom_feats: list[float] = []

    # Atomic number one-hot encoding
    atom_feats.extend(_one_hot_encode(atom.atomic_number, ALLOWED_ATOMS, NUM_ATOM_TYPES))

    # Degree (number of bonds), clamped to 4+
    atom_feats.extend(_one_hot_index(min(atom.degree, MAX_DEGREE), NUM_DEGREE_BINS))

    # Formal charge, offset so that -2 maps to index 0
    charge_idx = min(max(atom.charge + FORMAL_CHARGE_OFFSET, 0), NUM_FORMAL_CHARGE_BINS - 1)
    atom_feats.extend(_one_hot_index(charge_idx, NUM_FORMAL_CHARGE_BINS))

    # Number of Hs, clamped to 3+
    atom_feats.extend(_one_hot_index(min(atom.implicit_hydrogens, MAX_NUM_HS), NUM_HS_BINS))

    # Hybridization one-hot encoding
    atom_feats.extend(
        _one_hot_encode(DEFAULT_HYBRIDIZATION, HYBRIDIZATION_TYPES, NUM_HYBRIDIZATION_TYPES)
    )

    # Chirality one-hot encoding
    atom_feats.extend(_one_hot_encode(DEFAULT_CHIRALITY, CHIRALITY_TYPES, NUM_CHIRALITY_TYPES))

    # Ring size one-hot encoding
    atom_feats.extend(_one_hot_encode(DEFAULT_RING_SIZE, RING_SIZES, NUM_RING_SIZES))

    # Is aromatic
    atom_feats.append(1.0 if atom.is_aromatic else 0.0)

    # Is in ring (aromatic atoms are the only ones known to be in a ring)
    atom_feats.append(1.0 if atom.is_aromatic else 0.0)

    # Normalized scalars
    atom_feats.append(atomic_mass(atom.atomic_number) / MASS_NORM)
    atom_feats.append(ELECTRONEGATIVITY.get(atom.atomic_number, 0.0) / ELECTRONEGATIVITY_NORM)
    atom_feats.append(vdw_radius(atom.atomic_number) / VDW_RADIUS_NORM)
    radical_electrons = 0  # not tracked by the parser
    atom_feats.append(radical_electrons / RADICAL_ELECTRONS_NORM)

    return atom_feats


def _one_hot_encode(value: Any, allowed_values: list[Any], size: int) -> list[float]:
    """Create one-hot encoding for a value.

    Args:
        value: Value to encode
        allowed_values: List of allowed values (last position reserved for "other")
        size: Total size of one-hot vector (len(allowed_values) + 1 for "other")

    Returns:
        One-hot encoded list of floats
    """
    encoding = [0.0] * size
    if value in allowed_values:
        idx = allowed_values.index(value)
        encoding[idx] = 1.0
    else:
        # Unknown/other category (last position)
        encoding[-1] = 1.0
    return encoding


def _one_hot_index(idx: int, size: int) -> list[float]:
    encoding = [0.0] * size
    encoding[idx] = 1.0
    return encoding
