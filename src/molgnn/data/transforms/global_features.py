"""Molecule-level summary features."""

import math
from collections.abc import Sequence

import numpy as np

from ..elements import atomic_mass
from ..molecule import Atom, Bond
from .constants import (
    ATOM_COUNT_NORM,
    BOND_COUNT_NORM,
    LOG_SIZE_NORM,
    MOLECULAR_WEIGHT_NORM,
)


def estimate_molecular_weight(atoms: Sequence[Atom]) -> float:
    """Sum of heavy-atom masses; unknown elements count as carbon."""
    return sum(atomic_mass(atom.atomic_number) for atom in atoms)


def get_global_features(atoms: Sequence[Atom], bonds: Sequence[Bond]) -> np.ndarray:
    """Compute the six molecule-level features.

    In order: atom count / 200, bond count / 200, estimated molecular weight / 1000,
    aromatic-atom fraction, bond density ``B / (N (N - 1) / 2)`` (0 for a single
    atom) and ``log1p(N) / 6``.

    Returns:
        Array of shape (6,) with dtype float32
    """
    num_atoms = len(atoms)
    num_bonds = len(bonds)

    aromatic_fraction = (
        sum(1 for atom in atoms if atom.is_aromatic) / num_atoms if num_atoms else 0.0
    )
    if num_atoms > 1:
        bond_density = num_bonds / (num_atoms * (num_atoms - 1) / 2)
    else:
        bond_density = 0.0

    return np.array(
        [
            num_atoms / ATOM_COUNT_NORM,
            num_bonds / BOND_COUNT_NORM,
            estimate_molecular_weight(atoms) / MOLECULAR_WEIGHT_NORM,
            aromatic_fraction,
            bond_density,
            math.log1p(num_atoms) / LOG_SIZE_NORM,
        ],
        dtype=np.float32,
    )
