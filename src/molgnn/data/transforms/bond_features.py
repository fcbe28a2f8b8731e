"""Bond feature extraction for molecular graphs.

This module provides functions to extract bond-level features and edge indices
from parsed bonds. Every bond becomes two directed edges.
"""

from collections.abc import Sequence
from typing import Any

import numpy as np

from ..molecule import Bond
from .constants import (
    BOND_DIRECTIONS,
    BOND_FEATURE_DIM,
    BOND_STEREO_TYPES,
    BOND_TYPES,
    DEFAULT_BOND_DIRECTION,
    DEFAULT_BOND_STEREO,
    NUM_BOND_DIRECTIONS,
    NUM_BOND_TYPES,
    NUM_STEREO_TYPES,
)


def get_edge_index(bonds: Sequence[Bond]) -> np.ndarray:
    """Get directed edge pairs (bidirectional).

    Creates an undirected graph by adding edges in both directions for each bond.
    Row ``2k`` is the forward edge of bond ``k`` and row ``2k + 1`` its reverse.

    Args:
        bonds: Parsed bonds

    Returns:
        Array of shape (num_bonds * 2, 2) with dtype int64

    Example:
        >>> from molgnn.data.loaders import parse_smiles
        >>> get_edge_index(parse_smiles("CC").bonds).tolist()
        [[0, 1], [1, 0]]
    """
    edge_list = []
    for bond in bonds:
        i = bond.source_index
        j = bond.target_index
        # Add both directions for undirected graph representation
        edge_list.append([i, j])
        edge_list.append([j, i])

    if not edge_list:
        return np.zeros((0, 2), dtype=np.int64)

    return np.array(edge_list, dtype=np.int64)


def get_bond_features(bonds: Sequence[Bond]) -> np.ndarray:
    """Extract bond features for every directed edge.

    Features are duplicated for bidirectional edges to match edge_index ordering.

    Args:
        bonds: Parsed bonds

    Returns:
        Array of shape (num_bonds * 2, BOND_FEATURE_DIM) with dtype float32
        Each bond contributes two identical rows (one for each direction).

    Feature dimensions (total: 16):
        - Bond type one-hot: 5 (single, double, triple, aromatic, other)
        - Is conjugated: 1
        - Is in ring: 1
        - Stereo one-hot: 5 (none, E, Z, any, other)
        - Direction one-hot: 4 (none, end-up-right, end-down-right, other)
    """
    features = []
    for bond in bonds:
        bond_feats = _get_single_bond_features(bond)
        # Duplicate features for bidirectional edges
        features.append(bond_feats)
        features.append(bond_feats)

    if not features:
        return np.zeros((0, BOND_FEATURE_DIM), dtype=np.float32)

    return np.array(features, dtype=np.float32)


def encode_bond(bond: Bond) -> np.ndarray:
    """Encode a single bond as a float32 vector of length BOND_FEATURE_DIM."""
    return np.asarray(_get_single_bond_features(bond), dtype=np.float32)


def _get_single_bond_features(bond: Bond) -> list[float]:
    bond_feats: list[float] = []

    # Bond type one-hot encoding
    bond_feats.extend(_one_hot_encode(bond.bond_order, BOND_TYPES, NUM_BOND_TYPES))

    # Is conjugated
    bond_feats.append(1.0 if bond.conjugated else 0.0)

    # Is in ring
    bond_feats.append(1.0 if bond.in_ring else 0.0)

    # Stereo one-hot encoding
    bond_feats.extend(_one_hot_encode(DEFAULT_BOND_STEREO, BOND_STEREO_TYPES, NUM_STEREO_TYPES))

    # Direction one-hot encoding
    bond_feats.extend(
        _one_hot_encode(DEFAULT_BOND_DIRECTION, BOND_DIRECTIONS, NUM_BOND_DIRECTIONS)
    )

    return bond_feats


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
