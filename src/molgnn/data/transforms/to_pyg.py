"""PyG Data conversion utilities for molecular graphs.

This module provides functions to convert :class:`~molgnn.data.graph.MolecularGraph`
objects into PyTorch Geometric (PyG) Data and Batch objects for use with GNN models.
"""

from __future__ import annotations

from collections.abc import Sequence

import numpy as np
import torch
from torch_geometric.data import Batch, Data

from ...exceptions import FeaturizationError
from ..graph import MolecularGraph


def graph_to_pyg_data(graph: MolecularGraph) -> Data:
    """Convert a MolecularGraph to a PyTorch Geometric Data object.

    Args:
        graph: Featurized molecule

    Returns:
        PyG Data object with attributes:
            - x: Atom features tensor (num_atoms, 49)
            - edge_index: Bond connectivity (2, num_edges), bidirectional
            - edge_attr: Bond features tensor (num_edges, 16)
            - u: Global features tensor (1, 6)
            - num_nodes: Number of atoms
            - smiles: Source SMILES string (for traceability)

    Raises:
        FeaturizationError: If the graph has no atoms

    Example:
        >>> from molgnn.data.transforms import MoleculeFeaturizer
        >>> data = graph_to_pyg_data(MoleculeFeaturizer().featurize("CCO"))
        >>> data.x.shape
        torch.Size([3, 49])
        >>> data.edge_index.shape
        torch.Size([2, 4])
    """
    if graph.atom_count == 0:
        raise FeaturizationError("Cannot convert to PyG Data: graph has no atoms")

    # np.array copies, since the graph's buffers are read-only
    x = torch.from_numpy(np.array(graph.node_features, dtype=np.float32))
    edge_index = torch.from_numpy(np.array(graph.edge_index, dtype=np.int64).T.copy())
    edge_attr = torch.from_numpy(np.array(graph.edge_features, dtype=np.float32))
    u = torch.from_numpy(np.array(graph.global_features, dtype=np.float32)).unsqueeze(0)

    data = Data(
        x=x,
        edge_index=edge_index,
        edge_attr=edge_attr,
        num_nodes=graph.atom_count,
    )
    data.u = u
    data.smiles = graph.source_smiles
    return data


def graphs_to_pyg_batch(graphs: Sequence[MolecularGraph]) -> Batch:
    """Convert a list of MolecularGraphs to a PyG Batch.

    Args:
        graphs: Featurized molecules (must be non-empty)

    Returns:
        PyG Batch object with batched attributes:
            - x: Concatenated atom features (total_atoms, 49)
            - edge_index: Concatenated + shifted edge indices (2, total_edges)
            - edge_attr: Concatenated bond features (total_edges, 16)
            - u: Stacked global features (num_graphs, 6)
            - batch: Atom-to-graph assignment (total_atoms,)
            - smiles: List of source SMILES strings

    Raises:
        ValueError: If graphs is empty

    Example:
        >>> featurizer = MoleculeFeaturizer()
        >>> batch = graphs_to_pyg_batch([featurizer.featurize(s) for s in ["CCO", "c1ccccc1"]])
        >>> batch.num_graphs
        2
        >>> batch.batch
        tensor([0, 0, 0, 1, 1, 1, 1, 1, 1])
    """
    if not graphs:
        raise ValueError("Cannot create batch from empty graph list")

    return Batch.from_data_list([graph_to_pyg_data(graph) for graph in graphs])
