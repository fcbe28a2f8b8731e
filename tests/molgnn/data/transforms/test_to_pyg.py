"""Tests for PyG Data conversion utilities."""

import pytest
import torch
from torch_geometric.data import Batch, Data

from molgnn.data.graph import MolecularGraph
from molgnn.data.transforms.featurizer import MoleculeFeaturizer
from molgnn.data.transforms.to_pyg import graph_to_pyg_data, graphs_to_pyg_batch

# ============================================================================
# Fixtures
# ============================================================================


@pytest.fixture
def featurizer() -> MoleculeFeaturizer:
    return MoleculeFeaturizer()


@pytest.fixture
def ethanol_graph(featurizer: MoleculeFeaturizer) -> MolecularGraph:
    """Create a simple ethanol graph for testing."""
    return featurizer.featurize("CCO")


@pytest.fixture
def benzene_graph(featurizer: MoleculeFeaturizer) -> MolecularGraph:
    """Create a benzene graph for testing aromatic features."""
    return featurizer.featurize("c1ccccc1")


# ============================================================================
# Test: graph_to_pyg_data
# ============================================================================


class TestGraphToPygData:
    """Tests for graph_to_pyg_data function."""

    def test_returns_data_object(self, ethanol_graph: MolecularGraph) -> None:
        """Test that conversion returns a PyG Data object."""
        assert isinstance(graph_to_pyg_data(ethanol_graph), Data)

    def test_atom_features(self, ethanol_graph: MolecularGraph) -> None:
        """Test data.x holds the node features."""
        data = graph_to_pyg_data(ethanol_graph)
        assert data.x.shape == (3, 49)
        assert data.x.dtype == torch.float32

    def test_edge_index_transposed(self, ethanol_graph: MolecularGraph) -> None:
        """Test edge_index is in PyG's (2, num_edges) layout."""
        data = graph_to_pyg_data(ethanol_graph)
        assert data.edge_index.shape == (2, 4)
        assert data.edge_index.dtype == torch.long
        assert data.edge_index.tolist() == [[0, 1, 1, 2], [1, 0, 2, 1]]

    def test_edge_attr(self, benzene_graph: MolecularGraph) -> None:
        """Test edge features line up with edges."""
        data = graph_to_pyg_data(benzene_graph)
        assert data.edge_attr.shape == (12, 16)
        assert data.edge_attr.dtype == torch.float32

    def test_global_features(self, ethanol_graph: MolecularGraph) -> None:
        """Test the global vector is stored as a (1, 6) tensor."""
        data = graph_to_pyg_data(ethanol_graph)
        assert data.u.shape == (1, 6)

    def test_metadata(self, ethanol_graph: MolecularGraph) -> None:
        """Test num_nodes and smiles are attached."""
        data = graph_to_pyg_data(ethanol_graph)
        assert data.num_nodes == 3
        assert data.smiles == "CCO"

    def test_single_atom(self, featurizer: MoleculeFeaturizer) -> None:
        """Test a molecule without bonds has an empty (2, 0) edge_index."""
        data = graph_to_pyg_data(featurizer.featurize("C"))
        assert data.edge_index.shape == (2, 0)
        assert data.edge_attr.shape == (0, 16)

    def test_single_atom_from_payload(self, featurizer: MoleculeFeaturizer) -> None:
        """Test a decoded single-atom payload keeps a (0, 16) edge_attr."""
        payload = featurizer.featurize("C").to_json_bytes()
        data = graph_to_pyg_data(MolecularGraph.from_json_bytes(payload))
        assert data.edge_attr.shape == (0, 16)

    def test_tensors_are_writable_copies(self, ethanol_graph: MolecularGraph) -> None:
        """Test modifying the tensors does not touch the frozen graph."""
        data = graph_to_pyg_data(ethanol_graph)
        data.x[0, 0] = 42.0
        assert ethanol_graph.node_features[0, 0] != 42.0


# ============================================================================
# Test: graphs_to_pyg_batch
# ============================================================================


class TestGraphsToPygBatch:
    """Tests for graphs_to_pyg_batch function."""

    def test_batches_graphs(self, ethanol_graph: MolecularGraph, benzene_graph: MolecularGraph) -> None:
        """Test graphs are concatenated with a batch assignment vector."""
        batch = graphs_to_pyg_batch([ethanol_graph, benzene_graph])
        assert isinstance(batch, Batch)
        assert batch.num_graphs == 2
        assert batch.x.shape == (9, 49)
        assert batch.edge_index.shape == (2, 16)
        assert batch.batch.tolist() == [0, 0, 0, 1, 1, 1, 1, 1, 1]
        assert batch.u.shape == (2, 6)
        assert batch.smiles == ["CCO", "c1ccccc1"]

    def test_edge_indices_shifted(self, ethanol_graph: MolecularGraph) -> None:
        """Test the second graph's edges are offset by the first graph's atoms."""
        batch = graphs_to_pyg_batch([ethanol_graph, ethanol_graph])
        assert batch.edge_index[:, 4:].min().item() == 3

    def test_empty(self) -> None:
        """Test an empty list is rejected."""
        with pytest.raises(ValueError, match="empty"):
            graphs_to_pyg_batch([])
