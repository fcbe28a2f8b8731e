"""Tests for combined MoleculeFeaturizer."""

import numpy as np
import pytest
from rdkit import Chem

from molgnn.cancellation import CancellationToken
from molgnn.config import MolecularGraphConfig
from molgnn.data.graph import MolecularGraph
from molgnn.data.molecule import MolecularInput
from molgnn.data.transforms.constants import (
    ATOM_FEATURE_DIM,
    BOND_FEATURE_DIM,
    GLOBAL_FEATURE_DIM,
)
from molgnn.data.transforms.featurizer import MoleculeFeaturizer
from molgnn.exceptions import (
    BatchItemError,
    EmptyInputError,
    InferenceTimeoutError,
    InvalidCharacterError,
    InvalidMolBlockError,
    InvalidSMILESError,
    MoleculeTooLargeError,
)

# PFAS test molecules
PFAS_SMILES = {
    "TFA": "C(=O)(C(F)(F)F)O",
    "PFBA": "C(=O)(C(C(F)(F)F)(F)F)O",
    "PFOA": "C(=O)(C(C(C(C(C(C(C(F)(F)F)(F)F)(F)F)(F)F)(F)F)(F)F)(F)F)O",
    "PFOS": "C(C(C(C(C(C(C(C(F)(F)S(=O)(=O)O)(F)F)(F)F)(F)F)(F)F)(F)F)(F)F)(F)(F)F",
    "PFBS": "C(C(C(C(F)(F)S(=O)(=O)O)(F)F)(F)F)(F)(F)F",
    "GenX": "C(=O)(C(C(C(OC(F)(F)F)(F)F)(F)F)(F)F)O",
}


class TestMoleculeFeaturizer:
    """Tests for MoleculeFeaturizer class."""

    @pytest.fixture
    def featurizer(self):
        """Create featurizer instance."""
        return MoleculeFeaturizer()

    def test_initialization(self, featurizer):
        """Test that featurizer initializes correctly."""
        assert featurizer.atom_feature_dim == ATOM_FEATURE_DIM
        assert featurizer.bond_feature_dim == BOND_FEATURE_DIM
        assert featurizer.global_feature_dim == GLOBAL_FEATURE_DIM
        assert featurizer.max_atoms == 200
        assert featurizer.fragment_policy == "all"

    def test_repr(self, featurizer):
        """Test string representation."""
        repr_str = repr(featurizer)
        assert "MoleculeFeaturizer" in repr_str
        assert str(ATOM_FEATURE_DIM) in repr_str
        assert str(BOND_FEATURE_DIM) in repr_str

    @pytest.mark.parametrize(
        "kwargs",
        [{"max_atoms": 0}, {"max_smiles_length": -1}, {"fragment_policy": "smallest"}],
    )
    def test_invalid_arguments(self, kwargs):
        """Test constructor argument validation."""
        with pytest.raises(ValueError):
            MoleculeFeaturizer(**kwargs)

    def test_from_config(self):
        """Test construction from a MolecularGraphConfig."""
        featurizer = MoleculeFeaturizer.from_config(
            MolecularGraphConfig(max_atoms=10, fragment_policy="largest")
        )
        assert featurizer.max_atoms == 10
        assert featurizer.fragment_policy == "largest"

    def test_ethanol(self, featurizer):
        """Test ethanol gives 3 atoms, 2 bonds, 4 directed edges and 6 global features."""
        graph = featurizer.featurize("CCO")
        assert isinstance(graph, MolecularGraph)
        assert graph.atom_count == 3
        assert graph.bond_count == 2
        assert graph.edge_index.shape == (4, 2)
        assert graph.global_features.shape == (6,)
        assert graph.source_smiles == "CCO"

    @pytest.mark.parametrize("name,smiles", list(PFAS_SMILES.items()))
    def test_shapes_match_rdkit(self, featurizer, name: str, smiles: str):
        """Test atom and bond counts agree with RDKit for PFAS structures."""
        mol = Chem.MolFromSmiles(smiles)
        graph = featurizer.featurize(smiles)
        assert graph.node_features.shape == (mol.GetNumAtoms(), ATOM_FEATURE_DIM)
        assert graph.edge_index.shape == (2 * mol.GetNumBonds(), 2)
        assert graph.edge_features.shape == (2 * mol.GetNumBonds(), BOND_FEATURE_DIM)

    def test_graph_is_frozen(self, featurizer):
        """Test the graph's arrays cannot be modified."""
        graph = featurizer.featurize("CCO")
        with pytest.raises(ValueError):
            graph.node_features[0, 0] = 5.0
        with pytest.raises(AttributeError):
            graph.atom_count = 7

    def test_deterministic(self, featurizer):
        """Test featurizing twice gives identical graphs."""
        a = featurizer.featurize("CC(=O)O")
        b = featurizer.featurize("CC(=O)O")
        np.testing.assert_array_equal(a.node_features, b.node_features)
        np.testing.assert_array_equal(a.edge_index, b.edge_index)
        np.testing.assert_array_equal(a.edge_features, b.edge_features)
        np.testing.assert_array_equal(a.global_features, b.global_features)

    def test_too_large(self):
        """Test molecules over the atom limit are rejected."""
        featurizer = MoleculeFeaturizer(max_atoms=5)
        with pytest.raises(MoleculeTooLargeError):
            featurizer.featurize("CCCCCC")
        assert featurizer.featurize("CCCCC").atom_count == 5

    def test_max_smiles_length(self):
        """Test the SMILES length limit is forwarded to the parser."""
        with pytest.raises(InvalidSMILESError):
            MoleculeFeaturizer(max_smiles_length=3).featurize("CCCC")

    @pytest.mark.parametrize("smiles", ["", "C(", "C))", "XYZ", "C===C"])
    def test_invalid_smiles(self, featurizer, smiles: str):
        """Test invalid SMILES raise InvalidSMILESError."""
        with pytest.raises(InvalidSMILESError):
            featurizer.featurize(smiles)

    def test_fragment_policy_all(self, featurizer):
        """Test every fragment is kept by default."""
        graph = featurizer.featurize("CCO.[Na+]")
        assert graph.atom_count == 4
        assert graph.bond_count == 2

    def test_fragment_policy_largest(self):
        """Test only the largest fragment is kept with the 'largest' policy."""
        graph = MoleculeFeaturizer(fragment_policy="largest").featurize("[Na+].CCO")
        assert graph.atom_count == 3
        assert graph.bond_count == 2
        assert graph.edge_index.max() == 2

    def test_largest_fragment_checked_against_limit(self):
        """Test the atom limit applies after fragment selection."""
        featurizer = MoleculeFeaturizer(max_atoms=3, fragment_policy="largest")
        assert featurizer.featurize("CCO.CC").atom_count == 3


class TestFeaturizeMolBlock:
    """Tests for MOL block input."""

    def test_ethanol(self):
        """Test a MOL block featurizes like its SMILES."""
        block = Chem.MolToMolBlock(Chem.MolFromSmiles("CCO"))
        graph = MoleculeFeaturizer().featurize_mol_block(block)
        assert graph.atom_count == 3
        assert graph.bond_count == 2
        assert graph.source_smiles == "CCO"

    def test_invalid(self):
        """Test an invalid block raises InvalidMolBlockError."""
        with pytest.raises(InvalidMolBlockError):
            MoleculeFeaturizer().featurize_mol_block("garbage")

    def test_featurize_input_dispatch(self):
        """Test featurize_input picks the parser from the input format."""
        featurizer = MoleculeFeaturizer()
        block = Chem.MolToMolBlock(Chem.MolFromSmiles("CC"))
        assert featurizer.featurize_input(MolecularInput.smiles("CCO")).atom_count == 3
        assert featurizer.featurize_input(MolecularInput.mol_block(block)).atom_count == 2


class TestFeaturizeBatch:
    """Tests for sequential batch featurization."""

    def test_all_valid(self):
        """Test graphs come back in input order."""
        graphs = MoleculeFeaturizer().featurize_batch(["C", "CC", MolecularInput.smiles("CCC")])
        assert [g.atom_count for g in graphs] == [1, 2, 3]

    def test_empty_batch(self):
        """Test an empty batch gives an empty list."""
        assert MoleculeFeaturizer().featurize_batch([]) == []

    def test_first_failure_aborts_with_index(self):
        """Test the failing index and cause are reported."""
        with pytest.raises(BatchItemError) as exc_info:
            MoleculeFeaturizer().featurize_batch(["C", "CC", "XYZ", ""])
        assert exc_info.value.index == 2
        assert isinstance(exc_info.value.__cause__, InvalidCharacterError)
        assert exc_info.value.cause is exc_info.value.__cause__

    def test_empty_item(self):
        """Test an empty SMILES inside a batch."""
        with pytest.raises(BatchItemError) as exc_info:
            MoleculeFeaturizer().featurize_batch(["", "C"])
        assert exc_info.value.index == 0
        assert isinstance(exc_info.value.__cause__, EmptyInputError)

    def test_cancelled(self):
        """Test a cancelled token stops the batch."""
        token = CancellationToken()
        token.cancel()
        with pytest.raises(InferenceTimeoutError):
            MoleculeFeaturizer().featurize_batch(["C", "CC"], cancel_token=token)
