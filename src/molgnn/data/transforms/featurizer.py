"""Combined molecular featurizer for GNN input.

This module provides a unified interface that turns a SMILES string or MOL block
into the :class:`~molgnn.data.graph.MolecularGraph` consumed by the predictor.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING

from ...cancellation import CancellationToken, check_cancelled
from ...exceptions import (
    BatchItemError,
    FeaturizationError,
    MoleculeTooLargeError,
    NoAtomsFoundError,
)
from ..graph import MolecularGraph
from ..loaders.mol_block import parse_mol_block
from ..loaders.smiles import DEFAULT_MAX_SMILES_LENGTH, parse_smiles
from ..molecule import InputFormat, MolecularInput, ParsedMolecule
from .atom_features import get_atom_features
from .bond_features import get_bond_features, get_edge_index
from .constants import ATOM_FEATURE_DIM, BOND_FEATURE_DIM, GLOBAL_FEATURE_DIM
from .global_features import get_global_features

if TYPE_CHECKING:
    from ...config import MolecularGraphConfig

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATOMS: int = 200
FRAGMENT_POLICIES: tuple[str, ...] = ("all", "largest")


class MoleculeFeaturizer:
    """Unified molecular featurizer for GNN input.

    This class combines parsing, atom/bond/global feature extraction and
    bidirectional edge construction into a single interface.

    Feature Dimensions:
        Atom features (node_features): 49 dimensions
        Bond features (edge_features): 16 dimensions
        Global features: 6 dimensions

    Args:
        max_atoms: Largest accepted molecule, in heavy atoms
        max_smiles_length: Longest accepted SMILES string
        fragment_policy: ``"all"`` keeps every disconnected fragment,
            ``"largest"`` keeps only the fragment with the most atoms

    Example:
        >>> featurizer = MoleculeFeaturizer()
        >>> graph = featurizer.featurize("C(F)(F)F")  # Trifluoromethane
        >>> graph.node_features.shape
        (4, 49)
        >>> graph.edge_index.shape
        (6, 2)
    """

    def __init__(
        self,
        max_atoms: int = DEFAULT_MAX_ATOMS,
        max_smiles_length: int = DEFAULT_MAX_SMILES_LENGTH,
        fragment_policy: str = "all",
    ) -> None:
        if max_atoms <= 0:
            raise ValueError(f"max_atoms must be positive, got {max_atoms}")
        if max_smiles_length <= 0:
            raise ValueError(f"max_smiles_length must be positive, got {max_smiles_length}")
        if fragment_policy not in FRAGMENT_POLICIES:
            raise ValueError(
                f"fragment_policy must be one of {FRAGMENT_POLICIES}, got {fragment_policy!r}"
            )
        self.max_atoms = max_atoms
        self.max_smiles_length = max_smiles_length
        self.fragment_policy = fragment_policy
        self.atom_feature_dim = ATOM_FEATURE_DIM
        self.bond_feature_dim = BOND_FEATURE_DIM
        self.global_feature_dim = GLOBAL_FEATURE_DIM

    @classmethod
    def from_config(cls, config: MolecularGraphConfig) -> MoleculeFeaturizer:
        return cls(
            max_atoms=config.max_atoms,
            max_smiles_length=config.max_smiles_length,
            fragment_policy=config.fragment_policy,
        )

    def featurize(self, smiles: str) -> MolecularGraph:
        """Build the molecular graph for a SMILES string.

        Args:
            smiles: SMILES string

        Returns:
            Frozen MolecularGraph

        Raises:
            InvalidSMILESError: If the SMILES fails validation or parsing
            NoAtomsFoundError: If parsing produced no atoms
            MoleculeTooLargeError: If the molecule exceeds ``max_atoms``
        """
        molecule = parse_smiles(smiles, max_length=self.max_smiles_length)
        return self._build_graph(molecule, smiles)

    def featurize_mol_block(self, mol_block: str) -> MolecularGraph:
        """Build the molecular graph for a MOL block.

        The graph's ``source_smiles`` is the canonical SMILES of the block.

        Raises:
            InvalidMolBlockError: If RDKit cannot read the block
            NoAtomsFoundError: If the block has no atoms
            MoleculeTooLargeError: If the molecule exceeds ``max_atoms``
        """
        molecule = parse_mol_block(mol_block)
        return self._build_graph(molecule, molecule.source)

    def featurize_input(self, molecular_input: MolecularInput) -> MolecularGraph:
        if molecular_input.format == InputFormat.MOL_BLOCK:
            return self.featurize_mol_block(molecular_input.value)
        return self.featurize(molecular_input.value)

    def featurize_batch(
        self,
        inputs: Sequence[MolecularInput | str],
        cancel_token: CancellationToken | None = None,
    ) -> list[MolecularGraph]:
        """Featurize inputs in order, stopping at the first failure.

        Plain strings are treated as SMILES.

        Raises:
            BatchItemError: Carrying the index of the failing input, chained
                from the underlying featurization error
            InferenceTimeoutError: If ``cancel_token`` is cancelled between items
        """
        graphs = []
        for i, item in enumerate(inputs):
            check_cancelled(cancel_token, "batch featurization")
            if isinstance(item, str):
                item = MolecularInput.smiles(item)
            try:
                graphs.append(self.featurize_input(item))
            except FeaturizationError as e:
                raise BatchItemError(i, e) from e
        return graphs

    def _build_graph(self, molecule: ParsedMolecule, source_smiles: str) -> MolecularGraph:
        if self.fragment_policy == "largest":
            molecule = molecule.largest_fragment()

        if molecule.num_atoms == 0:
            raise NoAtomsFoundError(f"No atoms found in {source_smiles!r}")
        if molecule.num_atoms > self.max_atoms:
            raise MoleculeTooLargeError(
                f"Molecule has {molecule.num_atoms} atoms; maximum is {self.max_atoms}"
            )

        graph = MolecularGraph(
            node_features=get_atom_features(molecule.atoms),
            edge_index=get_edge_index(molecule.bonds),
            edge_features=get_bond_features(molecule.bonds),
            global_features=get_global_features(molecule.atoms, molecule.bonds),
            atom_count=molecule.num_atoms,
            bond_count=molecule.num_bonds,
            source_smiles=source_smiles,
        )
        logger.debug(
            "Featurized %r: %d atoms, %d bonds", source_smiles, graph.atom_count, graph.bond_count
        )
        return graph

    def __repr__(self) -> str:
        """Return string representation."""
        return (
            f"MoleculeFeaturizer("
            f"atom_dim={self.atom_feature_dim}, "
            f"bond_dim={self.bond_feature_dim}, "
            f"max_atoms={self.max_atoms}, "
            f"fragment_policy={self.fragment_policy!r})"
        )
