"""MOL block loading via RDKit."""

import logging

from rdkit import Chem

from ...exceptions import InvalidMolBlockError
from ..molecule import Atom, Bond, BondOrder, ParsedMolecule

logger = logging.getLogger(__name__)

_RDKIT_BOND_ORDERS: dict[Chem.BondType, BondOrder] = {
    Chem.BondType.SINGLE: BondOrder.SINGLE,
    Chem.BondType.DOUBLE: BondOrder.DOUBLE,
    Chem.BondType.TRIPLE: BondOrder.TRIPLE,
    Chem.BondType.AROMATIC: BondOrder.AROMATIC,
}


def load_mol_block(mol_block: str) -> Chem.Mol:
    """Parse a MOL block into an RDKit Mol.

    Args:
        mol_block: Contents of a MDL MOL file

    Returns:
        Sanitized RDKit Mol object with explicit hydrogens removed

    Raises:
        InvalidMolBlockError: If the block is empty or cannot be parsed
    """
    if not mol_block or not mol_block.strip():
        raise InvalidMolBlockError("Empty MOL block")

    mol = Chem.MolFromMolBlock(mol_block, sanitize=True, removeHs=True)
    if mol is None:
        raise InvalidMolBlockError("Failed to parse MOL block")

    return mol


def parse_mol_block(mol_block: str) -> ParsedMolecule:
    """Convert a MOL block into the same atom/bond primitives as the SMILES parser.

    Unlike SMILES parsing, ring membership and conjugation come from RDKit's
    perception and are exact. The ``source`` of the result is the canonical SMILES.

    Raises:
        InvalidMolBlockError: If the block is empty or cannot be parsed
    """
    mol = load_mol_block(mol_block)

    atoms = [
        Atom(
            symbol=atom.GetSymbol(),
            atomic_number=atom.GetAtomicNum(),
            is_aromatic=atom.GetIsAromatic(),
            charge=atom.GetFormalCharge(),
            implicit_hydrogens=atom.GetTotalNumHs(),
            degree=atom.GetDegree(),
        )
        for atom in mol.GetAtoms()
    ]

    bonds = []
    for bond in mol.GetBonds():
        order = _RDKIT_BOND_ORDERS.get(bond.GetBondType())
        if order is None:
            logger.warning(
                "Unsupported bond type %s between atoms %d and %d; treating as single",
                bond.GetBondType(),
                bond.GetBeginAtomIdx(),
                bond.GetEndAtomIdx(),
            )
            order = BondOrder.SINGLE
        bonds.append(
            Bond(
                source_index=bond.GetBeginAtomIdx(),
                target_index=bond.GetEndAtomIdx(),
                bond_order=order,
                in_ring=bond.IsInRing(),
                conjugated=bond.GetIsConjugated(),
            )
        )

    return ParsedMolecule(
        atoms=atoms,
        bonds=bonds,
        source=Chem.MolToSmiles(mol, canonical=True),
    )
