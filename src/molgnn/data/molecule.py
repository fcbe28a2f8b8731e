"""Graph primitives produced by the molecule loaders.

Atoms and bonds are plain value objects. The loaders create them, the feature
encoders read them, and nothing mutates them once a graph has been built.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum


class BondOrder(str, Enum):
    """Bond multiplicity as written in SMILES."""

    SINGLE = "single"
    DOUBLE = "double"
    TRIPLE = "triple"
    AROMATIC = "aromatic"

    @property
    def valence(self) -> int:
        """Contribution of the bond to an atom's valence (aromatic counts as 1)."""
        return _BOND_VALENCE[self]


_BOND_VALENCE: dict[BondOrder, int] = {
    BondOrder.SINGLE: 1,
    BondOrder.DOUBLE: 2,
    BondOrder.TRIPLE: 3,
    BondOrder.AROMATIC: 1,
}


@dataclass(slots=True)
class Atom:
    """A single atom.

    Attributes:
        symbol: Capitalised element symbol (aromatic ``c`` is stored as ``C``)
        atomic_number: Atomic number, 0 when the symbol is unknown
        is_aromatic: Whether the atom was written in aromatic (lower-case) form
        charge: Formal charge
        implicit_hydrogens: Attached hydrogens not written as atoms
        degree: Number of explicit bonds, incremented while parsing
    """

    symbol: str
    atomic_number: int
    is_aromatic: bool = False
    charge: int = 0
    implicit_hydrogens: int = 0
    degree: int = 0


@dataclass(frozen=True, slots=True)
class Bond:
    """An undirected bond between two atom indices."""

    source_index: int
    target_index: int
    bond_order: BondOrder = BondOrder.SINGLE
    in_ring: bool = False
    conjugated: bool = False


@dataclass
class ParsedMolecule:
    """Atoms and bonds of a parsed molecule plus the text it came from."""

    atoms: list[Atom] = field(default_factory=list)
    bonds: list[Bond] = field(default_factory=list)
    source: str = ""

    @property
    def num_atoms(self) -> int:
        return len(self.atoms)

    @property
    def num_bonds(self) -> int:
        return len(self.bonds)

    def fragments(self) -> list[list[int]]:
        """Group atom indices into connected components, in first-atom order."""
        parent = list(range(len(self.atoms)))

        def find(i: int) -> int:
            while parent[i] != i:
                parent[i] = parent[parent[i]]
                i = parent[i]
            return i

        for bond in self.bonds:
            a, b = find(bond.source_index), find(bond.target_index)
            if a != b:
                parent[max(a, b)] = min(a, b)

        groups: dict[int, list[int]] = {}
        for i in range(len(self.atoms)):
            groups.setdefault(find(i), []).append(i)
        return list(groups.values())

    def largest_fragment(self) -> ParsedMolecule:
        """Return a new molecule restricted to the component with the most atoms.

        Ties keep the fragment that appears first. Atom indices are renumbered and
        the kept atoms are copies, so the result shares no mutable state with
        ``self``. A molecule with a single fragment is returned as is.
        """
        fragments = self.fragments()
        if len(fragments) <= 1:
            return self

        keep = max(fragments, key=len)
        remap = {old: new for new, old in enumerate(keep)}
        atoms = [replace(self.atoms[i]) for i in keep]
        bonds = [
            Bond(
                source_index=remap[b.source_index],
                target_index=remap[b.target_index],
                bond_order=b.bond_order,
                in_ring=b.in_ring,
                conjugated=b.conjugated,
            )
            for b in self.bonds
            if b.source_index in remap
        ]
        return ParsedMolecule(atoms=atoms, bonds=bonds, source=self.source)


class InputFormat(str, Enum):
    SMILES = "smiles"
    MOL_BLOCK = "mol_block"


@dataclass(frozen=True)
class MolecularInput:
    """A molecule in one of the supported text encodings."""

    value: str
    format: InputFormat = InputFormat.SMILES

    @classmethod
    def smiles(cls, value: str) -> MolecularInput:
        return cls(value=value, format=InputFormat.SMILES)

    @classmethod
    def mol_block(cls, value: str) -> MolecularInput:
        return cls(value=value, format=InputFormat.MOL_BLOCK)
