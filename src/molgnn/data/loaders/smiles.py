"""SMILES parsing into atoms and bonds.

The parser covers the organic subset, bracket atoms, branches, ring closures
(single digits and ``%nn`` labels) and disconnected fragments. Stereochemistry
is read but discarded, and ring membership is not perceived beyond aromaticity
and ring-closure bonds.
"""

from __future__ import annotations

import logging
import re

from rdkit import Chem

from ...exceptions import (
    EmptyInputError,
    InputTooLongError,
    InvalidCharacterError,
    InvalidSMILESError,
    ReactionSMILESNotSupportedError,
    StructuralParseError,
    UnbalancedBracketsError,
    UnclosedBracketError,
    UnmatchedRingClosureError,
)
from ..molecule import Atom, Bond, BondOrder, ParsedMolecule
from ..elements import (
    AROMATIC_BRACKET,
    AROMATIC_ORGANIC,
    DEFAULT_VALENCES,
    ORGANIC_SUBSET,
    atomic_number,
    is_element,
)

logger = logging.getLogger(__name__)

DEFAULT_MAX_SMILES_LENGTH: int = 5000

_ALLOWED_CHARACTERS = re.compile(r"^[A-Za-z0-9@+\-\[\]()=#$:/\\.%]+$")

_BOND_SYMBOLS: dict[str, BondOrder] = {
    "-": BondOrder.SINGLE,
    "=": BondOrder.DOUBLE,
    "#": BondOrder.TRIPLE,
    "$": BondOrder.TRIPLE,  # quadruple is not representable
    ":": BondOrder.AROMATIC,
    "/": BondOrder.SINGLE,
    "\\": BondOrder.SINGLE,
}


def validate_smiles(smiles: str, max_length: int = DEFAULT_MAX_SMILES_LENGTH) -> None:
    """Check a SMILES string before structural parsing.

    Args:
        smiles: SMILES string to check
        max_length: Maximum accepted length in characters

    Raises:
        EmptyInputError: If the string is empty or whitespace only
        InputTooLongError: If the string is longer than ``max_length``
        ReactionSMILESNotSupportedError: If the string is a reaction SMILES
        InvalidCharacterError: If it contains characters outside the SMILES alphabet
        UnbalancedBracketsError: If branch parentheses do not pair up
    """
    if not smiles or not smiles.strip():
        raise EmptyInputError("Empty SMILES string")

    if len(smiles) > max_length:
        raise InputTooLongError(
            f"SMILES length {len(smiles)} exceeds maximum of {max_length} characters"
        )

    if ">>" in smiles:
        raise ReactionSMILESNotSupportedError(f"Reaction SMILES not supported: {smiles!r}")

    if not _ALLOWED_CHARACTERS.match(smiles):
        bad = next(ch for ch in smiles if not _ALLOWED_CHARACTERS.match(ch))
        raise InvalidCharacterError(f"Invalid character {bad!r} in SMILES {smiles!r}")

    depth = 0
    for ch in smiles:
        if ch == "(":
            depth += 1
        elif ch == ")":
            depth -= 1
            if depth < 0:
                raise UnbalancedBracketsError(f"Unexpected ')' in SMILES {smiles!r}")
    if depth != 0:
        raise UnbalancedBracketsError(f"Unclosed '(' in SMILES {smiles!r}")


def parse_smiles(smiles: str, max_length: int = DEFAULT_MAX_SMILES_LENGTH) -> ParsedMolecule:
    """Parse a SMILES string into atoms and bonds.

    All fragments separated by ``.`` are kept in a single atom/bond list.

    Args:
        smiles: SMILES string
        max_length: Maximum accepted length in characters

    Returns:
        ParsedMolecule with atoms in input order and one Bond per chemical bond

    Raises:
        InvalidSMILESError: Or one of its subclasses, for any malformed input

    Example:
        >>> mol = parse_smiles("CC(=O)O")  # Acetic acid
        >>> mol.num_atoms, mol.num_bonds
        (4, 3)
    """
    validate_smiles(smiles, max_length=max_length)
    parsed = _SmilesScanner(smiles).scan()
    logger.debug(
        "Parsed SMILES %r: %d atoms, %d bonds", smiles, parsed.num_atoms, parsed.num_bonds
    )
    return parsed


def canonicalize_smiles(smiles: str) -> str:
    """Return RDKit's canonical form of a SMILES string.

    Raises:
        InvalidSMILESError: If SMILES cannot be parsed or is empty
    """
    if not smiles or not smiles.strip():
        raise EmptyInputError("Empty SMILES string")

    mol = Chem.MolFromSmiles(smiles)
    if mol is None:
        raise InvalidSMILESError(f"Failed to parse SMILES: {smiles!r}")

    return Chem.MolToSmiles(mol, canonical=True)


class _SmilesScanner:
    """Single-use left-to-right scanner over a validated SMILES string."""

    def __init__(self, smiles: str) -> None:
        self.text = smiles
        self.pos = 0
        self.atoms: list[Atom] = []
        self.bonds: list[Bond] = []
        self.organic: list[bool] = []

        self.prev: int | None = None
        self.branches: list[int] = []
        self.pending: BondOrder | None = None
        # label -> (opening atom index, bond order written at the opening)
        self.rings: dict[str, tuple[int, BondOrder | None]] = {}

    def scan(self) -> ParsedMolecule:
        text = self.text
        while self.pos < len(text):
            ch = text[self.pos]

            if ch == "(":
                if self.prev is None:
                    raise StructuralParseError(
                        f"Branch opened before any atom at position {self.pos} in {text!r}"
                    )
                self.branches.append(self.prev)
                self.pos += 1
            elif ch == ")":
                if not self.branches:
                    raise UnbalancedBracketsError(f"Unexpected ')' in SMILES {text!r}")
                self._reject_dangling_bond()
                self.prev = self.branches.pop()
                self.pos += 1
            elif ch in _BOND_SYMBOLS:
                if self.pending is not None:
                    raise StructuralParseError(
                        f"Consecutive bond symbols at position {self.pos} in {text!r}"
                    )
                self.pending = _BOND_SYMBOLS[ch]
                self.pos += 1
            elif ch == ".":
                self._reject_dangling_bond()
                self.prev = None
                self.pos += 1
            elif ch.isdigit() or ch == "%":
                self._ring_bond(self._read_ring_label())
            elif ch == "[":
                self._bracket_atom()
            elif ch == "]":
                raise UnbalancedBracketsError(
                    f"Unexpected ']' at position {self.pos} in SMILES {text!r}"
                )
            elif ch.isalpha():
                self._organic_atom()
            else:
                raise InvalidCharacterError(
                    f"Unexpected {ch!r} outside bracket atom at position {self.pos} in {text!r}"
                )

        if self.rings:
            labels = ", ".join(sorted(self.rings))
            raise UnmatchedRingClosureError(f"Unclosed ring bond(s) {labels} in SMILES {text!r}")
        if self.branches:
            raise UnbalancedBracketsError(f"Unclosed '(' in SMILES {text!r}")
        self._reject_dangling_bond()

        self._assign_implicit_hydrogens()
        return ParsedMolecule(atoms=self.atoms, bonds=self.bonds, source=text)

    # -- atoms -------------------------------------------------------------

    def _organic_atom(self) -> None:
        text = self.text
        two = text[self.pos : self.pos + 2]
        if len(two) == 2 and two in ORGANIC_SUBSET:
            symbol, aromatic, width = two, False, 2
        else:
            one = text[self.pos]
            if one in ORGANIC_SUBSET:
                symbol, aromatic, width = one, False, 1
            elif one in AROMATIC_ORGANIC:
                symbol, aromatic, width = one.upper(), True, 1
            else:
                raise InvalidCharacterError(
                    f"Unrecognized atom symbol {one!r} at position {self.pos} in {text!r}"
                )

        self._add_atom(
            Atom(symbol=symbol, atomic_number=atomic_number(symbol), is_aromatic=aromatic),
            organic=True,
        )
        self.pos += width

    def _bracket_atom(self) -> None:
        text = self.text
        end = text.find("]", self.pos + 1)
        content = text[self.pos + 1 : end] if end != -1 else ""
        if end == -1 or "[" in content:
            raise UnclosedBracketError(
                f"Bracket atom opened at position {self.pos} is not closed in {text!r}"
            )

        self._add_atom(_parse_bracket_atom(content, text), organic=False)
        self.pos = end + 1

    def _add_atom(self, atom: Atom, organic: bool) -> None:
        idx = len(self.atoms)
        self.atoms.append(atom)
        self.organic.append(organic)
        if self.prev is not None:
            self._bond(self.prev, idx, self.pending)
        elif self.pending is not None:
            raise StructuralParseError(f"Bond symbol without a preceding atom in {self.text!r}")
        self.pending = None
        self.prev = idx

    # -- bonds -------------------------------------------------------------

    def _bond(self, a: int, b: int, order: BondOrder | None, ring_closure: bool = False) -> None:
        if order is None:
            both_aromatic = self.atoms[a].is_aromatic and self.atoms[b].is_aromatic
            order = BondOrder.AROMATIC if both_aromatic else BondOrder.SINGLE
        aromatic = order is BondOrder.AROMATIC

        self.bonds.append(
            Bond(
                source_index=a,
                target_index=b,
                bond_order=order,
                in_ring=aromatic or ring_closure,
                conjugated=aromatic,
            )
        )
        self.atoms[a].degree += 1
        self.atoms[b].degree += 1

    def _read_ring_label(self) -> str:
        text = self.text
        if text[self.pos] == "%":
            digits = text[self.pos + 1 : self.pos + 3]
            if len(digits) != 2 or not digits.isdigit():
                raise InvalidCharacterError(
                    f"Malformed ring label at position {self.pos} in {text!r}"
                )
            self.pos += 3
            return "%" + digits

        label = text[self.pos]
        self.pos += 1
        return label

    def _ring_bond(self, label: str) -> None:
        if self.prev is None:
            raise UnmatchedRingClosureError(
                f"Ring bond {label} has no preceding atom in SMILES {self.text!r}"
            )

        if label not in self.rings:
            self.rings[label] = (self.prev, self.pending)
            self.pending = None
            return

        opener, opening_order = self.rings.pop(label)
        if opener == self.prev:
            raise UnmatchedRingClosureError(
                f"Ring bond {label} closes onto its own atom in SMILES {self.text!r}"
            )
        if (
            self.pending is not None
            and opening_order is not None
            and self.pending is not opening_order
        ):
            raise StructuralParseError(
                f"Conflicting bond orders for ring bond {label} in SMILES {self.text!r}"
            )
        self._bond(opener, self.prev, self.pending or opening_order, ring_closure=True)
        self.pending = None

    def _reject_dangling_bond(self) -> None:
        if self.pending is not None:
            raise StructuralParseError(f"Bond symbol not followed by an atom in {self.text!r}")

    # -- hydrogens ---------------------------------------------------------

    def _assign_implicit_hydrogens(self) -> None:
        bond_valence = [0] * len(self.atoms)
        for bond in self.bonds:
            bond_valence[bond.source_index] += bond.bond_order.valence
            bond_valence[bond.target_index] += bond.bond_order.valence

        for idx, atom in enumerate(self.atoms):
            if not self.organic[idx]:
                continue
            valences = DEFAULT_VALENCES.get(atom.symbol, ())
            if not valences:
                continue

            used = bond_valence[idx]
            if atom.is_aromatic:
                # One extra bond for the delocalised system; lowest valence only
                used += 1
                atom.implicit_hydrogens = max(0, valences[0] - used)
                continue

            target = next((v for v in valences if v >= used), used)
            atom.implicit_hydrogens = target - used


def _parse_bracket_atom(content: str, smiles: str) -> Atom:
    """Parse the inside of ``[...]``: isotope, symbol, chirality, H count, charge, class."""
    i = 0
    n = len(content)

    while i < n and content[i].isdigit():
        i += 1  # isotope
    if i >= n:
        raise InvalidCharacterError(f"Bracket atom [{content}] has no element in {smiles!r}")

    ch = content[i]
    two = content[i : i + 2]
    if ch.isupper():
        if len(two) == 2 and two[1].islower() and is_element(two):
            symbol, aromatic = two, False
        elif is_element(ch):
            symbol, aromatic = ch, False
        else:
            raise InvalidCharacterError(f"Unknown element in bracket atom [{content}] in {smiles!r}")
    elif ch.islower():
        if len(two) == 2 and two in AROMATIC_BRACKET:
            symbol, aromatic = two.capitalize(), True
        elif ch in AROMATIC_ORGANIC:
            symbol, aromatic = ch.upper(), True
        else:
            raise InvalidCharacterError(f"Unknown element in bracket atom [{content}] in {smiles!r}")
    else:
        raise InvalidCharacterError(f"Bracket atom [{content}] has no element in {smiles!r}")
    i += len(symbol)

    hydrogens = 0
    charge = 0
    while i < n:
        ch = content[i]
        if ch == "@":
            i += 1
        elif ch == "H":
            i += 1
            start = i
            while i < n and content[i].isdigit():
                i += 1
            hydrogens = int(content[start:i]) if i > start else 1
        elif ch in "+-":
            sign = 1 if ch == "+" else -1
            i += 1
            start = i
            while i < n and content[i].isdigit():
                i += 1
            if i > start:
                magnitude = int(content[start:i])
            else:
                magnitude = 1
                while i < n and content[i] == ch:
                    magnitude += 1
                    i += 1
            charge = sign * magnitude
        elif ch.isdigit():
            start = i
            while i < n and content[i].isdigit():
                i += 1
            if i >= n or content[i] not in "+-":
                raise InvalidCharacterError(
                    f"Unexpected digits in bracket atom [{content}] in {smiles!r}"
                )
            charge = int(content[start:i]) * (1 if content[i] == "+" else -1)
            i += 1
        elif ch == ":":
            i += 1
            while i < n and content[i].isdigit():
                i += 1  # atom class
        else:
            raise InvalidCharacterError(
                f"Unexpected {ch!r} in bracket atom [{content}] in {smiles!r}"
            )

    return Atom(
        symbol=symbol,
        atomic_number=atomic_number(symbol),
        is_aromatic=aromatic,
        charge=charge,
        implicit_hydrogens=hydrogens,
    )
