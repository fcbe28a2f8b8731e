"""Periodic-table lookups used by the SMILES parser and the feature encoders.

Symbol lookup, atomic weights and van der Waals radii are read from RDKit's
periodic table. RDKit has no Pauling electronegativities, so those are tabulated
here.
"""

from functools import lru_cache

from rdkit import Chem

_PERIODIC_TABLE = Chem.GetPeriodicTable()

CARBON: int = 6

# Organic subset: the only elements allowed outside brackets
ORGANIC_SUBSET: frozenset[str] = frozenset({"B", "C", "N", "O", "P", "S", "F", "Cl", "Br", "I"})
AROMATIC_ORGANIC: frozenset[str] = frozenset({"b", "c", "n", "o", "p", "s"})
# Aromatic symbols only legal inside brackets
AROMATIC_BRACKET: frozenset[str] = AROMATIC_ORGANIC | {"se", "as", "te"}

# Allowed valences for implicit-hydrogen assignment on organic-subset atoms
DEFAULT_VALENCES: dict[str, tuple[int, ...]] = {
    "B": (3,),
    "C": (4,),
    "N": (3, 5),
    "O": (2,),
    "P": (3, 5),
    "S": (2, 4, 6),
    "F": (1,),
    "Cl": (1,),
    "Br": (1,),
    "I": (1,),
}

# Pauling electronegativities
ELECTRONEGATIVITY: dict[int, float] = {
    1: 2.20,
    5: 2.04,
    6: 2.55,
    7: 3.04,
    8: 3.44,
    9: 3.98,
    11: 0.93,
    12: 1.31,
    13: 1.61,
    14: 1.90,
    15: 2.19,
    16: 2.58,
    17: 3.16,
    19: 0.82,
    20: 1.00,
    26: 1.83,
    29: 1.90,
    30: 1.65,
    33: 2.18,
    34: 2.55,
    35: 2.96,
    50: 1.96,
    52: 2.10,
    53: 2.66,
    78: 2.28,
}


@lru_cache(maxsize=None)
def atomic_number(symbol: str) -> int:
    """Return the atomic number for an element symbol, or 0 when unknown.

    Only canonical symbols count: RDKit also accepts aliases such as ``D``
    for deuterium and ``*`` for a dummy atom, which are not elements here.
    """
    try:
        number = _PERIODIC_TABLE.GetAtomicNumber(symbol)
    except (RuntimeError, ValueError):
        return 0
    if number < 1 or _PERIODIC_TABLE.GetElementSymbol(number) != symbol:
        return 0
    return number


def is_element(symbol: str) -> bool:
    return atomic_number(symbol) > 0


def atomic_mass(number: int) -> float:
    """Standard atomic weight in g/mol; unknown elements weigh as carbon."""
    if number < 1:
        number = CARBON
    return _PERIODIC_TABLE.GetAtomicWeight(number)


def vdw_radius(number: int) -> float:
    """Van der Waals radius in angstrom; unknown elements use carbon's radius."""
    if number < 1:
        number = CARBON
    return _PERIODIC_TABLE.GetRvdw(number)
