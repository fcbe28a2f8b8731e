"""Feature encoding constants for molecular featurization.

This module defines the allowed values, normalization constants and dimensions
for the atom, bond and molecule-level features fed to the GNN.
"""

from ..molecule import BondOrder

# Allowed atomic numbers for one-hot encoding
# The ten most common elements in organic and medicinal chemistry
ALLOWED_ATOMS: list[int] = [
    6,  # C - Carbon
    7,  # N - Nitrogen
    8,  # O - Oxygen
    9,  # F - Fluorine
    15,  # P - Phosphorus
    16,  # S - Sulfur
    17,  # Cl - Chlorine
    35,  # Br - Bromine
    53,  # I - Iodine
    5,  # B - Boron
]

# Number of atom types (includes "other" category)
NUM_ATOM_TYPES: int = len(ALLOWED_ATOMS) + 1  # +1 for unknown/other

# Degree one-hot: 0, 1, 2, 3, 4+ (clamped)
MAX_DEGREE: int = 4
NUM_DEGREE_BINS: int = MAX_DEGREE + 1

# Formal charge one-hot: -2..+2 (offset by +2 and clamped)
FORMAL_CHARGE_OFFSET: int = 2
NUM_FORMAL_CHARGE_BINS: int = 2 * FORMAL_CHARGE_OFFSET + 1

# Hydrogen count one-hot: 0, 1, 2, 3+ (clamped)
MAX_NUM_HS: int = 3
NUM_HS_BINS: int = MAX_NUM_HS + 1

# Hybridization types for one-hot encoding
HYBRIDIZATION_TYPES: list[str] = ["S", "SP", "SP2", "SP3", "SP3D", "SP3D2"]
NUM_HYBRIDIZATION_TYPES: int = len(HYBRIDIZATION_TYPES) + 1  # +1 for unknown
# No valence model: every atom is encoded as sp3
DEFAULT_HYBRIDIZATION: str = "SP3"

# Chirality tags for one-hot encoding
CHIRALITY_TYPES: list[str] = ["NONE", "CW", "CCW"]
NUM_CHIRALITY_TYPES: int = len(CHIRALITY_TYPES) + 1  # +1 for unknown
DEFAULT_CHIRALITY: str = "NONE"

# Smallest ring size for one-hot encoding (0 = not in a ring)
RING_SIZES: list[int] = [0, 3, 4, 5, 6, 7]
NUM_RING_SIZES: int = len(RING_SIZES) + 1  # +1 for larger rings
DEFAULT_RING_SIZE: int = 0

# Scalar atom features and the constants that bring them roughly into [0, 1]
MASS_NORM: float = 200.0
ELECTRONEGATIVITY_NORM: float = 4.0
VDW_RADIUS_NORM: float = 3.0
RADICAL_ELECTRONS_NORM: float = 3.0
NUM_ATOM_SCALARS: int = 4

# Bond types for one-hot encoding
BOND_TYPES: list[BondOrder] = [
    BondOrder.SINGLE,
    BondOrder.DOUBLE,
    BondOrder.TRIPLE,
    BondOrder.AROMATIC,
]

NUM_BOND_TYPES: int = len(BOND_TYPES) + 1  # +1 for unknown

# Bond stereo types for one-hot encoding
BOND_STEREO_TYPES: list[str] = ["NONE", "E", "Z", "ANY"]
NUM_STEREO_TYPES: int = len(BOND_STEREO_TYPES) + 1  # +1 for unknown
DEFAULT_BOND_STEREO: str = "NONE"

# Bond directions for one-hot encoding
BOND_DIRECTIONS: list[str] = ["NONE", "ENDUPRIGHT", "ENDDOWNRIGHT"]
NUM_BOND_DIRECTIONS: int = len(BOND_DIRECTIONS) + 1  # +1 for unknown
DEFAULT_BOND_DIRECTION: str = "NONE"

# Global (molecule-level) feature normalization
ATOM_COUNT_NORM: float = 200.0
BOND_COUNT_NORM: float = 200.0
MOLECULAR_WEIGHT_NORM: float = 1000.0
LOG_SIZE_NORM: float = 6.0

# Feature dimension documentation
ATOM_FEATURE_DIM: int = (
    NUM_ATOM_TYPES  # Atomic number one-hot (11)
    + NUM_DEGREE_BINS  # Degree one-hot (5)
    + NUM_FORMAL_CHARGE_BINS  # Formal charge one-hot (5)
    + NUM_HS_BINS  # Num Hs one-hot (4)
    + NUM_HYBRIDIZATION_TYPES  # Hybridization one-hot (7)
    + NUM_CHIRALITY_TYPES  # Chirality one-hot (4)
    + NUM_RING_SIZES  # Ring size one-hot (7)
    + 1  # Is aromatic (1)
    + 1  # Is in ring (1)
    + NUM_ATOM_SCALARS  # Mass, electronegativity, vdW radius, radicals (4)
)  # Total: 49

BOND_FEATURE_DIM: int = (
    NUM_BOND_TYPES  # Bond type one-hot (5)
    + 1  # Is conjugated (1)
    + 1  # Is in ring (1)
    + NUM_STEREO_TYPES  # Stereo one-hot (5)
    + NUM_BOND_DIRECTIONS  # Direction one-hot (4)
)  # Total: 16

GLOBAL_FEATURE_DIM: int = 6

# Atom feature layout (indices are relative to returned arrays)
ATOM_ATOMIC_NUMBER_SLICE = slice(0, NUM_ATOM_TYPES)
ATOM_DEGREE_SLICE = slice(ATOM_ATOMIC_NUMBER_SLICE.stop, ATOM_ATOMIC_NUMBER_SLICE.stop + NUM_DEGREE_BINS)
ATOM_FORMAL_CHARGE_SLICE = slice(
    ATOM_DEGREE_SLICE.stop, ATOM_DEGREE_SLICE.stop + NUM_FORMAL_CHARGE_BINS
)
ATOM_NUM_HS_SLICE = slice(ATOM_FORMAL_CHARGE_SLICE.stop, ATOM_FORMAL_CHARGE_SLICE.stop + NUM_HS_BINS)
ATOM_HYBRIDIZATION_SLICE = slice(
    ATOM_NUM_HS_SLICE.stop, ATOM_NUM_HS_SLICE.stop + NUM_HYBRIDIZATION_TYPES
)
ATOM_CHIRALITY_SLICE = slice(
    ATOM_HYBRIDIZATION_SLICE.stop, ATOM_HYBRIDIZATION_SLICE.stop + NUM_CHIRALITY_TYPES
)
ATOM_RING_SIZE_SLICE = slice(ATOM_CHIRALITY_SLICE.stop, ATOM_CHIRALITY_SLICE.stop + NUM_RING_SIZES)
ATOM_IS_AROMATIC_IDX: int = ATOM_RING_SIZE_SLICE.stop
ATOM_IS_IN_RING_IDX: int = ATOM_IS_AROMATIC_IDX + 1
ATOM_SCALAR_SLICE = slice(ATOM_IS_IN_RING_IDX + 1, ATOM_IS_IN_RING_IDX + 1 + NUM_ATOM_SCALARS)

# Bond feature layout (indices are relative to returned arrays)
BOND_TYPE_SLICE = slice(0, NUM_BOND_TYPES)
BOND_IS_CONJUGATED_IDX: int = BOND_TYPE_SLICE.stop
BOND_IS_IN_RING_IDX: int = BOND_IS_CONJUGATED_IDX + 1
BOND_STEREO_SLICE = slice(BOND_IS_IN_RING_IDX + 1, BOND_IS_IN_RING_IDX + 1 + NUM_STEREO_TYPES)
BOND_DIRECTION_SLICE = slice(BOND_STEREO_SLICE.stop, BOND_STEREO_SLICE.stop + NUM_BOND_DIRECTIONS)

# Global feature layout
GLOBAL_ATOM_COUNT_IDX: int = 0
GLOBAL_BOND_COUNT_IDX: int = 1
GLOBAL_MOLECULAR_WEIGHT_IDX: int = 2
GLOBAL_AROMATIC_FRACTION_IDX: int = 3
GLOBAL_BOND_DENSITY_IDX: int = 4
GLOBAL_LOG_SIZE_IDX: int = 5

# Feature names and dimensions for documentation and debugging
ATOM_FEATURES: list[tuple[str, int]] = [
    ("atomic_number_onehot", NUM_ATOM_TYPES),
    ("degree_onehot", NUM_DEGREE_BINS),
    ("formal_charge_onehot", NUM_FORMAL_CHARGE_BINS),
    ("num_hs_onehot", NUM_HS_BINS),
    ("hybridization_onehot", NUM_HYBRIDIZATION_TYPES),
    ("chirality_onehot", NUM_CHIRALITY_TYPES),
    ("ring_size_onehot", NUM_RING_SIZES),
    ("is_aromatic", 1),
    ("is_in_ring", 1),
    ("scalars", NUM_ATOM_SCALARS),
]

BOND_FEATURES: list[tuple[str, int]] = [
    ("bond_type_onehot", NUM_BOND_TYPES),
    ("is_conjugated", 1),
    ("is_in_ring", 1),
    ("stereo_onehot", NUM_STEREO_TYPES),
    ("direction_onehot", NUM_BOND_DIRECTIONS),
]

GLOBAL_FEATURES: list[str] = [
    "atom_count",
    "bond_count",
    "molecular_weight",
    "aromatic_fraction",
    "bond_density",
    "log_size",
]
