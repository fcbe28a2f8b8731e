"""Vector search collaborator used by similarity search."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol

import numpy as np

from .postprocessing import SimilarityLevel


@dataclass(frozen=True)
class SearchHit:
    """A raw match returned by a vector index."""

    molecule_id: str
    smiles: str
    score: float


@dataclass(frozen=True)
class SimilarMatch:
    """A search hit with its similarity level attached."""

    molecule_id: str
    smiles: str
    score: float
    level: SimilarityLevel


class VectorSearcher(Protocol):
    """Nearest-neighbour lookup over stored unit embeddings.

    Implementations return at most ``top_k`` hits scoring at least ``threshold``,
    best first.
    """

    def search(self, vector: np.ndarray, top_k: int, threshold: float) -> list[SearchHit]: ...
