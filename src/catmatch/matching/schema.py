"""Schémas et types pour le matching."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Classification(str, Enum):
    """Issue du matching d'un matériau."""

    MATCHED = "matched"
    PENDING = "pending"
    NOT_FOUND = "not_found"


@dataclass(frozen=True)
class MaterialRecord:
    """Une ligne du fichier importé."""

    sequence_index: int
    raw_description: str
    quantity: str | None = None
    unit: str | None = None
    source_row: int | None = None  # ligne du tableur (1-based)


@dataclass(frozen=True)
class CatalogEntry:
    """Un item standardisé du catalogue CATMAT."""

    catalog_id: str
    canonical_description: str


@dataclass(frozen=True)
class MatchCandidate:
    """Un candidat renvoyé par le catalogue pour une requête."""

    catalog_id: str
    score: float  # entre 0 et 1
    description: str = ""

    def __post_init__(self) -> None:
        if not 0.0 <= self.score <= 1.0:
            raise ValueError(f"score hors de [0, 1] pour {self.catalog_id!r}: {self.score!r}")

    def __repr__(self) -> str:
        return f"MatchCandidate(catalog_id={self.catalog_id!r}, score={self.score:.3f})"


@dataclass(frozen=True)
class MatchResult:
    """Résultat de matching pour un matériau."""

    sequence_index: int
    classification: Classification
    best_candidate: MatchCandidate | None = None
    explanation: str = ""
    error: bool = False

    def __post_init__(self) -> None:
        if (self.classification is Classification.NOT_FOUND) != (self.best_candidate is None):
            raise ValueError(
                f"best_candidate doit être présent ssi classification != not_found "
                f"(ligne {self.sequence_index}, {self.classification.value})"
            )

    @property
    def score(self) -> float | None:
        return self.best_candidate.score if self.best_candidate else None
