"""Matcher : une requête catalogue par matériau, puis politique de seuils."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

from catmatch.config import CatmatchError, Thresholds
from catmatch.matching.schema import Classification, MatchCandidate, MaterialRecord, MatchResult

if TYPE_CHECKING:
    from catmatch.catalog import CatalogProvider


class MatchError(CatmatchError):
    """Échec de la recherche catalogue pour un matériau (transitoire ou timeout)."""

    def __init__(self, record_index: int, cause: BaseException) -> None:
        super().__init__(f"Échec du matching pour la ligne {record_index}: {cause!r}")
        self.record_index = record_index
        self.cause = cause


def classify(score: float | None, thresholds: Thresholds) -> Classification:
    """
    Classe un score selon les seuils (None = aucun candidat).

    Raises:
        ValueError: Si le score n'est pas un réel de [0, 1].
    """
    if score is None:
        return Classification.NOT_FOUND
    if not 0.0 <= score <= 1.0:
        raise ValueError(f"score hors de [0, 1]: {score!r}")
    if score < thresholds.low:
        return Classification.NOT_FOUND
    if score >= thresholds.high:
        return Classification.MATCHED
    return Classification.PENDING


def select_best(candidates: Sequence[MatchCandidate]) -> MatchCandidate | None:
    """
    Retourne le meilleur candidat.

    À score égal, le plus petit catalog_id (ordre lexicographique) l'emporte,
    quel que soit l'ordre renvoyé par le catalogue.
    """
    if not candidates:
        return None
    return min(candidates, key=lambda c: (-c.score, c.catalog_id))


def match(
    record: MaterialRecord,
    provider: CatalogProvider,
    catalog_version: str,
    thresholds: Thresholds,
    *,
    top_k: int | None = None,
) -> MatchResult:
    """
    Matche un matériau contre une version figée du catalogue.

    Sans effet de bord hormis la requête : deux appels avec le même matériau
    et la même version donnent le même MatchResult.

    Raises:
        MatchError: Si la requête catalogue échoue ou renvoie une réponse
            inexploitable (score hors de [0, 1]...). Aucune nouvelle tentative ici.
    """
    try:
        candidates = provider.query(record.raw_description, catalog_version, limit=top_k)
        best = select_best(list(candidates))
        score = best.score if best else None
        classification = classify(score, thresholds)
    except Exception as e:
        raise MatchError(record.sequence_index, e) from e

    if best is None:
        explanation = "Aucun candidat dans le catalogue"
    elif classification is Classification.MATCHED:
        explanation = f"Auto-accept score={best.score:.3f}"
    elif classification is Classification.PENDING:
        explanation = f"Revue manuelle (score={best.score:.3f})"
    else:
        explanation = f"Sous le seuil minimal (score={best.score:.3f})"

    return MatchResult(
        sequence_index=record.sequence_index,
        classification=classification,
        best_candidate=best if classification is not Classification.NOT_FOUND else None,
        explanation=explanation,
    )
