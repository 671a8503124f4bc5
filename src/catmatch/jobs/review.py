"""Remise pour revue : partition des résultats d'un job terminé."""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from catmatch.matching.schema import Classification, MatchResult


@dataclass(frozen=True)
class ReviewPartition:
    """
    Résultats d'un job répartis par classification.

    Les trois séquences sont disjointes, ordonnées par sequence_index et
    couvrent tous les résultats enregistrés. Pour un job annulé,
    `unprocessed` liste les matériaux jamais envoyés au matcher.
    """

    matched: tuple[MatchResult, ...] = ()
    pending: tuple[MatchResult, ...] = ()
    not_found: tuple[MatchResult, ...] = ()
    unprocessed: tuple[int, ...] = ()

    def __len__(self) -> int:
        return len(self.matched) + len(self.pending) + len(self.not_found)

    def as_dict(self) -> dict[str, tuple[MatchResult, ...]]:
        return {
            Classification.MATCHED.value: self.matched,
            Classification.PENDING.value: self.pending,
            Classification.NOT_FOUND.value: self.not_found,
        }

    def for_review(self) -> tuple[MatchResult, ...]:
        """Résultats à confirmer manuellement (pending puis not_found)."""
        return self.pending + self.not_found


def build_review_partition(
    results: Mapping[int, MatchResult],
    all_indices: Iterable[int] | None = None,
) -> ReviewPartition:
    """
    Construit la partition à partir des résultats immuables d'un job.

    Args:
        results: {sequence_index: MatchResult}.
        all_indices: Tous les sequence_index du job ; ceux sans résultat
            sont reportés dans `unprocessed`.

    Returns:
        ReviewPartition.
    """
    buckets: dict[Classification, list[MatchResult]] = {c: [] for c in Classification}
    for idx in sorted(results):
        r = results[idx]
        buckets[r.classification].append(r)

    unprocessed: tuple[int, ...] = ()
    if all_indices is not None:
        unprocessed = tuple(sorted(i for i in all_indices if i not in results))

    return ReviewPartition(
        matched=tuple(buckets[Classification.MATCHED]),
        pending=tuple(buckets[Classification.PENDING]),
        not_found=tuple(buckets[Classification.NOT_FOUND]),
        unprocessed=unprocessed,
    )
