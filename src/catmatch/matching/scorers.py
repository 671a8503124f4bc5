"""Calcul des scores de similarité entre une description et le catalogue."""

from __future__ import annotations

from rapidfuzz import fuzz

from catmatch.normalize import norm_material

# Scorers rapidfuzz (0-100) par méthode ; "exact" est traité à part
SCORERS = {
    "fuzzy_ratio": fuzz.ratio,
    "token_set": fuzz.token_set_ratio,
    "token_sort": fuzz.token_sort_ratio,
    "partial": fuzz.partial_ratio,
}


def score_text(
    query: str,
    candidate: str,
    method: str = "token_set",
    *,
    normalize: bool = True,
) -> float:
    """
    Calcule le score (0-1) entre une description et un libellé canonique.

    Args:
        query: Description brute du matériau.
        candidate: Libellé canonique du catalogue.
        method: exact, fuzzy_ratio, token_set, token_sort, partial.
        normalize: Appliquer norm_material avant la comparaison.

    Returns:
        Score entre 0 et 1.
    """
    if normalize:
        q = norm_material(query)
        c = norm_material(candidate)
    else:
        q = str(query) if query is not None else ""
        c = str(candidate) if candidate is not None else ""

    if not q or not c:
        return 0.0

    return score_normalized(q, c, method)


def score_normalized(q: str, c: str, method: str = "token_set") -> float:
    """Score (0-1) sur des chaînes déjà normalisées."""
    if method == "exact":
        return 1.0 if q == c else 0.0

    if method == "partial" and (q in c or c in q):
        return 1.0

    scorer = SCORERS.get(method, fuzz.ratio)
    return scorer(q, c) / 100.0
