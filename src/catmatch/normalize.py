"""Normalisation des descriptions de matériaux."""

from __future__ import annotations

import re
import unicodedata
from typing import Any

# Abréviations courantes dans les listes de matériaux (pt-BR)
_ABBREVIATIONS = {
    "n°": "n",
    "un": "unidade",
    "und": "unidade",
    "cx": "caixa",
    "pct": "pacote",
}


def _remove_diacritics(s: str) -> str:
    """Retire les diacritiques (accents) d'une chaîne."""
    nfd = unicodedata.normalize("NFD", s)
    return "".join(c for c in nfd if unicodedata.category(c) != "Mn")


def _is_missing(s: Any) -> bool:
    return s is None or (isinstance(s, float) and (s != s or s == float("inf")))


def norm_text(
    s: str | float | int | None,
    *,
    lower: bool = True,
    strip: bool = True,
    remove_diacritics: bool = False,
) -> str:
    """
    Normalise un texte : NFKC, espaces multiples → espace simple, lower, strip.

    Args:
        s: Valeur à normaliser (convertie en str si numérique).
        lower: Mettre en minuscules.
        strip: Supprimer espaces en début/fin.
        remove_diacritics: Supprimer les accents.

    Returns:
        Chaîne normalisée.
    """
    if _is_missing(s):
        return ""
    text = str(s).strip() if strip else str(s)
    text = unicodedata.normalize("NFKC", text)
    text = re.sub(r"\s+", " ", text)
    if strip:
        text = text.strip()
    if lower:
        text = text.lower()
    if remove_diacritics:
        text = _remove_diacritics(text)
    return text


def norm_material(s: str | float | int | None) -> str:
    """
    Normalise une description de matériau pour la comparaison avec le catalogue.

    Gère :
    - Casse, accents et espaces (voir norm_text)
    - Ponctuation (remplacée par un espace, sauf séparateurs décimaux)
    - Abréviations usuelles (n°, cx, pct...)
    - Unités collées au nombre (75g/m² → 75 g/m2)

    Returns:
        Description normalisée ou chaîne vide.
    """
    text = norm_text(s)
    if not text:
        return ""
    for abbr, full in _ABBREVIATIONS.items():
        text = re.sub(rf"(?<!\w){re.escape(abbr)}(?!\w)", full, text)
    text = _remove_diacritics(text)
    text = re.sub(r"(\d)([a-z])", r"\1 \2", text)
    text = re.sub(r"(?<!\d)[.,](?!\d)", " ", text)
    text = re.sub(r"[^\w\s/.,-]", " ", text)
    text = re.sub(r"\s+", " ", text)
    return text.strip()


def safe_str(val: Any) -> str:
    """Convertit une valeur en chaîne pour affichage/stockage."""
    if _is_missing(val):
        return ""
    return str(val)
