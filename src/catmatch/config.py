"""Configuration du moteur et chargement du fichier config JSON."""

from __future__ import annotations

import json
from dataclasses import dataclass
from pathlib import Path
from typing import Any

VALID_METHODS = frozenset({"exact", "fuzzy_ratio", "token_set", "token_sort", "partial"})


class CatmatchError(Exception):
    """Exception de base pour catmatch."""


class ValidationError(CatmatchError, ValueError):
    """Entrée ou configuration invalide : aucun job n'est créé."""


class ConfigError(ValidationError):
    """Erreur de validation de la configuration."""


class ConfigFileError(CatmatchError):
    """Erreur de chargement du fichier de configuration (fichier absent, JSON invalide)."""


@dataclass(frozen=True)
class Thresholds:
    """Seuils de classification (0 <= low <= high <= 1)."""

    high: float = 0.85
    low: float = 0.60

    def __post_init__(self) -> None:
        if not 0 <= self.low <= self.high <= 1:
            raise ConfigError(
                f"seuils invalides: il faut 0 <= low <= high <= 1 (got low={self.low}, high={self.high})"
            )

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> Thresholds:
        try:
            high = float(d.get("high", 0.85))
            low = float(d.get("low", 0.60))
        except (TypeError, ValueError) as e:
            raise ConfigError(f"seuils non numériques: {e}") from e
        return cls(high=high, low=low)


@dataclass
class EngineConfig:
    """Configuration principale du moteur de matching."""

    high_threshold: float = 0.85
    low_threshold: float = 0.60
    concurrency: int = 4
    max_retries: int = 3
    retry_backoff: float = 0.5  # secondes, doublé à chaque tentative
    match_timeout: float | None = 30.0  # None = pas de limite
    top_k: int = 5
    method: str = "token_set"  # exact, fuzzy_ratio, token_set, token_sort, partial

    # Limites d'import (écran d'upload)
    max_items: int = 10_000
    max_file_mb: float = 10.0

    def __post_init__(self) -> None:
        self.validate()

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(high=self.high_threshold, low=self.low_threshold)

    def validate(self) -> None:
        """
        Vérifie la cohérence des paramètres.

        Raises:
            ConfigError: Si un paramètre est hors bornes.
        """
        Thresholds(high=self.high_threshold, low=self.low_threshold)
        if self.concurrency < 1:
            raise ConfigError(f"concurrency doit être >= 1 (got {self.concurrency})")
        if self.max_retries < 0:
            raise ConfigError(f"max_retries doit être >= 0 (got {self.max_retries})")
        if self.retry_backoff < 0:
            raise ConfigError(f"retry_backoff doit être >= 0 (got {self.retry_backoff})")
        if self.match_timeout is not None and self.match_timeout <= 0:
            raise ConfigError(f"match_timeout doit être > 0 (got {self.match_timeout})")
        if self.top_k < 1:
            raise ConfigError(f"top_k doit être >= 1 (got {self.top_k})")
        if self.method not in VALID_METHODS:
            raise ConfigError(f"method invalide: {self.method!r}. Valides: {sorted(VALID_METHODS)}")
        if self.max_items < 1:
            raise ConfigError(f"max_items doit être >= 1 (got {self.max_items})")
        if self.max_file_mb <= 0:
            raise ConfigError(f"max_file_mb doit être > 0 (got {self.max_file_mb})")

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> EngineConfig:
        thresholds = d.get("thresholds", {})
        if not isinstance(thresholds, dict):
            raise ConfigError("thresholds doit être un objet {high, low}")
        timeout = d.get("match_timeout", 30.0)
        try:
            return cls(
                high_threshold=float(thresholds.get("high", d.get("high_threshold", 0.85))),
                low_threshold=float(thresholds.get("low", d.get("low_threshold", 0.60))),
                concurrency=int(d.get("concurrency", 4)),
                max_retries=int(d.get("max_retries", 3)),
                retry_backoff=float(d.get("retry_backoff", 0.5)),
                match_timeout=float(timeout) if timeout is not None else None,
                top_k=int(d.get("top_k", 5)),
                method=d.get("method", "token_set"),
                max_items=int(d.get("max_items", 10_000)),
                max_file_mb=float(d.get("max_file_mb", 10.0)),
            )
        except ConfigError:
            raise
        except (TypeError, ValueError) as e:
            raise ConfigError(f"valeur de configuration invalide: {e}") from e

    @classmethod
    def load(cls, path: str | Path) -> EngineConfig:
        """
        Charge la configuration depuis un fichier JSON.

        Raises:
            ConfigFileError: Si le fichier est absent ou le JSON invalide.
            ConfigError: Si la configuration est invalide.
        """
        path = Path(path).resolve()
        if not path.exists():
            raise ConfigFileError(f"Fichier de configuration introuvable: {path}")

        try:
            with open(path, encoding="utf-8") as f:
                d = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigFileError(f"JSON invalide dans {path}: {e}") from e
        except OSError as e:
            raise ConfigFileError(f"Impossible de lire {path}: {e}") from e

        if not isinstance(d, dict):
            raise ConfigFileError(f"Fichier de configuration invalide: {path} doit contenir un objet JSON")

        return cls.from_dict(d)
