"""Catalogue CATMAT : interface du fournisseur et implémentation en mémoire."""

from __future__ import annotations

import hashlib
import logging
import threading
from collections.abc import Iterable, Sequence
from typing import Protocol, runtime_checkable

from rapidfuzz import process

from catmatch.config import VALID_METHODS, CatmatchError, ConfigError
from catmatch.matching.schema import CatalogEntry, MatchCandidate
from catmatch.matching.scorers import SCORERS
from catmatch.normalize import norm_material

logger = logging.getLogger(__name__)


class CatalogError(CatmatchError):
    """Erreur de recherche dans le catalogue."""


class UnknownCatalogVersion(CatalogError, KeyError):
    """Version de catalogue inexistante."""


@runtime_checkable
class CatalogProvider(Protocol):
    """Recherche de candidats pour un texte dans une version donnée du catalogue."""

    def query(self, text: str, version: str, limit: int | None = None) -> Sequence[MatchCandidate]:
        """Candidats triés par score décroissant, scores dans [0, 1]."""
        ...

    def has_version(self, version: str) -> bool:
        ...


class _Snapshot:
    """Version figée du catalogue : entrées et libellés normalisés."""

    def __init__(self, entries: Sequence[CatalogEntry]) -> None:
        self.entries = tuple(entries)
        self.normalized = tuple(norm_material(e.canonical_description) for e in self.entries)


class InMemoryCatalog:
    """
    Catalogue en mémoire, versionné.

    Chaque publication crée un instantané immuable ; un job travaille sur une
    version épinglée, les publications ultérieures ne l'affectent pas.
    """

    def __init__(
        self,
        entries: Iterable[CatalogEntry] | None = None,
        *,
        method: str = "token_set",
        version: str | None = None,
    ) -> None:
        if method not in VALID_METHODS:
            raise ConfigError(f"method invalide: {method!r}. Valides: {sorted(VALID_METHODS)}")
        self.method = method
        self._snapshots: dict[str, _Snapshot] = {}
        self._latest: str | None = None
        self._lock = threading.Lock()
        if entries is not None:
            self.publish(entries, version=version)

    @property
    def latest_version(self) -> str | None:
        return self._latest

    def versions(self) -> list[str]:
        with self._lock:
            return list(self._snapshots)

    def has_version(self, version: str) -> bool:
        return version in self._snapshots

    def publish(self, entries: Iterable[CatalogEntry], version: str | None = None) -> str:
        """
        Publie une nouvelle version du catalogue.

        Args:
            entries: Entrées du catalogue (catalog_id unique).
            version: Identifiant de version ; par défaut un hash du contenu.

        Returns:
            L'identifiant de la version publiée.

        Raises:
            CatalogError: Si un catalog_id est dupliqué ou la version existe déjà.
        """
        items = list(entries)
        seen: set[str] = set()
        for e in items:
            if e.catalog_id in seen:
                raise CatalogError(f"catalog_id dupliqué: {e.catalog_id!r}")
            seen.add(e.catalog_id)

        content_hash = version is None
        if version is None:
            digest = hashlib.sha256()
            for e in items:
                digest.update(f"{e.catalog_id}\x1f{e.canonical_description}\x1e".encode())
            version = digest.hexdigest()[:12]

        snapshot = _Snapshot(items)
        with self._lock:
            if version in self._snapshots:
                if content_hash:
                    # Même contenu, même version
                    return version
                raise CatalogError(f"Version de catalogue déjà publiée: {version}")
            self._snapshots[version] = snapshot
            self._latest = version
        logger.info("Catalogue publié: version=%s, %d entrées", version, len(items))
        return version

    def _snapshot(self, version: str) -> _Snapshot:
        try:
            return self._snapshots[version]
        except KeyError:
            raise UnknownCatalogVersion(f"Version de catalogue inconnue: {version}") from None

    def get(self, catalog_id: str, version: str) -> CatalogEntry | None:
        for e in self._snapshot(version).entries:
            if e.catalog_id == catalog_id:
                return e
        return None

    def query(self, text: str, version: str, limit: int | None = None) -> list[MatchCandidate]:
        """
        Retourne les candidats pour un texte, triés par (score décroissant, catalog_id).

        Les candidats de score nul sont omis.
        """
        snap = self._snapshot(version)
        q = norm_material(text)
        if not q or not snap.entries:
            return []

        if self.method == "exact":
            scored = [(idx, 1.0) for idx, c in enumerate(snap.normalized) if c == q]
        else:
            hits = process.extract(q, snap.normalized, scorer=SCORERS[self.method], processor=None, limit=None)
            scored = [(idx, score / 100.0) for _, score, idx in hits if score > 0]

        candidates = [
            MatchCandidate(
                catalog_id=snap.entries[idx].catalog_id,
                score=float(score),
                description=snap.entries[idx].canonical_description,
            )
            for idx, score in scored
        ]
        candidates.sort(key=lambda c: (-c.score, c.catalog_id))
        if limit is not None:
            candidates = candidates[:limit]
        return candidates
