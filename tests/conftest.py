"""Fixtures et faux catalogues partagés par les tests."""

from __future__ import annotations

import threading
import time
from collections import Counter
from collections.abc import Callable, Sequence

import pytest

from catmatch.catalog import CatalogError
from catmatch.config import EngineConfig
from catmatch.matching.schema import MatchCandidate, MaterialRecord

VERSION = "v1"


class StaticCatalog:
    """Catalogue dont les réponses sont fixées par texte."""

    def __init__(self, answers: dict[str, Sequence[MatchCandidate]], version: str = VERSION) -> None:
        self.answers = answers
        self.version = version
        self.calls: Counter[str] = Counter()
        self._lock = threading.Lock()

    def has_version(self, version: str) -> bool:
        return version == self.version

    def query(self, text: str, version: str, limit: int | None = None) -> list[MatchCandidate]:
        with self._lock:
            self.calls[text] += 1
        return list(self.answers.get(text, []))[:limit]


class GatedCatalog(StaticCatalog):
    """Chaque requête attend un jeton : permet de figer des matériaux "en cours"."""

    def __init__(self, answers: dict[str, Sequence[MatchCandidate]], version: str = VERSION) -> None:
        super().__init__(answers, version)
        self.gate = threading.Semaphore(0)
        self.started = 0

    def release(self, n: int = 1) -> None:
        for _ in range(n):
            self.gate.release()

    def query(self, text: str, version: str, limit: int | None = None) -> list[MatchCandidate]:
        with self._lock:
            self.started += 1
        if not self.gate.acquire(timeout=10):
            raise CatalogError("gate timeout")
        return super().query(text, version, limit)


class FlakyCatalog(StaticCatalog):
    """Échoue `failures[text]` fois pour un texte donné, puis répond normalement."""

    def __init__(
        self,
        answers: dict[str, Sequence[MatchCandidate]],
        failures: dict[str, int],
        version: str = VERSION,
    ) -> None:
        super().__init__(answers, version)
        self.failures = dict(failures)

    def query(self, text: str, version: str, limit: int | None = None) -> list[MatchCandidate]:
        with self._lock:
            self.calls[text] += 1
            remaining = self.failures.get(text, 0)
            if remaining:
                self.failures[text] = remaining - 1
                raise CatalogError(f"lookup indisponible pour {text!r}")
        return list(self.answers.get(text, []))[:limit]


class SlowCatalog(StaticCatalog):
    def __init__(self, answers: dict[str, Sequence[MatchCandidate]], delay: float) -> None:
        super().__init__(answers)
        self.delay = delay

    def query(self, text: str, version: str, limit: int | None = None) -> list[MatchCandidate]:
        time.sleep(self.delay)
        return super().query(text, version, limit)


class HangingCatalog(StaticCatalog):
    """Les textes de `hang_on` bloquent jusqu'à `unblock` ; les autres répondent aussitôt."""

    def __init__(self, answers: dict[str, Sequence[MatchCandidate]], hang_on: set[str]) -> None:
        super().__init__(answers)
        self.hang_on = hang_on
        self.unblock = threading.Event()

    def query(self, text: str, version: str, limit: int | None = None) -> list[MatchCandidate]:
        if text in self.hang_on:
            self.unblock.wait(10)
        return super().query(text, version, limit)


class MalformedCatalog(StaticCatalog):
    """Renvoie `bad[text]` tel quel, sans lever d'exception."""

    def __init__(self, answers: dict[str, Sequence[MatchCandidate]], bad: dict[str, object]) -> None:
        super().__init__(answers)
        self.bad = bad

    def query(self, text: str, version: str, limit: int | None = None):  # type: ignore[override]
        if text in self.bad:
            with self._lock:
                self.calls[text] += 1
            return self.bad[text]
        return super().query(text, version, limit)


def make_records(descriptions: Sequence[str]) -> list[MaterialRecord]:
    return [MaterialRecord(i, d) for i, d in enumerate(descriptions)]


def wait_for(predicate: Callable[[], bool], timeout: float = 5.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


@pytest.fixture
def fast_config() -> EngineConfig:
    return EngineConfig(concurrency=1, max_retries=2, retry_backoff=0.0, match_timeout=None)


@pytest.fixture
def scenario_catalog() -> StaticCatalog:
    return StaticCatalog(
        {
            "Caneta azul": [MatchCandidate("CAT-100", 0.95, "Caneta esferográfica azul")],
            "XYZ-unmatchable-123": [MatchCandidate("CAT-999", 0.10, "Item qualquer")],
            "Papel A4": [MatchCandidate("CAT-200", 0.70, "Papel A4 75g")],
        }
    )
