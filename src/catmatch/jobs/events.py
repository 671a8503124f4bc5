"""Journal d'événements append-only et progression dérivée."""

from __future__ import annotations

import threading
from collections.abc import Iterator, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from catmatch.jobs.state import JobState
from catmatch.matching.schema import Classification, MatchCandidate, MatchResult


@dataclass(frozen=True)
class ProcessingEvent:
    """Une entrée du journal : un matériau traité."""

    emitted_at: float  # time.monotonic()
    sequence_index: int
    classification: Classification
    best_candidate: MatchCandidate | None = None
    error: bool = False
    error_message: str | None = None
    raw_description: str = ""
    logged_at: datetime = field(default_factory=datetime.now)

    @classmethod
    def from_result(
        cls,
        result: MatchResult,
        emitted_at: float,
        *,
        raw_description: str = "",
        error_message: str | None = None,
    ) -> ProcessingEvent:
        return cls(
            emitted_at=emitted_at,
            sequence_index=result.sequence_index,
            classification=result.classification,
            best_candidate=result.best_candidate,
            error=result.error,
            error_message=error_message,
            raw_description=raw_description,
        )


@dataclass(frozen=True)
class JobStats:
    """Compteurs agrégés, toujours calculés à partir des événements."""

    processed_count: int = 0
    matched_count: int = 0
    pending_count: int = 0
    not_found_count: int = 0
    error_count: int = 0

    @classmethod
    def fold(cls, events: Sequence[ProcessingEvent]) -> JobStats:
        matched = pending = not_found = errors = 0
        for ev in events:
            if ev.classification is Classification.MATCHED:
                matched += 1
            elif ev.classification is Classification.PENDING:
                pending += 1
            else:
                not_found += 1
            if ev.error:
                errors += 1
        return cls(
            processed_count=len(events),
            matched_count=matched,
            pending_count=pending,
            not_found_count=not_found,
            error_count=errors,
        )


@dataclass(frozen=True)
class JobProgress:
    """Instantané de progression d'un job."""

    job_id: str
    state: JobState
    total_items: int
    stats: JobStats
    estimated_remaining_seconds: float | None = None

    @property
    def processed_count(self) -> int:
        return self.stats.processed_count

    @property
    def matched_count(self) -> int:
        return self.stats.matched_count

    @property
    def pending_count(self) -> int:
        return self.stats.pending_count

    @property
    def not_found_count(self) -> int:
        return self.stats.not_found_count

    @property
    def percent(self) -> float:
        if self.total_items == 0:
            return 100.0
        return 100.0 * self.stats.processed_count / self.total_items

    def as_dict(self) -> dict[str, object]:
        return {
            "job_id": self.job_id,
            "state": self.state.value,
            "processed_count": self.processed_count,
            "total_items": self.total_items,
            "matched_count": self.matched_count,
            "pending_count": self.pending_count,
            "not_found_count": self.not_found_count,
            "percent": round(self.percent, 1),
            "estimated_remaining_seconds": self.estimated_remaining_seconds,
        }


def estimate_remaining(
    events: Sequence[ProcessingEvent],
    total_items: int,
    started_at: float | None,
) -> float | None:
    """Temps restant estimé (secondes) d'après le rythme observé ; None si inconnu."""
    if started_at is None or not events:
        return None
    remaining = total_items - len(events)
    if remaining <= 0:
        return 0.0
    elapsed = events[-1].emitted_at - started_at
    if elapsed <= 0:
        return None
    return remaining * elapsed / len(events)


class EventLog:
    """
    Journal append-only des événements d'un job.

    Un seul écrivain (le contrôleur), plusieurs lecteurs : chaque abonné lit
    depuis le journal avec son propre curseur, sans affecter les autres.
    Une fois fermé (état terminal), le journal reste relisable en entier.
    """

    def __init__(self) -> None:
        self._events: list[ProcessingEvent] = []
        self._closed = False
        self._cond = threading.Condition()

    def __len__(self) -> int:
        with self._cond:
            return len(self._events)

    @property
    def closed(self) -> bool:
        return self._closed

    def append(self, event: ProcessingEvent) -> None:
        with self._cond:
            if self._closed:
                raise RuntimeError("EventLog fermé: aucun ajout possible")
            self._events.append(event)
            self._cond.notify_all()

    def close(self) -> None:
        with self._cond:
            self._closed = True
            self._cond.notify_all()

    def snapshot(self) -> tuple[ProcessingEvent, ...]:
        """Copie atomique des événements émis jusqu'ici."""
        with self._cond:
            return tuple(self._events)

    def subscribe(self, timeout: float | None = None) -> Iterator[ProcessingEvent]:
        """
        Itère sur les événements depuis le début, puis en direct.

        S'arrête quand le journal est fermé et que tout a été livré.

        Args:
            timeout: Attente maximale (secondes) d'un nouvel événement ;
                None = attendre indéfiniment.

        Raises:
            TimeoutError: Si aucun événement n'arrive dans le délai.
        """
        cursor = 0
        while True:
            with self._cond:
                if not self._cond.wait_for(lambda: cursor < len(self._events) or self._closed, timeout):
                    raise TimeoutError(f"Aucun événement reçu en {timeout}s")
                batch = self._events[cursor:]
                closed = self._closed
            yield from batch
            cursor += len(batch)
            if closed:
                return
