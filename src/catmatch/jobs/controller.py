"""Contrôleur de job : cycle de vie, dispatch borné, reprises sur erreur."""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime

from catmatch.catalog import CatalogProvider
from catmatch.config import Thresholds
from catmatch.jobs.events import EventLog, JobProgress, JobStats, ProcessingEvent, estimate_remaining
from catmatch.jobs.review import ReviewPartition, build_review_partition
from catmatch.jobs.state import InvalidStateTransition, JobState, can_transition
from catmatch.matching.matcher import MatchError, match
from catmatch.matching.schema import Classification, MaterialRecord, MatchResult

logger = logging.getLogger(__name__)


@dataclass
class Job:
    """Unité de travail : une séquence figée de matériaux et une version de catalogue."""

    job_id: str
    records: tuple[MaterialRecord, ...]
    catalog_version: str
    thresholds: Thresholds
    concurrency: int = 1
    name: str = ""
    state: JobState = JobState.CREATED
    results: dict[int, MatchResult] = field(default_factory=dict)
    log: EventLog = field(default_factory=EventLog)
    review: ReviewPartition | None = None
    created_at: datetime = field(default_factory=datetime.now)
    started_at: float | None = None  # time.monotonic()
    finished_at: datetime | None = None

    @property
    def total_items(self) -> int:
        return len(self.records)

    @property
    def events(self) -> tuple[ProcessingEvent, ...]:
        return self.log.snapshot()

    @property
    def stats(self) -> JobStats:
        return JobStats.fold(self.log.snapshot())


class JobController:
    """
    Pilote un job : seul écrivain de son état, de ses résultats et de son journal.

    Les matériaux partent dans l'ordre des sequence_index vers un pool de
    `job.concurrency` workers. pause() et cancel() bloquent les nouveaux envois
    mais laissent finir ceux déjà partis, qui sont toujours enregistrés.
    """

    def __init__(
        self,
        job: Job,
        provider: CatalogProvider,
        *,
        max_retries: int = 3,
        retry_backoff: float = 0.5,
        match_timeout: float | None = 30.0,
        top_k: int | None = 5,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.job = job
        self.provider = provider
        self.max_retries = max_retries
        self.retry_backoff = retry_backoff
        self.match_timeout = match_timeout
        self.top_k = top_k
        self._sleep = sleep

        self._cond = threading.Condition()
        self._next_index = 0
        self._in_flight = 0
        self._dispatcher: threading.Thread | None = None
        self._done = threading.Event()

    @property
    def job_id(self) -> str:
        return self.job.job_id

    @property
    def state(self) -> JobState:
        return self.job.state

    # -- Transitions -------------------------------------------------------

    def _transition(self, target: JobState, requested: str) -> None:
        """Change d'état ; à appeler avec self._cond acquis."""
        current = self.job.state
        if not can_transition(current, target):
            raise InvalidStateTransition(self.job_id, current, requested)
        self.job.state = target
        logger.info("Job %s: %s -> %s", self.job_id, current.value, target.value)
        self._cond.notify_all()

    def start(self) -> None:
        """Démarre le traitement (created → running)."""
        with self._cond:
            if self.job.state is not JobState.CREATED:
                raise InvalidStateTransition(self.job_id, self.job.state, "start")
            self._transition(JobState.RUNNING, "start")
            self.job.started_at = time.monotonic()
            self._dispatcher = threading.Thread(
                target=self._run,
                name=f"catmatch-job-{self.job_id}",
                daemon=True,
            )
            self._dispatcher.start()

    def pause(self) -> None:
        """Suspend les nouveaux envois (running → paused)."""
        with self._cond:
            if self.job.state is not JobState.RUNNING:
                raise InvalidStateTransition(self.job_id, self.job.state, "pause")
            self._transition(JobState.PAUSED, "pause")

    def resume(self) -> None:
        """Reprend là où le job s'était arrêté (paused → running)."""
        with self._cond:
            if self.job.state is not JobState.PAUSED:
                raise InvalidStateTransition(self.job_id, self.job.state, "resume")
            self._transition(JobState.RUNNING, "resume")

    def cancel(self) -> None:
        """
        Demande l'annulation.

        Les matériaux en cours finissent et sont enregistrés ; aucun nouvel
        envoi. Un job jamais démarré passe directement à cancelled.
        """
        with self._cond:
            self._transition(JobState.CANCELLING, "cancel")
            if self._dispatcher is None:
                self._finish(JobState.CANCELLED)

    def _finish(self, target: JobState) -> None:
        """Passe à l'état terminal et fige le journal ; self._cond acquis."""
        if target is JobState.COMPLETED:
            self._transition(JobState.COMPLETING, "complete")
        self.job.review = build_review_partition(
            self.job.results,
            (r.sequence_index for r in self.job.records),
        )
        self._transition(target, target.value)
        self.job.finished_at = datetime.now()
        self.job.log.close()
        self._done.set()
        stats = JobStats.fold(self.job.log.snapshot())
        logger.info(
            "Job %s %s: %d/%d traités (matched=%d, pending=%d, not_found=%d, erreurs=%d)",
            self.job_id,
            target.value,
            stats.processed_count,
            self.job.total_items,
            stats.matched_count,
            stats.pending_count,
            stats.not_found_count,
            stats.error_count,
        )

    # -- Lecture -----------------------------------------------------------

    def progress(self) -> JobProgress:
        """Instantané cohérent : compteurs et état lus sous le même verrou que les ajouts."""
        with self._cond:
            state = self.job.state
            events = self.job.log.snapshot()
        return JobProgress(
            job_id=self.job_id,
            state=state,
            total_items=self.job.total_items,
            stats=JobStats.fold(events),
            estimated_remaining_seconds=(
                None if state.is_terminal else estimate_remaining(events, self.job.total_items, self.job.started_at)
            ),
        )

    def wait(self, timeout: float | None = None) -> bool:
        """Attend l'état terminal ; retourne False si le délai expire."""
        return self._done.wait(timeout)

    # -- Dispatch ----------------------------------------------------------

    def _may_proceed(self) -> bool:
        state = self.job.state
        if state is JobState.CANCELLING or self._next_index >= self.job.total_items:
            return True
        return state is JobState.RUNNING and self._in_flight < self.job.concurrency

    def _run(self) -> None:
        workers = self.job.concurrency
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix=f"catmatch-{self.job_id}") as pool:
            while True:
                with self._cond:
                    self._cond.wait_for(self._may_proceed)
                    if self.job.state is JobState.CANCELLING or self._next_index >= self.job.total_items:
                        break
                    record = self.job.records[self._next_index]
                    self._next_index += 1
                    self._in_flight += 1
                future = pool.submit(self._process, record)
                future.add_done_callback(self._check_worker)

            with self._cond:
                self._cond.wait_for(lambda: self._in_flight == 0)
                if self.job.state is JobState.CANCELLING:
                    self._finish(JobState.CANCELLED)
                else:
                    self._finish(JobState.COMPLETED)

    @staticmethod
    def _check_worker(future: Future) -> None:
        exc = future.exception()
        if exc is not None:
            logger.error("Worker interrompu par une exception inattendue", exc_info=exc)

    def _process(self, record: MaterialRecord) -> None:
        try:
            try:
                result, error_message = self._match_with_retry(record)
            except Exception as e:
                # Le matériau est enregistré quoi qu'il arrive
                logger.exception("Job %s: ligne %d, erreur inattendue", self.job_id, record.sequence_index)
                result = MatchResult(
                    sequence_index=record.sequence_index,
                    classification=Classification.NOT_FOUND,
                    explanation="Erreur inattendue pendant le matching",
                    error=True,
                )
                error_message = repr(e)
            self._record(record, result, error_message)
        finally:
            with self._cond:
                self._in_flight -= 1
                self._cond.notify_all()

    def _match_once(self, record: MaterialRecord) -> MatchResult:
        """
        Une tentative de matching, bornée par match_timeout.

        Chaque tentative a son propre thread démon : une recherche bloquée
        n'occupe aucun worker et n'empêche pas la sortie du processus.
        """
        args = (record, self.provider, self.job.catalog_version, self.job.thresholds)
        if self.match_timeout is None:
            return match(*args, top_k=self.top_k)

        outcome: list[MatchResult] = []
        failure: list[BaseException] = []

        def lookup() -> None:
            try:
                outcome.append(match(*args, top_k=self.top_k))
            except BaseException as e:
                failure.append(e)

        thread = threading.Thread(
            target=lookup,
            name=f"catmatch-lookup-{self.job_id}-{record.sequence_index}",
            daemon=True,
        )
        thread.start()
        thread.join(self.match_timeout)
        if thread.is_alive():
            logger.warning(
                "Job %s: ligne %d, recherche abandonnée après %ss",
                self.job_id,
                record.sequence_index,
                self.match_timeout,
            )
            raise MatchError(
                record.sequence_index,
                TimeoutError(f"recherche catalogue > {self.match_timeout}s"),
            )
        if failure:
            raise failure[0]
        return outcome[0]

    def _match_with_retry(self, record: MaterialRecord) -> tuple[MatchResult, str | None]:
        """
        Matche un matériau avec reprises bornées et backoff exponentiel.

        Après épuisement des reprises, le matériau est enregistré not_found
        avec le drapeau error ; l'erreur ne remonte jamais au job.
        """
        attempt = 0
        while True:
            try:
                return self._match_once(record), None
            except MatchError as e:
                attempt += 1
                if attempt > self.max_retries:
                    logger.error(
                        "Job %s: ligne %d abandonnée après %d tentative(s): %r",
                        self.job_id,
                        record.sequence_index,
                        attempt,
                        e.cause,
                    )
                    result = MatchResult(
                        sequence_index=record.sequence_index,
                        classification=Classification.NOT_FOUND,
                        explanation=f"Erreur catalogue après {attempt} tentative(s)",
                        error=True,
                    )
                    return result, str(e.cause)
                delay = self.retry_backoff * 2 ** (attempt - 1)
                logger.warning(
                    "Job %s: ligne %d, tentative %d/%d échouée (%r), nouvel essai dans %.2fs",
                    self.job_id,
                    record.sequence_index,
                    attempt,
                    self.max_retries + 1,
                    e.cause,
                    delay,
                )
                if delay > 0:
                    self._sleep(delay)

    def _record(self, record: MaterialRecord, result: MatchResult, error_message: str | None) -> None:
        event = ProcessingEvent.from_result(
            result,
            time.monotonic(),
            raw_description=record.raw_description,
            error_message=error_message,
        )
        with self._cond:
            if result.sequence_index in self.job.results:
                raise RuntimeError(f"Ligne {result.sequence_index} déjà enregistrée pour le job {self.job_id}")
            self.job.results[result.sequence_index] = result
            self.job.log.append(event)
        logger.debug(
            "Job %s: ligne %d -> %s (%s)",
            self.job_id,
            result.sequence_index,
            result.classification.value,
            result.explanation,
        )
