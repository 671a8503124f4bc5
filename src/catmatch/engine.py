"""Façade du moteur : création et pilotage des jobs par identifiant."""

from __future__ import annotations

import logging
import threading
import uuid
from collections.abc import Iterable, Iterator
from typing import Any

from catmatch.catalog import CatalogProvider
from catmatch.config import ConfigError, EngineConfig, Thresholds, ValidationError
from catmatch.jobs.controller import Job, JobController
from catmatch.jobs.events import JobProgress, ProcessingEvent
from catmatch.jobs.review import ReviewPartition
from catmatch.jobs.state import JobNotFound, JobNotTerminal
from catmatch.matching.schema import MaterialRecord

logger = logging.getLogger(__name__)


class MatchingEngine:
    """
    Moteur de matching : plusieurs jobs indépendants, adressés par job_id.

    Chaque job a son propre contrôleur ; aucun état mutable n'est partagé
    entre jobs, hormis le catalogue (lecture seule).
    """

    def __init__(self, provider: CatalogProvider, config: EngineConfig | None = None) -> None:
        self.provider = provider
        self.config = config or EngineConfig()
        self._controllers: dict[str, JobController] = {}
        self._lock = threading.Lock()

    def create_job(
        self,
        records: Iterable[MaterialRecord],
        catalog_version: str,
        thresholds: Thresholds | dict[str, Any] | None = None,
        concurrency: int | None = None,
        *,
        name: str = "",
    ) -> str:
        """
        Enregistre un job (état created) ; aucun matériau n'est encore envoyé.

        Raises:
            ValidationError: Entrée vide, sequence_index dupliqué, description
                vide ou version de catalogue inconnue.
            ConfigError: Seuils ou concurrence invalides.
        """
        items = sorted(records, key=lambda r: r.sequence_index)
        if not items:
            raise ValidationError("Aucun matériau à traiter")
        if len(items) > self.config.max_items:
            raise ValidationError(f"Trop de matériaux: {len(items)} (max {self.config.max_items})")
        seen: set[int] = set()
        for r in items:
            if r.sequence_index in seen:
                raise ValidationError(f"sequence_index dupliqué: {r.sequence_index}")
            seen.add(r.sequence_index)
            if not r.raw_description or not r.raw_description.strip():
                raise ValidationError(f"Description vide (ligne {r.sequence_index})")

        if thresholds is None:
            thresholds = self.config.thresholds
        elif isinstance(thresholds, dict):
            thresholds = Thresholds.from_dict(thresholds)

        if concurrency is None:
            concurrency = self.config.concurrency
        if concurrency < 1:
            raise ConfigError(f"concurrency doit être >= 1 (got {concurrency})")

        if not self.provider.has_version(catalog_version):
            raise ValidationError(f"Version de catalogue inconnue: {catalog_version}")

        job = Job(
            job_id=uuid.uuid4().hex,
            records=tuple(items),
            catalog_version=catalog_version,
            thresholds=thresholds,
            concurrency=concurrency,
            name=name,
        )
        controller = JobController(
            job,
            self.provider,
            max_retries=self.config.max_retries,
            retry_backoff=self.config.retry_backoff,
            match_timeout=self.config.match_timeout,
            top_k=self.config.top_k,
        )
        with self._lock:
            self._controllers[job.job_id] = controller
        logger.info(
            "Job %s créé: %d matériaux, catalogue %s, seuils high=%.2f low=%.2f, workers=%d",
            job.job_id,
            job.total_items,
            catalog_version,
            thresholds.high,
            thresholds.low,
            concurrency,
        )
        return job.job_id

    def _controller(self, job_id: str) -> JobController:
        with self._lock:
            try:
                return self._controllers[job_id]
            except KeyError:
                raise JobNotFound(f"Job inconnu: {job_id}") from None

    def get_job(self, job_id: str) -> Job:
        return self._controller(job_id).job

    def list_jobs(self) -> list[Job]:
        """Jobs connus, du plus ancien au plus récent."""
        with self._lock:
            jobs = [c.job for c in self._controllers.values()]
        return sorted(jobs, key=lambda j: j.created_at)

    def start(self, job_id: str) -> None:
        self._controller(job_id).start()

    def pause(self, job_id: str) -> None:
        self._controller(job_id).pause()

    def resume(self, job_id: str) -> None:
        self._controller(job_id).resume()

    def cancel(self, job_id: str) -> None:
        self._controller(job_id).cancel()

    def wait(self, job_id: str, timeout: float | None = None) -> bool:
        """Attend la fin (completed ou cancelled) ; False si le délai expire."""
        return self._controller(job_id).wait(timeout)

    def get_progress(self, job_id: str) -> JobProgress:
        return self._controller(job_id).progress()

    def subscribe_events(self, job_id: str, timeout: float | None = None) -> Iterator[ProcessingEvent]:
        """
        Flux des événements du job, depuis le premier.

        Se termine après l'état terminal et la livraison du dernier événement.
        Chaque appel crée un abonné indépendant.
        """
        return self._controller(job_id).job.log.subscribe(timeout=timeout)

    def get_review_partition(self, job_id: str) -> ReviewPartition:
        """
        Partition matched/pending/not_found du job.

        Raises:
            JobNotTerminal: Si le job n'est ni completed ni cancelled.
        """
        job = self._controller(job_id).job
        if not job.state.is_terminal or job.review is None:
            raise JobNotTerminal(f"Job {job_id} en cours ({job.state.value}): partition indisponible")
        return job.review
