"""Machine à états d'un job de matching."""

from __future__ import annotations

from enum import Enum

from catmatch.config import CatmatchError


class JobState(str, Enum):
    """États du cycle de vie d'un job."""

    CREATED = "created"
    RUNNING = "running"
    PAUSED = "paused"
    COMPLETING = "completing"
    COMPLETED = "completed"
    CANCELLING = "cancelling"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES = frozenset({JobState.COMPLETED, JobState.CANCELLED})

# Un job en pause dont tous les matériaux sont déjà partis finit quand même
TRANSITIONS: dict[JobState, frozenset[JobState]] = {
    JobState.CREATED: frozenset({JobState.RUNNING, JobState.CANCELLING}),
    JobState.RUNNING: frozenset({JobState.PAUSED, JobState.COMPLETING, JobState.CANCELLING}),
    JobState.PAUSED: frozenset({JobState.RUNNING, JobState.COMPLETING, JobState.CANCELLING}),
    JobState.COMPLETING: frozenset({JobState.COMPLETED}),
    JobState.CANCELLING: frozenset({JobState.CANCELLED}),
    JobState.COMPLETED: frozenset(),
    JobState.CANCELLED: frozenset(),
}


class InvalidStateTransition(CatmatchError):
    """Transition refusée ; l'état du job est inchangé."""

    def __init__(self, job_id: str, current: JobState, requested: str) -> None:
        super().__init__(f"Job {job_id}: '{requested}' impossible depuis l'état {current.value}")
        self.job_id = job_id
        self.current = current
        self.requested = requested


class JobNotTerminal(CatmatchError):
    """Le job n'est ni terminé ni annulé."""


class JobNotFound(CatmatchError, KeyError):
    """Identifiant de job inconnu."""


def can_transition(current: JobState, target: JobState) -> bool:
    return target in TRANSITIONS[current]
