"""Jobs de matching : cycle de vie, journal d'événements, remise pour revue."""

from catmatch.jobs.controller import Job, JobController
from catmatch.jobs.events import EventLog, JobProgress, JobStats, ProcessingEvent
from catmatch.jobs.review import ReviewPartition, build_review_partition
from catmatch.jobs.state import InvalidStateTransition, JobNotFound, JobNotTerminal, JobState

__all__ = [
    "EventLog",
    "InvalidStateTransition",
    "Job",
    "JobController",
    "JobNotFound",
    "JobNotTerminal",
    "JobProgress",
    "JobState",
    "JobStats",
    "ProcessingEvent",
    "ReviewPartition",
    "build_review_partition",
]
