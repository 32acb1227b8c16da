"""Collection run scheduling: single-flight runs and their cron trigger."""

from .collection import CollectionScheduler, RunStore
from .trigger import CollectionTrigger

__all__ = ["CollectionScheduler", "CollectionTrigger", "RunStore"]
