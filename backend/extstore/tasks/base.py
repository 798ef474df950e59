"""
Base Celery Task with a lazily opened database handle.

Subclasses get:
1. ``self.db`` connected on first use and released after the task returns
2. A log line when the soft time limit interrupts a task
"""

import logging
from typing import Any

from celery import Task
from celery.exceptions import SoftTimeLimitExceeded
from pymongo.database import Database

from extstore.database.mongo import get_database

logger = logging.getLogger(__name__)


class StoreTask(Task):
    abstract = True

    def __init__(self) -> None:
        self._db: Database | None = None

    def __call__(self, *args, **kwargs):
        try:
            return super().__call__(*args, **kwargs)
        except SoftTimeLimitExceeded:
            logger.error(f"Task {self.name} exceeded soft time limit")
            raise

    def after_return(
        self, status: str, retval: Any, task_id: str, args: tuple, kwargs: dict, einfo
    ):  # pragma: no cover
        """Called after task completion - drop the cached database handle."""
        # PyMongo handles pooling; no need to close.
        self._db = None

    @property
    def db(self) -> Database:
        if self._db is None:
            self._db = get_database()
        return self._db
