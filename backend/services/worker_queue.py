from __future__ import annotations
import json
import logging
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from constants import IMPORTER_JOBS_CHANNEL

logger = logging.getLogger("importer_queue")


class WorkerQueue:
    """Hands import jobs to the importer workers, which LISTEN on a Postgres channel."""

    def __init__(self, db: Session, channel: str = IMPORTER_JOBS_CHANNEL) -> None:
        self.db = db
        self.channel = channel

    def enqueue_import(self, job_id: UUID | str) -> None:
        payload = json.dumps({"job_id": str(job_id)})
        self.db.execute(text("SELECT pg_notify(:channel, :payload)"), {"channel": self.channel, "payload": payload})
        # NOTIFY is only delivered on commit
        self.db.commit()
        logger.info("enqueue_import channel=%s job_id=%s", self.channel, job_id)
