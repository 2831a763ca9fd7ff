from __future__ import annotations
from typing import Any, Optional
from uuid import UUID

from sqlalchemy.orm import Session

from models.synchronization import Synchronization


class SynchronizationScheduler:
    """Stores recurring synchronization definitions; the importer workers run them."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def create_schedule(self, **attributes: Any) -> Synchronization:
        sync = Synchronization(**attributes)
        self.db.add(sync)
        self.db.commit()
        self.db.refresh(sync)
        return sync

    def update_schedule_state(self, synchronization_id: UUID | str, state: str) -> None:
        sync = self.find_schedule(synchronization_id)
        if sync is None:
            raise LookupError(f"Synchronization {synchronization_id} not found")
        sync.state = state
        self.db.commit()

    def find_schedule(self, synchronization_id: UUID | str | None) -> Optional[Synchronization]:
        if synchronization_id is None:
            return None
        return self.db.query(Synchronization).filter(Synchronization.id == synchronization_id).first()

    def delete_schedule(self, synchronization_id: UUID | str) -> None:
        sync = self.find_schedule(synchronization_id)
        if sync is None:
            raise LookupError(f"Synchronization {synchronization_id} not found")
        self.db.delete(sync)
        self.db.commit()
