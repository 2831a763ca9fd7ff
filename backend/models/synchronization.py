"""
Synchronization DB Model
Recurring import definition: the importer re-runs `service_item_id` every `interval` seconds.
"""
from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, Text
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column
from .base import Base
from constants import SYNC_STATE_CREATED


class Synchronization(Base):
    __tablename__ = "synchronizations"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)  # target table name
    interval: Mapped[int] = mapped_column(Integer, nullable=False)
    state: Mapped[str] = mapped_column(String(32), nullable=False, default=SYNC_STATE_CREATED)
    service_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    service_item_id: Mapped[str | None] = mapped_column(Text, nullable=True)  # JSON payload, see schemas.do_sync.ConnectorServiceItem
    error_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    retried_times: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    run_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ran_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<Synchronization id={self.id} name={self.name} state={self.state}>"
