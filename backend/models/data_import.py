"""
DataImport and UserTable DB Models
Production-grade: type-safe, linted, SQLAlchemy 2.0+ ORM style.
DataImport rows are written by the importer workers; this service only creates them.
"""
from __future__ import annotations
import uuid
from datetime import datetime
from sqlalchemy import String, Integer, DateTime, ForeignKey, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from .base import Base
from constants import IMPORT_STATE_PENDING


class DataImport(Base):
    __tablename__ = "data_imports"

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False, index=True)
    state: Mapped[str] = mapped_column(String(32), nullable=False, default=IMPORT_STATE_PENDING)
    service_name: Mapped[str | None] = mapped_column(String(64), nullable=True)
    service_item_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    # Both set by the importer on completion; not foreign keys, the table may be dropped later
    table_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    table_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    synchronization_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True), nullable=True)
    error_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self) -> str:
        return f"<DataImport id={self.id} state={self.state} table={self.table_name}>"


class UserTable(Base):
    __tablename__ = "user_tables"
    __table_args__ = (
        UniqueConstraint("user_id", "name", name="uq_user_table_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4, unique=True, nullable=False)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    data_import_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("data_imports.id", ondelete="SET NULL"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    data_import = relationship("DataImport")

    def __repr__(self) -> str:
        return f"<UserTable id={self.id} name={self.name}>"
