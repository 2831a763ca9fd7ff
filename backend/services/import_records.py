from __future__ import annotations
from typing import Any, Optional
from uuid import UUID

from sqlalchemy import cast, exists, or_, select
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Session

from constants import DO_SYNC_SERVICE_NAME
from models.data_import import DataImport, UserTable
from models.synchronization import Synchronization


class ImportRecordStore:
    def __init__(self, db: Session) -> None:
        self.db = db

    def find_latest_import(self, user_id: UUID | str, provider: str, subscription_id: str) -> Optional[DataImport]:
        """
        Most recent connector import of the subscription that still backs something:
        either its table exists (the synchronization may have been stopped by the user)
        or its synchronization exists (the table may not exist until the first import finishes).
        """
        table_exists = exists(select(UserTable.id).where(UserTable.id == DataImport.table_id))
        sync_exists = exists(select(Synchronization.id).where(Synchronization.id == DataImport.synchronization_id))
        return (
            self.db.query(DataImport)
            .filter(DataImport.user_id == user_id)
            .filter(DataImport.service_name == DO_SYNC_SERVICE_NAME)
            .filter(cast(DataImport.service_item_id, JSONB).contains(
                {"provider": provider, "subscription_id": subscription_id}
            ))
            .filter(or_(table_exists, sync_exists))
            .order_by(DataImport.created_at.desc())
            .first()
        )

    def create_import(self, **attributes: Any) -> DataImport:
        data_import = DataImport(**attributes)
        self.db.add(data_import)
        self.db.commit()
        self.db.refresh(data_import)
        return data_import

    def find_import_for_table(self, user_id: UUID | str, table_name: str) -> Optional[DataImport]:
        table = (
            self.db.query(UserTable)
            .filter(UserTable.user_id == user_id, UserTable.name == table_name)
            .first()
        )
        if not table:
            return None
        return table.data_import

    def table_exists(self, table_id: UUID | str) -> bool:
        return self.db.query(exists().where(UserTable.id == table_id)).scalar()
