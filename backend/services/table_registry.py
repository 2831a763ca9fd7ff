from __future__ import annotations
import logging
from uuid import UUID

from sqlalchemy import text
from sqlalchemy.orm import Session

from models.data_import import UserTable
from models.synchronization import Synchronization

logger = logging.getLogger("table_registry")


class TableNotFoundError(LookupError):
    pass


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


class TableRegistry:
    def __init__(self, db: Session) -> None:
        self.db = db

    def delete_table_and_visualization(self, table_id: UUID | str) -> None:
        """
        Drop a user table together with the synchronization that feeds it,
        so that no further recurring imports run.
        """
        table = self.db.query(UserTable).filter(UserTable.id == table_id).first()
        if table is None:
            raise TableNotFoundError(f"Table {table_id} not found")
        data_import = table.data_import
        if data_import is not None and data_import.synchronization_id is not None:
            self.db.query(Synchronization).filter(
                Synchronization.id == data_import.synchronization_id
            ).delete(synchronize_session=False)
        self.db.execute(text(f"DROP TABLE IF EXISTS {_quote_ident(table.name)}"))
        self.db.delete(table)
        self.db.commit()
        logger.info("deleted table id=%s name=%s", table_id, table.name)
