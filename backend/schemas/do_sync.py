"""
DO sync Pydantic Schemas
Subscriptions and views as read from the catalog, table statistics, the derived
sync status returned to API callers, and the connector payload stored on imports.
"""
from __future__ import annotations
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from constants import DO_SYNC_PROVIDER


class SubscriptionType(str, Enum):
    DATASET = "dataset"
    GEOGRAPHY = "geography"


class SyncStatusValue(str, Enum):
    UNSYNCABLE = "unsyncable"
    UNSYNCED = "unsynced"
    SYNCING = "syncing"
    SYNCED = "synced"


class Subscription(BaseModel):
    model_config = ConfigDict(extra="ignore")

    id: str
    type: SubscriptionType
    expires_at: datetime
    project: Optional[str] = None
    dataset: Optional[str] = None
    table: Optional[str] = None


class SubscriptionViews(BaseModel):
    data: Optional[str] = None
    geography: Optional[str] = None


class TableStats(BaseModel):
    num_bytes: int = 0
    num_rows: Optional[int] = None
    num_columns: int = 0


class SyncStatus(BaseModel):
    """Point-in-time sync status; recomputed on every request, never stored."""

    status: SyncStatusValue
    unsyncable_reason: Optional[str] = None
    estimated_size: Optional[int] = None
    estimated_row_count: Optional[int] = None
    sync_table: Optional[str] = None
    sync_table_id: Optional[str] = None
    synchronization_id: Optional[str] = None
    unsynced_errors: Optional[List[str]] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)


class ConnectorServiceItem(BaseModel):
    """Payload stored (as JSON text) in `service_item_id` of imports and synchronizations."""

    model_config = ConfigDict(extra="ignore")

    provider: str
    subscription_id: str
    import_as: Optional[str] = None

    @classmethod
    def for_subscription(cls, subscription_id: str, import_as: str) -> "ConnectorServiceItem":
        return cls(provider=DO_SYNC_PROVIDER, subscription_id=subscription_id, import_as=import_as)

    def to_json(self) -> str:
        return self.model_dump_json(exclude_none=True)

    @property
    def is_do_subscription(self) -> bool:
        return self.provider == DO_SYNC_PROVIDER


class SubscriptionForSyncTable(BaseModel):
    table_name: str
    subscription_id: Optional[str] = Field(default=None)
