import json
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Optional

import pytest

from constants import DO_SYNC_PROVIDER, DO_SYNC_SERVICE_NAME, IMPORT_STATE_PENDING
from schemas.do_sync import Subscription, TableStats
from services.catalog_client import InvalidSubscriptionError
from services.do_sync import SubscriptionViewResolver, SyncLifecycleManager, SyncStatusEvaluator
from services.settings import DoSyncSettings

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=timezone.utc)
USER_ID = "8f4e1f2a-0000-4000-8000-000000000001"


class FakeCatalog:
    def __init__(self):
        self.subscriptions: dict[str, Subscription] = {}
        self.geography_ids: dict[str, str] = {}
        self.malformed: set[str] = set()

    def add(self, subscription_id: str, type_: str = "dataset", expires_at: Optional[datetime] = None,
            geography_id: Optional[str] = None, **identifiers):
        parts = subscription_id.split(".")
        project, dataset, table = parts if len(parts) == 3 else (None, None, None)
        project = identifiers.get("project", project)
        dataset = identifiers.get("dataset", dataset)
        table = identifiers.get("table", table)
        self.subscriptions[subscription_id] = Subscription(
            id=subscription_id,
            type=type_,
            expires_at=expires_at or NOW + timedelta(days=30),
            project=project,
            dataset=dataset,
            table=table,
        )
        if geography_id:
            self.geography_ids[subscription_id] = geography_id

    def get_subscription(self, subscription_id):
        if subscription_id in self.malformed:
            raise InvalidSubscriptionError(f"Invalid subscription {subscription_id}: malformed catalog entry (expires_at)")
        return self.subscriptions.get(subscription_id)

    def get_dataset_geography_id(self, dataset_id):
        return self.geography_ids.get(dataset_id)


class FakeStats:
    def __init__(self):
        self.tables: dict[str, TableStats] = {}
        self.calls: list[str] = []

    def get_table_stats(self, fully_qualified_name):
        self.calls.append(fully_qualified_name)
        return self.tables.get(fully_qualified_name, TableStats(num_bytes=0, num_rows=None, num_columns=0))


@dataclass
class FakeImport:
    user_id: str
    service_name: Optional[str] = None
    service_item_id: Optional[str] = None
    synchronization_id: Optional[uuid.UUID] = None
    state: str = IMPORT_STATE_PENDING
    table_id: Optional[uuid.UUID] = None
    table_name: Optional[str] = None
    error_code: Optional[int] = None
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=datetime.utcnow)


@dataclass
class FakeSchedule:
    user_id: str
    name: Optional[str]
    state: str
    service_name: Optional[str]
    service_item_id: Optional[str]
    interval: int
    id: uuid.UUID = field(default_factory=uuid.uuid4)


class FakeScheduler:
    def __init__(self):
        self.schedules: dict[uuid.UUID, FakeSchedule] = {}
        self.events: list[tuple] = []

    def create_schedule(self, **attributes):
        sync = FakeSchedule(**attributes)
        self.schedules[sync.id] = sync
        self.events.append(("create_schedule", sync.id, sync.state))
        return sync

    def update_schedule_state(self, synchronization_id, state):
        self.schedules[synchronization_id].state = state
        self.events.append(("update_schedule_state", synchronization_id, state))

    def find_schedule(self, synchronization_id):
        if synchronization_id is None:
            return None
        return self.schedules.get(synchronization_id)

    def delete_schedule(self, synchronization_id):
        del self.schedules[synchronization_id]
        self.events.append(("delete_schedule", synchronization_id))


class FakeImportStore:
    def __init__(self, scheduler: FakeScheduler):
        self.scheduler = scheduler
        self.imports: list[FakeImport] = []
        self.tables: dict[str, FakeImport] = {}  # table name -> import that created it
        self._seq = 0

    def _matches(self, data_import, provider, subscription_id):
        if data_import.service_name != DO_SYNC_SERVICE_NAME:
            return False
        payload = json.loads(data_import.service_item_id or "{}")
        return payload.get("provider") == provider and payload.get("subscription_id") == subscription_id

    def _backed(self, data_import):
        table_ids = {i.table_id for i in self.tables.values()}
        return data_import.table_id in table_ids or self.scheduler.find_schedule(data_import.synchronization_id) is not None

    def find_latest_import(self, user_id, provider, subscription_id):
        found = [
            i for i in self.imports
            if i.user_id == user_id and self._matches(i, provider, subscription_id) and self._backed(i)
        ]
        return found[-1] if found else None

    def create_import(self, **attributes):
        data_import = FakeImport(**attributes)
        # Keep insertion order as creation order
        self._seq += 1
        data_import.created_at = NOW + timedelta(seconds=self._seq)
        self.imports.append(data_import)
        return data_import

    def table_exists(self, table_id):
        return any(i.table_id == table_id for i in self.tables.values())

    def find_import_for_table(self, user_id, table_name):
        data_import = self.tables.get(table_name)
        if data_import is None or data_import.user_id != user_id:
            return None
        return data_import

    def add_import(self, subscription_id, state, provider=DO_SYNC_PROVIDER, with_schedule=True, **kw):
        sync_id = None
        if with_schedule:
            sync_id = self.scheduler.create_schedule(
                user_id=USER_ID, name=None, state="queued", service_name=DO_SYNC_SERVICE_NAME,
                service_item_id=None, interval=86400,
            ).id
        data_import = self.create_import(
            user_id=USER_ID,
            service_name=DO_SYNC_SERVICE_NAME,
            service_item_id=json.dumps({"provider": provider, "subscription_id": subscription_id}),
            synchronization_id=sync_id,
            state=state,
            **kw,
        )
        return data_import

    def complete(self, data_import, table_name=None):
        """Do what the importer does when an import finishes."""
        payload = json.loads(data_import.service_item_id)
        data_import.state = "complete"
        data_import.table_name = table_name or payload.get("import_as")
        data_import.table_id = uuid.uuid4()
        self.tables[data_import.table_name] = data_import
        return data_import

    def drop_table(self, table_name):
        """The user deleted the table; the import record and its synchronization remain."""
        del self.tables[table_name]


class FakeWorkerQueue:
    def __init__(self, scheduler: FakeScheduler):
        self.scheduler = scheduler
        self.enqueued: list = []
        self.fail = False

    def enqueue_import(self, job_id):
        if self.fail:
            raise ConnectionError("queue unavailable")
        self.enqueued.append(job_id)
        self.scheduler.events.append(("enqueue_import", job_id))


class FakeTableRegistry:
    def __init__(self):
        self.deleted: list = []

    def delete_table_and_visualization(self, table_id):
        self.deleted.append(table_id)


@pytest.fixture
def settings():
    return DoSyncSettings(
        bq_project="cfgProj",
        bq_dataset="cfgDs",
        service_account=None,
        do_api_base_url="http://do.test",
        do_api_key="k",
        do_api_timeout=5,
        sync_interval=86400,
    )


@dataclass
class World:
    catalog: FakeCatalog
    stats: FakeStats
    scheduler: FakeScheduler
    imports: FakeImportStore
    queue: FakeWorkerQueue
    tables: FakeTableRegistry
    evaluator: SyncStatusEvaluator
    service: SyncLifecycleManager


@pytest.fixture
def world(settings):
    catalog = FakeCatalog()
    stats = FakeStats()
    scheduler = FakeScheduler()
    imports = FakeImportStore(scheduler)
    queue = FakeWorkerQueue(scheduler)
    tables = FakeTableRegistry()
    evaluator = SyncStatusEvaluator(
        user_id=USER_ID,
        catalog=catalog,
        stats_client=stats,
        imports=imports,
        scheduler=scheduler,
        resolver=SubscriptionViewResolver(settings, catalog),
        provider=DO_SYNC_PROVIDER,
        now=lambda: NOW,
    )
    service = SyncLifecycleManager(
        user_id=USER_ID,
        settings=settings,
        evaluator=evaluator,
        imports=imports,
        scheduler=scheduler,
        worker_queue=queue,
        table_registry=tables,
    )
    return World(catalog, stats, scheduler, imports, queue, tables, evaluator, service)
