"""
Data Observatory subscription syncs.

A subscription (`project.dataset.table` in the DO catalog) is synced into the user's
account by a recurring connector import. Its sync status is never stored: it is derived
on every call from the catalog subscription, the BigQuery views backing it, the latest
matching data import and that import's synchronization. Those records are owned by
different subsystems and change independently, so two successive reads may disagree
(e.g. unsynced, then syncing, then synced).
"""
from __future__ import annotations
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Optional, Protocol, Tuple
from uuid import UUID

from pydantic import ValidationError
from sqlalchemy.orm import Session

from constants import (
    DO_SYNC_SERVICE_NAME,
    DO_SYNC_TABLE_PREFIX,
    DO_SYNC_VIEW_PREFIX,
    IMPORT_IN_PROGRESS_STATES,
    IMPORT_STATE_COMPLETE,
    SYNC_STATE_CREATED,
    SYNC_STATE_QUEUED,
)
from schemas.do_sync import (
    ConnectorServiceItem,
    Subscription,
    SubscriptionType,
    SubscriptionViews,
    SyncStatus,
    SyncStatusValue,
    TableStats,
)
from services.catalog_client import InvalidSubscriptionError
from services.settings import DoSyncSettings, get_do_sync_settings

logger = logging.getLogger("do_sync")


class SyncConflictError(RuntimeError):
    """Operation not allowed in the current sync status (e.g. removal while syncing)."""


class StorageStatsClient(Protocol):
    def get_table_stats(self, fully_qualified_name: str) -> TableStats: ...


def split_identifier(identifier: Optional[str]) -> Optional[Tuple[str, str, str]]:
    if not identifier:
        return None
    parts = identifier.split(".")
    if len(parts) != 3 or not all(parts):
        return None
    return parts[0], parts[1], parts[2]


def tentative_table_name(dataset: str, table: str) -> str:
    return DO_SYNC_TABLE_PREFIX + "_".join([dataset, table])


class SubscriptionViewResolver:
    def __init__(self, settings: DoSyncSettings, catalog: Any) -> None:
        self.settings = settings
        self.catalog = catalog

    def view_name(self, dataset: Optional[str], table: Optional[str]) -> Optional[str]:
        if not dataset or not table:
            return None
        view = DO_SYNC_VIEW_PREFIX + "_".join([dataset, table])
        return ".".join([self.settings.bq_project, self.settings.bq_dataset, view])

    def _view_for_identifier(self, identifier: Optional[str]) -> Optional[str]:
        parts = split_identifier(identifier)
        if parts is None:
            return None
        _project, dataset, table = parts
        return self.view_name(dataset, table)

    def resolve(self, subscription: Optional[Subscription]) -> Optional[SubscriptionViews]:
        """Views backing a subscription; None when it is missing or lacks identifiers."""
        if subscription is None:
            return None
        if subscription.type == SubscriptionType.DATASET:
            data_view = self.view_name(subscription.dataset, subscription.table)
            if data_view is None:
                return None
            geography_id = self.catalog.get_dataset_geography_id(subscription.id)
            return SubscriptionViews(data=data_view, geography=self._view_for_identifier(geography_id))
        if subscription.type == SubscriptionType.GEOGRAPHY:
            geography_view = self.view_name(subscription.dataset, subscription.table)
            if geography_view is None:
                return None
            return SubscriptionViews(geography=geography_view)
        return None


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class SyncStatusEvaluator:
    def __init__(
        self,
        *,
        user_id: UUID | str,
        catalog: Any,
        stats_client: StorageStatsClient,
        imports: Any,
        scheduler: Any,
        resolver: SubscriptionViewResolver,
        provider: str,
        now: Callable[[], datetime] = _utcnow,
    ) -> None:
        self.user_id = user_id
        self.catalog = catalog
        self.stats_client = stats_client
        self.imports = imports
        self.scheduler = scheduler
        self.resolver = resolver
        self.provider = provider
        self.now = now

    def resolve_views(self, subscription_id: str) -> Optional[SubscriptionViews]:
        try:
            subscription = self.catalog.get_subscription(subscription_id)
        except InvalidSubscriptionError:
            return None
        return self.resolver.resolve(subscription)

    def _check_limits(self, num_bytes: int, num_rows: Optional[int], num_columns: int) -> Optional[SyncStatus]:
        # Quota hook: no limits are defined yet, so nothing is rejected here.
        # Account quotas may still make the import itself fail.
        return None

    def evaluate(self, subscription_id: str) -> SyncStatus:
        try:
            subscription = self.catalog.get_subscription(subscription_id)
        except InvalidSubscriptionError as e:
            return SyncStatus(status=SyncStatusValue.UNSYNCABLE, unsyncable_reason=str(e))
        if subscription is None:
            return SyncStatus(
                status=SyncStatusValue.UNSYNCABLE,
                unsyncable_reason=f"Invalid subscription {subscription_id}",
            )

        if _as_utc(subscription.expires_at) <= _as_utc(self.now()):
            return SyncStatus(
                status=SyncStatusValue.UNSYNCABLE,
                unsyncable_reason=f"Subscription {subscription_id} expired at {subscription.expires_at.isoformat()}",
            )

        views = self.resolver.resolve(subscription)
        if views is None:
            return SyncStatus(
                status=SyncStatusValue.UNSYNCABLE,
                unsyncable_reason=f"Invalid subscription {subscription_id}: missing dataset or table",
            )

        num_bytes = 0
        num_rows: Optional[int] = None
        num_columns: Optional[int] = None
        for view in (views.data, views.geography):
            if not view:
                continue
            stats = self.stats_client.get_table_stats(view)
            num_bytes += stats.num_bytes
            # Rows are not added up: data and geography views describe the same features
            if num_rows is None:
                num_rows = stats.num_rows
            if num_columns is None:
                num_columns = stats.num_columns

        rejected = self._check_limits(num_bytes, num_rows, num_columns or 0)
        if rejected is not None:
            return rejected

        sync_status = SyncStatus(
            status=SyncStatusValue.UNSYNCED,
            estimated_size=num_bytes,
            estimated_row_count=num_rows,
        )

        data_import = self.imports.find_latest_import(self.user_id, self.provider, subscription_id)
        if data_import is None:
            return sync_status

        if data_import.state in IMPORT_IN_PROGRESS_STATES:
            return SyncStatus(status=SyncStatusValue.SYNCING)

        if data_import.state == IMPORT_STATE_COMPLETE:
            sync_status.status = SyncStatusValue.SYNCED
            # The table may have been dropped while its synchronization lives on
            if data_import.table_id is not None and self.imports.table_exists(data_import.table_id):
                sync_status.sync_table = data_import.table_name
                sync_status.sync_table_id = str(data_import.table_id)
            # The synchronization may have been stopped after the table was created
            if self.scheduler.find_schedule(data_import.synchronization_id) is not None:
                sync_status.synchronization_id = str(data_import.synchronization_id)
            return sync_status

        error_code = data_import.error_code
        sync_status.unsynced_errors = [str(error_code) if error_code is not None else "unknown"]
        return sync_status


class SyncLifecycleManager:
    def __init__(
        self,
        *,
        user_id: UUID | str,
        settings: DoSyncSettings,
        evaluator: SyncStatusEvaluator,
        imports: Any,
        scheduler: Any,
        worker_queue: Any,
        table_registry: Any,
    ) -> None:
        self.user_id = user_id
        self.settings = settings
        self.evaluator = evaluator
        self.imports = imports
        self.scheduler = scheduler
        self.worker_queue = worker_queue
        self.table_registry = table_registry

    def evaluate(self, subscription_id: str) -> SyncStatus:
        return self.evaluator.evaluate(subscription_id)

    def resolve_views(self, subscription_id: str) -> Optional[SubscriptionViews]:
        return self.evaluator.resolve_views(subscription_id)

    def create_sync(self, subscription_id: str, force: bool = False) -> SyncStatus:
        """Start syncing a subscription, or return the existing sync status.

        Only an unsynced subscription gets a new sync. After a failed import the
        caller has to pass force=True to retry.
        """
        sync_status = self.evaluate(subscription_id)
        if sync_status.status != SyncStatusValue.UNSYNCED:
            return sync_status

        if force or not sync_status.unsynced_errors:
            subscription = self.evaluator.catalog.get_subscription(subscription_id)
            if subscription is not None:
                self._create_new_sync_for_subscription(subscription_id, subscription)
            sync_status = self.evaluate(subscription_id)
        return sync_status

    def remove_sync(self, subscription_id: str) -> None:
        """Stop syncing a subscription and drop its table.

        Not atomic with the status read: an import may start between both steps.
        """
        sync_status = self.evaluate(subscription_id)
        if sync_status.status == SyncStatusValue.SYNCING:
            logger.info("remove_sync conflict user_id=%s subscription_id=%s", self.user_id, subscription_id)
            raise SyncConflictError("Cannot remove sync while syncing")

        if sync_status.status != SyncStatusValue.SYNCED:
            return
        if sync_status.sync_table_id:
            self.table_registry.delete_table_and_visualization(sync_status.sync_table_id)
            logger.info(
                "remove_sync user_id=%s subscription_id=%s table_id=%s",
                self.user_id, subscription_id, sync_status.sync_table_id,
            )
        elif sync_status.synchronization_id:
            # Table already dropped: only the recurring sync is left to stop
            self.scheduler.delete_schedule(sync_status.synchronization_id)
            logger.info(
                "remove_sync user_id=%s subscription_id=%s synchronization_id=%s table=missing",
                self.user_id, subscription_id, sync_status.synchronization_id,
            )

    def subscription_to_sync_table(self, table_name: str) -> Optional[str]:
        # Only works once the initial import has linked the table
        data_import = self.imports.find_import_for_table(self.user_id, table_name)
        if data_import is None or data_import.service_name != DO_SYNC_SERVICE_NAME:
            return None
        try:
            item = ConnectorServiceItem.model_validate_json(data_import.service_item_id or "")
        except ValidationError:
            logger.info("subscription_to_sync_table unparseable payload table=%s", table_name)
            return None
        if not item.is_do_subscription:
            return None
        return item.subscription_id

    def _create_new_sync_for_subscription(self, subscription_id: str, subscription: Subscription) -> None:
        # Unsynced implies the catalog supplied both dataset and table
        table_name = tentative_table_name(subscription.dataset, subscription.table)
        service_item_id = ConnectorServiceItem.for_subscription(subscription_id, table_name).to_json()

        sync = self.scheduler.create_schedule(
            user_id=self.user_id,
            name=table_name,
            state=SYNC_STATE_CREATED,
            service_name=DO_SYNC_SERVICE_NAME,
            service_item_id=service_item_id,
            interval=self.settings.sync_interval,
        )
        data_import = self.imports.create_import(
            user_id=self.user_id,
            service_name=DO_SYNC_SERVICE_NAME,
            service_item_id=service_item_id,
            synchronization_id=sync.id,
        )
        self.worker_queue.enqueue_import(data_import.id)

        # Only now mark the synchronization as queued. If the enqueue above failed it stays
        # 'created' and can be triggered again; a 'queued' synchronization whose job never
        # runs could never be kicked off manually.
        self.scheduler.update_schedule_state(sync.id, SYNC_STATE_QUEUED)
        logger.info(
            "create_sync user_id=%s subscription_id=%s synchronization_id=%s import_id=%s",
            self.user_id, subscription_id, sync.id, data_import.id,
        )


def build_do_sync_service(db: Session, user_id: UUID | str) -> SyncLifecycleManager:
    from services.bq_client import BigQueryStatsClient
    from services.catalog_client import CatalogClient
    from services.import_records import ImportRecordStore
    from services.synchronization_scheduler import SynchronizationScheduler
    from services.table_registry import TableRegistry
    from services.worker_queue import WorkerQueue

    settings = get_do_sync_settings(db, user_id)
    catalog = CatalogClient(
        base_url=settings.do_api_base_url,
        api_key=settings.do_api_key,
        timeout=settings.do_api_timeout,
    )
    imports = ImportRecordStore(db)
    scheduler = SynchronizationScheduler(db)
    evaluator = SyncStatusEvaluator(
        user_id=user_id,
        catalog=catalog,
        stats_client=BigQueryStatsClient(settings.service_account),
        imports=imports,
        scheduler=scheduler,
        resolver=SubscriptionViewResolver(settings, catalog),
        provider=settings.provider,
    )
    return SyncLifecycleManager(
        user_id=user_id,
        settings=settings,
        evaluator=evaluator,
        imports=imports,
        scheduler=scheduler,
        worker_queue=WorkerQueue(db),
        table_registry=TableRegistry(db),
    )
