import jwt
import pytest
import requests
from fastapi.testclient import TestClient

import main
from routers.do_sync import get_do_sync_service
from schemas.do_sync import SubscriptionViews, SyncStatus, SyncStatusValue
from services.do_sync import SyncConflictError

from conftest import USER_ID


class StubService:
    def __init__(self):
        self.calls = []
        self.error = None

    def _record(self, *args):
        self.calls.append(args)
        if self.error:
            raise self.error

    def evaluate(self, subscription_id):
        self._record("evaluate", subscription_id)
        return SyncStatus(status=SyncStatusValue.UNSYNCED, estimated_size=10, estimated_row_count=2)

    def create_sync(self, subscription_id, force=False):
        self._record("create_sync", subscription_id, force)
        return SyncStatus(status=SyncStatusValue.SYNCING)

    def remove_sync(self, subscription_id):
        self._record("remove_sync", subscription_id)

    def resolve_views(self, subscription_id):
        self._record("resolve_views", subscription_id)
        if subscription_id == "p.missing.t":
            return None
        return SubscriptionViews(data="cfgProj.cfgDs.view_ds_tbl")

    def subscription_to_sync_table(self, table_name):
        self._record("subscription_to_sync_table", table_name)
        return "p.ds.tbl" if table_name == "do_sync_ds_tbl" else None


@pytest.fixture
def stub():
    service = StubService()
    main.app.dependency_overrides[get_do_sync_service] = lambda: service
    yield service
    main.app.dependency_overrides.clear()


@pytest.fixture
def client():
    token = jwt.encode({"sub": USER_ID}, main.JWT_SECRET, algorithm=main.JWT_ALGORITHM)
    return TestClient(main.app, headers={"Authorization": f"Bearer {token}"})


def test_requires_token(stub):
    resp = TestClient(main.app).get("/api/v1/do/subscriptions/p.ds.tbl/sync")
    assert resp.status_code == 401
    assert stub.calls == []


def test_get_sync(client, stub):
    resp = client.get("/api/v1/do/subscriptions/p.ds.tbl/sync")
    assert resp.status_code == 200
    assert resp.json() == {"status": "unsynced", "estimated_size": 10, "estimated_row_count": 2}


def test_create_sync_with_force(client, stub):
    resp = client.post("/api/v1/do/subscriptions/p.ds.tbl/sync?force=true")
    assert resp.status_code == 200
    assert resp.json() == {"status": "syncing"}
    assert stub.calls == [("create_sync", "p.ds.tbl", True)]


def test_remove_sync(client, stub):
    resp = client.delete("/api/v1/do/subscriptions/p.ds.tbl/sync")
    assert resp.status_code == 204


def test_remove_sync_conflict(client, stub):
    stub.error = SyncConflictError("Cannot remove sync while syncing")
    resp = client.delete("/api/v1/do/subscriptions/p.ds.tbl/sync")
    assert resp.status_code == 409


def test_backend_failure_is_unavailable(client, stub):
    stub.error = requests.exceptions.ConnectionError("catalog down")
    resp = client.get("/api/v1/do/subscriptions/p.ds.tbl/sync")
    assert resp.status_code == 503


def test_views(client, stub):
    resp = client.get("/api/v1/do/subscriptions/p.ds.tbl/views")
    assert resp.status_code == 200
    assert resp.json() == {"data": "cfgProj.cfgDs.view_ds_tbl", "geography": None}
    assert client.get("/api/v1/do/subscriptions/p.missing.t/views").status_code == 404


def test_subscription_for_sync_table(client, stub):
    resp = client.get("/api/v1/do/sync_tables/do_sync_ds_tbl/subscription")
    assert resp.json() == {"table_name": "do_sync_ds_tbl", "subscription_id": "p.ds.tbl"}
    resp = client.get("/api/v1/do/sync_tables/other/subscription")
    assert resp.json() == {"table_name": "other", "subscription_id": None}


def test_health_is_public():
    assert TestClient(main.app).get("/api/health").json() == {"status": "ok"}
