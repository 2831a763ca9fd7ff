"""
Data Observatory sync API endpoints
Thin FastAPI router over services.do_sync: status, create, remove, views and reverse lookup.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request, Response, status
from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
import requests
from googleapiclient.errors import HttpError

from db import get_db
from schemas.do_sync import SubscriptionForSyncTable, SubscriptionViews
from services.do_sync import SyncConflictError, SyncLifecycleManager, build_do_sync_service
from services.table_registry import TableNotFoundError

router = APIRouter(prefix="/api/v1/do", tags=["DO Sync"])
logger = logging.getLogger("do_sync.api")

# Backend failures surfaced to clients as a generic "try again"
INFRASTRUCTURE_ERRORS = (requests.exceptions.RequestException, HttpError, SQLAlchemyError)


def _current_user_id(request: Request) -> str:
    auth = getattr(request.state, "auth", None) or {}
    user_id = auth.get("sub")
    if not user_id:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    return str(user_id)


def get_do_sync_service(request: Request, db: Session = Depends(get_db)) -> SyncLifecycleManager:
    return build_do_sync_service(db, _current_user_id(request))


def _unavailable(e: Exception) -> HTTPException:
    logger.warning("do_sync backend failure: %s", e)
    return HTTPException(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, detail="Service temporarily unavailable, try again")


@router.get("/subscriptions/{subscription_id}/sync")
def get_sync(subscription_id: str, service: SyncLifecycleManager = Depends(get_do_sync_service)):
    try:
        return service.evaluate(subscription_id).to_payload()
    except INFRASTRUCTURE_ERRORS as e:
        raise _unavailable(e)


@router.post("/subscriptions/{subscription_id}/sync")
def create_sync(subscription_id: str, force: bool = False,
                service: SyncLifecycleManager = Depends(get_do_sync_service)):
    try:
        return service.create_sync(subscription_id, force=force).to_payload()
    except INFRASTRUCTURE_ERRORS as e:
        raise _unavailable(e)


@router.delete("/subscriptions/{subscription_id}/sync", status_code=status.HTTP_204_NO_CONTENT)
def remove_sync(subscription_id: str, service: SyncLifecycleManager = Depends(get_do_sync_service)):
    try:
        service.remove_sync(subscription_id)
    except SyncConflictError as e:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail=str(e))
    except TableNotFoundError as e:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(e))
    except INFRASTRUCTURE_ERRORS as e:
        raise _unavailable(e)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/subscriptions/{subscription_id}/views", response_model=SubscriptionViews)
def get_views(subscription_id: str, service: SyncLifecycleManager = Depends(get_do_sync_service)):
    try:
        views = service.resolve_views(subscription_id)
    except INFRASTRUCTURE_ERRORS as e:
        raise _unavailable(e)
    if views is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=f"Invalid subscription {subscription_id}")
    return views


@router.get("/sync_tables/{table_name}/subscription", response_model=SubscriptionForSyncTable)
def get_subscription_for_table(table_name: str, service: SyncLifecycleManager = Depends(get_do_sync_service)):
    try:
        subscription_id = service.subscription_to_sync_table(table_name)
    except INFRASTRUCTURE_ERRORS as e:
        raise _unavailable(e)
    return SubscriptionForSyncTable(table_name=table_name, subscription_id=subscription_id)
