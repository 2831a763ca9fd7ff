from __future__ import annotations

import json
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy.orm import Session
from constants import (
    DO_SYNC_SETTINGS_DEFAULT,
    DO_SYNC_PROVIDER,
    BQ_PROJECT,
    BQ_DATASET,
    SERVICE_ACCOUNT,
    DO_API_BASE_URL,
    DO_API_KEY,
    DO_API_TIMEOUT_SECONDS,
    SYNC_INTERVAL,
)
from models.user import User

# Environment variable -> settings key
_ENV_OVERRIDES = {
    "DO_BQ_PROJECT": BQ_PROJECT,
    "DO_BQ_DATASET": BQ_DATASET,
    "DO_API_BASE_URL": DO_API_BASE_URL,
    "DO_API_KEY": DO_API_KEY,
    "DO_API_TIMEOUT_SECONDS": DO_API_TIMEOUT_SECONDS,
    "DO_SYNC_INTERVAL": SYNC_INTERVAL,
}


@dataclass(frozen=True)
class DoSyncSettings:
    bq_project: str
    bq_dataset: str
    service_account: Optional[Dict[str, Any]]
    do_api_base_url: str
    do_api_key: str
    do_api_timeout: int
    sync_interval: int
    provider: str = DO_SYNC_PROVIDER


def _load_service_account_file(path: Optional[str]) -> Optional[Dict[str, Any]]:
    if not path or not os.path.exists(path):
        return None
    with open(path, "r") as f:
        return json.load(f)


def _env_settings() -> Dict[str, Any]:
    out: Dict[str, Any] = {}
    for env_key, key in _ENV_OVERRIDES.items():
        value = os.getenv(env_key)
        if value:
            out[key] = value
    service_account = _load_service_account_file(os.getenv("GOOGLE_APPLICATION_CREDENTIALS"))
    if service_account:
        out[SERVICE_ACCOUNT] = service_account
    return out


def build_do_sync_settings(overrides: Optional[Dict[str, Any]] = None) -> DoSyncSettings:
    """Defaults, then environment, then explicit (per-user) overrides."""
    base = dict(DO_SYNC_SETTINGS_DEFAULT)
    base.update(_env_settings())
    if overrides:
        base.update({k: v for k, v in overrides.items() if v not in (None, "")})
    return DoSyncSettings(
        bq_project=base[BQ_PROJECT],
        bq_dataset=base[BQ_DATASET],
        service_account=base[SERVICE_ACCOUNT],
        do_api_base_url=base[DO_API_BASE_URL],
        do_api_key=base[DO_API_KEY],
        do_api_timeout=int(base[DO_API_TIMEOUT_SECONDS]),
        sync_interval=int(base[SYNC_INTERVAL]),
    )


def get_do_sync_settings(db: Session, user_id: UUID | str) -> DoSyncSettings:
    user = db.query(User).filter(User.user_id == user_id).first()
    custom = (user.gcloud_settings or {}) if user else {}
    return build_do_sync_settings(custom)
