"""
Data Observatory catalog API client.
Resolves subscription ids (`project.dataset.table`) to subscription metadata and
dataset entities to their linked geography.
"""
from __future__ import annotations
import logging
import time
from typing import Any, Dict, Optional

import requests
from pydantic import ValidationError

from schemas.do_sync import Subscription

logger = logging.getLogger("do_catalog")


class InvalidSubscriptionError(ValueError):
    """The catalog returned a subscription entry that does not parse."""


def _quote(identifier: str) -> str:
    return requests.utils.quote(identifier, safe="")


class CatalogClient:
    def __init__(self, *, base_url: str, api_key: str, timeout: int = 30,
                 retry_max: int = 2, backoff_base: float = 0.5) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = int(timeout)
        self.retry_max = int(retry_max)
        self.backoff_base = float(backoff_base)

    def _get(self, path: str) -> Optional[Dict[str, Any]]:
        """GET a catalog resource; None on 404. Connection errors are retried with backoff."""
        url = f"{self.base_url}/{path.lstrip('/')}"
        headers = {"Authorization": f"Bearer {self.api_key}"} if self.api_key else {}
        backoff = self.backoff_base
        for attempt in range(self.retry_max + 1):
            try:
                resp = requests.get(url, headers=headers, timeout=self.timeout)
                break
            except requests.exceptions.ConnectionError as e:
                if attempt >= self.retry_max:
                    raise
                logger.info("catalog GET retry url=%s attempt=%s error=%s", url, attempt + 1, e)
                time.sleep(backoff)
                backoff *= 2
        if resp.status_code == 404:
            return None
        resp.raise_for_status()
        return resp.json()

    def get_subscription(self, subscription_id: str) -> Optional[Subscription]:
        """Subscription metadata, or None when the catalog does not know it.

        Raises InvalidSubscriptionError when the catalog entry cannot be parsed.
        """
        data = self._get(f"subscriptions/{_quote(subscription_id)}")
        if not data:
            return None
        data.setdefault("id", subscription_id)
        # Identifiers default to the parts of the subscription id itself
        parts = subscription_id.split(".")
        if len(parts) == 3:
            for key, value in zip(("project", "dataset", "table"), parts):
                data.setdefault(key, value)
        try:
            return Subscription.model_validate(data)
        except ValidationError as e:
            fields = sorted({".".join(str(p) for p in err["loc"]) for err in e.errors()})
            logger.warning("malformed catalog subscription id=%s fields=%s", subscription_id, fields)
            raise InvalidSubscriptionError(
                f"Invalid subscription {subscription_id}: malformed catalog entry ({', '.join(fields)})"
            ) from e

    def get_dataset_geography_id(self, dataset_id: str) -> Optional[str]:
        data = self._get(f"metadata/datasets/{_quote(dataset_id)}")
        if not data:
            return None
        return data.get("geography_id") or None
