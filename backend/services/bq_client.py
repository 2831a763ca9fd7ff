"""
BigQuery table statistics via the Google API discovery client.
"""
from __future__ import annotations
from typing import Any, Dict, Optional

from google.oauth2 import service_account
from googleapiclient.discovery import build as google_build

from schemas.do_sync import TableStats

BQ_SCOPES = ["https://www.googleapis.com/auth/bigquery.readonly"]


def _to_int(value: Any) -> Optional[int]:
    # The REST API returns int64 fields as strings
    if value is None:
        return None
    return int(value)


class BigQueryStatsClient:
    def __init__(self, service_account_info: Optional[Dict[str, Any]] = None, *, service: Any = None) -> None:
        self._service_account_info = service_account_info
        self._service = service

    def _get_service(self) -> Any:
        # Built on first use so that callers which never reach BigQuery need no credentials
        if self._service is None:
            if not self._service_account_info:
                raise RuntimeError("Missing BigQuery service account credentials.")
            creds = service_account.Credentials.from_service_account_info(
                self._service_account_info, scopes=BQ_SCOPES
            )
            self._service = google_build("bigquery", "v2", credentials=creds, cache_discovery=False)
        return self._service

    def get_table_stats(self, fully_qualified_name: str) -> TableStats:
        """Stats for `project.dataset.table`. HttpError (including 404) propagates."""
        project_id, dataset_id, table_id = fully_qualified_name.split(".", 2)
        table = self._get_service().tables().get(
            projectId=project_id, datasetId=dataset_id, tableId=table_id
        ).execute()
        fields = (table.get("schema") or {}).get("fields") or []
        return TableStats(
            num_bytes=_to_int(table.get("numBytes")) or 0,
            num_rows=_to_int(table.get("numRows")),
            num_columns=len(fields),
        )
