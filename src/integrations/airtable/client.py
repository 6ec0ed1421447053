"""Airtable REST client for pushing article fields."""

from __future__ import annotations

from functools import lru_cache
from typing import Any, Dict, Optional
from urllib.parse import quote

import httpx

from src.core.config import get_settings
from src.core.errors import SyncWarning


class AirtableError(SyncWarning):
    """Raised when an Airtable record update fails."""


class AirtableClient:
    def __init__(
        self,
        *,
        api_key: str,
        base_id: str,
        table_name: str,
        base_url: str = "https://api.airtable.com/v0",
        timeout_seconds: int = 20,
        client: Optional[httpx.Client] = None,
    ) -> None:
        self._api_key = api_key.strip()
        self._base_id = base_id.strip()
        self._table_name = table_name.strip()
        self._base_url = base_url.rstrip("/")
        self._timeout_seconds = max(1, timeout_seconds)
        self._client = client

    @property
    def configured(self) -> bool:
        return bool(self._api_key and self._base_id and self._table_name)

    def _record_url(self, record_id: str) -> str:
        return f"{self._base_url}/{self._base_id}/{quote(self._table_name, safe='')}/{record_id}"

    def update_record_fields(self, *, record_id: str, fields: Dict[str, Any]) -> Dict[str, Any]:
        if not self.configured:
            raise AirtableError("airtable_not_configured")
        if not record_id.strip():
            raise AirtableError("airtable_record_id_missing")

        url = self._record_url(record_id.strip())
        headers = {"Authorization": f"Bearer {self._api_key}", "Content-Type": "application/json"}
        payload = {"fields": fields}

        try:
            if self._client is not None:
                response = self._client.patch(url, headers=headers, json=payload)
            else:
                with httpx.Client(timeout=self._timeout_seconds) as client:
                    response = client.patch(url, headers=headers, json=payload)
        except httpx.HTTPError as exc:
            raise AirtableError(f"airtable_transport_error {type(exc).__name__}") from exc

        if response.status_code < 200 or response.status_code >= 300:
            detail = response.text.strip()
            if len(detail) > 240:
                detail = detail[:240] + "..."
            raise AirtableError(f"airtable_update_failed status={response.status_code} detail={detail}")

        try:
            body = response.json()
        except ValueError as exc:  # pragma: no cover
            raise AirtableError("airtable_invalid_json_response") from exc

        if not isinstance(body, dict):
            raise AirtableError("airtable_invalid_payload")
        return body


@lru_cache(maxsize=1)
def get_airtable_client() -> AirtableClient:
    settings = get_settings()
    return AirtableClient(
        api_key=settings.airtable_api_key,
        base_id=settings.airtable_base_id,
        table_name=settings.airtable_articles_table,
        base_url=settings.airtable_api_base_url,
        timeout_seconds=settings.airtable_timeout_seconds,
    )


def reset_airtable_client() -> None:
    get_airtable_client.cache_clear()
