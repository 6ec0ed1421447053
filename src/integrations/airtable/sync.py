"""Best-effort push of upload results into the linked Airtable record."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from src.core.config import get_settings
from src.core.logger import get_logger
from src.core.metrics import record_external_sync_failure
from src.integrations.airtable.client import AirtableClient, get_airtable_client
from src.storage.models import Article


logger = get_logger("contentops.airtable_sync")


@dataclass(frozen=True)
class SyncOutcome:
    synced: bool
    field_name: str
    skipped_reason: Optional[str] = None
    error: Optional[str] = None


def _preview(value: str, limit: int = 120) -> str:
    cleaned = " ".join(value.split())
    if len(cleaned) > limit:
        return cleaned[:limit] + "..."
    return cleaned


def sync_article_field(
    article: Article,
    *,
    field_name: str,
    value: str,
    client: Optional[AirtableClient] = None,
) -> SyncOutcome:
    """Write one field on the article's Airtable record.

    Never raises: the local article row is the source of truth and a failed
    push is left for manual reconciliation from the warning log.
    """

    settings = get_settings()
    if not settings.airtable_sync_enabled:
        return SyncOutcome(synced=False, field_name=field_name, skipped_reason="sync_disabled")
    if not article.external_id:
        return SyncOutcome(synced=False, field_name=field_name, skipped_reason="no_external_id")

    airtable = client or get_airtable_client()
    if not airtable.configured:
        logger.info("external_sync_skipped", article_id=article.id, field=field_name, reason="not_configured")
        return SyncOutcome(synced=False, field_name=field_name, skipped_reason="not_configured")

    try:
        airtable.update_record_fields(record_id=article.external_id, fields={field_name: value})
    except Exception as exc:
        record_external_sync_failure(field_name=field_name)
        logger.warning(
            "external_sync_failed",
            article_id=article.id,
            external_id=article.external_id,
            field=field_name,
            attempted_value=_preview(value),
            error=str(exc),
        )
        return SyncOutcome(synced=False, field_name=field_name, error=str(exc))

    logger.info("external_sync_succeeded", article_id=article.id, field=field_name)
    return SyncOutcome(synced=True, field_name=field_name)
