"""Airtable integrations."""

from src.integrations.airtable.client import AirtableClient, AirtableError, get_airtable_client, reset_airtable_client
from src.integrations.airtable.sync import SyncOutcome, sync_article_field

__all__ = [
    "AirtableClient",
    "AirtableError",
    "SyncOutcome",
    "get_airtable_client",
    "reset_airtable_client",
    "sync_article_field",
]
