"""Supabase client construction and query execution."""
import logging

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from tripsync.core.config import Settings
from tripsync.core.errors import SchemaError, TransportError

logger = logging.getLogger(__name__)

# PostgREST / Postgres codes for a missing column or table
SCHEMA_ERROR_CODES = {"42703", "42P01", "PGRST204", "PGRST205"}


def create_supabase_client(config: Settings) -> Client | None:
    """Build a Supabase client, or None when remote sync is not configured."""
    if not config.remote_enabled:
        logger.warning("No SUPABASE_URL / SUPABASE_ANON_KEY configured, remote sync disabled")
        return None
    return create_client(config.supabase_url, config.supabase_anon_key)


def execute(query, action: str):
    """Run a PostgREST query, translating failures into sync errors.

    Args:
        query: A built (not yet executed) supabase-py request.
        action: Short description used in error messages, e.g. "load expenses".

    Returns:
        The API response.

    Raises:
        SchemaError: The remote is missing a column or table the query uses.
        TransportError: Any other API or network failure.
    """
    try:
        return query.execute()
    except APIError as e:
        if e.code in SCHEMA_ERROR_CODES:
            raise SchemaError(f"Failed to {action}: {e.message}") from e
        raise TransportError(f"Failed to {action}: {e.message}") from e
    except httpx.HTTPError as e:
        raise TransportError(f"Failed to {action}: {e}") from e
