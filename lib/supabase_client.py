# =============================================================================
# lib/supabase_client.py - Supabase Client Wrapper
# =============================================================================
# This module provides a typed wrapper for Supabase database operations.
#
# Two kinds of client are handed out:
# - get_client(): service-role singleton, for health checks only (bypasses RLS)
# - for_session(): a client that acts as the calling user, so every query
#   goes through the row-level-security policies on conversations/messages.
#   Cached per access token in a bounded LRU.
#
# Plus single-row lookups for the rows messaging needs to resolve:
# profiles, listings and conversations.
#
# Usage:
#   from lib.supabase_client import SupabaseClient
#   client = SupabaseClient.for_session(session)
#   listing = SupabaseClient.fetch_listing(client, listing_id)
# =============================================================================

from __future__ import annotations

import logging
import threading
from collections import OrderedDict
from typing import TYPE_CHECKING, Any
from uuid import UUID

from supabase import AsyncClient, Client, acreate_client, create_client

from app.config import settings

if TYPE_CHECKING:
    from core.models.session import UserSession

# Set up logging for this module
logger = logging.getLogger(__name__)

# PostgREST code returned by .single() when no row matches
NO_ROWS_CODE = "PGRST116"

# Only columns the coordinator reads; deployments differ in the rest
PROFILE_COLUMNS = "id, username, avatar_url"
PROFILE_DETAIL_COLUMNS = "id, username, avatar_url, bio"
LISTING_COLUMNS = "id, seller_id"
CONVERSATION_COLUMNS = "id, listing_id, buyer_id, seller_id, created_at, updated_at"


class SupabaseClientError(Exception):
    """
    Error during Supabase operations.

    Provides actionable error messages: errors should tell HOW to fix,
    not just WHAT failed.
    """

    def __init__(
        self,
        message: str,
        code: str = "SUPABASE_ERROR",
        suggestion: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.code = code
        self.message = message
        self.suggestion = suggestion
        self.details = details or {}

    def __str__(self) -> str:
        result = f"[{self.code}] {self.message}"
        if self.suggestion:
            result += f" Suggestion: {self.suggestion}"
        return result


def is_no_rows_error(error: Exception) -> bool:
    """True when a .single() query failed because nothing matched."""
    return getattr(error, "code", None) == NO_ROWS_CODE or NO_ROWS_CODE in str(error)


class SupabaseClient:
    """
    Typed wrapper for Supabase database operations.

    All methods are class methods for easy access without instantiation.

    Example:
        client = SupabaseClient.for_session(session)
        conversation = SupabaseClient.fetch_conversation(client, conversation_id)
        if conversation is None:
            ...
    """

    _instance: Client | None = None

    # access token -> user-scoped client, least recently used first
    _session_clients: OrderedDict[str, Client] = OrderedDict()
    _session_lock = threading.Lock()

    @classmethod
    def get_client(cls) -> Client:
        """
        Get or create the singleton service-role Supabase client.

        Uses service_role key which bypasses Row Level Security (RLS).
        Only infrastructure code (health checks) may use it; messaging
        operations always go through for_session().

        Raises:
            SupabaseClientError: If client creation fails
        """
        if cls._instance is None:
            try:
                cls._instance = create_client(
                    settings.SUPABASE_URL,
                    settings.SUPABASE_SERVICE_KEY
                )
                logger.info("Supabase service client initialized successfully")
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_SERVICE_KEY in your .env file"
                )
        return cls._instance

    @classmethod
    def for_session(cls, session: UserSession) -> Client:
        """
        Get a client that authenticates as the session's user.

        The anon key plus the user's access token means PostgREST evaluates
        auth.uid() as this user, so RLS policies are never bypassed.

        Clients are cached per access token (SESSION_CLIENT_CACHE_SIZE most
        recent), so one HTTP connection pool serves every call a token makes.
        Evicted clients have their pool closed.

        Raises:
            SupabaseClientError: If client creation fails
        """
        token = session.access_token
        with cls._session_lock:
            client = cls._session_clients.get(token)
            if client is not None:
                cls._session_clients.move_to_end(token)
                return client

            try:
                client = create_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
                client.postgrest.auth(token)
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to create user-scoped Supabase client: {e}",
                    code="CLIENT_INIT_FAILED",
                    suggestion="Check SUPABASE_URL and SUPABASE_ANON_KEY in your .env file",
                    details={"user_id": session.user_id},
                )

            cls._session_clients[token] = client
            evicted = []
            while len(cls._session_clients) > settings.SESSION_CLIENT_CACHE_SIZE:
                evicted.append(cls._session_clients.popitem(last=False)[1])

        for stale in evicted:
            cls._close_client(stale)
        return client

    @classmethod
    def _close_client(cls, client: Client) -> None:
        """Release the HTTP pool behind a sync client."""
        try:
            client.postgrest.session.close()
        except Exception as e:
            logger.debug(f"Ignoring error while closing Supabase client: {e}")

    @classmethod
    def clear_session_clients(cls) -> None:
        """Close and forget every cached user-scoped client (shutdown)."""
        with cls._session_lock:
            clients = list(cls._session_clients.values())
            cls._session_clients.clear()
        for client in clients:
            cls._close_client(client)

    @classmethod
    async def async_for_session(cls, session: UserSession) -> AsyncClient:
        """
        Create an async client for Realtime subscriptions as the session's user.

        Realtime is only available on the async client.

        Raises:
            SupabaseClientError: If client creation fails
        """
        try:
            client = await acreate_client(settings.SUPABASE_URL, settings.SUPABASE_ANON_KEY)
            await client.realtime.set_auth(session.access_token)
            return client
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create realtime client: {e}",
                code="REALTIME_INIT_FAILED",
                suggestion="Check SUPABASE_URL and that Realtime is enabled for the project",
                details={"user_id": session.user_id},
            )

    @classmethod
    def _normalize_uuid(cls, uuid_value: str | UUID) -> str:
        """Convert UUID to string for queries."""
        return str(uuid_value) if isinstance(uuid_value, UUID) else uuid_value

    # -------------------------------------------------------------------------
    # Single-row lookups
    # -------------------------------------------------------------------------

    @classmethod
    def fetch_row(
        cls,
        client: Client,
        table: str,
        row_id: str | UUID,
        columns: str = "*",
    ) -> dict[str, Any] | None:
        """
        Fetch one row by primary key.

        Returns:
            Row dict, or None if no row matches (or RLS hides it)

        Raises:
            SupabaseClientError: If the query fails
        """
        row_id_str = cls._normalize_uuid(row_id)

        try:
            response = (
                client.table(table)
                .select(columns)
                .eq("id", row_id_str)
                .single()
                .execute()
            )
            return response.data

        except Exception as e:
            if is_no_rows_error(e):
                return None
            raise SupabaseClientError(
                message=f"Failed to fetch {table} row: {e}",
                code="FETCH_ROW_FAILED",
                details={"table": table, "id": row_id_str},
            )

    @classmethod
    def fetch_profile(
        cls,
        client: Client,
        user_id: str | UUID,
        columns: str = PROFILE_COLUMNS,
    ) -> dict[str, Any] | None:
        """Fetch a user profile, or None."""
        return cls.fetch_row(client, "profiles", user_id, columns)

    @classmethod
    def fetch_listing(cls, client: Client, listing_id: str | UUID) -> dict[str, Any] | None:
        """Fetch a listing, or None."""
        return cls.fetch_row(client, "listings", listing_id, LISTING_COLUMNS)

    @classmethod
    def fetch_conversation(cls, client: Client, conversation_id: str | UUID) -> dict[str, Any] | None:
        """Fetch a conversation row, or None if absent or not visible to the caller."""
        return cls.fetch_row(client, "conversations", conversation_id, CONVERSATION_COLUMNS)
