# =============================================================================
# tests/test_supabase_client.py - Supabase Wrapper Tests
# =============================================================================
# Tests for the user-scoped client cache and single-row lookups, with
# supabase.create_client mocked out.
# =============================================================================

from unittest.mock import MagicMock, patch

import pytest

from app.config import settings
from core.models.session import UserSession
from lib.supabase_client import SupabaseClient, SupabaseClientError
from tests.fake_supabase import FakeAPIError


def session(token, user_id="u1"):
    return UserSession(user_id=user_id, access_token=token)


@pytest.fixture
def create_client():
    SupabaseClient.clear_session_clients()
    with patch("lib.supabase_client.create_client", side_effect=lambda *args: MagicMock()) as mocked:
        yield mocked
    SupabaseClient.clear_session_clients()


class TestForSession:
    """Tests for the per-token client cache."""

    def test_same_token_reuses_client(self, create_client):
        first = SupabaseClient.for_session(session("tok-1"))
        second = SupabaseClient.for_session(session("tok-1"))

        assert first is second
        assert create_client.call_count == 1
        first.postgrest.auth.assert_called_once_with("tok-1")

    def test_different_tokens_get_different_clients(self, create_client):
        assert SupabaseClient.for_session(session("tok-1")) is not SupabaseClient.for_session(
            session("tok-2")
        )

    def test_least_recently_used_is_closed_on_eviction(self, create_client, monkeypatch):
        monkeypatch.setattr(settings, "SESSION_CLIENT_CACHE_SIZE", 2)

        oldest = SupabaseClient.for_session(session("tok-1"))
        SupabaseClient.for_session(session("tok-2"))
        SupabaseClient.for_session(session("tok-3"))

        oldest.postgrest.session.close.assert_called_once()
        assert list(SupabaseClient._session_clients) == ["tok-2", "tok-3"]

    def test_creation_failure(self, create_client):
        create_client.side_effect = RuntimeError("bad url")

        with pytest.raises(SupabaseClientError) as exc_info:
            SupabaseClient.for_session(session("tok-1"))

        assert exc_info.value.code == "CLIENT_INIT_FAILED"
        assert SupabaseClient._session_clients == {}

    def test_clear_closes_everything(self, create_client):
        client = SupabaseClient.for_session(session("tok-1"))

        SupabaseClient.clear_session_clients()

        client.postgrest.session.close.assert_called_once()
        assert SupabaseClient._session_clients == {}


class TestFetchRow:
    """Tests for single-row lookups."""

    def test_listing_selects_only_owner_columns(self):
        client = MagicMock()
        client.table.return_value.select.return_value.eq.return_value.single.return_value.execute.return_value.data = {
            "id": "L42",
            "seller_id": "u1",
        }

        row = SupabaseClient.fetch_listing(client, "L42")

        client.table.assert_called_with("listings")
        client.table.return_value.select.assert_called_with("id, seller_id")
        assert row == {"id": "L42", "seller_id": "u1"}

    def test_profile_selects_display_columns(self):
        client = MagicMock()

        SupabaseClient.fetch_profile(client, "u1")

        client.table.return_value.select.assert_called_with("id, username, avatar_url")

    def test_no_rows_is_none(self):
        client = MagicMock()
        client.table.return_value.select.return_value.eq.return_value.single.return_value.execute.side_effect = (
            FakeAPIError("no rows", "PGRST116")
        )

        assert SupabaseClient.fetch_conversation(client, "c1") is None

    def test_other_errors_raise(self):
        client = MagicMock()
        client.table.return_value.select.return_value.eq.return_value.single.return_value.execute.side_effect = (
            FakeAPIError("column listings.images does not exist", "42703")
        )

        with pytest.raises(SupabaseClientError) as exc_info:
            SupabaseClient.fetch_listing(client, "L42")

        assert exc_info.value.code == "FETCH_ROW_FAILED"
