# =============================================================================
# core/services/messaging_service.py - Conversation/Messaging Coordinator
# =============================================================================
# Mediates creation of conversations, sending and reading of messages, and
# the per-user inbox. Every call receives an explicit UserSession and talks
# to Supabase as that user, so RLS is always in force.
#
# Consistency contract:
# - one conversation per (listing, buyer, seller); starting twice reuses it
# - send = insert message, then bump conversations.updated_at to the
#   message's created_at. The pair is not atomic: a failed bump is logged
#   and the send still succeeds.
# - mark_read only flips messages the reader did not author
# - nothing is cached; every read goes to the backend
# =============================================================================

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable
from uuid import UUID

from supabase import Client

from lib.supabase_client import (
    CONVERSATION_COLUMNS,
    SupabaseClient,
    SupabaseClientError,
)
from app.config import settings
from app.exceptions import (
    ConversationNotFoundError,
    EmptyMessageError,
    InvalidParticipantsError,
    ListingNotFoundError,
    MessageTooLongError,
    MissingIdentifierError,
    TransportError,
    UserNotFoundError,
)
from core.models.conversation import Conversation, ConversationSummary
from core.models.message import Message, MessagePreview
from core.models.profile import SenderProfile
from core.models.session import UserSession
from core.services.subscription import MessageSubscription

logger = logging.getLogger(__name__)

# Postgres unique_violation, raised when two starts race past the lookup
UNIQUE_VIOLATION = "23505"

MESSAGE_COLUMNS = (
    "id, conversation_id, sender_id, content, created_at, is_read, "
    "sender:profiles(id, username, avatar_url)"
)

SUMMARY_COLUMNS = (
    f"{CONVERSATION_COLUMNS}, "
    "listing:listings(id, title, price), "
    "buyer:profiles!conversations_buyer_id_fkey(id, username, avatar_url), "
    "seller:profiles!conversations_seller_id_fkey(id, username, avatar_url)"
)


def _first(embed: Any) -> dict[str, Any] | None:
    """Flatten a PostgREST embed that may come back as a one-element list."""
    if isinstance(embed, list):
        return embed[0] if embed else None
    return embed


def _is_unique_violation(error: Exception) -> bool:
    return getattr(error, "code", None) == UNIQUE_VIOLATION or UNIQUE_VIOLATION in str(error)


def _conversation_id(conversation_id: Any, operation: str) -> str:
    """
    Normalize a conversation ID argument.

    Raises:
        MissingIdentifierError: If the ID is empty
        ConversationNotFoundError: If it isn't a UUID (no such row can exist)
    """
    value = str(conversation_id or "").strip()
    if not value:
        raise MissingIdentifierError("conversation_id", operation=operation)
    try:
        return str(UUID(value))
    except ValueError:
        raise ConversationNotFoundError(value, operation=operation)


class MessagingService:
    """
    Service for conversation and message operations.

    Provides a clean interface between API routes and the database.
    """

    # -------------------------------------------------------------------------
    # Internal helpers
    # -------------------------------------------------------------------------

    @staticmethod
    def _client(session: UserSession, operation: str) -> Client:
        try:
            return SupabaseClient.for_session(session)
        except SupabaseClientError as e:
            logger.error(f"{operation}: could not create client: {e}")
            raise TransportError(str(e), operation=operation)

    @staticmethod
    def _load_conversation(
        client: Client,
        session: UserSession,
        conversation_id: str,
        operation: str,
    ) -> Conversation:
        """
        Fetch a conversation the session user participates in.

        Raises:
            ConversationNotFoundError: If absent or the user isn't a participant
            TransportError: If the query fails
        """
        try:
            row = SupabaseClient.fetch_conversation(client, conversation_id)
        except SupabaseClientError as e:
            logger.error(f"{operation}: failed to fetch conversation {conversation_id}: {e}")
            raise TransportError(str(e), operation=operation)

        if not row:
            raise ConversationNotFoundError(str(conversation_id), operation=operation)

        conversation = Conversation.model_validate(row)
        if not conversation.has_participant(session.user_id):
            # Don't reveal that the conversation exists
            raise ConversationNotFoundError(str(conversation_id), operation=operation)

        return conversation

    @staticmethod
    def _find_conversation(client: Client, listing_id: str, user_a: str, user_b: str) -> str | None:
        """
        Look up an existing conversation for the listing and pair.

        Both role permutations are checked so rows written with the roles
        swapped are still found.
        """
        for buyer_id, seller_id in ((user_a, user_b), (user_b, user_a)):
            try:
                response = (
                    client.table("conversations")
                    .select("id")
                    .eq("listing_id", listing_id)
                    .eq("buyer_id", buyer_id)
                    .eq("seller_id", seller_id)
                    .order("created_at")
                    .limit(1)
                    .execute()
                )
            except Exception as e:
                raise SupabaseClientError(
                    message=f"Failed to look up conversation: {e}",
                    code="FIND_CONVERSATION_FAILED",
                    details={"listing_id": listing_id},
                )
            if response.data:
                return response.data[0]["id"]
        return None

    @staticmethod
    def _insert_conversation(client: Client, listing_id: str, buyer_id: str, seller_id: str) -> str:
        try:
            response = (
                client.table("conversations")
                .insert({
                    "listing_id": listing_id,
                    "buyer_id": buyer_id,
                    "seller_id": seller_id,
                })
                .execute()
            )
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to create conversation: {e}",
                code="UNIQUE_VIOLATION" if _is_unique_violation(e) else "INSERT_CONVERSATION_FAILED",
                details={"listing_id": listing_id, "buyer_id": buyer_id, "seller_id": seller_id},
            )

        if not response.data:
            raise SupabaseClientError(message="Insert returned no data", code="INSERT_NO_DATA")
        return response.data[0]["id"]

    @staticmethod
    def _latest_message(client: Client, conversation_id: str) -> MessagePreview | None:
        response = (
            client.table("messages")
            .select("content, created_at, sender_id, is_read")
            .eq("conversation_id", conversation_id)
            .order("created_at", desc=True)
            .limit(1)
            .execute()
        )
        if not response.data:
            return None
        return MessagePreview.model_validate(response.data[0])

    @staticmethod
    def _unread_count(client: Client, conversation_id: str, reader_id: str) -> int:
        response = (
            client.table("messages")
            .select("id", count="exact")
            .eq("conversation_id", conversation_id)
            .neq("sender_id", reader_id)
            .eq("is_read", False)
            .execute()
        )
        if response.count is not None:
            return response.count
        return len(response.data or [])

    @staticmethod
    def _summarize(client: Client, user_id: str, row: dict[str, Any]) -> ConversationSummary:
        """Build an inbox row from a conversation row with embeds."""
        conversation = Conversation.model_validate(row)
        other_id = conversation.counterpart(user_id)
        other = _first(row.get("buyer") if other_id == conversation.buyer_id else row.get("seller"))
        listing = _first(row.get("listing")) or {}

        counterpart = SenderProfile(id=other_id)
        if other:
            counterpart = SenderProfile(
                id=other_id,
                username=other.get("username") or counterpart.username,
                avatar_url=other.get("avatar_url"),
            )

        return ConversationSummary(
            id=conversation.id,
            listing_id=conversation.listing_id,
            listing_title=listing.get("title") or "Unknown listing",
            listing_price=listing.get("price"),
            counterpart=counterpart,
            latest_message=MessagingService._latest_message(client, conversation.id),
            unread_count=MessagingService._unread_count(client, conversation.id, user_id),
            created_at=conversation.created_at,
            updated_at=conversation.updated_at,
        )

    # -------------------------------------------------------------------------
    # Conversations
    # -------------------------------------------------------------------------

    @staticmethod
    def start_or_get_conversation(
        session: UserSession,
        listing_id: str,
        user_a: str,
        user_b: str,
    ) -> str:
        """
        Return the conversation for (listing, pair), creating it if needed.

        Participant order doesn't matter: the listing's owner takes the
        seller role and the other user the buyer role.

        Args:
            session: The calling user (must be user_a or user_b)
            listing_id: Listing the conversation is about
            user_a: One participant
            user_b: The other participant

        Returns:
            Conversation ID (existing or newly created)

        Raises:
            MissingIdentifierError: If any ID is empty
            InvalidParticipantsError: Same user twice, caller not a participant,
                or neither participant owns the listing
            ListingNotFoundError: If the listing doesn't exist
            UserNotFoundError: If either profile doesn't exist
            TransportError: If a storage call fails
        """
        operation = "start_conversation"
        listing_id, user_a, user_b = str(listing_id or ""), str(user_a or ""), str(user_b or "")

        for field, value in (("listing_id", listing_id), ("user_a", user_a), ("user_b", user_b)):
            if not value:
                raise MissingIdentifierError(field, operation=operation)
        if user_a == user_b:
            raise InvalidParticipantsError(
                "participants must be two different users",
                operation=operation,
                user_id=user_a,
            )
        if session.user_id not in (user_a, user_b):
            raise InvalidParticipantsError(
                "the calling user must be one of the participants",
                operation=operation,
                user_id=session.user_id,
            )

        client = MessagingService._client(session, operation)

        try:
            listing = SupabaseClient.fetch_listing(client, listing_id)
            if not listing:
                raise ListingNotFoundError(listing_id, operation=operation)

            for user_id in (user_a, user_b):
                if not SupabaseClient.fetch_profile(client, user_id):
                    raise UserNotFoundError(user_id, operation=operation)

            seller_id = str(listing.get("seller_id") or "")
            if seller_id not in (user_a, user_b):
                raise InvalidParticipantsError(
                    "neither participant is the listing's seller",
                    operation=operation,
                    listing_id=listing_id,
                )
            buyer_id = user_b if seller_id == user_a else user_a

            existing = MessagingService._find_conversation(client, listing_id, buyer_id, seller_id)
            if existing:
                logger.debug(f"Reusing conversation {existing} for listing {listing_id}")
                return existing

            try:
                conversation_id = MessagingService._insert_conversation(
                    client, listing_id, buyer_id, seller_id
                )
            except SupabaseClientError as e:
                if e.code != "UNIQUE_VIOLATION":
                    raise
                # Lost the race to the other participant; use their row
                winner = MessagingService._find_conversation(client, listing_id, buyer_id, seller_id)
                if not winner:
                    raise
                logger.info(f"Concurrent start for listing {listing_id} resolved to {winner}")
                return winner

            logger.info(
                f"Created conversation {conversation_id} for listing {listing_id} "
                f"(buyer: {buyer_id}, seller: {seller_id})"
            )
            return conversation_id

        except SupabaseClientError as e:
            logger.error(f"Failed to start conversation for listing {listing_id}: {e}")
            raise TransportError(str(e), operation=operation)

    @staticmethod
    def list_conversations(session: UserSession) -> list[ConversationSummary]:
        """
        List the user's conversations, most recently active first.

        Each summary carries the counterpart's display fields, the listing
        title and the latest message (None when nothing was sent yet).

        Raises:
            TransportError: If a query fails
        """
        operation = "list_conversations"
        client = MessagingService._client(session, operation)
        user_id = session.user_id

        try:
            response = (
                client.table("conversations")
                .select(SUMMARY_COLUMNS)
                .or_(f"buyer_id.eq.{user_id},seller_id.eq.{user_id}")
                .order("updated_at", desc=True)
                .execute()
            )
            rows = response.data or []
            summaries = [MessagingService._summarize(client, user_id, row) for row in rows]

        except Exception as e:
            logger.error(f"Failed to list conversations for user {user_id}: {e}")
            raise TransportError(str(e), operation=operation)

        logger.debug(f"Listed {len(summaries)} conversations for user {user_id}")
        return summaries

    @staticmethod
    def get_conversation(session: UserSession, conversation_id: str) -> ConversationSummary:
        """
        Get one conversation summary (chat screen header).

        Raises:
            ConversationNotFoundError: If absent or the user isn't a participant
            TransportError: If a query fails
        """
        operation = "get_conversation"
        conversation_id = _conversation_id(conversation_id, operation)
        client = MessagingService._client(session, operation)

        try:
            response = (
                client.table("conversations")
                .select(SUMMARY_COLUMNS)
                .eq("id", conversation_id)
                .limit(1)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to fetch conversation {conversation_id}: {e}")
            raise TransportError(str(e), operation=operation)

        if not response.data:
            raise ConversationNotFoundError(conversation_id, operation=operation)

        row = response.data[0]
        if session.user_id not in (str(row.get("buyer_id")), str(row.get("seller_id"))):
            raise ConversationNotFoundError(str(conversation_id), operation=operation)

        try:
            return MessagingService._summarize(client, session.user_id, row)
        except Exception as e:
            logger.error(f"Failed to summarize conversation {conversation_id}: {e}")
            raise TransportError(str(e), operation=operation)

    # -------------------------------------------------------------------------
    # Messages
    # -------------------------------------------------------------------------

    @staticmethod
    def send_message(session: UserSession, conversation_id: str, content: str) -> Message:
        """
        Append a message to a conversation as the session user.

        Args:
            session: The sender
            conversation_id: Target conversation
            content: Message text (trimmed; must not be empty)

        Returns:
            The stored message with resolved sender fields

        Raises:
            MissingIdentifierError: If conversation_id is empty
            EmptyMessageError: If content is blank
            MessageTooLongError: If content exceeds MESSAGE_MAX_LENGTH
            ConversationNotFoundError: If absent or the sender isn't a participant
            TransportError: If the insert fails
        """
        operation = "send_message"
        conversation_id = _conversation_id(conversation_id, operation)
        text = (content or "").strip()

        if not text:
            raise EmptyMessageError(conversation_id, operation=operation)
        if len(text) > settings.MESSAGE_MAX_LENGTH:
            raise MessageTooLongError(len(text), settings.MESSAGE_MAX_LENGTH, operation=operation)

        client = MessagingService._client(session, operation)
        MessagingService._load_conversation(client, session, conversation_id, operation)

        try:
            response = (
                client.table("messages")
                .insert({
                    "conversation_id": conversation_id,
                    "sender_id": session.user_id,
                    "content": text,
                    "is_read": False,
                })
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to insert message into conversation {conversation_id}: {e}")
            raise TransportError(str(e), operation=operation)

        if not response.data:
            raise TransportError("Insert returned no data", operation=operation)

        row = response.data[0]
        logger.info(f"Message {row['id']} sent to conversation {conversation_id} by {session.user_id}")

        # Step two: advance the inbox ordering to the message's own timestamp
        try:
            (
                client.table("conversations")
                .update({"updated_at": row["created_at"]})
                .eq("id", conversation_id)
                .execute()
            )
        except Exception as e:
            logger.warning(
                f"Partial failure: message {row['id']} stored but conversation "
                f"{conversation_id} updated_at not advanced: {e}"
            )

        try:
            resolved = (
                client.table("messages")
                .select(MESSAGE_COLUMNS)
                .eq("id", row["id"])
                .limit(1)
                .execute()
            )
            if resolved.data:
                return Message.from_db_row(resolved.data[0])
        except Exception as e:
            logger.warning(f"Could not resolve sender for message {row['id']}: {e}")

        return Message.from_db_row(row)

    @staticmethod
    def list_messages(session: UserSession, conversation_id: str) -> list[Message]:
        """
        List all messages in a conversation, oldest first.

        Raises:
            ConversationNotFoundError: If absent or the user isn't a participant
            TransportError: If the query fails
        """
        operation = "list_messages"
        conversation_id = _conversation_id(conversation_id, operation)
        client = MessagingService._client(session, operation)
        MessagingService._load_conversation(client, session, conversation_id, operation)

        try:
            response = (
                client.table("messages")
                .select(MESSAGE_COLUMNS)
                .eq("conversation_id", conversation_id)
                .order("created_at")
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to list messages for conversation {conversation_id}: {e}")
            raise TransportError(str(e), operation=operation)

        messages = [Message.from_db_row(row) for row in response.data or []]
        logger.debug(f"Fetched {len(messages)} messages for conversation {conversation_id}")
        return messages

    @staticmethod
    def mark_read(session: UserSession, conversation_id: str) -> int:
        """
        Mark every unread message not authored by the reader as read.

        Idempotent: a second call flips nothing.

        Returns:
            Number of messages flipped to read

        Raises:
            ConversationNotFoundError: If absent or the user isn't a participant
            TransportError: If the update fails
        """
        operation = "mark_read"
        conversation_id = _conversation_id(conversation_id, operation)
        client = MessagingService._client(session, operation)
        MessagingService._load_conversation(client, session, conversation_id, operation)

        try:
            response = (
                client.table("messages")
                .update({"is_read": True})
                .eq("conversation_id", conversation_id)
                .neq("sender_id", session.user_id)
                .eq("is_read", False)
                .execute()
            )
        except Exception as e:
            logger.error(f"Failed to mark messages read in conversation {conversation_id}: {e}")
            raise TransportError(str(e), operation=operation)

        flipped = len(response.data or [])
        if flipped:
            logger.info(f"Marked {flipped} messages read in {conversation_id} for {session.user_id}")
        return flipped

    # -------------------------------------------------------------------------
    # Realtime
    # -------------------------------------------------------------------------

    @staticmethod
    async def subscribe_to_new_messages(
        session: UserSession,
        conversation_id: str,
        on_message: Callable[[Message], Awaitable[None] | None] | None = None,
    ) -> MessageSubscription:
        """
        Subscribe to messages inserted into a conversation.

        Pushed rows are delivered as stored, without sender display fields.
        Nothing missed while disconnected is replayed; call list_messages
        after reconnecting.

        Args:
            session: The subscribing participant
            conversation_id: Conversation to watch
            on_message: Optional callback; when given, a consumer task feeds
                it from the subscription queue

        Returns:
            MessageSubscription handle; close() it to release the channel

        Raises:
            ConversationNotFoundError: If absent or the user isn't a participant
            TransportError: If the realtime channel can't be opened
        """
        operation = "subscribe_to_new_messages"
        conversation_id = _conversation_id(conversation_id, operation)

        def _check_access() -> Conversation:
            client = MessagingService._client(session, operation)
            return MessagingService._load_conversation(client, session, conversation_id, operation)

        await asyncio.to_thread(_check_access)

        try:
            return await MessageSubscription.open(session, conversation_id, on_message=on_message)
        except SupabaseClientError as e:
            logger.error(f"Failed to subscribe to conversation {conversation_id}: {e}")
            raise TransportError(str(e), operation=operation)
