# =============================================================================
# core/services/subscription.py - Realtime New-Message Subscription
# =============================================================================
# Bridges a Supabase Realtime `postgres_changes` channel to an asyncio.Queue.
#
# The channel callback never touches callers directly: it parses the pushed
# row, drops duplicates, and enqueues a Message. Consumers either iterate the
# subscription (`async for message in sub`) or pass `on_message` and let the
# subscription's own consumer task drain the queue into it.
#
# Delivery is best-effort while connected. Nothing is replayed after a
# disconnect, and pushed rows carry no resolved sender fields.
#
# Usage:
#   async with await MessageSubscription.open(session, conversation_id) as sub:
#       async for message in sub:
#           ...
# =============================================================================

from __future__ import annotations

import asyncio
import inspect
import logging
from collections import OrderedDict
from typing import Any, Awaitable, Callable

from pydantic import ValidationError

from app.config import settings
from core.models.message import Message
from core.models.session import UserSession
from lib.supabase_client import SupabaseClient, SupabaseClientError

logger = logging.getLogger(__name__)

MessageCallback = Callable[[Message], Awaitable[None] | None]


def extract_record(payload: Any) -> dict[str, Any] | None:
    """
    Pull the inserted row out of a postgres_changes payload.

    Handles both payload shapes realtime clients emit:
    {"new": {...}} / {"record": {...}} and {"data": {"record": {...}}}.
    """
    if not isinstance(payload, dict):
        return None

    data = payload.get("data")
    candidates = [payload.get("new"), payload.get("record")]
    if isinstance(data, dict):
        candidates.append(data.get("record"))

    for candidate in candidates:
        if isinstance(candidate, dict) and candidate:
            return candidate
    return None


class MessageSubscription:
    """
    Handle for a live INSERT feed on one conversation's messages.

    Deduplicates by message id, so a message shown from send_message's
    return value can be registered with mark_seen() and won't be shown
    twice when the feed echoes it back. Only the most recent `seen_limit`
    ids are remembered (default: ten queues' worth).
    """

    def __init__(
        self,
        conversation_id: str,
        client: Any,
        on_message: MessageCallback | None = None,
        max_queue_size: int = 100,
        seen_limit: int | None = None,
    ):
        self.conversation_id = str(conversation_id)
        self._client = client
        self._channel: Any = None
        self._queue: asyncio.Queue[Message | None] = asyncio.Queue(maxsize=max_queue_size)
        self._seen: OrderedDict[str, None] = OrderedDict()
        self._seen_limit = seen_limit or max_queue_size * 10
        self._on_message = on_message
        self._consumer_task: asyncio.Task | None = None
        self._closed = False

    @classmethod
    async def open(
        cls,
        session: UserSession,
        conversation_id: str,
        on_message: MessageCallback | None = None,
    ) -> "MessageSubscription":
        """
        Open a realtime channel for the conversation as the session user.

        Raises:
            SupabaseClientError: If the client or channel can't be set up
        """
        client = await SupabaseClient.async_for_session(session)
        subscription = cls(
            conversation_id,
            client,
            on_message=on_message,
            max_queue_size=settings.REALTIME_QUEUE_SIZE,
        )
        await subscription.start()
        return subscription

    @property
    def topic(self) -> str:
        return f"messages:{self.conversation_id}"

    @property
    def closed(self) -> bool:
        return self._closed

    async def start(self) -> None:
        """Register the postgres_changes listener and start the consumer task."""
        try:
            channel = self._client.channel(self.topic)
            channel.on_postgres_changes(
                "INSERT",
                schema="public",
                table="messages",
                filter=f"conversation_id=eq.{self.conversation_id}",
                callback=self._handle_payload,
            )
            await channel.subscribe()
        except Exception as e:
            raise SupabaseClientError(
                message=f"Failed to subscribe to {self.topic}: {e}",
                code="REALTIME_SUBSCRIBE_FAILED",
                suggestion="Check that Realtime is enabled for the messages table",
                details={"conversation_id": self.conversation_id},
            )

        self._channel = channel
        logger.info(f"Subscribed to new messages on {self.topic}")

        if self._on_message is not None:
            self._consumer_task = asyncio.create_task(self._consume())

    # -------------------------------------------------------------------------
    # Producer side
    # -------------------------------------------------------------------------

    def _handle_payload(self, payload: Any, *args: Any) -> None:
        """Channel callback: parse the pushed row and enqueue it."""
        record = extract_record(payload)
        if record is None:
            logger.warning(f"Ignoring realtime payload without a record on {self.topic}")
            return

        if str(record.get("conversation_id")) != self.conversation_id:
            return

        try:
            message = Message.from_db_row(record)
        except ValidationError as e:
            logger.warning(f"Ignoring malformed message row on {self.topic}: {e}")
            return

        self.deliver(message)

    def deliver(self, message: Message) -> bool:
        """
        Enqueue a message unless it was already seen or the queue is full.

        Returns:
            True if the message was enqueued
        """
        if self._closed or message.id in self._seen:
            return False

        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.warning(
                f"Realtime queue full on {self.topic}, dropped message {message.id}; "
                f"refetch messages to reconcile"
            )
            return False

        self._remember(message.id)
        return True

    def mark_seen(self, message_id: str) -> None:
        """Register a message the caller already displays."""
        self._remember(str(message_id))

    def _remember(self, message_id: str) -> None:
        self._seen[message_id] = None
        self._seen.move_to_end(message_id)
        while len(self._seen) > self._seen_limit:
            self._seen.popitem(last=False)

    # -------------------------------------------------------------------------
    # Consumer side
    # -------------------------------------------------------------------------

    def __aiter__(self) -> "MessageSubscription":
        return self

    async def __anext__(self) -> Message:
        if self._closed:
            raise StopAsyncIteration
        message = await self._queue.get()
        if message is None or self._closed:
            raise StopAsyncIteration
        return message

    async def _consume(self) -> None:
        async for message in self:
            try:
                result = self._on_message(message)
                if inspect.isawaitable(result):
                    await result
            except Exception:
                logger.exception(f"on_message handler failed for message {message.id}")

    # -------------------------------------------------------------------------
    # Disposal
    # -------------------------------------------------------------------------

    async def close(self) -> None:
        """Unsubscribe, release the channel and stop the consumer task."""
        if self._closed:
            return
        self._closed = True

        # Wake any iterator blocked on an empty queue
        try:
            self._queue.put_nowait(None)
        except asyncio.QueueFull:
            pass

        if self._channel is not None:
            try:
                await self._client.remove_channel(self._channel)
            except Exception as e:
                logger.warning(f"Failed to remove channel {self.topic}: {e}")
            self._channel = None

        task = self._consumer_task
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        logger.info(f"Unsubscribed from {self.topic}")

    async def __aenter__(self) -> "MessageSubscription":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
