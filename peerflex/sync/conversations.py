"""Live view of the viewer's conversations and the open conversation's messages.

One instance per mounted client. The conversation list is refreshed silently
whenever the viewer's memberships change or any message is inserted; the open
conversation has its own message listener, swapped when the selection changes.
Overlapping loads are not fenced: whichever fetch resolves last wins.
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional

from peerflex.schemas.chat import Conversation, Message
from peerflex.services.chat_service import ChatService
from peerflex.sync.base import OnChange, ViewState, error_text
from peerflex.utils.change_feed import Subscription, SubscriptionGroup


logger = logging.getLogger(__name__)


class ConversationSync(ViewState):

    def __init__(self, service: ChatService, on_change: Optional[OnChange] = None) -> None:
        super().__init__(on_change)
        self._service = service
        self.conversations: List[Conversation] = []
        self.messages: List[Message] = []
        self.current_conversation: Optional[Conversation] = None
        self.loading = True
        self.error: Optional[str] = None

        self._room_listeners: Dict[str, Subscription] = {}
        self._listener_lock = asyncio.Lock()
        self._conversations_listener: Optional[SubscriptionGroup] = None

    @property
    def live_room_listeners(self) -> List[str]:
        return [room_id for room_id, sub in self._room_listeners.items() if sub.active]

    async def start(self) -> None:
        try:
            self._conversations_listener = await self._service.subscribe_to_conversations(self._on_conversations_changed)
        except Exception:
            logger.exception("Failed to subscribe to conversations")
        await self.load_conversations()

    async def close(self) -> None:
        if self._conversations_listener is not None:
            await self._conversations_listener.unsubscribe()
            self._conversations_listener = None
        async with self._listener_lock:
            for sub in self._room_listeners.values():
                await sub.unsubscribe()
            self._room_listeners.clear()

    async def load_conversations(self, silent: bool = False) -> None:
        if not silent and not self.conversations:
            self.loading = True
            await self._changed()
        try:
            conversations = await self._service.get_conversations()
        except Exception as exc:
            logger.warning("Failed to load conversations: %s", exc)
            self.error = error_text(exc, "Failed to load conversations")
        else:
            self.conversations = conversations
            self.error = None
        finally:
            if not silent:
                self.loading = False
        await self._changed()

    async def refresh_conversations(self) -> None:
        await self.load_conversations(False)

    async def select_conversation(self, conversation_id: str) -> None:
        conversation = next((c for c in self.conversations if c.id == conversation_id), None)
        if conversation is None:
            logger.debug("Ignoring selection of unknown conversation %s", conversation_id)
            return

        self.current_conversation = conversation
        await self._swap_room_listener(conversation.id)
        await self._changed()

        try:
            messages = await self._service.get_messages(conversation.id)
        except Exception as exc:
            logger.warning("Failed to load messages for %s: %s", conversation.id, exc)
            self.error = error_text(exc, "Failed to load messages")
            await self._changed()
            return
        self.messages = messages
        await self._changed()

        try:
            await self._service.mark_as_read(conversation.id)
        except Exception as exc:
            logger.warning("Failed to mark %s as read: %s", conversation.id, exc)
            self.error = error_text(exc, "Failed to mark messages as read")
            await self._changed()
            raise

    async def send_message(self, chat_room_id: str, content: str) -> None:
        try:
            await self._service.send_message(chat_room_id, content)
        except Exception as exc:
            self.error = error_text(exc, "Failed to send message")
            await self._changed()
            raise

    async def _swap_room_listener(self, room_id: str) -> None:
        async with self._listener_lock:
            for other_id in [r for r in self._room_listeners if r != room_id]:
                await self._room_listeners.pop(other_id).unsubscribe()
            if room_id in self._room_listeners:
                return

            async def _on_message(message: Message) -> None:
                await self._on_room_message(room_id, message)

            try:
                self._room_listeners[room_id] = await self._service.subscribe_to_messages(room_id, _on_message)
            except Exception:
                logger.exception("Failed to subscribe to messages in %s", room_id)

    async def _on_room_message(self, room_id: str, message: Message) -> None:
        if self.current_conversation is None or self.current_conversation.id != room_id:
            return
        incoming = str(message.id)
        if any(str(existing.id) == incoming for existing in self.messages):
            logger.debug("Duplicate message %s ignored", incoming)
        else:
            self.messages = self.messages + [message]
        self.conversations = [
            conv.model_copy(update={"last_message": message.content, "timestamp": message.created_at})
            if conv.id == room_id
            else conv
            for conv in self.conversations
        ]
        await self._changed()

    async def _on_conversations_changed(self) -> None:
        await self.load_conversations(silent=True)

    def snapshot(self) -> Dict[str, Any]:
        return {
            "conversations": [c.model_dump(mode="json") for c in self.conversations],
            "messages": [m.model_dump(mode="json") for m in self.messages],
            "current_conversation": (
                self.current_conversation.model_dump(mode="json") if self.current_conversation else None
            ),
            "loading": self.loading,
            "error": self.error,
        }
