import logging
from typing import Any, Callable, Dict, List, Optional

from peerflex.core.errors import NotAuthorizedError, NotFoundError, ValidationError
from peerflex.repositories.conversation_repository import ChatMemberRepository, ChatRoomRepository
from peerflex.repositories.message_repository import MessageRepository
from peerflex.repositories.user_repository import ProfileRepository
from peerflex.schemas.chat import ChatRoom, Conversation, Message
from peerflex.schemas.user import Session
from peerflex.services.base import ScopedService, attach_profiles, parse_push, parse_row, unique
from peerflex.utils.change_feed import ANY, DELETE, INSERT, ChangeEvent, ChangeFeed, Subscription, SubscriptionGroup, maybe_await


logger = logging.getLogger(__name__)


class ChatService(ScopedService):

    def __init__(
        self,
        room_repo: ChatRoomRepository,
        member_repo: ChatMemberRepository,
        message_repo: MessageRepository,
        profile_repo: ProfileRepository,
        feed: ChangeFeed,
        session: Optional[Session],
    ) -> None:
        super().__init__(session)
        self._room_repo = room_repo
        self._member_repo = member_repo
        self._message_repo = message_repo
        self._profile_repo = profile_repo
        self._feed = feed

    async def _rooms_with_members(self, room_ids: List[str]) -> Dict[str, Dict[str, Any]]:
        rooms = await self._room_repo.get_many(room_ids)
        members = await self._member_repo.list_for_rooms(list(rooms))
        await attach_profiles(self._profile_repo, members, key="user_id", target="profile")
        for room in rooms.values():
            room["members"] = []
        for member in members:
            room = rooms.get(member["chat_room_id"])
            if room is not None:
                room["members"].append(member)
        return rooms

    async def _is_member(self, room_id: str, user_id: str) -> bool:
        return await self._member_repo.count({"chat_room_id": room_id, "user_id": user_id}) > 0

    async def _require_member(self, room_id: str) -> str:
        user_id = self._require_user()
        if not await self._is_member(room_id, user_id):
            raise NotAuthorizedError("Not a member of this chat room")
        return user_id

    async def get_or_create_private_room(self, other_user_id: str) -> ChatRoom:
        user_id = self._require_user()
        if other_user_id == user_id:
            raise ValidationError("Cannot start a chat with yourself")
        if await self._profile_repo.get(other_user_id) is None:
            raise NotFoundError("User not found")

        memberships = await self._member_repo.list_for_user(user_id)
        rooms = await self._rooms_with_members([m["chat_room_id"] for m in memberships])
        for room in rooms.values():
            member_ids = {m["user_id"] for m in room["members"]}
            if not room.get("is_group") and member_ids == {user_id, other_user_id}:
                return parse_row(ChatRoom, room)

        room = await self._room_repo.create_room(created_by=user_id, is_group=False)
        await self._member_repo.add_member(room["id"], user_id)
        await self._member_repo.add_member(room["id"], other_user_id)
        logger.info("Created private room %s for %s and %s", room["id"], user_id, other_user_id)
        rooms = await self._rooms_with_members([room["id"]])
        return parse_row(ChatRoom, rooms[room["id"]])

    async def create_group_room(
        self,
        name: str,
        member_ids: List[str],
        description: Optional[str] = None,
        subject: Optional[str] = None,
    ) -> ChatRoom:
        user_id = self._require_user()
        if not name or not name.strip():
            raise ValidationError("Group name cannot be empty")
        room = await self._room_repo.create_room(
            created_by=user_id, is_group=True, name=name.strip(), description=description, subject=subject
        )
        await self._member_repo.add_member(room["id"], user_id, role="owner")
        for member_id in unique(member_ids):
            if member_id != user_id:
                await self._member_repo.add_member(room["id"], member_id)
        rooms = await self._rooms_with_members([room["id"]])
        return parse_row(ChatRoom, rooms[room["id"]])

    async def get_conversations(self) -> List[Conversation]:
        user_id = self._require_user()
        memberships = await self._member_repo.list_for_user(user_id)
        rooms = await self._rooms_with_members([m["chat_room_id"] for m in memberships])

        conversations = []
        for membership in memberships:
            room_row = rooms.get(membership["chat_room_id"])
            if room_row is None:
                logger.warning("Membership %s points at missing room %s", membership["id"], membership["chat_room_id"])
                continue
            last = await self._message_repo.last_message(room_row["id"])
            room_row["last_message"] = last
            room = parse_row(ChatRoom, room_row)
            unread = await self._message_repo.count_unread(room.id, user_id)
            conversations.append(self._to_conversation(room, user_id, unread))
        return conversations

    def _to_conversation(self, room: ChatRoom, user_id: str, unread: int) -> Conversation:
        others = [m for m in room.members if m.user_id != user_id]
        other_user = others[0].profile if others else None
        last = room.last_message
        if room.is_group:
            name = room.name or "Group Chat"
            avatar = "GC"
        else:
            name = other_user.full_name if other_user and other_user.full_name else "Unknown User"
            avatar = other_user.full_name[:2] if other_user and other_user.full_name else "UU"
        return Conversation(
            id=room.id,
            type="group" if room.is_group else "direct",
            name=name,
            last_message=last.content if last else None,
            timestamp=last.created_at if last else room.created_at,
            unread=unread,
            avatar=avatar,
            chat_room=room,
            other_user=None if room.is_group else other_user,
        )

    async def get_messages(self, chat_room_id: str, page: int = 0, page_size: int = 50) -> List[Message]:
        await self._require_member(chat_room_id)
        rows = await self._message_repo.get_page(chat_room_id, page=page, page_size=page_size)
        rows.reverse()
        await attach_profiles(self._profile_repo, rows, key="user_id", target="user")
        return [parse_row(Message, row) for row in rows]

    async def send_message(self, chat_room_id: str, content: str, message_type: str = "text") -> Message:
        self._require_user()
        if not content or not content.strip():
            raise ValidationError("Message content cannot be empty")
        user_id = await self._require_member(chat_room_id)
        row = await self._message_repo.save_message(
            chat_room_id=chat_room_id,
            user_id=user_id,
            content=content.strip(),
            message_type=message_type,
        )
        await attach_profiles(self._profile_repo, [row], key="user_id", target="user")
        return parse_row(Message, row)

    async def mark_as_read(self, chat_room_id: str) -> None:
        user_id = await self._require_member(chat_room_id)
        updated = await self._message_repo.mark_read(chat_room_id, user_id)
        logger.debug("Marked %d messages read in %s for %s", updated, chat_room_id, user_id)

    async def subscribe_to_messages(self, chat_room_id: str, on_message: Callable[[Message], Any]) -> Subscription:
        await self._require_member(chat_room_id)

        async def _on_insert(change: ChangeEvent) -> None:
            message = parse_push(Message, change.new)
            if message is not None:
                await maybe_await(on_message(message))

        return await self._feed.subscribe("messages", _on_insert, event=INSERT, filter={"chat_room_id": chat_room_id})

    async def subscribe_to_conversations(self, on_any_change: Callable[[], Any]) -> SubscriptionGroup:
        user_id = self._require_user()
        # message inserts only matter for rooms the viewer is in
        room_ids = {row["chat_room_id"] for row in await self._member_repo.list_for_user(user_id)}

        async def _on_membership(change: ChangeEvent) -> None:
            room_id = change.row.get("chat_room_id")
            if change.type == DELETE:
                room_ids.discard(room_id)
            elif room_id:
                room_ids.add(room_id)
            await maybe_await(on_any_change())

        async def _on_message(change: ChangeEvent) -> None:
            if change.new.get("chat_room_id") in room_ids:
                await maybe_await(on_any_change())

        memberships = await self._feed.subscribe("chat_members", _on_membership, event=ANY, filter={"user_id": user_id})
        try:
            messages = await self._feed.subscribe("messages", _on_message, event=INSERT)
        except Exception:
            await memberships.unsubscribe()
            raise
        return SubscriptionGroup([memberships, messages], label=f"conversations:{user_id}")
