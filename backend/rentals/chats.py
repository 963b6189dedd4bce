from __future__ import annotations

import logging
from typing import Any

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from rentals.errors import BadRequest, Forbidden, NotFound, ValidationFailed
from rentals.media import MediaResolver
from rentals.models import Chat, Message, Property, as_utc, iso, utcnow


logger = logging.getLogger(__name__)


class ChatRepository:
    """
    Conversations between a property's owner (`renter_id`) and an inquiring
    user (`rentee_id`). At most one chat exists per (property, owner, inquirer).
    """

    def __init__(self, db: Session) -> None:
        self.db = db

    def _find(self, property_id: int, owner_id: int, caller_id: int) -> Chat | None:
        stmt = select(Chat).where(
            Chat.property_id == int(property_id),
            Chat.renter_id == int(owner_id),
            Chat.rentee_id == int(caller_id),
        )
        return self.db.execute(stmt).scalar_one_or_none()

    def start_or_get_chat(self, property_id: int, caller_id: int) -> Chat:
        p = self.db.get(Property, int(property_id))
        if not p:
            raise NotFound("Property not found")
        if int(p.owner_id) == int(caller_id):
            logger.warning("Cannot start chat with own property user_id=%s property_id=%s", caller_id, property_id)
            raise BadRequest("Cannot start chat with your own property")

        chat = self._find(p.id, p.owner_id, caller_id)
        if chat:
            logger.info("Chat retrieved chat_id=%s property_id=%s user_id=%s", chat.id, p.id, caller_id)
            return chat

        chat = Chat(property_id=p.id, renter_id=p.owner_id, rentee_id=int(caller_id))
        try:
            with self.db.begin_nested():
                self.db.add(chat)
        except IntegrityError:
            # A concurrent first contact inserted the same triple; use the winner's row.
            chat = self._find(p.id, p.owner_id, caller_id)
            if chat is None:
                raise
            logger.info("Chat retrieved after concurrent create chat_id=%s property_id=%s", chat.id, p.id)
            return chat

        logger.info("Chat created chat_id=%s property_id=%s user_id=%s", chat.id, p.id, caller_id)
        return chat

    def list_chats_for_user(self, caller_id: int) -> list[Chat]:
        stmt = (
            select(Chat)
            .options(selectinload(Chat.property))
            .where(or_(Chat.renter_id == int(caller_id), Chat.rentee_id == int(caller_id)))
        )
        chats = list(self.db.execute(stmt).scalars().all())
        # Most recent activity first; chats without messages sort by creation time.
        chats.sort(key=lambda c: (as_utc(c.last_message_at or c.created_at), c.id), reverse=True)
        return chats

    def _get_for_participant(self, chat_id: int, caller_id: int) -> Chat:
        chat = self.db.get(Chat, int(chat_id))
        if not chat:
            raise NotFound("Chat not found")
        if not chat.has_participant(caller_id):
            logger.warning("Unauthorized chat access user_id=%s chat_id=%s", caller_id, chat_id)
            raise Forbidden("Unauthorized to access this chat")
        return chat

    def list_messages(self, chat_id: int, caller_id: int) -> list[Message]:
        chat = self._get_for_participant(chat_id, caller_id)
        stmt = select(Message).where(Message.chat_id == chat.id).order_by(Message.created_at.asc(), Message.id.asc())
        return list(self.db.execute(stmt).scalars().all())

    def send_message(self, chat_id: int, caller_id: int, content: str) -> Message:
        chat = self._get_for_participant(chat_id, caller_id)
        if not (content or "").strip():
            raise ValidationFailed(["content"], "Message content is required")

        now = utcnow()
        if chat.last_message_at is not None:
            now = max(now, as_utc(chat.last_message_at))

        msg = Message(chat_id=chat.id, sender_id=int(caller_id), content=content, created_at=now)
        self.db.add(msg)
        # Same transaction as the insert: the preview never lags a committed message.
        chat.last_message = content
        chat.last_message_at = now
        self.db.add(chat)
        self.db.flush()
        logger.info("Message created message_id=%s chat_id=%s user_id=%s", msg.id, chat.id, caller_id)
        return msg


def chat_out(chat: Chat) -> dict[str, Any]:
    return {
        "id": chat.id,
        "propertyId": chat.property_id,
        "renterId": chat.renter_id,
        "renteeId": chat.rentee_id,
        "lastMessage": chat.last_message,
        "lastMessageAt": iso(chat.last_message_at),
        "createdAt": iso(chat.created_at),
    }


def chat_summary_out(chat: Chat, resolver: MediaResolver) -> dict[str, Any]:
    out = chat_out(chat)
    p = chat.property
    out["property"] = {"id": p.id, "title": p.title, "photos": resolver.resolve(p.photos)} if p else None
    return out


def message_out(m: Message) -> dict[str, Any]:
    return {
        "id": m.id,
        "chatId": m.chat_id,
        "senderId": m.sender_id,
        "content": m.content,
        "createdAt": iso(m.created_at),
    }
