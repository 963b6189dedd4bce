from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter

from rentals.chats import ChatRepository, chat_summary_out, message_out
from rentals.deps import Ctx, CurrentUser, DbSession
from rentals.schemas import MessageCreateIn


logger = logging.getLogger(__name__)

router = APIRouter(tags=["chats"])


@router.get("/api/chats")
def list_chats(me: CurrentUser, ctx: Ctx, db: DbSession) -> list[dict[str, Any]]:
    chats = ChatRepository(db).list_chats_for_user(me.id)
    logger.info("User chats retrieved user_id=%s count=%s", me.id, len(chats))
    return [chat_summary_out(c, ctx.resolver) for c in chats]


@router.get("/api/chats/{property_id:int}/start")
def start_chat(property_id: int, me: CurrentUser, db: DbSession) -> dict[str, Any]:
    chat = ChatRepository(db).start_or_get_chat(property_id, me.id)
    return {
        "chatId": chat.id,
        "propertyId": chat.property_id,
        "renterId": chat.renter_id,
        "renteeId": chat.rentee_id,
    }


@router.get("/api/chats/{chat_id:int}/messages")
def list_messages(chat_id: int, me: CurrentUser, db: DbSession) -> list[dict[str, Any]]:
    return [message_out(m) for m in ChatRepository(db).list_messages(chat_id, me.id)]


@router.post("/api/chats/{chat_id:int}/messages")
def send_message(chat_id: int, data: MessageCreateIn, me: CurrentUser, db: DbSession) -> dict[str, Any]:
    return message_out(ChatRepository(db).send_message(chat_id, me.id, data.content))
