"""
Запоминание авторов сообщений в ветках постов.
"""

from aiogram import Router
from aiogram.types import Message

from ..services.logger import get_logger
from .common import get_identity_service, get_thread_service, resolve_thread

logger = get_logger('thread_messages')
router = Router()


@router.message()
async def handle_thread_message(message: Message):
    """Сохраняет автора каждого сообщения из ветки обсуждения поста."""
    thread = resolve_thread(message)
    if not thread:
        return

    post_id, channel_id = thread
    if message.is_automatic_forward or not message.from_user or message.from_user.is_bot:
        # Сам пост канала тоже запоминаем, чтобы ответы на него находили ветку
        get_thread_service().record_message(message.chat.id, post_id, message.message_id, 0, channel_id)
        return

    user = message.from_user
    text = message.text or message.caption
    get_thread_service().record_message(
        message.chat.id, post_id, message.message_id, user.id, channel_id, text
    )
    get_identity_service().upsert_user(user.id, user.full_name, user.username)
    logger.debug(f"📝 Сообщение {message.message_id} от {user.id} в посте {post_id}")
