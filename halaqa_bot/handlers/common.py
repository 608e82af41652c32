"""
Общие функции обработчиков: сервисы, определение поста, разбор аргументов.
"""

from typing import List, Optional, Tuple
from aiogram.types import Message

from ..config import load_config
from ..services.errors import NotFound, InvalidOperation
from ..services.identity import IdentityService
from ..services.queue_view import QueueView, format_user_list
from ..services.sessions import SessionManager
from ..services.storage import Storage
from ..services.threads import ThreadService
from ..services.turn_queue import TurnQueueService
from ..types import QueueUser, UserList

EMPTY_LIST_TEXT = "📋 القائمة فارغة."
NOT_IN_THREAD_TEXT = "استخدم الأمر كرد على منشور الحلقة أو على تعليق فيه."


def get_storage() -> Storage:
    """Получает экземпляр Storage."""
    return Storage(load_config().data_file)


def get_queue_service() -> TurnQueueService:
    return TurnQueueService(get_storage(), insert_offset=load_config().done_user_insert_offset)


def get_session_manager() -> SessionManager:
    return SessionManager(get_storage())


def get_queue_view() -> QueueView:
    return QueueView(get_storage())


def get_identity_service() -> IdentityService:
    return IdentityService(get_storage())


def get_thread_service() -> ThreadService:
    return ThreadService(get_storage())


def resolve_thread(message: Message) -> Optional[Tuple[int, Optional[int]]]:
    """
    Определяет пост канала, к ветке которого относится сообщение.

    Порядок: само сообщение - автоматическая пересылка поста; ответ на
    пересылку; ответ на сообщение, которое уже известно боту.

    Returns:
        (post_id, channel_id) или None, если сообщение не из ветки поста
    """
    if message.is_automatic_forward:
        return message.message_id, message.sender_chat.id if message.sender_chat else None

    reply = message.reply_to_message
    if not reply:
        return None

    if reply.is_automatic_forward:
        return reply.message_id, reply.sender_chat.id if reply.sender_chat else None

    known = get_thread_service().get_message_author(message.chat.id, reply.message_id)
    if known:
        return known['post_id'], known.get('channel_id')
    return None


def command_args(message: Message) -> List[str]:
    """Аргументы команды без самой команды."""
    parts = (message.text or '').split()
    return parts[1:]


def parse_position(value: str) -> int:
    """Разбирает номер позиции из аргумента команды."""
    try:
        position = int(value)
    except ValueError:
        raise InvalidOperation(f"Неверная позиция: {value}")
    if position < 1:
        raise InvalidOperation(f"Неверная позиция: {value}")
    return position


def entry_at(users: List[QueueUser], number: int) -> QueueUser:
    """Находит запись по номеру в показанном списке (с 1)."""
    if 1 <= number <= len(users):
        return users[number - 1]
    raise NotFound(f"Нет участника под номером {number}")


def render_user_list(user_list: UserList, teacher_name: Optional[str] = None) -> str:
    """Текст очереди для сообщения в чат."""
    header = f"📋 القائمة (الحلقة {user_list['current_session']})"
    if teacher_name:
        header += f" - {teacher_name}"

    active = user_list['active_users']
    body = format_user_list(active) if active else EMPTY_LIST_TEXT
    text = f"{header}:\n\n{body}"

    if user_list['completed_users']:
        text += f"\n\n✅ أنهوا: {len(user_list['completed_users'])}"
    return text
