"""
Авторы сообщений в ветках обсуждения постов и последний список очереди.
"""

from datetime import datetime
from typing import Callable, Optional

from ..types import LastListMessage, MessageAuthor
from .storage import Storage


def _key(chat_id: int, item_id: int) -> str:
    return f"{chat_id}:{item_id}"


class ThreadService:
    """Запоминает, к какому посту и какому автору относится сообщение."""

    def __init__(self, storage: Storage, clock: Callable[[], datetime] = datetime.now):
        self.storage = storage
        self.clock = clock

    def record_message(
        self,
        chat_id: int,
        post_id: int,
        message_id: int,
        user_id: int,
        channel_id: Optional[int] = None,
        text: Optional[str] = None,
    ) -> None:
        """Сохраняет автора сообщения (повторная запись обновляет данные)."""
        with self.storage.transaction() as store:
            store['message_authors'][_key(chat_id, message_id)] = {
                'chat_id': chat_id,
                'post_id': post_id,
                'message_id': message_id,
                'user_id': user_id,
                'channel_id': channel_id,
                'text': text,
                'created_at': self.clock().isoformat(),
            }

    def get_message_author(self, chat_id: int, message_id: int) -> Optional[MessageAuthor]:
        """Возвращает запись о сообщении или None, если сообщение не из ветки."""
        store = self.storage.load()
        return store['message_authors'].get(_key(chat_id, message_id))

    def set_last_list_message(self, chat_id: int, post_id: int, message_id: int, session_number: int) -> None:
        """Запоминает последнее сообщение со списком очереди поста."""
        with self.storage.transaction() as store:
            store['last_list_messages'][_key(chat_id, post_id)] = {
                'chat_id': chat_id,
                'post_id': post_id,
                'message_id': message_id,
                'session_number': session_number,
                'updated_at': self.clock().isoformat(),
            }

    def get_last_list_message(self, chat_id: int, post_id: int) -> Optional[LastListMessage]:
        store = self.storage.load()
        return store['last_list_messages'].get(_key(chat_id, post_id))

    def clear_last_list_message(self, chat_id: int, post_id: int) -> None:
        """Забывает сообщение со списком (например, если оно удалено в чате)."""
        with self.storage.transaction() as store:
            store['last_list_messages'].pop(_key(chat_id, post_id), None)

    def replaceable_list_message(self, chat_id: int, post_id: int, session_number: int) -> Optional[int]:
        """
        ID прежнего списка, который нужно удалить перед отправкой нового.

        Список другой сессии остается в чате как история той сессии.
        """
        last = self.get_last_list_message(chat_id, post_id)
        if last and last['session_number'] == session_number:
            return last['message_id']
        return None
