"""
Хранилище данных участников: имя в Telegram и настоящее имя.
"""

import logging
import re
from datetime import datetime
from typing import Callable, Dict, Iterable, List, Optional

from ..types import UserRecord
from .errors import NotFound
from .storage import Storage

logger = logging.getLogger(__name__)


def join_detected_names(names: List[str]) -> str:
    """Склеивает найденные части имени, убирая арабские и латинские запятые."""
    full_name = ' '.join(names)
    full_name = full_name.replace('،', ' ').replace(',', ' ')
    return re.sub(r'\s+', ' ', full_name).strip()


def display_name(user: Optional[UserRecord]) -> str:
    """
    Имя для отображения: настоящее имя, иначе имя в Telegram.

    Подтвержденное и найденное имя хранятся в одном поле real_name:
    подтверждение перезаписывает найденное. Без данных - пустая строка.
    """
    if not user:
        return ''
    return user.get('real_name') or user.get('telegram_name') or ''


class IdentityService:
    """Создание и обновление данных участников."""

    def __init__(self, storage: Storage, clock: Callable[[], datetime] = datetime.now):
        self.storage = storage
        self.clock = clock

    def upsert_user(self, user_id: int, telegram_name: str, username: Optional[str] = None) -> Dict[str, bool]:
        """Создает участника или обновляет его данные из Telegram."""
        with self.storage.transaction() as store:
            user = store['users'].get(str(user_id))
            created = user is None
            if created:
                user = UserRecord(user_id=user_id, real_name_verified=False)
                store['users'][str(user_id)] = user

            user['telegram_name'] = telegram_name.strip()
            user['username'] = username
            user['updated_at'] = self.clock().isoformat()

        return {'created': created}

    def _update(self, user_id: int, **fields) -> None:
        with self.storage.transaction() as store:
            user = store['users'].get(str(user_id))
            if not user:
                raise NotFound(f"Пользователь {user_id} не найден")
            user.update(fields)
            user['updated_at'] = self.clock().isoformat()

    def update_real_name(self, user_id: int, real_name: str) -> None:
        """Задает подтвержденное настоящее имя. Пустая строка очищает имя."""
        self._update(user_id, real_name=real_name.strip() or None, real_name_verified=True)
        logger.info(f"Настоящее имя пользователя {user_id} подтверждено: {real_name.strip()}")

    def update_telegram_name(self, user_id: int, telegram_name: str) -> None:
        """Исправляет имя в Telegram."""
        self._update(user_id, telegram_name=telegram_name.strip())

    def update_detected_name(self, user_id: int, names: List[str]) -> bool:
        """
        Сохраняет имя, найденное в тексте сообщения.

        Имя записывается только если у участника ещё нет настоящего имени.

        Returns:
            True, если имя сохранено
        """
        full_name = join_detected_names(names)
        if not full_name:
            return False

        with self.storage.transaction() as store:
            user = store['users'].get(str(user_id))
            if not user or user.get('real_name'):
                return False
            user['real_name'] = full_name
            user['real_name_verified'] = False
            user['updated_at'] = self.clock().isoformat()

        logger.info(f"Найдено имя пользователя {user_id}: {full_name}")
        return True

    def get_user(self, user_id: int) -> Optional[UserRecord]:
        """Получает участника по ID."""
        store = self.storage.load()
        return store['users'].get(str(user_id))

    def get_users(self, user_ids: Iterable[int]) -> Dict[int, UserRecord]:
        """Получает участников по списку ID; отсутствующие пропускаются."""
        store = self.storage.load()
        users = {}
        for user_id in user_ids:
            user = store['users'].get(str(user_id))
            if user:
                users[user_id] = user
        return users
