"""
Жизненный цикл сессий поста: создание, перенос незавершенных, выбор текущей.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional

from ..types import Store, Session
from .storage import Storage, active_entries, scope_entries

logger = logging.getLogger(__name__)

# Для постов без записей о сессиях
DEFAULT_SESSION_NUMBER = 1


def post_sessions(store: Store, chat_id: int, post_id: int) -> List[Session]:
    """Сессии поста от новых к старым: по created_at, затем по номеру."""
    sessions = [
        session for session in store['sessions'].values()
        if session['chat_id'] == chat_id and session['post_id'] == post_id
    ]
    return sorted(
        sessions,
        key=lambda session: (session['created_at'], session['session_number']),
        reverse=True,
    )


def latest_session_number(store: Store, chat_id: int, post_id: int) -> int:
    """Номер последней сессии поста или 1, если сессий еще не было."""
    sessions = post_sessions(store, chat_id, post_id)
    if not sessions:
        return DEFAULT_SESSION_NUMBER
    return sessions[0]['session_number']


def max_session_number(store: Store, chat_id: int, post_id: int) -> int:
    """
    Наибольший номер сессии поста среди сессий и записей очереди.

    Записи учитываются для постов, созданных до появления сессий:
    у них есть записи в сессии 1, но нет записи о самой сессии.
    """
    numbers = [
        session['session_number'] for session in store['sessions'].values()
        if session['chat_id'] == chat_id and session['post_id'] == post_id
    ]
    numbers.extend(
        entry['session_number'] for entry in store['entries'].values()
        if entry['chat_id'] == chat_id and entry['post_id'] == post_id
    )
    return max(numbers, default=0)


class SessionManager:
    """Создание сессий и работа с их метаданными."""

    def __init__(self, storage: Storage, clock: Callable[[], datetime] = datetime.now):
        self.storage = storage
        self.clock = clock

    def start_new_session(
        self,
        chat_id: int,
        post_id: int,
        teacher_name: str,
        carry_over_incomplete: bool = False,
    ) -> Dict[str, int]:
        """
        Создает следующую сессию поста.

        При carry_over_incomplete незавершенные записи предыдущей сессии
        копируются в новую с позициями 1..K в прежнем порядке. Исходные
        записи остаются в старой сессии без изменений.

        Returns:
            {'new_session_number': N, 'carried_over': K}
        """
        with self.storage.transaction() as store:
            previous_number = max_session_number(store, chat_id, post_id)
            new_number = previous_number + 1
            now = self.clock().isoformat()

            session_id = Storage.next_id(store, 'sessionSeq', 'S')
            store['sessions'][session_id] = {
                'id': session_id,
                'chat_id': chat_id,
                'post_id': post_id,
                'session_number': new_number,
                'teacher_name': teacher_name.strip(),
                'created_at': now,
            }

            carried = []
            if carry_over_incomplete and previous_number > 0:
                carried = active_entries(store, chat_id, post_id, previous_number)

            for position, entry in enumerate(carried, start=1):
                entry_id = Storage.next_id(store, 'entrySeq', 'E')
                store['entries'][entry_id] = {
                    'id': entry_id,
                    'chat_id': chat_id,
                    'post_id': post_id,
                    'session_number': new_number,
                    'user_id': entry['user_id'],
                    'position': position,
                    'channel_id': entry.get('channel_id'),
                    'created_at': now,
                    'completed_at': None,
                    'carried_over': True,
                }

        logger.info(
            f"Новая сессия {new_number} для поста {chat_id}/{post_id}, "
            f"перенесено участников: {len(carried)}"
        )
        return {'new_session_number': new_number, 'carried_over': len(carried)}

    def resolve_latest_session(self, chat_id: int, post_id: int) -> int:
        """Номер сессии, которая используется, когда номер не указан явно."""
        return latest_session_number(self.storage.load(), chat_id, post_id)

    def _backfill_created_at(self, store: Store, chat_id: int, post_id: int, session_number: int) -> str:
        """
        Время создания для записи о сессии, которой раньше не было.

        Если у поста уже есть сессии с большими номерами, запись не должна
        оказаться новее их: берется самое раннее время среди записей очереди
        этой сессии и сессий с большими номерами. Равенство разрешается
        сортировкой по номеру.
        """
        later = [
            session['created_at'] for session in store['sessions'].values()
            if session['chat_id'] == chat_id and session['post_id'] == post_id
            and session['session_number'] > session_number
        ]
        if not later:
            return self.clock().isoformat()

        own = [entry['created_at'] for entry in scope_entries(store, chat_id, post_id, session_number)]
        return min(own + later)

    def update_session_teacher(
        self, chat_id: int, post_id: int, session_number: int, teacher_name: str
    ) -> Dict[str, bool]:
        """Задает имя учителя сессии, создавая запись о сессии при необходимости."""
        with self.storage.transaction() as store:
            _, created = Storage.upsert(
                store['sessions'],
                match={'chat_id': chat_id, 'post_id': post_id, 'session_number': session_number},
                patch={'teacher_name': teacher_name.strip()},
                new_id=lambda: Storage.next_id(store, 'sessionSeq', 'S'),
                defaults={'created_at': self._backfill_created_at(store, chat_id, post_id, session_number)},
            )

        logger.info(f"Учитель сессии {chat_id}/{post_id}#{session_number}: {teacher_name.strip()}")
        return {'created': created}

    def get_available_sessions(self, chat_id: int, post_id: int) -> List[Session]:
        """Возвращает сессии поста от новых к старым."""
        return post_sessions(self.storage.load(), chat_id, post_id)

    def get_session_info(self, chat_id: int, post_id: int, session_number: int) -> Optional[Session]:
        """Получает сессию по номеру."""
        for session in post_sessions(self.storage.load(), chat_id, post_id):
            if session['session_number'] == session_number:
                return session
        return None
