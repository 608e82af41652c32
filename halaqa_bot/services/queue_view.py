"""
Чтение очереди сессии вместе с именами участников.
"""

from typing import List, Optional

from ..types import QueueEntry, QueueUser, UserList, UserRecord
from .identity import display_name
from .sessions import latest_session_number
from .storage import Storage, scope_entries

CARRIED_OVER_LABEL = " (من الحلقة السابقة)"

_ARABIC_DIGITS = str.maketrans('0123456789', '٠١٢٣٤٥٦٧٨٩')


def to_arabic_digits(number: int) -> str:
    """Записывает число арабско-индийскими цифрами."""
    return str(number).translate(_ARABIC_DIGITS)


def _join(entry: QueueEntry, user: Optional[UserRecord]) -> QueueUser:
    user = user or {}
    return {
        'entry_id': entry['id'],
        'id': entry['user_id'],
        'telegram_name': user.get('telegram_name') or '',
        'real_name': user.get('real_name'),
        'username': user.get('username'),
        'display_name': display_name(user),
        'position': entry['position'],
        'created_at': entry['created_at'],
        'completed_at': entry.get('completed_at'),
        'carried_over': bool(entry.get('carried_over')),
        'session_type': entry.get('session_type'),
        'notes': entry.get('notes'),
        'compensating_for_dates': entry.get('compensating_for_dates'),
    }


class QueueView:
    """Очередь сессии для бота и панели администратора."""

    def __init__(self, storage: Storage):
        self.storage = storage

    def get_user_list(self, chat_id: int, post_id: int, session_number: Optional[int] = None) -> UserList:
        """
        Возвращает активных и завершивших участников сессии.

        Активные: сначала перенесенные из прошлой сессии, затем остальные,
        внутри групп - по позиции. Завершившие - по зафиксированной позиции.
        """
        store = self.storage.load()
        if session_number is None:
            session_number = latest_session_number(store, chat_id, post_id)

        active = []
        completed = []
        for entry in scope_entries(store, chat_id, post_id, session_number):
            row = _join(entry, store['users'].get(str(entry['user_id'])))
            (completed if entry.get('completed_at') else active).append(row)

        active.sort(key=lambda row: (not row['carried_over'], row['position'], row['created_at']))
        completed.sort(key=lambda row: (row['position'], row['completed_at']))

        return {
            'active_users': active,
            'completed_users': completed,
            'current_session': session_number,
        }


def format_user_list(users: List[QueueUser]) -> str:
    """Форматирует очередь для сообщения в чат."""
    lines = []
    for index, user in enumerate(users, start=1):
        name = user['display_name'] or f"ID:{user['id']}"
        username = f" @{user['username']}" if user.get('username') else ""
        carried = CARRIED_OVER_LABEL if user['carried_over'] else ""
        lines.append(f"{to_arabic_digits(index)}. {name}{username}{carried}")
    return "\n".join(lines)
