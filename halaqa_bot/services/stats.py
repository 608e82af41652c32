"""
Сводка участия по посту.
"""

from typing import Any, Dict

from .session_types import SESSION_TYPES
from .storage import Storage


def participation_summary(storage: Storage, chat_id: int, post_id: int) -> Dict[str, Any]:
    """
    Считает статистику участия по всем сессиям поста.

    Returns:
        Словарь: sessions_count, total_attendance (уникальные участники),
        total_participations (завершенные ходы), participation_rate (в процентах),
        by_type: {ключ: {'label', 'count', 'participants'}} для встречающихся типов
    """
    store = storage.load()

    sessions_count = sum(
        1 for session in store['sessions'].values()
        if session['chat_id'] == chat_id and session['post_id'] == post_id
    )
    entries = [
        entry for entry in store['entries'].values()
        if entry['chat_id'] == chat_id and entry['post_id'] == post_id
    ]
    completed = [entry for entry in entries if entry.get('completed_at')]

    total_attendance = len({entry['user_id'] for entry in entries})
    total_participations = len(completed)
    participation_rate = round(total_participations / total_attendance * 100) if total_attendance else 0

    by_type = {}
    for key, label in SESSION_TYPES.items():
        typed = [entry for entry in completed if label in (entry.get('session_type') or '')]
        if typed:
            by_type[key] = {
                'label': label,
                'count': len(typed),
                'participants': len({entry['user_id'] for entry in typed}),
            }

    return {
        'sessions_count': sessions_count,
        'total_attendance': total_attendance,
        'total_participations': total_participations,
        'participation_rate': participation_rate,
        'by_type': by_type,
    }
