"""
Перенумерация активных записей очереди: позиции 1..N без пропусков.
"""

from typing import List, Sequence

from ..types import QueueEntry
from .errors import InvalidOperation


def resequence(entries: List[QueueEntry], ordered_ids: Sequence[str]) -> List[QueueEntry]:
    """
    Назначает позиции 1..N записям в порядке ordered_ids.

    Записи меняются на месте, поэтому вызывать нужно внутри транзакции
    хранилища: все новые позиции сохраняются одной записью.

    Args:
        entries: Все активные записи одной сессии
        ordered_ids: Новый порядок - перестановка ID этих записей

    Returns:
        Записи, у которых позиция действительно изменилась

    Raises:
        InvalidOperation: если ordered_ids не перестановка ID активных записей
    """
    by_id = {entry['id']: entry for entry in entries}

    if any(entry.get('completed_at') for entry in entries):
        raise InvalidOperation("Завершенные записи не перенумеровываются")
    if len(ordered_ids) != len(by_id) or set(ordered_ids) != set(by_id):
        raise InvalidOperation("Новый порядок не совпадает с набором активных записей")

    changed = []
    for position, entry_id in enumerate(ordered_ids, start=1):
        entry = by_id[entry_id]
        if entry['position'] != position:
            entry['position'] = position
            changed.append(entry)
    return changed


def resequence_list(ordered_entries: List[QueueEntry]) -> List[QueueEntry]:
    """Перенумеровывает записи в том порядке, в котором они переданы."""
    return resequence(ordered_entries, [entry['id'] for entry in ordered_entries])
