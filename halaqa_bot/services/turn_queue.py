"""
Операции над очередью участников одной сессии.

Каждая операция выполняется в одной транзакции хранилища: загрузка активных
записей, вычисление нового порядка и запись позиций не пересекаются с
другими операциями. После каждой операции позиции активных записей сессии
равны 1..N, позиции завершенных записей не меняются.
"""

import logging
from datetime import datetime
from typing import Callable, Iterable, List, Optional

from ..types import Store, QueueEntry
from .errors import NotFound, InvalidOperation
from .resequencer import resequence_list
from .sessions import latest_session_number
from .storage import Storage, active_entries
from .util import normalize_dates

logger = logging.getLogger(__name__)

# Участник без активной очереди встает после третьего ожидающего
DONE_USER_INSERT_OFFSET = 3


def _parse_dates(values: Iterable[str]) -> List[str]:
    try:
        return normalize_dates(values)
    except ValueError as e:
        raise InvalidOperation(f"Неверная дата: {e}") from e


class TurnQueueService:
    """Изменение очереди: добавление, завершение, пропуск, перестановка."""

    def __init__(
        self,
        storage: Storage,
        insert_offset: int = DONE_USER_INSERT_OFFSET,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.storage = storage
        self.insert_offset = insert_offset
        self.clock = clock

    def _new_entry(
        self,
        store: Store,
        chat_id: int,
        post_id: int,
        session_number: int,
        user_id: int,
        position: int,
        channel_id: Optional[int] = None,
    ) -> QueueEntry:
        entry_id = Storage.next_id(store, 'entrySeq', 'E')
        entry: QueueEntry = {
            'id': entry_id,
            'chat_id': chat_id,
            'post_id': post_id,
            'session_number': session_number,
            'user_id': user_id,
            'position': position,
            'channel_id': channel_id,
            'created_at': self.clock().isoformat(),
            'completed_at': None,
            'carried_over': False,
        }
        store['entries'][entry_id] = entry
        return entry

    @staticmethod
    def _get_entry(store: Store, entry_id: str) -> QueueEntry:
        entry = store['entries'].get(entry_id)
        if not entry:
            raise NotFound(f"Запись {entry_id} не найдена")
        return entry

    @staticmethod
    def _scope_of(store: Store, entry: QueueEntry) -> List[QueueEntry]:
        return active_entries(store, entry['chat_id'], entry['post_id'], entry['session_number'])

    def add_user_to_list(
        self,
        chat_id: int,
        post_id: int,
        user_id: int,
        session_number: Optional[int] = None,
        channel_id: Optional[int] = None,
    ) -> bool:
        """
        Добавляет участника в конец очереди.

        Повторное добавление того же пользователя разрешено.
        """
        with self.storage.transaction() as store:
            if session_number is None:
                session_number = latest_session_number(store, chat_id, post_id)

            active = active_entries(store, chat_id, post_id, session_number)
            position = active[-1]['position'] + 1 if active else 1
            entry = self._new_entry(store, chat_id, post_id, session_number, user_id, position, channel_id)

        logger.info(
            f"Пользователь {user_id} добавлен в очередь {chat_id}/{post_id}#{session_number} "
            f"на позицию {position} ({entry['id']})"
        )
        return True

    def add_user_at_position(
        self,
        chat_id: int,
        post_id: int,
        user_id: int,
        current_position: Optional[int] = None,
        turns_to_wait: int = 0,
        session_number: Optional[int] = None,
        channel_id: Optional[int] = None,
        compensating_for_dates: Optional[Iterable[str]] = None,
    ) -> bool:
        """
        Добавляет участнику ещё один ход внутри очереди.

        Если current_position указан, новый ход ставится после участника на этой
        позиции и ещё turns_to_wait ожидающих. Иначе - после insert_offset
        ожидающих. В обоих случаях не дальше конца очереди.
        """
        if turns_to_wait < 0:
            raise InvalidOperation("Количество ожидаемых ходов не может быть отрицательным")
        dates = _parse_dates(compensating_for_dates or [])

        with self.storage.transaction() as store:
            if session_number is None:
                session_number = latest_session_number(store, chat_id, post_id)

            active = active_entries(store, chat_id, post_id, session_number)

            if current_position is not None:
                anchor_index = next(
                    (i for i, entry in enumerate(active) if entry['position'] == current_position),
                    None,
                )
                if anchor_index is None:
                    raise NotFound(f"Нет активного участника на позиции {current_position}")
                target_index = min(anchor_index + turns_to_wait + 1, len(active))
            else:
                target_index = min(self.insert_offset, len(active))

            entry = self._new_entry(
                store, chat_id, post_id, session_number, user_id, target_index + 1, channel_id
            )
            if dates:
                entry['compensating_for_dates'] = dates

            active.insert(target_index, entry)
            resequence_list(active)

        logger.info(
            f"Пользователь {user_id} вставлен в очередь {chat_id}/{post_id}#{session_number} "
            f"на позицию {target_index + 1} ({entry['id']})"
        )
        return True

    def remove_user_from_list(self, entry_id: str) -> None:
        """Удаляет запись. Если она была активной, очередь сдвигается."""
        with self.storage.transaction() as store:
            entry = self._get_entry(store, entry_id)
            del store['entries'][entry_id]

            if not entry.get('completed_at'):
                resequence_list(self._scope_of(store, entry))

        logger.info(f"Запись {entry_id} пользователя {entry['user_id']} удалена")

    @staticmethod
    def _reorder(store: Store, entry: QueueEntry, new_position: int) -> bool:
        if entry.get('completed_at'):
            raise InvalidOperation("Нельзя переместить завершенный ход")

        active = TurnQueueService._scope_of(store, entry)
        if not 1 <= new_position <= len(active):
            raise InvalidOperation(
                f"Позиция {new_position} вне диапазона 1..{len(active)}"
            )
        if entry['position'] == new_position:
            return False

        active.remove(entry)
        active.insert(new_position - 1, entry)
        resequence_list(active)
        return True

    def update_user_position(self, entry_id: str, new_position: int) -> None:
        """Перемещает активную запись на позицию new_position (1..N)."""
        with self.storage.transaction() as store:
            entry = self._get_entry(store, entry_id)
            moved = self._reorder(store, entry, new_position)

        if moved:
            logger.info(f"Запись {entry_id} перемещена на позицию {new_position}")

    def move_to_end(self, entry_id: str) -> None:
        """Перемещает активную запись в конец очереди."""
        with self.storage.transaction() as store:
            entry = self._get_entry(store, entry_id)
            if entry.get('completed_at'):
                raise InvalidOperation("Нельзя переместить завершенный ход")
            new_position = len(self._scope_of(store, entry))
            moved = self._reorder(store, entry, new_position)

        if moved:
            logger.info(f"Запись {entry_id} перемещена в конец очереди ({new_position})")

    def complete_user_turn(self, entry_id: str, session_type: str) -> None:
        """Отмечает ход завершенным; оставшиеся активные записи сдвигаются."""
        session_type = session_type.strip()
        if not session_type:
            raise InvalidOperation("Не указан тип участия")

        with self.storage.transaction() as store:
            entry = self._get_entry(store, entry_id)
            if entry.get('completed_at'):
                raise InvalidOperation("Ход уже завершен")

            entry['completed_at'] = self.clock().isoformat()
            entry['session_type'] = session_type
            resequence_list(self._scope_of(store, entry))

        logger.info(f"Ход {entry_id} пользователя {entry['user_id']} завершен: {session_type}")

    def skip_user_turn(self, entry_id: str) -> None:
        """Меняет местами запись и следующую за ней."""
        with self.storage.transaction() as store:
            entry = self._get_entry(store, entry_id)
            active = self._scope_of(store, entry)

            if len(active) < 2:
                raise InvalidOperation("Недостаточно активных участников для пропуска")
            if entry.get('completed_at'):
                raise InvalidOperation("Ход уже завершен")

            index = active.index(entry)
            if index >= len(active) - 1:
                raise InvalidOperation("Пропуск невозможен: следующего участника нет")

            active[index], active[index + 1] = active[index + 1], active[index]
            resequence_list(active)

        logger.info(f"Ход {entry_id} пропущен, новая позиция {entry['position']}")

    def update_session_type(self, entry_id: str, session_type: str) -> None:
        """Исправляет тип участия у завершенного хода."""
        session_type = session_type.strip()
        if not session_type:
            raise InvalidOperation("Не указан тип участия")

        with self.storage.transaction() as store:
            entry = self._get_entry(store, entry_id)
            if not entry.get('completed_at'):
                raise InvalidOperation("Ход еще не завершен")
            entry['session_type'] = session_type

        logger.info(f"Тип участия {entry_id} изменен на {session_type}")

    def update_user_notes(self, entry_id: str, notes: Optional[str]) -> None:
        """Сохраняет заметку; пустая строка удаляет заметку."""
        with self.storage.transaction() as store:
            entry = self._get_entry(store, entry_id)
            if notes and notes.strip():
                entry['notes'] = notes.strip()
            else:
                entry.pop('notes', None)

        logger.info(f"Заметка записи {entry_id} обновлена")

    def update_compensation_dates(self, entry_id: str, dates: Iterable[str]) -> None:
        """Задает даты, за которые ход засчитывается как компенсация."""
        normalized = _parse_dates(dates)
        with self.storage.transaction() as store:
            entry = self._get_entry(store, entry_id)
            if normalized:
                entry['compensating_for_dates'] = normalized
            else:
                entry.pop('compensating_for_dates', None)

        logger.info(f"Даты компенсации {entry_id}: {', '.join(normalized) or '-'}")
