"""
JSON-хранилище для данных бота с атомарной записью и транзакциями.
"""

import json
import logging
import os
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, List, Optional, Tuple
from threading import Lock, RLock

from ..types import Store, QueueEntry
from .errors import StorageCorrupted
from .util import atomic_write, ensure_file_exists

logger = logging.getLogger(__name__)


def _default_store() -> Store:
    return {
        'entries': {},
        'sessions': {},
        'users': {},
        'message_authors': {},
        'last_list_messages': {},
        'counters': {'entrySeq': 0, 'sessionSeq': 0},
    }


class Storage:
    """Класс для работы с JSON-хранилищем данных."""

    # Блокировки общие для всех экземпляров, работающих с одним файлом
    _locks: Dict[str, RLock] = {}
    _locks_guard = Lock()

    def __init__(self, file_path: Optional[str] = None):
        self.file_path = file_path or os.getenv('DATA_FILE', 'data.json')
        self._lock = self._lock_for(self.file_path)
        self._ensure_initialized()

    @classmethod
    def _lock_for(cls, file_path: str) -> RLock:
        key = os.path.abspath(file_path)
        with cls._locks_guard:
            if key not in cls._locks:
                cls._locks[key] = RLock()
            return cls._locks[key]

    def _ensure_initialized(self) -> None:
        """Инициализирует файл хранилища, если он не существует."""
        ensure_file_exists(self.file_path, _default_store())

    def load(self, strict: bool = False) -> Store:
        """
        Загружает данные из файла.

        Поврежденный файл при чтении дает пустой store. С strict=True
        вместо этого выбрасывается StorageCorrupted: так транзакция не
        перезапишет поврежденный файл пустыми данными.
        """
        try:
            with open(self.file_path, 'r', encoding='utf-8') as f:
                store = json.load(f)
            if not isinstance(store, dict):
                raise ValueError("ожидался JSON-объект")
        except FileNotFoundError:
            return _default_store()
        except ValueError as e:
            if strict:
                raise StorageCorrupted(f"Файл хранилища {self.file_path} поврежден: {e}") from e
            logger.error(f"Файл хранилища {self.file_path} поврежден, данные недоступны: {e}")
            return _default_store()

        # Файлы старых версий могут не содержать новых таблиц
        for key, value in _default_store().items():
            store.setdefault(key, value)
        return store

    def save(self, store: Store) -> None:
        """Сохраняет данные в файл атомарно."""
        with self._lock:
            atomic_write(self.file_path, store)

    @contextmanager
    def transaction(self) -> Iterator[Store]:
        """
        Выполняет чтение-вычисление-запись как одну операцию.

        Блокировка удерживается на всё время блока, изменения сохраняются
        одной записью при успешном выходе. Исключение внутри блока
        отбрасывает все изменения. Поврежденный файл не перезаписывается:
        выбрасывается StorageCorrupted. Вложенные транзакции не поддерживаются.
        """
        with self._lock:
            store = self.load(strict=True)
            yield store
            self.save(store)

    @staticmethod
    def next_id(store: Store, counter: str, prefix: str) -> str:
        """Генерирует новый последовательный ID вида "E-12"."""
        seq = store['counters'].get(counter, 0) + 1
        store['counters'][counter] = seq
        return f"{prefix}-{seq}"

    @staticmethod
    def upsert(
        table: Dict[str, Dict[str, Any]],
        match: Dict[str, Any],
        patch: Dict[str, Any],
        new_id: Callable[[], str],
        defaults: Optional[Dict[str, Any]] = None,
    ) -> Tuple[str, bool]:
        """
        Обновляет запись с совпадающим естественным ключом или создает новую.

        Args:
            table: Таблица хранилища (id -> запись)
            match: Поля естественного ключа
            patch: Поля для записи в найденную или новую запись
            new_id: Генератор ID для новой записи
            defaults: Поля, которые выставляются только при создании

        Returns:
            Кортеж (id записи, создана ли запись)
        """
        for record_id, record in table.items():
            if all(record.get(key) == value for key, value in match.items()):
                record.update(patch)
                return record_id, False

        record_id = new_id()
        record = {'id': record_id, **match, **(defaults or {}), **patch}
        table[record_id] = record
        return record_id, True

    def get_entry(self, entry_id: str) -> Optional[QueueEntry]:
        """Получает запись очереди по ID."""
        store = self.load()
        return store['entries'].get(entry_id)


def scope_entries(store: Store, chat_id: int, post_id: int, session_number: int) -> List[QueueEntry]:
    """Все записи одной сессии поста (активные и завершенные)."""
    return [
        entry for entry in store['entries'].values()
        if entry['chat_id'] == chat_id
        and entry['post_id'] == post_id
        and entry['session_number'] == session_number
    ]


def active_entries(store: Store, chat_id: int, post_id: int, session_number: int) -> List[QueueEntry]:
    """Активные записи сессии, отсортированные по позиции."""
    entries = [
        entry for entry in scope_entries(store, chat_id, post_id, session_number)
        if not entry.get('completed_at')
    ]
    return sorted(entries, key=lambda entry: entry['position'])
