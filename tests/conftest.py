"""
Общие фикстуры тестов: хранилище во временной папке и фиксированные часы.
"""

import os
import tempfile
from datetime import datetime, timedelta

import pytest

# Логи тестов не должны попадать в рабочую папку
os.environ.setdefault('LOGS_DIR', tempfile.mkdtemp(prefix='halaqa_logs_'))

from halaqa_bot.services.identity import IdentityService
from halaqa_bot.services.queue_view import QueueView
from halaqa_bot.services.sessions import SessionManager
from halaqa_bot.services.storage import Storage, active_entries
from halaqa_bot.services.turn_queue import TurnQueueService

CHAT = -1001
POST = 42


class FakeClock:
    """Часы, которые сдвигаются на секунду при каждом вызове."""

    def __init__(self, start: datetime = datetime(2024, 5, 1, 10, 0, 0)):
        self.current = start

    def __call__(self) -> datetime:
        self.current += timedelta(seconds=1)
        return self.current


@pytest.fixture
def storage(tmp_path):
    return Storage(str(tmp_path / 'data.json'))


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def queue(storage, clock):
    return TurnQueueService(storage, clock=clock)


@pytest.fixture
def sessions(storage, clock):
    return SessionManager(storage, clock=clock)


@pytest.fixture
def view(storage):
    return QueueView(storage)


@pytest.fixture
def identity(storage, clock):
    return IdentityService(storage, clock=clock)


def active_users(storage, session_number=1, chat_id=CHAT, post_id=POST):
    """Пары (user_id, position) активных записей сессии по порядку позиций."""
    entries = active_entries(storage.load(), chat_id, post_id, session_number)
    return [(entry['user_id'], entry['position']) for entry in entries]


def entry_id_of(storage, user_id, session_number=1, chat_id=CHAT, post_id=POST):
    """ID активной записи пользователя."""
    for entry in active_entries(storage.load(), chat_id, post_id, session_number):
        if entry['user_id'] == user_id:
            return entry['id']
    raise AssertionError(f"Нет активной записи пользователя {user_id}")


def fill(queue, *user_ids, session_number=None):
    """Добавляет пользователей в конец очереди по порядку."""
    for user_id in user_ids:
        queue.add_user_to_list(CHAT, POST, user_id, session_number=session_number)
