"""
Тесты утилит, настроек и вспомогательных функций обработчиков.
"""

import pytest
from halaqa_bot.config import load_config
from halaqa_bot.handlers.common import entry_at, parse_position, render_user_list
from halaqa_bot.handlers.queue_callbacks import parse_done_data
from halaqa_bot.middlewares.error_handler import (
    INVALID_OPERATION_TEXT, NOT_FOUND_TEXT, UNKNOWN_ERROR_TEXT, rejection_text,
)
from halaqa_bot.services.acl import is_admin
from halaqa_bot.services.errors import InvalidOperation, NotFound, QueueError
from halaqa_bot.services.keyboards import keyboards
from halaqa_bot.services.session_types import parse_session_type
from halaqa_bot.services.threads import ThreadService
from halaqa_bot.services.util import normalize_dates, parse_int_list, parse_str_list

from conftest import CHAT, POST


class TestParsing:
    """Тесты разбора строк."""

    def test_parse_int_list(self):
        assert parse_int_list("1, 2,,3 ") == [1, 2, 3]
        assert parse_int_list("  ") == []

    def test_parse_str_list(self):
        assert parse_str_list("❤, 👍,") == ['❤', '👍']

    def test_normalize_dates(self):
        assert normalize_dates(["2024-05-02", " 2024-05-01", "2024-05-02", ""]) == ['2024-05-01', '2024-05-02']

    def test_normalize_dates_invalid(self):
        with pytest.raises(ValueError):
            normalize_dates(["yesterday"])

    @pytest.mark.parametrize('value,expected', [
        ("تسميع", "تسميع"),
        ("tasmee", "تسميع"),
        (" TILAWA ", "تلاوة"),
        ("unknown", None),
    ])
    def test_parse_session_type(self, value, expected):
        assert parse_session_type(value) == expected


class TestConfig:
    """Тесты настроек из окружения."""

    def test_defaults(self, monkeypatch):
        for name in ('ADMINS', 'DONE_USER_INSERT_OFFSET', 'ACCEPTED_REACTIONS', 'USE_WEBHOOK', 'PORT'):
            monkeypatch.delenv(name, raising=False)
        config = load_config()
        assert config.admins == []
        assert config.done_user_insert_offset == 3
        assert config.accepted_reactions == ['❤', '👍']
        assert config.use_webhook is False
        assert config.port == 3000

    def test_overrides(self, monkeypatch):
        monkeypatch.setenv('ADMINS', '10,20')
        monkeypatch.setenv('DONE_USER_INSERT_OFFSET', '5')
        monkeypatch.setenv('USE_WEBHOOK', 'True')
        config = load_config()
        assert config.admins == [10, 20]
        assert config.done_user_insert_offset == 5
        assert config.use_webhook is True

    def test_is_admin(self, monkeypatch):
        monkeypatch.setenv('ADMINS', '10,20')
        assert is_admin(10)
        assert not is_admin(30)


class TestRejectionText:
    """Сообщения об отклоненных операциях."""

    def test_texts(self):
        assert rejection_text(NotFound("x")) == NOT_FOUND_TEXT
        assert rejection_text(InvalidOperation("x")) == INVALID_OPERATION_TEXT
        assert rejection_text(QueueError("x")) == UNKNOWN_ERROR_TEXT


class TestThreadService:
    """Тесты авторов сообщений."""

    def test_record_and_get(self, storage, clock):
        threads = ThreadService(storage, clock=clock)
        threads.record_message(CHAT, POST, 900, 7, channel_id=-100, text="السلام عليكم")
        author = threads.get_message_author(CHAT, 900)
        assert author['post_id'] == POST
        assert author['user_id'] == 7
        assert author['channel_id'] == -100
        assert threads.get_message_author(CHAT, 901) is None

    def test_last_list_message(self, storage, clock):
        """Последний список поста: запись, замена и очистка."""
        threads = ThreadService(storage, clock=clock)
        assert threads.get_last_list_message(CHAT, POST) is None

        threads.set_last_list_message(CHAT, POST, 500, 1)
        threads.set_last_list_message(CHAT, POST, 510, 1)
        last = threads.get_last_list_message(CHAT, POST)
        assert last['message_id'] == 510
        assert last['session_number'] == 1
        assert threads.get_last_list_message(CHAT, POST + 1) is None

        threads.clear_last_list_message(CHAT, POST)
        assert threads.get_last_list_message(CHAT, POST) is None

    def test_replaceable_list_message(self, storage, clock):
        """Удаляется только список той же сессии."""
        threads = ThreadService(storage, clock=clock)
        assert threads.replaceable_list_message(CHAT, POST, 1) is None

        threads.set_last_list_message(CHAT, POST, 500, 1)
        assert threads.replaceable_list_message(CHAT, POST, 1) == 500
        assert threads.replaceable_list_message(CHAT, POST, 2) is None


def user_row(entry_id, user_id):
    return {
        'entry_id': entry_id, 'id': user_id, 'display_name': f"u{user_id}",
        'username': None, 'carried_over': False,
    }


class TestHandlerHelpers:
    """Тесты разбора аргументов и текста очереди."""

    def test_parse_position(self):
        assert parse_position("2") == 2
        for value in ("0", "-1", "abc"):
            with pytest.raises(InvalidOperation):
                parse_position(value)

    def test_entry_at(self):
        users = [user_row('E-1', 1), user_row('E-2', 2)]
        assert entry_at(users, 2)['entry_id'] == 'E-2'
        with pytest.raises(NotFound):
            entry_at(users, 3)

    def test_render_user_list(self):
        text = render_user_list(
            {'active_users': [user_row('E-1', 1)], 'completed_users': [user_row('E-2', 2)], 'current_session': 3},
            "الشيخ",
        )
        assert text.startswith("📋 القائمة (الحلقة 3) - الشيخ:")
        assert "١. u1" in text
        assert "✅ أنهوا: 1" in text

    def test_render_empty(self):
        text = render_user_list({'active_users': [], 'completed_users': [], 'current_session': 1})
        assert "القائمة فارغة" in text

    def test_parse_done_data(self):
        """Данные кнопки завершения хода."""
        assert parse_done_data("q_done:E-7:tasmee") == ('E-7', "تسميع")
        for data in ("q_done:E-7:unknown", "q_done:E-7", "q_done::tilawa"):
            with pytest.raises(InvalidOperation):
                parse_done_data(data)

    def test_head_controls(self):
        """Кнопки для первого в очереди."""
        markup = keyboards.head_controls([user_row('E-1', 1), user_row('E-2', 2)], POST)
        data = [button.callback_data for row in markup.inline_keyboard for button in row]
        assert data == ['q_done:E-1:tilawa', 'q_done:E-1:tasmee', 'q_skip:E-1', f'q_refresh:{POST}']

    def test_head_controls_single(self):
        """Одному участнику пропуск не показывается."""
        markup = keyboards.head_controls([user_row('E-1', 1)], POST)
        data = [button.callback_data for row in markup.inline_keyboard for button in row]
        assert 'q_skip:E-1' not in data
        assert keyboards.head_controls([], POST) is None


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
