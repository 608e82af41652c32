"""
Тесты операций над очередью.
"""

import pytest
from halaqa_bot.services.errors import InvalidOperation, NotFound
from halaqa_bot.services.storage import active_entries, scope_entries
from halaqa_bot.services.turn_queue import TurnQueueService

from conftest import CHAT, POST, active_users, entry_id_of, fill

A, B, C, D, E = 101, 102, 103, 104, 105


def assert_contiguous(storage, session_number=1):
    positions = [position for _, position in active_users(storage, session_number)]
    assert positions == list(range(1, len(positions) + 1))


def completed_positions(storage):
    return {
        entry['id']: entry['position']
        for entry in scope_entries(storage.load(), CHAT, POST, 1)
        if entry.get('completed_at')
    }


class TestAddUserToList:
    """Тесты добавления в конец очереди."""

    def test_empty_scope(self, storage, queue):
        """Первый участник получает позицию 1."""
        assert queue.add_user_to_list(CHAT, POST, A) is True
        assert active_users(storage) == [(A, 1)]

    def test_appends_to_end(self, storage, queue):
        """Новые участники добавляются в конец."""
        fill(queue, A, B, C)
        assert active_users(storage) == [(A, 1), (B, 2), (C, 3)]

    def test_duplicates_allowed(self, storage, queue):
        """Один пользователь может стоять в очереди несколько раз."""
        fill(queue, A, B, A)
        assert active_users(storage) == [(A, 1), (B, 2), (A, 3)]

    def test_appends_after_completed(self, storage, queue):
        """Позиция считается по активным записям."""
        fill(queue, A, B)
        queue.complete_user_turn(entry_id_of(storage, A), "تلاوة")
        fill(queue, C)
        assert active_users(storage) == [(B, 1), (C, 2)]

    def test_explicit_session(self, storage, queue):
        """Явный номер сессии не смешивается с другими."""
        fill(queue, A)
        fill(queue, B, session_number=2)
        assert active_users(storage, 1) == [(A, 1)]
        assert active_users(storage, 2) == [(B, 1)]

    def test_entry_fields(self, storage, queue):
        """Новая запись активна и не перенесена."""
        queue.add_user_to_list(CHAT, POST, A, channel_id=-100500)
        entry = active_entries(storage.load(), CHAT, POST, 1)[0]
        assert entry['completed_at'] is None
        assert entry['carried_over'] is False
        assert entry['channel_id'] == -100500


class TestAddUserAtPosition:
    """Тесты вставки дополнительного хода."""

    def test_after_anchor_and_waits(self, storage, queue):
        """После участника на позиции 1 и ещё одного ожидающего."""
        fill(queue, A, B, C)
        queue.add_user_at_position(CHAT, POST, D, current_position=1, turns_to_wait=1)
        assert active_users(storage) == [(A, 1), (B, 2), (D, 3), (C, 4)]

    def test_zero_waits(self, storage, queue):
        """Без ожидания - сразу после участника."""
        fill(queue, A, B, C)
        queue.add_user_at_position(CHAT, POST, D, current_position=2, turns_to_wait=0)
        assert active_users(storage) == [(A, 1), (B, 2), (D, 3), (C, 4)]

    def test_clamped_to_end(self, storage, queue):
        """Не дальше конца очереди."""
        fill(queue, A, B, C)
        queue.add_user_at_position(CHAT, POST, D, current_position=2, turns_to_wait=10)
        assert active_users(storage) == [(A, 1), (B, 2), (C, 3), (D, 4)]

    def test_without_anchor(self, storage, queue):
        """Без позиции - после третьего ожидающего."""
        fill(queue, A, B, C, D)
        queue.add_user_at_position(CHAT, POST, E)
        assert active_users(storage) == [(A, 1), (B, 2), (C, 3), (E, 4), (D, 5)]

    def test_without_anchor_short_queue(self, storage, queue):
        """Короткая очередь - в конец."""
        fill(queue, A, B)
        queue.add_user_at_position(CHAT, POST, E)
        assert active_users(storage) == [(A, 1), (B, 2), (E, 3)]

    def test_without_anchor_empty_queue(self, storage, queue):
        """Пустая очередь - на первую позицию."""
        queue.add_user_at_position(CHAT, POST, E)
        assert active_users(storage) == [(E, 1)]

    def test_custom_offset(self, storage, clock):
        """Смещение для участника без хода настраивается."""
        queue = TurnQueueService(storage, insert_offset=1, clock=clock)
        fill(queue, A, B, C)
        queue.add_user_at_position(CHAT, POST, E)
        assert active_users(storage) == [(A, 1), (E, 2), (B, 3), (C, 4)]

    def test_missing_anchor(self, storage, queue):
        """Нет активного участника на позиции."""
        fill(queue, A, B)
        with pytest.raises(NotFound):
            queue.add_user_at_position(CHAT, POST, D, current_position=5, turns_to_wait=1)
        assert active_users(storage) == [(A, 1), (B, 2)]

    def test_negative_waits(self, queue):
        """Отрицательное ожидание отклоняется."""
        fill(queue, A)
        with pytest.raises(InvalidOperation):
            queue.add_user_at_position(CHAT, POST, D, current_position=1, turns_to_wait=-1)

    def test_completed_positions_untouched(self, storage, queue):
        """Вставка не двигает завершенные записи."""
        fill(queue, A, B, C)
        queue.complete_user_turn(entry_id_of(storage, A), "تسميع")
        before = completed_positions(storage)
        queue.add_user_at_position(CHAT, POST, D, current_position=1, turns_to_wait=0)
        assert completed_positions(storage) == before
        assert active_users(storage) == [(B, 1), (D, 2), (C, 3)]

    def test_compensation_dates(self, storage, queue):
        """Даты компенсации сохраняются у нового хода."""
        fill(queue, A)
        queue.add_user_at_position(
            CHAT, POST, D, compensating_for_dates=['2024-04-30', '2024-04-28', '2024-04-30']
        )
        entry = active_entries(storage.load(), CHAT, POST, 1)[-1]
        assert entry['user_id'] == D
        assert entry['compensating_for_dates'] == ['2024-04-28', '2024-04-30']


class TestRemoveUserFromList:
    """Тесты удаления."""

    def test_closes_gap(self, storage, queue):
        """Удаление активной записи сдвигает следующих."""
        fill(queue, A, B, C)
        queue.remove_user_from_list(entry_id_of(storage, B))
        assert active_users(storage) == [(A, 1), (C, 2)]

    def test_remove_completed(self, storage, queue):
        """Удаление завершенной записи не трогает очередь."""
        fill(queue, A, B, C)
        entry_id = entry_id_of(storage, A)
        queue.complete_user_turn(entry_id, "تلاوة")
        queue.remove_user_from_list(entry_id)
        assert entry_id not in storage.load()['entries']
        assert active_users(storage) == [(B, 1), (C, 2)]

    def test_missing(self, queue):
        """Несуществующая запись."""
        with pytest.raises(NotFound):
            queue.remove_user_from_list('E-999')


class TestUpdateUserPosition:
    """Тесты перестановки."""

    def test_move_up(self, storage, queue):
        """Перемещение вверх сдвигает остальных вниз."""
        fill(queue, A, B, C, D)
        queue.update_user_position(entry_id_of(storage, D), 2)
        assert active_users(storage) == [(A, 1), (D, 2), (B, 3), (C, 4)]

    def test_move_down(self, storage, queue):
        """Перемещение вниз сдвигает остальных вверх."""
        fill(queue, A, B, C, D)
        queue.update_user_position(entry_id_of(storage, A), 3)
        assert active_users(storage) == [(B, 1), (C, 2), (A, 3), (D, 4)]

    def test_same_position_noop(self, storage, queue):
        """Та же позиция ничего не меняет."""
        fill(queue, A, B, C)
        before = storage.load()['entries']
        queue.update_user_position(entry_id_of(storage, B), 2)
        assert storage.load()['entries'] == before

    @pytest.mark.parametrize('position', [0, 4, -1])
    def test_out_of_range(self, storage, queue, position):
        """Позиция вне 1..N."""
        fill(queue, A, B, C)
        with pytest.raises(InvalidOperation):
            queue.update_user_position(entry_id_of(storage, A), position)
        assert active_users(storage) == [(A, 1), (B, 2), (C, 3)]

    def test_completed_rejected(self, storage, queue):
        """Завершенную запись переместить нельзя."""
        fill(queue, A, B)
        entry_id = entry_id_of(storage, A)
        queue.complete_user_turn(entry_id, "تلاوة")
        with pytest.raises(InvalidOperation):
            queue.update_user_position(entry_id, 1)

    def test_move_to_end(self, storage, queue):
        """Перемещение в конец."""
        fill(queue, A, B, C)
        queue.move_to_end(entry_id_of(storage, A))
        assert active_users(storage) == [(B, 1), (C, 2), (A, 3)]

    def test_move_to_end_missing(self, queue):
        """Несуществующая запись."""
        with pytest.raises(NotFound):
            queue.move_to_end('E-999')


class TestCompleteUserTurn:
    """Тесты завершения хода."""

    def test_complete_head(self, storage, queue):
        """Первый завершил - второй становится первым."""
        fill(queue, A, B)
        entry_id = entry_id_of(storage, A)
        queue.complete_user_turn(entry_id, "تلاوة")

        entry = storage.load()['entries'][entry_id]
        assert entry['completed_at']
        assert entry['session_type'] == "تلاوة"
        assert entry['position'] == 1
        assert active_users(storage) == [(B, 1)]

    def test_complete_middle(self, storage, queue):
        """Завершение из середины закрывает пропуск."""
        fill(queue, A, B, C)
        queue.complete_user_turn(entry_id_of(storage, B), "تسميع")
        assert active_users(storage) == [(A, 1), (C, 2)]
        assert list(completed_positions(storage).values()) == [2]

    def test_already_completed(self, storage, queue):
        """Повторное завершение отклоняется."""
        fill(queue, A, B)
        entry_id = entry_id_of(storage, A)
        queue.complete_user_turn(entry_id, "تلاوة")
        with pytest.raises(InvalidOperation):
            queue.complete_user_turn(entry_id, "تسميع")
        assert storage.load()['entries'][entry_id]['session_type'] == "تلاوة"

    def test_blank_type(self, storage, queue):
        """Тип участия обязателен."""
        fill(queue, A)
        with pytest.raises(InvalidOperation):
            queue.complete_user_turn(entry_id_of(storage, A), "  ")

    def test_missing(self, queue):
        """Несуществующая запись."""
        with pytest.raises(NotFound):
            queue.complete_user_turn('E-999', "تلاوة")


class TestSkipUserTurn:
    """Тесты пропуска хода."""

    def test_swaps_with_next(self, storage, queue):
        """Участник и следующий меняются местами, остальные на месте."""
        fill(queue, A, B, C, D)
        queue.skip_user_turn(entry_id_of(storage, B))
        assert active_users(storage) == [(A, 1), (C, 2), (B, 3), (D, 4)]

    def test_single_active(self, storage, queue):
        """Один участник - пропускать некуда."""
        fill(queue, A)
        with pytest.raises(InvalidOperation):
            queue.skip_user_turn(entry_id_of(storage, A))

    def test_last_active(self, storage, queue):
        """Последний в очереди не может пропустить."""
        fill(queue, A, B)
        with pytest.raises(InvalidOperation):
            queue.skip_user_turn(entry_id_of(storage, B))
        assert active_users(storage) == [(A, 1), (B, 2)]

    def test_completed_rejected(self, storage, queue):
        """Завершенный ход пропустить нельзя."""
        fill(queue, A, B, C)
        entry_id = entry_id_of(storage, A)
        queue.complete_user_turn(entry_id, "تلاوة")
        with pytest.raises(InvalidOperation):
            queue.skip_user_turn(entry_id)


class TestEditing:
    """Тесты исправления типа, заметок и дат компенсации."""

    def test_update_session_type(self, storage, queue):
        """Тип завершенного хода можно исправить."""
        fill(queue, A)
        entry_id = entry_id_of(storage, A)
        queue.complete_user_turn(entry_id, "تلاوة")
        queue.update_session_type(entry_id, "تسميع")
        assert storage.load()['entries'][entry_id]['session_type'] == "تسميع"

    def test_update_session_type_active(self, storage, queue):
        """У активного хода тип не меняется."""
        fill(queue, A)
        with pytest.raises(InvalidOperation):
            queue.update_session_type(entry_id_of(storage, A), "تسميع")

    def test_notes(self, storage, queue):
        """Заметка сохраняется."""
        fill(queue, A)
        entry_id = entry_id_of(storage, A)
        queue.update_user_notes(entry_id, "  حفظ جزء عم ")
        assert storage.load()['entries'][entry_id]['notes'] == "حفظ جزء عم"

    @pytest.mark.parametrize('notes', ['', '   ', None])
    def test_blank_notes_clear(self, storage, queue, notes):
        """Пустая заметка удаляет поле."""
        fill(queue, A)
        entry_id = entry_id_of(storage, A)
        queue.update_user_notes(entry_id, "ملاحظة")
        queue.update_user_notes(entry_id, notes)
        assert 'notes' not in storage.load()['entries'][entry_id]

    def test_notes_missing(self, queue):
        """Несуществующая запись."""
        with pytest.raises(NotFound):
            queue.update_user_notes('E-999', "x")

    def test_compensation_dates(self, storage, queue):
        """Даты сортируются, пустой список очищает поле."""
        fill(queue, A)
        entry_id = entry_id_of(storage, A)
        queue.update_compensation_dates(entry_id, ['2024-05-03', '2024-05-01'])
        assert storage.load()['entries'][entry_id]['compensating_for_dates'] == ['2024-05-01', '2024-05-03']
        queue.update_compensation_dates(entry_id, [])
        assert 'compensating_for_dates' not in storage.load()['entries'][entry_id]

    def test_invalid_date(self, storage, queue):
        """Неверная дата отклоняется."""
        fill(queue, A)
        with pytest.raises(InvalidOperation):
            queue.update_compensation_dates(entry_id_of(storage, A), ['01.05.2024'])


class TestInvariants:
    """Непрерывность позиций и неизменность завершенных при серии операций."""

    def test_sequence_of_operations(self, storage, queue):
        """После каждой операции активные позиции равны 1..N."""
        fill(queue, A, B, C, D, E)
        assert_contiguous(storage)

        queue.complete_user_turn(entry_id_of(storage, A), "تلاوة")
        frozen = completed_positions(storage)
        assert_contiguous(storage)

        steps = [
            lambda: queue.skip_user_turn(entry_id_of(storage, B)),
            lambda: queue.add_user_at_position(CHAT, POST, A),
            lambda: queue.update_user_position(entry_id_of(storage, E), 1),
            lambda: queue.remove_user_from_list(entry_id_of(storage, C)),
            lambda: queue.move_to_end(entry_id_of(storage, D)),
            lambda: queue.add_user_at_position(CHAT, POST, C, current_position=1, turns_to_wait=2),
            lambda: fill(queue, B),
        ]
        for step in steps:
            step()
            assert_contiguous(storage)
            current = completed_positions(storage)
            assert {k: current[k] for k in frozen} == frozen

    def test_failed_operation_not_persisted(self, storage, queue):
        """Отклоненная операция не оставляет частичных изменений."""
        fill(queue, A, B, C)
        before = storage.load()
        with pytest.raises(InvalidOperation):
            queue.update_user_position(entry_id_of(storage, A), 9)
        assert storage.load() == before


if __name__ == '__main__':
    pytest.main([__file__, '-v'])
