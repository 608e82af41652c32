"""
Клавиатуры для управления очередью из чата.
"""

from typing import List, Optional
from aiogram.types import InlineKeyboardMarkup, InlineKeyboardButton

from ..types import QueueUser
from .session_types import SESSION_TYPES

# Быстрые кнопки завершения хода
QUICK_TYPES = ('tilawa', 'tasmee')


class QueueKeyboards:
    """Сервис для создания клавиатур очереди."""

    @staticmethod
    def head_controls(active_users: List[QueueUser], post_id: int) -> Optional[InlineKeyboardMarkup]:
        """Кнопки для первого в очереди: завершить ход или пропустить."""
        if not active_users:
            return None

        head = active_users[0]
        entry_id = head['entry_id']
        buttons: List[List[InlineKeyboardButton]] = [[
            InlineKeyboardButton(
                text=f"✅ {SESSION_TYPES[key]}",
                callback_data=f"q_done:{entry_id}:{key}",
            )
            for key in QUICK_TYPES
        ]]
        if len(active_users) > 1:
            buttons.append([InlineKeyboardButton(text="⏭ تأجيل", callback_data=f"q_skip:{entry_id}")])
        buttons.append([InlineKeyboardButton(text="🔄 تحديث", callback_data=f"q_refresh:{post_id}")])
        return InlineKeyboardMarkup(inline_keyboard=buttons)


# Глобальный экземпляр сервиса клавиатур
keyboards = QueueKeyboards()
