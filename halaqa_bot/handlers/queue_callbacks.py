"""
Обработчики кнопок под списком очереди.
"""

from typing import Tuple
from aiogram import Router, F
from aiogram.types import CallbackQuery

from ..services.acl import require_admin_callback
from ..services.errors import NotFound, InvalidOperation
from ..services.keyboards import keyboards
from ..services.session_types import parse_session_type
from .common import (
    get_queue_service, get_queue_view, get_session_manager, get_storage, get_thread_service,
    render_user_list,
)

router = Router()


def parse_done_data(data: str) -> Tuple[str, str]:
    """
    Разбирает "q_done:<entry_id>:<ключ типа>".

    Returns:
        (entry_id, название типа участия)

    Raises:
        InvalidOperation: если данные кнопки неполные или тип неизвестен
    """
    parts = data.split(":", 2)
    if len(parts) != 3 or not parts[1]:
        raise InvalidOperation(f"Неверные данные кнопки: {data}")
    session_type = parse_session_type(parts[2])
    if not session_type:
        raise InvalidOperation(f"Неизвестный тип участия: {parts[2]}")
    return parts[1], session_type


async def _refresh(callback: CallbackQuery, chat_id: int, post_id: int) -> None:
    """Перерисовывает сообщение со списком; оно становится последним списком поста."""
    user_list = get_queue_view().get_user_list(chat_id, post_id)
    session = get_session_manager().get_session_info(chat_id, post_id, user_list['current_session'])
    text = render_user_list(user_list, session['teacher_name'] if session else None)
    markup = keyboards.head_controls(user_list['active_users'], post_id)
    if callback.message.text != text or callback.message.reply_markup != markup:
        await callback.message.edit_text(text, reply_markup=markup)
    get_thread_service().set_last_list_message(
        chat_id, post_id, callback.message.message_id, user_list['current_session']
    )


def _entry(entry_id: str):
    entry = get_storage().get_entry(entry_id)
    if not entry:
        raise NotFound(f"Запись {entry_id} не найдена")
    return entry


@router.callback_query(F.data.startswith("q_done:"))
@require_admin_callback
async def callback_done(callback: CallbackQuery):
    """Завершает ход первого в очереди."""
    entry_id, session_type = parse_done_data(callback.data)
    entry = _entry(entry_id)
    get_queue_service().complete_user_turn(entry_id, session_type)
    await _refresh(callback, entry['chat_id'], entry['post_id'])
    await callback.answer("✅")


@router.callback_query(F.data.startswith("q_skip:"))
@require_admin_callback
async def callback_skip(callback: CallbackQuery):
    """Пропускает ход первого в очереди."""
    entry_id = callback.data.split(":", 1)[1]
    entry = _entry(entry_id)
    get_queue_service().skip_user_turn(entry_id)
    await _refresh(callback, entry['chat_id'], entry['post_id'])
    await callback.answer("⏭")


@router.callback_query(F.data.startswith("q_refresh:"))
@require_admin_callback
async def callback_refresh(callback: CallbackQuery):
    """Обновляет список."""
    try:
        post_id = int(callback.data.split(":", 1)[1])
    except ValueError:
        raise InvalidOperation(f"Неверные данные кнопки: {callback.data}")
    await _refresh(callback, callback.message.chat.id, post_id)
    await callback.answer()
