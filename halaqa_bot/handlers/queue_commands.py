"""
Команды управления очередью в ветке поста.
"""

from typing import Optional, Tuple
from aiogram import Router
from aiogram.types import Message, User
from aiogram.filters import Command
from aiogram.exceptions import TelegramForbiddenError, TelegramBadRequest

from ..config import load_config
from ..services.acl import require_admin
from ..services.keyboards import keyboards
from ..services.logger import get_logger
from ..services.session_types import SESSION_TYPES, DEFAULT_SESSION_TYPE, parse_session_type
from .common import (
    NOT_IN_THREAD_TEXT, command_args, entry_at, get_identity_service, get_queue_service,
    get_queue_view, get_session_manager, get_thread_service, parse_position, render_user_list,
    resolve_thread,
)

logger = get_logger('queue_commands')
router = Router()

REPLY_TO_MEMBER_TEXT = "استخدم الأمر كرد على رسالة المشارك."


async def _thread(message: Message) -> Optional[Tuple[int, Optional[int]]]:
    thread = resolve_thread(message)
    if not thread:
        await message.reply(NOT_IN_THREAD_TEXT)
    return thread


def _member(message: Message) -> Optional[User]:
    """Автор сообщения, на которое ответили командой."""
    reply = message.reply_to_message
    if not reply or reply.is_automatic_forward or not reply.from_user or reply.from_user.is_bot:
        return None
    return reply.from_user


def _remember(user: User) -> None:
    get_identity_service().upsert_user(user.id, user.full_name, user.username)


async def send_user_list(message: Message, chat_id: int, post_id: int) -> None:
    """
    Отправляет актуальную очередь сессии с кнопками управления.

    Прежний список той же сессии удаляется, чтобы в ветке оставался один.
    """
    user_list = get_queue_view().get_user_list(chat_id, post_id)
    session_number = user_list['current_session']
    session = get_session_manager().get_session_info(chat_id, post_id, session_number)
    text = render_user_list(user_list, session['teacher_name'] if session else None)

    threads = get_thread_service()
    previous_id = threads.replaceable_list_message(chat_id, post_id, session_number)
    if previous_id:
        try:
            await message.bot.delete_message(chat_id, previous_id)
        except (TelegramForbiddenError, TelegramBadRequest) as e:
            # Сообщение могли удалить вручную
            logger.debug(f"Не удалось удалить прежний список {previous_id} поста {post_id}: {e}")
            threads.clear_last_list_message(chat_id, post_id)

    sent = await message.reply(text, reply_markup=keyboards.head_controls(user_list['active_users'], post_id))
    threads.set_last_list_message(chat_id, post_id, sent.message_id, session_number)


@router.message(Command("list"))
@require_admin
async def cmd_list(message: Message):
    """Показывает очередь текущей сессии."""
    thread = await _thread(message)
    if not thread:
        return
    await send_user_list(message, message.chat.id, thread[0])


@router.message(Command("add"))
@require_admin
async def cmd_add(message: Message):
    """Добавляет автора сообщения в конец очереди."""
    thread = await _thread(message)
    if not thread:
        return
    member = _member(message)
    if not member:
        await message.reply(REPLY_TO_MEMBER_TEXT)
        return

    post_id, channel_id = thread
    _remember(member)
    get_queue_service().add_user_to_list(message.chat.id, post_id, member.id, channel_id=channel_id)
    await send_user_list(message, message.chat.id, post_id)


@router.message(Command("addturn"))
@require_admin
async def cmd_addturn(message: Message):
    """
    Добавляет автору сообщения ещё один ход: /addturn [сколько ждать] [даты компенсации].

    Даты в формате YYYY-MM-DD, например: /addturn 2 2024-05-01 2024-05-03
    """
    thread = await _thread(message)
    if not thread:
        return
    member = _member(message)
    if not member:
        await message.reply(REPLY_TO_MEMBER_TEXT)
        return

    args = command_args(message)
    if args and args[0].isdigit():
        turns_to_wait, dates = int(args[0]), args[1:]
    else:
        turns_to_wait, dates = load_config().default_turns_to_wait, args

    post_id, channel_id = thread
    _remember(member)
    active = get_queue_view().get_user_list(message.chat.id, post_id)['active_users']
    current = next((user for user in active if user['id'] == member.id), None)

    get_queue_service().add_user_at_position(
        message.chat.id, post_id, member.id,
        current_position=current['position'] if current else None,
        turns_to_wait=turns_to_wait,
        channel_id=channel_id,
        compensating_for_dates=dates,
    )
    await send_user_list(message, message.chat.id, post_id)


@router.message(Command("done"))
@require_admin
async def cmd_done(message: Message):
    """Завершает ход: /done <номер> [тип]."""
    thread = await _thread(message)
    if not thread:
        return
    args = command_args(message)
    if not args:
        types_text = "، ".join(SESSION_TYPES.values())
        await message.reply(f"الاستخدام: /done <رقم> [النوع]\nالأنواع: {types_text}")
        return

    session_type = SESSION_TYPES[DEFAULT_SESSION_TYPE]
    if len(args) > 1:
        session_type = parse_session_type(args[1])
        if not session_type:
            await message.reply(f"نوع غير معروف: {args[1]}")
            return

    post_id = thread[0]
    active = get_queue_view().get_user_list(message.chat.id, post_id)['active_users']
    entry = entry_at(active, parse_position(args[0]))
    get_queue_service().complete_user_turn(entry['entry_id'], session_type)
    await send_user_list(message, message.chat.id, post_id)


@router.message(Command("skip"))
@require_admin
async def cmd_skip(message: Message):
    """Меняет участника местами со следующим: /skip <номер>."""
    thread = await _thread(message)
    if not thread:
        return
    args = command_args(message)
    if not args:
        await message.reply("الاستخدام: /skip <رقم>")
        return

    post_id = thread[0]
    active = get_queue_view().get_user_list(message.chat.id, post_id)['active_users']
    entry = entry_at(active, parse_position(args[0]))
    get_queue_service().skip_user_turn(entry['entry_id'])
    await send_user_list(message, message.chat.id, post_id)


@router.message(Command("move"))
@require_admin
async def cmd_move(message: Message):
    """Перемещает участника: /move <номер> <новая позиция>."""
    thread = await _thread(message)
    if not thread:
        return
    args = command_args(message)
    if len(args) < 2:
        await message.reply("الاستخدام: /move <رقم> <الموضع الجديد>")
        return

    post_id = thread[0]
    active = get_queue_view().get_user_list(message.chat.id, post_id)['active_users']
    entry = entry_at(active, parse_position(args[0]))
    get_queue_service().update_user_position(entry['entry_id'], parse_position(args[1]))
    await send_user_list(message, message.chat.id, post_id)


@router.message(Command("last"))
@require_admin
async def cmd_last(message: Message):
    """Перемещает участника в конец очереди: /last <номер>."""
    thread = await _thread(message)
    if not thread:
        return
    args = command_args(message)
    if not args:
        await message.reply("الاستخدام: /last <رقم>")
        return

    post_id = thread[0]
    active = get_queue_view().get_user_list(message.chat.id, post_id)['active_users']
    entry = entry_at(active, parse_position(args[0]))
    get_queue_service().move_to_end(entry['entry_id'])
    await send_user_list(message, message.chat.id, post_id)


@router.message(Command("remove"))
@require_admin
async def cmd_remove(message: Message):
    """Удаляет участника из очереди: /remove <номер>."""
    thread = await _thread(message)
    if not thread:
        return
    args = command_args(message)
    if not args:
        await message.reply("الاستخدام: /remove <رقم>")
        return

    post_id = thread[0]
    active = get_queue_view().get_user_list(message.chat.id, post_id)['active_users']
    entry = entry_at(active, parse_position(args[0]))
    get_queue_service().remove_user_from_list(entry['entry_id'])
    logger.info(f"Админ {message.from_user.id} удалил {entry['entry_id']} из поста {post_id}")
    await send_user_list(message, message.chat.id, post_id)


@router.message(Command("note"))
@require_admin
async def cmd_note(message: Message):
    """Заметка к участнику: /note <номер> [текст]; без текста заметка удаляется."""
    thread = await _thread(message)
    if not thread:
        return
    parts = (message.text or '').split(maxsplit=2)
    if len(parts) < 2:
        await message.reply("الاستخدام: /note <رقم> [ملاحظة]")
        return

    post_id = thread[0]
    active = get_queue_view().get_user_list(message.chat.id, post_id)['active_users']
    entry = entry_at(active, parse_position(parts[1]))
    get_queue_service().update_user_notes(entry['entry_id'], parts[2] if len(parts) > 2 else None)
    await message.reply("✅ تم حفظ الملاحظة.")


@router.message(Command("type"))
@require_admin
async def cmd_type(message: Message):
    """Исправляет тип участия завершенного хода: /type <номер среди завершивших> <тип>."""
    thread = await _thread(message)
    if not thread:
        return
    args = command_args(message)
    if len(args) < 2:
        await message.reply("الاستخدام: /type <رقم> <النوع>")
        return

    session_type = parse_session_type(args[1])
    if not session_type:
        await message.reply(f"نوع غير معروف: {args[1]}")
        return

    post_id = thread[0]
    completed = get_queue_view().get_user_list(message.chat.id, post_id)['completed_users']
    entry = entry_at(completed, parse_position(args[0]))
    get_queue_service().update_session_type(entry['entry_id'], session_type)
    await message.reply(f"✅ تم تغيير النوع إلى {session_type}.")


@router.message(Command("name"))
@require_admin
async def cmd_name(message: Message):
    """Подтверждает настоящее имя автора сообщения: /name <имя>."""
    member = _member(message)
    if not member:
        await message.reply(REPLY_TO_MEMBER_TEXT)
        return
    parts = (message.text or '').split(maxsplit=1)
    if len(parts) < 2:
        await message.reply("الاستخدام: /name <الاسم الحقيقي>")
        return

    _remember(member)
    get_identity_service().update_real_name(member.id, parts[1])
    await message.reply(f"✅ الاسم: {parts[1].strip()}")
