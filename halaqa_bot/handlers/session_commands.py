"""
Команды управления сессиями поста и статистика.
"""

from aiogram import Router
from aiogram.types import Message
from aiogram.filters import Command

from ..services.acl import require_admin
from ..services.logger import get_logger
from ..services.queue_view import to_arabic_digits
from ..services.stats import participation_summary
from .common import NOT_IN_THREAD_TEXT, get_session_manager, get_storage, resolve_thread
from .queue_commands import send_user_list

logger = get_logger('session_commands')
router = Router()

CARRY_WORDS = {'carry', 'نقل'}
NO_CARRY_WORDS = {'nocarry', 'بدون'}


@router.message(Command("newsession"))
@require_admin
async def cmd_newsession(message: Message):
    """Начинает новую сессию: /newsession <учитель> [carry|nocarry]."""
    thread = resolve_thread(message)
    if not thread:
        await message.reply(NOT_IN_THREAD_TEXT)
        return

    words = (message.text or '').split()[1:]
    carry_over = True
    if words and words[-1].lower() in CARRY_WORDS | NO_CARRY_WORDS:
        carry_over = words.pop().lower() in CARRY_WORDS
    teacher_name = ' '.join(words)
    if not teacher_name:
        await message.reply("الاستخدام: /newsession <اسم المعلم> [carry|nocarry]")
        return

    post_id = thread[0]
    result = get_session_manager().start_new_session(message.chat.id, post_id, teacher_name, carry_over)
    logger.info(f"Админ {message.from_user.id} начал сессию {result['new_session_number']} поста {post_id}")

    await message.reply(
        f"🆕 بدأت الحلقة {result['new_session_number']} مع {teacher_name}.\n"
        f"تم نقل {result['carried_over']} من المشاركين."
    )
    await send_user_list(message, message.chat.id, post_id)


@router.message(Command("teacher"))
@require_admin
async def cmd_teacher(message: Message):
    """Меняет учителя текущей сессии: /teacher <имя>."""
    thread = resolve_thread(message)
    if not thread:
        await message.reply(NOT_IN_THREAD_TEXT)
        return
    parts = (message.text or '').split(maxsplit=1)
    if len(parts) < 2:
        await message.reply("الاستخدام: /teacher <اسم المعلم>")
        return

    post_id = thread[0]
    sessions = get_session_manager()
    session_number = sessions.resolve_latest_session(message.chat.id, post_id)
    sessions.update_session_teacher(message.chat.id, post_id, session_number, parts[1])
    await message.reply(f"✅ معلم الحلقة {session_number}: {parts[1].strip()}")


@router.message(Command("sessions"))
@require_admin
async def cmd_sessions(message: Message):
    """Список сессий поста."""
    thread = resolve_thread(message)
    if not thread:
        await message.reply(NOT_IN_THREAD_TEXT)
        return

    sessions = get_session_manager().get_available_sessions(message.chat.id, thread[0])
    if not sessions:
        await message.reply("لا توجد حلقات بعد.")
        return

    lines = [
        f"{to_arabic_digits(session['session_number'])}. {session['teacher_name']} ({session['created_at'][:10]})"
        for session in sessions
    ]
    await message.reply("📚 الحلقات:\n\n" + "\n".join(lines))


@router.message(Command("stats"))
@require_admin
async def cmd_stats(message: Message):
    """Статистика участия по посту."""
    thread = resolve_thread(message)
    if not thread:
        await message.reply(NOT_IN_THREAD_TEXT)
        return

    summary = participation_summary(get_storage(), message.chat.id, thread[0])
    text = (
        "📊 الإحصائيات\n\n"
        f"عدد الحلقات: {summary['sessions_count']}\n"
        f"الحضور: {summary['total_attendance']}\n"
        f"المشاركات: {summary['total_participations']}\n"
        f"نسبة المشاركة: {summary['participation_rate']}%"
    )
    for item in summary['by_type'].values():
        text += f"\n• {item['label']}: {item['count']} ({item['participants']} مشارك)"
    await message.reply(text)
