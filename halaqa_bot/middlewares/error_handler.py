"""
Middleware для обработки ошибок операций над очередью и логирования.
"""

import time
from typing import Callable, Dict, Any, Awaitable
from aiogram import BaseMiddleware
from aiogram.types import TelegramObject, Message, CallbackQuery, MessageReactionUpdated, ReactionTypeEmoji

from ..services.errors import QueueError, NotFound, InvalidOperation
from ..services.logger import get_logger, log_update, log_error, log_timing

logger = get_logger('middleware')

NOT_FOUND_TEXT = "❌ لم يتم العثور على المشارك أو الحلقة المطلوبة."
INVALID_OPERATION_TEXT = "⚠️ لا يمكن تنفيذ هذه العملية على القائمة الحالية."
UNKNOWN_ERROR_TEXT = "⚠️ حدث خطأ أثناء المعالجة. حاول مرة أخرى أو تواصل مع المشرف."


def rejection_text(error: QueueError) -> str:
    """Сообщение пользователю для отклоненной операции."""
    if isinstance(error, NotFound):
        return NOT_FOUND_TEXT
    if isinstance(error, InvalidOperation):
        return INVALID_OPERATION_TEXT
    return UNKNOWN_ERROR_TEXT


class ErrorHandlerMiddleware(BaseMiddleware):
    """Middleware для глобальной обработки ошибок с детальным логированием."""

    def __init__(self):
        super().__init__()
        self.error_count = 0

    async def _answer(self, event: TelegramObject, text: str) -> None:
        try:
            if isinstance(event, Message):
                await event.reply(text)
            elif isinstance(event, CallbackQuery):
                await event.answer(text, show_alert=True)
        except Exception as reply_error:
            logger.error(f"❌ Не удалось отправить сообщение об ошибке: {reply_error}")

    async def __call__(
        self,
        handler: Callable[[TelegramObject, Dict[str, Any]], Awaitable[Any]],
        event: TelegramObject,
        data: Dict[str, Any]
    ) -> Any:
        start_time = time.time()
        user = getattr(event, 'from_user', None) or getattr(event, 'user', None)
        user_id = user.id if user else None
        chat = getattr(event, 'chat', None)
        if chat is None and isinstance(event, CallbackQuery) and event.message:
            chat = event.message.chat
        chat_id = chat.id if chat else None

        handler_object = data.get('handler')
        handler_name = getattr(getattr(handler_object, 'callback', None), '__name__', None)

        if isinstance(event, Message):
            log_update('message', user_id, chat_id, event.text or 'non-text', handler_name)
        elif isinstance(event, CallbackQuery):
            log_update('callback', user_id, chat_id, event.data or 'no-data', handler_name)
        elif isinstance(event, MessageReactionUpdated):
            emoji = ' '.join(r.emoji for r in event.new_reaction if isinstance(r, ReactionTypeEmoji))
            log_update('reaction', user_id, chat_id, f"{event.message_id}: {emoji or '-'}", handler_name)

        try:
            return await handler(event, data)

        except QueueError as e:
            # Ожидаемый отказ: неверный номер, завершенный ход и т.п.
            logger.warning(
                f"⛔ Операция отклонена ({handler_name}): {type(e).__name__}: {e}",
                extra={'user_id': user_id, 'chat_id': chat_id, 'handler_name': handler_name}
            )
            await self._answer(event, rejection_text(e))
            return None

        except Exception as e:
            self.error_count += 1
            log_error(e, {
                'handler_name': handler_name,
                'chat_id': chat_id,
                'error_count': self.error_count,
                'event_type': type(event).__name__,
            }, user_id)
            logger.error(f"❌ Ошибка в обработчике #{self.error_count} ({handler_name}): {e}")

            await self._answer(event, f"{UNKNOWN_ERROR_TEXT}\n\n🔍 #{self.error_count}")
            return None

        finally:
            duration_ms = (time.time() - start_time) * 1000
            log_timing(handler_name or 'unknown_handler', duration_ms, user_id)
