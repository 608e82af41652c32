"""
Проверка прав доступа (ACL) для команд управления очередью.
"""

import os
from functools import wraps
from typing import Callable, Any
from aiogram import types

from .util import parse_int_list

NOT_ADMIN_TEXT = "هذا الأمر متاح للمشرفين فقط."


def is_admin(tg_id: int) -> bool:
    """Проверяет, входит ли пользователь в белый список ADMINS из env."""
    admin_ids = parse_int_list(os.getenv('ADMINS', ''))
    return tg_id in admin_ids


def require_admin(func: Callable) -> Callable:
    """
    Декоратор для проверки прав админа.
    Если пользователь не админ, отправляет сообщение об отказе.
    """
    @wraps(func)
    async def wrapper(message: types.Message, *args, **kwargs) -> Any:
        if not message.from_user or not is_admin(message.from_user.id):
            await message.reply(NOT_ADMIN_TEXT)
            return
        return await func(message, *args, **kwargs)
    return wrapper


def require_admin_callback(func: Callable) -> Callable:
    """Тот же декоратор для нажатий на inline-кнопки."""
    @wraps(func)
    async def wrapper(callback: types.CallbackQuery, *args, **kwargs) -> Any:
        if not is_admin(callback.from_user.id):
            await callback.answer(NOT_ADMIN_TEXT, show_alert=True)
            return
        return await func(callback, *args, **kwargs)
    return wrapper
