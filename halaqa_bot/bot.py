"""
Создание экземпляра бота, диспетчера и настройка middlewares.
"""

from aiogram import Bot, Dispatcher
from aiogram.client.default import DefaultBotProperties
from aiogram.types import BotCommand
from dotenv import load_dotenv

# Загружаем переменные окружения
load_dotenv()

# Инициализируем систему логирования
from .services.logger import get_logger
from .config import load_config

logger = get_logger('bot')

config = load_config()
if not config.bot_token:
    raise ValueError("BOT_TOKEN не найден в переменных окружения")

# Создаем экземпляр бота; parse_mode не задаем, имена участников выводятся как есть
bot = Bot(token=config.bot_token, default=DefaultBotProperties())

dp = Dispatcher()


# Импортируем и регистрируем handlers сразу
from .handlers import queue_commands, session_commands, queue_callbacks, reactions, thread_messages

dp.include_router(queue_commands.router)
dp.include_router(session_commands.router)
dp.include_router(queue_callbacks.router)
dp.include_router(reactions.router)
# Запоминание сообщений ветки должно быть последним
dp.include_router(thread_messages.router)

# Подключаем middleware для обработки ошибок
from .middlewares.error_handler import ErrorHandlerMiddleware
error_middleware = ErrorHandlerMiddleware()
dp.message.middleware(error_middleware)
dp.callback_query.middleware(error_middleware)
dp.message_reaction.middleware(error_middleware)

logger.info("Handlers зарегистрированы")


async def on_startup():
    """Выполняется при запуске бота."""
    logger.info("🚀 Запуск бота...")

    me = await bot.get_me()
    logger.info(f"✅ Бот подключен: @{me.username} ({me.first_name})")

    commands = [
        BotCommand(command="list", description="📋 عرض القائمة"),
        BotCommand(command="add", description="➕ إضافة المشارك (رد على رسالته)"),
        BotCommand(command="addturn", description="🔁 دور إضافي (رد على رسالته)"),
        BotCommand(command="done", description="✅ إنهاء الدور"),
        BotCommand(command="skip", description="⏭ تأجيل الدور"),
        BotCommand(command="move", description="↕️ نقل المشارك"),
        BotCommand(command="last", description="⬇️ نقل إلى آخر القائمة"),
        BotCommand(command="remove", description="🗑 حذف من القائمة"),
        BotCommand(command="note", description="📝 ملاحظة على المشارك"),
        BotCommand(command="type", description="🏷 تعديل نوع المشاركة"),
        BotCommand(command="name", description="🪪 الاسم الحقيقي (رد على رسالته)"),
        BotCommand(command="newsession", description="🆕 حلقة جديدة"),
        BotCommand(command="teacher", description="👤 معلم الحلقة"),
        BotCommand(command="sessions", description="📚 الحلقات"),
        BotCommand(command="stats", description="📊 الإحصائيات"),
    ]
    await bot.set_my_commands(commands)
    logger.info("✅ Команды бота настроены")
    logger.info("🎉 Бот запущен и готов к работе!")


async def on_shutdown():
    """Выполняется при остановке бота."""
    logger.info("Бот остановлен")


# Регистрируем startup/shutdown хуки
dp.startup.register(on_startup)
dp.shutdown.register(on_shutdown)
