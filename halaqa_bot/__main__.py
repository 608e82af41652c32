"""
Точка входа для запуска бота: python -m halaqa_bot
"""

import asyncio
import logging

from dotenv import load_dotenv

# Загружаем переменные окружения
load_dotenv()

from .bot import bot, dp, config
from .services.process_lock import ProcessLock

logger = logging.getLogger('halaqa_bot.main')


def run_webhook():
    """Запуск бота через webhook."""
    from aiohttp import web
    from aiogram.webhook.aiohttp_server import SimpleRequestHandler, setup_application

    if not config.webhook_url:
        raise ValueError("WEBHOOK_URL не найден в переменных окружения при USE_WEBHOOK=true")

    async def set_webhook():
        await bot.set_webhook(config.webhook_url, allowed_updates=dp.resolve_used_update_types())

    dp.startup.register(set_webhook)

    app = web.Application()
    SimpleRequestHandler(dispatcher=dp, bot=bot).register(app, path="/webhook")

    async def health_check(request):
        return web.json_response({"status": "ok", "mode": "webhook"})

    app.router.add_get("/health", health_check)
    setup_application(app, dp, bot=bot)

    logger.info(f"🌐 Запуск webhook сервера на порту {config.port}")
    web.run_app(app, host='0.0.0.0', port=config.port)


async def polling_main():
    """Запуск бота через long polling."""
    logger.info("📡 Запуск в режиме long polling...")

    webhook_info = await bot.get_webhook_info()
    if webhook_info.url:
        logger.info(f"Очищаем webhook: {webhook_info.url}")
        await bot.delete_webhook(drop_pending_updates=True)

    # message_reaction не приходит без явного указания allowed_updates
    await dp.start_polling(bot, allowed_updates=dp.resolve_used_update_types())


def main():
    """Главная функция запуска."""
    logger.info(f"🚀 Запуск halaqa-bot, режим: {'webhook' if config.use_webhook else 'polling'}")

    with ProcessLock(config.data_file):
        try:
            if config.use_webhook:
                run_webhook()
            else:
                asyncio.run(polling_main())
        except KeyboardInterrupt:
            logger.info("🔴 Получен сигнал прерывания")
        finally:
            logger.info("🔴 Бот остановлен")


if __name__ == '__main__':
    main()
