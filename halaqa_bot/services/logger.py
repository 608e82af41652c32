"""
Логирование бота: консоль, общий файл, JSON-строки и файл ошибок.

Все логгеры живут в пространстве имен halaqa_bot, поэтому модули сервисов
могут использовать logging.getLogger(__name__) и попадают в те же файлы.
"""

import logging
import logging.handlers
import os
import json
import sys
import traceback
from datetime import datetime, timezone
from typing import Dict, Any, Optional
from pathlib import Path

ROOT_LOGGER = 'halaqa_bot'

CONSOLE_FORMAT = '%(asctime)s | %(levelname)-8s | %(name)-36s | %(message)s'
SLOW_HANDLER_MS = 1000

# Поля из extra, которые попадают в JSON
CONTEXT_FIELDS = ('user_id', 'chat_id', 'post_id', 'session_number', 'entry_id',
                  'update_type', 'handler_name', 'duration_ms', 'error_type', 'stack_trace')


class JsonFormatter(logging.Formatter):
    """Одна запись лога - одна JSON-строка."""

    def format(self, record: logging.LogRecord) -> str:
        log_data = {
            'timestamp': datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            'level': record.levelname,
            'logger': record.name,
            'message': record.getMessage(),
            'location': f"{record.module}.{record.funcName}:{record.lineno}",
        }
        log_data.update({
            name: getattr(record, name) for name in CONTEXT_FIELDS if hasattr(record, name)
        })

        if record.exc_info:
            exc_type, exc_value, _ = record.exc_info
            log_data['exception'] = {
                'type': exc_type.__name__,
                'message': str(exc_value),
                'traceback': traceback.format_exception(*record.exc_info),
            }

        return json.dumps(log_data, ensure_ascii=False)


class BotLogger:
    """Настраивает корневой логгер бота и пишет события обработки обновлений."""

    # Файл, уровень, JSON-формат, сколько дней хранить
    FILES = (
        ("bot_all.log", logging.DEBUG, False, 7),
        ("bot_structured.jsonl", logging.INFO, True, 7),
        ("bot_errors.log", logging.ERROR, True, 30),
    )

    def __init__(self, logs_dir: str = "logs"):
        self.logs_dir = Path(logs_dir)
        self.logs_dir.mkdir(parents=True, exist_ok=True)
        self._setup()

    def _setup(self):
        root = logging.getLogger(ROOT_LOGGER)
        root.setLevel(logging.DEBUG)
        root.handlers.clear()

        text_formatter = logging.Formatter(CONSOLE_FORMAT, datefmt='%Y-%m-%d %H:%M:%S')

        console = logging.StreamHandler(sys.stdout)
        console.setLevel(logging.INFO)
        console.setFormatter(text_formatter)
        root.addHandler(console)

        for file_name, level, as_json, days in self.FILES:
            handler = logging.handlers.TimedRotatingFileHandler(
                self.logs_dir / file_name,
                when='midnight',
                backupCount=days,
                encoding='utf-8'
            )
            handler.setLevel(level)
            handler.setFormatter(JsonFormatter() if as_json else text_formatter)
            root.addHandler(handler)

        # Библиотеки пишут только предупреждения
        for name in ('aiogram', 'aiohttp'):
            logging.getLogger(name).setLevel(logging.WARNING)

        root.info(f"🔧 Логирование настроено, папка логов: {self.logs_dir}")

    def get_logger(self, name: str) -> logging.Logger:
        return logging.getLogger(f'{ROOT_LOGGER}.{name}')

    def log_update(self, update_type: str, user_id: Optional[int], chat_id: Optional[int],
                   payload: str, handler_name: Optional[str] = None):
        """Пишет входящее обновление (сообщение, нажатие кнопки, реакцию) в DEBUG."""
        short = payload if len(payload) <= 50 else payload[:50] + '...'
        self.get_logger('updates').debug(
            f"📥 {update_type}: {short}",
            extra={'update_type': update_type, 'user_id': user_id, 'chat_id': chat_id,
                   'handler_name': handler_name}
        )

    def log_error(self, error: Exception, context: Optional[Dict[str, Any]] = None,
                  user_id: Optional[int] = None):
        """Логирует непредвиденную ошибку с трейсбеком и контекстом."""
        exc_info = (type(error), error, error.__traceback__)
        extra = {
            'error_type': type(error).__name__,
            'stack_trace': ''.join(traceback.format_exception(*exc_info)),
            'user_id': user_id,
        }
        extra.update(context or {})
        self.get_logger('errors').error(f"❌ Ошибка: {error}", extra=extra, exc_info=exc_info)

    def log_handler_timing(self, handler_name: str, duration_ms: float, user_id: Optional[int] = None):
        """Предупреждает о медленных обработчиках."""
        if duration_ms <= SLOW_HANDLER_MS:
            return
        self.get_logger('performance').warning(
            f"⏱️ Медленный обработчик: {handler_name} ({duration_ms:.0f}ms)",
            extra={'handler_name': handler_name, 'duration_ms': round(duration_ms, 2), 'user_id': user_id}
        )


# Глобальный экземпляр логгера
bot_logger = BotLogger(os.getenv('LOGS_DIR', 'logs'))


def get_logger(name: str) -> logging.Logger:
    """Возвращает логгер halaqa_bot.<name>."""
    return bot_logger.get_logger(name)


def log_update(update_type: str, user_id: Optional[int], chat_id: Optional[int],
               payload: str, handler_name: Optional[str] = None):
    bot_logger.log_update(update_type, user_id, chat_id, payload, handler_name)


def log_error(error: Exception, context: Optional[Dict[str, Any]] = None, user_id: Optional[int] = None):
    bot_logger.log_error(error, context, user_id)


def log_timing(handler_name: str, duration_ms: float, user_id: Optional[int] = None):
    bot_logger.log_handler_timing(handler_name, duration_ms, user_id)
