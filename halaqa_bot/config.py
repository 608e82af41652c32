"""
Настройки бота из переменных окружения.
"""

import os
from dataclasses import dataclass, field
from typing import List, Optional

from .services.util import parse_int_list, parse_str_list


@dataclass
class Config:
    """Настройки бота."""
    bot_token: Optional[str]
    admins: List[int] = field(default_factory=list)
    data_file: str = 'data.json'
    logs_dir: str = 'logs'
    done_user_insert_offset: int = 3
    default_turns_to_wait: int = 3
    accepted_reactions: List[str] = field(default_factory=lambda: ['❤', '👍'])
    use_webhook: bool = False
    webhook_url: Optional[str] = None
    port: int = 3000


def load_config() -> Config:
    """Читает настройки из окружения (.env загружается в точке входа)."""
    return Config(
        bot_token=os.getenv('BOT_TOKEN'),
        admins=parse_int_list(os.getenv('ADMINS', '')),
        data_file=os.getenv('DATA_FILE', 'data.json'),
        logs_dir=os.getenv('LOGS_DIR', 'logs'),
        done_user_insert_offset=int(os.getenv('DONE_USER_INSERT_OFFSET', '3')),
        default_turns_to_wait=int(os.getenv('DEFAULT_TURNS_TO_WAIT', '3')),
        accepted_reactions=parse_str_list(os.getenv('ACCEPTED_REACTIONS', '❤,👍')),
        use_webhook=os.getenv('USE_WEBHOOK', 'false').lower() == 'true',
        webhook_url=os.getenv('WEBHOOK_URL'),
        port=int(os.getenv('PORT', '3000')),
    )
