"""
Блокировка процесса: файл хранилища пишет только один экземпляр бота.

Транзакции Storage защищены блокировкой внутри процесса, поэтому второй
процесс с тем же DATA_FILE перезаписал бы чужие изменения.
"""

import os
import json
import time
import hashlib
import psutil
import logging
import tempfile
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

PROCESS_KEYWORDS = ('halaqa_bot', 'halaqa-bot')
# Столько секунд нечитаемый lock-файл считается только что созданным
FRESH_LOCK_SECONDS = 1.0


class AlreadyRunning(RuntimeError):
    """С этим файлом хранилища уже работает другой процесс."""


def lock_path_for(data_file: str) -> Path:
    """Путь lock-файла для файла хранилища."""
    digest = hashlib.md5(os.path.abspath(data_file).encode()).hexdigest()[:8]
    return Path(tempfile.gettempdir()) / f"halaqa_bot_{digest}.lock"


def is_bot_process(pid: int) -> bool:
    """Жив ли процесс и похож ли он на этого бота."""
    try:
        process = psutil.Process(pid)
        cmdline = ' '.join(process.cmdline()).lower()
        return process.is_running() and any(keyword in cmdline for keyword in PROCESS_KEYWORDS)
    except (psutil.NoSuchProcess, psutil.AccessDenied, psutil.ZombieProcess):
        return False


class ProcessLock:
    """Lock-файл с PID владельца и путем хранилища."""

    def __init__(self, data_file: str):
        self.data_file = os.path.abspath(data_file)
        self.lock_file = lock_path_for(data_file)
        self.pid = os.getpid()
        self._locked = False

    def _owner(self) -> Optional[int]:
        try:
            return int(json.loads(self.lock_file.read_text())['pid'])
        except FileNotFoundError:
            return None
        except (ValueError, KeyError, TypeError, PermissionError) as e:
            logger.warning(f"Поврежденный lock-файл {self.lock_file}: {e}")
            return None

    def _just_created(self) -> bool:
        try:
            return time.time() - self.lock_file.stat().st_mtime < FRESH_LOCK_SECONDS
        except FileNotFoundError:
            return False

    def _create(self) -> bool:
        """Создает lock-файл, только если его еще нет (O_CREAT | O_EXCL)."""
        try:
            fd = os.open(self.lock_file, os.O_CREAT | os.O_EXCL | os.O_WRONLY, 0o644)
        except FileExistsError:
            return False
        with os.fdopen(fd, 'w') as f:
            json.dump({'pid': self.pid, 'data_file': self.data_file}, f)
        return True

    def acquire(self, timeout: float = 5) -> bool:
        """
        Пытается занять хранилище.

        Lock-файл создается атомарно: из двух одновременно стартующих
        процессов файл создаст только один. Устаревший lock-файл (процесс-
        владелец завершился) удаляется, после чего создание повторяется.

        Returns:
            True если блокировка получена, False если хранилище занято
        """
        deadline = time.monotonic() + timeout

        while time.monotonic() < deadline:
            try:
                if self._create():
                    self._locked = True
                    logger.info(f"✅ Хранилище {self.data_file} занято процессом {self.pid}")
                    return True
            except OSError as e:
                logger.error(f"Не удалось создать lock-файл: {e}")
                time.sleep(0.1)
                continue

            owner = self._owner()
            if owner is None and self._just_created():
                # Другой процесс только что создал файл и еще пишет PID
                time.sleep(0.05)
                continue
            if owner == self.pid:
                self._locked = True
                return True
            if owner and is_bot_process(owner):
                logger.warning(f"Хранилище {self.data_file} занято процессом {owner}")
                return False

            logger.info(f"Удаляем устаревший lock-файл процесса {owner}")
            try:
                self.lock_file.unlink()
            except FileNotFoundError:
                pass

        logger.error(f"Не удалось получить блокировку за {timeout} секунд")
        return False

    def release(self):
        """Освобождает хранилище, если lock-файл принадлежит этому процессу."""
        if not self._locked:
            return
        self._locked = False

        if self._owner() == self.pid:
            try:
                self.lock_file.unlink()
            except FileNotFoundError:
                return
            logger.info("✅ Блокировка хранилища освобождена")

    def __enter__(self):
        if not self.acquire():
            raise AlreadyRunning(f"С файлом {self.data_file} уже работает другой экземпляр бота")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.release()
