"""
Ошибки операций над очередью и сессиями.
"""


class QueueError(Exception):
    """Базовая ошибка операций над очередью."""


class NotFound(QueueError):
    """Запись, сессия или пользователь не существует."""


class InvalidOperation(QueueError):
    """Нарушено предусловие операции."""


class StorageCorrupted(Exception):
    """Файл хранилища не читается; изменения не записываются, чтобы не потерять данные."""
