"""
Модели данных для бота очередей халаки.
"""

from typing import TypedDict, List, Dict, Optional


class QueueEntry(TypedDict, total=False):
    """Место участника в очереди одной сессии."""
    id: str                 # "E-12"
    chat_id: int
    post_id: int            # сообщение канала, под которым идёт обсуждение
    session_number: int
    user_id: int
    position: int           # непрерывная нумерация среди активных записей
    channel_id: Optional[int]
    created_at: str
    completed_at: Optional[str]  # выставляется один раз
    session_type: Optional[str]  # "تلاوة", "تسميع", ...
    carried_over: bool
    notes: Optional[str]
    compensating_for_dates: Optional[List[str]]  # ISO-даты "2024-05-01"


class Session(TypedDict):
    """Метаданные одной сессии внутри поста."""
    id: str  # "S-3"
    chat_id: int
    post_id: int
    session_number: int
    teacher_name: str
    created_at: str


class UserRecord(TypedDict, total=False):
    """Идентичность участника."""
    user_id: int
    username: Optional[str]       # username из Telegram
    telegram_name: str            # first_name + last_name из Telegram
    real_name: Optional[str]      # найденное или подтверждённое имя
    real_name_verified: bool
    updated_at: str


class MessageAuthor(TypedDict, total=False):
    """Автор сообщения в ветке обсуждения поста."""
    chat_id: int
    post_id: int
    message_id: int
    user_id: int
    channel_id: Optional[int]
    text: Optional[str]
    created_at: str


class LastListMessage(TypedDict):
    """Последнее сообщение бота со списком очереди в ветке поста."""
    chat_id: int
    post_id: int
    message_id: int
    session_number: int
    updated_at: str


class Store(TypedDict):
    """Главная модель хранилища данных."""
    entries: Dict[str, QueueEntry]       # ключ - id записи
    sessions: Dict[str, Session]         # ключ - id сессии
    users: Dict[str, UserRecord]         # используем str(user_id) как ключи
    message_authors: Dict[str, MessageAuthor]  # ключ "chat_id:message_id"
    last_list_messages: Dict[str, LastListMessage]  # ключ "chat_id:post_id"
    counters: Dict[str, int]             # {"entrySeq": 0, "sessionSeq": 0}


class QueueUser(TypedDict):
    """Запись очереди вместе с данными участника для отображения."""
    entry_id: str
    id: int                   # user_id
    telegram_name: str
    real_name: Optional[str]
    username: Optional[str]
    display_name: str
    position: int
    created_at: str
    completed_at: Optional[str]
    carried_over: bool
    session_type: Optional[str]
    notes: Optional[str]
    compensating_for_dates: Optional[List[str]]


class UserList(TypedDict):
    """Очередь сессии: ожидающие и завершившие."""
    active_users: List[QueueUser]
    completed_users: List[QueueUser]
    current_session: int
