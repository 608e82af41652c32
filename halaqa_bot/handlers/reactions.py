"""
Добавление участника в очередь реакцией админа на его сообщение.
"""

from aiogram import Router
from aiogram.types import MessageReactionUpdated, ReactionTypeEmoji

from ..config import load_config
from ..services.acl import is_admin
from ..services.logger import get_logger
from .common import get_queue_service, get_thread_service

logger = get_logger('reactions')
router = Router()


@router.message_reaction()
async def handle_reaction(event: MessageReactionUpdated):
    """Реакция из ACCEPTED_REACTIONS от админа ставит автора сообщения в очередь."""
    if not event.user:
        logger.debug("Анонимная реакция, пропускаем")
        return
    if not is_admin(event.user.id):
        return

    accepted = set(load_config().accepted_reactions)
    if not any(isinstance(r, ReactionTypeEmoji) and r.emoji in accepted for r in event.new_reaction):
        return

    author = get_thread_service().get_message_author(event.chat.id, event.message_id)
    if not author:
        logger.info(f"⚠️ Сообщение {event.message_id} не найдено в ветках постов, реакция пропущена")
        return
    if not author['user_id']:
        return

    get_queue_service().add_user_to_list(
        event.chat.id, author['post_id'], author['user_id'], channel_id=author.get('channel_id')
    )
    logger.info(
        f"Админ {event.user.id} добавил {author['user_id']} в очередь поста {author['post_id']} реакцией"
    )
