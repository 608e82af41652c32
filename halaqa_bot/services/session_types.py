"""
Типы участия в халаке.
"""

from typing import Optional

# Ключ -> название, в порядке отображения
SESSION_TYPES = {
    'tilawa': 'تلاوة',
    'tasmee': 'تسميع',
    'tatbeeq': 'تطبيق',
    'ikhtebar': 'اختبار',
    'daam': 'دعم',
    'muraja': 'مراجعة',
    'taweed': 'تعويض',
}

DEFAULT_SESSION_TYPE = 'tilawa'


def parse_session_type(value: str) -> Optional[str]:
    """Принимает ключ ("tasmee") или название ("تسميع"), возвращает название."""
    value = value.strip()
    if value in SESSION_TYPES.values():
        return value
    return SESSION_TYPES.get(value.lower())
