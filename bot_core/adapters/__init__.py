"""平台请求适配器。"""

from typing import Dict

from bot_core.adapters.alisa import AlisaRequestAdapter
from bot_core.adapters.base import RequestAdapter, ResponseAdapter, normalize_command
from bot_core.adapters.telegram import TelegramRequestAdapter
from bot_core.adapters.user_app import UserAppRequestAdapter
from bot_core.domain.platforms import T_ALISA, T_MARUSIA, T_TELEGRAM, T_USER_APP


def default_adapters() -> Dict[str, RequestAdapter]:
    return {
        T_ALISA: AlisaRequestAdapter(T_ALISA),
        T_MARUSIA: AlisaRequestAdapter(T_MARUSIA),
        T_TELEGRAM: TelegramRequestAdapter(),
        T_USER_APP: UserAppRequestAdapter(),
    }


__all__ = [
    "AlisaRequestAdapter",
    "RequestAdapter",
    "ResponseAdapter",
    "TelegramRequestAdapter",
    "UserAppRequestAdapter",
    "default_adapters",
    "normalize_command",
]
