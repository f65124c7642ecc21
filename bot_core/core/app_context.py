"""应用级上下文。

一次构造，显式传给 Dispatcher、SessionStore 与控制器，代替模块级可变配置对象。
"""

import random
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Union

from bot_core.config.settings import BotSettings, settings as default_settings
from bot_core.domain.models import HELP_INTENT_NAME, WELCOME_INTENT_NAME, Intent
from bot_core.domain.platforms import PlatformConfig, default_platforms, get_platform_config
from bot_core.domain.session import SessionStore
from bot_core.infrastructure.storage.json_store import JsonSessionStore


TextOption = Union[str, Sequence[str], None]


def default_intents() -> List[Intent]:
    return [
        Intent(name=WELCOME_INTENT_NAME, slots=["привет", "здравст"]),
        Intent(name=HELP_INTENT_NAME, slots=["помощ", "что ты умеешь"]),
    ]


@dataclass
class AppContext:
    settings: BotSettings = field(default_factory=lambda: default_settings)
    intents: List[Intent] = field(default_factory=default_intents)
    store: Optional[SessionStore] = None
    platforms: Dict[str, PlatformConfig] = field(default_factory=default_platforms)
    welcome_text: TextOption = None
    help_text: TextOption = None
    empty_text: TextOption = None

    def get_store(self) -> SessionStore:
        if self.store is None:
            self.store = JsonSessionStore(root=self.settings.storage_root, table=self.settings.users_table)
        return self.store

    def get_platform(self, name: str) -> PlatformConfig:
        return get_platform_config(name, self.platforms)

    def register_platform(self, config: PlatformConfig) -> None:
        self.platforms[config.name] = config

    @staticmethod
    def get_text(value: TextOption) -> str:
        """字符串原样返回，列表随机取一项。"""
        if not value:
            return ""
        if isinstance(value, str):
            return value
        return random.choice(list(value))

    def welcome(self) -> str:
        return self.get_text(self.welcome_text or self.settings.welcome_text)

    def help(self) -> str:
        return self.get_text(self.help_text or self.settings.help_text)

    def empty(self) -> str:
        return self.get_text(self.empty_text or self.settings.empty_text)
