"""平台标识与能力配置。

Dispatcher 按平台决定会话存储方式：支持状态往返的平台（Алиса、Маруся、SmartApp）
可以不落盘，把会话数据放进 webhook 响应里，下一次请求再原样带回。
"""

from dataclasses import dataclass
from typing import Dict, Mapping

from bot_core.domain.exceptions import PlatformError


T_ALISA = "alisa"
T_MARUSIA = "marusia"
T_SMARTAPP = "smart_app"
T_TELEGRAM = "telegram"
T_VIBER = "viber"
T_VK = "vk"
T_MAXAPP = "max_app"
T_USER_APP = "user_application"


@dataclass(frozen=True)
class PlatformConfig:
    """单个平台的能力描述。"""

    name: str
    storage_type: int  # 存储记录里的平台类型码
    supports_round_trip: bool = False
    is_voice: bool = False


PLATFORM_REGISTRY: Mapping[str, PlatformConfig] = {
    T_ALISA: PlatformConfig(T_ALISA, 0, supports_round_trip=True, is_voice=True),
    T_VK: PlatformConfig(T_VK, 1),
    T_TELEGRAM: PlatformConfig(T_TELEGRAM, 2),
    T_VIBER: PlatformConfig(T_VIBER, 3),
    T_MARUSIA: PlatformConfig(T_MARUSIA, 4, supports_round_trip=True, is_voice=True),
    T_SMARTAPP: PlatformConfig(T_SMARTAPP, 5, supports_round_trip=True),
    T_MAXAPP: PlatformConfig(T_MAXAPP, 6),
    T_USER_APP: PlatformConfig(T_USER_APP, 512),
}


def get_platform_config(name: str, registry: Mapping[str, PlatformConfig] = PLATFORM_REGISTRY) -> PlatformConfig:
    """根据名称获取 PlatformConfig，名称不区分大小写。"""

    key = (name or "").lower()
    for k, cfg in registry.items():
        if k.lower() == key:
            return cfg
    raise PlatformError(code="UNKNOWN_PLATFORM", message=f"Unknown platform: {name!r}", platform=name)


def default_platforms() -> Dict[str, PlatformConfig]:
    return dict(PLATFORM_REGISTRY)
