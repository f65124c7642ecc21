"""对外 API 服务模块。

提供简化的函数接口，供 HTTP 服务器等上层直接调用。
"""

from dataclasses import asdict
from typing import Any, Dict, Optional

from bot_core.controller.base import DefaultController
from bot_core.core.app_context import AppContext
from bot_core.core.dispatcher import Dispatcher
from bot_core.domain.models import OutgoingResult
from bot_core.infrastructure.logging.logger import logger


_dispatcher: Optional[Dispatcher] = None


def get_default_dispatcher() -> Dispatcher:
    """获取默认 Dispatcher 实例（单例），使用 DefaultController 与 JSON 存储。"""
    global _dispatcher
    if _dispatcher is None:
        _dispatcher = Dispatcher(AppContext(), DefaultController())
    return _dispatcher


def result_to_dict(result: OutgoingResult) -> Dict[str, Any]:
    return asdict(result)


async def handle_webhook(
    platform: str,
    body: Any,
    dispatcher: Optional[Dispatcher] = None,
) -> Dict[str, Any]:
    """处理一次 webhook 调用。

    Args:
        platform: 平台标识，如 "alisa"、"telegram"
        body: 请求体（dict、JSON 字符串或 bytes）
        dispatcher: 使用的 Dispatcher（可选，默认单例）

    Returns:
        OutgoingResult 的字典形式，交给平台的 ResponseAdapter 渲染

    Raises:
        ConfigurationError / PlatformError：应用配置有误
    """
    bot = dispatcher or get_default_dispatcher()
    try:
        result = await bot.dispatch_raw(platform, body)
    except Exception as e:
        logger.error(f"Webhook failed: {e}", extra={"extra": {
            "platform": platform,
            "error": str(e),
        }})
        raise
    return result_to_dict(result)
