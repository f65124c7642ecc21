"""bot_core 顶层包。

多平台对话机器人的请求调度与意图解析核心：命令表、意图匹配、
中间件链、会话存储（JSON 文档 / 外部数据库）以及调度器。
"""

from bot_core.controller.base import BotController, DefaultController
from bot_core.core.app_context import AppContext
from bot_core.core.context import RequestContext
from bot_core.core.dispatcher import Dispatcher
from bot_core.domain.models import IncomingRequest, Intent, OutgoingResult

__all__ = [
    "AppContext",
    "BotController",
    "DefaultController",
    "Dispatcher",
    "IncomingRequest",
    "Intent",
    "OutgoingResult",
    "RequestContext",
]
