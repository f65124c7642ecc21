"""控制器抽象。

控制器只需实现一个方法 action(context, action_name)，可以是同步或异步的。
上下文显式传入，控制器本身不保存单次请求的可变状态。
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any, Optional, Protocol

from bot_core.domain.models import HELP_INTENT_NAME, WELCOME_INTENT_NAME

if TYPE_CHECKING:
    from bot_core.core.context import RequestContext


class BotController(Protocol):
    def action(self, context: "RequestContext", action_name: Optional[str]) -> Any:
        ...


class DefaultController:
    """默认控制器，适用于所有逻辑都通过命令注册的应用。

    welcome/help 返回 AppContext 中配置的文本，其余返回 empty 文本；
    命令命中时不覆盖命令处理函数写入的回复。
    """

    def action(self, context: "RequestContext", action_name: Optional[str]) -> None:
        resolution = context.resolution
        if resolution is not None and resolution.command is not None:
            return
        if action_name == WELCOME_INTENT_NAME:
            context.text = context.app.welcome()
        elif action_name == HELP_INTENT_NAME:
            context.text = context.app.help()
        else:
            context.text = context.app.empty()
