from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, Optional

from bot_core.domain.models import IncomingRequest
from bot_core.domain.session import Session

if TYPE_CHECKING:
    from bot_core.core.app_context import AppContext
    from bot_core.domain.exceptions import BotError
    from bot_core.matching.intents import Resolution


@dataclass
class Output:
    """响应累加器。fields 里放交给 ResponseAdapter 的渲染数据（按钮、卡片等）。"""

    text: str = ""
    tts: Optional[str] = None
    end_conversation: bool = False
    fields: Dict[str, Any] = field(default_factory=dict)


@dataclass
class RequestContext:
    """一次请求在中间件链和控制器之间传递的可变上下文。

    - session.data 归应用逻辑所有，可以直接修改，请求结束时统一持久化。
    - previous_action: 上一次请求解析出的动作名。
    - resolved_action: IntentResolver 的结果，在调用控制器之前填充。
    - state: 中间件之间共享的临时数据，不会被持久化。
    """

    app: "AppContext"
    request: IncomingRequest
    session: Session
    output: Output = field(default_factory=Output)
    is_new_session: bool = False
    previous_action: Optional[str] = None
    resolved_action: Optional[str] = None
    resolution: Optional["Resolution"] = None
    state: Dict[str, Any] = field(default_factory=dict)
    error: Optional["BotError"] = None

    @property
    def data(self) -> Dict[str, Any]:
        return self.session.data

    @property
    def platform(self) -> str:
        return self.request.platform

    @property
    def text(self) -> str:
        return self.output.text

    @text.setter
    def text(self, value: str) -> None:
        self.output.text = value

    @property
    def is_end(self) -> bool:
        return self.output.end_conversation

    @is_end.setter
    def is_end(self, value: bool) -> None:
        self.output.end_conversation = bool(value)
