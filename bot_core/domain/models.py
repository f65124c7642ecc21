"""统一的请求与结果数据模型。

各平台的 RequestAdapter 负责把 webhook JSON 转成 IncomingRequest，
ResponseAdapter 负责把 OutgoingResult 渲染成平台自己的格式。
核心调度逻辑只依赖这里定义的结构。
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple


WELCOME_INTENT_NAME = "welcome"
HELP_INTENT_NAME = "help"


@dataclass(frozen=True)
class IncomingRequest:
    """一次用户请求（已规范化），构造后不可变。

    - command: 小写、去首尾空白后的用户文本，用于命令与意图匹配。
    - original_utterance: 用户原话。
    - message_seq: 会话内消息序号，首条为 0。
    - payload: 平台透传的原始数据（按钮 payload 等）。
    - nlu_intents: 平台自带 NLU 给出的全部意图名，保持平台给出的顺序。
    - nlu: 平台 NLU 原始数据（tokens、entities、intents 及各意图的槽位）。
    - raw_state_blob: 无服务端存储的平台随请求带回的会话状态。
    """

    platform: str
    user_id: str
    command: str
    original_utterance: str = ""
    message_seq: int = 0
    is_first_message: bool = False
    payload: Optional[Dict[str, Any]] = None
    nlu_intents: Tuple[str, ...] = ()
    nlu: Optional[Dict[str, Any]] = None
    raw_state_blob: Optional[Dict[str, Any]] = None
    meta: Dict[str, Any] = field(default_factory=dict)

    def nlu_intent(self, name: str) -> Optional[Dict[str, Any]]:
        """NLU 识别出的某个意图的数据（含 slots），未识别时返回 None。"""
        intents = (self.nlu or {}).get("intents")
        if isinstance(intents, dict) and isinstance(intents.get(name), dict):
            return intents[name]
        return None


@dataclass
class Intent:
    """声明式意图：名称 + 槽位短语。is_pattern 为 True 时槽位按正则处理。"""

    name: str
    slots: List[str]
    is_pattern: bool = False


@dataclass
class OutgoingResult:
    """交给 ResponseAdapter 的标准响应。

    text 始终是 str（可能为空），end_conversation 始终是 bool。
    state_blob 仅在会话状态随请求往返的模式下填充。
    """

    platform: str
    text: str = ""
    end_conversation: bool = False
    tts: Optional[str] = None
    fields: Dict[str, Any] = field(default_factory=dict)
    session_data: Dict[str, Any] = field(default_factory=dict)
    state_blob: Optional[Dict[str, Any]] = None
    action: Optional[str] = None
    is_error: bool = False
