"""平台请求适配器协议。

RequestAdapter 把平台 webhook 的原始 JSON 转成 IncomingRequest；
无法解析时抛出 MalformedRequestError，由 Dispatcher 转成兜底回复。
响应渲染（按钮、卡片、音频）不在核心范围内，只定义 ResponseAdapter 协议。
"""

import json
from typing import Any, Dict, Optional, Protocol

from bot_core.domain.exceptions import MalformedRequestError
from bot_core.domain.models import IncomingRequest, OutgoingResult


class RequestAdapter(Protocol):
    def parse(self, payload: Any) -> IncomingRequest:
        ...


class ResponseAdapter(Protocol):
    def render(self, result: OutgoingResult) -> Dict[str, Any]:
        ...


def normalize_command(text: Optional[str]) -> str:
    return (text or "").strip().lower()


def load_mapping(payload: Any) -> Dict[str, Any]:
    """payload 可以是 dict、JSON 字符串或 bytes。"""

    if isinstance(payload, (bytes, bytearray)):
        try:
            payload = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedRequestError(code="BAD_ENCODING", message=str(e))
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise MalformedRequestError(code="BAD_JSON", message=str(e))
    if not isinstance(payload, dict):
        raise MalformedRequestError(code="BAD_PAYLOAD", message="payload must be a JSON object")
    return payload


def require_mapping(data: Dict[str, Any], name: str) -> Dict[str, Any]:
    value = data.get(name)
    if not isinstance(value, dict):
        raise MalformedRequestError(code="MISSING_FIELD", message=f"'{name}' is missing or not an object")
    return value
