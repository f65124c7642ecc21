from typing import Any, Tuple

from bot_core.adapters.base import load_mapping, normalize_command
from bot_core.domain.exceptions import MalformedRequestError
from bot_core.domain.models import IncomingRequest
from bot_core.domain.platforms import T_USER_APP


def _as_names(value: Any) -> Tuple[str, ...]:
    if isinstance(value, str):
        return (value,) if value else ()
    if isinstance(value, (list, tuple)):
        return tuple(str(v) for v in value if v)
    return ()


class UserAppRequestAdapter:
    """自定义应用的通用 JSON：{"user_id", "text", "message_id", "is_new", "intent", "payload", "state"}。

    intent 可以是单个意图名或意图名列表。
    """

    platform = T_USER_APP

    def parse(self, payload: Any) -> IncomingRequest:
        data = load_mapping(payload)
        user_id = data.get("user_id")
        if user_id in (None, ""):
            raise MalformedRequestError(code="MISSING_USER", message="user_id is required")
        text = data.get("text")
        if text is None:
            text = data.get("command") or ""
        if not isinstance(text, str):
            raise MalformedRequestError(code="BAD_TEXT", message="text must be a string")
        try:
            message_seq = int(data.get("message_id") or 0)
        except (TypeError, ValueError):
            raise MalformedRequestError(code="BAD_MESSAGE_ID", message=f"bad message_id {data.get('message_id')!r}")

        return IncomingRequest(
            platform=self.platform,
            user_id=str(user_id),
            command=normalize_command(text),
            original_utterance=text,
            message_seq=message_seq,
            is_first_message=bool(data.get("is_new", message_seq == 0)),
            payload=data.get("payload") if isinstance(data.get("payload"), dict) else None,
            nlu_intents=_as_names(data.get("intent")),
            raw_state_blob=data.get("state") if isinstance(data.get("state"), dict) else None,
        )
