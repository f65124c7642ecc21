from typing import Any

from bot_core.adapters.base import load_mapping, normalize_command
from bot_core.domain.exceptions import MalformedRequestError
from bot_core.domain.models import IncomingRequest
from bot_core.domain.platforms import T_TELEGRAM


class TelegramRequestAdapter:
    platform = T_TELEGRAM

    def parse(self, payload: Any) -> IncomingRequest:
        data = load_mapping(payload)
        callback = data.get("callback_query")
        payload_data = None
        if isinstance(callback, dict):
            message = callback.get("message") or {}
            text = callback.get("data") or ""
            payload_data = {"data": text}
        else:
            message = data.get("message") or data.get("edited_message")
            if not isinstance(message, dict):
                raise MalformedRequestError(code="MISSING_FIELD", message="update has no message")
            text = message.get("text") or ""

        chat = message.get("chat") if isinstance(message, dict) else None
        if not isinstance(chat, dict) or chat.get("id") is None:
            raise MalformedRequestError(code="MISSING_USER", message="message has no chat id")

        try:
            message_seq = int(message.get("message_id") or 0)
        except (TypeError, ValueError):
            raise MalformedRequestError(code="BAD_MESSAGE_ID", message=f"bad message_id {message.get('message_id')!r}")

        return IncomingRequest(
            platform=self.platform,
            user_id=str(chat["id"]),
            command=normalize_command(text),
            original_utterance=text,
            message_seq=message_seq,
            is_first_message=text.strip() == "/start",
            payload=payload_data,
        )
