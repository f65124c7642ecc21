from typing import Any, Dict, Optional, Tuple

from bot_core.adapters.base import load_mapping, normalize_command, require_mapping
from bot_core.domain.exceptions import MalformedRequestError
from bot_core.domain.models import IncomingRequest
from bot_core.domain.platforms import T_ALISA


class AlisaRequestAdapter:
    """Яндекс.Алиса / Маруся：两者的 webhook 结构基本一致。"""

    def __init__(self, platform: str = T_ALISA):
        self.platform = platform

    def parse(self, payload: Any) -> IncomingRequest:
        data = load_mapping(payload)
        session = require_mapping(data, "session")
        request = require_mapping(data, "request")

        user_id = self._user_id(session)
        if not user_id:
            raise MalformedRequestError(code="MISSING_USER", message="session has no user or application id")

        original = request.get("original_utterance") or ""
        command = request.get("command")
        if command is None:
            command = original
        try:
            message_seq = int(session.get("message_id") or 0)
        except (TypeError, ValueError):
            raise MalformedRequestError(code="BAD_MESSAGE_ID", message=f"bad message_id {session.get('message_id')!r}")

        return IncomingRequest(
            platform=self.platform,
            user_id=str(user_id),
            command=normalize_command(command),
            original_utterance=original,
            message_seq=message_seq,
            is_first_message=bool(session.get("new")),
            payload=request.get("payload") if isinstance(request.get("payload"), dict) else None,
            nlu_intents=self._nlu_intents(request),
            nlu=request.get("nlu") if isinstance(request.get("nlu"), dict) else None,
            raw_state_blob=self._state(data),
            meta=data.get("meta") if isinstance(data.get("meta"), dict) else {},
        )

    @staticmethod
    def _user_id(session: Dict[str, Any]) -> Optional[str]:
        user = session.get("user")
        if isinstance(user, dict) and user.get("user_id"):
            return user["user_id"]
        application = session.get("application")
        if isinstance(application, dict) and application.get("application_id"):
            return application["application_id"]
        return session.get("user_id")

    @staticmethod
    def _nlu_intents(request: Dict[str, Any]) -> Tuple[str, ...]:
        nlu = request.get("nlu")
        intents = nlu.get("intents") if isinstance(nlu, dict) else None
        if isinstance(intents, dict):
            return tuple(str(name) for name in intents)
        return ()

    @staticmethod
    def _state(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        state = data.get("state")
        if not isinstance(state, dict):
            return None
        for scope in ("user", "application", "session"):
            value = state.get(scope)
            if isinstance(value, dict) and value:
                return value
        return None
