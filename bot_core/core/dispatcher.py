"""请求调度核心模块。

一次请求的状态流转：
Idle → Normalized → SessionLoaded → MiddlewareRan → ActionResolved
→ ActionInvoked → SessionPersisted → Done，任意阶段出错进入 Errored。

只有配置错误（未设置控制器、未知平台）会抛给调用方；控制器、中间件、
存储的错误都在这里捕获、记录日志，并转换成兜底回复。
"""

import asyncio
import copy
import inspect
import logging
import time
import weakref
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Dict, List, Optional, Tuple, Union

from bot_core.adapters import RequestAdapter, default_adapters
from bot_core.controller.base import BotController
from bot_core.core.app_context import AppContext
from bot_core.core.context import RequestContext
from bot_core.domain.exceptions import (
    BotError,
    ConfigurationError,
    ControllerActionError,
    MalformedRequestError,
    PatternCompilationError,
    PlatformError,
)
from bot_core.domain.models import WELCOME_INTENT_NAME, IncomingRequest, OutgoingResult
from bot_core.domain.platforms import PlatformConfig
from bot_core.domain.session import Session, SessionKey
from bot_core.infrastructure.logging.logger import logger
from bot_core.matching.commands import Command, CommandHandler, CommandTable
from bot_core.matching.intents import IntentResolver, Resolution
from bot_core.pipeline.middleware import MiddlewareHandler, MiddlewarePipeline


SOURCE_FIRST_MESSAGE = "first_message"


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class Dispatcher:
    def __init__(self, app: Optional[AppContext] = None, controller: Optional[BotController] = None):
        self._app = app or AppContext()
        cfg = self._app.settings
        self._commands = CommandTable(
            max_pattern_length=cfg.max_pattern_length,
            max_text_length=cfg.max_command_length,
        )
        self._pipeline = MiddlewarePipeline()
        self._controller = controller
        self._adapters: Dict[str, RequestAdapter] = default_adapters()
        self._resolver = self._build_resolver()
        # 同一用户的请求串行处理；锁绑定事件循环，按循环分别维护
        self._session_locks: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, Dict[str, List[Any]]]" = (
            weakref.WeakKeyDictionary()
        )

    @property
    def app(self) -> AppContext:
        return self._app

    @property
    def commands(self) -> CommandTable:
        return self._commands

    @property
    def resolver(self) -> IntentResolver:
        return self._resolver

    # ---- 注册接口 ----

    def register_command(
        self,
        name: str,
        patterns: Any,
        handler: Optional[CommandHandler] = None,
        silent: bool = False,
        is_pattern: Optional[bool] = None,
    ) -> Command:
        if isinstance(patterns, str):
            patterns = [patterns]
        try:
            return self._commands.register(name, patterns, handler, silent=silent, is_pattern=is_pattern)
        except PatternCompilationError as e:
            logger.warning(
                f"Rejected command pattern: {e.message}",
                extra={"extra": {"command": name, "code": e.code}},
            )
            raise

    def unregister_command(self, name: str) -> bool:
        return self._commands.unregister(name)

    def use(
        self,
        platform_or_handler: Union[str, MiddlewareHandler],
        handler: Optional[MiddlewareHandler] = None,
    ) -> None:
        self._pipeline.use(platform_or_handler, handler)

    def set_controller(self, controller: BotController) -> None:
        self._controller = controller

    def set_adapter(self, platform: str, adapter: RequestAdapter) -> None:
        self._adapters[platform.lower()] = adapter

    def reload_intents(self) -> None:
        """AppContext.intents 修改后调用，重新编译意图。"""
        self._resolver = self._build_resolver()

    def _build_resolver(self) -> IntentResolver:
        cfg = self._app.settings
        return IntentResolver(
            self._commands,
            self._app.intents,
            threshold=cfg.intent_threshold,
            high_confidence=cfg.high_confidence_threshold,
            max_pattern_length=cfg.max_pattern_length,
            max_text_length=cfg.max_command_length,
        )

    # ---- 调度 ----

    async def dispatch_raw(self, platform: str, payload: Any) -> OutgoingResult:
        """用平台的 RequestAdapter 解析原始 payload 后调度。"""

        self._require_controller()
        config = self._app.get_platform(platform)
        adapter = self._adapters.get(config.name)
        if adapter is None:
            raise PlatformError(
                code="NO_ADAPTER",
                message=f"No request adapter registered for platform {config.name!r}",
                platform=config.name,
            )
        try:
            incoming = adapter.parse(payload)
        except MalformedRequestError as e:
            logger.warning(
                f"Malformed request: {e.message}",
                extra={"extra": {"platform": config.name, "code": e.code}},
            )
            return self._malformed_result(config.name)
        return await self.dispatch(incoming)

    async def dispatch(self, incoming: IncomingRequest) -> OutgoingResult:
        self._require_controller()
        config = self._app.get_platform(incoming.platform)
        if not incoming.user_id:
            logger.warning("Request without user id", extra={"extra": {"platform": config.name}})
            return self._malformed_result(config.name)

        start_time = time.time()
        log_ctx: Dict[str, Any] = {
            "platform": config.name,
            "user_id": incoming.user_id,
            "message_seq": incoming.message_seq,
        }
        round_trip = self._app.settings.is_local_storage and config.supports_round_trip
        key = SessionKey(config.name, str(incoming.user_id))

        async with self._session_guard(key):
            session, is_new = await self._load_session(key, incoming, round_trip, log_ctx)
            context = RequestContext(
                app=self._app,
                request=incoming,
                session=session,
                is_new_session=is_new,
                previous_action=session.last_action,
            )

            try:
                completed = await self._pipeline.run(context, lambda: self._invoke(context, log_ctx))
            except Exception as e:
                completed = False
                self._fail(context, e, "Middleware failed", log_ctx)

            session.last_seq = incoming.message_seq
            if context.resolution is not None:
                session.last_action = context.resolved_action
            session.updated_at = datetime.now(timezone.utc)
            if not round_trip:
                await self._persist(key, session, is_new, log_ctx)

        result = self._build_result(context, config, round_trip, log_ctx)
        self._log(
            logging.INFO,
            "Dispatched request",
            log_ctx,
            completed=completed,
            round_trip=round_trip,
            elapsed_ms=int((time.time() - start_time) * 1000),
        )
        return result

    async def _invoke(self, context: RequestContext, log_ctx: Dict[str, Any]) -> None:
        resolution = self._resolver.resolve(context)
        if resolution.action is None and context.request.is_first_message:
            resolution = Resolution(action=WELCOME_INTENT_NAME, source=SOURCE_FIRST_MESSAGE)
        context.resolution = resolution
        context.resolved_action = resolution.action
        log_ctx["action"] = resolution.action
        log_ctx["source"] = resolution.source

        try:
            command = resolution.command
            if command is not None and command.handler is not None:
                reply = await _maybe_await(command.handler(context.request.command, context))
                if isinstance(reply, str):
                    context.text = reply
            if resolution.is_silent:
                return
            await _maybe_await(self._controller.action(context, resolution.action))
        except Exception as e:
            self._fail(context, e, "Controller action failed", log_ctx)

    @asynccontextmanager
    async def _session_guard(self, key: SessionKey) -> AsyncIterator[None]:
        locks = self._session_locks.setdefault(asyncio.get_running_loop(), {})
        entry = locks.get(key.composite)
        if entry is None:
            entry = locks[key.composite] = [asyncio.Lock(), 0]
        entry[1] += 1
        try:
            async with entry[0]:
                yield
        finally:
            entry[1] -= 1
            if entry[1] == 0:
                locks.pop(key.composite, None)

    async def _load_session(
        self,
        key: SessionKey,
        incoming: IncomingRequest,
        round_trip: bool,
        log_ctx: Dict[str, Any],
    ) -> Tuple[Session, bool]:
        if round_trip:
            blob = incoming.raw_state_blob
            data = copy.deepcopy(blob) if isinstance(blob, dict) else {}
            return Session(platform=key.platform, user_id=key.user_id, data=data), not data

        try:
            session = await self._app.get_store().where_one(key)
        except Exception as e:
            self._log(logging.WARNING, "Session load failed, starting a fresh session", log_ctx, error=str(e))
            session = None
        if session is None:
            return Session(platform=key.platform, user_id=key.user_id), True
        return session, False

    async def _persist(self, key: SessionKey, session: Session, is_new: bool, log_ctx: Dict[str, Any]) -> None:
        store = self._app.get_store()
        try:
            if is_new:
                await store.save(key, session)
            else:
                await store.update(key, session)
        except Exception as e:
            self._log(logging.ERROR, "Session persist failed", log_ctx, error=str(e), is_new=is_new)

    def _fail(self, context: RequestContext, error: Exception, message: str, log_ctx: Dict[str, Any]) -> None:
        request = context.request
        if isinstance(error, BotError):
            wrapped = error
        else:
            wrapped = ControllerActionError(
                code="CONTROLLER_ACTION_ERROR",
                message=str(error) or type(error).__name__,
                platform=request.platform,
                user_id=request.user_id,
                action=context.resolved_action,
                text=request.command,
            )
        context.error = wrapped
        context.output.text = self._app.settings.fallback_text
        context.output.end_conversation = False
        self._log(
            logging.ERROR,
            message,
            log_ctx,
            exc_info=error,
            error=str(error),
            error_type=type(error).__name__,
            action=context.resolved_action,
            text=request.original_utterance or request.command,
        )

    def _build_result(
        self,
        context: RequestContext,
        config: PlatformConfig,
        round_trip: bool,
        log_ctx: Dict[str, Any],
    ) -> OutgoingResult:
        try:
            data = copy.deepcopy(context.session.data)
        except Exception as e:
            data = {}
            self._fail(context, e, "Session data is not copyable", log_ctx)
        output = context.output
        text = output.text if isinstance(output.text, str) else ("" if output.text is None else str(output.text))
        tts = output.tts
        if tts is None and config.is_voice:
            tts = text
        return OutgoingResult(
            platform=config.name,
            text=text,
            end_conversation=bool(output.end_conversation),
            tts=tts,
            fields=dict(output.fields),
            session_data=data,
            state_blob=copy.deepcopy(data) if round_trip else None,
            action=context.resolved_action,
            is_error=context.error is not None,
        )

    def _malformed_result(self, platform: str) -> OutgoingResult:
        return OutgoingResult(platform=platform, text=self._app.settings.malformed_text, is_error=True)

    def _require_controller(self) -> None:
        if self._controller is None:
            raise ConfigurationError(
                code="NO_CONTROLLER",
                message="No controller registered; call set_controller() before dispatching",
            )

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], exc_info: Any = None, **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload}, exc_info=exc_info)
