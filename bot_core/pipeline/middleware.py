"""中间件链（洋葱模型）。

handler(context, next)：await next() 之前的代码由外向内执行，之后的代码由内向外执行。
handler 不调用 next() 时链条在此终止，后续中间件和控制器都不会运行。
限定平台的中间件在组链之前就被过滤掉，其他平台的请求看不到它们。
"""

from __future__ import annotations

import inspect
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Awaitable, Callable, List, Optional, Union

if TYPE_CHECKING:
    from bot_core.core.context import RequestContext


NextFn = Callable[[], Awaitable[None]]
MiddlewareHandler = Callable[["RequestContext", NextFn], Any]


def _not_started(coro: Any) -> bool:
    return inspect.iscoroutine(coro) and inspect.getcoroutinestate(coro) == inspect.CORO_CREATED


@dataclass(frozen=True)
class _Entry:
    handler: MiddlewareHandler
    platform: Optional[str] = None


class MiddlewarePipeline:
    def __init__(self) -> None:
        self._entries: List[_Entry] = []

    def use(
        self,
        platform_or_handler: Union[str, MiddlewareHandler],
        handler: Optional[MiddlewareHandler] = None,
    ) -> None:
        """use(handler) 注册全局中间件，use(platform, handler) 注册平台中间件。"""

        if handler is None:
            if isinstance(platform_or_handler, str) or not callable(platform_or_handler):
                raise TypeError("middleware handler must be callable")
            self._entries.append(_Entry(platform_or_handler))
            return
        if not isinstance(platform_or_handler, str):
            raise TypeError("platform must be a string")
        if not callable(handler):
            raise TypeError("middleware handler must be callable")
        self._entries.append(_Entry(handler, platform_or_handler.lower()))

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def handlers_for(self, platform: str) -> List[MiddlewareHandler]:
        key = (platform or "").lower()
        return [e.handler for e in self._entries if e.platform is None or e.platform == key]

    async def run(self, context: "RequestContext", final: Callable[[], Awaitable[None]]) -> bool:
        """执行中间件链，链条走到末端时调用 final()。返回 final 是否被执行。"""

        handlers = self.handlers_for(context.platform)
        reached = False

        async def dispatch(index: int) -> None:
            nonlocal reached
            if index == len(handlers):
                reached = True
                await final()
                return

            pending: Optional[Awaitable[None]] = None

            def call_next() -> Awaitable[None]:
                nonlocal pending
                if pending is not None:
                    raise RuntimeError("next() called multiple times")
                pending = dispatch(index + 1)
                return pending

            try:
                result = handlers[index](context, call_next)
                if inspect.isawaitable(result):
                    await result
            except BaseException:
                if _not_started(pending):
                    pending.close()
                raise
            # 同步 handler 拿到的协程无法 await，这里替它继续执行链条
            if _not_started(pending):
                await pending

        await dispatch(0)
        return reached
