from bot_core.pipeline.middleware import MiddlewareHandler, MiddlewarePipeline, NextFn

__all__ = ["MiddlewareHandler", "MiddlewarePipeline", "NextFn"]
