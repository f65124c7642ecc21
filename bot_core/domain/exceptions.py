"""统一业务异常模型。

所有跨模块抛出的错误都继承自 BotError，便于 Dispatcher 统一捕获、
记录日志并给最终用户返回兜底文本。
"""


class BotError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "STORE_READ_ERROR"）。
        message: 可读错误信息。
        extra: 其他补充字段（例如 platform、user_id 等）。
    """

    def __init__(self, code: str, message: str, **extra):
        self.code = code
        self.message = message
        self.extra = extra
        super().__init__(message)


class ConfigurationError(BotError):
    """应用配置错误（未设置控制器等），在任何 I/O 之前同步抛出。"""


class PlatformError(ConfigurationError):
    """无法识别的平台标识。"""


class PatternCompilationError(ConfigurationError):
    """命令/意图正则未通过安全检查或无法编译，注册时抛出。"""


class MalformedRequestError(BotError):
    """RequestAdapter 无法把原始 payload 解析为 IncomingRequest。"""


class SessionStoreError(BotError):
    """会话存储读写失败。Dispatcher 降级处理，不向调用方传播。"""


class ControllerActionError(BotError):
    """控制器 action 或命令处理函数抛出的异常。"""
