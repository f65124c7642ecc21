"""命令与意图匹配。

- text_matcher: 文本规范化与模糊/精确比较。
- patterns: 正则命令的注册期安全检查。
- commands: 有序命令表。
- intents: 组合命令表与声明式意图的解析器。
"""

from bot_core.matching.commands import CATCH_ALL, Command, CommandTable
from bot_core.matching.intents import IntentResolver, Resolution

__all__ = ["CATCH_ALL", "Command", "CommandTable", "IntentResolver", "Resolution"]
