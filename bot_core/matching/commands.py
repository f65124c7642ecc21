"""命令表。

按注册顺序保存命令，同名重复注册替换内容但保留首次注册的位置；
含 "*" 的命令是兜底命令，无论何时注册都最后检查。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Callable, Dict, List, Optional, Sequence

from bot_core.matching.patterns import compile_pattern, looks_like_regex
from bot_core.matching.text_matcher import PatternLike, matches_any

if TYPE_CHECKING:
    from bot_core.core.context import RequestContext


CATCH_ALL = "*"

# handler(user_command, context) -> 可选的回复文本，可以是 async 函数
CommandHandler = Callable[[str, "RequestContext"], Any]


@dataclass
class Command:
    name: str
    patterns: List[str]
    handler: Optional[CommandHandler] = None
    silent: bool = False
    compiled: List[PatternLike] = field(default_factory=list)

    @property
    def is_catch_all(self) -> bool:
        return CATCH_ALL in self.patterns

    def matches(self, text: str) -> bool:
        return self.is_catch_all or matches_any(self.compiled, text)


class CommandTable:
    def __init__(self, max_pattern_length: int = 256, max_text_length: int = 1024):
        self._commands: Dict[str, Command] = {}
        self._max_pattern_length = max_pattern_length
        self._max_text_length = max_text_length

    def register(
        self,
        name: str,
        patterns: Sequence[str],
        handler: Optional[CommandHandler] = None,
        silent: bool = False,
        is_pattern: Optional[bool] = None,
    ) -> Command:
        """注册或替换命令。

        is_pattern 为 None 时按内容判断：含正则元字符的按正则编译，否则按子串匹配；
        True/False 强制指定。正则在这里一次性编译并做安全检查，
        不安全时抛出 PatternCompilationError，命令表保持不变。
        """

        compiled: List[PatternLike] = []
        for raw in patterns:
            if raw == CATCH_ALL:
                continue
            use_regex = looks_like_regex(raw) if is_pattern is None else is_pattern
            if use_regex:
                compiled.append(compile_pattern(raw, self._max_pattern_length))
            else:
                compiled.append(raw.lower())
        command = Command(name=name, patterns=list(patterns), handler=handler, silent=silent, compiled=compiled)
        self._commands[name] = command
        return command

    def unregister(self, name: str) -> bool:
        return self._commands.pop(name, None) is not None

    def clear(self) -> None:
        self._commands.clear()

    def get(self, name: str) -> Optional[Command]:
        return self._commands.get(name)

    def names(self) -> List[str]:
        return list(self._commands)

    def __len__(self) -> int:
        return len(self._commands)

    def __contains__(self, name: object) -> bool:
        return name in self._commands

    def resolve(self, text: Optional[str]) -> Optional[Command]:
        text = (text or "")[: self._max_text_length]
        catch_all: Optional[Command] = None
        for command in self._commands.values():
            if command.is_catch_all:
                if catch_all is None:
                    catch_all = command
                continue
            if command.matches(text):
                return command
        return catch_all
