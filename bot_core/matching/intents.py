"""意图解析。

解析顺序（先命中者生效）：
1. 平台 NLU 给出的意图中第一个已声明的意图；
2. 命令表命中（运营方注册的命令可以覆盖 NLU 与声明式意图）；
3. 声明式意图的槽位模糊匹配，取最高分，分数相同取先声明者；
   任一槽位超过高置信阈值时立即停止扫描；
4. 都没有命中时返回 None，由控制器给出默认回复。
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Dict, List, Optional, Pattern, Sequence, Tuple, Union

from bot_core.domain.models import Intent
from bot_core.matching.commands import Command, CommandTable
from bot_core.matching.patterns import compile_pattern
from bot_core.matching.text_matcher import phrase_score

if TYPE_CHECKING:
    from bot_core.core.context import RequestContext


SOURCE_NLU = "nlu"
SOURCE_COMMAND = "command"
SOURCE_INTENT = "intent"
SOURCE_NONE = "none"


@dataclass(frozen=True)
class Resolution:
    action: Optional[str]
    source: str
    command: Optional[Command] = None
    score: float = 0.0

    @property
    def is_silent(self) -> bool:
        return self.command is not None and self.command.silent


class IntentResolver:
    def __init__(
        self,
        commands: CommandTable,
        intents: Sequence[Intent],
        threshold: float = 75.0,
        high_confidence: float = 90.0,
        max_pattern_length: int = 256,
        max_text_length: int = 1024,
    ):
        self._commands = commands
        self._intents: List[Intent] = list(intents)
        self._threshold = threshold
        self._high_confidence = high_confidence
        self._max_text_length = max_text_length
        self._names: Dict[str, Intent] = {}
        self._patterns: Dict[int, List[Pattern[str]]] = {}
        for index, intent in enumerate(self._intents):
            self._names.setdefault(intent.name, intent)
            if intent.is_pattern:
                self._patterns[index] = [compile_pattern(slot, max_pattern_length) for slot in intent.slots]

    @property
    def intents(self) -> List[Intent]:
        return list(self._intents)

    def resolve(self, context: "RequestContext") -> Resolution:
        request = context.request
        return self.resolve_text(request.command, request.nlu_intents)

    def resolve_text(
        self,
        text: Optional[str],
        nlu_intents: Union[str, Sequence[str], None] = None,
    ) -> Resolution:
        """nlu_intents 是平台 NLU 识别出的意图名，取其中第一个已声明的意图。"""

        if isinstance(nlu_intents, str):
            nlu_intents = [nlu_intents]
        for name in nlu_intents or ():
            if name in self._names:
                return Resolution(action=name, source=SOURCE_NLU, score=100.0)

        command = self._commands.resolve(text)
        if command is not None:
            return Resolution(action=command.name, source=SOURCE_COMMAND, command=command)

        match = self.match_intent(text or "")
        if match is not None:
            intent, score = match
            return Resolution(action=intent.name, source=SOURCE_INTENT, score=score)

        return Resolution(action=None, source=SOURCE_NONE)

    def match_intent(self, text: str) -> Optional[Tuple[Intent, float]]:
        best: Optional[Intent] = None
        best_score = 0.0
        for index, intent in enumerate(self._intents):
            score = self._intent_score(index, intent, text)
            if score >= self._threshold and (best is None or score > best_score):
                best, best_score = intent, score
            if score > self._high_confidence:
                break
        if best is None:
            return None
        return best, best_score

    def _intent_score(self, index: int, intent: Intent, text: str) -> float:
        patterns = self._patterns.get(index)
        if patterns is not None:
            bounded = text[: self._max_text_length]
            return 100.0 if any(p.search(bounded) for p in patterns) else 0.0

        top = 0.0
        for slot in intent.slots:
            top = max(top, phrase_score(slot, text))
            if top > self._high_confidence:
                break
        return top
