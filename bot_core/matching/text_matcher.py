"""文本比较原语。

- similarity: 规范化后基于编辑距离（indel）的相似度，取值 0-100，阈值包含边界。
- phrase_score: 槽位短语在用户文本中的得分，包含即 100，否则取整体/滑动窗口相似度。
- contains_phrase / matches_any: 子串、整词与正则匹配。

全部为纯函数，可在多个并发请求中安全调用。
"""

import re
from dataclasses import dataclass
from typing import Optional, Pattern, Sequence, Union

from rapidfuzz import fuzz


PatternLike = Union[str, Pattern[str]]

_PUNCT_RE = re.compile(r"[^\w\s]+")
_SPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True)
class Similarity:
    """比较结果。index/text 仅在与多个候选比较时填充。"""

    matched: bool
    score: float
    index: Optional[int] = None
    text: Optional[str] = None


def normalize(text: Optional[str]) -> str:
    """小写、ё→е、去标点、合并空白。"""

    if not text:
        return ""
    lowered = _PUNCT_RE.sub(" ", text.lower().replace("ё", "е"))
    return _SPACE_RE.sub(" ", lowered).strip()


def similarity(candidate: str, query: str, threshold: float = 80.0) -> Similarity:
    a = normalize(candidate)
    b = normalize(query)
    score = 100.0 if a == b else float(fuzz.ratio(a, b))
    return Similarity(matched=score >= threshold, score=score)


def best_match(text: str, candidates: Sequence[str], threshold: float = 80.0) -> Similarity:
    """在候选列表中找与 text 最相似的一项；完全一致时立即返回。"""

    best = Similarity(matched=False, score=0.0)
    for index, candidate in enumerate(candidates):
        result = similarity(candidate, text, threshold)
        if result.score == 100.0:
            return Similarity(matched=True, score=100.0, index=index, text=candidate)
        if result.score > best.score:
            best = Similarity(matched=result.matched, score=result.score, index=index, text=candidate)
    return best


def phrase_score(phrase: str, text: str) -> float:
    p = normalize(phrase)
    t = normalize(text)
    if not p or not t:
        return 0.0
    if p in t:
        return 100.0
    score = float(fuzz.ratio(p, t))
    # 只让短语在更长的文本上滑动，避免短回复（"да"）命中长槽位
    if len(p) < len(t):
        score = max(score, float(fuzz.partial_ratio(p, t)))
    return score


def contains_phrase(haystack: str, needle: str, whole_word: bool = False) -> bool:
    h = normalize(haystack)
    n = normalize(needle)
    if not n:
        return False
    if whole_word:
        return f" {n} " in f" {h} "
    return n in h


def matches_any(patterns: Sequence[PatternLike], text: str) -> bool:
    """字符串按子串匹配，已编译的正则用 search 匹配。"""

    if not text:
        return False
    for pattern in patterns:
        if isinstance(pattern, str):
            if pattern and pattern in text:
                return True
        elif pattern.search(text):
            return True
    return False
