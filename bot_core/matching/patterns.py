"""正则命令的注册期安全检查。

用户文本不可信，所以会导致灾难性回溯的写法在注册时直接拒绝：
- 被重复的分组内部含无界量词或分支，如 (a+)+、(a|aa)+、(.*a){12}；
- 相邻且字符集重叠的无界原子，如 \\w*\\w*、.*.+；
- 反向引用（\\1、(?P=name)）；
- 超过长度上限的表达式。
匹配时另外对输入文本截断（见 CommandTable），两者一起限定最坏匹配耗时。
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

from bot_core.domain.exceptions import PatternCompilationError


_REGEX_META = re.compile(r"[\\^$.|?*+()\[\]{}]")
_OPEN_REPEAT = re.compile(r"\{\s*(\d*)\s*,\s*\}")
_RANGE_REPEAT = re.compile(r"\{\s*(\d*)\s*,\s*(\d+)\s*\}")
_EXACT_REPEAT = re.compile(r"\{\s*(\d+)\s*\}")
_GROUP_PREFIX = re.compile(r"\(\?(?:[:=!>]|<[=!]|P<\w+>|<\w+>|[aiLmsux-]+:)")
# 几乎与任何字符集都重叠的原子
_WIDE_ATOMS = {".", r"\S", r"\W", r"\D"}


def looks_like_regex(pattern: str) -> bool:
    return bool(_REGEX_META.search(pattern))


def _quantifier_at(pattern: str, i: int) -> Tuple[int, bool, bool]:
    """返回 (量词长度, 是否无界, 是否允许重复多次)；i 处没有量词时返回 (0, False, False)。"""

    if i >= len(pattern):
        return 0, False, False
    ch = pattern[i]
    size, unbounded, repeats = 0, False, False
    if ch in "*+":
        size, unbounded, repeats = 1, True, True
    elif ch == "?":
        size = 1
    elif ch == "{":
        m = _OPEN_REPEAT.match(pattern, i)
        if m:
            size, unbounded, repeats = m.end() - i, True, True
        else:
            m = _RANGE_REPEAT.match(pattern, i)
            if m:
                size, repeats = m.end() - i, int(m.group(2)) > 1
            else:
                m = _EXACT_REPEAT.match(pattern, i)
                if m:
                    size, repeats = m.end() - i, int(m.group(1)) > 1
    # 惰性 / 占有修饰符
    if size and i + size < len(pattern) and pattern[i + size] in "?+":
        size += 1
    return size, unbounded, repeats


def _overlaps(a: str, b: str) -> bool:
    if a == b:
        return True
    if a in _WIDE_ATOMS or b in _WIDE_ATOMS or a.startswith("[^") or b.startswith("[^"):
        return True
    return {a, b} == {r"\w", r"\d"}


@dataclass
class _Frame:
    start: int
    unbounded: bool = False  # 内部出现过无界量词
    alternation: bool = False
    last_unbounded: Optional[str] = None  # 紧邻的上一个无界原子


def find_unsafe_constructs(pattern: str) -> List[str]:
    problems: List[str] = []
    stack: List[_Frame] = [_Frame(start=0)]
    n = len(pattern)

    def atom(token: str, at: int, unbounded: bool) -> None:
        frame = stack[-1]
        if not unbounded:
            frame.last_unbounded = None
            return
        frame.unbounded = True
        if frame.last_unbounded is not None and _overlaps(frame.last_unbounded, token):
            problems.append(f"adjacent overlapping quantifiers at {at}")
        frame.last_unbounded = token

    i = 0
    while i < n:
        ch = pattern[i]
        if ch == "\\":
            if i + 1 < n and pattern[i + 1] in "123456789":
                problems.append(f"backreference at {i}")
            token = pattern[i:i + 2]
            size, unbounded, _ = _quantifier_at(pattern, i + 2)
            atom(token, i, unbounded)
            i += 2 + size
            continue
        if ch == "[":
            j = i + 1
            if j < n and pattern[j] == "^":
                j += 1
            if j < n and pattern[j] == "]":
                j += 1
            while j < n and pattern[j] != "]":
                j += 2 if pattern[j] == "\\" else 1
            token = pattern[i:j + 1]
            size, unbounded, _ = _quantifier_at(pattern, j + 1)
            atom(token, i, unbounded)
            i = j + 1 + size
            continue
        if ch == "(":
            if pattern.startswith("(?P=", i):
                problems.append(f"backreference at {i}")
            stack.append(_Frame(start=i))
            m = _GROUP_PREFIX.match(pattern, i)
            i = m.end() if m else i + 1
            continue
        if ch == ")":
            frame = stack.pop() if len(stack) > 1 else _Frame(start=0)
            size, unbounded, repeats = _quantifier_at(pattern, i + 1)
            if repeats and frame.unbounded:
                problems.append(f"nested quantifier at {i}")
            elif repeats and frame.alternation:
                problems.append(f"repeated alternation at {i}")
            atom(pattern[frame.start:i + 1], frame.start, unbounded)
            stack[-1].unbounded = stack[-1].unbounded or frame.unbounded
            i += 1 + size
            continue
        if ch == "|":
            stack[-1].alternation = True
            stack[-1].last_unbounded = None
            i += 1
            continue
        if ch in "^$":
            stack[-1].last_unbounded = None
            i += 1
            continue
        size, unbounded, _ = _quantifier_at(pattern, i + 1)
        atom(ch, i, unbounded)
        i += 1 + size
    return problems


def compile_pattern(pattern: str, max_length: int = 256) -> Pattern[str]:
    if len(pattern) > max_length:
        raise PatternCompilationError(
            code="PATTERN_TOO_LONG",
            message=f"Pattern is longer than {max_length} characters",
            pattern=pattern,
        )
    problems = find_unsafe_constructs(pattern)
    if problems:
        raise PatternCompilationError(
            code="UNSAFE_PATTERN",
            message=f"Pattern {pattern!r} may backtrack catastrophically: " + ", ".join(problems),
            pattern=pattern,
        )
    try:
        return re.compile(pattern, re.IGNORECASE)
    except re.error as e:
        raise PatternCompilationError(code="INVALID_PATTERN", message=str(e), pattern=pattern)
