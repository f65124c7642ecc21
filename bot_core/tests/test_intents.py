import pytest

from bot_core.core.app_context import AppContext
from bot_core.core.context import RequestContext
from bot_core.domain.exceptions import PatternCompilationError
from bot_core.domain.models import IncomingRequest, Intent
from bot_core.domain.session import Session
from bot_core.matching import intents as intents_module
from bot_core.matching.commands import CommandTable
from bot_core.matching.intents import (
    SOURCE_COMMAND,
    SOURCE_INTENT,
    SOURCE_NLU,
    SOURCE_NONE,
    IntentResolver,
)


def _resolver(intents, table=None):
    table = table if table is not None else CommandTable()
    return IntentResolver(table, intents, threshold=75, high_confidence=90)


def test_command_intent_and_nothing():
    table = CommandTable()
    table.register("by", ["пока"])
    resolver = _resolver([Intent("greeting", ["привет"])], table)

    res = resolver.resolve_text("пока")
    assert res.action == "by"
    assert res.source == SOURCE_COMMAND

    res = resolver.resolve_text("привет, как дела")
    assert res.action == "greeting"
    assert res.source == SOURCE_INTENT

    res = resolver.resolve_text("абвгд")
    assert res.action is None
    assert res.source == SOURCE_NONE


def test_command_beats_intent():
    table = CommandTable()
    table.register("cmd", ["привет"])
    resolver = _resolver([Intent("greeting", ["привет"])], table)
    assert resolver.resolve_text("привет").action == "cmd"


def test_nlu_hint_for_declared_intent_wins():
    table = CommandTable()
    table.register("cmd", ["привет"])
    resolver = _resolver([Intent("greeting", ["привет"])], table)
    res = resolver.resolve_text("привет", nlu_intents="greeting")
    assert res.action == "greeting"
    assert res.source == SOURCE_NLU


def test_first_declared_nlu_intent_wins():
    resolver = _resolver([Intent("greeting", ["привет"]), Intent("order", ["заказ"])])
    res = resolver.resolve_text("да", nlu_intents=["YANDEX.CONFIRM", "order", "greeting"])
    assert res.action == "order"
    assert res.source == SOURCE_NLU


def test_unknown_nlu_hint_is_ignored():
    table = CommandTable()
    table.register("by", ["пока"])
    resolver = _resolver([Intent("greeting", ["привет"])], table)
    assert resolver.resolve_text("пока", nlu_intents=["unknown"]).action == "by"


def test_fuzzy_match_tolerates_typo():
    resolver = _resolver([Intent("greeting", ["привет"])])
    res = resolver.resolve_text("привт")
    assert res.action == "greeting"
    assert res.score > 90


def test_highest_score_wins():
    resolver = _resolver([Intent("weak", ["привед"]), Intent("strong", ["привет"])])
    assert resolver.resolve_text("привет").action == "strong"


def test_tie_prefers_first_declared():
    resolver = _resolver([Intent("first", ["привед"]), Intent("second", ["привеж"])])
    match = resolver.match_intent("привет")
    assert match is not None
    intent, score = match
    assert intent.name == "first"
    assert 75 <= score <= 90


def test_high_confidence_stops_scanning(monkeypatch):
    seen = []
    original = intents_module.phrase_score

    def spy(phrase, text):
        seen.append(phrase)
        return original(phrase, text)

    monkeypatch.setattr(intents_module, "phrase_score", spy)
    resolver = _resolver([Intent("greeting", ["привет", "здравствуй"]), Intent("by", ["пока"])])
    assert resolver.resolve_text("привет").action == "greeting"
    assert seen == ["привет"]


def test_pattern_intent():
    resolver = _resolver([Intent("number", [r"\d+"], is_pattern=True)])
    assert resolver.resolve_text("мне 5 лет").action == "number"
    assert resolver.resolve_text("мне пять лет").action is None


def test_unsafe_pattern_intent_rejected():
    with pytest.raises(PatternCompilationError):
        _resolver([Intent("bad", ["(a+)+"], is_pattern=True)])


def test_resolve_reads_request_from_context():
    table = CommandTable()
    table.register("by", ["пока"])
    resolver = _resolver([Intent("greeting", ["привет"])], table)
    request = IncomingRequest(platform="alisa", user_id="u1", command="пока", nlu_intents=("greeting",))
    context = RequestContext(
        app=AppContext(),
        request=request,
        session=Session(platform="alisa", user_id="u1"),
    )
    assert resolver.resolve(context).action == "greeting"
