import asyncio

from remediation.error_options import first_non_empty, from_knowledge_points, from_rules, suggest_error_options


def _values(options):
    return [o["value"] for o in options]


def _run(coro):
    return asyncio.run(coro)


def test_vocab_rules_pick_long_words_without_stop_words():
    ctx = {"gap_type": "vocab", "question_content": "She has a strong ambition which would surprise everyone.", "question_options": ["ambition", "amount"]}
    values = _values(_run(from_rules(ctx)))
    assert values[:2] == ["strong", "ambition"]
    assert "which" not in values and "would" not in values
    assert len(values) <= 5


def test_grammar_rules_spot_passive_voice():
    ctx = {"gap_type": "grammar", "question_content": "The bridge was painted last year.", "question_options": ["painted", "was painted"]}
    values = _values(_run(from_rules(ctx)))
    assert "被动语态的结构不理解" in values
    assert "一般过去时的用法不理解" in values


def test_grammar_rules_pad_short_lists():
    ctx = {"gap_type": "grammar", "question_content": "Look!"}
    assert _values(_run(from_rules(ctx))) == ["其他语法点（请具体说明）"]


def test_logic_rules_for_reading_question():
    article = "Tom wanted to win the race. However, he fell at the start. " * 5
    ctx = {"gap_type": "logic", "question_content": "What can we infer about Tom?", "article": article}
    values = _values(_run(from_rules(ctx)))
    assert values[0] == "推理判断题：无法从文章内容推断出答案"
    assert any(v.startswith("转折关系不理解") for v in values)


def test_knowledge_points_strategy_uses_matching_codes_only():
    ctx = {"gap_type": "grammar", "knowledge_points": ["grammar.voice", "vocab.common", "grammar.modal"]}
    assert _values(_run(from_knowledge_points(ctx))) == ["语态不理解", "modal不理解"]


def test_chain_returns_first_non_empty_and_skips_failures():
    calls = []

    async def empty(ctx):
        calls.append("empty")
        return []

    async def broken(ctx):
        calls.append("broken")
        raise RuntimeError("upstream down")

    async def winner(ctx):
        calls.append("winner")
        return [{"value": "x", "label": "x"}]

    async def never(ctx):
        calls.append("never")
        return [{"value": "y", "label": "y"}]

    result = _run(first_non_empty([empty, broken, winner, never], {}))
    assert _values(result) == ["x"]
    assert calls == ["empty", "broken", "winner"]


def test_without_ai_falls_through_to_rules():
    ctx = {"gap_type": "logic", "question_content": "He was tired, but he kept running because he wanted to win."}
    values = _values(_run(suggest_error_options(ctx, client=None)))
    assert any(v.startswith("转折关系不理解") for v in values)
    assert any(v.startswith("因果关系不理解") for v in values)
