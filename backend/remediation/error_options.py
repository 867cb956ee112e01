from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence

from .gemini_client import GeminiClient

logger = logging.getLogger(__name__)


KNOWLEDGE_POINT_CATALOG: Dict[str, List[Dict[str, str]]] = {
    "vocab": [
        {"code": "vocab.common", "name": "常用词汇", "description": "日常交流和阅读中常用的词汇"},
        {"code": "vocab.academic", "name": "学术词汇", "description": "学术文献和正式文本中使用的词汇"},
        {"code": "vocab.collocation", "name": "词汇搭配", "description": "固定搭配和常用短语"},
        {"code": "vocab.context", "name": "语境理解", "description": "根据上下文理解词义"},
    ],
    "grammar": [
        {"code": "grammar.tense", "name": "时态", "description": "各种时态的用法和区别"},
        {"code": "grammar.voice", "name": "语态", "description": "主动语态和被动语态"},
        {"code": "grammar.sentence", "name": "句子结构", "description": "复合句、从句等复杂句式"},
        {"code": "grammar.word_order", "name": "语序", "description": "英语句子的语序规则"},
    ],
    "logic": [
        {"code": "logic.inference", "name": "推理能力", "description": "根据已知信息推断未知信息"},
        {"code": "logic.connection", "name": "逻辑连接", "description": "句子和段落之间的逻辑关系"},
        {"code": "logic.comprehension", "name": "理解能力", "description": "对文本整体意思的理解"},
        {"code": "logic.deduction", "name": "演绎推理", "description": "从一般到特殊的推理过程"},
    ],
}

MAX_OPTIONS = 5
# Passages shorter than this are treated as part of the question, not a reading article
READING_ARTICLE_MIN_CHARS = 100

_VOCAB_STOP_WORDS = {"which", "their", "there", "would", "could", "should", "about", "these", "those", "where"}


def knowledge_points_for(gap_type: str) -> List[Dict[str, str]]:
    return KNOWLEDGE_POINT_CATALOG.get(gap_type, KNOWLEDGE_POINT_CATALOG["logic"])


def default_knowledge_point_name(code: str) -> str:
    return code.split(".")[-1] or code


def _option(text: str) -> Dict[str, str]:
    return {"value": text, "label": text}


def _dedupe(options: Sequence[Dict[str, str]]) -> List[Dict[str, str]]:
    seen: Dict[str, Dict[str, str]] = {}
    for opt in options:
        seen.setdefault(opt["value"], opt)
    return list(seen.values())


def _unique_matches(pattern: str, text: str) -> List[str]:
    found: List[str] = []
    for m in re.findall(pattern, text):
        if m not in found:
            found.append(m)
    return found


def _is_reading(context: Dict[str, Any]) -> bool:
    article = context.get("article") or ""
    return len(article) > READING_ARTICLE_MIN_CHARS


# ---- strategies: each returns options or an empty list ----

async def from_knowledge_points(context: Dict[str, Any]) -> List[Dict[str, str]]:
    codes = [c for c in (context.get("knowledge_points") or []) if c.split(".")[0] == context.get("gap_type")]
    if not codes:
        return []
    names = {kp["code"]: kp["name"] for kp in knowledge_points_for(context.get("gap_type") or "")}
    names.update(context.get("knowledge_point_names") or {})
    return [_option(f"{names.get(code) or default_knowledge_point_name(code)}不理解") for code in codes][:MAX_OPTIONS]


def build_error_options_prompt(context: Dict[str, Any]) -> str:
    gap_type = context.get("gap_type")
    focus = {
        "vocab": "找出3-5个学生最有可能不认识的单词（按难度排序），每个单词后用括号给出中文释义",
        "grammar": "识别学生可能不理解的3-5个具体语法点，例如“被动语态 'was asked' 的结构不清楚”",
        "logic": "找出学生可能不理解的3-5个具体逻辑或阅读理解原因，例如“转折词 'however' 后面的意思不清楚”",
    }.get(gap_type, "找出学生可能出错的3-5个具体原因")
    lines = [f"作为初三英语老师，请仔细分析以下题目，{focus}。", ""]
    if _is_reading(context):
        lines += ["文章内容：", (context.get("article") or "")[:3000], ""]
    lines.append(f"题目：{context.get('question_content') or ''}")
    if context.get("question_options"):
        lines.append("选项：" + " | ".join(str(o) for o in context["question_options"]))
    if context.get("correct_answer"):
        lines.append(f"正确答案：{context['correct_answer']}")
    lines += [
        "",
        "必须根据题目内容具体分析，不要生成通用选项。",
        '返回JSON格式：{"options": [{"value": "描述", "label": "描述"}]}，只返回JSON，不要其他文字。',
    ]
    return "\n".join(lines)


def make_ai_strategy(client: Optional[GeminiClient]) -> Callable[[Dict[str, Any]], Awaitable[List[Dict[str, str]]]]:
    async def from_ai(context: Dict[str, Any]) -> List[Dict[str, str]]:
        if client is None:
            return []
        data = await client.generate_json(build_error_options_prompt(context))
        raw = data.get("options") or []
        if not isinstance(raw, list):
            return []
        options: List[Dict[str, str]] = []
        for opt in raw:
            if isinstance(opt, str):
                text = opt
            elif isinstance(opt, dict):
                text = str(opt.get("value") or opt.get("label") or "")
            else:
                continue
            if text.strip():
                options.append(_option(text.strip()))
        return _dedupe(options)[:MAX_OPTIONS]

    return from_ai


def _vocab_rules(context: Dict[str, Any]) -> List[Dict[str, str]]:
    text = " ".join([
        context.get("question_content") or "",
        " ".join(str(o) for o in context.get("question_options") or []),
        context.get("article") or "",
    ])
    words = [w for w in _unique_matches(r"\b[a-zA-Z]{5,}\b", text) if w.lower() not in _VOCAB_STOP_WORDS]
    return [_option(w) for w in words[:MAX_OPTIONS]]


def _grammar_rules(context: Dict[str, Any]) -> List[Dict[str, str]]:
    text = " ".join([
        context.get("question_content") or "",
        " ".join(str(o) for o in context.get("question_options") or []),
    ]).lower()
    options: List[Dict[str, str]] = []

    modals = _unique_matches(r"\b(can|could|may|might|must|should|would)\b", text)
    if modals:
        joined = "/".join(modals)
        if re.search(r"\b(can|could|may)\s+(i|you|we|they)\s+\w+", text):
            options.append(_option(f"{joined} 表示请求许可的用法不理解"))
        elif re.search(r"\b(can|could)\s+\w+", text):
            options.append(_option(f"{joined} 表示能力的用法不理解"))
        else:
            options.append(_option(f"情态动词 {joined} 的用法不理解"))

    if re.search(r"\b(was|were|has|have|had|will|would|did|does)\b", text):
        if re.search(r"\b(has|have)\s+\w+ed\b", text):
            options.append(_option("现在完成时的用法不理解"))
        elif re.search(r"\bhad\s+\w+ed\b", text):
            options.append(_option("过去完成时的用法不理解"))
        elif re.search(r"\b(was|were)\b", text):
            options.append(_option("一般过去时的用法不理解"))
        elif re.search(r"\b(will|would)\b", text):
            options.append(_option("将来时的用法不理解"))
        else:
            options.append(_option("时态用法不理解"))

    if re.search(r"\b(was|were|is|are|been)\s+\w+ed\b", text):
        options.append(_option("被动语态的结构不理解"))

    if re.search(r"\b(which|that)\b", text):
        options.append(_option("定语从句中 which 和 that 的区别不清楚"))
    elif re.search(r"\b(who|whom|whose|where|when|why)\b", text):
        options.append(_option("定语从句的结构不理解"))

    if re.search(r"\bif\b", text):
        options.append(_option("if 引导的条件句的时态规则不理解"))
    elif re.search(r"\b(because|although|though|while|since)\b", text):
        options.append(_option("状语从句的结构不理解"))

    if re.search(r"\bto\s+\w+\b", text):
        options.append(_option("动词不定式 to do 的用法不清楚"))
    elif re.search(r"\b\w+ing\b", text):
        options.append(_option("动名词 doing 的用法不清楚"))

    if re.search(r"\b(wish|if only)\b", text):
        options.append(_option("虚拟语气的用法不理解"))

    if (re.search(r"\bis\b", text) and re.search(r"\bare\b", text)) or (re.search(r"\bwas\b", text) and re.search(r"\bwere\b", text)):
        options.append(_option("主谓一致的规则不理解"))

    options = _dedupe(options)
    if len(options) < 3:
        options.append(_option("其他语法点（请具体说明）"))
    return options[:MAX_OPTIONS]


def _logic_rules(context: Dict[str, Any]) -> List[Dict[str, str]]:
    question = context.get("question_content") or ""
    article = context.get("article") or ""
    reading = _is_reading(context)
    text = f"{article} {question}".lower()
    options: List[Dict[str, str]] = []

    if reading:
        if re.search(r"\b(main idea|purpose)\b|主旨|主题|目的", question, re.IGNORECASE):
            options.append(_option("主旨大意题：不理解文章或段落的主旨"))
        elif re.search(r"\b(infer|imply|suggest|indicate|conclude)\b|推断|推理", question, re.IGNORECASE):
            options.append(_option("推理判断题：无法从文章内容推断出答案"))
        elif re.search(r"\b(what|which|who|where|when|why|how)\b", question, re.IGNORECASE):
            options.append(_option("细节理解题：找不到题目问的关键信息在文章中的位置"))

    contrast = _unique_matches(r"\b(but|however|although|though|yet|whereas)\b", text)
    if contrast:
        options.append(_option(f"转折关系不理解（如 {'、'.join(contrast)} 等）"))
    cause = _unique_matches(r"\b(because|since|so|therefore|thus|due to)\b", text)
    if cause:
        options.append(_option(f"因果关系不理解（如 {'、'.join(cause)} 等）"))
    if not reading:
        condition = _unique_matches(r"\b(if|unless|provided|as long as|in case)\b", text)
        if condition:
            options.append(_option(f"条件关系不理解（如 {'、'.join(condition)} 等）"))
        if re.search(r"\b(first|then|finally|after|before|next|later|meanwhile)\b", text):
            options.append(_option("时间顺序关系不理解"))
    if re.search(r"\b(infer|imply|suggest|indicate|conclude|inference|implication)\b", text):
        options.append(_option("推理题：无法从文章推断出答案"))
    if re.search(r"\b(this|that|these|those|it|they|them)\b", text):
        options.append(_option("指代关系不理解（如 this/that/it 等指代的内容）"))
    if reading:
        sentences = [s for s in re.split(r"[.!?]", article) if s.strip()]
        if any(len(s.split()) > 20 for s in sentences):
            options.append(_option("复杂句式：文章中的长句或复合句结构不清楚"))
        paragraphs = [p for p in re.split(r"\n\s*\n", article) if p.strip()]
        if len(paragraphs) > 2:
            options.append(_option("段落结构：不理解段落之间的逻辑关系"))

    options = _dedupe(options)
    if len(options) < 3:
        options.append(_option("其他理解问题（请具体说明）" if reading else "其他逻辑关系（请具体说明）"))
    return options[:MAX_OPTIONS]


async def from_rules(context: Dict[str, Any]) -> List[Dict[str, str]]:
    gap_type = context.get("gap_type")
    if gap_type == "vocab":
        return _vocab_rules(context)
    if gap_type == "grammar":
        return _grammar_rules(context)
    return _logic_rules(context)


Strategy = Callable[[Dict[str, Any]], Awaitable[List[Dict[str, str]]]]


async def first_non_empty(strategies: Sequence[Strategy], context: Dict[str, Any]) -> List[Dict[str, str]]:
    """Run strategies in order and return the first non-empty result."""
    for strategy in strategies:
        try:
            result = await strategy(context)
        except Exception as e:
            logger.warning("error option strategy %s failed: %s", getattr(strategy, "__name__", strategy), e)
            continue
        if result:
            return result
    return []


async def suggest_error_options(context: Dict[str, Any], client: Optional[GeminiClient] = None) -> List[Dict[str, str]]:
    strategies: List[Strategy] = [from_knowledge_points, make_ai_strategy(client), from_rules]
    return await first_non_empty(strategies, context)
