"""Remediation content for daily tasks.

Each task type has its own payload model. Content comes from an optional AI
suggester and is always checked against the model for the task type; whenever
the suggester is missing, returns nothing, fails or returns something that does
not fit, the deterministic fallback payload is used instead.
"""
from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Type

from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from .errors import ContentGenerationFailure
from .gemini_client import GeminiClient
from .models import LearningGap
from .settings import settings

logger = logging.getLogger(__name__)


class _Payload(BaseModel):
	model_config = ConfigDict(extra="ignore")
	gap_id: str


class VocabCardContent(_Payload):
	word: str
	definition: str
	example: str


class GrammarVideoContent(_Payload):
	knowledge_point: str
	explanation: str
	examples: List[str] = Field(default_factory=list)
	practice_questions: List[Any] = Field(default_factory=list)


class ExerciseContent(_Payload):
	questions: List[Any] = Field(default_factory=list)
	explanation: str
	reading_tip: str


CONTENT_MODELS: Dict[str, Type[_Payload]] = {
	"vocab_card": VocabCardContent,
	"grammar_video": GrammarVideoContent,
	"exercise": ExerciseContent,
}


def fallback_content(gap: LearningGap, task_type: str) -> Dict[str, Any]:
	if task_type == "vocab_card":
		payload: _Payload = VocabCardContent(
			word=gap.gap_detail or "unknown",
			definition="需要记忆的单词（AI 未配置）",
			example="请查看题目上下文",
			gap_id=gap.id,
		)
	elif task_type == "grammar_video":
		payload = GrammarVideoContent(
			knowledge_point=gap.gap_detail or "语法点",
			explanation="请查看相关语法讲解（AI 未配置）",
			gap_id=gap.id,
		)
	elif task_type == "exercise":
		payload = ExerciseContent(
			explanation="请练习相关阅读题（AI 未配置）",
			reading_tip="注意上下文逻辑",
			gap_id=gap.id,
		)
	else:
		raise ValueError(f"unknown task type: {task_type}")
	return payload.model_dump()


class ContentSuggester(Protocol):
	async def suggest_content(self, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
		...


def gap_context(gap: LearningGap, task_type: str) -> Dict[str, Any]:
	question = gap.question
	return {
		"task_type": task_type,
		"gap_type": gap.gap_type,
		"gap_detail": gap.gap_detail,
		"knowledge_points": list(gap.knowledge_points or []),
		"question_content": question.content if question is not None else None,
		"question_options": question.options if question is not None else None,
		"correct_answer": question.correct_answer if question is not None else None,
	}


_SHAPES = {
	"vocab_card": '{"word": "核心词", "definition": "中文释义", "example": "英文例句"}',
	"grammar_video": '{"knowledge_point": "语法点名称", "explanation": "针对该题的解析(100字内)", "examples": ["一个简单的正确例句"]}',
	"exercise": '{"explanation": "解题思路或逻辑分析(100字内)", "reading_tip": "一句阅读技巧"}',
}


def build_content_prompt(context: Dict[str, Any]) -> str:
	options = json.dumps(context.get("question_options") or [], ensure_ascii=False)
	return (
		"作为一名初三英语老师，请根据学生的错题生成补习内容。\n\n"
		"【错题信息】\n"
		f"题目：{context.get('question_content') or ''}\n"
		f"选项：{options}\n"
		f"正确答案：{context.get('correct_answer') or ''}\n"
		f"用户归因：{context.get('gap_detail') or ''} (类型：{context.get('gap_type')})\n\n"
		f"只返回一个 JSON 对象，格式为：{_SHAPES[context['task_type']]}\n"
		"不要 Markdown，不要其他文字。"
	)


class GeminiContentSuggester:
	def __init__(self, client: Optional[GeminiClient] = None) -> None:
		self._client = client or GeminiClient(model=settings.gemini_model_content)

	async def suggest_content(self, context: Dict[str, Any]) -> Optional[Dict[str, Any]]:
		return await self._client.generate_json(build_content_prompt(context))

	async def aclose(self) -> None:
		await self._client.aclose()


async def get_content_suggester():
	"""FastAPI dependency; yields None when no LLM is configured."""
	if not settings.ai_enabled:
		yield None
		return
	suggester = GeminiContentSuggester()
	try:
		yield suggester
	finally:
		await suggester.aclose()


def _merge_suggestion(task_type: str, fallback: Dict[str, Any], suggestion: Dict[str, Any], gap_id: str) -> Dict[str, Any]:
	merged = {**fallback, **{k: v for k, v in suggestion.items() if v not in (None, "")}}
	if task_type == "grammar_video" and not merged.get("examples") and isinstance(suggestion.get("example"), str):
		merged["examples"] = [suggestion["example"]]
	merged["gap_id"] = gap_id
	try:
		return CONTENT_MODELS[task_type].model_validate(merged).model_dump()
	except PydanticValidationError as e:
		raise ContentGenerationFailure(f"suggested {task_type} content has the wrong shape") from e


async def generate_content(gap: LearningGap, task_type: str, suggester: Optional[ContentSuggester]) -> Dict[str, Any]:
	"""Content payload for one gap. Never raises for suggester problems."""
	fallback = fallback_content(gap, task_type)
	if suggester is None:
		return fallback
	try:
		suggestion = await suggester.suggest_content(gap_context(gap, task_type))
		if not suggestion:
			return fallback
		return _merge_suggestion(task_type, fallback, suggestion, gap.id)
	except Exception as e:
		logger.warning("content generation for gap %s (%s) fell back to rules: %s", gap.id, task_type, e)
		return fallback
