from __future__ import annotations
import json
import logging
import re
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from .errors import ValidationError
from .schemas import QuizResult
from .tree_store import TreeStore

logger = logging.getLogger(__name__)

GENERATED_WORKSHEETS = "worksheetQuestionSets"
MANUAL_WORKSHEETS = "manualWorksheets"

LEVELS = ("Easy", "Medium", "Hard")
WORKSHEET_SIZE = 8

_FORMAT_HINT = """{
  "sections": [
    { "difficulty": "Easy", "questions": [ {"question_text": "...", "options": ["..."], "answer": "..."} ] },
    { "difficulty": "Medium", "questions": [...] },
    { "difficulty": "Hard", "questions": [...] }
  ]
}"""

_FENCE_RE = re.compile(r"```(?:json)?", re.IGNORECASE)


def latest_result(results: Dict[str, QuizResult]) -> Optional[QuizResult]:
	if not results:
		return None
	return max(results.values(), key=lambda r: str(r.completed_at or ""))


def build_worksheet_prompt(
	grade: str,
	topic: Optional[str] = None,
	sub_topic: Optional[str] = None,
	levels: Sequence[str] = (),
	history: Optional[QuizResult] = None,
) -> str:
	if not str(grade or "").strip():
		raise ValidationError("Grade is required")
	if history is not None:
		return (
			f"Generate a worksheet for a {grade}th grader using history:\n"
			f"Score: {history.score}%, Correct: {history.correct_answers},\n"
			f"Set: {history.selected_set}, Topic: {topic or 'Any'}, SubTopic: {sub_topic or 'Any'}.\n"
			f"Return raw JSON ONLY in this format:\n{_FORMAT_HINT}"
		)
	chosen = [lvl for lvl in LEVELS if lvl in set(levels)] or list(LEVELS)
	split = WORKSHEET_SIZE // len(chosen)
	return (
		f"Generate a worksheet for grade {grade}.\n"
		f"Topic: {topic or 'Any'}, Subtopic: {sub_topic or 'Any'}.\n"
		f"Include {split} questions for each level: {', '.join(chosen)}.\n"
		f"Return raw JSON ONLY like this:\n{_FORMAT_HINT}"
	)


def parse_worksheet(text: str) -> List[Dict[str, Any]]:
	"""Flatten the model's sections into questions tagged with their difficulty."""
	cleaned = _FENCE_RE.sub("", (text or "").strip())
	first, last = cleaned.find("{"), cleaned.rfind("}")
	if first == -1 or last < first:
		raise ValidationError("Gemini returned invalid JSON. Please try again.")
	try:
		parsed = json.loads(cleaned[first:last + 1])
	except json.JSONDecodeError as exc:
		logger.error("invalid worksheet JSON from Gemini: %s", cleaned[:500])
		raise ValidationError("Gemini returned invalid JSON. Please try again.") from exc
	questions: List[Dict[str, Any]] = []
	for section in parsed.get("sections") or []:
		if not isinstance(section, dict):
			continue
		for q in section.get("questions") or []:
			if isinstance(q, dict):
				questions.append({**q, "difficulty": section.get("difficulty")})
	return questions


class WorksheetRepository:
	def __init__(self, tree: TreeStore) -> None:
		self.tree = tree

	def save_generated(
		self,
		questions: List[Dict[str, Any]],
		*,
		name: Optional[str] = None,
		grade: str = "",
		topic: str = "",
		sub_topic: str = "",
	) -> str:
		if not questions:
			raise ValidationError("No questions to add.")
		now = datetime.now(timezone.utc)
		record = {
			"name": (name or "").strip() or f"Worksheet {int(now.timestamp() * 1000)}",
			"grade": grade,
			"topic": topic,
			"subTopic": sub_topic,
			"createdAt": now.isoformat(),
			"questions": [
				{
					"question": q.get("question_text") or q.get("question"),
					"options": [{"text": str(opt)} for opt in (q.get("options") or [])],
					"answer": q.get("answer"),
					"difficulty": q.get("difficulty"),
				}
				for q in questions
			],
		}
		key = self.tree.push(GENERATED_WORKSHEETS, record)
		logger.info("saved generated worksheet %s with %d questions", key, len(questions))
		return key

	def list_generated(self) -> List[Dict[str, Any]]:
		return self._list(GENERATED_WORKSHEETS)

	def list_manual(self) -> List[Dict[str, Any]]:
		return self._list(MANUAL_WORKSHEETS)

	def _list(self, collection: str) -> List[Dict[str, Any]]:
		items = [{**ws, "id": key} for key, ws in (self.tree.get(collection) or {}).items() if isinstance(ws, dict)]
		# Newest first
		items.reverse()
		return items
