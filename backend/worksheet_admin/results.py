from __future__ import annotations
import io
import logging
from typing import Any, Dict, List, Optional

import pandas as pd

from .errors import NotFoundError, ValidationError
from .markup import strip_markup
from .question_store import QuestionStore
from .schemas import QuizResult, UserAccount
from .tree_store import TreeStore

logger = logging.getLogger(__name__)

USERS = "users"

REPORT_COLUMNS = [
	"User ID",
	"Email",
	"Quiz ID",
	"Completed At",
	"Set",
	"Question ID",
	"Question",
	"Selected Answer",
	"Correct Answer",
	"Is Correct",
	"Type",
	"Grade",
	"Topic",
	"Subtopic",
	"Difficulty",
]


class ResultLedger:
	"""Read-only view of user accounts and the quiz results the quiz app writes."""

	def __init__(self, tree: TreeStore, questions: QuestionStore) -> None:
		self.tree = tree
		self.questions = questions

	def list_users(self, query: Optional[str] = "") -> List[UserAccount]:
		users = [
			UserAccount.model_validate({**raw, "id": uid})
			for uid, raw in (self.tree.get(USERS) or {}).items()
			if isinstance(raw, dict)
		]
		q = (query or "").strip().lower()
		if not q:
			return users
		return [
			u for u in users
			if q in (u.id or "").lower() or q in (u.email or "").lower() or q in (u.role or "").lower()
		]

	def get_user(self, user_id: str) -> UserAccount:
		if not user_id or "/" in user_id:
			raise ValidationError(f"Invalid user id '{user_id}'")
		raw = self.tree.get(f"{USERS}/{user_id}")
		if not isinstance(raw, dict):
			raise NotFoundError(f"User '{user_id}' not found")
		return UserAccount.model_validate({**raw, "id": user_id})

	def list_results_for(self, user_id: str) -> Dict[str, QuizResult]:
		user = self.get_user(user_id)
		results: Dict[str, QuizResult] = {}
		for quiz_id, raw in user.quiz_results.items():
			if isinstance(raw, dict):
				results[quiz_id] = QuizResult.model_validate({**raw, "id": quiz_id})
		return results

	def get_result(self, user_id: str, quiz_id: str) -> QuizResult:
		result = self.list_results_for(user_id).get(quiz_id)
		if result is None:
			raise NotFoundError(f"Quiz result '{quiz_id}' not found for user '{user_id}'")
		return result

	def report_rows(self, user_id: str, quiz_id: Optional[str] = None) -> List[Dict[str, Any]]:
		"""One flat row per response, question text without markup."""
		user = self.get_user(user_id)
		if quiz_id is not None:
			results = {quiz_id: self.get_result(user_id, quiz_id)}
		else:
			results = self.list_results_for(user_id)
		rows: List[Dict[str, Any]] = []
		for qid, result in results.items():
			for response in result.responses:
				question = self.questions.get(response.question_id)
				rows.append({
					"User ID": user.id,
					"Email": user.email or "",
					"Quiz ID": qid,
					"Completed At": result.completed_at or "",
					"Set": result.selected_set or "",
					"Question ID": response.question_id,
					"Question": strip_markup(question.question) if question else "",
					"Selected Answer": response.selected_answer.text or "Not answered",
					"Correct Answer": response.correct_answer.text,
					"Is Correct": "Yes" if response.is_correct else "No",
					"Type": response.kind or (question.kind.value if question else ""),
					"Grade": (question.grade or "") if question else "",
					"Topic": (question.topic or "") if question else "",
					"Subtopic": (question.subtopic or "") if question else "",
					"Difficulty": (question.difficulty or "") if question else "",
				})
		return rows


def export_spreadsheet(rows: List[Dict[str, Any]], sheet_name: str = "Responses") -> bytes:
	if not rows:
		raise ValidationError("No responses to export")
	frame = pd.DataFrame(rows, columns=REPORT_COLUMNS)
	buf = io.BytesIO()
	with pd.ExcelWriter(buf, engine="openpyxl") as writer:
		frame.to_excel(writer, index=False, sheet_name=sheet_name)
	return buf.getvalue()
