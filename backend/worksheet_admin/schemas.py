from __future__ import annotations
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator


class QuestionKind(str, Enum):
	MULTIPLE_CHOICE = "MCQ"
	FILL_IN_BLANK = "FILL_IN_THE_BLANKS"
	TRIVIA = "TRIVIA"


DIFFICULTY_LEVELS = ("L1", "L2", "L3", "Br")

# Stored keys a Trivia question never carries
TRIVIA_DROPPED_KEYS = ("grade", "topic", "topicList", "difficultyLevel", "options", "correctAnswer", "questionID")


class StoredModel(BaseModel):
	# Stored documents use the camelCase keys the quiz app reads
	model_config = ConfigDict(populate_by_name=True, extra="ignore")

	def to_store(self) -> Dict[str, Any]:
		return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class Choice(StoredModel):
	"""An option or an answer: text with an optional image URL."""

	text: str = ""
	image: Optional[str] = None

	@model_validator(mode="before")
	@classmethod
	def _from_bare(cls, value: Any) -> Any:
		# Older records store options and answers as bare strings
		if value is None:
			return {"text": ""}
		if isinstance(value, (str, int, float)):
			return {"text": str(value)}
		return value


class QuestionBody(StoredModel):
	question: str = ""
	question_image: Optional[str] = Field(default=None, alias="questionImage")
	kind: QuestionKind = Field(default=QuestionKind.MULTIPLE_CHOICE, alias="type")
	options: List[Choice] = Field(default_factory=list)
	correct_answer: Optional[Choice] = Field(default=None, alias="correctAnswer")

	@field_validator("kind", mode="before")
	@classmethod
	def _kind(cls, value: Any) -> Any:
		if isinstance(value, QuestionKind):
			return value
		if value in (None, ""):
			return QuestionKind.MULTIPLE_CHOICE
		text = str(value).strip().upper().replace(" ", "_")
		if text in ("FILL_IN_THE_BLANKS", "FILL_IN_BLANKS", "FIB"):
			return QuestionKind.FILL_IN_BLANK
		return text

	@field_validator("options", mode="before")
	@classmethod
	def _options(cls, value: Any) -> Any:
		if value is None:
			return []
		if isinstance(value, dict):
			# Sparse arrays come back as index-keyed mappings
			return [v for _, v in sorted(value.items(), key=lambda kv: int(kv[0]) if str(kv[0]).isdigit() else 0)]
		return value

	@model_validator(mode="before")
	@classmethod
	def _answer_index(cls, data: Any) -> Any:
		# A correct answer given as an option index resolves to that option
		if isinstance(data, dict):
			answer = data.get("correctAnswer", data.get("correct_answer"))
			options = data.get("options")
			if isinstance(answer, int) and not isinstance(answer, bool) and isinstance(options, list):
				if 0 <= answer < len(options):
					data = dict(data)
					data["correctAnswer"] = options[answer]
					data.pop("correct_answer", None)
		return data

	def image_urls(self) -> List[str]:
		urls = [self.question_image]
		urls.extend(o.image for o in self.options)
		if self.correct_answer is not None:
			urls.append(self.correct_answer.image)
		return [u for u in urls if u]


class Classification(StoredModel):
	grade: Optional[str] = None
	topic: Optional[str] = None
	subtopic: Optional[str] = Field(default=None, alias="topicList")
	difficulty: Optional[str] = Field(default=None, alias="difficultyLevel")


class Question(QuestionBody, Classification):
	id: Optional[str] = None
	question_ref: Optional[str] = Field(default=None, alias="questionID")
	timestamp: Optional[Any] = None
	date: Optional[str] = None

	def to_store(self) -> Dict[str, Any]:
		data = super().to_store()
		data.pop("id", None)
		if self.kind == QuestionKind.TRIVIA:
			# Trivia carries no classification or answer
			for key in TRIVIA_DROPPED_KEYS:
				data.pop(key, None)
		return data


class SubQuestion(QuestionBody):
	pass


class CompositeQuestion(Classification):
	id: Optional[str] = None
	main_question: str = Field(default="", alias="mainQuestion")
	sub_questions: List[Optional[SubQuestion]] = Field(default_factory=list, alias="subQuestions")
	created_at: Optional[Any] = Field(default=None, alias="createdAt")
	updated_at: Optional[Any] = Field(default=None, alias="updatedAt")

	@field_validator("sub_questions", mode="before")
	@classmethod
	def _slots(cls, value: Any) -> Any:
		if value is None:
			return []
		if isinstance(value, dict):
			slots: List[Any] = []
			for k, v in value.items():
				try:
					idx = int(k)
				except (TypeError, ValueError):
					continue
				if idx >= len(slots):
					slots.extend([None] * (idx + 1 - len(slots)))
				slots[idx] = v
			return slots
		return value

	def to_store(self) -> Dict[str, Any]:
		data = self.model_dump(by_alias=True, exclude_none=True, mode="json", exclude={"id", "sub_questions"})
		data["subQuestions"] = [s.to_store() if s is not None else None for s in self.sub_questions]
		return data


class FlattenedSubQuestion(Question):
	"""Standalone view of one sub-question of a composite question."""

	multi_id: str = Field(alias="multiId")
	sub_index: int = Field(alias="subIndex")
	main_question: str = Field(default="", alias="mainQuestion")
	from_multi: bool = Field(default=True, alias="fromMulti")


class QuestionFilter(BaseModel):
	grade: str = "all"
	topic: str = "all"
	subtopic: str = "all"
	difficulty: str = "all"
	kind: str = "all"


class SetMember(BaseModel):
	key: str
	id: str
	order: int = 0
	explicit_order: bool = False


class Assignment(StoredModel):
	attached_at: Optional[str] = Field(default=None, alias="attachedAt")
	question_ids: List[str] = Field(default_factory=list, alias="questionIds")


class UserAccount(StoredModel):
	id: Optional[str] = None
	email: Optional[str] = None
	role: Optional[str] = None
	created_at: Optional[Any] = Field(default=None, alias="createdAt")
	assigned_sets: Dict[str, Assignment] = Field(default_factory=dict, alias="assignedSets")
	quiz_results: Dict[str, Any] = Field(default_factory=dict, alias="quizResults")

	@field_validator("assigned_sets", mode="before")
	@classmethod
	def _assignments(cls, value: Any) -> Any:
		if not isinstance(value, dict):
			return {}
		# Legacy entries may hold a bare value instead of {attachedAt, ...}
		return {k: (v if isinstance(v, dict) else {}) for k, v in value.items()}


class QuizResponse(StoredModel):
	question_id: str = Field(alias="questionId")
	selected_answer: Choice = Field(default_factory=Choice, alias="selectedAnswer")
	correct_answer: Choice = Field(default_factory=Choice, alias="correctAnswer")
	is_correct: bool = Field(default=False, alias="isCorrect")
	kind: Optional[str] = Field(default=None, alias="type")

	@field_validator("selected_answer", "correct_answer", mode="before")
	@classmethod
	def _unanswered(cls, value: Any) -> Any:
		return "" if value is None else value


class QuizResult(StoredModel):
	id: Optional[str] = None
	completed_at: Optional[Any] = Field(default=None, alias="completedAt")
	score: Optional[float] = None
	correct_answers: Optional[int] = Field(default=None, alias="correctAnswers")
	total_questions: Optional[int] = Field(default=None, alias="totalQuestions")
	selected_set: Optional[str] = Field(default=None, alias="selectedSet")
	responses: List[QuizResponse] = Field(default_factory=list)

	@field_validator("responses", mode="before")
	@classmethod
	def _responses(cls, value: Any) -> Any:
		# Stored as questionId -> response; keep stored order
		if isinstance(value, dict):
			return [{**(v if isinstance(v, dict) else {}), "questionId": k} for k, v in value.items()]
		return value or []
