from __future__ import annotations
import logging
import math
import re
import time
from datetime import date
from typing import Any, Dict, Iterable, List, Mapping, Optional, Union

from pydantic import ValidationError as SchemaError

from .errors import NotFoundError, ValidationError
from .markup import strip_markup
from .schemas import (
	CompositeQuestion,
	FlattenedSubQuestion,
	Question,
	QuestionBody,
	QuestionFilter,
	QuestionKind,
	TRIVIA_DROPPED_KEYS,
)
from .storage import ImageStorage
from .taxonomy import normalize_grade
from .tree_store import TreeStore

logger = logging.getLogger(__name__)

QUESTIONS = "questions"
MULTI_QUESTIONS = "multiQuestions"

_SUB_ID_RE = re.compile(r"^(?P<multi>.+)-(?P<index>\d+)$")
_CLASSIFICATION_KEYS = ("grade", "topic", "topicList", "difficultyLevel")

AnyQuestion = Union[Question, FlattenedSubQuestion]


def _now_ms() -> int:
	return int(time.time() * 1000)


def timestamp_value(value: Any) -> int:
	"""Sort key for creation timestamps; missing or invalid values count as 0."""
	if isinstance(value, bool):
		return 0
	try:
		number = float(value)
	except (TypeError, ValueError):
		return 0
	if math.isnan(number) or math.isinf(number):
		return 0
	return int(number)


def validate_question(question: QuestionBody) -> None:
	if not question.question and not question.question_image:
		raise ValidationError("Please enter a question or upload an image")
	if question.kind != QuestionKind.MULTIPLE_CHOICE:
		return
	if not any(o.text or o.image for o in question.options):
		raise ValidationError("A multiple-choice question needs at least one option")
	answer = question.correct_answer.text if question.correct_answer else ""
	if answer and answer not in {o.text for o in question.options}:
		logger.warning("correct answer %r matches no option of question %r", answer, question.question[:60])


def _wild(value: Optional[str]) -> bool:
	return value is None or value == "" or value == "all"


def matches(record: AnyQuestion, criteria: QuestionFilter, viewer_grade: Optional[str] = "admin") -> bool:
	if not _wild(viewer_grade) and viewer_grade != "admin":
		if normalize_grade(record.grade) != normalize_grade(viewer_grade):
			return False
	if not _wild(criteria.grade) and normalize_grade(record.grade) != normalize_grade(criteria.grade):
		return False
	if not _wild(criteria.topic) and record.topic != criteria.topic:
		return False
	if not _wild(criteria.subtopic) and record.subtopic != criteria.subtopic:
		return False
	if not _wild(criteria.difficulty) and record.difficulty != criteria.difficulty:
		return False
	if not _wild(criteria.kind) and record.kind.value != criteria.kind:
		return False
	return True


def filter_questions(
	records: Iterable[AnyQuestion], criteria: QuestionFilter, viewer_grade: Optional[str] = "admin"
) -> List[AnyQuestion]:
	return [r for r in records if matches(r, criteria, viewer_grade)]


class QuestionStore:
	def __init__(self, tree: TreeStore, images: Optional[ImageStorage] = None) -> None:
		self.tree = tree
		self.images = images

	def _check_id(self, qid: str) -> None:
		if not qid or "/" in qid:
			raise ValidationError(f"Invalid question id '{qid}'")

	def _parse(self, qid: str, raw: Any) -> Optional[Question]:
		if not isinstance(raw, dict):
			return None
		try:
			return Question.model_validate({**raw, "id": qid})
		except SchemaError as exc:
			logger.warning("skipping malformed question %s: %s", qid, exc.errors()[:1])
			return None

	def _flatten(self, multi_id: str, raw: Any) -> List[FlattenedSubQuestion]:
		if not isinstance(raw, dict):
			return []
		try:
			composite = CompositeQuestion.model_validate(raw)
		except SchemaError as exc:
			logger.warning("skipping malformed composite question %s: %s", multi_id, exc.errors()[:1])
			return []
		main = strip_markup(composite.main_question)
		out: List[FlattenedSubQuestion] = []
		for index, sub in enumerate(composite.sub_questions):
			if sub is None:
				continue
			out.append(
				FlattenedSubQuestion(
					id=f"{multi_id}-{index}",
					multi_id=multi_id,
					sub_index=index,
					main_question=main,
					question=sub.question,
					question_image=sub.question_image,
					kind=sub.kind,
					options=sub.options,
					correct_answer=sub.correct_answer,
					grade=composite.grade,
					topic=composite.topic,
					subtopic=composite.subtopic,
					difficulty=composite.difficulty,
					timestamp=timestamp_value(composite.created_at),
				)
			)
		return out

	def create(self, question: Question) -> str:
		validate_question(question)
		data = question.to_store()
		data["timestamp"] = _now_ms()
		data["date"] = date.today().isoformat()
		qid = self.tree.push(QUESTIONS, data)
		logger.info("created question %s (%s)", qid, question.kind.value)
		return qid

	def create_multi(self, composite: CompositeQuestion) -> str:
		subs = [s for s in composite.sub_questions if s is not None]
		if not composite.main_question and not subs:
			raise ValidationError("A composite question needs a main question or sub-questions")
		for sub in subs:
			validate_question(sub)
		data = composite.to_store()
		data["createdAt"] = _now_ms()
		multi_id = self.tree.push(MULTI_QUESTIONS, data)
		logger.info("created composite question %s with %d sub-questions", multi_id, len(subs))
		return multi_id

	def list_all(self) -> List[AnyQuestion]:
		records: List[AnyQuestion] = []
		for qid, raw in (self.tree.get(QUESTIONS) or {}).items():
			question = self._parse(qid, raw)
			if question is not None:
				question.timestamp = timestamp_value(question.timestamp)
				records.append(question)
		for multi_id, raw in (self.tree.get(MULTI_QUESTIONS) or {}).items():
			records.extend(self._flatten(multi_id, raw))
		# Newest first; sort is stable so equal timestamps keep storage order
		records.sort(key=lambda r: timestamp_value(r.timestamp), reverse=True)
		return records

	def filter(self, criteria: QuestionFilter, viewer_grade: Optional[str] = "admin") -> List[AnyQuestion]:
		return filter_questions(self.list_all(), criteria, viewer_grade)

	def get(self, qid: str) -> Optional[AnyQuestion]:
		if not qid or "/" in qid:
			return None
		raw = self.tree.get(f"{QUESTIONS}/{qid}")
		if raw is not None:
			return self._parse(qid, raw)
		m = _SUB_ID_RE.match(qid)
		if m is None:
			return None
		index = int(m.group("index"))
		for record in self._flatten(m.group("multi"), self.tree.get(f"{MULTI_QUESTIONS}/{m.group('multi')}")):
			if record.sub_index == index:
				return record
		return None

	def get_multi(self, multi_id: str) -> CompositeQuestion:
		self._check_id(multi_id)
		raw = self.tree.get(f"{MULTI_QUESTIONS}/{multi_id}")
		if not isinstance(raw, dict):
			raise NotFoundError(f"Composite question '{multi_id}' not found")
		return CompositeQuestion.model_validate({**raw, "id": multi_id})

	def _resolve_path(self, qid: str) -> str:
		self._check_id(qid)
		if self.tree.exists(f"{QUESTIONS}/{qid}"):
			return f"{QUESTIONS}/{qid}"
		m = _SUB_ID_RE.match(qid)
		if m is not None:
			multi_id = m.group("multi")
			if not self.tree.exists(f"{MULTI_QUESTIONS}/{multi_id}"):
				raise NotFoundError(f"Composite question '{multi_id}' not found")
			path = f"{MULTI_QUESTIONS}/{multi_id}/subQuestions/{int(m.group('index'))}"
			if self.tree.exists(path):
				return path
		raise NotFoundError(f"Question '{qid}' not found")

	def update(self, qid: str, fields: Mapping[str, Any]) -> AnyQuestion:
		path = self._resolve_path(qid)
		payload: Dict[str, Any] = {k: v for k, v in fields.items() if k not in ("id", "timestamp", "date")}
		if path.startswith(MULTI_QUESTIONS):
			# Sub-questions inherit classification from their composite
			for key in _CLASSIFICATION_KEYS:
				payload.pop(key, None)
		current = self.tree.get(path) or {}
		try:
			merged = QuestionBody.model_validate({**current, **payload})
		except SchemaError as exc:
			raise ValidationError(f"Invalid question fields: {exc.errors()[0]['msg']}") from exc
		validate_question(merged)
		if merged.kind == QuestionKind.TRIVIA:
			# Trivia carries no classification or answer
			for key in TRIVIA_DROPPED_KEYS:
				payload[key] = None
		payload["timestamp"] = _now_ms()
		payload["date"] = date.today().isoformat()
		self.tree.update(path, payload)
		logger.info("updated question %s", qid)
		updated = self.get(qid)
		if updated is None:
			raise NotFoundError(f"Question '{qid}' not found")
		return updated

	def update_multi(self, multi_id: str, composite: CompositeQuestion) -> CompositeQuestion:
		current = self.get_multi(multi_id)
		for sub in composite.sub_questions:
			if sub is not None:
				validate_question(sub)
		data = composite.to_store()
		data["createdAt"] = current.created_at
		data["updatedAt"] = _now_ms()
		self.tree.set(f"{MULTI_QUESTIONS}/{multi_id}", data)
		logger.info("updated composite question %s", multi_id)
		return self.get_multi(multi_id)

	def _delete_images(self, urls: Iterable[str]) -> None:
		if self.images is None:
			return
		for url in urls:
			self.images.delete_quietly(url)

	def delete(self, qid: str) -> None:
		path = self._resolve_path(qid)
		raw = self.tree.get(path)
		try:
			urls = QuestionBody.model_validate(raw).image_urls()
		except SchemaError:
			urls = []
		self._delete_images(urls)
		self.tree.remove(path)
		logger.info("deleted question %s", qid)

	def delete_multi(self, multi_id: str) -> None:
		composite = self.get_multi(multi_id)
		urls: List[str] = []
		for sub in composite.sub_questions:
			if sub is not None:
				urls.extend(sub.image_urls())
		self._delete_images(urls)
		self.tree.remove(f"{MULTI_QUESTIONS}/{multi_id}")
		logger.info("deleted composite question %s", multi_id)
