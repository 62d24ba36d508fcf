from __future__ import annotations
import logging
import re
from datetime import date
from typing import Any, Dict, List, Optional

from .errors import NotFoundError, ValidationError
from .question_store import AnyQuestion, QuestionStore
from .schemas import SetMember
from .tree_store import TreeStore

logger = logging.getLogger(__name__)

QUESTION_SETS = "attachedQuestionSets"

_DATE_PREFIX_RE = re.compile(r"^(\d{4}-\d{2}-\d{2})")


def set_name_for(label: Optional[str], today: Optional[date] = None) -> str:
	"""Set names carry the creation date so the same label on different days makes distinct sets."""
	label = (label or "").strip()
	if not label:
		raise ValidationError("Please enter a valid set name")
	if "/" in label:
		raise ValidationError("Set name cannot contain '/'")
	return f"{(today or date.today()).isoformat()}_{label}"


def set_date(name: str) -> Optional[date]:
	m = _DATE_PREFIX_RE.match(name or "")
	if m is None:
		return None
	try:
		return date.fromisoformat(m.group(1))
	except ValueError:
		return None


def normalize_members(raw: Any) -> List[SetMember]:
	"""Members as {id, order}, sorted by order; bare ids get order 0 and keep storage order."""
	if isinstance(raw, dict):
		items = list(raw.items())
	elif isinstance(raw, list):
		items = [(str(i), v) for i, v in enumerate(raw) if v is not None]
	else:
		return []
	members: List[SetMember] = []
	for key, value in items:
		if isinstance(value, dict):
			if value.get("id") is None:
				continue
			order = value.get("order")
			try:
				members.append(SetMember(key=key, id=str(value["id"]), order=int(order), explicit_order=True))
			except (TypeError, ValueError):
				members.append(SetMember(key=key, id=str(value["id"])))
		elif isinstance(value, (str, int)) and not isinstance(value, bool):
			members.append(SetMember(key=key, id=str(value)))
	members.sort(key=lambda m: m.order)
	return members


class QuestionSetAssembler:
	def __init__(self, tree: TreeStore, questions: QuestionStore) -> None:
		self.tree = tree
		self.questions = questions

	def _path(self, name: str) -> str:
		if not name or "/" in name:
			raise ValidationError(f"Invalid set name '{name}'")
		return f"{QUESTION_SETS}/{name}"

	def _members(self, name: str) -> List[SetMember]:
		raw = self.tree.get(self._path(name))
		if raw is None:
			raise NotFoundError(f"Question set '{name}' not found")
		return normalize_members(raw)

	def add_question_to_set(self, set_label: str, question_id: str, today: Optional[date] = None) -> str:
		name = set_name_for(set_label, today)
		if self.questions.get(question_id) is None:
			raise NotFoundError(f"Question '{question_id}' not found")
		members = normalize_members(self.tree.get(self._path(name)))
		if members and not all(m.explicit_order for m in members):
			# Legacy bare-id set: stay bare so no member carries a lone order field
			self.tree.push(self._path(name), question_id)
		else:
			self.tree.push(self._path(name), {"id": question_id, "order": len(members)})
		logger.info("added question %s to set %s", question_id, name)
		return name

	def member_ids(self, name: str) -> List[str]:
		return [m.id for m in self._members(name)]

	def load_set(self, name: str) -> List[AnyQuestion]:
		loaded: List[AnyQuestion] = []
		for member in self._members(name):
			question = self.questions.get(member.id)
			if question is None:
				logger.debug("set %s references missing question %s", name, member.id)
				continue
			loaded.append(question)
		return loaded

	def delete_member(self, name: str, question_id: str) -> None:
		members = self._members(name)
		target = next((m for m in members if m.id == question_id), None)
		if target is None:
			raise NotFoundError(f"Question '{question_id}' is not in set '{name}'")
		remaining = [m for m in members if m.key != target.key]
		if any(m.explicit_order for m in remaining):
			updates: Dict[str, Any] = {m.key: {"id": m.id, "order": i} for i, m in enumerate(remaining)}
			updates[target.key] = None
			self.tree.update(self._path(name), updates)
		else:
			self.tree.remove(f"{self._path(name)}/{target.key}")
		logger.info("removed question %s from set %s", question_id, name)

	def delete_set(self, name: str) -> None:
		path = self._path(name)
		if self.tree.get(path) is None:
			raise NotFoundError(f"Question set '{name}' not found")
		self.tree.remove(path)
		logger.info("deleted set %s", name)

	def list_sets(self) -> List[Dict[str, Any]]:
		sets = self.tree.get(QUESTION_SETS) or {}
		return [
			{"name": name, "count": len(normalize_members(sets[name]))}
			for name in sorted(sets, reverse=True)
		]

	def search_sets(self, query: Optional[str] = "") -> List[str]:
		names = list((self.tree.get(QUESTION_SETS) or {}).keys())
		q = (query or "").strip().lower()
		if q:
			names = [n for n in names if q in n.lower()]
		# Date-prefixed names sort newest first
		return sorted(names, reverse=True)
