from __future__ import annotations
import logging
from datetime import datetime, time, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .accounts import AccountService
from .errors import NotFoundError, ValidationError
from .question_sets import QuestionSetAssembler, set_date
from .schemas import Assignment, UserAccount
from .tree_store import TreeStore

logger = logging.getLogger(__name__)

USERS = "users"
# Fixed policy: bare usernames become addresses on this domain
DEFAULT_EMAIL_DOMAIN = "gmail.com"


def normalize_email(value: Optional[str]) -> str:
	v = (value or "").strip()
	if not v:
		raise ValidationError("Please enter a user email")
	return v if "@" in v else f"{v}@{DEFAULT_EMAIL_DOMAIN}"


def _now_iso() -> str:
	return datetime.now(timezone.utc).isoformat()


def _check(value: str, what: str) -> None:
	if not value or "/" in value:
		raise ValidationError(f"Invalid {what} '{value}'")


class AssignmentLedger:
	def __init__(
		self,
		tree: TreeStore,
		accounts: AccountService,
		sets: QuestionSetAssembler,
		default_password: str,
	) -> None:
		self.tree = tree
		self.accounts = accounts
		self.sets = sets
		self.default_password = default_password

	def find_user_by_email(self, email: str) -> Optional[str]:
		for uid, raw in (self.tree.get(USERS) or {}).items():
			if isinstance(raw, dict) and raw.get("email") == email:
				return uid
		return None

	def resolve_or_provision(self, user_or_email: str) -> Tuple[str, bool]:
		"""User id for an id or email; unknown emails get a new account with role "user"."""
		ident = (user_or_email or "").strip()
		if ident and "/" not in ident and "@" not in ident and isinstance(self.tree.get(f"{USERS}/{ident}"), dict):
			return ident, False
		email = normalize_email(ident)
		uid = self.find_user_by_email(email)
		if uid is not None:
			return uid, False
		account = self.accounts.find(email)
		if account is None:
			account = self.accounts.create_account(email, self.default_password, role="user")
			logger.warning("provisioned account %s with the default password", email)
		self.tree.set(f"{USERS}/{account.uid}", {"email": email, "role": "user", "createdAt": _now_iso()})
		return account.uid, True

	def attach(
		self, user_or_email: str, set_name: str, question_ids: Optional[Iterable[str]] = None
	) -> Tuple[str, bool]:
		_check(set_name, "set name")
		if question_ids is None:
			ids: List[str] = [q.id for q in self.sets.load_set(set_name) if q.id]
		else:
			ids = [str(i) for i in question_ids]
		uid, created = self.resolve_or_provision(user_or_email)
		entry = Assignment(attached_at=_now_iso(), question_ids=ids)
		self.tree.set(f"{USERS}/{uid}/assignedSets/{set_name}", entry.to_store())
		logger.info("attached set %s to user %s (%d questions)", set_name, uid, len(ids))
		return uid, created

	def unassign(self, user_id: str, set_name: str) -> None:
		_check(user_id, "user id")
		_check(set_name, "set name")
		self.tree.remove(f"{USERS}/{user_id}/assignedSets/{set_name}")

	def list_assignments(self, user_id: str) -> Dict[str, Assignment]:
		_check(user_id, "user id")
		raw = self.tree.get(f"{USERS}/{user_id}")
		if not isinstance(raw, dict):
			raise NotFoundError(f"User '{user_id}' not found")
		return UserAccount.model_validate(raw).assigned_sets

	def backfill_attached_at(self) -> int:
		"""Give every legacy assignment an attachedAt, dated from the set-name prefix when it has one."""
		migrated = 0
		for uid, raw in (self.tree.get(USERS) or {}).items():
			if not isinstance(raw, dict) or not isinstance(raw.get("assignedSets"), dict):
				continue
			updates: Dict[str, Any] = {}
			for set_name, entry in raw["assignedSets"].items():
				if isinstance(entry, dict) and entry.get("attachedAt"):
					continue
				day = set_date(set_name)
				stamp = datetime.combine(day, time.min, tzinfo=timezone.utc).isoformat() if day else _now_iso()
				if isinstance(entry, dict):
					updates[f"{set_name}/attachedAt"] = stamp
				else:
					updates[set_name] = {"attachedAt": stamp}
			if updates:
				self.tree.update(f"{USERS}/{uid}/assignedSets", updates)
				migrated += len(updates)
		if migrated:
			logger.info("backfilled attachedAt on %d assignments", migrated)
		return migrated
