from __future__ import annotations
import logging
import uuid
from typing import Optional

from passlib.context import CryptContext
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import ConflictError, UpstreamError, ValidationError
from .models import AuthAccount

logger = logging.getLogger(__name__)

logging.getLogger('passlib').setLevel(logging.ERROR)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

ADMIN_ROLES = ("admin", "viewer")


def verify_password(plain_password: str, hashed_password: str) -> bool:
	return pwd_context.verify(plain_password, hashed_password)


class AccountService:
	"""Email/password accounts: quiz users, admins and grade-scoped viewers."""

	def __init__(self, db: Session) -> None:
		self.db = db

	def find(self, email: str) -> Optional[AuthAccount]:
		try:
			return self.db.query(AuthAccount).filter(AuthAccount.email == email).first()
		except SQLAlchemyError as exc:
			raise UpstreamError("Account lookup failed") from exc

	def create_account(self, email: str, password: str, *, role: str = "user", grade: str = "admin") -> AuthAccount:
		email = (email or "").strip()
		if not email or not password:
			raise ValidationError("email and password are required")
		if self.find(email) is not None:
			raise ConflictError(f"account '{email}' already exists")
		row = AuthAccount(
			email=email,
			uid=uuid.uuid4().hex,
			password_hash=pwd_context.hash(password),
			role=role,
			grade=grade,
		)
		try:
			self.db.add(row)
			self.db.commit()
		except SQLAlchemyError as exc:
			self.db.rollback()
			logger.exception("account creation failed for %s", email)
			raise UpstreamError(f"Failed to create account '{email}'") from exc
		return row

	def authenticate(self, email: str, password: str) -> Optional[AuthAccount]:
		row = self.find(email)
		if row is None or not verify_password(password, row.password_hash):
			return None
		return row

	def ensure_seed_admin(self, username: Optional[str], password: Optional[str]) -> None:
		if not username or not password or self.find(username) is not None:
			return
		self.create_account(username, password, role="admin", grade="admin")
		logger.info("seeded admin account %s", username)
