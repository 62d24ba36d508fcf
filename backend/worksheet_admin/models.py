from __future__ import annotations
from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from .db import Base


class TreeDocument(Base):
	__tablename__ = "tree_documents"
	# One row per second-level node, e.g. questions/<id> or users/<id>
	collection = Column(String(128), primary_key=True)
	key = Column(String(256), primary_key=True)
	payload = Column(Text, nullable=False)  # JSON document
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class AuthAccount(Base):
	__tablename__ = "auth_accounts"
	# Primary key is the login email (or admin username)
	email = Column(String(256), primary_key=True, index=True)
	uid = Column(String(64), unique=True, nullable=False)
	password_hash = Column(String(256), nullable=False)
	# "admin", "viewer" or "user"; only admins and viewers may sign in to this tool
	role = Column(String(32), default="user", nullable=False)
	# "admin" for full access, otherwise a grade code limiting what a viewer sees
	grade = Column(String(32), default="admin", nullable=False)
	created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
	updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)
