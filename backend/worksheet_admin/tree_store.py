from __future__ import annotations
import json
import logging
import os
import threading
import time
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from .errors import UpstreamError, ValidationError
from .models import TreeDocument

logger = logging.getLogger(__name__)

_push_lock = threading.Lock()
_last_push = [0, 0]


def new_push_key() -> str:
	"""Time-ordered key; keys created by one process sort in creation order."""
	with _push_lock:
		now = int(time.time() * 1000)
		if now <= _last_push[0]:
			now = _last_push[0]
			_last_push[1] += 1
		else:
			_last_push[0] = now
			_last_push[1] = 0
		seq = _last_push[1]
	return f"k{now:012x}{seq:04x}{os.urandom(2).hex()}"


def split_path(path: str) -> List[str]:
	return [p for p in (path or "").split("/") if p]


def iter_slots(value: Any) -> List[Tuple[int, Any]]:
	"""(index, item) pairs of a sparse array stored either as a list with gaps or as an index-keyed dict."""
	if isinstance(value, list):
		return [(i, v) for i, v in enumerate(value) if v is not None]
	if isinstance(value, dict):
		out: List[Tuple[int, Any]] = []
		for k, v in value.items():
			try:
				idx = int(k)
			except (TypeError, ValueError):
				continue
			if v is not None:
				out.append((idx, v))
		return sorted(out, key=lambda kv: kv[0])
	return []


def _index(part: str) -> Optional[int]:
	try:
		idx = int(part)
	except ValueError:
		return None
	return idx if idx >= 0 else None


def _plain(value: Any) -> Any:
	# Deep copy that also rejects values JSON cannot hold
	try:
		return json.loads(json.dumps(value))
	except (TypeError, ValueError) as exc:
		raise ValidationError(f"value is not JSON serializable: {exc}") from exc


def _prune(value: Any) -> Any:
	# Empty containers and null children disappear; list gaps survive except at the tail
	if isinstance(value, dict):
		out: Dict[str, Any] = {}
		for k, v in value.items():
			v = _prune(v)
			if v is not None:
				out[str(k)] = v
		return out or None
	if isinstance(value, list):
		items = [_prune(v) for v in value]
		while items and items[-1] is None:
			items.pop()
		return items or None
	return value


def _descend(node: Any, parts: List[str]) -> Any:
	for part in parts:
		if isinstance(node, dict):
			node = node.get(part)
		elif isinstance(node, list):
			idx = _index(part)
			node = node[idx] if idx is not None and idx < len(node) else None
		else:
			return None
		if node is None:
			return None
	return node


def _assign(node: Any, parts: List[str], value: Any) -> Any:
	head, rest = parts[0], parts[1:]
	if isinstance(node, list):
		idx = _index(head)
		if idx is not None:
			child = node[idx] if idx < len(node) else None
			if idx >= len(node):
				node.extend([None] * (idx + 1 - len(node)))
			node[idx] = _assign(child, rest, value) if rest else value
			return node
		# A non-index key turns the array into a plain mapping
		node = {str(i): v for i, v in enumerate(node) if v is not None}
	if not isinstance(node, dict):
		node = {}
	node[head] = _assign(node.get(head), rest, value) if rest else value
	return node


class TreeStore:
	"""Hierarchical key-value store addressed by slash-separated paths.

	The first path segment names a collection and the second a document; each
	document is one JSON row, and deeper segments navigate inside it.
	"""

	def __init__(self, session: Session) -> None:
		self.session = session

	@contextmanager
	def _guard(self, op: str, path: str) -> Iterator[None]:
		try:
			yield
		except SQLAlchemyError as exc:
			self.session.rollback()
			logger.exception("tree store %s failed for %s", op, path)
			raise UpstreamError(f"Database {op} failed for '{path}'") from exc

	def _read(self, collection: str, key: str) -> Any:
		row = self.session.get(TreeDocument, (collection, key))
		return json.loads(row.payload) if row is not None else None

	def _write(self, collection: str, key: str, value: Any) -> None:
		value = _prune(value)
		row = self.session.get(TreeDocument, (collection, key))
		if value is None:
			if row is not None:
				self.session.delete(row)
			return
		payload = json.dumps(value)
		if row is None:
			self.session.add(TreeDocument(collection=collection, key=key, payload=payload))
		else:
			row.payload = payload

	def _collection(self, collection: str) -> Optional[Dict[str, Any]]:
		rows = self.session.execute(
			select(TreeDocument).where(TreeDocument.collection == collection).order_by(TreeDocument.key)
		).scalars().all()
		return {r.key: json.loads(r.payload) for r in rows} or None

	def get(self, path: str) -> Any:
		parts = split_path(path)
		if not parts:
			raise ValidationError("path is required")
		with self._guard("get", path):
			if len(parts) == 1:
				return self._collection(parts[0])
			return _descend(self._read(parts[0], parts[1]), parts[2:])

	def exists(self, path: str) -> bool:
		return self.get(path) is not None

	def set(self, path: str, value: Any) -> None:
		parts = split_path(path)
		if not parts:
			raise ValidationError("path is required")
		value = _plain(value)
		with self._guard("set", path):
			collection = parts[0]
			if len(parts) == 1:
				rows = self.session.execute(
					select(TreeDocument).where(TreeDocument.collection == collection)
				).scalars().all()
				for row in rows:
					self.session.delete(row)
				self.session.flush()
				for key, child in (value or {}).items():
					self._write(collection, str(key), child)
			elif len(parts) == 2:
				self._write(collection, parts[1], value)
			else:
				doc = self._read(collection, parts[1])
				self._write(collection, parts[1], _assign(doc, parts[2:], value))
			self.session.commit()

	def update(self, path: str, values: Mapping[str, Any]) -> None:
		"""Multi-path update: every key of ``values`` is a path relative to ``path``."""
		base = split_path(path)
		docs: Dict[Tuple[str, str], Any] = {}
		with self._guard("update", path):
			for rel, value in values.items():
				full = base + split_path(rel)
				if len(full) < 2:
					raise ValidationError(f"update target '{'/'.join(full)}' is not a document")
				ident = (full[0], full[1])
				if ident not in docs:
					docs[ident] = self._read(*ident)
				if len(full) == 2:
					docs[ident] = _plain(value)
				else:
					docs[ident] = _assign(docs[ident], full[2:], _plain(value))
			for (collection, key), doc in docs.items():
				self._write(collection, key, doc)
			self.session.commit()

	def remove(self, path: str) -> None:
		self.set(path, None)

	def push(self, path: str, value: Any) -> str:
		key = new_push_key()
		self.set("/".join(split_path(path) + [key]), value)
		return key
