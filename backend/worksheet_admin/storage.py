from __future__ import annotations
import logging
import time
from typing import Any, Optional

from supabase import Client, create_client

from .errors import UpstreamError, ValidationError
from .settings import Settings

logger = logging.getLogger(__name__)


class ImageStorage:
	"""Question images in a public Supabase storage bucket."""

	def __init__(self, client: Client, bucket: str = "questions") -> None:
		self._client = client
		self.bucket = bucket

	@classmethod
	def from_settings(cls, settings: Settings) -> "ImageStorage":
		if not settings.supabase_url or not settings.supabase_key:
			raise UpstreamError("SUPABASE_URL and SUPABASE_KEY are not configured")
		client = create_client(settings.supabase_url.strip(), settings.supabase_key.strip())
		return cls(client, settings.storage_bucket)

	def path_from_url(self, url: Optional[str]) -> Optional[str]:
		if not url:
			return None
		marker = f"public/{self.bucket}/"
		if marker in url:
			return url.split(marker, 1)[1].split("?", 1)[0] or None
		# Bare file names are stored paths already
		return url if "/" not in url else url.rsplit("/", 1)[-1]

	def upload(self, filename: str, data: bytes, content_type: Optional[str] = None) -> str:
		if not data:
			raise ValidationError("image file is empty")
		ext = filename.rsplit(".", 1)[-1].lower() if "." in filename else "bin"
		path = f"{int(time.time() * 1000)}.{ext}"
		options: dict[str, Any] = {}
		if content_type:
			options["content-type"] = content_type
		try:
			self._client.storage.from_(self.bucket).upload(path, data, options)
			return self._client.storage.from_(self.bucket).get_public_url(path)
		except Exception as exc:
			logger.exception("image upload failed for %s", filename)
			raise UpstreamError(f"Failed to upload image '{filename}'") from exc

	def delete(self, url: Optional[str]) -> None:
		path = self.path_from_url(url)
		if not path:
			return
		try:
			self._client.storage.from_(self.bucket).remove([path])
		except Exception as exc:
			raise UpstreamError(f"Failed to delete image '{path}'") from exc

	def delete_quietly(self, url: Optional[str]) -> bool:
		"""Best-effort delete; failures are logged and reported as False."""
		try:
			self.delete(url)
			return True
		except UpstreamError as exc:
			logger.warning("image cleanup skipped: %s", exc.message)
			return False
