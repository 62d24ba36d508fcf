from __future__ import annotations


class AdminError(Exception):
	"""Base class for errors surfaced to the admin as a short message."""

	status_code = 500

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class ValidationError(AdminError):
	status_code = 400


class NotFoundError(AdminError):
	status_code = 404


class ConflictError(AdminError):
	status_code = 409


class UpstreamError(AdminError):
	"""A database, storage or generative-AI backend call failed."""

	status_code = 502
