from __future__ import annotations


class RemediationError(Exception):
	"""Base for errors the HTTP layer turns into a status code and a detail message."""
	status_code = 500

	def __init__(self, message: str) -> None:
		super().__init__(message)
		self.message = message


class ValidationError(RemediationError):
	status_code = 400


class NoQuestionsInScope(ValidationError):
	pass


class NotFound(RemediationError):
	status_code = 404


class PersistenceError(RemediationError):
	status_code = 500


class ContentGenerationFailure(RemediationError):
	# Raised inside the content generator only; callers always receive fallback content
	status_code = 502
