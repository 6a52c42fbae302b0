"""Custom exceptions for the ministry registry client."""

from typing import Any, Optional


class MinistryError(Exception):
	"""Base exception for ministry client errors."""
	pass


class MinistryConnectionError(MinistryError):
	"""The remote service could not be reached (DNS, connect or timeout)."""
	pass


class MinistryDiscoveryError(MinistryError):
	"""Every candidate path returned not-found; check the server address."""
	pass


class MinistryAuthError(MinistryError):
	"""The remote executed login logic and rejected the credentials."""

	def __init__(self, message: str, status: Optional[int] = None) -> None:
		super().__init__(message)
		self.status = status


class MinistryRemoteError(MinistryError):
	"""A post-login operation returned a non-success status or error envelope."""

	def __init__(self, message: str, status: Optional[int] = None, body: Any = None) -> None:
		super().__init__(message)
		self.status = status
		self.body = body


class MinistryDataError(MinistryError):
	"""Caller-supplied data could not be translated to the wire format."""
	pass
