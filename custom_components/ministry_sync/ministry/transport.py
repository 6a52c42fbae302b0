"""HTTP transport for the ministry client."""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

import aiohttp

from .exceptions import MinistryConnectionError
from .models import TransportResponse

_LOGGER = logging.getLogger(__name__)

# The remote only accepts requests that look like they come from the mobile app
DEFAULT_HEADERS = {
	"Content-Type": "application/json; charset=UTF-8",
	"Accept": "application/json",
	"User-Agent": "Mozilla/5.0 (iPhone; CPU iPhone OS 17_0 like Mac OS X) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.0 Mobile/15E148 Safari/604.1",
}

DEFAULT_TIMEOUT = 15.0


def _parse_body(text: str) -> Any:
	"""Parse a response body as JSON when possible, else return the text."""
	if not text or not text.strip():
		return None
	try:
		return json.loads(text)
	except json.JSONDecodeError:
		# Plain-text bodies are returned as-is
		return text


class Transport:
	"""Issues single HTTP requests and reports status and parsed body."""

	def __init__(self, session: Optional[aiohttp.ClientSession] = None):
		"""Initialise transport.

		Args:
			session: Optional aiohttp session. If None, one is created on first use.
		"""
		self._session = session
		self._own_session = session is None

	async def __aenter__(self):
		self._ensure_session()
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		await self.close()

	def _ensure_session(self) -> aiohttp.ClientSession:
		if self._session is None:
			self._session = aiohttp.ClientSession()
			self._own_session = True
		return self._session

	async def close(self) -> None:
		if self._own_session and self._session:
			await self._session.close()
			self._session = None

	async def send(
		self,
		method: str,
		url: str,
		headers: Optional[Dict[str, str]] = None,
		body: Any = None,
		timeout: float = DEFAULT_TIMEOUT,
	) -> TransportResponse:
		"""Send one request.

		Args:
			method: HTTP method
			url: Absolute URL
			headers: Extra headers merged over the defaults
			body: JSON-serialisable payload
			timeout: Seconds bounding connect and read

		Returns:
			TransportResponse for any HTTP status

		Raises:
			MinistryConnectionError: on DNS, connection or timeout failures
		"""
		if not url.startswith(("http://", "https://")):
			raise ValueError(f"URL must be absolute: {url!r}")

		request_headers = DEFAULT_HEADERS.copy()
		if headers:
			request_headers.update(headers)

		session = self._ensure_session()
		client_timeout = aiohttp.ClientTimeout(total=timeout, connect=timeout, sock_read=timeout)

		try:
			async with session.request(
				method,
				url,
				headers=request_headers,
				json=body,
				timeout=client_timeout,
			) as resp:
				text = await resp.text()
				_LOGGER.debug(f"{method} {url} -> HTTP {resp.status}")
				return TransportResponse(status=resp.status, body=_parse_body(text), url=url)
		except asyncio.TimeoutError as e:
			raise MinistryConnectionError(f"Request to {url} timed out after {timeout:.0f}s") from e
		except aiohttp.ClientError as e:
			raise MinistryConnectionError(f"Connection error: {e}") from e
