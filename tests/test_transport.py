"""Tests for the HTTP transport."""

import asyncio
from unittest.mock import MagicMock

import aiohttp
import pytest

from ministry.exceptions import MinistryConnectionError
from ministry.transport import DEFAULT_HEADERS, Transport


class MockResponse:
	"""Simple mock response class."""
	def __init__(self, status, text_data="", text_error=None):
		self.status = status
		self._text_data = text_data
		self._text_error = text_error
		self.headers = {}

	async def text(self):
		if self._text_error:
			raise self._text_error
		return self._text_data

	async def __aenter__(self):
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		pass


def _transport_returning(response):
	session = MagicMock()
	session.request = MagicMock(return_value=response)
	return Transport(session), session


async def test_parses_json_body():
	transport, session = _transport_returning(MockResponse(200, '{"d": {"UserID": "7"}}'))

	response = await transport.send("POST", "https://x.test/Login", body={"a": 1})

	assert response.status == 200
	assert response.ok
	assert response.body == {"d": {"UserID": "7"}}
	args, kwargs = session.request.call_args
	assert args == ("POST", "https://x.test/Login")
	assert kwargs["json"] == {"a": 1}
	assert kwargs["headers"]["Content-Type"] == DEFAULT_HEADERS["Content-Type"]
	assert kwargs["headers"]["Accept"] == "application/json"


async def test_plain_text_and_empty_bodies():
	transport, _ = _transport_returning(MockResponse(200, "Login Failed"))
	assert (await transport.send("POST", "https://x.test/Login")).body == "Login Failed"

	transport, _ = _transport_returning(MockResponse(200, "   "))
	assert (await transport.send("POST", "https://x.test/Login")).body is None


async def test_non_2xx_is_returned_as_data():
	transport, _ = _transport_returning(MockResponse(404, "<html>Not Found</html>"))

	response = await transport.send("POST", "https://x.test/Missing")

	assert response.status == 404
	assert not response.ok
	assert response.body == "<html>Not Found</html>"


async def test_extra_headers_override_defaults():
	transport, session = _transport_returning(MockResponse(200, "{}"))

	await transport.send("POST", "https://x.test/Login", headers={"Accept": "text/plain"})

	headers = session.request.call_args.kwargs["headers"]
	assert headers["Accept"] == "text/plain"
	assert headers["User-Agent"] == DEFAULT_HEADERS["User-Agent"]


async def test_timeout_is_applied_to_the_request():
	transport, session = _transport_returning(MockResponse(200, "{}"))

	await transport.send("POST", "https://x.test/Login", timeout=7)

	client_timeout = session.request.call_args.kwargs["timeout"]
	assert client_timeout.total == 7
	assert client_timeout.connect == 7


async def test_connection_error_raises_transport_failure():
	session = MagicMock()
	session.request = MagicMock(side_effect=aiohttp.ClientConnectionError("dns failure"))
	transport = Transport(session)

	with pytest.raises(MinistryConnectionError, match="dns failure"):
		await transport.send("POST", "https://x.test/Login")


async def test_timeout_raises_transport_failure():
	transport, _ = _transport_returning(MockResponse(200, text_error=asyncio.TimeoutError()))

	with pytest.raises(MinistryConnectionError, match="timed out"):
		await transport.send("POST", "https://x.test/Login", timeout=3)


async def test_relative_url_is_rejected():
	transport, session = _transport_returning(MockResponse(200, "{}"))

	with pytest.raises(ValueError):
		await transport.send("POST", "/Login")
	session.request.assert_not_called()


async def test_injected_session_is_not_closed():
	session = MagicMock()
	transport = Transport(session)

	await transport.close()

	session.close.assert_not_called()
