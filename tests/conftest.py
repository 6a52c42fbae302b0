"""Shared fixtures for the ministry client tests."""

import sys
from pathlib import Path

import pytest

REPO_ROOT = Path(__file__).parent.parent

# The client library is importable without Home Assistant
sys.path.insert(0, str(REPO_ROOT / "custom_components" / "ministry_sync"))
sys.path.insert(1, str(REPO_ROOT))

from ministry.auth import SessionManager  # noqa: E402
from ministry.client import MinistryClient  # noqa: E402
from ministry.endpoints import EndpointRegistry, InMemoryEndpointConfigStore  # noqa: E402
from ministry.models import TransportResponse  # noqa: E402
from ministry.resolver import EndpointResolver  # noqa: E402

BASE_URL = "https://x.test"


class FakeTransport:
	"""Scripted transport keyed by the last path segment of the URL.

	A route maps to a status code, a (status, body) tuple or an exception to
	raise. Unknown paths answer 404.
	"""

	def __init__(self, routes=None):
		self.routes = dict(routes or {})
		self.calls = []

	@property
	def paths(self):
		return [call["path"] for call in self.calls]

	async def send(self, method, url, headers=None, body=None, timeout=15.0):
		path = "/" + url.rsplit("/", 1)[-1]
		self.calls.append({"method": method, "url": url, "path": path, "body": body, "timeout": timeout})
		outcome = self.routes.get(path, 404)
		if isinstance(outcome, Exception):
			raise outcome
		if isinstance(outcome, tuple):
			status, response_body = outcome
			return TransportResponse(status=status, body=response_body, url=url)
		return TransportResponse(status=outcome, body=None, url=url)

	async def __aenter__(self):
		return self

	async def close(self):
		pass


@pytest.fixture
def store():
	return InMemoryEndpointConfigStore({"base_url": BASE_URL})


def make_session_manager(transport, store, candidates):
	registry = EndpointRegistry(store, login_candidates=candidates)
	return SessionManager(registry, EndpointResolver(transport))


def make_client(transport, store):
	return MinistryClient(store=store, transport=transport)
