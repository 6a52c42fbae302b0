"""Authentication handler for the ministry registry."""

import logging
from typing import Any, Optional, Union

from .endpoints import EndpointRegistry
from .exceptions import MinistryAuthError, MinistryDiscoveryError
from .models import (
	Credentials, EndpointConfig, LoginMalformed, LoginRejected, LoginSuccess, ProbeResult, Session,
)
from .resolver import EndpointResolver
from .utils import has_failure_marker, unwrap_envelope

_LOGGER = logging.getLogger(__name__)

LOGIN_TIMEOUT = 15.0

# A login object must carry at least one of these to count as accepted
IDENTITY_KEYS = ("UserID", "id", "AuthToken", "token")

LoginOutcome = Union[LoginSuccess, LoginRejected, LoginMalformed]


def credentials_payload(credentials: Credentials) -> dict:
	"""Login request body using the remote's field names."""
	return {"USme": credentials.username, "PPPWZ": credentials.password}


def classify_login_result(body: Any) -> LoginOutcome:
	"""Interpret a login response body.

	The remote has no documented error schema, so rejection is detected
	heuristically: error-marked strings and objects without any identity key.
	"""
	result = unwrap_envelope(body)

	if isinstance(result, str):
		if has_failure_marker(result):
			return LoginRejected(result)
		return LoginMalformed(f"Unexpected text response: {result[:100]}")

	if isinstance(result, dict):
		if not any(result.get(key) for key in IDENTITY_KEYS):
			return LoginRejected("Login response carried no user identifier or token")
		return LoginSuccess(Session.from_remote(result))

	return LoginMalformed(f"Unexpected response type: {type(result).__name__}")


class SessionManager:
	"""Performs login against a deployment whose login path is not fixed."""

	def __init__(self, registry: EndpointRegistry, resolver: EndpointResolver) -> None:
		self.registry = registry
		self.resolver = resolver

	def _target(self, config: EndpointConfig, base_url: Optional[str]) -> EndpointConfig:
		"""Server to talk to and the login hint that applies to it.

		None keeps the stored server. The cached path belongs to the stored
		server only, so it is not offered to a different address.
		"""
		if base_url is None:
			return config
		target = self.registry.target_base_url(base_url)
		cached = config.cached_login_path if target == config.base_url else None
		return EndpointConfig(base_url=target, cached_login_path=cached)

	async def login(self, credentials: Credentials, base_url: Optional[str] = None) -> Session:
		"""Authenticate and return a session.

		The cached login path is tried first, then the registry defaults. The
		first path that does not answer 404 decides the outcome; a rejection
		there is final. The endpoint config is only written after a successful
		login, so a failed attempt against a new address leaves it untouched.

		Args:
			credentials: Username and password
			base_url: Server to log in at; None uses the stored one, empty the default

		Raises:
			MinistryAuthError: the remote rejected the credentials
			MinistryDiscoveryError: every candidate returned 404
			MinistryConnectionError: the remote could not be reached
		"""
		stored = await self.registry.get_config()
		target = self._target(stored, base_url)
		candidates = self.registry.login_order(target)
		_LOGGER.debug(f"Logging in at {target.base_url}, candidates={candidates}")

		found = await self.resolver.resolve(
			target.base_url,
			candidates,
			credentials_payload(credentials),
			timeout=LOGIN_TIMEOUT,
		)
		if found is None:
			_LOGGER.warning(f"No login endpoint found at {target.base_url}")
			raise MinistryDiscoveryError(
				f"No login endpoint found at {target.base_url}; check the server address"
			)

		outcome = classify_login_result(found.result)
		if isinstance(outcome, LoginRejected):
			_LOGGER.warning(f"Login rejected at {found.path} (HTTP {found.status})")
			raise MinistryAuthError(f"Wrong username or password: {outcome.reason}", status=found.status)
		if isinstance(outcome, LoginMalformed):
			_LOGGER.warning(f"Unexpected login response at {found.path} (HTTP {found.status}): {outcome.reason}")
			raise MinistryAuthError(f"Unexpected login response: {outcome.reason}", status=found.status)

		if target.base_url != stored.base_url:
			await self.registry.set_base_url(target.base_url)
		if found.path != target.cached_login_path:
			await self.registry.set_cached_login_path(found.path)

		session = outcome.session
		session.base_url = target.base_url
		_LOGGER.info(f"Logged in via {found.path} as user {session.user_id}")
		return session

	async def discover_login_path(self, base_url: Optional[str] = None) -> ProbeResult:
		"""Probe the login candidates with sentinel credentials.

		Diagnostic only; the endpoint config is not updated.
		"""
		config = await self.registry.get_config()
		target = self._target(config, base_url)
		return await self.resolver.probe(target.base_url, self.registry.login_order(target))
