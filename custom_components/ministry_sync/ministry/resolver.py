"""Endpoint resolver: sequential probing of candidate paths.

The remote only answers 404 when a path is entirely absent. Any other status,
including 401 or 500, proves the path exists, so discovery does not need valid
credentials.
"""

import logging
from typing import Any, Awaitable, Callable, Iterable, Optional, Union

from .exceptions import MinistryConnectionError
from .models import Failed, Found, NotFound, ProbeResult, TransportResponse
from .transport import Transport
from .utils import build_url

_LOGGER = logging.getLogger(__name__)

NOT_FOUND_STATUS = 404
PROBE_TIMEOUT = 10.0

# Syntactically valid login payload that can never authenticate
SENTINEL_PAYLOAD = {"USme": "__probe__", "PPPWZ": "__probe__"}

Attempt = Union[NotFound, Found, Failed]


def classify_response(path: str, response: TransportResponse) -> Attempt:
	"""Anything but 404 means the path exists."""
	if response.status == NOT_FOUND_STATUS:
		return NotFound(path)
	return Found(path, response.status, response.body)


async def walk_candidates(
	candidates: Iterable[str],
	attempt: Callable[[str], Awaitable[Attempt]],
) -> Optional[Union[Found, Failed]]:
	"""Try candidates in order and stop on the first Found or Failed.

	Returns None when every candidate was NotFound.
	"""
	for path in candidates:
		outcome = await attempt(path)
		if isinstance(outcome, NotFound):
			_LOGGER.debug(f"Candidate {path} not found, trying next")
			continue
		return outcome
	return None


class EndpointResolver:
	"""Finds which candidate path exists at a deployment."""

	def __init__(self, transport: Transport) -> None:
		self.transport = transport

	async def resolve(
		self,
		base_url: str,
		candidates: Iterable[str],
		payload: Any,
		timeout: float = PROBE_TIMEOUT,
	) -> Optional[Found]:
		"""POST the payload to each candidate until one exists.

		Returns:
			Found for the first non-404 candidate, None if all returned 404

		Raises:
			MinistryConnectionError: on the first transport failure
		"""
		async def _attempt(path: str) -> Attempt:
			try:
				response = await self.transport.send(
					"POST", build_url(base_url, path), body=payload, timeout=timeout
				)
			except MinistryConnectionError as e:
				return Failed(path, e)
			return classify_response(path, response)

		outcome = await walk_candidates(candidates, _attempt)
		if isinstance(outcome, Failed):
			_LOGGER.error(f"Aborting endpoint search at {outcome.path}: {outcome.error}")
			raise outcome.error
		return outcome

	async def probe(
		self,
		base_url: str,
		candidates: Iterable[str],
		payload: Optional[Any] = None,
	) -> ProbeResult:
		"""Discover which candidate exists using sentinel credentials."""
		found = await self.resolve(
			base_url,
			candidates,
			SENTINEL_PAYLOAD if payload is None else payload,
			timeout=PROBE_TIMEOUT,
		)
		if found is None:
			return ProbeResult(
				found=False,
				status_code=NOT_FOUND_STATUS,
				message=f"No endpoint found at {base_url}",
			)
		_LOGGER.info(f"Resolved endpoint {found.path} (HTTP {found.status})")
		return ProbeResult(
			found=True,
			status_code=found.status,
			resolved_path=found.path,
			message=f"Endpoint {found.path} answered with HTTP {found.status}",
		)
