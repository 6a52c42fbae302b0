"""Endpoint registry: candidate paths and the persisted endpoint config."""

import logging
from abc import ABC, abstractmethod
from typing import Dict, Iterable, List, Optional

from .models import EndpointConfig
from .utils import normalise_base_url, normalise_path

_LOGGER = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://mobile.moe.gov.om/Sakhr.Elasip.Portal.Mobility/Services/MTletIt.svc"

# Fixed keys in the key-value store
KEY_BASE_URL = "base_url"
KEY_CACHED_LOGIN_PATH = "cached_login_path"

# Most-likely-first, reflecting the deployments seen so far
LOGIN_CANDIDATES: List[str] = [
	"/Login",
	"/UserLogin",
	"/LoginUser",
	"/MobileLogin",
]

# Some deployments expose the class filter under a different name
CLASS_FILTER_CANDIDATES: List[str] = [
	"/GetStudentAbsenceFilter",
	"/GetAbsenceFilter",
	"/GetTeacherClasses",
]

ABSENCE_DETAILS_PATH = "/GetStudentAbsenceDetails"
SUBMIT_ABSENCE_PATH = "/SubmitStudentAbsenceDetails"
SUBMIT_GRADES_PATH = "/SubmitStudentMarksDetails"


def ordered_candidates(preferred: Optional[str], defaults: Iterable[str]) -> List[str]:
	"""Put the preferred path first, then the defaults, without duplicates."""
	ordered: List[str] = []
	seen = set()
	for path in ([preferred] if preferred else []) + list(defaults):
		path = normalise_path(path)
		if path in seen:
			continue
		seen.add(path)
		ordered.append(path)
	return ordered


class EndpointConfigStore(ABC):
	"""Key-value store holding the base URL override and login path hint."""

	@abstractmethod
	async def async_get(self, key: str) -> Optional[str]:
		"""Return the stored value or None when the key is absent."""

	@abstractmethod
	async def async_set(self, key: str, value: str) -> None:
		"""Store a value under a key."""

	@abstractmethod
	async def async_remove(self, key: str) -> None:
		"""Remove a key if present."""


class InMemoryEndpointConfigStore(EndpointConfigStore):
	"""Store that lives for the lifetime of the process."""

	def __init__(self, initial: Optional[Dict[str, str]] = None) -> None:
		self._data: Dict[str, str] = dict(initial or {})

	async def async_get(self, key: str) -> Optional[str]:
		return self._data.get(key)

	async def async_set(self, key: str, value: str) -> None:
		self._data[key] = value

	async def async_remove(self, key: str) -> None:
		self._data.pop(key, None)


class EndpointRegistry:
	"""Candidate paths per operation plus the persisted endpoint config."""

	def __init__(
		self,
		store: EndpointConfigStore,
		default_base_url: str = DEFAULT_BASE_URL,
		login_candidates: Optional[List[str]] = None,
		class_filter_candidates: Optional[List[str]] = None,
	) -> None:
		self.store = store
		self.default_base_url = normalise_base_url(default_base_url)
		self.login_candidates = list(login_candidates or LOGIN_CANDIDATES)
		self.class_filter_candidates = list(class_filter_candidates or CLASS_FILTER_CANDIDATES)

	async def get_config(self) -> EndpointConfig:
		"""Read the endpoint config, falling back to compiled-in defaults."""
		base_url = await self.store.async_get(KEY_BASE_URL)
		cached = await self.store.async_get(KEY_CACHED_LOGIN_PATH)
		return EndpointConfig(
			base_url=normalise_base_url(base_url) or self.default_base_url,
			cached_login_path=cached or None,
		)

	def target_base_url(self, base_url: Optional[str]) -> str:
		"""Normalise a requested server address; empty means the default."""
		return normalise_base_url(base_url or "") or self.default_base_url

	async def set_cached_login_path(self, path: str) -> None:
		path = normalise_path(path)
		await self.store.async_set(KEY_CACHED_LOGIN_PATH, path)
		_LOGGER.debug(f"Cached login path {path}")

	async def clear_cached_login_path(self) -> None:
		await self.store.async_remove(KEY_CACHED_LOGIN_PATH)

	async def set_base_url(self, base_url: Optional[str]) -> None:
		"""Override the base URL; an empty value restores the default.

		The cached login path belongs to the old server, so it is dropped when
		the address changes.
		"""
		current = await self.get_config()
		new_url = normalise_base_url(base_url or "")
		if new_url:
			await self.store.async_set(KEY_BASE_URL, new_url)
		else:
			await self.store.async_remove(KEY_BASE_URL)
			new_url = self.default_base_url
		if new_url != current.base_url:
			_LOGGER.info(f"Base URL changed to {new_url}; clearing cached login path")
			await self.clear_cached_login_path()

	def login_order(self, config: EndpointConfig) -> List[str]:
		"""Login candidates with the cached path tried first."""
		return ordered_candidates(config.cached_login_path, self.login_candidates)
