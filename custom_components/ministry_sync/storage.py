"""Persistent endpoint config for the Ministry Sync integration."""

import asyncio
import logging
from typing import Any, Dict, Optional

from homeassistant.core import HomeAssistant
from homeassistant.helpers.storage import Store

from .const import DOMAIN
from .ministry.endpoints import EndpointConfigStore

_LOGGER = logging.getLogger(__name__)

STORAGE_VERSION = 1
STORAGE_KEY = "ministry_sync_endpoints"


class HomeAssistantEndpointStore(EndpointConfigStore):
	"""Endpoint config store persisted under .storage/ via Home Assistant Store.

	One store is shared by every config entry, so the base URL override and
	the login path hint apply to the whole installation.
	"""

	def __init__(self, hass: HomeAssistant) -> None:
		self.hass = hass
		self._store = Store(hass, STORAGE_VERSION, STORAGE_KEY)
		self._data: Optional[Dict[str, Any]] = None
		self._lock = asyncio.Lock()

	async def _async_load(self) -> Dict[str, Any]:
		if self._data is None:
			stored = await self._store.async_load()
			self._data = dict(stored or {})
		return self._data

	async def async_get(self, key: str) -> Optional[str]:
		async with self._lock:
			data = await self._async_load()
			return data.get(key)

	async def async_set(self, key: str, value: str) -> None:
		async with self._lock:
			data = await self._async_load()
			if data.get(key) == value:
				return
			data[key] = value
			await self._store.async_save(data)
			_LOGGER.debug(f"Saved endpoint setting {key}")

	async def async_remove(self, key: str) -> None:
		async with self._lock:
			data = await self._async_load()
			if key not in data:
				return
			data.pop(key)
			await self._store.async_save(data)
			_LOGGER.debug(f"Removed endpoint setting {key}")


def get_endpoint_store(hass: HomeAssistant) -> HomeAssistantEndpointStore:
	"""Return the shared endpoint store, creating it on first use."""
	key = f"{DOMAIN}_endpoint_store"
	store = hass.data.get(key)
	if store is None:
		store = HomeAssistantEndpointStore(hass)
		hass.data[key] = store
	return store
