"""The Ministry Sync integration."""

import asyncio
import logging

from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed, ConfigEntryNotReady
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .config_flow import entry_value
from .const import CONF_BASE_URL, CONF_PASSWORD, CONF_USERNAME, DOMAIN, SETUP_TIMEOUT_SECONDS
from .ministry.client import MinistryClient
from .ministry.exceptions import (
	MinistryAuthError,
	MinistryConnectionError,
	MinistryDiscoveryError,
)
from .services import async_register_services, async_unregister_services
from .storage import get_endpoint_store

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
	"""Set up Ministry Sync from a config entry."""
	_LOGGER.debug("Setting up Ministry Sync integration")

	client = MinistryClient(async_get_clientsession(hass), get_endpoint_store(hass))

	try:
		await asyncio.wait_for(
			client.login(
				entry_value(entry, CONF_USERNAME),
				entry_value(entry, CONF_PASSWORD),
				base_url=entry_value(entry, CONF_BASE_URL, ""),
			),
			timeout=SETUP_TIMEOUT_SECONDS,
		)
	except MinistryAuthError as err:
		raise ConfigEntryAuthFailed(str(err)) from err
	except asyncio.TimeoutError:
		_LOGGER.error(f"Ministry login timed out after {SETUP_TIMEOUT_SECONDS} seconds")
		raise ConfigEntryNotReady("Login timeout") from None
	except (MinistryConnectionError, MinistryDiscoveryError) as err:
		_LOGGER.error("Failed to log in to the ministry registry: %s", err)
		raise ConfigEntryNotReady(str(err)) from err

	hass.data.setdefault(DOMAIN, {})
	hass.data[DOMAIN][entry.entry_id] = client

	entry.async_on_unload(entry.add_update_listener(async_reload_entry))
	await async_register_services(hass)

	return True


async def async_unload_entry(hass: HomeAssistant, entry: ConfigEntry) -> bool:
	"""Unload a config entry."""
	_LOGGER.debug("Unloading Ministry Sync integration")

	hass.data[DOMAIN].pop(entry.entry_id, None)

	# Remove services if this was the last entry
	if not hass.data[DOMAIN]:
		await async_unregister_services(hass)

	return True


async def async_reload_entry(hass: HomeAssistant, entry: ConfigEntry) -> None:
	"""Reload config entry."""
	await hass.config_entries.async_reload(entry.entry_id)
