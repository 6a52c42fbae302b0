"""Config flow for Ministry Sync integration."""

import logging
from typing import Any, Dict, Optional

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import HomeAssistant, callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .const import CONF_BASE_URL, CONF_PASSWORD, CONF_USERNAME, DOMAIN
from .ministry.endpoints import DEFAULT_BASE_URL
from .ministry.exceptions import (
	MinistryAuthError,
	MinistryConnectionError,
	MinistryDiscoveryError,
)
from .storage import get_endpoint_store

_LOGGER = logging.getLogger(__name__)


def entry_value(entry: config_entries.ConfigEntry, key: str, default=None):
	"""Read a setting, letting options override the original entry data."""
	return entry.options.get(key, entry.data.get(key, default))


def _credentials_schema(username: str = "", base_url: str = DEFAULT_BASE_URL) -> vol.Schema:
	return vol.Schema(
		{
			vol.Required(CONF_USERNAME, default=username): str,
			vol.Required(CONF_PASSWORD): str,
			vol.Optional(CONF_BASE_URL, default=base_url): str,
		}
	)


async def _test_credentials(hass: HomeAssistant, user_input: Dict[str, Any]) -> None:
	"""Log in once against the requested server; raises on failure.

	The stored server address only changes if this login succeeds.
	"""
	# Lazy import to avoid heavy imports at module load time
	from .ministry.client import MinistryClient

	client = MinistryClient(async_get_clientsession(hass), get_endpoint_store(hass))
	await client.login(
		user_input[CONF_USERNAME],
		user_input[CONF_PASSWORD],
		base_url=user_input.get(CONF_BASE_URL, ""),
	)
	_LOGGER.info("Successfully validated ministry credentials")


async def _validate(hass: HomeAssistant, user_input: Dict[str, Any]) -> Dict[str, str]:
	"""Map login failures to form errors."""
	errors: Dict[str, str] = {}
	try:
		await _test_credentials(hass, user_input)
	except MinistryAuthError:
		errors["base"] = "invalid_auth"
	except MinistryDiscoveryError:
		errors[CONF_BASE_URL] = "endpoint_not_found"
	except MinistryConnectionError:
		errors["base"] = "cannot_connect"
	except Exception:  # pylint: disable=broad-except
		_LOGGER.exception("Unexpected exception")
		errors["base"] = "unknown"
	return errors


class MinistrySyncConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
	"""Handle a config flow for Ministry Sync."""

	VERSION = 1

	async def async_step_user(
		self, user_input: Optional[Dict[str, Any]] = None
	) -> FlowResult:
		"""Handle the initial step."""
		errors: Dict[str, str] = {}

		if user_input is not None:
			errors = await _validate(self.hass, user_input)
			if not errors:
				await self.async_set_unique_id(user_input[CONF_USERNAME])
				self._abort_if_unique_id_configured()

				return self.async_create_entry(
					title=f"Ministry ({user_input[CONF_USERNAME]})",
					data=user_input,
				)

		username = (user_input or {}).get(CONF_USERNAME, "")
		base_url = (user_input or {}).get(CONF_BASE_URL, DEFAULT_BASE_URL)
		return self.async_show_form(
			step_id="user",
			data_schema=_credentials_schema(username, base_url),
			errors=errors,
		)

	async def async_step_reauth(self, entry_data: Dict[str, Any]) -> FlowResult:
		"""Start re-authentication after the stored credentials were rejected."""
		return await self.async_step_reauth_confirm()

	async def async_step_reauth_confirm(
		self, user_input: Optional[Dict[str, Any]] = None
	) -> FlowResult:
		"""Ask for new credentials and update the existing entry."""
		errors: Dict[str, str] = {}
		entry = self.hass.config_entries.async_get_entry(self.context.get("entry_id"))
		current_username = entry_value(entry, CONF_USERNAME, "") if entry else ""
		current_url = entry_value(entry, CONF_BASE_URL, DEFAULT_BASE_URL) if entry else DEFAULT_BASE_URL

		if user_input is not None:
			errors = await _validate(self.hass, user_input)
			if not errors and entry:
				# Options override data, so drop any stale copies of the new values
				self.hass.config_entries.async_update_entry(
					entry,
					data={**entry.data, **user_input},
					options={key: value for key, value in entry.options.items() if key not in user_input},
				)
				await self.hass.config_entries.async_reload(entry.entry_id)
				return self.async_abort(reason="reauth_successful")

		return self.async_show_form(
			step_id="reauth_confirm",
			data_schema=_credentials_schema(current_username, current_url),
			errors=errors,
			description_placeholders={"username": current_username},
		)

	@staticmethod
	@callback
	def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> config_entries.OptionsFlow:
		"""Return the options flow for this handler."""
		return MinistrySyncOptionsFlow(config_entry)


class MinistrySyncOptionsFlow(config_entries.OptionsFlow):
	"""Change the server address or credentials of an existing entry."""

	def __init__(self, config_entry: config_entries.ConfigEntry) -> None:
		"""Initialise options flow."""
		self._entry = config_entry

	async def async_step_init(
		self, user_input: Optional[Dict[str, Any]] = None
	) -> FlowResult:
		"""Manage the options, validating them with a real login."""
		errors: Dict[str, str] = {}
		if user_input is not None:
			errors = await _validate(self.hass, user_input)
			if not errors:
				# Credentials live in the entry data; the update listener reloads the entry
				self.hass.config_entries.async_update_entry(
					self._entry, data={**self._entry.data, **user_input}
				)
				return self.async_create_entry(title="", data={})

		return self.async_show_form(
			step_id="init",
			data_schema=_credentials_schema(
				entry_value(self._entry, CONF_USERNAME, ""),
				entry_value(self._entry, CONF_BASE_URL, DEFAULT_BASE_URL),
			),
			errors=errors,
		)
