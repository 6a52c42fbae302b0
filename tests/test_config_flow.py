"""Tests for the config, reauth and options flows."""

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

pytest.importorskip("homeassistant")

from custom_components.ministry_sync import config_flow  # noqa: E402
from custom_components.ministry_sync.const import CONF_BASE_URL, CONF_PASSWORD, CONF_USERNAME  # noqa: E402
from custom_components.ministry_sync.ministry import client as client_module  # noqa: E402
from custom_components.ministry_sync.ministry.endpoints import (  # noqa: E402
	KEY_BASE_URL,
	KEY_CACHED_LOGIN_PATH,
	InMemoryEndpointConfigStore,
)
from custom_components.ministry_sync.ministry.exceptions import MinistryConnectionError  # noqa: E402

from conftest import FakeTransport  # noqa: E402

GOOD_LOGIN = (200, {"d": {"UserID": "7", "AuthToken": "tok"}})
USER_INPUT = {CONF_USERNAME: "teacher", CONF_PASSWORD: "secret", CONF_BASE_URL: "https://good.test"}


@pytest.fixture
def shared_store():
	return InMemoryEndpointConfigStore({KEY_BASE_URL: "https://good.test", KEY_CACHED_LOGIN_PATH: "/Login"})


@pytest.fixture
def server(shared_store):
	"""Scripted transport behind every client the flows build."""
	transport = FakeTransport()
	real_client = client_module.MinistryClient

	def build_client(session, store):
		return real_client(store=store, transport=transport)

	with patch.object(config_flow, "async_get_clientsession"), \
		patch.object(config_flow, "get_endpoint_store", return_value=shared_store), \
		patch.object(client_module, "MinistryClient", build_client):
		yield transport


def make_entry(data=None, options=None):
	return MagicMock(entry_id="entry-1", data=dict(data or USER_INPUT), options=dict(options or {}))


def make_hass(entry=None):
	hass = MagicMock()
	hass.config_entries.async_get_entry.return_value = entry
	hass.config_entries.async_reload = AsyncMock()
	return hass


def make_flow(hass, context=None):
	flow = config_flow.MinistrySyncConfigFlow()
	flow.hass = hass
	flow.context = dict(context or {})
	flow.async_show_form = MagicMock(name="async_show_form")
	flow.async_create_entry = MagicMock(name="async_create_entry")
	flow.async_abort = MagicMock(name="async_abort")
	flow.async_set_unique_id = AsyncMock()
	flow._abort_if_unique_id_configured = MagicMock()
	return flow


@pytest.mark.parametrize("route, expected", [
	(GOOD_LOGIN, {}),
	((200, {"d": "Login Error"}), {"base": "invalid_auth"}),
	(404, {CONF_BASE_URL: "endpoint_not_found"}),
	(MinistryConnectionError("down"), {"base": "cannot_connect"}),
	(RuntimeError("boom"), {"base": "unknown"}),
])
async def test_validate_maps_login_failures(server, route, expected):
	server.routes["/Login"] = route

	assert await config_flow._validate(MagicMock(), USER_INPUT) == expected


async def test_rejected_address_does_not_reach_shared_store(server, shared_store):
	errors = await config_flow._validate(MagicMock(), {**USER_INPUT, CONF_BASE_URL: "https://typo.test"})

	assert errors == {CONF_BASE_URL: "endpoint_not_found"}
	assert server.calls[0]["url"].startswith("https://typo.test/")
	assert await shared_store.async_get(KEY_BASE_URL) == "https://good.test"
	assert await shared_store.async_get(KEY_CACHED_LOGIN_PATH) == "/Login"


async def test_accepted_address_is_committed(server, shared_store):
	server.routes["/UserLogin"] = GOOD_LOGIN

	errors = await config_flow._validate(MagicMock(), {**USER_INPUT, CONF_BASE_URL: "https://new.test/"})

	assert errors == {}
	assert await shared_store.async_get(KEY_BASE_URL) == "https://new.test"
	assert await shared_store.async_get(KEY_CACHED_LOGIN_PATH) == "/UserLogin"


class TestUserStep:
	"""Initial setup form."""

	async def test_creates_entry_after_login(self, server):
		server.routes["/Login"] = GOOD_LOGIN
		flow = make_flow(make_hass())

		await flow.async_step_user(dict(USER_INPUT))

		flow.async_set_unique_id.assert_awaited_once_with("teacher")
		flow.async_create_entry.assert_called_once_with(title="Ministry (teacher)", data=USER_INPUT)

	async def test_shows_form_with_errors(self, server):
		flow = make_flow(make_hass())

		await flow.async_step_user(dict(USER_INPUT))

		flow.async_create_entry.assert_not_called()
		assert flow.async_show_form.call_args.kwargs["errors"] == {CONF_BASE_URL: "endpoint_not_found"}


class TestReauth:
	"""Replacing rejected credentials on an existing entry."""

	async def test_new_password_wins_over_saved_options(self, server):
		server.routes["/Login"] = GOOD_LOGIN
		entry = make_entry(options={CONF_PASSWORD: "old", "other": 1})
		hass = make_hass(entry)
		flow = make_flow(hass, {"entry_id": entry.entry_id})

		await flow.async_step_reauth_confirm({**USER_INPUT, CONF_PASSWORD: "new"})

		kwargs = hass.config_entries.async_update_entry.call_args.kwargs
		updated = MagicMock(data=kwargs["data"], options=kwargs["options"])
		assert config_flow.entry_value(updated, CONF_PASSWORD) == "new"
		assert kwargs["options"] == {"other": 1}
		hass.config_entries.async_reload.assert_awaited_once_with(entry.entry_id)
		flow.async_abort.assert_called_once_with(reason="reauth_successful")

	async def test_form_is_prefilled_from_options(self, server):
		entry = make_entry(options={CONF_BASE_URL: "https://opt.test"})
		flow = make_flow(make_hass(entry), {"entry_id": entry.entry_id})

		with patch.object(config_flow, "_credentials_schema") as schema:
			await flow.async_step_reauth_confirm()

		schema.assert_called_once_with("teacher", "https://opt.test")

	async def test_failed_reauth_keeps_entry(self, server):
		server.routes["/Login"] = (200, {"d": "Login Error"})
		entry = make_entry()
		hass = make_hass(entry)
		flow = make_flow(hass, {"entry_id": entry.entry_id})

		await flow.async_step_reauth_confirm(dict(USER_INPUT))

		hass.config_entries.async_update_entry.assert_not_called()
		assert flow.async_show_form.call_args.kwargs["errors"] == {"base": "invalid_auth"}


async def test_options_flow_writes_credentials_to_entry_data(server):
	server.routes["/Login"] = GOOD_LOGIN
	entry = make_entry(options={CONF_PASSWORD: "stale"})
	hass = make_hass(entry)
	flow = config_flow.MinistrySyncOptionsFlow(entry)
	flow.hass = hass
	flow.async_create_entry = MagicMock(name="async_create_entry")

	await flow.async_step_init({**USER_INPUT, CONF_PASSWORD: "new"})

	hass.config_entries.async_update_entry.assert_called_once_with(
		entry, data={**USER_INPUT, CONF_PASSWORD: "new"}
	)
	flow.async_create_entry.assert_called_once_with(title="", data={})
