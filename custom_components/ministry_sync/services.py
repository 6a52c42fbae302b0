"""Service registration and handlers for the Ministry Sync integration."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import asdict
from typing import Any, Awaitable, Callable

import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall, ServiceResponse, SupportsResponse
from homeassistant.exceptions import HomeAssistantError
import homeassistant.helpers.config_validation as cv

from .config_flow import entry_value
from .const import (
	ATTR_ABSENCE_TYPE,
	ATTR_CLASS_ID,
	ATTR_CONFIG_ENTRY_ID,
	ATTR_DATE,
	ATTR_EDU_SYS_ID,
	ATTR_END_DATE,
	ATTR_EXAM_GRADE_TYPE,
	ATTR_EXAM_ID,
	ATTR_GRADE_ID,
	ATTR_IS_ABSENT,
	ATTR_MARK_VALUE,
	ATTR_NOTES,
	ATTR_REASON_ID,
	ATTR_RECORDS,
	ATTR_STAGE_ID,
	ATTR_STUDENT_ID,
	ATTR_STUDENT_NO,
	ATTR_SUBJECT_ID,
	ATTR_TERM_ID,
	CONF_BASE_URL,
	CONF_PASSWORD,
	CONF_USERNAME,
	DOMAIN,
	SERVICE_GET_ABSENCE_DETAILS,
	SERVICE_GET_CLASSES,
	SERVICE_PROBE_LOGIN,
	SERVICE_RELOGIN,
	SERVICE_SUBMIT_ABSENCE,
	SERVICE_SUBMIT_GRADES,
)
from .ministry.client import MinistryClient
from .ministry.exceptions import MinistryError
from .ministry.models import (
	AbsenceRecord,
	AbsenceType,
	GradeRecord,
	SubmissionBatchContext,
)

_LOGGER = logging.getLogger(__name__)

ClientAction = Callable[[HomeAssistant, str, MinistryClient, ServiceCall], Awaitable[Any]]

_SERVICES_REGISTERED = False
_REGISTERED_SERVICES = (
	SERVICE_RELOGIN,
	SERVICE_GET_CLASSES,
	SERVICE_GET_ABSENCE_DETAILS,
	SERVICE_SUBMIT_ABSENCE,
	SERVICE_SUBMIT_GRADES,
	SERVICE_PROBE_LOGIN,
)


def _build_schema(extra: dict) -> vol.Schema:
	"""Helper to build schemas with shared optional fields."""
	fields: dict = {vol.Optional(ATTR_CONFIG_ENTRY_ID): str}
	fields.update(extra)
	return vol.Schema(fields)


_BATCH_FIELDS = {
	vol.Required(ATTR_CLASS_ID): cv.string,
	vol.Required(ATTR_GRADE_ID): cv.string,
}

ABSENCE_RECORD_SCHEMA = vol.Schema({
	vol.Required(ATTR_STUDENT_ID): cv.string,
	vol.Required(ATTR_ABSENCE_TYPE): vol.In([member.name.lower() for member in AbsenceType]),
	vol.Optional(ATTR_REASON_ID): vol.Coerce(int),
	vol.Optional(ATTR_NOTES): cv.string,
})

GRADE_RECORD_SCHEMA = vol.Schema({
	vol.Required(ATTR_STUDENT_ID): cv.string,
	vol.Required(ATTR_MARK_VALUE): cv.string,
	vol.Optional(ATTR_IS_ABSENT): cv.boolean,
	vol.Optional(ATTR_NOTES): cv.string,
})

SERVICE_RELOGIN_SCHEMA = _build_schema({})

SERVICE_GET_CLASSES_SCHEMA = _build_schema({})

SERVICE_GET_ABSENCE_DETAILS_SCHEMA = _build_schema({
	**_BATCH_FIELDS,
	vol.Required(ATTR_STUDENT_NO): cv.string,
	vol.Optional(ATTR_DATE): cv.date,
	vol.Optional(ATTR_END_DATE): cv.date,
})

SERVICE_SUBMIT_ABSENCE_SCHEMA = _build_schema({
	**_BATCH_FIELDS,
	vol.Optional(ATTR_DATE): cv.date,
	vol.Required(ATTR_RECORDS): vol.All(cv.ensure_list, [ABSENCE_RECORD_SCHEMA]),
})

SERVICE_SUBMIT_GRADES_SCHEMA = _build_schema({
	**_BATCH_FIELDS,
	vol.Required(ATTR_TERM_ID): cv.string,
	vol.Required(ATTR_SUBJECT_ID): cv.string,
	vol.Required(ATTR_EXAM_ID): cv.string,
	vol.Optional(ATTR_EDU_SYS_ID, default="1"): cv.string,
	vol.Optional(ATTR_STAGE_ID, default="0"): cv.string,
	vol.Optional(ATTR_EXAM_GRADE_TYPE, default=1): vol.Coerce(int),
	vol.Required(ATTR_RECORDS): vol.All(cv.ensure_list, [GRADE_RECORD_SCHEMA]),
})

SERVICE_PROBE_LOGIN_SCHEMA = _build_schema({})


async def async_register_services(hass: HomeAssistant) -> None:
	"""Register Ministry Sync services once per Home Assistant instance."""
	global _SERVICES_REGISTERED

	if _SERVICES_REGISTERED:
		return

	async def handle_relogin(call: ServiceCall) -> None:
		await _run_for_targets(hass, call, _action_relogin)

	async def handle_get_classes(call: ServiceCall) -> ServiceResponse:
		return await _run_for_targets(hass, call, _action_get_classes)

	async def handle_get_absence_details(call: ServiceCall) -> ServiceResponse:
		return await _run_for_targets(hass, call, _action_get_absence_details)

	async def handle_submit_absence(call: ServiceCall) -> ServiceResponse:
		return await _run_for_targets(hass, call, _action_submit_absence, single=True)

	async def handle_submit_grades(call: ServiceCall) -> ServiceResponse:
		return await _run_for_targets(hass, call, _action_submit_grades, single=True)

	async def handle_probe_login(call: ServiceCall) -> ServiceResponse:
		return await _run_for_targets(hass, call, _action_probe_login)

	hass.services.async_register(
		DOMAIN,
		SERVICE_RELOGIN,
		handle_relogin,
		schema=SERVICE_RELOGIN_SCHEMA,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_GET_CLASSES,
		handle_get_classes,
		schema=SERVICE_GET_CLASSES_SCHEMA,
		supports_response=SupportsResponse.ONLY,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_GET_ABSENCE_DETAILS,
		handle_get_absence_details,
		schema=SERVICE_GET_ABSENCE_DETAILS_SCHEMA,
		supports_response=SupportsResponse.ONLY,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_SUBMIT_ABSENCE,
		handle_submit_absence,
		schema=SERVICE_SUBMIT_ABSENCE_SCHEMA,
		supports_response=SupportsResponse.OPTIONAL,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_SUBMIT_GRADES,
		handle_submit_grades,
		schema=SERVICE_SUBMIT_GRADES_SCHEMA,
		supports_response=SupportsResponse.OPTIONAL,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_PROBE_LOGIN,
		handle_probe_login,
		schema=SERVICE_PROBE_LOGIN_SCHEMA,
		supports_response=SupportsResponse.OPTIONAL,
	)

	_SERVICES_REGISTERED = True


async def async_unregister_services(hass: HomeAssistant) -> None:
	"""Remove Ministry Sync services when the last entry is unloaded."""
	global _SERVICES_REGISTERED

	if not _SERVICES_REGISTERED:
		return

	for service in _REGISTERED_SERVICES:
		hass.services.async_remove(DOMAIN, service)

	_SERVICES_REGISTERED = False


async def _run_for_targets(
	hass: HomeAssistant,
	call: ServiceCall,
	action: ClientAction,
	single: bool = False,
) -> dict[str, Any]:
	"""Execute an action for each targeted entry; results keyed by entry id.

	With single set, the call must resolve to exactly one account.
	"""
	targets = _get_target_clients(hass, call)
	if single and len(targets) > 1:
		raise HomeAssistantError(
			f"{call.service} writes records; set {ATTR_CONFIG_ENTRY_ID} to choose one of {len(targets)} accounts."
		)
	if not targets:
		raise HomeAssistantError("No ministry accounts are currently set up.")

	results = await asyncio.gather(
		*(action(hass, entry_id, client, call) for entry_id, client in targets),
		return_exceptions=True,
	)

	errors = [result for result in results if isinstance(result, Exception)]
	if not errors:
		return {entry_id: result for (entry_id, _), result in zip(targets, results)}

	for err in errors:
		_LOGGER.error("Service %s failed: %s", call.service, err)

	if len(errors) == len(targets):
		raise HomeAssistantError(f"{call.service} failed: {errors[0]}")

	raise HomeAssistantError(f"{call.service} partially failed. Check the logs for details.")


def _get_target_clients(
	hass: HomeAssistant,
	call: ServiceCall,
) -> list[tuple[str, MinistryClient]]:
	"""Return the clients that should process the service call."""
	domain_data = hass.data.get(DOMAIN)
	if not domain_data:
		raise HomeAssistantError("Ministry Sync is not currently set up.")

	clients = {
		entry_id: client
		for entry_id, client in domain_data.items()
		if isinstance(client, MinistryClient)
	}

	config_entry_id = call.data.get(ATTR_CONFIG_ENTRY_ID)
	if config_entry_id:
		if config_entry_id not in clients:
			raise HomeAssistantError(f"No ministry account found for config_entry_id '{config_entry_id}'.")
		return [(config_entry_id, clients[config_entry_id])]

	return list(clients.items())


def _batch_context(call: ServiceCall) -> SubmissionBatchContext:
	"""Build the batch context from service data."""
	return SubmissionBatchContext(
		class_id=call.data[ATTR_CLASS_ID],
		grade_id=call.data[ATTR_GRADE_ID],
		term_id=call.data.get(ATTR_TERM_ID),
		subject_id=call.data.get(ATTR_SUBJECT_ID),
		exam_id=call.data.get(ATTR_EXAM_ID),
		edu_sys_id=call.data.get(ATTR_EDU_SYS_ID, "1"),
		stage_id=call.data.get(ATTR_STAGE_ID, "0"),
		exam_grade_type=call.data.get(ATTR_EXAM_GRADE_TYPE, 1),
		start_date=call.data.get(ATTR_DATE),
	)


async def _guarded(coro: Awaitable[Any]) -> Any:
	"""Re-raise client errors as Home Assistant errors."""
	try:
		return await coro
	except MinistryError as err:
		raise HomeAssistantError(str(err)) from err


async def _action_relogin(
	hass: HomeAssistant,
	entry_id: str,
	client: MinistryClient,
	call: ServiceCall,
) -> None:
	"""Log in again and replace the stored session."""
	entry = hass.config_entries.async_get_entry(entry_id)
	if entry is None:
		raise HomeAssistantError(f"Config entry {entry_id} no longer exists.")
	await _guarded(client.login(
		entry_value(entry, CONF_USERNAME),
		entry_value(entry, CONF_PASSWORD),
		base_url=entry_value(entry, CONF_BASE_URL, ""),
	))
	_LOGGER.info("Ministry session refreshed (entry=%s)", entry_id)


async def _action_get_classes(
	hass: HomeAssistant,
	entry_id: str,
	client: MinistryClient,
	call: ServiceCall,
) -> Any:
	"""Fetch the class filter for the logged-in teacher."""
	return await _guarded(client.get_classes())


async def _action_get_absence_details(
	hass: HomeAssistant,
	entry_id: str,
	client: MinistryClient,
	call: ServiceCall,
) -> Any:
	"""Fetch recorded absences for one student."""
	return await _guarded(client.get_absence_details(
		_batch_context(call),
		call.data[ATTR_STUDENT_NO],
		call.data.get(ATTR_DATE),
		call.data.get(ATTR_END_DATE),
	))


async def _action_submit_absence(
	hass: HomeAssistant,
	entry_id: str,
	client: MinistryClient,
	call: ServiceCall,
) -> Any:
	"""Submit a class's attendance."""
	records = [
		AbsenceRecord(
			student_id=record[ATTR_STUDENT_ID],
			absence_type=AbsenceType.parse(record[ATTR_ABSENCE_TYPE]),
			reason_id=record.get(ATTR_REASON_ID),
			notes=record.get(ATTR_NOTES),
		)
		for record in call.data[ATTR_RECORDS]
	]
	ack = await _guarded(client.submit_absence(_batch_context(call), records))
	_LOGGER.info("Submitted %d absence records (entry=%s)", len(records), entry_id)
	return asdict(ack)


async def _action_submit_grades(
	hass: HomeAssistant,
	entry_id: str,
	client: MinistryClient,
	call: ServiceCall,
) -> Any:
	"""Submit an exam's marks."""
	records = [
		GradeRecord(
			student_id=record[ATTR_STUDENT_ID],
			mark_value=record[ATTR_MARK_VALUE],
			is_absent=record.get(ATTR_IS_ABSENT),
			notes=record.get(ATTR_NOTES),
		)
		for record in call.data[ATTR_RECORDS]
	]
	ack = await _guarded(client.submit_grades(_batch_context(call), records))
	_LOGGER.info("Submitted %d grade records (entry=%s)", len(records), entry_id)
	return asdict(ack)


async def _action_probe_login(
	hass: HomeAssistant,
	entry_id: str,
	client: MinistryClient,
	call: ServiceCall,
) -> Any:
	"""Report which login path the configured server exposes."""
	result = await _guarded(client.discover_login_path())
	_LOGGER.info("Login endpoint probe (entry=%s): %s", entry_id, result)
	return asdict(result)
