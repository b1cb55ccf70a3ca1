"""Service registration and handlers for the Aula integration."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Optional

import voluptuous as vol
from homeassistant.core import HomeAssistant, ServiceCall
from homeassistant.exceptions import HomeAssistantError

from .const import (
	DOMAIN,
	SERVICE_REFRESH_ALL,
	SERVICE_REFRESH_ASSIGNMENTS,
	SERVICE_REFRESH_ATTENDANCE,
)
from .coordinator import AulaDataUpdateCoordinator

_LOGGER = logging.getLogger(__name__)

CoordinatorAction = Callable[[str, AulaDataUpdateCoordinator, ServiceCall], Awaitable[None]]

_SERVICES_REGISTERED = False
_REGISTERED_SERVICES = (
	SERVICE_REFRESH_ATTENDANCE,
	SERVICE_REFRESH_ASSIGNMENTS,
	SERVICE_REFRESH_ALL,
)


def _build_schema(extra: dict) -> vol.Schema:
	"""Helper to build schemas with shared optional fields."""
	fields: dict = {vol.Optional("config_entry_id"): str}
	fields.update(extra)
	return vol.Schema(fields)


SERVICE_REFRESH_ATTENDANCE_SCHEMA = _build_schema({
	vol.Required("course_id"): vol.All(str, vol.Length(min=1)),
})

SERVICE_REFRESH_ASSIGNMENTS_SCHEMA = _build_schema({
	vol.Required("student_id"): vol.All(str, vol.Length(min=1)),
})

SERVICE_REFRESH_ALL_SCHEMA = _build_schema({})


async def async_register_services(hass: HomeAssistant) -> None:
	"""Register Aula services once per Home Assistant instance."""
	global _SERVICES_REGISTERED

	if _SERVICES_REGISTERED:
		return

	async def handle_refresh_attendance(call: ServiceCall) -> None:
		course_id = call.data["course_id"]
		await _run_for_targets(
			hass, call, _action_refresh_attendance,
			lambda coordinator: course_id in coordinator.attendance,
		)

	async def handle_refresh_assignments(call: ServiceCall) -> None:
		student_id = call.data["student_id"]
		await _run_for_targets(
			hass, call, _action_refresh_assignments,
			lambda coordinator: student_id in coordinator.assignments,
		)

	async def handle_refresh_all(call: ServiceCall) -> None:
		await _run_for_targets(hass, call, _action_refresh_all)

	hass.services.async_register(
		DOMAIN,
		SERVICE_REFRESH_ATTENDANCE,
		handle_refresh_attendance,
		schema=SERVICE_REFRESH_ATTENDANCE_SCHEMA,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_REFRESH_ASSIGNMENTS,
		handle_refresh_assignments,
		schema=SERVICE_REFRESH_ASSIGNMENTS_SCHEMA,
	)

	hass.services.async_register(
		DOMAIN,
		SERVICE_REFRESH_ALL,
		handle_refresh_all,
		schema=SERVICE_REFRESH_ALL_SCHEMA,
	)

	_SERVICES_REGISTERED = True


async def async_unregister_services(hass: HomeAssistant) -> None:
	"""Remove Aula services when the last entry is unloaded."""
	global _SERVICES_REGISTERED

	if not _SERVICES_REGISTERED:
		return

	for service in _REGISTERED_SERVICES:
		hass.services.async_remove(DOMAIN, service)

	_SERVICES_REGISTERED = False


async def _run_for_targets(
	hass: HomeAssistant,
	call: ServiceCall,
	action: CoordinatorAction,
	predicate: Optional[Callable[[AulaDataUpdateCoordinator], bool]] = None,
) -> None:
	"""Execute an action for each targeted coordinator accepted by the predicate."""
	targets = _get_target_coordinators(hass, call)
	if predicate is not None:
		targets = [(entry_id, coordinator) for entry_id, coordinator in targets if predicate(coordinator)]
	if not targets:
		raise HomeAssistantError(f"No Aula account can handle {call.service} with {dict(call.data)}.")

	results = await asyncio.gather(
		*(action(entry_id, coordinator, call) for entry_id, coordinator in targets),
		return_exceptions=True,
	)

	errors = [result for result in results if isinstance(result, Exception)]
	if not errors:
		return

	for err in errors:
		_LOGGER.error("Service %s failed: %s", call.service, err)

	if len(errors) == len(targets):
		raise HomeAssistantError(f"{call.service} failed for all targets: {errors[0]}")

	raise HomeAssistantError(f"{call.service} partially failed. Check the logs for details.")


def _get_target_coordinators(
	hass: HomeAssistant,
	call: ServiceCall,
) -> list[tuple[str, AulaDataUpdateCoordinator]]:
	"""Return coordinators that should process the service call."""
	domain_data = hass.data.get(DOMAIN)
	if not domain_data:
		raise HomeAssistantError("Aula is not currently set up.")

	coordinators = {
		entry_id: coordinator
		for entry_id, coordinator in domain_data.items()
		if isinstance(coordinator, AulaDataUpdateCoordinator)
	}

	config_entry_id = call.data.get("config_entry_id")
	if config_entry_id:
		if config_entry_id not in coordinators:
			raise HomeAssistantError(f"No Aula account found for config_entry_id '{config_entry_id}'.")
		return [(config_entry_id, coordinators[config_entry_id])]

	return list(coordinators.items())


async def _action_refresh_attendance(
	entry_id: str,
	coordinator: AulaDataUpdateCoordinator,
	call: ServiceCall,
) -> None:
	"""Reload attendance for one course."""
	course_id = call.data["course_id"]
	if course_id not in coordinator.attendance:
		raise HomeAssistantError(f"Course '{course_id}' is not configured for entry {entry_id}.")

	await coordinator.async_refresh_attendance(course_id)
	_LOGGER.info("Attendance refreshed for course %s (entry=%s)", course_id, entry_id)


async def _action_refresh_assignments(
	entry_id: str,
	coordinator: AulaDataUpdateCoordinator,
	call: ServiceCall,
) -> None:
	"""Reload assignments for one student."""
	student_id = call.data["student_id"]
	if student_id not in coordinator.assignments:
		raise HomeAssistantError(f"Student '{student_id}' is not configured for entry {entry_id}.")

	await coordinator.async_refresh_assignments(student_id)
	_LOGGER.info("Assignments refreshed for student %s (entry=%s)", student_id, entry_id)


async def _action_refresh_all(
	entry_id: str,
	coordinator: AulaDataUpdateCoordinator,
	call: ServiceCall,
) -> None:
	"""Reload every pipeline of an account."""
	await coordinator.async_request_refresh()
	_LOGGER.info("Full refresh requested for %s (entry=%s)", coordinator.email, entry_id)
