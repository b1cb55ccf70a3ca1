"""Config flow for Aula integration."""

import logging
from typing import Any, Dict, Optional

import voluptuous as vol

from homeassistant import config_entries
from homeassistant.core import callback
from homeassistant.data_entry_flow import FlowResult
from homeassistant.helpers.aiohttp_client import async_get_clientsession

from .aula.auth import SupabaseAuth
from .aula.exceptions import AulaAuthError, AulaConnectionError
from .aula.utils import parse_id_list
from .const import (
	CONF_API_KEY,
	CONF_ASSIGNMENT_LIMIT,
	CONF_COURSE_IDS,
	CONF_EMAIL,
	CONF_PASSWORD,
	CONF_SCAN_INTERVAL,
	CONF_SCOPE_TO_ENROLLMENTS,
	CONF_STUDENT_IDS,
	CONF_URL,
	DEFAULT_ASSIGNMENT_LIMIT,
	DEFAULT_SCAN_INTERVAL_MINUTES,
	DOMAIN,
	MAX_ASSIGNMENT_LIMIT,
	MAX_SCAN_INTERVAL_MINUTES,
	MIN_SCAN_INTERVAL_MINUTES,
)

_LOGGER = logging.getLogger(__name__)

STEP_USER_DATA_SCHEMA = vol.Schema(
	{
		vol.Required(CONF_URL): str,
		vol.Required(CONF_API_KEY): str,
		vol.Required(CONF_EMAIL): str,
		vol.Required(CONF_PASSWORD): str,
		vol.Optional(CONF_COURSE_IDS, default=""): str,
		vol.Optional(CONF_STUDENT_IDS, default=""): str,
	}
)


class AulaConfigFlow(config_entries.ConfigFlow, domain=DOMAIN):
	"""Handle a config flow for Aula."""

	VERSION = 1

	async def async_step_user(
		self, user_input: Optional[Dict[str, Any]] = None
	) -> FlowResult:
		"""Handle the initial step."""
		errors: Dict[str, str] = {}

		if user_input is not None:
			course_ids = parse_id_list(user_input.get(CONF_COURSE_IDS))
			student_ids = parse_id_list(user_input.get(CONF_STUDENT_IDS))
			if not course_ids and not student_ids:
				errors["base"] = "no_targets"
			else:
				try:
					await self._test_credentials(
						user_input[CONF_URL],
						user_input[CONF_API_KEY],
						user_input[CONF_EMAIL],
						user_input[CONF_PASSWORD],
					)
				except AulaAuthError:
					errors["base"] = "invalid_auth"
				except AulaConnectionError:
					errors["base"] = "cannot_connect"
				except Exception:  # pylint: disable=broad-except
					_LOGGER.exception("Unexpected exception")
					errors["base"] = "unknown"
				else:
					url = user_input[CONF_URL].rstrip("/")
					await self.async_set_unique_id(f"{url}_{user_input[CONF_EMAIL]}")
					self._abort_if_unique_id_configured()

					data = dict(user_input)
					data[CONF_URL] = url
					data[CONF_COURSE_IDS] = course_ids
					data[CONF_STUDENT_IDS] = student_ids
					return self.async_create_entry(
						title=f"Aula ({user_input[CONF_EMAIL]})",
						data=data,
					)

		return self.async_show_form(
			step_id="user",
			data_schema=STEP_USER_DATA_SCHEMA,
			errors=errors,
		)

	async def _test_credentials(self, url: str, api_key: str, email: str, password: str) -> None:
		"""Test if the credentials are valid."""
		session = async_get_clientsession(self.hass)
		auth = SupabaseAuth(session, url, api_key)
		await auth.login(email, password)

		_LOGGER.info("Successfully validated Aula credentials")

	@staticmethod
	@callback
	def async_get_options_flow(config_entry: config_entries.ConfigEntry) -> config_entries.OptionsFlow:
		"""Return the options flow for this handler."""
		return AulaOptionsFlow()


class AulaOptionsFlow(config_entries.OptionsFlow):
	"""Handle Aula options: tracked ids, assignment window and refresh interval."""

	async def async_step_init(
		self, user_input: Optional[Dict[str, Any]] = None
	) -> FlowResult:
		"""Manage the options."""
		errors: Dict[str, str] = {}
		current = {**self.config_entry.data, **self.config_entry.options}

		if user_input is not None:
			course_ids = parse_id_list(user_input.get(CONF_COURSE_IDS))
			student_ids = parse_id_list(user_input.get(CONF_STUDENT_IDS))
			if not course_ids and not student_ids:
				errors["base"] = "no_targets"
			else:
				options = dict(user_input)
				options[CONF_COURSE_IDS] = course_ids
				options[CONF_STUDENT_IDS] = student_ids
				return self.async_create_entry(title="", data=options)

		schema = vol.Schema({
			vol.Optional(
				CONF_COURSE_IDS,
				default=", ".join(parse_id_list(current.get(CONF_COURSE_IDS))),
			): str,
			vol.Optional(
				CONF_STUDENT_IDS,
				default=", ".join(parse_id_list(current.get(CONF_STUDENT_IDS))),
			): str,
			vol.Required(
				CONF_ASSIGNMENT_LIMIT,
				default=current.get(CONF_ASSIGNMENT_LIMIT, DEFAULT_ASSIGNMENT_LIMIT),
			): vol.All(vol.Coerce(int), vol.Range(min=1, max=MAX_ASSIGNMENT_LIMIT)),
			vol.Required(
				CONF_SCOPE_TO_ENROLLMENTS,
				default=current.get(CONF_SCOPE_TO_ENROLLMENTS, False),
			): bool,
			vol.Required(
				CONF_SCAN_INTERVAL,
				default=current.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL_MINUTES),
			): vol.All(vol.Coerce(int), vol.Range(min=MIN_SCAN_INTERVAL_MINUTES, max=MAX_SCAN_INTERVAL_MINUTES)),
		})

		return self.async_show_form(
			step_id="init",
			data_schema=schema,
			errors=errors,
		)
