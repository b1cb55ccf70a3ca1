"""DataUpdateCoordinator for Aula."""

import asyncio
import logging
from datetime import timedelta
from typing import Any, Dict, List, Optional

from homeassistant.components import persistent_notification
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.exceptions import ConfigEntryAuthFailed
from homeassistant.helpers.aiohttp_client import async_get_clientsession
from homeassistant.helpers.update_coordinator import DataUpdateCoordinator, UpdateFailed
from homeassistant.util import dt as dt_util

from .aula.auth import SupabaseAuth
from .aula.client import AulaClient
from .aula.exceptions import (
	AssignmentQueryError,
	AttendanceFetchError,
	AulaAuthError,
	AulaConnectionError,
)
from .aula.utils import parse_id_list
from .aula.views import AssignmentsView, AttendanceView, GenerationTracker, VIEW_STATUS_LOADING
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
	EVENT_FETCH_FAILED,
	NOTIFICATION_TITLE_ASSIGNMENTS,
	NOTIFICATION_TITLE_ATTENDANCE,
	PIPELINE_ASSIGNMENTS,
	PIPELINE_ATTENDANCE,
)

_LOGGER = logging.getLogger(__name__)


class AulaDataUpdateCoordinator(DataUpdateCoordinator):
	"""Class to manage fetching attendance and assignments from the school platform.

	Each pipeline run is tagged when it is dispatched; its result only reaches
	the views if no newer run for the same course or student was dispatched
	in the meantime.
	"""

	def __init__(self, hass: HomeAssistant, entry: ConfigEntry) -> None:
		"""Initialise coordinator."""
		settings = {**entry.data, **entry.options}
		self.entry_id = entry.entry_id
		self.url: str = entry.data[CONF_URL]
		self.api_key: str = entry.data[CONF_API_KEY]
		self.email: str = entry.data[CONF_EMAIL]
		self.password: str = entry.data[CONF_PASSWORD]
		self.course_ids: List[str] = parse_id_list(settings.get(CONF_COURSE_IDS))
		self.student_ids: List[str] = parse_id_list(settings.get(CONF_STUDENT_IDS))
		self.assignment_limit: int = int(settings.get(CONF_ASSIGNMENT_LIMIT, DEFAULT_ASSIGNMENT_LIMIT))
		self.scope_to_enrollments: bool = bool(settings.get(CONF_SCOPE_TO_ENROLLMENTS, False))

		self.auth: Optional[SupabaseAuth] = None
		self.client: Optional[AulaClient] = None
		self.generations = GenerationTracker()
		self.attendance: Dict[str, AttendanceView] = {
			course_id: AttendanceView(course_id) for course_id in self.course_ids
		}
		self.assignments: Dict[str, AssignmentsView] = {
			student_id: AssignmentsView(student_id) for student_id in self.student_ids
		}

		scan_minutes = int(settings.get(CONF_SCAN_INTERVAL, DEFAULT_SCAN_INTERVAL_MINUTES))

		super().__init__(
			hass,
			_LOGGER,
			config_entry=entry,
			name=DOMAIN,
			update_interval=timedelta(minutes=scan_minutes),
		)

	async def _async_update_data(self) -> Dict[str, Any]:
		"""Run every pipeline once and return the views."""
		await self._ensure_client()

		await asyncio.gather(
			*(self._load_attendance(course_id) for course_id in self.course_ids),
			*(self._load_assignments(student_id) for student_id in self.student_ids),
		)

		_LOGGER.debug(
			f"Updated {len(self.course_ids)} attendance views and "
			f"{len(self.student_ids)} assignment views"
		)
		return self._snapshot()

	async def _ensure_client(self) -> None:
		if self.client and self.auth and self.auth.authenticated:
			return
		try:
			await self._setup_client()
		except AulaAuthError as err:
			self.client = None
			raise ConfigEntryAuthFailed(f"Authentication failed: {err}") from err
		except AulaConnectionError as err:
			self.client = None
			raise UpdateFailed(f"Could not reach the school platform: {err}") from err

	async def _setup_client(self) -> None:
		"""Sign in and build the client."""
		session = async_get_clientsession(self.hass)
		self.auth = SupabaseAuth(session, self.url, self.api_key)
		await self.auth.login(self.email, self.password)
		self.client = AulaClient(
			self.url,
			self.api_key,
			self.auth,
			session=session,
			assignment_limit=self.assignment_limit,
			scope_to_enrollments=self.scope_to_enrollments,
		)
		_LOGGER.info(f"Aula client ready for {self.email}")

	def _snapshot(self) -> Dict[str, Any]:
		return {
			PIPELINE_ATTENDANCE: self.attendance,
			PIPELINE_ASSIGNMENTS: self.assignments,
		}

	async def _load_attendance(self, course_id: str) -> None:
		"""Run the attendance pipeline for one course."""
		view = self.attendance.setdefault(course_id, AttendanceView(course_id))
		key = (PIPELINE_ATTENDANCE, course_id)
		tag = self.generations.dispatch(key)
		view.status = VIEW_STATUS_LOADING

		try:
			report = await self.client.fetch_attendance(course_id)
		except AttendanceFetchError as err:
			if not self.generations.is_current(key, tag):
				_LOGGER.debug(f"Dropping stale attendance failure for course {course_id} (tag {tag})")
				return
			_LOGGER.error(f"Error fetching attendance for course {course_id}: {err.message}")
			view.fail(err.message, tag, dt_util.utcnow())
			self._notify_failure(PIPELINE_ATTENDANCE, course_id, NOTIFICATION_TITLE_ATTENDANCE, err.message)
			return

		if not self.generations.is_current(key, tag):
			_LOGGER.warning(
				f"Dropping stale attendance result for course {course_id} "
				f"(tag {tag}, latest {self.generations.latest(key)})"
			)
			return

		view.apply(report, tag, dt_util.utcnow())
		self._dismiss_failure(PIPELINE_ATTENDANCE, course_id)

	async def _load_assignments(self, student_id: str) -> None:
		"""Run the assignment pipeline for one student."""
		view = self.assignments.setdefault(student_id, AssignmentsView(student_id))
		key = (PIPELINE_ASSIGNMENTS, student_id)
		tag = self.generations.dispatch(key)
		view.status = VIEW_STATUS_LOADING

		try:
			batch = await self.client.query_assignment_batch(student_id)
		except AssignmentQueryError as err:
			if not self.generations.is_current(key, tag):
				_LOGGER.debug(f"Dropping stale assignments failure for student {student_id} (tag {tag})")
				return
			_LOGGER.error(f"Error loading assignments for student {student_id}: {err}")
			view.fail(err.message, tag, dt_util.utcnow())
			self._notify_failure(PIPELINE_ASSIGNMENTS, student_id, NOTIFICATION_TITLE_ASSIGNMENTS, err.message)
			return

		if not self.generations.is_current(key, tag):
			_LOGGER.warning(
				f"Dropping stale assignments result for student {student_id} "
				f"(tag {tag}, latest {self.generations.latest(key)})"
			)
			return

		view.apply(batch.assignments, tag, batch.evaluated_at)
		self._dismiss_failure(PIPELINE_ASSIGNMENTS, student_id)

	async def async_refresh_attendance(self, course_id: str) -> None:
		"""Reload attendance for one course and push it to the entities."""
		if course_id not in self.attendance:
			raise ValueError(f"Course {course_id} is not configured")
		await self._ensure_client()
		await self._load_attendance(course_id)
		self.async_update_listeners()

	async def async_refresh_assignments(self, student_id: str) -> None:
		"""Reload assignments for one student and push them to the entities."""
		if student_id not in self.assignments:
			raise ValueError(f"Student {student_id} is not configured")
		await self._ensure_client()
		await self._load_assignments(student_id)
		self.async_update_listeners()

	def _notification_id(self, pipeline: str, item_id: str) -> str:
		return f"{DOMAIN}_{self.entry_id}_{pipeline}_{item_id}"

	def _notify_failure(self, pipeline: str, item_id: str, title: str, message: str) -> None:
		persistent_notification.async_create(
			self.hass,
			message,
			title=title,
			notification_id=self._notification_id(pipeline, item_id),
		)
		self.hass.bus.async_fire(
			EVENT_FETCH_FAILED,
			{"pipeline": pipeline, "id": item_id, "message": message},
		)

	def _dismiss_failure(self, pipeline: str, item_id: str) -> None:
		persistent_notification.async_dismiss(self.hass, self._notification_id(pipeline, item_id))

	async def async_shutdown(self) -> None:
		"""Discard in-flight results and stop the coordinator."""
		self.generations.invalidate()
		if self.auth:
			self.auth.logout()
		self.client = None
		await super().async_shutdown()
