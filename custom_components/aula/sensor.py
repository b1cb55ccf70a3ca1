"""Support for Aula sensors."""

import logging
from typing import Any, Dict, List, Optional

from homeassistant.components.sensor import SensorEntity, SensorStateClass
from homeassistant.config_entries import ConfigEntry
from homeassistant.core import HomeAssistant
from homeassistant.helpers.entity import DeviceInfo
from homeassistant.helpers.entity_platform import AddEntitiesCallback
from homeassistant.helpers.update_coordinator import CoordinatorEntity

from .aula.views import (
	AssignmentsView,
	AttendanceView,
	assignment_attributes,
	attendance_record_attributes,
)
from .const import (
	ATTR_ASSIGNMENTS,
	ATTR_COURSE_ID,
	ATTR_ERROR,
	ATTR_EVALUATED_AT,
	ATTR_OVERDUE_COUNT,
	ATTR_PENDING_COUNT,
	ATTR_RECORDS,
	ATTR_STATS,
	ATTR_STUDENT_ID,
	ATTR_UPDATED_AT,
	ATTR_VIEW_STATUS,
	CONF_EMAIL,
	DOMAIN,
	ICON_ASSIGNMENTS,
	ICON_ATTENDANCE,
	SENSOR_ASSIGNMENTS,
	SENSOR_ATTENDANCE,
)
from .coordinator import AulaDataUpdateCoordinator

_LOGGER = logging.getLogger(__name__)


async def async_setup_entry(
	hass: HomeAssistant,
	config_entry: ConfigEntry,
	async_add_entities: AddEntitiesCallback,
) -> None:
	"""Set up Aula sensors based on a config entry."""
	coordinator: AulaDataUpdateCoordinator = hass.data[DOMAIN][config_entry.entry_id]

	entities: List[SensorEntity] = []
	for course_id in coordinator.course_ids:
		entities.append(AulaAttendanceSensor(coordinator, config_entry, course_id))
	for student_id in coordinator.student_ids:
		entities.append(AulaAssignmentsSensor(coordinator, config_entry, student_id))

	_LOGGER.info(f"Setting up {len(entities)} Aula entities")
	async_add_entities(entities)


class AulaSensorBase(CoordinatorEntity, SensorEntity):
	"""Base class for Aula sensors."""

	def __init__(
		self,
		coordinator: AulaDataUpdateCoordinator,
		config_entry: ConfigEntry,
	) -> None:
		"""Initialise the sensor."""
		super().__init__(coordinator)
		self.config_entry = config_entry
		self._attr_device_info = DeviceInfo(
			identifiers={(DOMAIN, config_entry.entry_id)},
			manufacturer="Aula",
			name=f"Aula ({config_entry.data[CONF_EMAIL]})",
			model="Parent dashboard",
		)


class AulaAttendanceSensor(AulaSensorBase):
	"""Attendance records and server-side summary for one course."""

	_attr_state_class = SensorStateClass.MEASUREMENT
	_attr_native_unit_of_measurement = "records"

	def __init__(
		self,
		coordinator: AulaDataUpdateCoordinator,
		config_entry: ConfigEntry,
		course_id: str,
	) -> None:
		"""Initialise the sensor."""
		super().__init__(coordinator, config_entry)
		self.course_id = course_id
		self._attr_name = f"Aula Attendance {course_id}"
		self._attr_unique_id = f"{config_entry.entry_id}_{SENSOR_ATTENDANCE}_{course_id}"

	@property
	def view(self) -> Optional[AttendanceView]:
		return self.coordinator.attendance.get(self.course_id)

	@property
	def native_value(self) -> Optional[int]:
		"""Return the number of attendance records."""
		view = self.view
		return len(view.records) if view else None

	@property
	def icon(self) -> str:
		"""Follow the badge of the most recent record."""
		view = self.view
		badge = view.latest_badge if view else None
		return badge.icon if badge else ICON_ATTENDANCE

	@property
	def extra_state_attributes(self) -> Dict[str, Any]:
		"""Return additional state attributes."""
		view = self.view
		if not view:
			return {ATTR_COURSE_ID: self.course_id}
		return {
			ATTR_COURSE_ID: self.course_id,
			ATTR_RECORDS: [attendance_record_attributes(record) for record in view.records],
			ATTR_STATS: view.stats,
			ATTR_VIEW_STATUS: view.status,
			ATTR_ERROR: view.error,
			ATTR_UPDATED_AT: view.updated_at.isoformat() if view.updated_at else None,
		}


class AulaAssignmentsSensor(AulaSensorBase):
	"""Latest assignments for one student; the state counts overdue ones."""

	_attr_state_class = SensorStateClass.MEASUREMENT
	_attr_native_unit_of_measurement = "assignments"
	_attr_icon = ICON_ASSIGNMENTS

	def __init__(
		self,
		coordinator: AulaDataUpdateCoordinator,
		config_entry: ConfigEntry,
		student_id: str,
	) -> None:
		"""Initialise the sensor."""
		super().__init__(coordinator, config_entry)
		self.student_id = student_id
		self._attr_name = f"Aula Overdue Assignments {student_id}"
		self._attr_unique_id = f"{config_entry.entry_id}_{SENSOR_ASSIGNMENTS}_{student_id}"

	@property
	def view(self) -> Optional[AssignmentsView]:
		return self.coordinator.assignments.get(self.student_id)

	@property
	def native_value(self) -> Optional[int]:
		view = self.view
		return view.overdue_count if view else None

	@property
	def extra_state_attributes(self) -> Dict[str, Any]:
		"""Return additional state attributes."""
		view = self.view
		if not view:
			return {ATTR_STUDENT_ID: self.student_id}
		return {
			ATTR_STUDENT_ID: self.student_id,
			ATTR_ASSIGNMENTS: [assignment_attributes(assignment) for assignment in view.assignments],
			ATTR_PENDING_COUNT: view.pending_count,
			ATTR_OVERDUE_COUNT: view.overdue_count,
			ATTR_VIEW_STATUS: view.status,
			ATTR_ERROR: view.error,
			ATTR_EVALUATED_AT: view.evaluated_at.isoformat() if view.evaluated_at else None,
		}
