"""View state for the dashboard pipelines."""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Hashable, List, Optional

from .models import Assignment, AttendanceRecord, AttendanceReport, StatusBadge
from .utils import format_long_date, format_short_date

VIEW_STATUS_IDLE = "idle"
VIEW_STATUS_LOADING = "loading"
VIEW_STATUS_READY = "ready"
VIEW_STATUS_ERROR = "error"


class GenerationTracker:
	"""Tag each dispatched request so only the newest result per key is applied."""

	def __init__(self) -> None:
		self._latest: Dict[Hashable, int] = {}

	def dispatch(self, key: Hashable) -> int:
		"""Return a new tag for ``key``, superseding every earlier one."""
		tag = self._latest.get(key, 0) + 1
		self._latest[key] = tag
		return tag

	def is_current(self, key: Hashable, tag: int) -> bool:
		return self._latest.get(key) == tag

	def latest(self, key: Hashable) -> int:
		return self._latest.get(key, 0)

	def invalidate(self, key: Optional[Hashable] = None) -> None:
		"""Make every in-flight tag stale, for one key or all of them."""
		keys = [key] if key is not None else list(self._latest)
		for item in keys:
			self._latest[item] = self._latest.get(item, 0) + 1


@dataclass
class AttendanceView:
	"""What the dashboard shows for one course."""
	course_id: str
	records: List[AttendanceRecord] = field(default_factory=list)
	stats: Optional[Dict[str, Any]] = None
	status: str = VIEW_STATUS_IDLE
	error: Optional[str] = None
	updated_at: Optional[datetime] = None
	generation: int = 0

	def apply(self, report: AttendanceReport, generation: int, when: datetime) -> None:
		self.records = list(report.records)
		self.stats = report.stats
		self.status = VIEW_STATUS_READY
		self.error = None
		self.updated_at = when
		self.generation = generation

	def fail(self, message: str, generation: int, when: datetime) -> None:
		"""Clear to an empty, stats-less state rather than keep stale data."""
		self.records = []
		self.stats = None
		self.status = VIEW_STATUS_ERROR
		self.error = message
		self.updated_at = when
		self.generation = generation

	@property
	def latest_badge(self) -> Optional[StatusBadge]:
		if not self.records:
			return None
		return self.records[0].badge


@dataclass
class AssignmentsView:
	"""What the dashboard shows for one student."""
	student_id: str
	assignments: List[Assignment] = field(default_factory=list)
	status: str = VIEW_STATUS_IDLE
	error: Optional[str] = None
	evaluated_at: Optional[datetime] = None
	generation: int = 0

	def apply(self, assignments: List[Assignment], generation: int, when: datetime) -> None:
		self.assignments = list(assignments)
		self.status = VIEW_STATUS_READY
		self.error = None
		self.evaluated_at = when
		self.generation = generation

	def fail(self, message: str, generation: int, when: datetime) -> None:
		self.assignments = []
		self.status = VIEW_STATUS_ERROR
		self.error = message
		self.evaluated_at = when
		self.generation = generation

	@property
	def overdue_count(self) -> int:
		return sum(1 for assignment in self.assignments if assignment.is_overdue)

	@property
	def pending_count(self) -> int:
		return len(self.assignments) - self.overdue_count


def attendance_record_attributes(record: AttendanceRecord) -> Dict[str, Any]:
	"""Flatten a record into display values for an entity attribute."""
	badge = record.badge
	return {
		"id": record.id,
		"date": record.date.isoformat(),
		"date_display": format_long_date(record.date),
		"student": record.student_name,
		"student_id": record.student.id if record.student else None,
		"status": record.status.value,
		"label": badge.label,
		"severity": badge.severity.value,
		"icon": badge.icon,
		"notes": record.notes_display,
	}


def assignment_attributes(assignment: Assignment) -> Dict[str, Any]:
	"""Flatten an assignment into display values for an entity attribute."""
	return {
		"id": assignment.id,
		"title": assignment.title,
		"course_name": assignment.course_name,
		"description": assignment.description,
		"due_date": assignment.due_date.isoformat(),
		"due_date_display": format_short_date(assignment.due_date),
		"status": assignment.status.value,
		"status_label": assignment.status.label,
	}
