"""Data models for Aula entities."""

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .exceptions import UnknownAttendanceStatusError

DEFAULT_DESCRIPTION = "Sin descripción"
DEFAULT_COURSE_NAME = "Sin curso"
MISSING_STUDENT_LABEL = "Estudiante no disponible"
MISSING_NOTES_LABEL = "-"


class AttendanceStatus(str, Enum):
	"""Closed set of attendance statuses."""
	PRESENT = "present"
	LATE = "late"
	ABSENT = "absent"
	JUSTIFIED = "justified"


class Severity(str, Enum):
	"""How a status should be highlighted."""
	SUCCESS = "success"
	CAUTION = "caution"
	FAILURE = "failure"
	INFORMATIONAL = "informational"


class AssignmentStatus(str, Enum):
	"""Derived assignment status."""
	PENDING = "pending"
	OVERDUE = "overdue"

	@property
	def label(self) -> str:
		"""Spanish display label used by the dashboard."""
		return "atrasado" if self is AssignmentStatus.OVERDUE else "pendiente"


@dataclass(frozen=True)
class StatusBadge:
	"""Presentation triple for an attendance status."""
	label: str
	severity: Severity
	icon: str


STATUS_BADGES: Dict[AttendanceStatus, StatusBadge] = {
	AttendanceStatus.PRESENT: StatusBadge("Presente", Severity.SUCCESS, "mdi:check-circle"),
	AttendanceStatus.LATE: StatusBadge("Tarde", Severity.CAUTION, "mdi:clock-outline"),
	AttendanceStatus.ABSENT: StatusBadge("Ausente", Severity.FAILURE, "mdi:close-circle"),
	AttendanceStatus.JUSTIFIED: StatusBadge("Justificado", Severity.INFORMATIONAL, "mdi:file-check"),
}


def to_attendance_status(value: Any) -> AttendanceStatus:
	"""Coerce a raw status value, failing on anything outside the enumeration."""
	if isinstance(value, AttendanceStatus):
		return value
	try:
		return AttendanceStatus(value)
	except ValueError:
		raise UnknownAttendanceStatusError(value) from None


def classify_attendance_status(status: Any) -> StatusBadge:
	"""Return the badge for an attendance status.

	Raises:
		UnknownAttendanceStatusError: if the status is not one of the four known values
	"""
	return STATUS_BADGES[to_attendance_status(status)]


def classify_assignment_status(due_date: datetime, now: datetime) -> AssignmentStatus:
	"""Overdue when the due date is strictly before ``now``, pending otherwise."""
	if due_date.tzinfo is None:
		due_date = due_date.replace(tzinfo=timezone.utc)
	if now.tzinfo is None:
		now = now.replace(tzinfo=timezone.utc)
	return AssignmentStatus.OVERDUE if due_date < now else AssignmentStatus.PENDING


@dataclass
class StudentRef:
	"""Reference to the student an attendance record belongs to."""
	id: str
	first_name: str = ""
	last_name: str = ""
	email: Optional[str] = None

	@property
	def full_name(self) -> str:
		return f"{self.first_name} {self.last_name}".strip()


@dataclass
class AttendanceRecord:
	"""A single attendance event."""
	id: str
	date: date
	status: AttendanceStatus
	notes: Optional[str] = None
	student: Optional[StudentRef] = None

	@property
	def badge(self) -> StatusBadge:
		return classify_attendance_status(self.status)

	@property
	def student_name(self) -> str:
		"""Display name, with a fallback when the student reference is broken."""
		if self.student and self.student.full_name:
			return self.student.full_name
		return MISSING_STUDENT_LABEL

	@property
	def notes_display(self) -> str:
		return self.notes or MISSING_NOTES_LABEL

	def __str__(self) -> str:
		return f"{self.student_name} - {self.date.isoformat()} [{self.status.value}]"


@dataclass
class AttendanceReport:
	"""Records and the server-side summary for one course."""
	records: List[AttendanceRecord] = field(default_factory=list)
	stats: Optional[Dict[str, Any]] = None

	@property
	def is_empty(self) -> bool:
		return not self.records and self.stats is None


@dataclass
class Assignment:
	"""An assignment with its status derived at read time."""
	id: str
	title: str
	due_date: datetime
	status: AssignmentStatus
	description: str = DEFAULT_DESCRIPTION
	course_name: str = DEFAULT_COURSE_NAME

	@property
	def is_overdue(self) -> bool:
		return self.status is AssignmentStatus.OVERDUE

	def __str__(self) -> str:
		return f"{self.title} ({self.course_name}) - {self.due_date.strftime('%Y-%m-%d')} [{self.status.label}]"


@dataclass
class AssignmentBatch:
	"""Assignments classified against a single evaluation time."""
	assignments: List[Assignment] = field(default_factory=list)
	evaluated_at: Optional[datetime] = None
