"""Tests for view state: generation tags, apply/fail rules and display attributes."""

import sys
from datetime import date, datetime, timezone
from pathlib import Path

# Add the custom components to the path
sys.path.insert(0, str(Path(__file__).parent.parent / 'custom_components' / 'aula'))

from aula.models import (
	Assignment,
	AssignmentStatus,
	AttendanceRecord,
	AttendanceReport,
	AttendanceStatus,
	StudentRef,
)
from aula.views import (
	VIEW_STATUS_ERROR,
	VIEW_STATUS_IDLE,
	VIEW_STATUS_READY,
	AssignmentsView,
	AttendanceView,
	GenerationTracker,
	assignment_attributes,
	attendance_record_attributes,
)

WHEN = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_record(record_id="r1", status=AttendanceStatus.PRESENT):
	return AttendanceRecord(
		id=record_id,
		date=date(2024, 3, 1),
		status=status,
		student=StudentRef(id="s1", first_name="Ana", last_name="García"),
	)


def make_assignment(assignment_id, status):
	return Assignment(
		id=assignment_id,
		title="Tarea",
		due_date=datetime(2024, 3, 1, tzinfo=timezone.utc),
		status=status,
	)


class TestGenerationTracker:

	def test_latest_dispatch_wins(self):
		tracker = GenerationTracker()
		first = tracker.dispatch("C1")
		second = tracker.dispatch("C1")

		assert second > first
		assert not tracker.is_current("C1", first)
		assert tracker.is_current("C1", second)

	def test_keys_are_independent(self):
		tracker = GenerationTracker()
		course_tag = tracker.dispatch(("attendance", "C1"))
		tracker.dispatch(("assignments", "S1"))
		tracker.dispatch(("attendance", "C2"))

		assert tracker.is_current(("attendance", "C1"), course_tag)

	def test_invalidate_one_key(self):
		tracker = GenerationTracker()
		a = tracker.dispatch("C1")
		b = tracker.dispatch("C2")
		tracker.invalidate("C1")

		assert not tracker.is_current("C1", a)
		assert tracker.is_current("C2", b)

	def test_invalidate_all(self):
		tracker = GenerationTracker()
		a = tracker.dispatch("C1")
		b = tracker.dispatch("S1")
		tracker.invalidate()

		assert not tracker.is_current("C1", a)
		assert not tracker.is_current("S1", b)
		assert tracker.latest("unknown") == 0


class TestAttendanceView:

	def test_apply_then_fail_clears_state(self):
		view = AttendanceView("C1")
		assert view.status == VIEW_STATUS_IDLE

		view.apply(AttendanceReport([make_record()], {"present": 1}), 1, WHEN)
		assert view.status == VIEW_STATUS_READY
		assert view.stats == {"present": 1}
		assert view.latest_badge.label == "Presente"

		view.fail("db down", 2, WHEN)
		assert view.status == VIEW_STATUS_ERROR
		assert view.records == []
		assert view.stats is None
		assert view.error == "db down"
		assert view.generation == 2
		assert view.latest_badge is None

	def test_success_clears_previous_error(self):
		view = AttendanceView("C1")
		view.fail("db down", 1, WHEN)
		view.apply(AttendanceReport(), 2, WHEN)

		assert view.error is None
		assert view.records == []


class TestAssignmentsView:

	def test_counts(self):
		view = AssignmentsView("S1")
		view.apply(
			[
				make_assignment("a1", AssignmentStatus.OVERDUE),
				make_assignment("a2", AssignmentStatus.PENDING),
				make_assignment("a3", AssignmentStatus.OVERDUE),
			],
			1,
			WHEN,
		)

		assert view.overdue_count == 2
		assert view.pending_count == 1
		assert view.evaluated_at == WHEN

	def test_fail_empties_list(self):
		view = AssignmentsView("S1")
		view.apply([make_assignment("a1", AssignmentStatus.PENDING)], 1, WHEN)
		view.fail("Error al cargar las tareas", 2, WHEN)

		assert view.assignments == []
		assert view.overdue_count == 0
		assert view.error == "Error al cargar las tareas"


def test_attendance_record_attributes():
	attrs = attendance_record_attributes(make_record(status=AttendanceStatus.JUSTIFIED))

	assert attrs["date"] == "2024-03-01"
	assert attrs["date_display"] == "1 de marzo de 2024"
	assert attrs["student"] == "Ana García"
	assert attrs["status"] == "justified"
	assert attrs["label"] == "Justificado"
	assert attrs["severity"] == "informational"
	assert attrs["notes"] == "-"


def test_assignment_attributes():
	attrs = assignment_attributes(make_assignment("a1", AssignmentStatus.OVERDUE))

	assert attrs["due_date_display"] == "01/03/2024"
	assert attrs["status"] == "overdue"
	assert attrs["status_label"] == "atrasado"
	assert attrs["course_name"] == "Sin curso"
	assert attrs["description"] == "Sin descripción"
