"""Tests for AulaClient: attendance aggregation and assignment status."""

import asyncio
import sys
from datetime import date, datetime, timezone
from pathlib import Path
from unittest.mock import MagicMock

import aiohttp
import pytest

# Add the custom components to the path
sys.path.insert(0, str(Path(__file__).parent.parent / 'custom_components' / 'aula'))

from aula.auth import StaticTokenProvider, SupabaseAuth
from aula.client import ASSIGNMENT_SELECT, AulaClient
from aula.exceptions import AssignmentQueryError, AttendanceFetchError, AulaAuthError
from aula.models import AssignmentStatus, AttendanceStatus

from mock_http import MockResponse, mock_session

BASE_URL = "https://example.supabase.co"
NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def make_client(session, **kwargs) -> AulaClient:
	kwargs.setdefault("now_func", lambda: NOW)
	return AulaClient(BASE_URL, "anon-key", StaticTokenProvider("token-123"), session=session, **kwargs)


def attendance_payload():
	return {
		"records": [
			{
				"id": "r1",
				"date": "2024-03-01",
				"status": "present",
				"notes": None,
				"student": {"id": "s1", "first_name": "Ana", "last_name": "García", "email": "ana@example.com"},
			},
			{
				"id": "r2",
				"date": "2024-03-02",
				"status": "absent",
				"notes": "Cita médica",
				"student": None,
			},
		],
		"stats": {"present": 1, "absent": 1},
	}


class TestFetchAttendance:

	def test_returns_records_and_stats_unmodified(self):
		session = mock_session(MockResponse(200, attendance_payload()))
		client = make_client(session)

		report = asyncio.run(client.fetch_attendance("C1"))

		assert [r.id for r in report.records] == ["r1", "r2"]
		assert report.records[0].date == date(2024, 3, 1)
		assert report.records[0].status is AttendanceStatus.PRESENT
		assert report.records[0].student.full_name == "Ana García"
		assert report.records[1].status is AttendanceStatus.ABSENT
		assert report.records[1].notes == "Cita médica"
		assert report.records[1].student is None
		assert report.stats == {"present": 1, "absent": 1}

	def test_request_is_scoped_and_authenticated(self):
		session = mock_session(MockResponse(200, {"records": [], "stats": None}))
		client = make_client(session)

		asyncio.run(client.fetch_attendance("C1"))

		args, kwargs = session.get.call_args
		assert args[0] == f"{BASE_URL}/functions/v1/get-course-attendance"
		assert kwargs["params"] == {"course_id": "C1"}
		assert kwargs["headers"]["Authorization"] == "Bearer token-123"
		assert kwargs["headers"]["apikey"] == "anon-key"

	def test_missing_records_and_stats_default(self):
		session = mock_session(MockResponse(200, {}))
		client = make_client(session)

		report = asyncio.run(client.fetch_attendance("unknown-course"))

		assert report.records == []
		assert report.stats is None

	def test_empty_stats_object_is_forwarded(self):
		session = mock_session(MockResponse(200, {"records": [], "stats": {}}))
		client = make_client(session)

		report = asyncio.run(client.fetch_attendance("C1"))

		assert report.stats == {}

	def test_server_error_message_is_surfaced(self):
		session = mock_session(MockResponse(500, {"error": "db down"}))
		client = make_client(session)

		with pytest.raises(AttendanceFetchError) as exc_info:
			asyncio.run(client.fetch_attendance("C1"))

		assert exc_info.value.message == "db down"
		assert exc_info.value.status == 500

	def test_error_without_message_uses_default(self):
		session = mock_session(MockResponse(401, text_data="Unauthorized", raise_json_error=True))
		client = make_client(session)

		with pytest.raises(AttendanceFetchError) as exc_info:
			asyncio.run(client.fetch_attendance("C1"))

		assert exc_info.value.message == "Error al cargar la asistencia"

	def test_malformed_payload_is_a_fetch_error(self):
		session = mock_session(MockResponse(200, text_data="<html>", raise_json_error=True))
		client = make_client(session)

		with pytest.raises(AttendanceFetchError):
			asyncio.run(client.fetch_attendance("C1"))

	def test_unknown_status_fails_the_fetch(self):
		payload = attendance_payload()
		payload["records"][1]["status"] = "sick"
		session = mock_session(MockResponse(200, payload))
		client = make_client(session)

		with pytest.raises(AttendanceFetchError):
			asyncio.run(client.fetch_attendance("C1"))

	def test_records_not_a_list_fails_the_fetch(self):
		session = mock_session(MockResponse(200, {"records": {"id": "r1"}}))
		client = make_client(session)

		with pytest.raises(AttendanceFetchError):
			asyncio.run(client.fetch_attendance("C1"))

	def test_connection_error_is_a_fetch_error(self):
		session = MagicMock()
		session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("refused"))
		client = make_client(session)

		with pytest.raises(AttendanceFetchError) as exc_info:
			asyncio.run(client.fetch_attendance("C1"))

		assert exc_info.value.message == "Error al cargar la asistencia"

	def test_token_failure_is_a_fetch_error(self):
		provider = MagicMock()

		async def fail():
			raise AulaAuthError("expired")

		provider.async_get_access_token = fail
		session = mock_session()
		client = AulaClient(BASE_URL, "anon-key", provider, session=session)

		with pytest.raises(AttendanceFetchError):
			asyncio.run(client.fetch_attendance("C1"))
		session.get.assert_not_called()

	def test_empty_course_id_is_rejected(self):
		client = make_client(mock_session())

		with pytest.raises(ValueError):
			asyncio.run(client.fetch_attendance(""))


class TestAssignments:

	def test_query_shape(self):
		session = mock_session(MockResponse(200, []))
		client = make_client(session)

		asyncio.run(client.query_assignments("S1"))

		args, kwargs = session.get.call_args
		assert args[0] == f"{BASE_URL}/rest/v1/assignments"
		assert kwargs["params"] == {
			"select": ASSIGNMENT_SELECT,
			"order": "due_date.desc",
			"limit": "10",
		}
		assert ASSIGNMENT_SELECT == "id,title,description,due_date,course:course_id(name)"

	def test_limit_is_configurable(self):
		session = mock_session(MockResponse(200, []))
		client = make_client(session, assignment_limit=3)

		asyncio.run(client.query_assignments("S1"))

		assert session.get.call_args.kwargs["params"]["limit"] == "3"

	def test_invalid_limit_is_rejected(self):
		with pytest.raises(ValueError):
			make_client(mock_session(), assignment_limit=0)

	def test_past_due_date_is_overdue(self):
		rows = [{
			"id": "a1",
			"title": "Ensayo",
			"description": "Dos páginas",
			"due_date": "2024-01-01T00:00:00Z",
			"course": {"name": "Lengua"},
		}]
		client = make_client(mock_session(MockResponse(200, rows)))

		assignments = asyncio.run(client.load_assignments("S1"))

		assert len(assignments) == 1
		assert assignments[0].status is AssignmentStatus.OVERDUE
		assert assignments[0].course_name == "Lengua"
		assert assignments[0].description == "Dos páginas"

	def test_due_date_equal_to_now_is_pending(self):
		rows = [
			{"id": "a1", "title": "Hoy", "due_date": "2024-06-01T00:00:00+00:00", "course": {"name": "Arte"}},
			{"id": "a2", "title": "Mañana", "due_date": "2024-06-02T00:00:00Z", "course": {"name": "Arte"}},
		]
		client = make_client(mock_session(MockResponse(200, rows)))

		assignments = asyncio.run(client.load_assignments("S1"))

		assert [a.status for a in assignments] == [AssignmentStatus.PENDING, AssignmentStatus.PENDING]

	def test_clock_is_read_once_per_batch(self):
		calls = []

		def clock():
			calls.append(1)
			return NOW

		rows = [
			{"id": f"a{i}", "title": "T", "due_date": "2024-05-01T00:00:00Z", "course": None}
			for i in range(5)
		]
		client = make_client(mock_session(MockResponse(200, rows)), now_func=clock)

		asyncio.run(client.load_assignments("S1"))

		assert len(calls) == 1

	def test_defaults_for_missing_description_and_course(self):
		rows = [{"id": "a1", "title": "Sin datos", "description": None, "due_date": "2024-07-01T00:00:00Z", "course": None}]
		client = make_client(mock_session(MockResponse(200, rows)))

		assignment = asyncio.run(client.load_assignments("S1"))[0]

		assert assignment.description == "Sin descripción"
		assert assignment.course_name == "Sin curso"

	def test_repeated_loads_give_same_status(self):
		rows = [
			{"id": "a1", "title": "Viejo", "due_date": "2024-01-01T00:00:00Z", "course": {"name": "Historia"}},
			{"id": "a2", "title": "Nuevo", "due_date": "2024-12-01T00:00:00Z", "course": {"name": "Historia"}},
		]
		client = make_client(mock_session(MockResponse(200, rows), MockResponse(200, rows)))

		first = asyncio.run(client.load_assignments("S1"))
		second = asyncio.run(client.load_assignments("S1"))

		assert [a.status for a in first] == [a.status for a in second]

	def test_query_failure_yields_empty_list(self):
		client = make_client(mock_session(MockResponse(500, {"message": "boom"})))

		assert asyncio.run(client.load_assignments("S1")) == []

	def test_query_failure_raises_at_query_level(self):
		client = make_client(mock_session(MockResponse(400, {"message": "bad column"})))

		with pytest.raises(AssignmentQueryError) as exc_info:
			asyncio.run(client.query_assignments("S1"))

		assert "bad column" in exc_info.value.message
		assert exc_info.value.status == 400

	def test_connection_failure_raises_at_query_level(self):
		session = MagicMock()
		session.get = MagicMock(side_effect=aiohttp.ClientConnectionError("reset"))
		client = make_client(session)

		with pytest.raises(AssignmentQueryError):
			asyncio.run(client.query_assignments("S1"))

	def test_unparseable_row_is_skipped(self):
		rows = [
			{"id": "a1", "title": "Roto", "due_date": "not a date"},
			{"id": "a2", "title": "Bien", "due_date": "2024-01-01T00:00:00Z"},
		]
		client = make_client(mock_session(MockResponse(200, rows)))

		assignments = asyncio.run(client.load_assignments("S1"))

		assert [a.id for a in assignments] == ["a2"]

	def test_scoping_to_enrollments_filters_courses(self):
		session = mock_session(
			MockResponse(200, [{"course_id": "c1"}, {"course_id": "c2"}, {"course_id": "c1"}]),
			MockResponse(200, []),
		)
		client = make_client(session, scope_to_enrollments=True)

		asyncio.run(client.query_assignments("S1"))

		first, second = session.get.call_args_list
		assert first.args[0] == f"{BASE_URL}/rest/v1/course_enrollments"
		assert first.kwargs["params"]["student_id"] == "eq.S1"
		assert second.kwargs["params"]["course_id"] == "in.(c1,c2)"

	def test_scoping_without_enrollments_skips_the_query(self):
		session = mock_session(MockResponse(200, []))
		client = make_client(session, scope_to_enrollments=True)

		assert asyncio.run(client.query_assignments("S1")) == []
		assert session.get.call_count == 1


def test_invalid_token_expiry_fails_the_attendance_fetch():
	bad_token = {"access_token": "a", "expires_at": "soon"}
	session = mock_session(MockResponse(200, bad_token), MockResponse(200, bad_token))
	auth = SupabaseAuth(session, BASE_URL, "anon-key")
	with pytest.raises(AulaAuthError):
		asyncio.run(auth.login("parent@example.com", "secret"))
	client = AulaClient(BASE_URL, "anon-key", auth, session=session)

	with pytest.raises(AttendanceFetchError):
		asyncio.run(client.fetch_attendance("C1"))
	session.get.assert_not_called()


def test_batch_carries_its_evaluation_time():
	rows = [{"id": "a1", "title": "Ensayo", "due_date": "2024-01-01T00:00:00Z", "course": {"name": "Lengua"}}]
	client = make_client(mock_session(MockResponse(200, rows)))

	batch = asyncio.run(client.query_assignment_batch("S1"))

	assert batch.evaluated_at == NOW
	assert [a.status for a in batch.assignments] == [AssignmentStatus.OVERDUE]


def test_batch_without_enrollments_still_has_an_evaluation_time():
	client = make_client(mock_session(MockResponse(200, [])), scope_to_enrollments=True)

	batch = asyncio.run(client.query_assignment_batch("S1"))

	assert batch.assignments == []
	assert batch.evaluated_at == NOW
