"""Main client for the Aula school platform API."""

import asyncio
import json
import logging
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

import aiohttp

from .auth import DEFAULT_HEADERS, TokenProvider
from .exceptions import (
	AssignmentQueryError,
	AttendanceFetchError,
	AulaAuthError,
	AulaConnectionError,
	AulaDataError,
	DEFAULT_ATTENDANCE_ERROR,
)
from .models import (
	DEFAULT_COURSE_NAME,
	DEFAULT_DESCRIPTION,
	Assignment,
	AssignmentBatch,
	AttendanceRecord,
	AttendanceReport,
	StudentRef,
	classify_assignment_status,
	to_attendance_status,
)
from .utils import parse_date, parse_timestamp, utcnow

_LOGGER = logging.getLogger(__name__)

ATTENDANCE_FUNCTION_PATH = "/functions/v1/get-course-attendance"
REST_PATH = "/rest/v1"
ASSIGNMENT_SELECT = "id,title,description,due_date,course:course_id(name)"
DEFAULT_ASSIGNMENT_LIMIT = 10
DEFAULT_TIMEOUT = 30


class AulaClient:
	"""Client for reading attendance and assignments from the school platform."""

	def __init__(
		self,
		base_url: str,
		api_key: str,
		token_provider: TokenProvider,
		session: Optional[aiohttp.ClientSession] = None,
		assignment_limit: int = DEFAULT_ASSIGNMENT_LIMIT,
		scope_to_enrollments: bool = False,
		timeout: float = DEFAULT_TIMEOUT,
		now_func: Callable[[], datetime] = utcnow,
	):
		"""Initialise the client.

		Args:
			base_url: Project URL, e.g. ``https://xyz.supabase.co``
			api_key: Public (anon) API key of the project
			token_provider: Source of bearer tokens for each request
			session: Optional aiohttp session. If None, one is created on enter.
			assignment_limit: How many of the latest assignments to load
			scope_to_enrollments: Restrict assignments to the student's enrolled courses
			timeout: Total request timeout in seconds
			now_func: Clock used to evaluate assignment status
		"""
		if assignment_limit < 1:
			raise ValueError("assignment_limit must be at least 1")
		self.base_url = base_url.rstrip("/")
		self.api_key = api_key
		self.token_provider = token_provider
		self.assignment_limit = assignment_limit
		self.scope_to_enrollments = scope_to_enrollments
		self._session = session
		self._own_session = session is None
		self._timeout = aiohttp.ClientTimeout(total=timeout)
		self._now = now_func

	async def __aenter__(self):
		"""Async context manager entry."""
		if self._own_session and self._session is None:
			self._session = aiohttp.ClientSession()
		return self

	async def __aexit__(self, exc_type, exc_val, exc_tb):
		"""Async context manager exit."""
		await self.close()

	async def close(self) -> None:
		if self._own_session and self._session:
			await self._session.close()
			self._session = None

	async def _headers(self) -> Dict[str, str]:
		token = await self.token_provider.async_get_access_token()
		headers = DEFAULT_HEADERS.copy()
		headers.pop("Content-Type", None)
		headers.update({
			"apikey": self.api_key,
			"Authorization": f"Bearer {token}",
		})
		return headers

	def _ensure_session(self) -> aiohttp.ClientSession:
		if self._session is None:
			raise AulaConnectionError("Client session not initialised. Use 'async with' or pass a session.")
		return self._session

	async def fetch_attendance(self, course_id: str) -> AttendanceReport:
		"""Get attendance records and precomputed stats for a course.

		Args:
			course_id: Course identifier; an unknown course yields an empty report

		Returns:
			AttendanceReport with records in server order and stats as sent, or None

		Raises:
			AttendanceFetchError: on transport, auth, HTTP or payload failure
		"""
		if not course_id:
			raise ValueError("course_id is required")

		url = f"{self.base_url}{ATTENDANCE_FUNCTION_PATH}"
		_LOGGER.debug(f"Fetching attendance for course {course_id}")

		try:
			session = self._ensure_session()
			headers = await self._headers()
			async with session.get(url, params={"course_id": course_id}, headers=headers, timeout=self._timeout) as resp:
				data = await self._read_json(resp)
				if not 200 <= resp.status < 300:
					message = data.get("error") if isinstance(data, dict) else None
					_LOGGER.warning(f"Attendance request for course {course_id} failed: HTTP {resp.status} {message!r}")
					raise AttendanceFetchError(
						message if isinstance(message, str) and message else DEFAULT_ATTENDANCE_ERROR,
						status=resp.status,
					)
				report = self._parse_attendance_payload(data)
		except AttendanceFetchError:
			raise
		except AulaAuthError as e:
			raise AttendanceFetchError(f"{DEFAULT_ATTENDANCE_ERROR}: {e}") from e
		except AulaDataError as e:
			_LOGGER.error(f"Malformed attendance payload for course {course_id}: {e}")
			raise AttendanceFetchError(DEFAULT_ATTENDANCE_ERROR) from e
		except AulaConnectionError as e:
			raise AttendanceFetchError(DEFAULT_ATTENDANCE_ERROR) from e
		except (aiohttp.ClientError, asyncio.TimeoutError) as e:
			_LOGGER.error(f"Connection error fetching attendance for course {course_id}: {e}")
			raise AttendanceFetchError(DEFAULT_ATTENDANCE_ERROR) from e

		_LOGGER.debug(f"Got {len(report.records)} attendance records for course {course_id}")
		return report

	async def get_enrolled_course_ids(self, student_id: str) -> List[str]:
		"""Get the ids of the courses a student is enrolled in."""
		params = {
			"select": "course_id",
			"student_id": f"eq.{student_id}",
		}
		rows = await self._rest_get("course_enrollments", params)
		course_ids: List[str] = []
		for row in rows:
			course_id = row.get("course_id") if isinstance(row, dict) else None
			if course_id and str(course_id) not in course_ids:
				course_ids.append(str(course_id))
		return course_ids

	def build_assignment_params(self, course_ids: Optional[List[str]] = None, limit: Optional[int] = None) -> Dict[str, str]:
		"""Build the PostgREST query for the latest assignments."""
		params = {
			"select": ASSIGNMENT_SELECT,
			"order": "due_date.desc",
			"limit": str(limit or self.assignment_limit),
		}
		if course_ids is not None:
			params["course_id"] = f"in.({','.join(course_ids)})"
		return params

	async def query_assignments(self, student_id: str, limit: Optional[int] = None) -> List[Assignment]:
		"""Get the latest assignments for a student with their derived status.

		Raises:
			AssignmentQueryError: if the query fails for any reason
		"""
		batch = await self.query_assignment_batch(student_id, limit)
		return batch.assignments

	async def query_assignment_batch(self, student_id: str, limit: Optional[int] = None) -> AssignmentBatch:
		"""Get the latest assignments together with the time they were classified against.

		The evaluation time is read once for the whole batch.

		Raises:
			AssignmentQueryError: if the query fails for any reason
		"""
		if not student_id:
			raise ValueError("student_id is required")

		try:
			course_ids = None
			if self.scope_to_enrollments:
				course_ids = await self.get_enrolled_course_ids(student_id)
				if not course_ids:
					_LOGGER.debug(f"Student {student_id} has no enrollments; no assignments to load")
					return AssignmentBatch([], self._now())

			rows = await self._rest_get("assignments", self.build_assignment_params(course_ids, limit))
		except AssignmentQueryError:
			raise
		except (AulaAuthError, AulaConnectionError, AulaDataError) as e:
			raise AssignmentQueryError(str(e)) from e

		now = self._now()
		return AssignmentBatch(self._parse_assignments(rows, now), now)

	async def load_assignments(self, student_id: str) -> List[Assignment]:
		"""Get the latest assignments for a student; failures are logged and yield an empty list."""
		try:
			return await self.query_assignments(student_id)
		except AssignmentQueryError as err:
			_LOGGER.error(f"Error loading assignments for student {student_id}: {err}")
			return []

	async def _rest_get(self, table: str, params: Dict[str, str]) -> List[Dict[str, Any]]:
		url = f"{self.base_url}{REST_PATH}/{table}"
		try:
			session = self._ensure_session()
			headers = await self._headers()
			async with session.get(url, params=params, headers=headers, timeout=self._timeout) as resp:
				data = await self._read_json(resp)
				if resp.status != 200:
					message = None
					if isinstance(data, dict):
						message = data.get("message") or data.get("error")
					raise AssignmentQueryError(
						f"Query on {table} failed: HTTP {resp.status}" + (f" - {message}" if message else ""),
						status=resp.status,
					)
		except (aiohttp.ClientError, asyncio.TimeoutError) as e:
			raise AulaConnectionError(f"Connection error: {e}") from e

		if not isinstance(data, list):
			raise AulaDataError(f"Expected a list of rows from {table}")
		return data

	async def _read_json(self, resp) -> Any:
		"""Decode a JSON body, tolerating a wrong content-type header."""
		try:
			return await resp.json(content_type=None)
		except (aiohttp.ContentTypeError, json.JSONDecodeError, ValueError):
			text = await resp.text()
			_LOGGER.debug(f"Response is not JSON: {text[:200]}...")
			if 200 <= resp.status < 300:
				raise AulaDataError("Invalid JSON response")
			return None

	def _parse_attendance_payload(self, data: Any) -> AttendanceReport:
		"""Parse the attendance endpoint payload.

		Raises:
			AulaDataError: if the payload or any record is malformed
		"""
		if not isinstance(data, dict):
			raise AulaDataError("Attendance payload is not an object")

		raw_records = data.get("records")
		if raw_records is None:
			raw_records = []
		if not isinstance(raw_records, list):
			raise AulaDataError("Attendance records are not a list")

		stats = data.get("stats")
		records = [self._parse_attendance_record(item) for item in raw_records]
		return AttendanceReport(records=records, stats=stats)

	def _parse_attendance_record(self, item: Any) -> AttendanceRecord:
		if not isinstance(item, dict):
			raise AulaDataError(f"Attendance record is not an object: {item!r}")
		if item.get("id") in (None, ""):
			raise AulaDataError("Attendance record without id")

		return AttendanceRecord(
			id=str(item["id"]),
			date=parse_date(item.get("date")),
			status=to_attendance_status(item.get("status")),
			notes=item.get("notes") or None,
			student=self._parse_student(item.get("student")),
		)

	def _parse_student(self, data: Any) -> Optional[StudentRef]:
		# A broken reference comes back as null
		if not isinstance(data, dict) or not data.get("id"):
			return None
		return StudentRef(
			id=str(data["id"]),
			first_name=data.get("first_name") or "",
			last_name=data.get("last_name") or "",
			email=data.get("email"),
		)

	def _parse_assignments(self, rows: List[Dict[str, Any]], now: datetime) -> List[Assignment]:
		"""Turn assignment rows into Assignment objects evaluated at ``now``."""
		assignments = []

		for row in rows:
			try:
				due_date = parse_timestamp(row.get("due_date"))
				assignments.append(Assignment(
					id=str(row["id"]),
					title=row.get("title") or "",
					due_date=due_date,
					status=classify_assignment_status(due_date, now),
					description=row.get("description") or DEFAULT_DESCRIPTION,
					course_name=self._course_name(row.get("course")),
				))
			except (KeyError, AttributeError, AulaDataError) as e:
				_LOGGER.warning(f"Failed to parse assignment: {e}")
				continue

		return assignments

	def _course_name(self, course: Any) -> str:
		if isinstance(course, list):
			course = course[0] if course else None
		if isinstance(course, dict) and course.get("name"):
			return course["name"]
		return DEFAULT_COURSE_NAME
