"""Custom exceptions for the Aula integration."""

from typing import Optional

DEFAULT_ATTENDANCE_ERROR = "Error al cargar la asistencia"
DEFAULT_ASSIGNMENTS_ERROR = "Error al cargar las tareas"


class AulaError(Exception):
	"""Base exception for Aula errors."""
	pass


class AulaAuthError(AulaError):
	"""Authentication failed."""
	pass


class AulaConnectionError(AulaError):
	"""Connection to the school platform failed."""
	pass


class AulaDataError(AulaError):
	"""Data parsing or validation error."""
	pass


class UnknownAttendanceStatusError(AulaDataError):
	"""Attendance status outside the closed enumeration."""
	
	def __init__(self, status: object) -> None:
		super().__init__(f"Unknown attendance status: {status!r}")
		self.status = status


class AttendanceFetchError(AulaError):
	"""Attendance could not be loaded; carries a message fit for the user."""
	
	def __init__(self, message: Optional[str] = None, status: Optional[int] = None) -> None:
		self.message = message or DEFAULT_ATTENDANCE_ERROR
		self.status = status
		super().__init__(self.message)


class AssignmentQueryError(AulaError):
	"""The assignments query failed."""
	
	def __init__(self, message: Optional[str] = None, status: Optional[int] = None) -> None:
		self.message = message or DEFAULT_ASSIGNMENTS_ERROR
		self.status = status
		super().__init__(self.message)
