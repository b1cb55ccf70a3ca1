"""Parsing and display helpers for Aula data."""

import logging
from datetime import date, datetime, timezone
from typing import Any, List, Optional

from .exceptions import AulaDataError

_LOGGER = logging.getLogger(__name__)

SPANISH_MONTHS = (
	"enero", "febrero", "marzo", "abril", "mayo", "junio",
	"julio", "agosto", "septiembre", "octubre", "noviembre", "diciembre",
)


def parse_timestamp(value: Any) -> datetime:
	"""Parse an ISO-8601 timestamp into a timezone-aware datetime.

	Accepts a trailing ``Z`` and plain dates. Naive values are taken as UTC.

	Raises:
		AulaDataError: if the value cannot be parsed
	"""
	if isinstance(value, datetime):
		parsed = value
	elif isinstance(value, date):
		parsed = datetime(value.year, value.month, value.day)
	elif isinstance(value, str) and value.strip():
		text = value.strip()
		if text.endswith("Z") or text.endswith("z"):
			text = text[:-1] + "+00:00"
		try:
			parsed = datetime.fromisoformat(text)
		except ValueError as e:
			raise AulaDataError(f"Invalid timestamp: {value!r}") from e
	else:
		raise AulaDataError(f"Invalid timestamp: {value!r}")

	if parsed.tzinfo is None:
		parsed = parsed.replace(tzinfo=timezone.utc)
	return parsed


def parse_date(value: Any) -> date:
	"""Parse a calendar date; full timestamps are truncated to their date."""
	if isinstance(value, datetime):
		return value.date()
	if isinstance(value, date):
		return value
	if isinstance(value, str) and value.strip():
		text = value.strip()
		try:
			return date.fromisoformat(text[:10])
		except ValueError as e:
			raise AulaDataError(f"Invalid date: {value!r}") from e
	raise AulaDataError(f"Invalid date: {value!r}")


def format_long_date(value: date) -> str:
	"""Spanish long date, e.g. ``1 de marzo de 2024``."""
	return f"{value.day} de {SPANISH_MONTHS[value.month - 1]} de {value.year}"


def format_short_date(value: date) -> str:
	"""Day-first numeric date, e.g. ``01/03/2024``."""
	return value.strftime("%d/%m/%Y")


def utcnow() -> datetime:
	return datetime.now(timezone.utc)


def parse_id_list(value: Optional[Any]) -> List[str]:
	"""Normalise a comma separated string or a list into unique, non-empty ids."""
	if value is None:
		return []
	if isinstance(value, str):
		items = value.split(",")
	else:
		items = list(value)

	ids: List[str] = []
	for item in items:
		item_id = str(item).strip()
		if not item_id or item_id.lower() == "none":
			if item_id:
				_LOGGER.debug(f"Ignoring invalid id {item_id!r}")
			continue
		if item_id not in ids:
			ids.append(item_id)
	return ids
