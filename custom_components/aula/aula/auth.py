"""Authentication handling for the Aula school platform."""

import asyncio
import json
import logging
import time
from typing import Any, Dict, Optional, Protocol

import aiohttp

from .exceptions import AulaAuthError, AulaConnectionError

_LOGGER = logging.getLogger(__name__)

TOKEN_PATH = "/auth/v1/token"

# Refresh this many seconds before the token actually expires
EXPIRY_MARGIN_SECONDS = 60

DEFAULT_HEADERS = {
	"Accept": "application/json",
	"Content-Type": "application/json",
	"X-Client-Info": "aula-python/1.0.0",
}


class TokenProvider(Protocol):
	"""Anything that can hand out a bearer token for the platform."""

	async def async_get_access_token(self) -> str:
		...


class StaticTokenProvider:
	"""Token provider returning a fixed, pre-issued token."""

	def __init__(self, token: str) -> None:
		if not token:
			raise AulaAuthError("An access token is required")
		self._token = token

	async def async_get_access_token(self) -> str:
		return self._token


class SupabaseAuth:
	"""Password sign-in against the platform's auth service.

	Keeps the session tokens in memory only and refreshes the access token
	shortly before it expires. Credentials are kept so that a failed refresh
	can fall back to a fresh sign-in.
	"""

	def __init__(self, session: aiohttp.ClientSession, base_url: str, api_key: str) -> None:
		"""Initialise authentication handler.

		Args:
			session: aiohttp session to use for requests
			base_url: Project URL, e.g. ``https://xyz.supabase.co``
			api_key: Public (anon) API key of the project
		"""
		self.session = session
		self.base_url = base_url.rstrip("/")
		self.api_key = api_key
		self.authenticated = False
		self.user_id: Optional[str] = None
		self._access_token: Optional[str] = None
		self._refresh_token: Optional[str] = None
		self._expires_at: Optional[float] = None
		self._email: Optional[str] = None
		self._password: Optional[str] = None
		self._lock: asyncio.Lock = asyncio.Lock()

	@property
	def headers(self) -> Dict[str, str]:
		headers = DEFAULT_HEADERS.copy()
		headers["apikey"] = self.api_key
		return headers

	def is_token_expired(self) -> bool:
		"""Check whether the access token is missing or about to expire."""
		if not self.authenticated or not self._access_token:
			return True
		if self._expires_at is None:
			return False
		return time.time() >= self._expires_at - EXPIRY_MARGIN_SECONDS

	async def login(self, email: str, password: str) -> bool:
		"""Sign in with email and password.

		Returns:
			True if authentication successful

		Raises:
			AulaAuthError: credentials rejected
			AulaConnectionError: the auth service could not be reached
		"""
		# Store for re-authentication when a refresh fails
		self._email = email
		self._password = password

		_LOGGER.debug(f"Signing in to {self.base_url} as {email}")
		data = await self._request_token("password", {"email": email, "password": password})
		self._store_session(data)
		_LOGGER.info("Aula authentication successful")
		return True

	async def refresh(self) -> bool:
		"""Exchange the refresh token for a new access token."""
		if not self._refresh_token:
			raise AulaAuthError("No refresh token available")

		data = await self._request_token("refresh_token", {"refresh_token": self._refresh_token})
		self._store_session(data)
		_LOGGER.debug("Aula access token refreshed")
		return True

	async def async_get_access_token(self) -> str:
		"""Return a valid access token, refreshing or signing in again when needed.

		Concurrent callers share one refresh: whoever holds the lock renews the
		token and the others re-check expiry once they get it.
		"""
		if not self.is_token_expired():
			return self._access_token

		async with self._lock:
			if not self.is_token_expired():
				return self._access_token

			if self._refresh_token:
				try:
					await self.refresh()
					return self._access_token
				except AulaAuthError as err:
					_LOGGER.warning(f"Token refresh failed, signing in again: {err}")

			if not self._email or not self._password:
				self.authenticated = False
				raise AulaAuthError("Not authenticated. Call login() first.")

			await self.login(self._email, self._password)
			return self._access_token

	def logout(self) -> None:
		"""Forget the session tokens."""
		self.authenticated = False
		self._access_token = None
		self._refresh_token = None
		self._expires_at = None
		self.user_id = None

	async def _request_token(self, grant_type: str, payload: Dict[str, Any]) -> Dict[str, Any]:
		url = f"{self.base_url}{TOKEN_PATH}"
		try:
			async with self.session.post(
				url,
				params={"grant_type": grant_type},
				headers=self.headers,
				json=payload,
			) as resp:
				text = await resp.text()
				try:
					data = json.loads(text) if text else {}
				except json.JSONDecodeError:
					_LOGGER.error(f"Auth response is not JSON: {text[:200]}...")
					data = {}

				if resp.status in (400, 401, 403, 422):
					self.authenticated = False
					message = _error_message(data) or f"HTTP {resp.status}"
					raise AulaAuthError(f"Authentication failed: {message}")
				if resp.status != 200:
					raise AulaConnectionError(f"Auth service returned HTTP {resp.status}")
				if not isinstance(data, dict) or not data.get("access_token"):
					raise AulaAuthError("Authentication response did not include an access token")
				return data
		except aiohttp.ClientError as e:
			raise AulaConnectionError(f"Connection error: {e}") from e

	def _store_session(self, data: Dict[str, Any]) -> None:
		expires_at = data.get("expires_at")
		expires_in = data.get("expires_in")
		try:
			if expires_at is not None:
				expiry = float(expires_at)
			elif expires_in is not None:
				expiry = time.time() + float(expires_in)
			else:
				expiry = None
		except (TypeError, ValueError) as e:
			self.authenticated = False
			raise AulaAuthError(f"Authentication response has an invalid expiry: {e}") from e

		self._access_token = data["access_token"]
		self._refresh_token = data.get("refresh_token", self._refresh_token)
		self._expires_at = expiry

		user = data.get("user") or {}
		self.user_id = user.get("id") if isinstance(user, dict) else None
		self.authenticated = True


def _error_message(data: Any) -> Optional[str]:
	if not isinstance(data, dict):
		return None
	for key in ("error_description", "msg", "message", "error"):
		value = data.get(key)
		if isinstance(value, str) and value:
			return value
	return None
