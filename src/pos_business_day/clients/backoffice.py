"""Back-office API client implementing the engine's store protocols."""

import asyncio
from datetime import UTC, datetime, timedelta
from typing import Any

import httpx
import structlog

from pos_business_day.config import get_settings
from pos_business_day.models import (
    BusinessDaySettings,
    ClosingSummary,
    DailyClosing,
    Transaction,
    User,
)

logger = structlog.get_logger(__name__)

# Back-office tokens live 24h; log in again an hour before they expire
TOKEN_LIFETIME = timedelta(hours=23)

JSONResult = dict[str, Any] | list[dict[str, Any]]


class BackOfficeAPIError(Exception):
    """Base exception for back-office API errors."""

    def __init__(self, message: str, status_code: int | None = None, details: Any = None):
        super().__init__(message)
        self.status_code = status_code
        self.details = details


class AuthenticationError(BackOfficeAPIError):
    """Login was refused or no credentials are configured."""

    pass


class RateLimitError(BackOfficeAPIError):
    """The API answered 429; ``details["retry_after"]`` holds the wait in seconds."""

    pass


class BackOfficeAPIClient:
    """Async client for the back-office REST API with JWT authentication.

    One instance serves as ``SettingsStore``, ``TransactionStore``,
    ``ClosingStore`` and ``UserResolver``::

        async with BackOfficeAPIClient() as api:
            service = BusinessDayService(api, api, api, api)
    """

    def __init__(
        self,
        base_url: str | None = None,
        username: str | None = None,
        password: str | None = None,
        access_token: str | None = None,
    ):
        settings = get_settings()
        self.base_url = (base_url or settings.backoffice_api_url).rstrip("/")
        self._username = username or settings.backoffice_username
        if password is None and settings.backoffice_password is not None:
            password = settings.backoffice_password.get_secret_value()
        self._password = password
        self._timeout = settings.backoffice_timeout
        self._max_retries = settings.backoffice_max_retries
        self._system_username = settings.system_username
        self._admin_role = settings.admin_role

        self._access_token = access_token
        self._token_expires_at = (
            datetime.now(UTC) + TOKEN_LIFETIME if access_token else None
        )
        self._client: httpx.AsyncClient | None = None
        self._auth_lock = asyncio.Lock()

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                base_url=self.base_url, timeout=httpx.Timeout(self._timeout)
            )
        return self._client

    async def close(self) -> None:
        """Close the underlying HTTP connection pool."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def __aenter__(self) -> "BackOfficeAPIClient":
        await self.login()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    # === Authentication ===

    async def login(self) -> dict[str, Any]:
        """Log in with the configured user and keep the JWT.

        Raises:
            AuthenticationError: Missing credentials or rejected login.
            BackOfficeAPIError: The response carries no token.
        """
        if not self._username or not self._password:
            raise AuthenticationError("No back-office credentials configured")

        client = await self._get_client()
        response = await client.post(
            "/api/users/login",
            json={"username": self._username, "password": self._password},
        )
        if response.status_code == 401:
            raise AuthenticationError("Invalid credentials", status_code=401)
        response.raise_for_status()

        data = response.json()
        if not isinstance(data, dict) or "token" not in data:
            raise BackOfficeAPIError("Invalid login response format")

        self._access_token = data["token"]
        self._token_expires_at = datetime.now(UTC) + TOKEN_LIFETIME
        logger.info("backoffice_logged_in", user=data.get("username"), role=data.get("role"))
        return data

    def _token_expired(self) -> bool:
        return self._token_expires_at is not None and datetime.now(UTC) >= self._token_expires_at

    async def _ensure_authenticated(self) -> None:
        async with self._auth_lock:
            if not self._access_token or self._token_expired():
                await self.login()

    def _get_headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._access_token:
            headers["Authorization"] = f"Bearer {self._access_token}"
        return headers

    # === Requests ===

    @staticmethod
    def _parse_response(response: httpx.Response) -> JSONResult:
        if response.status_code == 429:
            retry_after = int(response.headers.get("Retry-After", "60"))
            raise RateLimitError(
                f"Rate limited, retry after {retry_after}s",
                status_code=429,
                details={"retry_after": retry_after},
            )

        if response.status_code >= 400:
            try:
                details = response.json() if response.content else {}
            except ValueError:
                details = {"raw": response.text[:500] if response.text else "empty response"}
            raise BackOfficeAPIError(
                f"API error: {response.status_code}",
                status_code=response.status_code,
                details=details,
            )

        return response.json() if response.content else {}

    async def _request(
        self,
        method: str,
        path: str,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> JSONResult:
        """Make an authenticated request.

        A 401 drops the token and retries once after logging in again.
        Network errors are retried with exponential backoff.
        """
        attempt = 0
        relogged = False
        while True:
            await self._ensure_authenticated()
            client = await self._get_client()
            try:
                response = await client.request(
                    method=method,
                    url=path,
                    params=params,
                    json=json,
                    headers=self._get_headers(),
                )
            except httpx.RequestError as e:
                if attempt >= self._max_retries:
                    raise BackOfficeAPIError(f"Request to {path} failed: {e}") from e
                delay = 2**attempt
                attempt += 1
                logger.warning(
                    "backoffice_request_retry",
                    method=method,
                    path=path,
                    attempt=attempt,
                    delay=delay,
                    error=str(e),
                )
                await asyncio.sleep(delay)
                continue

            if response.status_code == 401 and not relogged:
                # Token revoked or expired server-side
                self._access_token = None
                relogged = True
                continue

            return self._parse_response(response)

    @staticmethod
    def _rows(result: Any) -> list[dict[str, Any]]:
        """Rows of a plain list or of a paged ``{"items": [...]}`` response."""
        if isinstance(result, dict):
            result = result.get("items")
        return result if isinstance(result, list) else []

    # === SettingsStore ===

    async def get_settings(self) -> BusinessDaySettings | None:
        """Fetch the settings row; None if the API returns nothing."""
        result = await self._request("GET", "/api/settings")
        if not isinstance(result, dict) or not result:
            return None
        return BusinessDaySettings.from_dict(result)

    async def save_settings(self, settings: BusinessDaySettings) -> BusinessDaySettings:
        result = await self._request("PUT", "/api/settings", json=settings.to_dict())
        if not isinstance(result, dict):
            raise BackOfficeAPIError("Invalid settings response format")
        return BusinessDaySettings.from_dict(result)

    async def update_last_manual_close(self, when: datetime) -> None:
        """Write the close watermark, keeping the other settings as they are."""
        settings = await self.get_settings() or BusinessDaySettings()
        settings.last_manual_close = when
        await self.save_settings(settings)
        logger.debug("last_manual_close_updated", last_manual_close=when.isoformat())

    # === TransactionStore ===

    async def find_in_range(self, start: datetime, end: datetime) -> list[Transaction]:
        """List transactions created in ``[start, end)``.

        The range is passed to the API and enforced again locally.
        """
        result = await self._request(
            "GET",
            "/api/transactions",
            params={"startDate": start.isoformat(), "endDate": end.isoformat()},
        )

        transactions: list[Transaction] = []
        for row in self._rows(result):
            try:
                transaction = Transaction.from_dict(row)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning("transaction_row_invalid", row_id=row.get("id"), error=str(e))
                continue
            if start <= transaction.created_at < end:
                transactions.append(transaction)
        return transactions

    # === ClosingStore ===

    async def create(
        self, closed_at: datetime, summary: ClosingSummary, user_id: int | str
    ) -> DailyClosing:
        result = await self._request(
            "POST",
            "/api/daily-closings",
            json={
                "closedAt": closed_at.isoformat(),
                "userId": user_id,
                "summary": summary.to_dict(),
            },
        )
        if not isinstance(result, dict):
            raise BackOfficeAPIError("Invalid daily closing response format")
        return DailyClosing.from_dict(result)

    # === UserResolver ===

    async def get_system_or_admin_user(self) -> User | None:
        """Return the system user, or the first admin if there is none."""
        users = [User.from_dict(row) for row in self._rows(await self._request("GET", "/api/users"))]
        for user in users:
            if user.username == self._system_username:
                return user
        return next((user for user in users if user.role == self._admin_role), None)
