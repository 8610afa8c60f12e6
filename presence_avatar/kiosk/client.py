"""
HTTP client for the session credential broker.

Used by the kiosk to log in, keep its session alive across restarts, and
fetch stream tokens. The session id is sent as `x-session-id`; when a
shared secret is configured it is also sent as `x-access-password`.
"""

import logging
from pathlib import Path
from typing import Any, Optional

import httpx

from ..stream.errors import AuthenticationError, TokenFetchError

logger = logging.getLogger("avatar.kiosk.client")


def _json_object(response: httpx.Response) -> dict[str, Any]:
    """Response body as a JSON object; anything else reads as empty."""
    try:
        data = response.json()
    except ValueError:
        return {}
    return data if isinstance(data, dict) else {}


class SessionCache:
    """File-backed cache of the broker session id."""

    def __init__(self, path: Path):
        self.path = Path(path)

    def load(self) -> Optional[str]:
        try:
            value = self.path.read_text().strip()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.warning("Could not read session cache %s: %s", self.path, e)
            return None
        return value or None

    def save(self, session_id: str) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(session_id)
            self.path.chmod(0o600)
        except OSError as e:
            logger.warning("Could not write session cache %s: %s", self.path, e)

    def clear(self) -> None:
        try:
            self.path.unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.warning("Could not remove session cache %s: %s", self.path, e)


class BrokerClient:
    """Async client for the broker's /api routes."""

    def __init__(
        self,
        base_url: str,
        password: Optional[str] = None,
        session_id: Optional[str] = None,
        timeout: float = 15.0,
        client: Optional[httpx.AsyncClient] = None,
    ):
        """
        Initialize broker client.

        Args:
            base_url: Broker server URL
            password: Shared secret sent as x-access-password
            session_id: Previously issued session id
            timeout: Request timeout in seconds
            client: Pre-built httpx client (tests inject a mock transport)
        """
        self._base_url = base_url.rstrip("/")
        self.password = password
        self.session_id = session_id
        self._timeout = timeout
        self._client = client

    async def _ensure_client(self) -> httpx.AsyncClient:
        """Get or create HTTP client."""
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def close(self) -> None:
        """Close HTTP client."""
        if self._client:
            await self._client.aclose()
            self._client = None

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.password:
            headers["x-access-password"] = self.password
        if self.session_id:
            headers["x-session-id"] = self.session_id
        return headers

    def _url(self, path: str) -> str:
        return f"{self._base_url}{path}"

    async def login(self, username: Optional[str], password: str) -> str:
        """
        Log in with the shared secret.

        Returns:
            The new session id

        Raises:
            AuthenticationError: credentials rejected or no session returned
        """
        client = await self._ensure_client()
        response = await client.post(
            self._url("/api/login"),
            json={"username": username, "password": password},
        )
        if response.status_code == 401:
            raise AuthenticationError("Invalid credentials")
        response.raise_for_status()

        session_id = _json_object(response).get("sessionId")
        if not session_id:
            raise AuthenticationError("No session id returned from backend")

        self.session_id = session_id
        self.password = password
        logger.info("Logged in as %s", username or "anonymous")
        return session_id

    async def auth_check(self) -> tuple[bool, Optional[str]]:
        """
        Check whether the current credentials are accepted.

        Returns:
            (authorized, username)
        """
        client = await self._ensure_client()
        response = await client.get(self._url("/api/auth-check"), headers=self._headers())
        if not response.is_success:
            return False, None
        return True, _json_object(response).get("username")

    async def logout(self) -> None:
        """End the broker session. Network errors are logged, not raised."""
        client = await self._ensure_client()
        try:
            await client.post(self._url("/api/logout"), headers=self._headers())
        except httpx.HTTPError as e:
            logger.warning("Logout request failed: %s", e)
        self.session_id = None
        self.password = None

    async def fetch_session_token(self, persona_config: dict[str, Any]) -> str:
        """
        Request a stream token for a persona.

        Raises:
            TokenFetchError: non-2xx response, network error or missing token
        """
        client = await self._ensure_client()
        try:
            response = await client.post(
                self._url("/api/anam/session-token"),
                headers=self._headers(),
                json={"personaConfig": persona_config},
            )
        except httpx.HTTPError as e:
            raise TokenFetchError(f"Token request failed: {e}") from e

        if not response.is_success:
            message = response.text or f"Failed with status {response.status_code}"
            raise TokenFetchError(message, response.status_code)

        token = _json_object(response).get("sessionToken")
        if not token:
            raise TokenFetchError("No session token returned from backend", response.status_code)
        return token
