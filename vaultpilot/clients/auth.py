"""GitHub authentication client: device login flow and Copilot token lifecycle."""

import asyncio
import time
from collections.abc import Callable
from typing import Any

import httpx

from vaultpilot.exceptions import NotAuthenticatedError
from vaultpilot.models.auth import (
    COPILOT_CLIENT_ID,
    AuthState,
    DeviceCodeResponse,
    PATResponse,
    TokenResponse,
)
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)

AuthUpdateCallback = Callable[[dict[str, Any]], None]

DEVICE_CODE_URL = "https://github.com/login/device/code"
ACCESS_TOKEN_URL = "https://github.com/login/oauth/access_token"
COPILOT_TOKEN_URL = "https://api.github.com/copilot_internal/v2/token"
DEVICE_GRANT_TYPE = "urn:ietf:params:oauth:grant-type:device_code"

COMMON_HEADERS: dict[str, str] = {
    "Content-Type": "application/json",
    "accept": "application/json",
    "editor-version": "Neovim/0.6.1",
    "editor-plugin-version": "copilot.vim/1.16.0",
    "user-agent": "GithubCopilot/1.155.0",
}


class GitHubAuthClient:
    """Talks to GitHub to sign in and to mint short-lived Copilot tokens."""

    def __init__(self, http_client: httpx.AsyncClient | None = None, timeout: float = 30.0):
        """Initialize the auth client.

        Args:
            http_client: Preconfigured client (tests pass one with a mock transport)
            timeout: Request timeout in seconds for a client created here
        """
        self.http = http_client or httpx.AsyncClient(timeout=timeout)

    async def aclose(self) -> None:
        await self.http.aclose()

    async def fetch_device_code(self) -> DeviceCodeResponse:
        """Start the device login flow."""
        response = await self.http.post(
            DEVICE_CODE_URL,
            headers=COMMON_HEADERS,
            json={"client_id": COPILOT_CLIENT_ID, "scope": "read:user"},
        )
        response.raise_for_status()
        return DeviceCodeResponse.model_validate(response.json())

    async def fetch_pat(self, device_code: str) -> PATResponse:
        """Poll once for the OAuth token of a pending device login."""
        response = await self.http.post(
            ACCESS_TOKEN_URL,
            headers=COMMON_HEADERS,
            json={
                "client_id": COPILOT_CLIENT_ID,
                "device_code": device_code,
                "grant_type": DEVICE_GRANT_TYPE,
            },
        )
        response.raise_for_status()
        return PATResponse.model_validate(response.json())

    async def poll_for_pat(self, device_code: str, interval: int = 5, expires_in: int = 900) -> str:
        """Poll the device flow until the user authorizes the code.

        Returns:
            The GitHub OAuth token

        Raises:
            NotAuthenticatedError: If the flow is denied, fails or expires
        """
        deadline = time.monotonic() + expires_in
        while time.monotonic() < deadline:
            result = await self.fetch_pat(device_code)
            if result.access_token:
                logger.info("Device login completed")
                return result.access_token

            if result.error == "slow_down":
                interval += 5
            elif result.error not in (None, "authorization_pending"):
                raise NotAuthenticatedError(f"Device login failed: {result.error_description or result.error}")

            await asyncio.sleep(interval)

        raise NotAuthenticatedError("Device login expired before it was authorized")

    async def fetch_token(self, pat: str) -> TokenResponse:
        """Exchange a GitHub OAuth token for a short-lived Copilot token."""
        response = await self.http.get(
            COPILOT_TOKEN_URL,
            headers={**COMMON_HEADERS, "authorization": f"token {pat}"},
        )
        response.raise_for_status()
        return TokenResponse.model_validate(response.json())

    async def ensure_valid_token(self, auth_state: AuthState, on_update: AuthUpdateCallback) -> str:
        """Return a usable Copilot token, refreshing it from the PAT when needed.

        Args:
            auth_state: Current authentication state (read only)
            on_update: Receives the refreshed token as a partial state update

        Raises:
            NotAuthenticatedError: If no PAT is on file
        """
        cached = auth_state.access_token
        if cached.token and cached.expires_at and time.time() < cached.expires_at:
            return cached.token

        if not auth_state.pat:
            raise NotAuthenticatedError("Not authenticated. Please sign in first.")

        logger.debug("Copilot token missing or expired, refreshing")
        token_response = await self.fetch_token(auth_state.pat)
        on_update({"access_token": {"token": token_response.token, "expires_at": token_response.expires_at}})
        return token_response.token


_auth_client: GitHubAuthClient | None = None


def get_auth_client() -> GitHubAuthClient:
    """Get or create auth client instance."""
    global _auth_client
    if _auth_client is None:
        _auth_client = GitHubAuthClient()
    return _auth_client
