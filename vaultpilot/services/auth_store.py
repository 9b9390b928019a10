"""Process-wide authentication state and the device login flow."""

from typing import Any

from vaultpilot.clients.auth import GitHubAuthClient, get_auth_client
from vaultpilot.config import load_settings
from vaultpilot.models.auth import AccessToken, AuthState, DeviceCodeResponse
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)


class AuthStore:
    """Owns the shared AuthState; every write goes through apply_update."""

    def __init__(self, auth_client: GitHubAuthClient | None = None, pat: str | None = None):
        self.auth_client = auth_client or get_auth_client()
        self.state = AuthState(pat=pat)

    def apply_update(self, update: dict[str, Any]) -> None:
        """Merge a partial update reported by the engine or the login flow."""
        if "access_token" in update and not update.get("pat") and not self.state.is_authenticated:
            # Signed out while a refresh was in flight
            logger.info("Discarding Copilot token refreshed after sign-out")
            update = {key: value for key, value in update.items() if key != "access_token"}

        logger.debug(f"Applying auth update for fields {sorted(update)}")
        self.state.apply_update(update)

    async def start_device_login(self) -> DeviceCodeResponse:
        """Request a device code and remember it until the login completes."""
        device = await self.auth_client.fetch_device_code()
        self.apply_update({"device_code": device.device_code})
        logger.info(f"Device login started, user code {device.user_code} at {device.verification_uri}")
        return device

    async def poll_device_login(self, device_code: str) -> tuple[bool, str | None]:
        """Poll the device flow once.

        Returns:
            (authenticated, error) where error is None while authorization is pending
        """
        result = await self.auth_client.fetch_pat(device_code)
        if result.access_token:
            self.apply_update({"pat": result.access_token, "device_code": None, "access_token": AccessToken()})
            logger.info("Device login completed")
            return True, None

        if result.error in (None, "authorization_pending", "slow_down"):
            return False, None

        logger.warning(f"Device login failed: {result.error}")
        return False, result.error_description or result.error

    def sign_out(self) -> None:
        """Forget every credential, including the state held by runs still in progress."""
        self.state.apply_update({"pat": None, "device_code": None, "access_token": AccessToken()})
        logger.info("Signed out")


_auth_store: AuthStore | None = None


def get_auth_store() -> AuthStore:
    """Get or create the auth store, seeded from GITHUB_COPILOT_PAT."""
    global _auth_store
    if _auth_store is None:
        _auth_store = AuthStore(pat=load_settings().github_pat)
    return _auth_store
