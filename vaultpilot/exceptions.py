"""Exception types raised across the service."""


class VaultPilotError(Exception):
    """Base class for all service errors."""


class NotAuthenticatedError(VaultPilotError):
    """No GitHub credential is available to obtain a Copilot token."""


class CompletionError(VaultPilotError):
    """The completion service could not be reached or returned an unusable response."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RequestAbortedError(VaultPilotError):
    """A request was abandoned because its run was cancelled."""

    def __init__(self, message: str = "Request aborted"):
        super().__init__(message)


class ToolExecutionError(VaultPilotError):
    """A tool could not be dispatched."""


class VaultError(VaultPilotError):
    """A vault operation failed (missing file, bad path, unmatched edit)."""
