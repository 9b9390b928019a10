"""Session and state management models."""

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from vaultpilot.models.messages import ConversationMessage
from vaultpilot.utils.logging import get_logger

logger = get_logger(__name__)


@dataclass
class Session:
    """Session state for one conversation."""

    session_id: str
    history: list[ConversationMessage] = field(default_factory=list)
    created_at: datetime = field(default_factory=lambda: datetime.now(UTC))
    last_activity: datetime = field(default_factory=lambda: datetime.now(UTC))
    run_lock: asyncio.Lock = field(default_factory=asyncio.Lock, repr=False)
    cancel_event: asyncio.Event | None = field(default=None, repr=False)

    def as_dict(self) -> dict[str, Any]:
        """Return the session as a dictionary."""
        return {
            "session_id": self.session_id,
            "messages": len(self.history),
            "running": self.is_running,
            "created_at": self.created_at.isoformat(),
            "last_activity": self.last_activity.isoformat(),
        }

    @property
    def is_running(self) -> bool:
        return self.run_lock.locked()

    def update_activity(self) -> None:
        """Update the last activity timestamp."""
        self.last_activity = datetime.now(UTC)

    def append_messages(self, messages: list[ConversationMessage]) -> None:
        """Fold the messages produced by a run into the history."""
        self.history.extend(messages)
        self.update_activity()

    def begin_run(self) -> asyncio.Event:
        """Create the cancellation signal for a new run."""
        self.cancel_event = asyncio.Event()
        return self.cancel_event

    def cancel_run(self) -> bool:
        """Signal cancellation of the current run, if any."""
        if self.cancel_event is None or not self.is_running:
            return False
        logger.info(f"Cancelling run for session {self.session_id}")
        self.cancel_event.set()
        return True
