from datetime import datetime, timezone
from typing import Optional


class RuntimeState:
    """Process start time, reset when the application lifespan begins."""

    def __init__(self) -> None:
        self.started_at = datetime.now(timezone.utc)
        self.shutdown_at: Optional[datetime] = None

    def mark_started(self) -> None:
        self.started_at = datetime.now(timezone.utc)
        self.shutdown_at = None

    def mark_stopped(self) -> None:
        self.shutdown_at = datetime.now(timezone.utc)

    def uptime_seconds(self) -> float:
        end = self.shutdown_at or datetime.now(timezone.utc)
        return round((end - self.started_at).total_seconds(), 3)


runtime_state = RuntimeState()
