# --- Standard library imports ---
from datetime import timedelta

# --- Project imports ---
from .cache import StateStore
from .config import AgentSettings
from .errors import PersistedStateCorrupt
from .logger import get_logger
from .time_service import TimeService


class CooldownGate:
    """
    Cross-invocation throttle for failed recovery attempts.

    Armed only on failed/degraded exits, so a persistently broken
    environment is worked on at most once per cooldown window while
    healthy checks are never throttled.
    """

    def __init__(self, settings: AgentSettings, store: StateStore, clock: TimeService | None = None):
        self.window = timedelta(minutes=settings.cooldown_minutes)
        self.store = store
        self.clock = clock or TimeService()
        self.logger = get_logger("cooldown")

    def remaining_s(self) -> float:
        """Seconds left in the cooldown window (0 when clear)."""
        try:
            marker = self.store.load_cooldown_marker()
        except PersistedStateCorrupt as e:
            self.logger.warning(f"Discarding cooldown marker: {e}")
            self.store.clear_cooldown_marker()
            return 0.0

        if marker is None:
            return 0.0

        remaining = (marker + self.window - self.clock.now()).total_seconds()
        return max(0.0, remaining)

    def is_active(self) -> bool:
        remaining = self.remaining_s()
        if remaining > 0:
            self.logger.info(f"Cooldown active ({remaining:.0f}s remaining)")
            return True
        return False

    def arm(self) -> None:
        now = self.clock.now()
        self.store.store_cooldown_marker(now)
        self.logger.warning(
            f"Cooldown armed until {self.clock.format_local(now + self.window)}"
        )
