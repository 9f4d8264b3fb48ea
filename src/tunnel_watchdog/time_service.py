# --- Standard library imports ---
import os
from zoneinfo import ZoneInfo
from datetime import datetime, timezone


class TimeService:
    """
    Timezone-aware clock used for persisted instants.

    - Instants are always stored in UTC (ISO-8601 with offset)
    - Display uses the TZ environment variable, loaded once
    """

    def __init__(self):
        tz_name = os.getenv("TZ", "UTC")
        try:
            self.tz = ZoneInfo(tz_name)
        except Exception:
            self.tz = ZoneInfo("UTC")

    # -------------------------
    # Wall clock utilities
    # -------------------------

    def now(self) -> datetime:
        """Current instant in UTC."""
        return datetime.now(timezone.utc)

    def format_local(self, dt: datetime) -> str:
        """Format an instant as 'MM/DD/YY @ HH:MM:SS TZ' in the display zone."""
        return dt.astimezone(self.tz).strftime("%m/%d/%y @ %H:%M:%S %Z")

    # -------------------------------
    # ISO8601 conversion utility
    # -------------------------------

    @staticmethod
    def to_iso(dt: datetime) -> str:
        """Serialize an instant as an unambiguous UTC ISO-8601 string."""
        return dt.astimezone(timezone.utc).isoformat()

    @staticmethod
    def parse_iso(iso_str: str) -> datetime:
        """
        Parse an ISO-8601 instant.

        Naive values are rejected since they do not name an absolute instant.

        Raises:
            ValueError: malformed or naive timestamp.
        """
        dt = datetime.fromisoformat(iso_str.replace("Z", "+00:00"))
        if dt.tzinfo is None:
            raise ValueError(f"timestamp has no UTC offset: {iso_str!r}")
        return dt.astimezone(timezone.utc)
