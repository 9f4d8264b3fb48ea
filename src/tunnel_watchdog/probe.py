# --- Standard library imports ---
import time
from typing import Callable

# --- Project imports ---
from .config import AgentSettings
from .errors import ProcessInvocationFailure
from .logger import get_logger
from .utils import ping_once


# --- Response classification markers (matched case-insensitively) ---
FAILURE_MARKERS = (
    "destination host unreachable",
    "destination net unreachable",
    "destination network unreachable",
    "request timed out",
    "general failure",
    "transmit failed",
)

REPLY_MARKERS = ("reply from", "bytes from")
TTL_MARKER = "ttl="


def classify_ping_output(output: str) -> tuple[bool, str]:
    """
    Classify raw ping output as success or failure.

    Any failure marker wins, even when a reply line is also present
    (e.g. "Reply from 10.0.0.1: Destination host unreachable.").
    Success requires a reply line that also carries a TTL, which is only
    printed when an echo reply actually came back.

    Returns:
        (success, matched line) where the line is '' if nothing matched.
    """
    lines = [line.strip() for line in output.splitlines() if line.strip()]

    for line in lines:
        lowered = line.lower()
        if any(marker in lowered for marker in FAILURE_MARKERS):
            return False, line

    for line in lines:
        lowered = line.lower()
        if any(marker in lowered for marker in REPLY_MARKERS) and TTL_MARKER in lowered:
            return True, line

    return False, ""


class ConnectivityProbe:
    """
    Staged dual-target reachability check.

    A single provider's anchor can be briefly unreachable without a real
    outage, so a second anchor is consulted before declaring failure.
    """

    def __init__(
        self,
        settings: AgentSettings,
        ping_fn: Callable[[str, int], str] = ping_once,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.settings = settings
        self.ping_fn = ping_fn
        self.sleep = sleep
        self.logger = get_logger("probe")

    def ping(self, target: str, timeout_s: int | None = None) -> bool:
        """Issue exactly one probe; never raises."""
        timeout_s = timeout_s or self.settings.ping_timeout_s

        try:
            output = self.ping_fn(target, timeout_s)
        except ProcessInvocationFailure as e:
            self.logger.warning(f"Ping {target} could not run: {e}")
            return False
        except Exception as e:
            self.logger.warning(f"Ping {target} failed ({type(e).__name__}: {e})")
            return False

        ok, line = classify_ping_output(output)
        if ok:
            self.logger.info(f"Ping {target} OK [{line}]")
        else:
            self.logger.info(f"Ping {target} FAILED [{line or 'no reply'}]")

        return ok

    def check_connectivity(self) -> bool:
        """
        Ping the primary target, then the secondary after a delay.

        Returns True on the first success, False only if both fail.
        """
        primary = self.settings.primary_ping_target
        secondary = self.settings.secondary_ping_target

        if self.ping(primary):
            return True

        delay = self.settings.ping_retry_delay_s
        self.logger.info(f"Primary target {primary} unreachable; retrying via {secondary} in {delay}s")
        self.sleep(delay)

        return self.ping(secondary)
