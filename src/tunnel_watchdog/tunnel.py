# --- Standard library imports ---
import time
import threading
from pathlib import Path
from typing import Callable

# --- Project imports ---
from .config import AgentSettings, Config
from .errors import ConfigMissing, RunInterrupted, StateTimeout, WatchdogError
from .logger import get_logger


TUNNEL_UNIT_TEMPLATE = "wg-quick@{name}"
TUNNEL_DEFINITION_SUFFIX = ".conf"


class TunnelController:
    """
    Discovers, connects, disconnects and rotates WireGuard tunnels.

    Each allowed tunnel name maps to a `wg-quick@<name>` unit and a
    `<tunnel_config_path>/<name>.conf` definition. Install/uninstall are
    fire-and-forget; the outcome is judged only by polling unit state.

    Failures are logged and returned as False. The one exception is
    RunInterrupted: once the stop event is set no further tunnel command is
    sent and the interruption propagates to the orchestrator.
    """

    def __init__(
        self,
        settings: AgentSettings,
        service_manager,
        sleep: Callable[[float], None] = time.sleep,
        stop_event: threading.Event | None = None,
    ):
        self.settings = settings
        self.services = service_manager
        self.sleep = sleep
        self.stop_event = stop_event
        self.logger = get_logger("tunnel")

    # --- Naming ---
    @staticmethod
    def unit_for(tunnel: str) -> str:
        return TUNNEL_UNIT_TEMPLATE.format(name=tunnel)

    def definition_file(self, tunnel: str) -> Path:
        return Path(self.settings.tunnel_config_path) / f"{tunnel}{TUNNEL_DEFINITION_SUFFIX}"

    # --- Operations ---
    def discover_active(self) -> str | None:
        """
        Return the first allowed tunnel (in configured order) that is running.
        """
        for tunnel in self.settings.allowed_tunnels:
            if self._is_running(self.unit_for(tunnel)):
                self.logger.info(f"Active tunnel: {tunnel}")
                return tunnel

        self.logger.warning("No allowed tunnel is running")
        return None

    def connect(self, tunnel: str) -> bool:
        unit = self.unit_for(tunnel)

        self._check_interrupted()

        try:
            self._require_definition(tunnel)
            self.logger.info(f"Connecting tunnel {tunnel}")
            self.services.start_no_block(unit)
            self._wait_for_state(unit, running=True)
        except RunInterrupted:
            raise
        except ConfigMissing as e:
            self.logger.error(f"Cannot connect {tunnel}: {e}")
            return False
        except StateTimeout as e:
            self.logger.error(f"Tunnel {tunnel} failed to connect: {e}")
            return False
        except WatchdogError as e:
            self.logger.error(f"Tunnel {tunnel} install failed: {e}")
            return False

        self.sleep(Config.CONNECT_SETTLE_DELAY_S)
        self.logger.success(f"Tunnel {tunnel} connected")
        return True

    def disconnect(self, tunnel: str) -> bool:
        unit = self.unit_for(tunnel)

        self._check_interrupted()

        try:
            self.logger.info(f"Disconnecting tunnel {tunnel}")
            self.services.stop_no_block(unit)
            self._wait_for_state(unit, running=False)
        except RunInterrupted:
            raise
        except StateTimeout as e:
            self.logger.error(f"Tunnel {tunnel} failed to disconnect: {e}")
            return False
        except WatchdogError as e:
            self.logger.error(f"Tunnel {tunnel} uninstall failed: {e}")
            return False

        self.logger.info(f"Tunnel {tunnel} disconnected")
        return True

    def next_in_rotation(self, current: str) -> str:
        """
        Cyclic successor of `current` in the allowed list.

        Falls back to the first allowed tunnel if `current` is not listed.
        """
        allowed = self.settings.allowed_tunnels
        if current not in allowed:
            self.logger.warning(f"Tunnel {current!r} is not in the allowed list; using {allowed[0]}")
            return allowed[0]

        return allowed[(allowed.index(current) + 1) % len(allowed)]

    # --- Helpers ---
    def _require_definition(self, tunnel: str) -> None:
        path = self.definition_file(tunnel)
        try:
            present = path.is_file()
        except OSError as e:
            raise ConfigMissing(f"tunnel definition unreadable: {path} ({e.__class__.__name__})") from e

        if not present:
            raise ConfigMissing(f"tunnel definition not found: {path}")

    def _is_running(self, unit: str) -> bool:
        try:
            return self.services.is_running(unit)
        except WatchdogError as e:
            self.logger.warning(f"State query for {unit} failed: {e}")
            return False

    def _wait_for_state(self, unit: str, running: bool) -> None:
        """
        Poll `unit` until it reaches the wanted state.

        Samples every STATE_POLL_INTERVAL_S up to STATE_POLL_TIMEOUT_S.
        Raises:
            StateTimeout: state not reached within the ceiling.
            RunInterrupted: the stop event was set during the wait.
        """
        interval = Config.STATE_POLL_INTERVAL_S
        ceiling = Config.STATE_POLL_TIMEOUT_S
        wanted = "running" if running else "stopped"

        for _ in range(int(ceiling / interval)):
            if self._is_running(unit) == running:
                return
            if self._wait(interval):
                raise RunInterrupted(f"{unit} wait for {wanted} interrupted")

        if self._is_running(unit) == running:
            return

        raise StateTimeout(f"{unit} not {wanted} after {ceiling}s")

    def _wait(self, seconds: float) -> bool:
        """Sleep; return True if the stop event cut the wait short."""
        if self.stop_event is None:
            self.sleep(seconds)
            return False
        return self.stop_event.wait(seconds)

    def _check_interrupted(self) -> None:
        if self.stop_event is not None and self.stop_event.is_set():
            raise RunInterrupted("shutdown requested")
