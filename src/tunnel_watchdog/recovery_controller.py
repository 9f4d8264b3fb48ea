# ─── Standard library imports ───
from enum import Enum, auto
from dataclasses import dataclass

# ─── Project imports ───
from .config import AgentSettings
from .cooldown import CooldownGate
from .errors import RunInterrupted
from .logger import get_logger
from .probe import ConnectivityProbe
from .services import ServiceLifecycleManager
from .tunnel import TunnelController


class RecoveryOutcome(Enum):
    NO_ACTION_NEEDED = auto()
    RECOVERED = auto()
    RECOVERED_FALLBACK = auto()
    DEGRADED_SERVICES_STOPPED = auto()
    ABORTED = auto()

    def __str__(self) -> str:
        return self.name

@dataclass(frozen=True)
class RecoveryResult:
    outcome: RecoveryOutcome
    reason: str = ""
    tunnel: str | None = None


class RecoveryOrchestrator:
    """
    Single-invocation recovery state machine.

    Responsibilities:
    • Skip the run entirely while the cooldown window is active
    • Confirm connectivity and opportunistically resume paused services
    • On failure: pause services, separate tunnel faults from ISP faults,
      restore the original tunnel or fail over to the next allowed one
    • Arm the cooldown on every exit that is not a confirmed healthy state

    Non-responsibilities:
    • No OS calls of its own; every side effect goes through a component
    • No retries beyond the single fallback step
    """

    def __init__(
        self,
        settings: AgentSettings,
        probe: ConnectivityProbe,
        tunnels: TunnelController,
        services: ServiceLifecycleManager,
        cooldown: CooldownGate,
    ):
        # ─── Dependencies / Configuration ───
        self.settings = settings
        self.probe = probe
        self.tunnels = tunnels
        self.services = services
        self.cooldown = cooldown
        self.logger = get_logger("recovery")

    def run_once(self) -> RecoveryResult:
        """
        Run the state machine to a terminal outcome.

        Component failures arrive as booleans; anything raised out of here is
        an unhandled fault for the caller. A shutdown request ends the run as
        ABORTED without arming the cooldown or sending further tunnel commands.
        """
        try:
            result = self._run()
        except RunInterrupted as e:
            self.logger.warning(f"Recovery interrupted: {e}")
            result = RecoveryResult(RecoveryOutcome.ABORTED, "interrupted")

        self._emit(result)
        return result

    def _run(self) -> RecoveryResult:
        # ─── Cooldown check ───
        if self.cooldown.is_active():
            return RecoveryResult(RecoveryOutcome.ABORTED, "cooldown active")

        # ─── Connectivity check ───
        if self.probe.check_connectivity():
            self.services.start_managed()
            return RecoveryResult(RecoveryOutcome.NO_ACTION_NEEDED, "connectivity healthy")

        self.logger.warning("Connectivity check failed; starting recovery")

        # ─── Discover tunnel ───
        tunnel = self.tunnels.discover_active()
        if tunnel is None:
            return RecoveryResult(RecoveryOutcome.ABORTED, "no active tunnel")

        # Pause dependents before touching the tunnel
        self.services.stop_managed(self.settings.managed_services)

        if not self.tunnels.disconnect(tunnel):
            self.cooldown.arm()
            return RecoveryResult(RecoveryOutcome.ABORTED, "disconnect failed", tunnel)

        # ─── ISP check (no tunnel up) ───
        if not self.probe.check_connectivity():
            self.logger.warning("ISP unreachable without tunnel; restoring tunnel and waiting")
            self.tunnels.connect(tunnel)
            self.cooldown.arm()
            return RecoveryResult(
                RecoveryOutcome.ABORTED, "ISP down, services remain stopped", tunnel
            )

        # ─── Reconnect original ───
        if self._connect_and_verify(tunnel):
            self.services.start_managed()
            return RecoveryResult(RecoveryOutcome.RECOVERED, "original tunnel restored", tunnel)

        self.tunnels.disconnect(tunnel)

        # ─── Fallback tunnel ───
        fallback = self.tunnels.next_in_rotation(tunnel)
        if self._connect_and_verify(fallback):
            self.services.start_managed()
            return RecoveryResult(
                RecoveryOutcome.RECOVERED_FALLBACK, f"failed over from {tunnel}", fallback
            )

        self.cooldown.arm()
        return RecoveryResult(
            RecoveryOutcome.DEGRADED_SERVICES_STOPPED, "no tunnel restored connectivity", fallback
        )

    def _connect_and_verify(self, tunnel: str) -> bool:
        return self.tunnels.connect(tunnel) and self.probe.check_connectivity()

    # ──────────────────────────────────────────────────────────────
    # Telemetry helpers
    # ──────────────────────────────────────────────────────────────

    def _emit(self, result: RecoveryResult) -> None:
        msg = f"Outcome {result.outcome} | {result.reason}"
        if result.tunnel:
            msg += f" | tunnel={result.tunnel}"

        match result.outcome:
            case RecoveryOutcome.RECOVERED | RecoveryOutcome.RECOVERED_FALLBACK:
                self.logger.success(msg)
            case RecoveryOutcome.NO_ACTION_NEEDED:
                self.logger.info(msg)
            case RecoveryOutcome.ABORTED:
                self.logger.warning(msg)
            case _:
                self.logger.error(msg)
