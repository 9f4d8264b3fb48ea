# --- Standard library imports ---
import subprocess

# --- Project imports ---
from .config import Config
from .logger import get_logger
from .errors import (
    ProcessInvocationFailure,
    ServiceCommandError,
    StateTimeout,
)


SERVICE_SUFFIX = ".service"

logger = get_logger("systemd")


def short_name(unit: str) -> str:
    """Drop the implicit '.service' suffix so names match the config file."""
    if unit.endswith(SERVICE_SUFFIX):
        return unit[: -len(SERVICE_SUFFIX)]
    return unit


class SystemdServiceManager:
    """
    Thin wrapper over `systemctl` exposing the primitives the agent needs.

    Queries never raise on a non-zero exit; they report what systemd says.
    Blocking start/stop raise StateTimeout or ServiceCommandError.
    The *_no_block variants are fire-and-forget: success is judged only by
    later state polling.
    """

    def __init__(self, systemctl: str = "systemctl"):
        self.systemctl = systemctl

    # --- Queries ---
    def exists(self, name: str) -> bool:
        load_state = self._show(name, "LoadState").strip()
        return load_state not in ("", "not-found")

    def is_running(self, name: str) -> bool:
        return self._query("is-active", name).strip() == "active"

    def dependents(self, name: str) -> list[str]:
        """Services that require `name` and must stop before it."""
        # targets, sockets etc. are never stopped by the agent
        return self._unit_list(name, "RequiredBy", "BoundBy", services_only=True)

    def requirements(self, name: str) -> list[str]:
        """Units `name` requires and that must start before it."""
        return self._unit_list(name, "Requires", "BindsTo")

    # --- Blocking state changes ---
    def start(self, name: str) -> None:
        self._change_state("start", name)

    def stop(self, name: str) -> None:
        self._change_state("stop", name)

    # --- Fire-and-forget state changes ---
    def start_no_block(self, name: str) -> None:
        self._spawn("start", name)

    def stop_no_block(self, name: str) -> None:
        self._spawn("stop", name)

    # --- Helpers ---
    def _run(self, *args: str, timeout: float = Config.COMMAND_TIMEOUT_S) -> subprocess.CompletedProcess:
        """
        Run systemctl. Timeouts propagate as subprocess.TimeoutExpired so
        callers can map them; every other invocation fault is wrapped.
        """
        cmd = [self.systemctl, *args]
        try:
            return subprocess.run(cmd, capture_output=True, text=True, timeout=timeout)
        except subprocess.TimeoutExpired:
            raise
        except (OSError, subprocess.SubprocessError) as e:
            raise ProcessInvocationFailure(f"{' '.join(cmd)}: {e}") from e

    def _query(self, *args: str) -> str:
        try:
            return self._run(*args).stdout
        except subprocess.TimeoutExpired as e:
            raise ProcessInvocationFailure(f"systemctl {' '.join(args)} timed out") from e

    def _show(self, name: str, *properties: str) -> str:
        args = ["show", name, "--value"]
        args += [f"--property={prop}" for prop in properties]
        return self._query(*args)

    def _unit_list(self, name: str, *properties: str, services_only: bool = False) -> list[str]:
        units = []
        for unit in self._show(name, *properties).split():
            if services_only and not unit.endswith(SERVICE_SUFFIX):
                continue
            unit = short_name(unit)
            if unit not in units:
                units.append(unit)
        return units

    def _change_state(self, verb: str, name: str) -> None:
        try:
            result = self._run(verb, name, timeout=Config.STATE_POLL_TIMEOUT_S)
        except subprocess.TimeoutExpired as e:
            raise StateTimeout(
                f"{name} did not {verb} within {Config.STATE_POLL_TIMEOUT_S}s"
            ) from e

        if result.returncode != 0:
            detail = result.stderr.strip() or f"exit {result.returncode}"
            raise ServiceCommandError(f"systemctl {verb} {name}: {detail}")

    def _spawn(self, verb: str, name: str) -> None:
        cmd = [self.systemctl, verb, "--no-block", name]
        try:
            subprocess.Popen(cmd, stdout=subprocess.DEVNULL, stderr=subprocess.DEVNULL)
        except OSError as e:
            raise ProcessInvocationFailure(f"{' '.join(cmd)}: {e}") from e
        logger.debug(f"Spawned: {' '.join(cmd)}")
