# --- Standard library imports ---
import json
from pathlib import Path
from datetime import datetime

# --- Project imports ---
from .errors import PersistedStateCorrupt
from .time_service import TimeService


# --- State layout ---
STOPPED_SERVICES_FILE = "stopped_services.json"
COOLDOWN_FILE = "cooldown.json"

# Distinguishes an absent file from a file holding JSON null
MISSING = object()


class StateStore:
    """
    Persisted cross-invocation state.

    Two small JSON files live in the state directory:
      - stopped_services.json  → services this agent paused during an outage
      - cooldown.json          → instant of the last failed/degraded attempt

    Absent files are normal and read as "nothing recorded". Unreadable or
    malformed files raise PersistedStateCorrupt so the owner can discard them.
    """

    def __init__(self, state_dir: Path):
        self.state_dir = Path(state_dir)
        self.state_dir.mkdir(parents=True, exist_ok=True)

        self.stopped_services_file = self.state_dir / STOPPED_SERVICES_FILE
        self.cooldown_file = self.state_dir / COOLDOWN_FILE

    # --- Stopped service record ---
    def load_stopped_services(self) -> tuple[str, ...]:
        data = self._read_json(self.stopped_services_file)
        if data is MISSING:
            return ()

        services = data.get("services") if isinstance(data, dict) else None
        if not isinstance(services, list) or not all(isinstance(s, str) for s in services):
            raise PersistedStateCorrupt(f"{self.stopped_services_file} has no valid 'services' list")

        return tuple(services)

    def store_stopped_services(self, services) -> None:
        self._write_json(self.stopped_services_file, {"services": list(services)})

    def clear_stopped_services(self) -> None:
        self.stopped_services_file.unlink(missing_ok=True)

    # --- Cooldown marker ---
    def load_cooldown_marker(self) -> datetime | None:
        data = self._read_json(self.cooldown_file)
        if data is MISSING:
            return None

        raw = data.get("last_failure") if isinstance(data, dict) else None
        if not isinstance(raw, str):
            raise PersistedStateCorrupt(f"{self.cooldown_file} has no 'last_failure' timestamp")

        try:
            return TimeService.parse_iso(raw)
        except ValueError as e:
            raise PersistedStateCorrupt(f"{self.cooldown_file}: {e}") from e

    def store_cooldown_marker(self, instant: datetime) -> None:
        self._write_json(self.cooldown_file, {"last_failure": TimeService.to_iso(instant)})

    def clear_cooldown_marker(self) -> None:
        self.cooldown_file.unlink(missing_ok=True)

    # --- File helpers ---
    @staticmethod
    def _read_json(path: Path):
        try:
            return json.loads(path.read_text())
        except FileNotFoundError:
            return MISSING
        except (json.JSONDecodeError, UnicodeDecodeError, OSError) as e:
            raise PersistedStateCorrupt(f"{path}: {e.__class__.__name__}") from e

    @staticmethod
    def _write_json(path: Path, data: dict) -> None:
        # Write-then-rename so a crash never leaves a half-written record
        tmp = path.with_suffix(path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2))
        tmp.replace(path)
