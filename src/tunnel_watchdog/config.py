# --- Standard library imports ---
import os
import json
from pathlib import Path
from dataclasses import dataclass, asdict

# --- Third-party imports ---
from dotenv import load_dotenv

# --- Project imports ---
from .errors import ConfigError
from .logger import get_logger


# Load .env once
load_dotenv()

logger = get_logger("config")


class Config:
    """Process-level parameters: file locations and fixed timing constants"""

    # --- File layout ---
    CONFIG_FILE = Path(
        os.getenv(
            "WATCHDOG_CONFIG_FILE",
            Path.home() / ".config" / "tunnel_watchdog" / "config.json",
        )
    ).expanduser()

    STATE_DIR = Path(
        os.getenv("WATCHDOG_STATE_DIR", Path.home() / ".cache" / "tunnel_watchdog")
    ).expanduser()

    LOG_FILE = Path(
        os.getenv("WATCHDOG_LOG_FILE", STATE_DIR / "tunnel_watchdog.log")
    ).expanduser()

    # --- Observability Policy ---
    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

    # --- Service state polling (NOT user configurable) ---
    STATE_POLL_TIMEOUT_S = 30
    STATE_POLL_INTERVAL_S = 1
    CONNECT_SETTLE_DELAY_S = 2

    # --- Subprocess guardrail (NOT user configurable) ---
    COMMAND_TIMEOUT_S = 45


@dataclass(frozen=True)
class AgentSettings:
    """
    Read-only snapshot of the agent configuration record.

    Built once per invocation and handed to every component.
    """

    allowed_tunnels: tuple[str, ...] = ("wg0",)
    primary_ping_target: str = "1.1.1.1"
    secondary_ping_target: str = "8.8.8.8"
    ping_retry_delay_s: int = 5
    cooldown_minutes: int = 30
    ping_timeout_s: int = 2
    tunnel_config_path: str = "/etc/wireguard"
    managed_services: tuple[str, ...] = ()

    @property
    def cooldown_s(self) -> int:
        return self.cooldown_minutes * 60

    def to_record(self) -> dict:
        """Return the JSON-serializable form written by `write_settings()`."""
        record = asdict(self)
        record["allowed_tunnels"] = list(self.allowed_tunnels)
        record["managed_services"] = list(self.managed_services)
        return record


DEFAULT_SETTINGS = AgentSettings()


# --- Field validators ---
def _name_list(value) -> tuple[str, ...] | None:
    if not isinstance(value, list):
        return None
    if not all(isinstance(item, str) and item.strip() for item in value):
        return None
    return tuple(item.strip() for item in value)

def _text(value) -> str | None:
    if isinstance(value, str) and value.strip():
        return value.strip()
    return None

def _non_negative_int(value) -> int | None:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool) or not isinstance(value, int):
        return None
    return value if value >= 0 else None

def _positive_int(value) -> int | None:
    value = _non_negative_int(value)
    return value if value else None


def merge_settings(record: dict) -> AgentSettings:
    """
    Overlay a configuration record on top of the built-in defaults.

    Every known key is merged explicitly. A key that is missing falls back
    silently; a key that is present but malformed falls back with a warning.
    Unknown keys are ignored.

    Raises:
        ConfigError: if the merged allowed tunnel list is empty.
    """
    fields = {
        "allowed_tunnels": _name_list,
        "primary_ping_target": _text,
        "secondary_ping_target": _text,
        "ping_retry_delay_s": _non_negative_int,
        "cooldown_minutes": _non_negative_int,
        "ping_timeout_s": _positive_int,
        "tunnel_config_path": _text,
        "managed_services": _name_list,
    }

    merged = {}
    for key, parse in fields.items():
        if key not in record:
            continue

        value = parse(record[key])
        if value is None:
            logger.warning(f"Invalid value for '{key}': {record[key]!r} (using default)")
            continue

        merged[key] = value

    settings = AgentSettings(**merged)

    if not settings.allowed_tunnels:
        raise ConfigError("allowed_tunnels must contain at least one tunnel name")

    return settings

def read_record(path: Path) -> dict | None:
    """
    Read the raw configuration record.

    Returns None when the file does not exist.

    Raises:
        ConfigError: if the file exists but is unreadable, not JSON or not
            a JSON object.
    """
    try:
        record = json.loads(path.read_text())
    except FileNotFoundError:
        return None
    except (json.JSONDecodeError, OSError) as e:
        raise ConfigError(f"configuration file {path} unreadable ({e.__class__.__name__})") from e

    if not isinstance(record, dict):
        raise ConfigError(f"configuration file {path} is not a JSON object")

    return record

def load_settings(path: Path | None = None) -> AgentSettings:
    """
    Load the configuration record and merge it over the defaults.

    A missing file is not an error. An unreadable or malformed file is
    logged and treated as empty.
    """
    path = Path(path or Config.CONFIG_FILE)

    try:
        record = read_record(path)
    except ConfigError as e:
        logger.warning(f"{e}; using defaults")
        return merge_settings({})

    if record is None:
        logger.info(f"No configuration file at {path}; using defaults")
        return merge_settings({})

    return merge_settings(record)

def write_settings(path: Path | None = None) -> AgentSettings:
    """
    Regenerate the configuration file.

    Every value already present is written back as found, even one the merge
    rejects, and newly-introduced default keys are added. Unknown keys are
    dropped.

    Raises:
        ConfigError: if the existing file cannot be parsed (it is left
            untouched) or the merged allowed tunnel list is empty.
    """
    path = Path(path or Config.CONFIG_FILE)
    record = read_record(path) or {}
    settings = merge_settings(record)

    defaults = DEFAULT_SETTINGS.to_record()
    regenerated = {key: record.get(key, default) for key, default in defaults.items()}

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(regenerated, indent=2) + "\n")
    logger.info(f"Configuration written to {path}")

    return settings
