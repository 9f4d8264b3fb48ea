import pytest
from datetime import datetime, timedelta, timezone

from tunnel_watchdog.cache import StateStore
from tunnel_watchdog.config import AgentSettings
from tunnel_watchdog.errors import ServiceCommandError, StateTimeout


# ==========================
# FAKE: Service manager
# ==========================
class FakeServiceManager:
    """
    In-memory stand-in for SystemdServiceManager.

    `running` maps every known unit to its state. Units listed in
    `stuck` ignore fire-and-forget requests (simulates a tunnel that never
    comes up or never goes down).
    """

    def __init__(self, running=None, dependents=None, requirements=None):
        self.running = dict(running or {})
        self.dependents_map = dict(dependents or {})
        self.requirements_map = dict(requirements or {})
        self.stuck = set()
        self.fail_stop = set()
        self.fail_start = set()
        self.timeout_stop = set()
        self.calls = []

    # --- Queries ---
    def exists(self, name):
        return name in self.running

    def is_running(self, name):
        return self.running.get(name, False)

    def dependents(self, name):
        return list(self.dependents_map.get(name, []))

    def requirements(self, name):
        return list(self.requirements_map.get(name, []))

    # --- Blocking ---
    def start(self, name):
        self.calls.append(("start", name))
        if name in self.fail_start:
            raise ServiceCommandError(f"systemctl start {name}: failed")
        self.running[name] = True

    def stop(self, name):
        self.calls.append(("stop", name))
        if name in self.fail_stop:
            raise ServiceCommandError(f"systemctl stop {name}: failed")
        if name in self.timeout_stop:
            raise StateTimeout(f"{name} did not stop within 30s")
        self.running[name] = False

    # --- Fire-and-forget ---
    def start_no_block(self, name):
        self.calls.append(("start_no_block", name))
        if name not in self.stuck:
            self.running[name] = True

    def stop_no_block(self, name):
        self.calls.append(("stop_no_block", name))
        if name not in self.stuck:
            self.running[name] = False

    def verbs(self, verb):
        return [name for v, name in self.calls if v == verb]


# ==========================
# FAKE: Clock
# ==========================
class FakeClock:
    def __init__(self, start=None):
        self.current = start or datetime(2025, 1, 1, 12, 0, tzinfo=timezone.utc)

    def now(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)

    def format_local(self, dt):
        return dt.isoformat()


# ========
# FIXTURES
# ========
@pytest.fixture
def settings(tmp_path):
    tunnel_dir = tmp_path / "wireguard"
    tunnel_dir.mkdir()
    for name in ("wg-a", "wg-b", "wg-c"):
        (tunnel_dir / f"{name}.conf").write_text("[Interface]\n")

    return AgentSettings(
        allowed_tunnels=("wg-a", "wg-b", "wg-c"),
        primary_ping_target="1.1.1.1",
        secondary_ping_target="8.8.8.8",
        ping_retry_delay_s=3,
        cooldown_minutes=30,
        ping_timeout_s=2,
        tunnel_config_path=str(tunnel_dir),
        managed_services=("app", "worker"),
    )

@pytest.fixture
def store(tmp_path):
    return StateStore(tmp_path / "state")

@pytest.fixture
def clock():
    return FakeClock()

@pytest.fixture
def fake_manager():
    return FakeServiceManager()
