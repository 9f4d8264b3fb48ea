# --- Standard library imports ---
import sys
import signal
import logging
import argparse
import threading
from pathlib import Path

# --- Project imports ---
from .cache import StateStore
from .config import Config, AgentSettings, load_settings, write_settings
from .cooldown import CooldownGate
from .logger import get_logger, setup_logging
from .probe import ConnectivityProbe
from .recovery_controller import RecoveryOrchestrator, RecoveryResult
from .run_lock import RunLock
from .services import ServiceLifecycleManager
from .systemd import SystemdServiceManager
from .tunnel import TunnelController


LOG_LEVEL_CHOICES = ("DEBUG", "INFO", "WARNING", "ERROR")


def build_orchestrator(
    settings: AgentSettings,
    store: StateStore,
    stop_event: threading.Event | None = None,
) -> RecoveryOrchestrator:
    """Wire the production components around one settings snapshot."""
    service_manager = SystemdServiceManager()

    return RecoveryOrchestrator(
        settings=settings,
        probe=ConnectivityProbe(settings),
        tunnels=TunnelController(settings, service_manager, stop_event=stop_event),
        services=ServiceLifecycleManager(settings, service_manager, store),
        cooldown=CooldownGate(settings, store),
    )

def run_cycle(settings: AgentSettings, state_dir: Path) -> RecoveryResult | None:
    """
    Run exactly one recovery cycle under the run lock.

    Returns None when another invocation already holds the lock.
    """
    logger = get_logger("main")
    store = StateStore(state_dir)

    # SIGTERM cuts any tunnel state poll short and blocks further tunnel commands
    stop_event = threading.Event()
    previous = signal.signal(signal.SIGTERM, lambda signum, frame: stop_event.set())

    try:
        with RunLock(state_dir) as acquired:
            if not acquired:
                logger.warning("Another watchdog run is in progress; exiting")
                return None

            orchestrator = build_orchestrator(settings, store, stop_event)
            return orchestrator.run_once()
    finally:
        if previous is not None:
            signal.signal(signal.SIGTERM, previous)

def parse_args(argv=None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="tunnel-watchdog",
        description="Verify tunnel connectivity and recover it if broken.",
    )
    parser.add_argument(
        "--init-config",
        action="store_true",
        help="Regenerate the configuration file (keeping set values) and exit",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Config.CONFIG_FILE,
        help=f"Configuration file (default: {Config.CONFIG_FILE})",
    )
    parser.add_argument(
        "--log-level",
        default=Config.LOG_LEVEL,
        choices=LOG_LEVEL_CHOICES,
        type=str.upper,
        help="Log verbosity (default: LOG_LEVEL or INFO)",
    )
    return parser.parse_args(argv)

def resolve_log_level(name: str) -> tuple[int, bool]:
    """Map a level name to its numeric value; unknown names fall back to INFO."""
    if name in LOG_LEVEL_CHOICES:
        return getattr(logging, name), True
    return logging.INFO, False

def main(argv=None) -> int:
    """
    Entry point for one scheduled invocation.

    Exit status is 0 for every handled outcome and 1 for an unhandled fault.
    """
    args = parse_args(argv)

    level, known = resolve_log_level(args.log_level)
    setup_logging(level=level, log_file=Config.LOG_FILE)
    logger = get_logger("main")
    if not known:
        logger.warning(f"Unknown log level {args.log_level!r}; using INFO")

    try:
        if args.init_config:
            write_settings(args.config)
            return 0

        logger.info("Starting tunnel watchdog cycle")
        logger.debug(f"Python version: {sys.version}")

        settings = load_settings(args.config)
        run_cycle(settings, Config.STATE_DIR)
        return 0

    except Exception as e:
        logger.exception(f"Unhandled fault: {type(e).__name__}: {e}")
        return 1

if __name__ == "__main__":
    sys.exit(main())
