# --- Standard library imports ---
from typing import Callable, Iterable

# --- Project imports ---
from .cache import StateStore
from .config import AgentSettings
from .errors import PersistedStateCorrupt, ServiceNotFound, WatchdogError
from .logger import get_logger


logger = get_logger("services")


# ============================================================
# Dependency ordering
# ============================================================

def compute_stop_order(
    names: Iterable[str],
    dependents_of: Callable[[str], list[str]],
    is_running: Callable[[str], bool],
) -> list[str]:
    """
    Order services so nothing stops while a running dependent still needs it.

    Running dependents are visited (recursively) before the service itself,
    so they may appear in the result even if they were not requested.
    """
    order: list[str] = []
    visited: set[str] = set()

    for name in names:
        _visit_dependents(name, dependents_of, is_running, visited, order)

    return order

def _visit_dependents(name, dependents_of, is_running, visited, order) -> None:
    if name in visited:
        return
    visited.add(name)

    for dependent in dependents_of(name):
        if is_running(dependent):
            _visit_dependents(dependent, dependents_of, is_running, visited, order)

    order.append(name)

def compute_start_order(
    names: Iterable[str],
    requirements_of: Callable[[str], list[str]],
) -> list[str]:
    """
    Order services so every requested requirement starts before its dependent.

    Only requested names are emitted; prerequisites outside the requested set
    are left to the service manager.
    """
    names = list(names)
    requested = set(names)
    order: list[str] = []
    visited: set[str] = set()

    for name in names:
        _visit_requirements(name, requirements_of, requested, visited, order)

    return order

def _visit_requirements(name, requirements_of, requested, visited, order) -> None:
    if name in visited:
        return
    visited.add(name)

    for requirement in requirements_of(name):
        if requirement in requested:
            _visit_requirements(requirement, requirements_of, requested, visited, order)

    order.append(name)


# ============================================================
# Lifecycle manager
# ============================================================

class ServiceLifecycleManager:
    """
    Pauses managed services during an outage and resumes them afterwards.

    Partial failure is tolerated in both directions: one service that will
    not stop (or start) is logged and the rest of the batch continues.
    The StoppedServiceRecord lets a later invocation resume what an earlier
    one paused.
    """

    def __init__(self, settings: AgentSettings, service_manager, store: StateStore):
        self.settings = settings
        self.services = service_manager
        self.store = store

    # --- Public API ---
    def stop_managed(self, names: Iterable[str]) -> tuple[str, ...]:
        order = compute_stop_order(names, self._dependents, self._is_running)
        logger.info(f"Stop order: {order or '—'}")

        stopped = []
        for name in order:
            try:
                self._lookup(name)
                if not self.services.is_running(name):
                    logger.info(f"Service {name} already stopped; skipping")
                    continue

                self.services.stop(name)
                stopped.append(name)
                logger.info(f"Service {name} stopped")

            except ServiceNotFound as e:
                logger.warning(str(e))
            except WatchdogError as e:
                logger.error(f"Failed to stop {name}: {e}")

        if stopped:
            recorded = self._load_record()
            self.store.store_stopped_services(dict.fromkeys((*recorded, *stopped)))
            logger.info(f"Recorded stopped services: {stopped}")

        return tuple(stopped)

    def start_managed(self) -> tuple[str, ...]:
        recorded = self._load_record()
        down = tuple(name for name in self.settings.managed_services if self._is_down(name))
        candidates = list(dict.fromkeys((*recorded, *down)))

        if not candidates:
            logger.debug("No services to resume")
            self.store.clear_stopped_services()
            return ()

        order = compute_start_order(candidates, self._requirements)
        logger.info(f"Start order: {order}")

        started = []
        for name in order:
            try:
                self._lookup(name)
                if self.services.is_running(name):
                    logger.info(f"Service {name} already running; skipping")
                    continue

                self.services.start(name)
                started.append(name)
                logger.info(f"Service {name} started")

            except ServiceNotFound as e:
                logger.warning(str(e))
            except WatchdogError as e:
                logger.error(f"Failed to start {name}: {e}")

        self.store.clear_stopped_services()
        return tuple(started)

    # --- Helpers ---
    def _lookup(self, name: str) -> None:
        if not self.services.exists(name):
            raise ServiceNotFound(f"Service {name} not found")

    def _is_running(self, name: str) -> bool:
        try:
            return self.services.is_running(name)
        except WatchdogError as e:
            logger.warning(f"State query for {name} failed: {e}")
            return False

    def _is_down(self, name: str) -> bool:
        """Known to the service manager and not running."""
        try:
            return self.services.exists(name) and not self.services.is_running(name)
        except WatchdogError as e:
            logger.warning(f"State query for {name} failed: {e}")
            return False

    def _dependents(self, name: str) -> list[str]:
        try:
            return self.services.dependents(name)
        except WatchdogError as e:
            logger.warning(f"Dependents query for {name} failed: {e}")
            return []

    def _requirements(self, name: str) -> list[str]:
        try:
            return self.services.requirements(name)
        except WatchdogError as e:
            logger.warning(f"Requirements query for {name} failed: {e}")
            return []

    def _load_record(self) -> tuple[str, ...]:
        try:
            return self.store.load_stopped_services()
        except PersistedStateCorrupt as e:
            logger.warning(f"Discarding stopped-service record: {e}")
            self.store.clear_stopped_services()
            return ()
