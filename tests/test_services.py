import pytest

from conftest import FakeServiceManager
from tunnel_watchdog.services import (
    ServiceLifecycleManager,
    compute_start_order,
    compute_stop_order,
)


# ===============================
# TEST GROUP: Stop order
# ===============================
# Function: compute_stop_order()
# ------------------------------
def test_stop_order_dependents_first():
    """web requires db; api requires web → api, web, db"""
    dependents = {"db": ["web"], "web": ["api"]}
    running = {"db", "web", "api"}

    order = compute_stop_order(["db"], lambda n: dependents.get(n, []), lambda n: n in running)

    assert order == ["api", "web", "db"]

def test_stop_order_skips_stopped_dependents():
    dependents = {"db": ["web", "report"]}
    running = {"db", "web"}

    order = compute_stop_order(["db"], lambda n: dependents.get(n, []), lambda n: n in running)

    assert order == ["web", "db"]

def test_stop_order_no_repeats_and_cycles_terminate():
    dependents = {"a": ["b"], "b": ["a"]}

    order = compute_stop_order(["a", "b", "a"], lambda n: dependents.get(n, []), lambda n: True)

    assert sorted(order) == ["a", "b"]
    assert len(order) == 2

def test_stop_order_never_precedes_running_dependent():
    dependents = {"x": ["y", "z"], "y": ["z"], "w": []}
    running = {"x", "y", "z", "w"}

    order = compute_stop_order(["w", "x"], lambda n: dependents.get(n, []), lambda n: n in running)

    for service, deps in dependents.items():
        for dep in deps:
            assert order.index(dep) < order.index(service)


# ===============================
# TEST GROUP: Start order
# ===============================
# Function: compute_start_order()
# -------------------------------
def test_start_order_requirements_first():
    requirements = {"api": ["web", "network.target"], "web": ["db"]}

    order = compute_start_order(["api", "web", "db"], lambda n: requirements.get(n, []))

    assert order == ["db", "web", "api"]

def test_start_order_emits_only_requested():
    requirements = {"api": ["db", "network.target"]}

    order = compute_start_order(["api"], lambda n: requirements.get(n, []))

    assert order == ["api"]

def test_start_order_cycle_terminates():
    requirements = {"a": ["b"], "b": ["a"]}

    order = compute_start_order(["a", "b"], lambda n: requirements.get(n, []))

    assert sorted(order) == ["a", "b"]


# ===============================
# TEST GROUP: Stop managed
# ===============================
# Function: ServiceLifecycleManager.stop_managed()
# ------------------------------------------------
@pytest.fixture
def manager(settings, store):
    services = FakeServiceManager(running={"app": True, "worker": True})
    return ServiceLifecycleManager(settings, services, store)

def test_stop_managed_persists_stopped(manager, store):
    stopped = manager.stop_managed(["app", "worker"])

    assert stopped == ("app", "worker")
    assert store.load_stopped_services() == ("app", "worker")

def test_stop_managed_partial_failure(manager, store):
    """One failing + one succeeding → only the succeeding one is recorded"""
    manager.services.fail_stop.add("app")

    stopped = manager.stop_managed(["app", "worker"])

    assert stopped == ("worker",)
    assert store.load_stopped_services() == ("worker",)

def test_stop_managed_timeout_continues_batch(manager, store):
    manager.services.timeout_stop.add("app")

    assert manager.stop_managed(["app", "worker"]) == ("worker",)

def test_stop_managed_skips_unknown_and_stopped(settings, store):
    services = FakeServiceManager(running={"app": False})
    manager = ServiceLifecycleManager(settings, services, store)

    stopped = manager.stop_managed(["app", "ghost"])

    assert stopped == ()
    assert services.verbs("stop") == []
    assert not store.stopped_services_file.exists()

def test_stop_managed_stops_running_dependent(settings, store):
    services = FakeServiceManager(
        running={"app": True, "worker": False, "sidecar": True},
        dependents={"app": ["sidecar"]},
    )
    manager = ServiceLifecycleManager(settings, services, store)

    stopped = manager.stop_managed(["app", "worker"])

    assert stopped == ("sidecar", "app")
    assert services.verbs("stop") == ["sidecar", "app"]

def test_stop_managed_merges_existing_record(manager, store):
    store.store_stopped_services(["legacy"])

    manager.stop_managed(["app"])

    assert store.load_stopped_services() == ("legacy", "app")


# ===============================
# TEST GROUP: Start managed
# ===============================
# Function: ServiceLifecycleManager.start_managed()
# -------------------------------------------------
def test_start_managed_noop(manager, store):
    """Nothing recorded and everything running → no start calls, no record"""
    assert manager.start_managed() == ()
    assert manager.services.verbs("start") == []
    assert not store.stopped_services_file.exists()

def test_start_managed_resumes_record_in_order(settings, store):
    services = FakeServiceManager(
        running={"app": False, "worker": False},
        requirements={"worker": ["app"]},
    )
    store.store_stopped_services(["worker", "app"])
    manager = ServiceLifecycleManager(settings, services, store)

    started = manager.start_managed()

    assert started == ("app", "worker")
    assert not store.stopped_services_file.exists()

def test_start_managed_recovers_down_services_without_record(settings, store):
    services = FakeServiceManager(running={"app": True, "worker": False})
    manager = ServiceLifecycleManager(settings, services, store)

    assert manager.start_managed() == ("worker",)

def test_start_managed_failure_still_clears_record(settings, store):
    services = FakeServiceManager(running={"app": False, "worker": False})
    services.fail_start.add("app")
    store.store_stopped_services(["app", "worker"])
    manager = ServiceLifecycleManager(settings, services, store)

    started = manager.start_managed()

    assert started == ("worker",)
    assert services.verbs("start") == ["app", "worker"]
    assert not store.stopped_services_file.exists()

def test_start_managed_skips_running_and_unknown(settings, store):
    services = FakeServiceManager(running={"app": True, "worker": True})
    store.store_stopped_services(["app", "ghost"])
    manager = ServiceLifecycleManager(settings, services, store)

    assert manager.start_managed() == ()
    assert services.verbs("start") == []
    assert not store.stopped_services_file.exists()

def test_start_managed_discards_corrupt_record(settings, store):
    services = FakeServiceManager(running={"app": True, "worker": True})
    store.stopped_services_file.write_text("{not json")
    manager = ServiceLifecycleManager(settings, services, store)

    assert manager.start_managed() == ()
    assert not store.stopped_services_file.exists()
