"""
Error classes for tunnel_watchdog.

Everything below `WatchdogError` is caught inside the component that raised
it and turned into a boolean or outcome. Anything else is an unhandled fault.
"""


class WatchdogError(Exception):
    """Base error for watchdog operations."""
    pass


class ConfigError(WatchdogError):
    """Configuration record cannot produce a usable settings snapshot."""
    pass


class ConfigMissing(WatchdogError):
    """Tunnel definition file is absent."""
    pass


class ServiceNotFound(WatchdogError):
    """Service is unknown to the service manager."""
    pass


class StateTimeout(WatchdogError):
    """Service did not reach the expected state in time."""
    pass


class ServiceCommandError(WatchdogError):
    """Service manager rejected a start/stop request."""
    pass


class ProcessInvocationFailure(WatchdogError):
    """External utility could not be invoked."""
    pass


class PersistedStateCorrupt(WatchdogError):
    """Persisted record is unreadable or malformed."""
    pass


class RunInterrupted(WatchdogError):
    """Shutdown requested mid-run; no further tunnel commands may be sent."""
    pass
