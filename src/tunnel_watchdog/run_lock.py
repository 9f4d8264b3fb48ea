# --- Standard library imports ---
import os
import fcntl
from pathlib import Path

# --- Project imports ---
from .logger import get_logger


LOCK_FILE = "tunnel_watchdog.lock"

logger = get_logger("run_lock")


class RunLock:
    """
    Exclusive, non-blocking lock held for the duration of one invocation.

    Guards the persisted cooldown and stopped-service records against
    overlapping scheduler ticks. The lock is released by the kernel if the
    process dies, so a crashed run never wedges later ones.

    Usage:
        with RunLock(state_dir) as acquired:
            if not acquired:
                return
            ...
    """

    def __init__(self, state_dir: Path):
        self.path = Path(state_dir) / LOCK_FILE
        self._fd: int | None = None

    def acquire(self) -> bool:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd = os.open(self.path, os.O_RDWR | os.O_CREAT, 0o644)

        try:
            fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
        except OSError:
            os.close(fd)
            logger.debug(f"Run lock busy: {self.path}")
            return False

        os.ftruncate(fd, 0)
        os.write(fd, str(os.getpid()).encode())
        self._fd = fd
        return True

    def release(self) -> None:
        if self._fd is None:
            return

        try:
            fcntl.flock(self._fd, fcntl.LOCK_UN)
        finally:
            os.close(self._fd)
            self._fd = None

    def __enter__(self) -> bool:
        return self.acquire()

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()
