# --- Standard library imports ---
import sys
import logging
from pathlib import Path


# --- Custom log levels ---
SUCCESS = 25   # Between INFO (20) and WARNING (30)
logging.addLevelName(SUCCESS, "SUCCESS")

def success(self, message, *args, **kwargs):
    """Add `success` method to Logger for SUCCESS-level logs."""
    if self.isEnabledFor(SUCCESS):
        self._log(SUCCESS, message, args, stacklevel=2, **kwargs)

logging.Logger.success = success

# --- Format configuration constants ---
LOG_FORMAT = "[%(asctime)s] [%(levelname)s] %(message)s"
LOG_DATEFMT = "%Y-%m-%d %H:%M:%S"

LEVEL_NAME_MAP = {
    "WARNING": "WARN",
    "CRITICAL": "FATAL",
}

# --- Formatters ---
class LevelFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        """
        Formatter that shortens log level names
        to the log stream vocabulary (WARN, FATAL).
        """
        record.levelname = LEVEL_NAME_MAP.get(record.levelname, record.levelname)
        return super().format(record)

# --- Public logging setup API ---
def setup_logging(level=logging.INFO, log_file: Path | None = None) -> None:
    """
    Configure global logging to stdout and, optionally, an append-only file.

    Every line reads `[timestamp] [LEVEL] message`.
    """
    root = logging.getLogger()
    root.setLevel(level)
    root.handlers.clear()

    formatter = LevelFormatter(fmt=LOG_FORMAT, datefmt=LOG_DATEFMT)

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(formatter)
    root.addHandler(handler)

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file, mode="a", encoding="utf-8")
        file_handler.setFormatter(formatter)
        root.addHandler(file_handler)

def get_logger(name: str) -> logging.Logger:
    """
    Return a namespaced logger for any module.
    """
    return logging.getLogger(f"tunnel_watchdog.{name}")
