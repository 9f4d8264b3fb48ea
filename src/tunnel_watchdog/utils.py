# --- Standard library imports ---
import sys
import subprocess

# --- Project imports ---
from .errors import ProcessInvocationFailure
from .logger import get_logger


# Define the logger once for the entire module
logger = get_logger("utils")

def ping_command(target: str, timeout_s: int) -> list[str]:
    """
    Build a single-echo ICMP ping command for the current platform.

    Windows `ping` takes its timeout in milliseconds; POSIX `ping` in seconds.
    """
    if sys.platform.startswith("win"):
        return ["ping", "-n", "1", "-w", str(int(timeout_s * 1000)), target]
    return ["ping", "-c", "1", "-W", str(int(timeout_s)), target]

def ping_once(target: str, timeout_s: int) -> str:
    """
    Send exactly one ICMP echo to `target` and return the utility's output.

    The exit status is deliberately not interpreted here; classification of
    the text is the caller's job.

    Raises:
        ProcessInvocationFailure: ping could not be started or hung.
    """
    cmd = ping_command(target, timeout_s)

    try:
        result = subprocess.run(
            cmd,
            capture_output=True,
            text=True,
            timeout=timeout_s + 5,
        )
    except (OSError, subprocess.SubprocessError) as e:
        raise ProcessInvocationFailure(f"{cmd[0]} failed to run: {e}") from e

    return f"{result.stdout}\n{result.stderr}"
