"""
Utilities - error handling, timing and privilege helpers
"""

import ctypes
import logging
import subprocess
import sys
import time
from contextlib import contextmanager
from typing import List, Optional

logger = logging.getLogger(__name__)


@contextmanager
def error_handler(
    operation_name: str,
    log_level: int = logging.WARNING
):
    """
    Context manager for consistent error handling and logging.

    Args:
        operation_name: Name of the operation for logging
        log_level: Logging level for errors

    Example:
        with error_handler("Power plan update"):
            power_plans.apply(Mode.DISABLE)
            # The pass continues even if this step raises
    """
    try:
        yield
    except Exception as e:
        logger.log(
            log_level,
            f"Error in {operation_name}: {type(e).__name__}: {e}",
            exc_info=logger.isEnabledFor(logging.DEBUG)
        )


class PerformanceTimer:
    """
    Simple performance timer for profiling code sections.

    Example:
        with PerformanceTimer("Disable pass") as timer:
            ...
        # Logs elapsed time on exit
    """

    def __init__(self, name: str, log_level: int = logging.DEBUG):
        self.name = name
        self.log_level = log_level
        self.start_time: Optional[float] = None
        self.elapsed: Optional[float] = None

    def __enter__(self):
        self.start_time = time.perf_counter()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.elapsed = time.perf_counter() - self.start_time
        logger.log(
            self.log_level,
            f"{self.name} completed in {self.elapsed*1000:.2f}ms"
        )
        return False


def is_admin() -> bool:
    try:
        return ctypes.windll.shell32.IsUserAnAdmin() != 0
    except AttributeError:
        return False


def relaunch_elevated(args: Optional[List[str]] = None) -> bool:
    """Relaunch the current interpreter with the same arguments through UAC"""
    argv = list(sys.argv if args is None else args)
    params = subprocess.list2cmdline(argv)
    try:
        result = ctypes.windll.shell32.ShellExecuteW(None, "runas", sys.executable, params, None, 1)
    except AttributeError:
        logger.error("Elevation is only available on Windows")
        return False
    # ShellExecuteW returns a value > 32 on success
    if result <= 32:
        logger.error(f"UAC elevation failed or was declined (code {result})")
        return False
    return True
