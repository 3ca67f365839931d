"""Hardware and environment configuration for Fingering RL.

Detects the host operating system, CPU architecture, Python version and
core count, and derives how many worker processes the segment solver
should use by default.  No heavy imports; CPU only.
"""

import logging
import os
import platform
import sys

logger = logging.getLogger(__name__)


def recommended_workers(cores: int) -> int:
    """Worker processes for a machine with *cores* logical CPUs."""
    if cores >= 8:
        return 4
    if cores >= 4:
        return 2
    return 1


def setup_hardware() -> dict:
    """Detect and log the current execution environment.

    Returns:
        dict with keys ``os``, ``arch``, ``python_version``, ``cores``
        and ``workers``.
    """
    os_name: str = sys.platform
    arch: str = platform.machine()
    py_version: str = platform.python_version()
    cores: int = os.cpu_count() or 1

    info = {
        "os": os_name,
        "arch": arch,
        "python_version": py_version,
        "cores": cores,
        "workers": recommended_workers(cores),
    }

    logger.info("──── Fingering RL — Environment ────")
    logger.info("  OS            : %s", os_name)
    logger.info("  Architecture  : %s", arch)
    logger.info("  Python        : %s", py_version)
    logger.info("  CPU cores     : %d -> %d worker(s)", cores, info["workers"])
    logger.info("────────────────────────────────────")
    return info
