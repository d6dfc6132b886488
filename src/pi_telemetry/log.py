"""Shared logging for pi-telemetry.

All components log to /tmp/pi-telemetry.log via Python's logging module.
Filter with grep: grep 'pi_telemetry.routing' /tmp/pi-telemetry.log
"""

import logging
from pathlib import Path

_LOG_PATH = Path("/tmp/pi-telemetry.log")

_handler = logging.FileHandler(_LOG_PATH, delay=True)
_handler.setFormatter(logging.Formatter("%(asctime)s %(name)s %(message)s", datefmt="%H:%M:%S"))

_root = logging.getLogger("pi_telemetry")
_root.addHandler(_handler)
_root.setLevel(logging.DEBUG)
# don't propagate to root logger: telemetry runs inside someone else's
# process and must not write into their log output
_root.propagate = False


def get_logger(name: str) -> logging.Logger:
    return _root.getChild(name)
