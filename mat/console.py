"""Console lines mirrored to the ``mat`` logger.

The harness talks to the person running the suite through short
``[LEVEL] message`` lines; errors go to stderr, everything else to stdout.
"""

from __future__ import annotations

import logging
import sys

log = logging.getLogger("mat")

SEPARATOR = "-------------------------------------------------------"


def info(msg: str) -> None:
    print(f"[INFO] {msg}", flush=True)
    log.info(msg)


def warning(msg: str) -> None:
    print(f"[WARNING] {msg}", flush=True)
    log.warning(msg)


def error(msg: str) -> None:
    print(f"[ERROR] {msg}", file=sys.stderr, flush=True)
    log.error(msg)


def separator() -> None:
    print(f"[INFO] {SEPARATOR}", flush=True)
