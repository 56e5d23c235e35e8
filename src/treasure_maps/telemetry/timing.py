"""Elapsed-time logging for slow operations (sampling, persistence, issuance)."""

from __future__ import annotations

import logging
import time
from collections.abc import Iterator
from contextlib import contextmanager


@contextmanager
def timed(logger: logging.Logger, operation: str, **context: object) -> Iterator[None]:
    start = time.perf_counter()
    try:
        yield
    finally:
        elapsed_ms = (time.perf_counter() - start) * 1000
        logger.debug(
            "%s took %d ms",
            operation,
            elapsed_ms,
            extra={"operation": operation, "elapsed_ms": round(elapsed_ms, 3), **context},
        )
