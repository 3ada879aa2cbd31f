from __future__ import annotations

import logging
import time
from typing import Callable

from inbox_digest.ai.assistant import GenerationTransport
from inbox_digest.models import (
    Completed,
    CompletionOutcome,
    Failed,
    JobHandle,
    TimedOut,
)

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 30.0
DEFAULT_POLL_INTERVAL_SECONDS = 1.0

TERMINAL_FAILURE_STATUSES = frozenset({"failed", "cancelled"})


def await_completion(
    transport: GenerationTransport,
    job: JobHandle,
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    *,
    poll_interval: float = DEFAULT_POLL_INTERVAL_SECONDS,
    clock: Callable[[], float] = time.monotonic,
    sleep: Callable[[float], None] = time.sleep,
) -> CompletionOutcome:
    """
    Poll a run at a fixed interval until it completes, fails, or the budget runs out.

    The first terminal status ends polling. Errors raised by the transport
    propagate to the caller.
    """
    started = clock()
    while clock() - started < timeout:
        run = transport.get_run_status(job)
        logger.debug("Run %s status=%s", job.run_id, run.status)

        if run.status == "completed":
            return Completed()
        if run.status in TERMINAL_FAILURE_STATUSES:
            return Failed(reason=f"AI run {run.status}: {run.error or 'Unknown error'}")

        sleep(poll_interval)

    return TimedOut()
