"""Stage execution: per-stage timeout, bounded retries and cooperative cancellation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FuturesTimeoutError
from dataclasses import dataclass
from typing import Generic, TypeVar

from studio.errors import PipelineCancelledError, StageCancelledError, StageTimeoutError

logger = logging.getLogger(__name__)

T = TypeVar("T")


class StageToken:
    """Cancellation flag handed to a stage; also usable as a ``should_stop`` callable.

    The token is cancelled when its own attempt times out or when the caller's
    event (shared by the whole run) is set.
    """

    def __init__(self, caller_cancel: threading.Event | None = None) -> None:
        self._event = threading.Event()
        self._caller_cancel = caller_cancel

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set() or (self._caller_cancel is not None and self._caller_cancel.is_set())

    def __call__(self) -> bool:
        return self.cancelled


@dataclass
class StageOutcome(Generic[T]):
    name: str
    value: T | None = None
    error: Exception | None = None
    attempts: int = 0

    @property
    def ok(self) -> bool:
        return self.error is None


def run_stage(
    name: str,
    work: Callable[[StageToken], T],
    *,
    timeout: float,
    retries: int = 1,
    caller_cancel: threading.Event | None = None,
    fatal: tuple[type[Exception], ...] = (),
) -> StageOutcome[T]:
    """Run *work* in a worker thread with a time budget, retrying up to *retries* times.

    A timed-out attempt has its token cancelled so the worker stops at its next
    boundary; the caller does not wait for it.  Exceptions listed in *fatal* are
    re-raised immediately.  Every other failure is returned in the outcome, with
    repeated timeouts collapsed into one :class:`StageTimeoutError`.
    """
    last_error: Exception | None = None
    attempts = 0

    for _ in range(retries + 1):
        if caller_cancel is not None and caller_cancel.is_set():
            return StageOutcome(name, error=PipelineCancelledError(f"Cancelled before {name}"), attempts=attempts)

        attempts += 1
        token = StageToken(caller_cancel)
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"stage-{name}")
        future = executor.submit(work, token)
        try:
            value = future.result(timeout=timeout)
        except FuturesTimeoutError:
            token.cancel()
            logger.warning("Stage %s timed out after %.2fs (attempt %d)", name, timeout, attempts)
            last_error = StageTimeoutError(name, timeout, attempts)
            continue
        except fatal:
            raise
        except StageCancelledError as exc:
            if caller_cancel is not None and caller_cancel.is_set():
                return StageOutcome(name, error=PipelineCancelledError(str(exc)), attempts=attempts)
            last_error = exc
            continue
        except Exception as exc:
            logger.exception("Stage %s failed (attempt %d)", name, attempts)
            last_error = exc
            continue
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

        if attempts > 1:
            logger.info("Stage %s succeeded on attempt %d", name, attempts)
        return StageOutcome(name, value=value, attempts=attempts)

    return StageOutcome(name, error=last_error, attempts=attempts)
