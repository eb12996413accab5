from __future__ import annotations

import threading
import time
from typing import Any, Callable, Optional, Tuple, Type

from logging_lib import get_logger


logger = get_logger("platform.breaker")


class BreakerOpenError(RuntimeError):
    """Raised when a call is rejected because the breaker is open."""

    def __init__(self, name: str) -> None:
        super().__init__(f"breaker_open:{name}")
        self.name = name


class CircuitBreaker:
    """Circuit breaker guarding calls to a remote dependency.

    States: CLOSED -> OPEN -> HALF_OPEN -> CLOSED
    - failure_threshold: failures to OPEN within window_seconds
    - half_open_after_s: time to transition OPEN -> HALF_OPEN
    - backoff_fn: callable(attempt:int)->sleep_s used between retries
    - clock: monotonic time source, replaceable in tests
    """

    def __init__(
        self,
        name: str = "default",
        *,
        failure_threshold: int = 5,
        window_seconds: float = 30,
        half_open_after_s: float = 15,
        backoff_fn: Optional[Callable[[int], float]] = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.name = name
        self._lock = threading.Lock()
        self._state = "CLOSED"  # CLOSED | OPEN | HALF_OPEN
        self._failures: list[Tuple[float, str]] = []  # (ts_monotonic, exc name)
        self._opened_at: float = 0.0
        self._probe_inflight = False
        self._threshold = max(1, int(failure_threshold))
        self._window_s = float(window_seconds)
        self._half_open_after = float(half_open_after_s)
        self._backoff = backoff_fn or (lambda n: min(1.0, 0.05 * (2 ** max(0, n - 1))))
        self._clock = clock

    @property
    def state(self) -> str:
        with self._lock:
            return self._state

    def _prune(self, now: float) -> None:
        cutoff = now - self._window_s
        self._failures = [p for p in self._failures if p[0] >= cutoff]

    def _open(self, now: float) -> None:
        self._state = "OPEN"
        self._opened_at = now
        self._probe_inflight = False
        logger.warning("Circuit opened", breaker=self.name, failures=len(self._failures))

    def allow_call(self) -> bool:
        now = self._clock()
        with self._lock:
            if self._state == "OPEN":
                if (now - self._opened_at) >= self._half_open_after and not self._probe_inflight:
                    self._state = "HALF_OPEN"
                    self._probe_inflight = True
                    return True
                return False
            if self._state == "HALF_OPEN":
                # one probe at a time
                return not self._probe_inflight
            return True

    def on_success(self) -> None:
        with self._lock:
            if self._state == "HALF_OPEN":
                logger.info("Circuit closed", breaker=self.name)
                self._state = "CLOSED"
                self._probe_inflight = False
                self._failures.clear()

    def on_failure(self, exc: Optional[BaseException] = None) -> None:
        now = self._clock()
        key = type(exc).__name__ if exc is not None else "generic"
        with self._lock:
            self._failures.append((now, key))
            if self._state == "HALF_OPEN":
                self._open(now)
                return
            self._prune(now)
            if self._state == "CLOSED" and len(self._failures) >= self._threshold:
                self._open(now)

    def reset(self) -> None:
        with self._lock:
            self._state = "CLOSED"
            self._failures.clear()
            self._probe_inflight = False

    def wrap_call(
        self,
        fn: Callable[[], Any],
        *,
        max_tries: int = 1,
        retry_on: tuple[Type[BaseException], ...] = (Exception,),
    ) -> Any:
        """Run ``fn`` under the breaker, retrying ``retry_on`` failures."""

        attempt = 0
        last_exc: Optional[BaseException] = None
        while attempt < max_tries:
            attempt += 1
            if not self.allow_call():
                raise BreakerOpenError(self.name)
            try:
                result = fn()
            except retry_on as exc:  # type: ignore[misc]
                last_exc = exc
                self.on_failure(exc)
                if attempt < max_tries:
                    time.sleep(self._backoff(attempt))
                continue
            except BaseException as exc:  # noqa: BLE001
                self.on_failure(exc)
                raise
            self.on_success()
            return result
        assert last_exc is not None
        raise last_exc

    def snapshot(self) -> dict:
        with self._lock:
            return {
                "name": self.name,
                "state": self._state,
                "failures": len(self._failures),
                "window_s": self._window_s,
                "half_open_after_s": self._half_open_after,
            }
