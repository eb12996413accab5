"""Errors and resilience primitives shared by record store backends."""

import logging
import os
import random
import threading
import time
from collections import deque
from dataclasses import dataclass
from typing import Any, Callable, Optional, TypeVar

from google.api_core import exceptions as gexc


logger = logging.getLogger(__name__)

T = TypeVar('T')


class StoreError(Exception):
    """Base exception for record store operations."""

    def __init__(self, message: str, error_code: str = "STORE_ERROR", original_error: Optional[Exception] = None):
        super().__init__(message)
        self.error_code = error_code # Error code
        self.original_error = original_error # Original error


class StorePermissionError(StoreError):
    """Permission denied error."""

    def __init__(self, message: str = "Permission denied", original_error: Optional[Exception] = None):
        super().__init__(message, "PERMISSION_DENIED", original_error)


class RecordNotFoundError(StoreError):
    """Record not found error."""

    def __init__(self, message: str = "Record not found", original_error: Optional[Exception] = None):
        super().__init__(message, "NOT_FOUND", original_error)


class RecordExistsError(StoreError):
    """A create-only write hit an existing record."""

    def __init__(self, message: str = "Record already exists", original_error: Optional[Exception] = None):
        super().__init__(message, "ALREADY_EXISTS", original_error)


class StoreValidationError(StoreError):
    """Path or payload validation error."""

    def __init__(self, message: str = "Validation failed", original_error: Optional[Exception] = None):
        super().__init__(message, "VALIDATION_ERROR", original_error)


# Transient Firestore failures worth another attempt
RETRYABLE_ERRORS = (
    gexc.ServiceUnavailable,
    gexc.DeadlineExceeded,
    gexc.InternalServerError,
    gexc.TooManyRequests,
    gexc.Aborted,
)


@dataclass
class RetryPolicy:
    """Retry/backoff and time budget settings for store operations."""

    op_timeout_s: float = 2.0   # soft budget per op
    max_retries: int = 2        # at most 2 retries (3 attempts total)
    backoff_base_s: float = 0.05 # Backoff base
    backoff_factor: float = 2.0 # Backoff factor
    backoff_cap_s: float = 0.5 # Backoff cap

    @classmethod
    def from_env(cls) -> "RetryPolicy":
        return cls(
            op_timeout_s=float(os.getenv("FS_OP_TIMEOUT_S", "2.0")),
            max_retries=int(os.getenv("FS_MAX_RETRIES", "2")),
            backoff_base_s=float(os.getenv("FS_BACKOFF_BASE_S", "0.05")),
            backoff_factor=float(os.getenv("FS_BACKOFF_FACTOR", "2.0")),
            backoff_cap_s=float(os.getenv("FS_BACKOFF_CAP_S", "0.5")),
        )

    def backoff(self, attempt: int) -> float:
        ceiling = min(self.backoff_cap_s, self.backoff_base_s * (self.backoff_factor ** attempt))
        return random.uniform(0.0, max(0.0, ceiling))


class StoreCircuitBreaker:
    """Lightweight circuit breaker for store paths (module-local)."""

    def __init__(self, failure_threshold: int = 5, window_s: float = 30.0, reset_timeout_s: float = 15.0) -> None:
        self._failure_threshold = max(1, failure_threshold) # Failure threshold
        self._window_s = window_s # Window size
        self._reset_timeout_s = reset_timeout_s # Reset timeout
        self._failures = deque()  # type: ignore[var-annotated]
        self._open_until: float = 0.0 # Open until
        self._lock = threading.RLock() # Lock

    @classmethod
    def from_env(cls) -> "StoreCircuitBreaker":
        return cls(
            failure_threshold=int(os.getenv("FS_BREAKER_THRESHOLD", "5")),
            window_s=float(os.getenv("FS_BREAKER_WINDOW_S", "30")),
            reset_timeout_s=float(os.getenv("FS_BREAKER_RESET_S", "15")),
        )

    def allow_call(self) -> bool:
        with self._lock:
            now = time.monotonic()

            if now < self._open_until:
                return False

            cutoff = now - self._window_s
            while self._failures and self._failures[0] < cutoff:
                self._failures.popleft()

            return True

    def on_success(self) -> None:
        with self._lock:
            self._open_until = 0.0
            self._failures.clear()

    def on_failure(self) -> None:
        with self._lock:
            now = time.monotonic()

            # keep the deque ordered
            if self._failures and now < self._failures[-1]:
                now = self._failures[-1]

            self._failures.append(now)

            cutoff = now - self._window_s
            while self._failures and self._failures[0] < cutoff:
                self._failures.popleft()

            if len(self._failures) >= self._failure_threshold:
                self._open_until = now + self._reset_timeout_s
                logger.warning("Store breaker opened", extra={"failures": len(self._failures)})


def execute_with_retry(
    op_name: str,
    func: Callable[[], T],
    *,
    policy: RetryPolicy,
    breaker: StoreCircuitBreaker,
) -> T:
    """Execute func with bounded retries and a soft time budget under a breaker.

    Only transient backend errors are retried. Anything else propagates
    immediately for the caller to translate.
    """

    if not breaker.allow_call():
        raise StoreError(f"Breaker open for operation: {op_name}", "BREAKER_OPEN")

    start = time.monotonic()
    attempt = 0
    while True:
        try:
            result = func()
            breaker.on_success()
            return result
        except RETRYABLE_ERRORS:
            if (time.monotonic() - start) >= policy.op_timeout_s or attempt >= policy.max_retries:
                breaker.on_failure()
                raise

            time.sleep(policy.backoff(attempt))
            attempt += 1


def translate_error(operation: str, error: Exception) -> StoreError:
    """Convert backend exceptions into store exceptions."""

    if isinstance(error, StoreError):
        return error
    if isinstance(error, gexc.PermissionDenied):
        logger.error(f"Permission denied during {operation}: {error}")
        return StorePermissionError(f"Permission denied during {operation}", error)
    if isinstance(error, gexc.NotFound):
        logger.error(f"Record not found during {operation}: {error}")
        return RecordNotFoundError(f"Record not found during {operation}", error)
    if isinstance(error, (gexc.AlreadyExists, gexc.Conflict)):
        logger.info(f"Record already exists during {operation}")
        return RecordExistsError(f"Record already exists during {operation}", error)
    logger.error(f"Unexpected error during {operation}: {error}")
    return StoreError(f"Error during {operation}: {error}", original_error=error)
