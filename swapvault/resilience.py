"""
SWAPVAULT Resilience Primitives

Bounded latency and graceful degradation for the proof pipeline.

    Timeout     Hard bound on a call. The caller stops waiting when the bound
                elapses; the worker is abandoned (thread) or terminated
                (process, see backends).

    Fallback    Alternative result when the primary call raises one of a
                configured set of exceptions. Exceptions outside that set
                propagate untouched.

Copyright (c) 2026 Momentum. All rights reserved.
Contact: engineering@momentum.inc
"""

from __future__ import annotations

import concurrent.futures
import threading
import time
from dataclasses import dataclass
from typing import Callable, Generic, Optional, Tuple, Type, TypeVar

from swapvault.errors import ProverTimeout


T = TypeVar('T')


# ════════════════════════════════════════════════════════════════════════════
# TIMEOUT
# ════════════════════════════════════════════════════════════════════════════


@dataclass
class TimeoutMetrics:
    """Timeout metrics."""
    total_calls: int = 0
    successful_calls: int = 0
    timed_out_calls: int = 0
    total_duration_seconds: float = 0.0


class Timeout:
    """
    Timeout pattern for bounded latency.

    Example:
        timeout = Timeout(seconds=5.0, name="guest")
        result = timeout.execute(lambda: executor.run(payload))

    Raises ProverTimeout when the bound elapses. The worker thread cannot be
    interrupted; it is left to finish in the background and its result is
    discarded.
    """

    def __init__(
        self,
        seconds: float,
        name: str = "operation",
        on_timeout: Optional[Callable[[], None]] = None,
    ):
        if seconds <= 0:
            raise ValueError("Timeout must be positive")
        self.seconds = seconds
        self.name = name
        self._metrics = TimeoutMetrics()
        self._lock = threading.Lock()
        self._on_timeout = on_timeout

    @property
    def metrics(self) -> TimeoutMetrics:
        """Current timeout metrics."""
        with self._lock:
            return TimeoutMetrics(
                total_calls=self._metrics.total_calls,
                successful_calls=self._metrics.successful_calls,
                timed_out_calls=self._metrics.timed_out_calls,
                total_duration_seconds=self._metrics.total_duration_seconds,
            )

    def execute(self, func: Callable[[], T]) -> T:
        """Execute function with timeout."""
        with self._lock:
            self._metrics.total_calls += 1

        start_time = time.monotonic()
        executor = concurrent.futures.ThreadPoolExecutor(
            max_workers=1, thread_name_prefix=f"timeout-{self.name}"
        )
        try:
            future = executor.submit(func)
            try:
                result = future.result(timeout=self.seconds)
            except concurrent.futures.TimeoutError:
                with self._lock:
                    self._metrics.timed_out_calls += 1
                if self._on_timeout:
                    self._on_timeout()
                raise ProverTimeout(
                    f"Operation '{self.name}' timed out after {self.seconds}s",
                    operation=self.name,
                    timeout_seconds=self.seconds,
                )
        finally:
            # Never block on a stuck worker.
            executor.shutdown(wait=False, cancel_futures=True)

        duration = time.monotonic() - start_time
        with self._lock:
            self._metrics.successful_calls += 1
            self._metrics.total_duration_seconds += duration
        return result


# ════════════════════════════════════════════════════════════════════════════
# FALLBACK
# ════════════════════════════════════════════════════════════════════════════


class Fallback(Generic[T]):
    """
    Fallback pattern for graceful degradation.

    Example:
        fallback = Fallback(
            fallback_func=lambda: direct.commit(params),
            exceptions=(ProverError,),
            on_fallback=lambda e: log.warning(str(e)),
        )
        digest = fallback.execute(lambda: verifiable.commit(params))
    """

    def __init__(
        self,
        fallback_value: Optional[T] = None,
        fallback_func: Optional[Callable[[], T]] = None,
        exceptions: Tuple[Type[BaseException], ...] = (Exception,),
        on_fallback: Optional[Callable[[BaseException], None]] = None,
    ):
        self.fallback_value = fallback_value
        self.fallback_func = fallback_func
        self.exceptions = exceptions
        self._on_fallback = on_fallback
        self._fallback_count = 0
        self._lock = threading.Lock()

    @property
    def fallback_count(self) -> int:
        """Number of times fallback was used."""
        with self._lock:
            return self._fallback_count

    def execute(self, func: Callable[[], T]) -> T:
        """Execute with fallback."""
        try:
            return func()
        except self.exceptions as e:
            with self._lock:
                self._fallback_count += 1

            if self._on_fallback:
                self._on_fallback(e)

            if self.fallback_func:
                return self.fallback_func()
            return self.fallback_value
