"""
Resilience pattern tests: hard timeouts and fallbacks.

Copyright (c) 2026 Momentum. All rights reserved.
"""

import threading

import pytest

from swapvault.errors import ProverTimeout
from swapvault.resilience import Fallback, Timeout


class TestTimeout:
    def test_returns_result(self):
        timeout = Timeout(seconds=5.0, name="quick")
        assert timeout.execute(lambda: 42) == 42
        assert timeout.metrics.successful_calls == 1

    def test_raises_after_bound(self):
        release = threading.Event()
        fired = []
        timeout = Timeout(seconds=0.05, name="stuck", on_timeout=lambda: fired.append(True))
        try:
            with pytest.raises(ProverTimeout) as exc:
                timeout.execute(lambda: release.wait(5))
        finally:
            release.set()

        assert exc.value.details == {"operation": "stuck", "timeout_seconds": 0.05}
        assert fired == [True]
        assert timeout.metrics.timed_out_calls == 1

    def test_propagates_errors(self):
        def boom():
            raise KeyError("x")

        with pytest.raises(KeyError):
            Timeout(seconds=1.0).execute(boom)

    @pytest.mark.parametrize("seconds", [0, -1])
    def test_bound_must_be_positive(self, seconds):
        with pytest.raises(ValueError):
            Timeout(seconds=seconds)


class TestFallback:
    def test_primary_result(self):
        fallback = Fallback(fallback_value=0)
        assert fallback.execute(lambda: 1) == 1
        assert fallback.fallback_count == 0

    def test_fallback_func_and_callback(self):
        seen = []
        fallback = Fallback(
            fallback_func=lambda: "direct",
            exceptions=(RuntimeError,),
            on_fallback=seen.append,
        )

        def fail():
            raise RuntimeError("down")

        assert fallback.execute(fail) == "direct"
        assert fallback.fallback_count == 1
        assert isinstance(seen[0], RuntimeError)

    def test_unlisted_exception_propagates(self):
        fallback = Fallback(fallback_value=0, exceptions=(RuntimeError,))

        def fail():
            raise KeyError("x")

        with pytest.raises(KeyError):
            fallback.execute(fail)
