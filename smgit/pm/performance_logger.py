"""Timing of the network and copy stages of package population."""

import logging
import time
from collections import deque
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Any, Deque, Dict, Generator, Optional


@dataclass
class StageTiming:
    """Duration of one stage of a fetch/extract run."""
    stage: str
    duration: float
    success: bool = True
    context: Optional[Dict[str, Any]] = None


class PerformanceLogger:
    """Times stages (clone, fetch, copy, checkout) and logs slow ones."""

    # Network stages slower than this get a warning
    SLOW_STAGE_SECONDS = 15.0

    def __init__(self, logger_name: str = 'smgit.pm.performance', max_timings: int = 100):
        self.logger = logging.getLogger(logger_name)
        # Only the most recent stages are kept for a long-lived fetcher
        self.timings: Deque[StageTiming] = deque(maxlen=max_timings)

    @contextmanager
    def time_operation(
        self,
        stage: str,
        context: Optional[Dict[str, Any]] = None
    ) -> Generator[None, None, None]:
        """
        Context manager timing ``stage``.

        Failures are recorded and re-raised unchanged.
        """
        start_time = time.monotonic()
        success = True
        try:
            yield
        except Exception:
            success = False
            raise
        finally:
            duration = time.monotonic() - start_time
            self.timings.append(StageTiming(stage, duration, success, context))
            outcome = "completed" if success else "failed"
            self.logger.debug(f"{stage} {outcome} in {duration:.3f}s")
            if context:
                context_str = ", ".join(f"{k}={v}" for k, v in context.items())
                self.logger.debug(f"{stage} context: {context_str}")
            if duration > self.SLOW_STAGE_SECONDS:
                self.logger.warning(f"Slow git operation detected: '{stage}' took {duration:.1f}s")

    def get_performance_summary(self) -> Dict[str, Any]:
        if not self.timings:
            return {"total_operations": 0, "total_duration": 0.0}

        slowest = max(self.timings, key=lambda t: t.duration)
        return {
            "total_operations": len(self.timings),
            "total_duration": sum(t.duration for t in self.timings),
            "failed_operations": sum(1 for t in self.timings if not t.success),
            "slowest_operation": {"name": slowest.stage, "duration": slowest.duration},
        }
