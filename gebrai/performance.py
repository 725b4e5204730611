import time
from collections import deque
from contextlib import asynccontextmanager
from statistics import median
from typing import AsyncIterator, Callable, Deque, Dict, List, Optional, Tuple

from loguru import logger
from pydantic import BaseModel

from gebrai.data_classes import PerformanceStats


class OperationMetric(BaseModel):
    operation_name: str
    duration: float  # milliseconds
    success: bool
    error_message: Optional[str] = None


# warning and critical limits in milliseconds
DEFAULT_THRESHOLDS: Dict[str, Tuple[float, float]] = {
    "geogebra_eval_command": (1000, 2000),
    "geogebra_create_point": (500, 1000),
    "geogebra_create_line": (500, 1000),
    "geogebra_export_png": (1500, 2000),
    "geogebra_export_svg": (800, 1500),
    "geogebra_instance_init": (8000, 15000),
    "geogebra_clear_construction": (300, 1000),
    "default": (1000, 2000),
}


class PerformanceMonitor:
    """
    Keeps the most recent operation timings and summarises them.
    """

    def __init__(
            self,
            max_metrics: int = 1000,
            thresholds: Optional[Dict[str, Tuple[float, float]]] = None,
            clock: Callable[[], float] = time.perf_counter,
    ):
        self._metrics: Deque[OperationMetric] = deque(maxlen=max_metrics)
        self.thresholds = dict(DEFAULT_THRESHOLDS)
        if thresholds:
            self.thresholds.update(thresholds)
        self._clock = clock

    def record(self, operation_name: str, duration: float, success: bool = True, error_message: Optional[str] = None) -> OperationMetric:
        metric = OperationMetric(
            operation_name=operation_name, duration=duration, success=success, error_message=error_message
        )
        self._metrics.append(metric)
        warning, critical = self.thresholds.get(operation_name, self.thresholds["default"])
        if duration > critical:
            logger.warning("{operation} took {duration:.0f}ms, above the critical threshold", operation=operation_name, duration=duration)
        elif duration > warning:
            logger.info("{operation} took {duration:.0f}ms, above the warning threshold", operation=operation_name, duration=duration)
        return metric

    @asynccontextmanager
    async def measure(self, operation_name: str) -> AsyncIterator[None]:
        """Times the enclosed block; an exception marks the metric as failed and propagates."""
        start = self._clock()
        try:
            yield
        except Exception as e:
            self.record(operation_name, (self._clock() - start) * 1000, False, str(e))
            raise
        self.record(operation_name, (self._clock() - start) * 1000, True)

    def operation_names(self) -> List[str]:
        return sorted({metric.operation_name for metric in self._metrics})

    def stats(self, operation_name: Optional[str] = None) -> PerformanceStats:
        metrics = [m for m in self._metrics if operation_name is None or m.operation_name == operation_name]
        if not metrics:
            return PerformanceStats()
        durations = sorted(m.duration for m in metrics)
        count = len(durations)
        return PerformanceStats(
            count=count,
            average_duration=sum(durations) / count,
            median_duration=median(durations),
            min_duration=durations[0],
            max_duration=durations[-1],
            p95_duration=durations[min(int(count * 0.95), count - 1)],
            p99_duration=durations[min(int(count * 0.99), count - 1)],
            success_rate=sum(1 for m in metrics if m.success) / count,
        )

    def clear(self) -> None:
        self._metrics.clear()
