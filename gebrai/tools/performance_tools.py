import time
from typing import Annotated, Any, Dict, List, Literal, Optional

from pydantic import Field

from gebrai.performance import PerformanceMonitor
from gebrai.pool import InstancePool

BENCHMARK_LIMIT_MS = 2000


def _summarise(operation: str, durations: List[float]) -> Dict[str, Any]:
    return {
        "operation": operation,
        "durations": [round(d, 2) for d in durations],
        "average": sum(durations) / len(durations),
        "min": min(durations),
        "max": max(durations),
    }


class PerformanceTools:
    """Pool and timing introspection."""

    def __init__(self, pool: InstancePool, monitor: PerformanceMonitor):
        self.pool = pool
        self.monitor = monitor

    def handlers(self):
        return [
            self.performance_get_stats,
            self.performance_get_pool_stats,
            self.performance_warm_up_pool,
            self.performance_clear_metrics,
            self.performance_benchmark,
        ]

    async def performance_get_stats(self, operation_name: Optional[str] = None) -> Dict[str, Any]:
        """
        Timing statistics for one operation or for all of them.

        Args:
            operation_name: tool or operation name, all operations when omitted
        """
        stats = self.monitor.stats(operation_name)
        return {
            "operationName": operation_name or "overall",
            "stats": stats.model_dump(),
            "availableOperations": self.monitor.operation_names(),
            "summary": {
                "totalOperations": stats.count,
                "averageResponseTime": f"{stats.average_duration:.2f}ms",
                "successRate": f"{stats.success_rate * 100:.1f}%",
                "p95ResponseTime": f"{stats.p95_duration:.2f}ms",
                "performanceStatus": "GOOD" if stats.p95_duration < BENCHMARK_LIMIT_MS else "NEEDS_ATTENTION",
            },
        }

    async def performance_get_pool_stats(self) -> Dict[str, Any]:
        """Instance pool usage and estimated resource consumption."""
        stats = self.pool.stats()
        if stats.total_instances == 0:
            recommendation = "Pool empty - instances will be created on demand"
        elif stats.average_usage > 10:
            recommendation = "Consider increasing pool size for high usage"
        else:
            recommendation = "Pool size appropriate for current usage"
        utilization = stats.active_instances / stats.total_instances * 100 if stats.total_instances else 0.0
        return {
            "poolStats": stats.model_dump(),
            "instances": self.pool.describe(),
            "resourceStatus": {
                "memoryUsage": f"{stats.memory_estimate}MB estimated",
                "efficiency": "HIGH" if stats.average_usage > 5 else "NORMAL",
                "poolUtilization": f"{utilization:.1f}%",
                "recommendation": recommendation,
            },
        }

    async def performance_warm_up_pool(self, count: Annotated[int, Field(ge=1, le=10)] = 1) -> Dict[str, Any]:
        """
        Pre-create GeoGebra instances so later calls skip browser startup.

        Args:
            count: number of instances the pool should hold, capped at the pool size
        """
        started = time.perf_counter()
        created = await self.pool.warm_up(count)
        stats = self.pool.stats()
        return {
            "message": f"Pool warmed up with {created} new instance(s)",
            "warmUpTime": f"{(time.perf_counter() - started) * 1000:.0f}ms",
            "poolStats": {"totalInstances": stats.total_instances, "memoryEstimate": f"{stats.memory_estimate}MB"},
        }

    async def performance_clear_metrics(self) -> Dict[str, Any]:
        """Forget every recorded timing."""
        self.monitor.clear()
        return {"message": "All performance metrics cleared"}

    async def performance_benchmark(
            self,
            test_type: Literal["basic", "command_execution", "export_operations", "all"] = "basic",
            iterations: Annotated[int, Field(ge=1, le=20)] = 5,
    ) -> Dict[str, Any]:
        """
        Time command execution and SVG export on a leased instance.

        Args:
            test_type: which benchmark to run
            iterations: repetitions per benchmark
        """
        results = []
        async with self.pool.lease() as session:
            if test_type in ("basic", "command_execution", "all"):
                durations = []
                for i in range(iterations):
                    started = time.perf_counter()
                    await session.eval_command(f"BenchPoint{i} = ({i}, {i})")
                    durations.append((time.perf_counter() - started) * 1000)
                results.append(_summarise("basic_command_execution", durations))
            if test_type in ("export_operations", "all"):
                await session.eval_command("A = (0, 0)")
                await session.eval_command("B = (1, 1)")
                await session.eval_command("line1 = Line(A, B)")
                durations = []
                for _ in range(min(iterations, 3)):
                    started = time.perf_counter()
                    await session.export_svg()
                    durations.append((time.perf_counter() - started) * 1000)
                results.append(_summarise("svg_export", durations))
        return {
            "benchmark": {
                "testType": test_type,
                "iterations": iterations,
                "results": results,
                "summary": {
                    "totalTests": len(results),
                    "allTestsPassed": all(r["average"] < BENCHMARK_LIMIT_MS for r in results),
                    "recommendedAction": "Consider pool warm-up or optimization"
                    if any(r["average"] > 1500 for r in results) else "Performance is within acceptable range",
                },
            }
        }
