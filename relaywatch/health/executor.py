"""Health check executor — runs selected checks concurrently and ranks them.

Each check runs in a thread pool. The executor joins on all of them (bounded
by ``timeout_ms``) before handing the results to the aggregator, so every
selected check is represented in the output: checks that raise, time out or
are not registered become HEALTH_CHECK_ERROR results.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from concurrent.futures import Future, ThreadPoolExecutor, wait

from ..errors import CheckExecutionFailed, CheckNotFound
from .aggregator import aggregate
from .checks import CheckProvider
from .registry import CheckRegistry
from .result import CheckResult, ExecutionResult, HealthCheckDescriptor

logger = logging.getLogger(__name__)

MISSING_SERVICE_ID = -1


def run_check(descriptor: HealthCheckDescriptor, provider: CheckProvider) -> ExecutionResult:
    """Run one provider and wrap its outcome with timing metadata."""
    t0 = time.perf_counter()
    try:
        result = provider.run()
        if not isinstance(result, CheckResult):
            raise CheckExecutionFailed(
                f"Check returned {type(result).__name__} instead of CheckResult"
            )
    except CheckExecutionFailed as e:
        elapsed = _elapsed_ms(t0)
        logger.warning("Check %s failed: %s", descriptor.name, e)
        return ExecutionResult.from_error(descriptor, str(e), elapsed)
    except Exception as e:
        elapsed = _elapsed_ms(t0)
        logger.warning("Check %s raised %s: %s", descriptor.name, type(e).__name__, e)
        return ExecutionResult.from_error(
            descriptor, f"Exception during check: {type(e).__name__}: {e}", elapsed,
        )
    return ExecutionResult.from_check(descriptor, result, _elapsed_ms(t0))


def _elapsed_ms(t0: float) -> int:
    return max(0, int((time.perf_counter() - t0) * 1000))


class HealthCheckExecutor:
    """Executes registered checks in parallel and returns ranked results."""

    def __init__(
        self,
        registry: CheckRegistry,
        timeout_ms: int = 10_000,
        max_workers: int = 4,
    ) -> None:
        self.registry = registry
        self.timeout_ms = timeout_ms
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="health")

    def execute(
        self,
        tags: Iterable[str] | None = None,
        names: Iterable[str] | None = None,
    ) -> list[ExecutionResult]:
        """Run checks selected by tags (or by name) and rank the results."""
        selected: list[tuple[HealthCheckDescriptor, CheckProvider]] = []
        results: list[ExecutionResult] = []

        if names:
            for name in names:
                found = self.registry.get(name)
                if not found:
                    err = CheckNotFound(name)
                    logger.warning("%s", err)
                    results.append(ExecutionResult.from_error(
                        HealthCheckDescriptor(name=name, service_id=MISSING_SERVICE_ID),
                        str(err),
                    ))
                selected.extend(found)
        else:
            selected = self.registry.select(tags)

        results.extend(self._run_all(selected))
        ranked = aggregate(results)
        logger.info(
            "Executed %d health checks (%d not ok)",
            len(ranked), sum(1 for r in ranked if not r.status.is_ok),
        )
        return ranked

    def _run_all(
        self, selected: list[tuple[HealthCheckDescriptor, CheckProvider]],
    ) -> list[ExecutionResult]:
        if not selected:
            return []

        futures: dict[Future[ExecutionResult], HealthCheckDescriptor] = {
            self._pool.submit(run_check, d, p): d for d, p in selected
        }
        done, pending = wait(futures, timeout=self.timeout_ms / 1000)

        results = [f.result() for f in done]
        for future in pending:
            future.cancel()
            descriptor = futures[future]
            logger.warning("Check %s timed out after %dms", descriptor.name, self.timeout_ms)
            results.append(ExecutionResult.from_error(
                descriptor,
                f"Timeout: check still running after {self.timeout_ms}ms",
                self.timeout_ms,
            ))
        return results

    def close(self) -> None:
        self._pool.shutdown(wait=False, cancel_futures=True)
