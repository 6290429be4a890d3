"""Health subsystem — check results, ranking, registry and executor."""

from .aggregator import aggregate, overall_status, summarize
from .executor import HealthCheckExecutor
from .registry import CheckRegistry
from .result import CheckResult, ExecutionResult, HealthCheckDescriptor, Status
