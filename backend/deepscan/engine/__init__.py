"""DeepScan engine - probe execution, discovery, coordination and scoring."""

from deepscan.engine.executor import Deadline, ExecutorStats, ProbeExecutor
from deepscan.engine.results import (
    AggregateReport,
    DiscoveryMethod,
    DiscoveryRecord,
    DiscoveryReport,
    ModuleError,
    ModuleName,
    ModuleReport,
    RiskTally,
)
from deepscan.engine.scoring import MODULE_WEIGHTS, aggregate_score

__all__ = [
    "Deadline",
    "ExecutorStats",
    "ProbeExecutor",
    "AggregateReport",
    "DiscoveryMethod",
    "DiscoveryRecord",
    "DiscoveryReport",
    "ModuleError",
    "ModuleName",
    "ModuleReport",
    "RiskTally",
    "MODULE_WEIGHTS",
    "aggregate_score",
]
