"""Structured live-streaming performance report."""

from __future__ import annotations

from typing import Any

from agent_runtime.capabilities.base import BaseCapability
from agent_runtime.core.capability import CapabilitySpec, ParamSpec, ParamType
from agent_runtime.core.models import ExecutionResult, Task
from agent_runtime.params.binder import BoundParams

REPORT_TYPE = "live_performance"


def _number(value: Any) -> float:
    try:
        return float(value)
    except (TypeError, ValueError):
        return 0.0


def summarize_metrics(metrics: dict[str, Any]) -> str:
    """One-line GMV summary, e.g. ``GMV 1200.00, up about 15% on the previous day``."""

    gmv = _number(metrics.get("gmv", 0))
    change = _number(metrics.get("gmvChangeRate", 0))
    trend = "up" if change >= 0 else "down"
    return f"GMV {gmv:.2f}, {trend} about {int(abs(change * 100))}% on the previous day"


class LiveReportAgent(BaseCapability):
    spec = CapabilitySpec.create(
        "LiveReportAgent",
        task_type="report",
        domains=["live"],
        description="Generate a structured report for live streaming performance",
        params=[
            ParamSpec(
                "analysis",
                declared_type=ParamType.MAPPING,
                description="Analysis result with findings, rootCauses and suggestions",
            ),
            ParamSpec(
                "metrics",
                declared_type=ParamType.MAPPING,
                description="Live room metrics such as gmv and gmvChangeRate",
                example='{"gmv": 1200, "gmvChangeRate": 0.15}',
            ),
            ParamSpec(
                "timeRange",
                declared_type=ParamType.ANY,
                required=False,
                description="Reporting period",
                example='{"start": "2025-01-01 00:00:00", "end": "2025-01-02 00:00:00"}',
            ),
            ParamSpec(
                "filters",
                declared_type=ParamType.ANY,
                required=False,
                description="Filters applied to the metrics",
            ),
        ],
    )

    def execute(self, task: Task, params: BoundParams) -> ExecutionResult:
        analysis: dict[str, Any] = params["analysis"]
        metrics: dict[str, Any] = params["metrics"]
        report = {
            "reportType": REPORT_TYPE,
            "timeRange": params.get("timeRange"),
            "filters": params.get("filters"),
            "kpi": metrics,
            "findings": analysis.get("findings", []),
            "rootCauses": analysis.get("rootCauses", []),
            "suggestions": analysis.get("suggestions", []),
            "summary": analysis.get("summary", ""),
        }
        return ExecutionResult.ok(
            summarize_metrics(metrics), {"report": report, "reportType": REPORT_TYPE}
        )
