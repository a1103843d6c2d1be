"""フラグ評価の OpenTelemetry メトリクス定義"""

from __future__ import annotations

from opentelemetry import metrics

_meter = metrics.get_meter("k1s0_flag_engine", version="0.1.0")

flag_evaluations_total = _meter.create_counter(
    name="flag_evaluations_total",
    description="Total number of flag evaluations",
    unit="1",
)

flag_evaluation_errors_total = _meter.create_counter(
    name="flag_evaluation_errors_total",
    description="Total number of flag evaluations that returned an error",
    unit="1",
)

flag_evaluation_duration_seconds = _meter.create_histogram(
    name="flag_evaluation_duration_seconds",
    description="Flag evaluation duration in seconds",
    unit="s",
)
