"""評価メトリクス定義のユニットテスト"""

from k1s0_flag_engine.metrics import (
    flag_evaluation_duration_seconds,
    flag_evaluation_errors_total,
    flag_evaluations_total,
)


def test_metrics_recordable() -> None:
    """全メトリクスに記録できること。"""
    flag_evaluations_total.add(1, {"flag_key": "f", "outcome": "ok"})
    flag_evaluation_errors_total.add(1, {"code": "UNDEFINED_VARIATION"})
    flag_evaluation_duration_seconds.record(0.001)
