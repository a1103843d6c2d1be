"""条件演算子レジストリ"""

from __future__ import annotations

import re
from collections.abc import Callable
from datetime import datetime, timezone
from typing import Any

import structlog

logger = structlog.get_logger(__name__)

OperatorFn = Callable[[Any, Any], bool]


def _never(user_value: Any, clause_value: Any) -> bool:
    return False


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _op_in(user_value: Any, clause_value: Any) -> bool:
    if _is_number(user_value) and _is_number(clause_value):
        return user_value == clause_value
    if _is_number(user_value) or _is_number(clause_value):
        return False
    return user_value == clause_value


def _string_op(fn: Callable[[str, str], bool]) -> OperatorFn:
    def op(user_value: Any, clause_value: Any) -> bool:
        if isinstance(user_value, str) and isinstance(clause_value, str):
            return fn(user_value, clause_value)
        return False

    return op


def _regex_search(user_value: str, pattern: str) -> bool:
    try:
        return re.search(pattern, user_value) is not None
    except re.error:
        return False


def _numeric_op(fn: Callable[[float, float], bool]) -> OperatorFn:
    def op(user_value: Any, clause_value: Any) -> bool:
        if _is_number(user_value) and _is_number(clause_value):
            return fn(user_value, clause_value)
        return False

    return op


def _to_millis(value: Any) -> float | None:
    """エポックミリ秒または RFC3339 文字列をミリ秒に変換する。"""
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError:
            return None
        if parsed.tzinfo is None:
            parsed = parsed.replace(tzinfo=timezone.utc)
        return parsed.timestamp() * 1000
    return None


def _date_op(fn: Callable[[float, float], bool]) -> OperatorFn:
    def op(user_value: Any, clause_value: Any) -> bool:
        left = _to_millis(user_value)
        right = _to_millis(clause_value)
        if left is None or right is None:
            return False
        return fn(left, right)

    return op


DEFAULT_OPERATORS: dict[str, OperatorFn] = {
    "in": _op_in,
    "startsWith": _string_op(lambda u, c: u.startswith(c)),
    "endsWith": _string_op(lambda u, c: u.endswith(c)),
    "contains": _string_op(lambda u, c: c in u),
    "matches": _string_op(_regex_search),
    "lessThan": _numeric_op(lambda u, c: u < c),
    "lessThanOrEqual": _numeric_op(lambda u, c: u <= c),
    "greaterThan": _numeric_op(lambda u, c: u > c),
    "greaterThanOrEqual": _numeric_op(lambda u, c: u >= c),
    "before": _date_op(lambda u, c: u < c),
    "after": _date_op(lambda u, c: u > c),
}


class OperatorRegistry:
    """演算子名から比較関数を引くレジストリ。

    未知の演算子名は常に False を返す関数に解決される。
    """

    def __init__(self, operators: dict[str, OperatorFn] | None = None) -> None:
        self._operators: dict[str, OperatorFn] = dict(
            DEFAULT_OPERATORS if operators is None else operators
        )

    def register(self, name: str, fn: OperatorFn) -> None:
        """演算子を登録する。同名の既存演算子は置き換える。"""
        self._operators[name] = fn

    def resolve(self, name: str) -> OperatorFn:
        fn = self._operators.get(name)
        if fn is None:
            logger.debug("unknown_operator", op=name)
            return _never
        return fn

    def __contains__(self, name: object) -> bool:
        return name in self._operators
