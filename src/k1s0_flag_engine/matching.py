"""条件・セグメント一致判定"""

from __future__ import annotations

from collections.abc import Iterable
from typing import Any

from .bucketing import DEFAULT_BUCKET_BY, WEIGHT_SCALE, bucket_user
from .models import Clause, Rule, Segment, SegmentRule
from .operators import OperatorFn, OperatorRegistry
from .store import DataKind, FeatureStore
from .user import User


def _maybe_negate(clause: Clause, matched: bool) -> bool:
    return not matched if clause.negate else matched


def _match_any(fn: OperatorFn, user_value: Any, clause_values: Iterable[Any]) -> bool:
    return any(fn(user_value, clause_value) for clause_value in clause_values)


def clause_matches_user_no_segments(
    clause: Clause, user: User, operators: OperatorRegistry
) -> bool:
    """segmentMatch 以外の条件を判定する。

    ユーザー属性が無い場合は negate に関わらず一致しない。
    属性値がリストなら、いずれかの要素がいずれかの比較値に一致すれば一致とする。
    """
    user_value = user.get_value(clause.attribute)
    if user_value is None:
        return False

    fn = operators.resolve(clause.op)
    if isinstance(user_value, (list, tuple)):
        matched = any(_match_any(fn, item, clause.values) for item in user_value)
        return _maybe_negate(clause, matched)
    return _maybe_negate(clause, _match_any(fn, user_value, clause.values))


async def clause_matches_user(
    clause: Clause, user: User, store: FeatureStore, operators: OperatorRegistry
) -> bool:
    """条件を判定する。segmentMatch は列挙されたセグメントのいずれかに所属すれば一致。"""
    if not clause.is_segment_match:
        return clause_matches_user_no_segments(clause, user, operators)

    matched = False
    for segment_key in clause.values:
        segment = await store.get(DataKind.SEGMENTS, segment_key)
        if segment is not None and segment_matches_user(segment, user, operators):
            matched = True
            break
    return _maybe_negate(clause, matched)


async def rule_matches_user(
    rule: Rule, user: User, store: FeatureStore, operators: OperatorRegistry
) -> bool:
    """ルールの全条件が一致するか。最初の不一致で打ち切る。"""
    for clause in rule.clauses:
        if not await clause_matches_user(clause, user, store, operators):
            return False
    return True


def segment_rule_matches_user(
    rule: SegmentRule,
    user: User,
    segment_key: str,
    salt: str,
    operators: OperatorRegistry,
) -> bool:
    for clause in rule.clauses:
        if not clause_matches_user_no_segments(clause, user, operators):
            return False

    if rule.weight is None:
        return True

    bucket = bucket_user(user, segment_key, rule.bucket_by or DEFAULT_BUCKET_BY, salt)
    return bucket < rule.weight / WEIGHT_SCALE


def segment_matches_user(
    segment: Segment, user: User, operators: OperatorRegistry
) -> bool:
    """セグメント所属を判定する。included > excluded > rules の順に評価する。"""
    if not user.key:
        return False
    if user.key in segment.included:
        return True
    if user.key in segment.excluded:
        return False
    return any(
        segment_rule_matches_user(rule, user, segment.key, segment.salt, operators)
        for rule in segment.rules
    )
