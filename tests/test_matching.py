"""条件・セグメント一致判定のユニットテスト"""

from k1s0_flag_engine import Clause, DataKind, InMemoryFeatureStore, OperatorRegistry, Segment, User
from k1s0_flag_engine.matching import (
    clause_matches_user,
    clause_matches_user_no_segments,
    segment_matches_user,
)

OPERATORS = OperatorRegistry()


def make_clause(attribute: str, op: str, *values: object, negate: bool = False) -> Clause:
    return Clause(attribute=attribute, op=op, values=values, negate=negate)


def make_segment(**overrides: object) -> Segment:
    data: dict = {"key": "beta", "salt": "seg-salt"}
    data.update(overrides)
    return Segment.from_dict(data)


def test_clause_matches_builtin_attribute() -> None:
    """組み込み属性で一致すること。"""
    clause = make_clause("country", "in", "US", "JP")
    assert clause_matches_user_no_segments(clause, User(key="u", country="JP"), OPERATORS)
    assert not clause_matches_user_no_segments(clause, User(key="u", country="DE"), OPERATORS)


def test_clause_matches_custom_attribute() -> None:
    """custom 属性で一致すること。"""
    clause = make_clause("plan", "in", "pro")
    assert clause_matches_user_no_segments(clause, User(key="u", custom={"plan": "pro"}), OPERATORS)


def test_clause_with_list_user_value_matches_any_element() -> None:
    """属性値がリストならいずれかの要素が一致すれば一致すること。"""
    clause = make_clause("groups", "in", "admins", "ops")
    user = User(key="u", custom={"groups": ["users", "ops"]})
    assert clause_matches_user_no_segments(clause, user, OPERATORS)
    other = User(key="u", custom={"groups": ["users"]})
    assert not clause_matches_user_no_segments(clause, other, OPERATORS)


def test_negated_clause() -> None:
    """negate で判定が反転すること。"""
    clause = make_clause("country", "in", "US", negate=True)
    assert not clause_matches_user_no_segments(clause, User(key="u", country="US"), OPERATORS)
    assert clause_matches_user_no_segments(clause, User(key="u", country="JP"), OPERATORS)
    assert clause_matches_user_no_segments(clause, User(key="u", country="DE"), OPERATORS)


def test_negated_clause_with_list_value() -> None:
    """リスト値の一致結果にも negate が適用されること。"""
    clause = make_clause("groups", "in", "admins", negate=True)
    assert not clause_matches_user_no_segments(
        clause, User(key="u", custom={"groups": ["admins"]}), OPERATORS
    )
    assert clause_matches_user_no_segments(
        clause, User(key="u", custom={"groups": ["users"]}), OPERATORS
    )


def test_missing_attribute_never_matches() -> None:
    """属性が無い場合は negate でも一致しないこと。"""
    assert not clause_matches_user_no_segments(
        make_clause("country", "in", "US"), User(key="u"), OPERATORS
    )
    assert not clause_matches_user_no_segments(
        make_clause("country", "in", "US", negate=True), User(key="u"), OPERATORS
    )


def test_unknown_operator_does_not_match() -> None:
    """未知の演算子は不一致になること。"""
    clause = make_clause("country", "noSuchOp", "US")
    assert not clause_matches_user_no_segments(clause, User(key="u", country="US"), OPERATORS)


def test_segment_included_wins_over_excluded() -> None:
    """included と excluded の両方にあれば included が優先されること。"""
    segment = make_segment(included=["u1"], excluded=["u1"])
    assert segment_matches_user(segment, User(key="u1"), OPERATORS)


def test_segment_excluded_wins_over_rules() -> None:
    """excluded はルールより優先されること。"""
    segment = make_segment(
        excluded=["u1"],
        rules=[{"clauses": [{"attribute": "key", "op": "in", "values": ["u1"]}]}],
    )
    assert not segment_matches_user(segment, User(key="u1"), OPERATORS)


def test_segment_rule_match() -> None:
    """ルールの全条件が一致すれば所属すること。"""
    segment = make_segment(
        rules=[
            {
                "clauses": [
                    {"attribute": "country", "op": "in", "values": ["JP"]},
                    {"attribute": "email", "op": "endsWith", "values": ["@example.com"]},
                ]
            }
        ]
    )
    assert segment_matches_user(
        segment, User(key="u", country="JP", email="a@example.com"), OPERATORS
    )
    assert not segment_matches_user(
        segment, User(key="u", country="JP", email="a@other.com"), OPERATORS
    )


def test_segment_rule_weight() -> None:
    """weight 付きルールはバケット値が閾値未満のユーザーのみ所属すること。"""
    segment = make_segment(
        rules=[{"clauses": [], "weight": 50000}],
    )
    # beta.seg-salt.user-2 -> 0.2282, user-1 -> 0.7646
    assert segment_matches_user(segment, User(key="user-2"), OPERATORS)
    assert not segment_matches_user(segment, User(key="user-1"), OPERATORS)


def test_segment_requires_user_key() -> None:
    """空の key は所属しないこと。"""
    segment = make_segment(included=[""], rules=[{"clauses": []}])
    assert not segment_matches_user(segment, User(key=""), OPERATORS)


async def test_segment_match_clause(store: InMemoryFeatureStore) -> None:
    """segmentMatch はいずれかのセグメントに所属すれば一致すること。"""
    await store.init({DataKind.SEGMENTS: {
        "alpha": make_segment(key="alpha", included=["u2"]),
        "beta": make_segment(key="beta", included=["u1"]),
    }})
    clause = make_clause("", "segmentMatch", "missing", "alpha", "beta")
    assert await clause_matches_user(clause, User(key="u1"), store, OPERATORS)
    assert await clause_matches_user(clause, User(key="u2"), store, OPERATORS)
    assert not await clause_matches_user(clause, User(key="u3"), store, OPERATORS)


async def test_negated_segment_match_clause(store: InMemoryFeatureStore) -> None:
    """segmentMatch の結果にも negate が適用されること。"""
    await store.init({DataKind.SEGMENTS: {"beta": make_segment(included=["u1"])}})
    clause = make_clause("", "segmentMatch", "beta", negate=True)
    assert not await clause_matches_user(clause, User(key="u1"), store, OPERATORS)
    assert await clause_matches_user(clause, User(key="u2"), store, OPERATORS)


async def test_segment_match_stops_at_first_member() -> None:
    """最初に所属が判明したセグメントで打ち切ること。"""
    requested: list[str] = []

    class RecordingStore(InMemoryFeatureStore):
        async def get(self, kind, key):  # type: ignore[override]
            requested.append(key)
            return await super().get(kind, key)

    recording = RecordingStore()
    await recording.init({DataKind.SEGMENTS: {
        "a": make_segment(key="a", included=["u1"]),
        "b": make_segment(key="b", included=["u1"]),
    }})
    clause = make_clause("", "segmentMatch", "a", "b")
    assert await clause_matches_user(clause, User(key="u1"), recording, OPERATORS)
    assert requested == ["a"]
