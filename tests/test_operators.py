"""OperatorRegistry のユニットテスト"""

from k1s0_flag_engine import OperatorRegistry


def test_unknown_operator_never_matches() -> None:
    """未知の演算子は常に False を返すこと。"""
    registry = OperatorRegistry()
    fn = registry.resolve("noSuchOperator")
    assert fn("a", "a") is False
    assert "noSuchOperator" not in registry


def test_in_operator() -> None:
    """in は等値比較であること。"""
    fn = OperatorRegistry().resolve("in")
    assert fn("a", "a") is True
    assert fn("a", "b") is False
    assert fn(1, 1.0) is True
    assert fn(True, 1) is False
    assert fn("1", 1) is False


def test_string_operators() -> None:
    """文字列演算子の判定。"""
    registry = OperatorRegistry()
    assert registry.resolve("startsWith")("foobar", "foo") is True
    assert registry.resolve("endsWith")("foobar", "bar") is True
    assert registry.resolve("contains")("foobar", "oba") is True
    assert registry.resolve("matches")("user@example.com", r"@example\.com$") is True
    assert registry.resolve("startsWith")(123, "1") is False


def test_invalid_regex_does_not_raise() -> None:
    """不正な正規表現は不一致として扱うこと。"""
    assert OperatorRegistry().resolve("matches")("abc", "([") is False


def test_numeric_operators() -> None:
    """数値比較演算子の判定。"""
    registry = OperatorRegistry()
    assert registry.resolve("lessThan")(1, 2) is True
    assert registry.resolve("lessThanOrEqual")(2, 2) is True
    assert registry.resolve("greaterThan")(3, 2.5) is True
    assert registry.resolve("greaterThanOrEqual")(2, 3) is False
    assert registry.resolve("lessThan")("1", 2) is False


def test_date_operators() -> None:
    """日時比較はエポックミリ秒と RFC3339 を受け付けること。"""
    registry = OperatorRegistry()
    before = registry.resolve("before")
    after = registry.resolve("after")
    assert before(0, 1000) is True
    assert before("1970-01-01T00:00:00Z", 1000) is True
    assert after("2024-01-01T00:00:00+09:00", "2023-12-31T00:00:00Z") is True
    assert before("not-a-date", 1000) is False


def test_register_custom_operator() -> None:
    """独自演算子を登録できること。"""
    registry = OperatorRegistry()
    registry.register("lengthIs", lambda u, c: isinstance(u, str) and len(u) == c)
    assert "lengthIs" in registry
    assert registry.resolve("lengthIs")("abc", 3) is True


def test_empty_registry() -> None:
    """空のレジストリでは既定演算子も未知扱いになること。"""
    registry = OperatorRegistry({})
    assert registry.resolve("in")("a", "a") is False
