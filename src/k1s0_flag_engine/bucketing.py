"""ロールアウト用バケット計算

バケット値は SHA-1 ダイジェストの先頭 15 桁（60 bit）を 0xFFFFFFFFFFFFFFF で割って求める。
他言語の SDK と同じ値になる必要があるため、ハッシュ入力の形式・桁数・除数は変更しないこと。
"""

from __future__ import annotations

import hashlib
from typing import Any

from .models import Flag, VariationOrRollout
from .user import User

DEFAULT_BUCKET_BY = "key"
WEIGHT_SCALE = 100000.0
_HASH_HEX_DIGITS = 15
_LONG_SCALE = float(0xFFFFFFFFFFFFFFF)


def bucketable_string_value(value: Any) -> str | None:
    """バケット計算に使える属性値を文字列化する。文字列と整数以外は None。"""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return None


def bucket_user(user: User, key: str, bucket_by: str, salt: str) -> float:
    """ユーザーを [0, 1) のバケット値に割り当てる。

    Args:
        user: 評価対象ユーザー
        key: フラグキーまたはセグメントキー
        bucket_by: バケット計算に使う属性名
        salt: フラグまたはセグメントのソルト

    Returns:
        バケット値。属性値が使えない場合は 0.0
    """
    id_hash = bucketable_string_value(user.get_value(bucket_by))
    if id_hash is None:
        return 0.0
    if user.secondary:
        id_hash = f"{id_hash}.{user.secondary}"
    hash_key = f"{key}.{salt}.{id_hash}"
    digest = hashlib.sha1(hash_key.encode("utf-8")).hexdigest()  # nosec B324 - deterministic bucketing
    return int(digest[:_HASH_HEX_DIGITS], 16) / _LONG_SCALE


def variation_index_for_user(
    outcome: VariationOrRollout, user: User, flag: Flag
) -> int | None:
    """固定バリエーションまたはロールアウトからバリエーション番号を決める。

    ロールアウトの重み合計が 100% に満たずどこにも入らない場合は None を返す。
    """
    if outcome.variation is not None:
        return outcome.variation
    if outcome.rollout is None:
        return None

    bucket_by = outcome.rollout.bucket_by
    if bucket_by is None:
        bucket_by = DEFAULT_BUCKET_BY
    bucket = bucket_user(user, flag.key, bucket_by, flag.salt)
    total = 0.0
    for weighted in outcome.rollout.variations:
        total += weighted.weight / WEIGHT_SCALE
        if bucket < total:
            return weighted.variation
    return None
