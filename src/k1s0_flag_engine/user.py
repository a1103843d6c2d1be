"""評価対象ユーザーモデル"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# 属性名 -> User フィールド名
BUILTIN_ATTRIBUTES: dict[str, str] = {
    "key": "key",
    "ip": "ip",
    "country": "country",
    "email": "email",
    "firstName": "first_name",
    "lastName": "last_name",
    "avatar": "avatar",
    "name": "name",
    "anonymous": "anonymous",
}


@dataclass(frozen=True)
class User:
    """フラグ評価の対象となるユーザー。

    組み込み属性は固定フィールド、それ以外の属性は ``custom`` に格納する。
    ``secondary`` はバケット計算のみに使われ、ルールの属性としては参照されない。
    """

    key: str | None
    secondary: str | None = None
    ip: str | None = None
    country: str | None = None
    email: str | None = None
    first_name: str | None = None
    last_name: str | None = None
    avatar: str | None = None
    name: str | None = None
    anonymous: bool | None = None
    custom: dict[str, Any] = field(default_factory=dict)

    @property
    def is_valid(self) -> bool:
        """key を持ち評価対象になり得るか。"""
        return self.key is not None

    def get_value(self, attribute: str) -> Any:
        """属性値を取得する。組み込み属性を優先し、未設定なら custom を参照する。"""
        field_name = BUILTIN_ATTRIBUTES.get(attribute)
        if field_name is not None:
            value = getattr(self, field_name)
            if value is not None:
                return value
        return self.custom.get(attribute)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> User:
        return cls(
            key=data.get("key"),
            secondary=data.get("secondary"),
            ip=data.get("ip"),
            country=data.get("country"),
            email=data.get("email"),
            first_name=data.get("firstName"),
            last_name=data.get("lastName"),
            avatar=data.get("avatar"),
            name=data.get("name"),
            anonymous=data.get("anonymous"),
            custom=dict(data.get("custom") or {}),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        for attribute, field_name in BUILTIN_ATTRIBUTES.items():
            value = getattr(self, field_name)
            if value is not None:
                data[attribute] = value
        if self.secondary is not None:
            data["secondary"] = self.secondary
        if self.custom:
            data["custom"] = dict(self.custom)
        return data
