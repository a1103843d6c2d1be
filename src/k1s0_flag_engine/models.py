"""フラグ・セグメント定義データモデル

ストアが保持する定義はすべて読み取り専用として扱う。
辞書との相互変換はワイヤー形式（camelCase キー）に従う。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

SEGMENT_MATCH_OP = "segmentMatch"


def is_variation_index(value: Any) -> bool:
    """bool を除く int であるか。"""
    return isinstance(value, int) and not isinstance(value, bool)


@dataclass(frozen=True)
class WeightedVariation:
    """ロールアウト内の重み付きバリエーション。weight は 100000 分率。"""

    variation: int | None
    weight: int = 0

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> WeightedVariation:
        return cls(variation=data.get("variation"), weight=data.get("weight", 0))

    def to_dict(self) -> dict[str, Any]:
        return {"variation": self.variation, "weight": self.weight}


@dataclass(frozen=True)
class Rollout:
    """パーセンテージロールアウト。"""

    variations: tuple[WeightedVariation, ...] = ()
    bucket_by: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Rollout:
        return cls(
            variations=tuple(
                WeightedVariation.from_dict(v) for v in data.get("variations") or []
            ),
            bucket_by=data.get("bucketBy"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"variations": [v.to_dict() for v in self.variations]}
        if self.bucket_by is not None:
            data["bucketBy"] = self.bucket_by
        return data


@dataclass(frozen=True)
class VariationOrRollout:
    """固定バリエーションまたはロールアウト。"""

    variation: int | None = None
    rollout: Rollout | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> VariationOrRollout:
        data = data or {}
        rollout = data.get("rollout")
        return cls(
            variation=data.get("variation"),
            rollout=Rollout.from_dict(rollout) if rollout is not None else None,
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {}
        if self.variation is not None:
            data["variation"] = self.variation
        if self.rollout is not None:
            data["rollout"] = self.rollout.to_dict()
        return data


@dataclass(frozen=True)
class Clause:
    """属性・演算子・比較値からなる条件。"""

    attribute: str = ""
    op: str = ""
    values: tuple[Any, ...] = ()
    negate: bool = False

    @property
    def is_segment_match(self) -> bool:
        return self.op == SEGMENT_MATCH_OP

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Clause:
        return cls(
            attribute=data.get("attribute") or "",
            op=data.get("op") or "",
            values=tuple(data.get("values") or []),
            negate=bool(data.get("negate", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "attribute": self.attribute,
            "op": self.op,
            "values": list(self.values),
            "negate": self.negate,
        }


@dataclass(frozen=True)
class Rule(VariationOrRollout):
    """条件の論理積と、一致時に返すバリエーションまたはロールアウト。"""

    id: str = ""
    clauses: tuple[Clause, ...] = ()

    @classmethod
    def from_dict(cls, data: dict[str, Any] | None) -> Rule:
        data = data or {}
        outcome = VariationOrRollout.from_dict(data)
        return cls(
            variation=outcome.variation,
            rollout=outcome.rollout,
            id=data.get("id") or "",
            clauses=tuple(Clause.from_dict(c) for c in data.get("clauses") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        data = super().to_dict()
        if self.id:
            data["id"] = self.id
        data["clauses"] = [c.to_dict() for c in self.clauses]
        return data


@dataclass(frozen=True)
class Prerequisite:
    """前提フラグと、その要求バリエーション。"""

    key: str
    variation: int | None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Prerequisite:
        return cls(key=data["key"], variation=data.get("variation"))

    def to_dict(self) -> dict[str, Any]:
        return {"key": self.key, "variation": self.variation}


@dataclass(frozen=True)
class Target:
    """ユーザーキー集合に対する固定バリエーション。"""

    variation: int | None
    values: frozenset[str] = frozenset()

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Target:
        return cls(
            variation=data.get("variation"),
            values=frozenset(data.get("values") or []),
        )

    def to_dict(self) -> dict[str, Any]:
        return {"variation": self.variation, "values": sorted(self.values)}


@dataclass(frozen=True)
class Flag:
    """フィーチャーフラグ定義。"""

    key: str
    version: int = 0
    on: bool = False
    salt: str = ""
    variations: tuple[Any, ...] = ()
    off_variation: int | None = None
    prerequisites: tuple[Prerequisite, ...] = ()
    targets: tuple[Target, ...] = ()
    rules: tuple[Rule, ...] = ()
    fallthrough: VariationOrRollout = field(default_factory=VariationOrRollout)
    track_events: bool = False
    debug_events_until_date: int | None = None
    deleted: bool = False

    def has_variation(self, index: Any) -> bool:
        """index が有効なバリエーション番号か。"""
        return is_variation_index(index) and 0 <= index < len(self.variations)

    def variation_value(self, index: Any) -> Any:
        """バリエーション値を返す。無効な index は None。"""
        if not self.has_variation(index):
            return None
        return self.variations[index]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Flag:
        return cls(
            key=data["key"],
            version=data.get("version", 0),
            on=bool(data.get("on", False)),
            salt=data.get("salt") or "",
            variations=tuple(data.get("variations") or []),
            off_variation=data.get("offVariation"),
            prerequisites=tuple(
                Prerequisite.from_dict(p) for p in data.get("prerequisites") or []
            ),
            targets=tuple(Target.from_dict(t) for t in data.get("targets") or []),
            rules=tuple(Rule.from_dict(r) for r in data.get("rules") or []),
            fallthrough=VariationOrRollout.from_dict(data.get("fallthrough")),
            track_events=bool(data.get("trackEvents", False)),
            debug_events_until_date=data.get("debugEventsUntilDate"),
            deleted=bool(data.get("deleted", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "version": self.version,
            "on": self.on,
            "salt": self.salt,
            "variations": list(self.variations),
            "offVariation": self.off_variation,
            "prerequisites": [p.to_dict() for p in self.prerequisites],
            "targets": [t.to_dict() for t in self.targets],
            "rules": [r.to_dict() for r in self.rules],
            "fallthrough": self.fallthrough.to_dict(),
            "trackEvents": self.track_events,
            "debugEventsUntilDate": self.debug_events_until_date,
            "deleted": self.deleted,
        }


@dataclass(frozen=True)
class SegmentRule:
    """セグメントルール。weight 未指定なら条件一致のみで所属とみなす。"""

    clauses: tuple[Clause, ...] = ()
    weight: int | None = None
    bucket_by: str | None = None

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> SegmentRule:
        return cls(
            clauses=tuple(Clause.from_dict(c) for c in data.get("clauses") or []),
            weight=data.get("weight"),
            bucket_by=data.get("bucketBy"),
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"clauses": [c.to_dict() for c in self.clauses]}
        if self.weight is not None:
            data["weight"] = self.weight
        if self.bucket_by is not None:
            data["bucketBy"] = self.bucket_by
        return data


@dataclass(frozen=True)
class Segment:
    """ユーザーセグメント定義。"""

    key: str
    version: int = 0
    salt: str = ""
    included: frozenset[str] = frozenset()
    excluded: frozenset[str] = frozenset()
    rules: tuple[SegmentRule, ...] = ()
    deleted: bool = False

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Segment:
        return cls(
            key=data["key"],
            version=data.get("version", 0),
            salt=data.get("salt") or "",
            included=frozenset(data.get("included") or []),
            excluded=frozenset(data.get("excluded") or []),
            rules=tuple(SegmentRule.from_dict(r) for r in data.get("rules") or []),
            deleted=bool(data.get("deleted", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "key": self.key,
            "version": self.version,
            "salt": self.salt,
            "included": sorted(self.included),
            "excluded": sorted(self.excluded),
            "rules": [r.to_dict() for r in self.rules],
            "deleted": self.deleted,
        }
