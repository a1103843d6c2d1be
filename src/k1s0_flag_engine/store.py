"""フィーチャーストア"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from collections.abc import Mapping
from enum import StrEnum
from typing import Union

from .models import Flag, Segment

StoreItem = Union[Flag, Segment]


class DataKind(StrEnum):
    """ストアが扱うデータ種別。"""

    FEATURES = "features"
    SEGMENTS = "segments"


class FeatureStore(ABC):
    """フラグ・セグメント定義を保持するストアの抽象基底クラス。

    評価エンジンからは読み取り専用で、None は「存在しない」を意味する。
    """

    @abstractmethod
    async def get(self, kind: DataKind, key: str) -> StoreItem | None:
        """キーに対応する定義を取得する。存在しない・削除済みなら None。"""
        ...

    @abstractmethod
    async def all(self, kind: DataKind) -> dict[str, StoreItem]:
        """削除済みを除く全定義を取得する。"""
        ...

    @abstractmethod
    async def init(self, data: Mapping[DataKind, Mapping[str, StoreItem]]) -> None:
        """全データを置き換える。"""
        ...

    @abstractmethod
    async def upsert(self, kind: DataKind, item: StoreItem) -> bool:
        """より新しいバージョンの場合のみ保存する。保存したら True。"""
        ...

    @abstractmethod
    async def delete(self, kind: DataKind, key: str, version: int) -> bool:
        """指定バージョンで削除済みにする。反映したら True。"""
        ...

    @abstractmethod
    async def initialized(self) -> bool:
        """init 済みか確認する。"""
        ...


def _tombstone(kind: DataKind, key: str, version: int) -> StoreItem:
    if kind == DataKind.FEATURES:
        return Flag(key=key, version=version, deleted=True)
    return Segment(key=key, version=version, deleted=True)


class InMemoryFeatureStore(FeatureStore):
    """インメモリフィーチャーストア。"""

    def __init__(self) -> None:
        self._items: dict[DataKind, dict[str, StoreItem]] = {
            kind: {} for kind in DataKind
        }
        self._initialized = False

    async def get(self, kind: DataKind, key: str) -> StoreItem | None:
        item = self._items[kind].get(key)
        if item is None or item.deleted:
            return None
        return item

    async def all(self, kind: DataKind) -> dict[str, StoreItem]:
        return {
            key: item for key, item in self._items[kind].items() if not item.deleted
        }

    async def init(self, data: Mapping[DataKind, Mapping[str, StoreItem]]) -> None:
        self._items = {kind: dict(data.get(kind, {})) for kind in DataKind}
        self._initialized = True

    async def upsert(self, kind: DataKind, item: StoreItem) -> bool:
        current = self._items[kind].get(item.key)
        if current is not None and current.version >= item.version:
            return False
        self._items[kind][item.key] = item
        return True

    async def delete(self, kind: DataKind, key: str, version: int) -> bool:
        current = self._items[kind].get(key)
        if current is not None and current.version >= version:
            return False
        self._items[kind][key] = _tombstone(kind, key, version)
        return True

    async def initialized(self) -> bool:
        return self._initialized


class _CacheEntry:
    __slots__ = ("value", "expires_at")

    def __init__(self, value: object, ttl: float) -> None:
        self.value = value
        self.expires_at = time.monotonic() + ttl

    def is_expired(self) -> bool:
        return time.monotonic() >= self.expires_at


class CachedFeatureStore(FeatureStore):
    """読み取りを TTL 付きでキャッシュするストアラッパー。書き込み時はキャッシュを破棄する。"""

    def __init__(self, inner: FeatureStore, ttl_seconds: float) -> None:
        self._inner = inner
        self._ttl = ttl_seconds
        self._items: dict[tuple[DataKind, str], _CacheEntry] = {}
        self._all: dict[DataKind, _CacheEntry] = {}

    async def get(self, kind: DataKind, key: str) -> StoreItem | None:
        entry = self._items.get((kind, key))
        if entry is not None:
            if not entry.is_expired():
                return entry.value  # type: ignore[return-value]
            del self._items[(kind, key)]
        item = await self._inner.get(kind, key)
        # 存在しないキーはキャッシュしない
        if item is not None:
            self._items[(kind, key)] = _CacheEntry(item, self._ttl)
        return item

    async def all(self, kind: DataKind) -> dict[str, StoreItem]:
        entry = self._all.get(kind)
        if entry is not None and not entry.is_expired():
            return dict(entry.value)  # type: ignore[call-overload]
        items = await self._inner.all(kind)
        self._all[kind] = _CacheEntry(dict(items), self._ttl)
        return items

    async def init(self, data: Mapping[DataKind, Mapping[str, StoreItem]]) -> None:
        await self._inner.init(data)
        self.invalidate()

    async def upsert(self, kind: DataKind, item: StoreItem) -> bool:
        updated = await self._inner.upsert(kind, item)
        self.invalidate(kind, item.key)
        return updated

    async def delete(self, kind: DataKind, key: str, version: int) -> bool:
        deleted = await self._inner.delete(kind, key, version)
        self.invalidate(kind, key)
        return deleted

    async def initialized(self) -> bool:
        return await self._inner.initialized()

    def invalidate(self, kind: DataKind | None = None, key: str | None = None) -> None:
        """キャッシュを破棄する。引数なしなら全件。"""
        if kind is None:
            self._items.clear()
            self._all.clear()
            return
        self._all.pop(kind, None)
        if key is not None:
            self._items.pop((kind, key), None)
