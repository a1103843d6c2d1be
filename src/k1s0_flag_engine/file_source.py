"""ファイルからのフラグ・セグメント定義読み込み

YAML または JSON で以下の形式を受け付ける::

    flags:
      my-flag:
        on: true
        variations: [true, false]
        fallthrough: {variation: 0}
    segments:
      beta-users:
        included: [user-1]
"""

from __future__ import annotations

from pathlib import Path
from typing import Any

from .config import read_yaml
from .exceptions import FlagEngineError, FlagEngineErrorCodes
from .models import Flag, Segment
from .store import DataKind, FeatureStore, StoreItem

_SECTIONS: dict[str, tuple[DataKind, type[Flag] | type[Segment]]] = {
    "flags": (DataKind.FEATURES, Flag),
    "segments": (DataKind.SEGMENTS, Segment),
}


def parse_data(data: dict[str, Any]) -> dict[DataKind, dict[str, StoreItem]]:
    """辞書形式の定義をモデルに変換する。定義中の key が無ければマッピングのキーを使う。"""
    result: dict[DataKind, dict[str, StoreItem]] = {kind: {} for kind in DataKind}
    for section, (kind, model) in _SECTIONS.items():
        entries = data.get(section) or {}
        if not isinstance(entries, dict):
            raise FlagEngineError(
                code=FlagEngineErrorCodes.INVALID_DATA,
                message=f"'{section}' must be a mapping of key to definition",
            )
        for key, definition in entries.items():
            try:
                item = model.from_dict({"key": key, **definition})
            except (KeyError, TypeError, ValueError) as e:
                raise FlagEngineError(
                    code=FlagEngineErrorCodes.INVALID_DATA,
                    message=f"Invalid {section} definition: {key}",
                    cause=e,
                ) from e
            result[kind][item.key] = item
    return result


def load_file_data(path: Path) -> dict[DataKind, dict[str, StoreItem]]:
    """ファイルを読み込んでデータ種別ごとの定義を返す。"""
    return parse_data(read_yaml(path))


async def load_into_store(path: Path, store: FeatureStore) -> None:
    """ファイルの定義でストアを初期化する。"""
    await store.init(load_file_data(path))
