"""エンジン設定（pydantic BaseModel）と YAML 読み込み"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any, Literal

import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import FlagEngineError, FlagEngineErrorCodes


class LogSection(BaseModel):
    """ログ設定。"""

    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class StoreSection(BaseModel):
    """フィーチャーストア設定。"""

    data_file: str = ""
    cache_ttl_seconds: float = Field(default=0.0, ge=0.0)


class EventsSection(BaseModel):
    """評価イベント送信設定。"""

    enabled: bool = True


class EngineConfig(BaseModel):
    """フラグ評価エンジン設定全体。"""

    log: LogSection = Field(default_factory=LogSection)
    store: StoreSection = Field(default_factory=StoreSection)
    events: EventsSection = Field(default_factory=EventsSection)


def deep_merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """base と override をディープマージして新しい辞書を返す。

    override の値が優先される。リストは置換（マージしない）。
    """
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], dict) and isinstance(value, dict):
            result[key] = deep_merge(result[key], value)
        else:
            result[key] = value
    return result


class _DefinitionLoader(yaml.SafeLoader):
    """on/off/yes/no を真偽値として扱わない SafeLoader。フラグ定義の `on` キーを文字列のまま読む。"""


_BOOL_TAG = "tag:yaml.org,2002:bool"
_DefinitionLoader.yaml_implicit_resolvers = {
    first: [(tag, regexp) for tag, regexp in resolvers if tag != _BOOL_TAG]
    for first, resolvers in yaml.SafeLoader.yaml_implicit_resolvers.items()
}
_DefinitionLoader.add_implicit_resolver(
    _BOOL_TAG,
    re.compile(r"^(?:true|True|TRUE|false|False|FALSE)$"),
    list("tTfF"),
)


def read_yaml(path: Path) -> dict[str, Any]:
    """YAML（JSON を含む）ファイルを読み込む。"""
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as e:
        raise FlagEngineError(
            code=FlagEngineErrorCodes.READ_FILE,
            message=f"Failed to read file: {path}",
            cause=e,
        ) from e
    try:
        data = yaml.load(text, Loader=_DefinitionLoader) or {}
    except yaml.YAMLError as e:
        raise FlagEngineError(
            code=FlagEngineErrorCodes.PARSE_FILE,
            message=f"Failed to parse YAML: {path}",
            cause=e,
        ) from e
    if not isinstance(data, dict):
        raise FlagEngineError(
            code=FlagEngineErrorCodes.PARSE_FILE,
            message=f"Top-level document must be a mapping: {path}",
        )
    return data


def load_config(base_path: Path, env_path: Path | None = None) -> EngineConfig:
    """設定ファイルを読み込んで EngineConfig を返す。

    base_path: ベース設定ファイルパス（必須）
    env_path: 環境別設定ファイルパス（オプション）。存在する場合はベースにマージ。
    """
    data = read_yaml(base_path)
    if env_path is not None and env_path.exists():
        data = deep_merge(data, read_yaml(env_path))
    try:
        return EngineConfig.model_validate(data)
    except ValidationError as e:
        raise FlagEngineError(
            code=FlagEngineErrorCodes.VALIDATION,
            message=f"Config validation failed: {e}",
            cause=e,
        ) from e
