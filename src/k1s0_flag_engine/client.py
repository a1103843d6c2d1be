"""FlagEngineClient 実装"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any

import structlog

from .config import EngineConfig
from .evaluator import EvaluationResult, Evaluator
from .events import EvaluationEvent, create_flag_event
from .exceptions import FlagEngineError, FlagEngineErrorCodes
from .file_source import load_into_store
from .logger import new_logger
from .metrics import (
    flag_evaluation_duration_seconds,
    flag_evaluation_errors_total,
    flag_evaluations_total,
)
from .models import Flag
from .operators import OperatorRegistry
from .store import CachedFeatureStore, DataKind, FeatureStore, InMemoryFeatureStore
from .user import User

logger = structlog.get_logger(__name__)


class EventSink(ABC):
    """評価イベントの送信先。"""

    @abstractmethod
    async def send(self, events: list[EvaluationEvent]) -> None:
        """イベントを順序どおりに受け取る。"""
        ...


class InMemoryEventSink(EventSink):
    """テスト用インメモリイベントシンク。"""

    def __init__(self) -> None:
        self.events: list[EvaluationEvent] = []

    async def send(self, events: list[EvaluationEvent]) -> None:
        self.events.extend(events)


def _to_user(user: User | dict[str, Any] | None) -> User | None:
    if user is None or isinstance(user, User):
        return user
    return User.from_dict(user)


class FlagEngineClient:
    """ストアからフラグを取得して評価し、イベントを送信するクライアント。"""

    def __init__(
        self,
        store: FeatureStore,
        event_sink: EventSink | None = None,
        operators: OperatorRegistry | None = None,
    ) -> None:
        self._store = store
        self._event_sink = event_sink
        self._evaluator = Evaluator(store, operators)

    @classmethod
    async def from_config(
        cls,
        config: EngineConfig,
        store: FeatureStore | None = None,
        event_sink: EventSink | None = None,
    ) -> FlagEngineClient:
        """設定からクライアントを構築する。ロガー設定とデータファイル読み込みも行う。"""
        new_logger(level=config.log.level, format=config.log.format)
        if store is None:
            store = InMemoryFeatureStore()
        if config.store.data_file:
            await load_into_store(Path(config.store.data_file), store)
        if config.store.cache_ttl_seconds > 0:
            store = CachedFeatureStore(store, config.store.cache_ttl_seconds)
        return cls(store, event_sink if config.events.enabled else None)

    @property
    def store(self) -> FeatureStore:
        return self._store

    async def get_flag(self, key: str) -> Flag:
        flag = await self._store.get(DataKind.FEATURES, key)
        if flag is None:
            raise FlagEngineError(
                FlagEngineErrorCodes.FLAG_NOT_FOUND,
                f"Flag not found: {key}",
            )
        return flag  # type: ignore[return-value]

    async def evaluate(
        self, key: str, user: User | dict[str, Any] | None, default: Any = None
    ) -> EvaluationResult:
        """フラグを評価し、前提フラグとこのフラグのイベントを送信する。

        値が得られない場合やエラー時は value に default を入れて返す。
        """
        started = time.perf_counter()
        subject = _to_user(user)
        if subject is None or not subject.is_valid:
            logger.warning("invalid_user", flag_key=key)
            self._record(key, "default", started)
            return EvaluationResult(variation_index=None, value=default)

        flag = await self._store.get(DataKind.FEATURES, key)
        if flag is None:
            logger.warning("unknown_flag", flag_key=key)
            await self._send(
                [create_flag_event(key, None, subject, None, default, default)]
            )
            self._record(key, "default", started)
            return EvaluationResult(variation_index=None, value=default)

        result = await self._evaluator.evaluate(flag, subject)  # type: ignore[arg-type]
        outcome = "ok"
        if result.error is not None:
            logger.warning("evaluation_error", flag_key=key, error=str(result.error))
            flag_evaluation_errors_total.add(1, {"code": result.error.code})
            result.value = default
            outcome = "error"
        elif result.value is None:
            result.value = default
            outcome = "default"

        result.events.append(
            create_flag_event(
                key, flag, subject, result.variation_index, result.value, default  # type: ignore[arg-type]
            )
        )
        await self._send(result.events)
        self._record(key, outcome, started)
        return result

    async def variation(
        self, key: str, user: User | dict[str, Any] | None, default: Any = None
    ) -> Any:
        """フラグ値を返す。"""
        result = await self.evaluate(key, user, default)
        return result.value

    async def is_enabled(self, key: str, user: User | dict[str, Any] | None) -> bool:
        return await self.variation(key, user, False) is True

    async def all_flags(self, user: User | dict[str, Any] | None) -> dict[str, Any]:
        """全フラグの値を返す。イベントは送信しない。"""
        subject = _to_user(user)
        if subject is None or not subject.is_valid:
            logger.warning("invalid_user", flag_key=None)
            return {}

        values: dict[str, Any] = {}
        for key, flag in (await self._store.all(DataKind.FEATURES)).items():
            result = await self._evaluator.evaluate(flag, subject)  # type: ignore[arg-type]
            values[key] = result.value
        return values

    async def _send(self, events: list[EvaluationEvent]) -> None:
        if self._event_sink is not None and events:
            await self._event_sink.send(events)

    @staticmethod
    def _record(key: str, outcome: str, started: float) -> None:
        flag_evaluations_total.add(1, {"flag_key": key, "outcome": outcome})
        flag_evaluation_duration_seconds.record(time.perf_counter() - started)
