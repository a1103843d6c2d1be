"""フラグ評価エンジン

評価の流れ:
    1. ユーザー・フラグが無効なら何も返さない
    2. フラグが off なら offVariation を返す
    3. 前提フラグを宣言順に評価し、満たされなければ offVariation
    4. ターゲット -> ルール -> fallthrough の順でバリエーションを決める

ストアへの問い合わせはすべて逐次 await する。並行に発行すると
前提フラグのイベント順序と打ち切り条件が崩れるため。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import structlog

from .bucketing import variation_index_for_user
from .events import EvaluationEvent, create_flag_event
from .exceptions import FlagEngineError, FlagEngineErrorCodes
from .matching import rule_matches_user
from .models import Flag
from .operators import OperatorRegistry
from .store import DataKind, FeatureStore
from .user import User

logger = structlog.get_logger(__name__)


@dataclass
class EvaluationResult:
    """フラグ評価結果。"""

    variation_index: int | None
    value: Any
    events: list[EvaluationEvent] = field(default_factory=list)
    error: FlagEngineError | None = None


@dataclass(frozen=True)
class _Match:
    variation_index: int | None = None
    value: Any = None
    error: FlagEngineError | None = None


_NO_MATCH = _Match()


def _undefined_variation(flag: Flag) -> FlagEngineError:
    return FlagEngineError(
        code=FlagEngineErrorCodes.UNDEFINED_VARIATION,
        message=f"undefined variation for flag {flag.key}",
    )


class Evaluator:
    """フラグ定義とユーザーからバリエーションを決定する。"""

    def __init__(
        self, store: FeatureStore, operators: OperatorRegistry | None = None
    ) -> None:
        self._store = store
        self._operators = operators or OperatorRegistry()

    async def evaluate(self, flag: Flag | None, user: User | None) -> EvaluationResult:
        """フラグを評価する。

        Args:
            flag: 評価するフラグ
            user: 評価対象ユーザー

        Returns:
            バリエーション番号・値・前提フラグの評価イベント・定義エラーを持つ結果。
            定義エラー（未定義バリエーション、前提フラグの循環）は例外ではなく
            ``EvaluationResult.error`` で返す。
        """
        if user is None or not user.is_valid or flag is None:
            return EvaluationResult(variation_index=None, value=None)

        if not flag.on:
            return self._off_result(flag, [])

        events: list[EvaluationEvent] = []
        try:
            match = await self._evaluate_internal(flag, user, events, ())
        except FlagEngineError as e:
            if e.code != FlagEngineErrorCodes.CYCLIC_PREREQUISITE:
                raise
            logger.warning("cyclic_prerequisite", flag_key=flag.key, error=str(e))
            match = _Match(error=e)

        if match.error is not None:
            return EvaluationResult(
                variation_index=flag.off_variation,
                value=None,
                events=events,
                error=match.error,
            )
        if match.variation_index is None:
            return self._off_result(flag, events)
        return EvaluationResult(
            variation_index=match.variation_index,
            value=match.value,
            events=events,
        )

    @staticmethod
    def _off_result(flag: Flag, events: list[EvaluationEvent]) -> EvaluationResult:
        return EvaluationResult(
            variation_index=flag.off_variation,
            value=flag.variation_value(flag.off_variation),
            events=events,
        )

    async def _evaluate_internal(
        self,
        flag: Flag,
        user: User,
        events: list[EvaluationEvent],
        chain: tuple[str, ...],
    ) -> _Match:
        if not await self._prerequisites_satisfied(flag, user, events, chain):
            return _NO_MATCH
        return await self._match_flag(flag, user)

    async def _prerequisites_satisfied(
        self,
        flag: Flag,
        user: User,
        events: list[EvaluationEvent],
        chain: tuple[str, ...],
    ) -> bool:
        chain = (*chain, flag.key)
        for prereq in flag.prerequisites:
            prereq_flag = await self._store.get(DataKind.FEATURES, prereq.key)
            if prereq_flag is None or not prereq_flag.on:
                logger.debug(
                    "prerequisite_unavailable", flag_key=flag.key, prerequisite=prereq.key
                )
                return False

            # ストア上で on のフラグに戻った場合のみ循環
            if prereq.key in chain:
                raise FlagEngineError(
                    code=FlagEngineErrorCodes.CYCLIC_PREREQUISITE,
                    message="cyclic prerequisite: " + " -> ".join((*chain, prereq.key)),
                )

            match = await self._evaluate_internal(prereq_flag, user, events, chain)
            events.append(
                create_flag_event(
                    prereq_flag.key,
                    prereq_flag,
                    user,
                    match.variation_index,
                    match.value,
                    None,
                    flag.key,
                )
            )
            if (
                match.error is not None
                or match.value is None
                or match.variation_index != prereq.variation
            ):
                logger.debug(
                    "prerequisite_unsatisfied",
                    flag_key=flag.key,
                    prerequisite=prereq.key,
                    variation=match.variation_index,
                )
                return False
        return True

    async def _match_flag(self, flag: Flag, user: User) -> _Match:
        for target in flag.targets:
            if user.key in target.values:
                return self._variation(flag, target.variation)

        for rule in flag.rules:
            if await rule_matches_user(rule, user, self._store, self._operators):
                return self._variation(flag, variation_index_for_user(rule, user, flag))

        return self._variation(
            flag, variation_index_for_user(flag.fallthrough, user, flag)
        )

    @staticmethod
    def _variation(flag: Flag, index: int | None) -> _Match:
        if not flag.has_variation(index):
            logger.warning("undefined_variation", flag_key=flag.key, variation=index)
            return _Match(error=_undefined_variation(flag))
        return _Match(variation_index=index, value=flag.variation_value(index))
