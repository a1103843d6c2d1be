"""評価イベント"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any

from .models import Flag
from .user import User

FEATURE_EVENT_KIND = "feature"


@dataclass(frozen=True)
class EvaluationEvent:
    """フラグ評価 1 回分の分析イベント。"""

    key: str
    user: User
    variation: int | None
    value: Any
    default: Any
    creation_date: int
    version: int | None = None
    prereq_of: str | None = None
    track_events: bool | None = None
    debug_events_until_date: int | None = None
    kind: str = FEATURE_EVENT_KIND

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind,
            "key": self.key,
            "user": self.user.to_dict(),
            "variation": self.variation,
            "value": self.value,
            "default": self.default,
            "creationDate": self.creation_date,
            "version": self.version,
            "prereqOf": self.prereq_of,
            "trackEvents": self.track_events,
            "debugEventsUntilDate": self.debug_events_until_date,
        }


def create_flag_event(
    key: str,
    flag: Flag | None,
    user: User,
    variation: int | None,
    value: Any,
    default: Any = None,
    prereq_of: str | None = None,
) -> EvaluationEvent:
    """評価イベントを生成する。flag が None の場合はバージョン等を持たない。"""
    return EvaluationEvent(
        key=key,
        user=user,
        variation=variation,
        value=value,
        default=default,
        creation_date=int(time.time() * 1000),
        version=flag.version if flag is not None else None,
        prereq_of=prereq_of,
        track_events=flag.track_events if flag is not None else None,
        debug_events_until_date=(
            flag.debug_events_until_date if flag is not None else None
        ),
    )
