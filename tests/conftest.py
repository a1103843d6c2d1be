"""flag_engine テスト共通設定。"""

from typing import Any

import pytest
from k1s0_flag_engine import DataKind, Evaluator, Flag, InMemoryFeatureStore, Segment


@pytest.fixture
def store() -> InMemoryFeatureStore:
    return InMemoryFeatureStore()


@pytest.fixture
def evaluator(store: InMemoryFeatureStore) -> Evaluator:
    return Evaluator(store)


@pytest.fixture
def put_flag(store: InMemoryFeatureStore):
    async def _put(data: dict[str, Any]) -> Flag:
        flag = Flag.from_dict(data)
        await store.upsert(DataKind.FEATURES, flag)
        return flag

    return _put


@pytest.fixture
def put_segment(store: InMemoryFeatureStore):
    async def _put(data: dict[str, Any]) -> Segment:
        segment = Segment.from_dict(data)
        await store.upsert(DataKind.SEGMENTS, segment)
        return segment

    return _put
