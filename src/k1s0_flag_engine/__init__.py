"""k1s0 flag engine library."""

from .bucketing import bucket_user, variation_index_for_user
from .client import EventSink, FlagEngineClient, InMemoryEventSink
from .config import EngineConfig, EventsSection, LogSection, StoreSection, load_config
from .evaluator import EvaluationResult, Evaluator
from .events import EvaluationEvent, create_flag_event
from .exceptions import FlagEngineError, FlagEngineErrorCodes
from .file_source import load_file_data, load_into_store
from .logger import new_logger
from .models import (
    Clause,
    Flag,
    Prerequisite,
    Rollout,
    Rule,
    Segment,
    SegmentRule,
    Target,
    VariationOrRollout,
    WeightedVariation,
)
from .operators import OperatorRegistry
from .store import CachedFeatureStore, DataKind, FeatureStore, InMemoryFeatureStore
from .user import User

__all__ = [
    "CachedFeatureStore",
    "Clause",
    "DataKind",
    "EngineConfig",
    "EvaluationEvent",
    "EvaluationResult",
    "Evaluator",
    "EventSink",
    "EventsSection",
    "FeatureStore",
    "Flag",
    "FlagEngineClient",
    "FlagEngineError",
    "FlagEngineErrorCodes",
    "InMemoryEventSink",
    "InMemoryFeatureStore",
    "LogSection",
    "OperatorRegistry",
    "Prerequisite",
    "Rollout",
    "Rule",
    "Segment",
    "SegmentRule",
    "StoreSection",
    "Target",
    "User",
    "VariationOrRollout",
    "WeightedVariation",
    "bucket_user",
    "create_flag_event",
    "load_config",
    "load_file_data",
    "load_into_store",
    "new_logger",
    "variation_index_for_user",
]
