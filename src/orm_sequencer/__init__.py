from .errors import (
    SequencerError,
    ConfigurationError,
    InvalidSegmentKey,
    StorageFailure,
    ContentionExhausted,
)
from .config import SequenceConfig
from .sequences import DisplayFormatter, NoopOptimizer, PooledOptimizer, build_optimizer
from .tables import counter_table, ensure_counter_table, PrefixedIdentifierMixin
from .sequences.allocator import SegmentedCounterAllocator
from .sequences.generator import PrefixedIdentifierGenerator, default_grouping_key

__all__ = [
    "SequencerError",
    "ConfigurationError",
    "InvalidSegmentKey",
    "StorageFailure",
    "ContentionExhausted",
    "SequenceConfig",
    "DisplayFormatter",
    "NoopOptimizer",
    "PooledOptimizer",
    "build_optimizer",
    "counter_table",
    "ensure_counter_table",
    "PrefixedIdentifierMixin",
    "SegmentedCounterAllocator",
    "PrefixedIdentifierGenerator",
    "default_grouping_key",
]
