import threading
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Callable, ClassVar, Type

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

NONE_OPTIMIZER = "none"
POOLED_OPTIMIZER = "pooled"

# reads the counter row, advances it, and returns the value observed before the advance
AccessCallback = Callable[[], int]


class Optimizer(ABC):
    """
    Strategy deciding how many values a single storage round-trip reserves
    and which of them are handed back to callers.
    """

    name: ClassVar[str]

    def __init__(self, increment_size: int):
        if not isinstance(increment_size, int) or isinstance(increment_size, bool) or increment_size < 1:
            raise ConfigurationError(f"increment_size must be >= 1, got {increment_size}")
        self.increment_size = increment_size

    @property
    @abstractmethod
    def applies_increment_to_source(self) -> bool:
        """Whether the stored value is advanced by ``increment_size`` rather than by one."""

    @property
    @abstractmethod
    def is_gap_free(self) -> bool: ...

    @abstractmethod
    def generate(self, segment_key: str, callback: AccessCallback) -> int: ...

    def reset(self, segment_key: str | None = None) -> None:
        """Forget any cached values for ``segment_key`` (or for every segment)."""

    def __repr__(self) -> str:
        return f"{type(self).__name__}(increment_size={self.increment_size})"


class NoopOptimizer(Optimizer):
    """
    Direct strategy: every allocation is a storage round-trip and the value
    read is returned as is.
    """

    name = NONE_OPTIMIZER

    def __init__(self, increment_size: int = 1):
        if not isinstance(increment_size, int) or isinstance(increment_size, bool) or increment_size != 1:
            raise ConfigurationError(
                f"The '{NONE_OPTIMIZER}' optimizer requires increment_size 1, got {increment_size}"
            )
        super().__init__(increment_size)

    @property
    def applies_increment_to_source(self) -> bool:
        return False

    @property
    def is_gap_free(self) -> bool:
        return True

    def generate(self, segment_key: str, callback: AccessCallback) -> int:
        return callback()

@dataclass
class _Block:
    start: int
    next_value: int
    upper_bound: int  # exclusive

    def exhausted(self) -> bool:
        return self.next_value >= self.upper_bound


@dataclass
class _SegmentState:
    lock: threading.Lock = field(default_factory=threading.Lock)
    block: _Block | None = None


class PooledOptimizer(Optimizer):
    """
    Batched strategy: one round-trip reserves ``increment_size`` consecutive
    values ``[v, v + increment_size)`` which are then served from memory.

    Blocks are tracked per segment key, each under its own lock. Locks guard
    the in-memory block only and are never held while the storage callback
    runs. Concurrent refills of one segment each reserve a distinct block;
    the block with the highest start is kept and the others' remainders are
    abandoned. Abandoned remainders, and blocks not fully consumed before
    the process exits, leave permanent gaps in that segment.
    """

    name = POOLED_OPTIMIZER

    def __init__(self, increment_size: int):
        super().__init__(increment_size)
        self._segments: dict[str, _SegmentState] = {}
        self._registry_lock = threading.Lock()

    @property
    def applies_increment_to_source(self) -> bool:
        return True

    @property
    def is_gap_free(self) -> bool:
        return False

    def _state(self, segment_key: str) -> _SegmentState:
        with self._registry_lock:
            state = self._segments.get(segment_key)
            if state is None:
                state = self._segments[segment_key] = _SegmentState()
            return state

    def generate(self, segment_key: str, callback: AccessCallback) -> int:
        state = self._state(segment_key)
        with state.lock:
            block = state.block
            if block is not None and not block.exhausted():
                value = block.next_value
                block.next_value += 1
                return value

        start = callback()
        fresh = _Block(start=start, next_value=start + 1, upper_bound=start + self.increment_size)
        logger.debug(f"Reserved block [{start}, {fresh.upper_bound}) for segment '{segment_key}'")

        with state.lock:
            current = state.block
            if current is None or fresh.start > current.start:
                state.block = fresh
            else:
                logger.debug(
                    f"Abandoning block starting at {start} for segment '{segment_key}'; "
                    f"a newer block starting at {current.start} is in use"
                )
        return start

    def remaining(self, segment_key: str) -> int:
        state = self._state(segment_key)
        with state.lock:
            block = state.block
            return 0 if block is None else max(block.upper_bound - block.next_value, 0)

    def reset(self, segment_key: str | None = None) -> None:
        with self._registry_lock:
            states = list(self._segments.values()) if segment_key is None else [
                self._segments.get(segment_key)
            ]
        for state in states:
            if state is not None:
                with state.lock:
                    state.block = None


OPTIMIZERS: dict[str, Type[Optimizer]] = {
    NONE_OPTIMIZER: NoopOptimizer,
    POOLED_OPTIMIZER: PooledOptimizer,
}

_ALIASES = {
    "direct": NONE_OPTIMIZER,
    "noop": NONE_OPTIMIZER,
    "pool": POOLED_OPTIMIZER,
    "batched": POOLED_OPTIMIZER,
}


def implicit_optimizer_name(increment_size: int) -> str:
    return NONE_OPTIMIZER if increment_size <= 1 else POOLED_OPTIMIZER


def resolve_optimizer_name(name: str | None, increment_size: int) -> str:
    if name is None:
        return implicit_optimizer_name(increment_size)
    if not isinstance(name, str):
        raise ConfigurationError(f"optimizer must be a string name, got {name!r}")
    key = name.strip().lower()
    key = _ALIASES.get(key, key)
    if key not in OPTIMIZERS:
        raise ConfigurationError(
            f"Unknown optimizer '{name}'; expected one of {sorted(OPTIMIZERS)}"
        )
    return key


def build_optimizer(name: str | None, increment_size: int) -> Optimizer:
    optimizer_cls = OPTIMIZERS[resolve_optimizer_name(name, increment_size)]
    return optimizer_cls(increment_size)
