import logging
from typing import Any, Callable

from ..config import SequenceConfig
from ..errors import ConfigurationError, InvalidSegmentKey
from .allocator import ExecutionContext, SegmentedCounterAllocator
from .formatting import DisplayFormatter

logger = logging.getLogger(__name__)

GroupingKeyProvider = Callable[[Any], str]


def default_grouping_key(entity: Any) -> str:
    """
    Ask the entity for its grouping prefix through a ``grouping_prefix()``
    method, e.g. ``"MAN" if self.gender == "M" else "WOMAN"``.
    """
    provider = getattr(entity, "grouping_prefix", None)
    if not callable(provider):
        raise InvalidSegmentKey(
            f"{type(entity).__name__} has no grouping_prefix() and no grouping key provider was given"
        )
    return provider()


class PrefixedIdentifierGenerator:
    """
    Produces ``<prefix>-<number>`` identifiers such as ``INV-00001``.

    The counter segment is ``discriminator + prefix``. With the default empty
    discriminator, every generator that reports the same prefix draws from
    the same counter, so numbers seen by one entity class need not be
    contiguous when another class shares its prefix. Give each class its own
    discriminator to keep their series apart.
    """

    def __init__(
        self,
        config: SequenceConfig | None = None,
        *,
        grouping_key: GroupingKeyProvider | None = None,
        discriminator: str = "",
        allocator: SegmentedCounterAllocator | None = None,
        formatter: DisplayFormatter | None = None,
    ):
        if allocator is not None and config is not None and allocator.config != config:
            raise ConfigurationError("allocator was built from a different SequenceConfig")
        if grouping_key is not None and not callable(grouping_key):
            raise ConfigurationError("grouping_key must be callable")
        if not isinstance(discriminator, str):
            raise ConfigurationError("discriminator must be a string")

        self.allocator = allocator or SegmentedCounterAllocator(config)
        self.config = self.allocator.config
        self.grouping_key = grouping_key or default_grouping_key
        self.discriminator = discriminator
        self.formatter = formatter or DisplayFormatter(self.config.number_format)

    @property
    def table_access_count(self) -> int:
        return self.allocator.table_access_count

    def grouping_prefix(self, entity: Any) -> str:
        prefix = self.grouping_key(entity)
        if not isinstance(prefix, str) or not prefix:
            raise InvalidSegmentKey(
                f"Grouping key for {type(entity).__name__} must be a non-empty string, got {prefix!r}"
            )
        return prefix

    def segment_key(self, prefix: str) -> str:
        return f"{self.discriminator}{prefix}"

    def next_value(self, prefix: str, connection: ExecutionContext) -> int:
        """Allocate the raw counter value for ``prefix`` without formatting it."""
        if not isinstance(prefix, str) or not prefix:
            raise InvalidSegmentKey(f"Grouping prefix must be a non-empty string, got {prefix!r}")
        return self.allocator.allocate(self.segment_key(prefix), connection)

    def generate_for_prefix(self, prefix: str, connection: ExecutionContext) -> str:
        value = self.next_value(prefix, connection)
        identifier = self.formatter.format_identifier(prefix, value)
        logger.debug(f"Generated identifier {identifier}")
        return identifier

    def generate(self, entity: Any, connection: ExecutionContext) -> str:
        return self.generate_for_prefix(self.grouping_prefix(entity), connection)
