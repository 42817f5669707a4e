import sqlalchemy as sa
import sqlalchemy.orm as so
from sqlalchemy import event
from typing import Any, Callable, ClassVar, Optional, Type, cast
import logging

from ..config import SequenceConfig
from ..errors import ConfigurationError
from ..sequences.allocator import SegmentedCounterAllocator
from ..sequences.generator import GroupingKeyProvider, PrefixedIdentifierGenerator

logger = logging.getLogger(__name__)


class PrefixedIdentifierMixin:
    """
    Mixin for SQLAlchemy ORM-mapped tables whose identifier is a prefixed,
    per-group counter (``MAN-00001``, ``WOMAN-00001``).

    Subclasses implement ``grouping_prefix()`` and call
    ``register_identifier_listener()`` once; identifiers are then assigned
    in ``before_insert`` on the flush connection, inside the session's
    transaction. Objects that already carry an identifier are left alone.
    """

    __abstract__ = True
    __identifier_attribute__: ClassVar[str] = "id"
    __segment_discriminator__: ClassVar[str] = ""

    _identifier_generator: ClassVar[Optional[PrefixedIdentifierGenerator]] = None
    _identifier_listener: ClassVar[Optional[Callable[..., None]]] = None

    def grouping_prefix(self) -> str:
        raise NotImplementedError(f"{type(self).__name__} does not define grouping_prefix()")

    @classmethod
    def mapper_for(cls: Type) -> so.Mapper:
        mapper = sa.inspect(cls)
        if not mapper:
            raise TypeError(f"{cls.__name__} is not a mapped ORM class")
        return cast(so.Mapper, mapper)

    @classmethod
    def identifier_generator(cls) -> PrefixedIdentifierGenerator:
        if cls._identifier_generator is None:
            raise ConfigurationError(f"{cls.__name__} has no registered identifier generator")
        return cls._identifier_generator

    @classmethod
    def register_identifier_listener(
        cls,
        config: SequenceConfig | None = None,
        *,
        allocator: SegmentedCounterAllocator | None = None,
        grouping_key: GroupingKeyProvider | None = None,
    ) -> PrefixedIdentifierGenerator:
        """
        Attach a ``before_insert`` listener assigning identifiers to new rows.
        Re-registering replaces the previous listener.

        Pass a shared ``allocator`` to let several classes draw from one
        counter table under one optimizer.
        """
        attribute = cls.__identifier_attribute__
        if attribute not in cls.mapper_for().columns:
            raise ConfigurationError(
                f"{cls.__name__} has no mapped column '{attribute}' to hold the identifier"
            )
        if grouping_key is None and cls.grouping_prefix is PrefixedIdentifierMixin.grouping_prefix:
            raise ConfigurationError(
                f"{cls.__name__} must implement grouping_prefix() or supply a grouping_key"
            )

        generator = PrefixedIdentifierGenerator(
            config if allocator is None else None,
            allocator=allocator,
            grouping_key=grouping_key,
            discriminator=cls.__segment_discriminator__,
        )

        cls.remove_identifier_listener()

        def _assign_identifier(mapper: so.Mapper, connection: sa.Connection, target: Any) -> None:
            if getattr(target, attribute) is None:
                setattr(target, attribute, generator.generate(target, connection))

        event.listen(cls, "before_insert", _assign_identifier, propagate=True)
        cls._identifier_generator = generator
        cls._identifier_listener = _assign_identifier
        logger.debug(f"Registered identifier listener on {cls.__name__}.{attribute}")
        return generator

    @classmethod
    def remove_identifier_listener(cls) -> None:
        listener = cls.__dict__.get("_identifier_listener")
        if listener is not None:
            event.remove(cls, "before_insert", listener)
        cls._identifier_listener = None
        cls._identifier_generator = None
