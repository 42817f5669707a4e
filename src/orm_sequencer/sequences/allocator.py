import threading
import logging
from typing import Any

import sqlalchemy as sa
import sqlalchemy.orm as so
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.exc import IntegrityError, SQLAlchemyError, UnboundExecutionError

from ..config import SequenceConfig
from ..errors import ConfigurationError, ContentionExhausted, InvalidSegmentKey, StorageFailure
from ..tables.counter_table import counter_table
from .optimizers import Optimizer, build_optimizer

logger = logging.getLogger(__name__)

# anything exposing execute(): a Connection, or a Session bound to an engine
ExecutionContext = sa.Connection | so.Session


def _dialect_name(connection: Any) -> str:
    if isinstance(connection, so.Session):
        try:
            return connection.get_bind().dialect.name
        except UnboundExecutionError as e:
            raise StorageFailure("Session is not bound to an engine") from e
    return connection.dialect.name


def _engine_for(connection: Any) -> sa.Engine:
    if isinstance(connection, so.Session):
        try:
            bind = connection.get_bind()
        except UnboundExecutionError as e:
            raise StorageFailure("Session is not bound to an engine") from e
    else:
        bind = connection
    # Engine.engine is the engine itself
    return bind.engine


class SegmentedCounterAllocator:
    """
    Hands out per-segment integers from a counter table.

    Each storage round-trip reads (and, where the backend supports it,
    row-locks) the counter row, creates it at ``initial_value`` when absent,
    then advances it with a conditional update::

        UPDATE <table> SET <value> = :candidate
        WHERE <value> = :observed AND <segment> = :key

    An update touching no row means a concurrent writer advanced the counter
    first, so the round-trip is repeated against the fresh value, up to
    ``config.max_retries`` times.

    Under the direct strategy the round-trip runs inside the caller's
    transaction and the allocator never commits or rolls back. Under the
    pooled strategy each block is reserved in a separate transaction on the
    same engine and committed at once, so reserved blocks survive a rollback
    of the caller's work (leaving a gap, never a duplicate). On SQLite files
    this means a pooled refill waits for any write lock the caller holds.
    """

    def __init__(
        self,
        config: SequenceConfig | None = None,
        *,
        table: sa.Table | None = None,
        optimizer: Optimizer | None = None,
    ):
        self.config = config or SequenceConfig()
        self.table = table if table is not None else counter_table(sa.MetaData(), self.config)
        try:
            self.segment_column = self.table.c[self.config.segment_column_name]
            self.value_column = self.table.c[self.config.value_column_name]
        except KeyError as e:
            raise ConfigurationError(f"Counter table {self.table.fullname} lacks column {e}") from e

        if optimizer is None:
            optimizer = build_optimizer(self.config.optimizer, self.config.increment_size)
        elif optimizer.increment_size != self.config.increment_size:
            raise ConfigurationError(
                f"Optimizer increment {optimizer.increment_size} does not match "
                f"configured increment_size {self.config.increment_size}"
            )
        self.optimizer = optimizer

        self._access_count = 0
        self._count_lock = threading.Lock()

    @property
    def table_access_count(self) -> int:
        """Number of successful storage round-trips; only useful for diagnostics and tests."""
        return self._access_count

    @property
    def is_gap_free(self) -> bool:
        return self.optimizer.is_gap_free

    def validate_segment_key(self, segment_key: Any) -> str:
        if not isinstance(segment_key, str) or not segment_key:
            raise InvalidSegmentKey(f"Segment key must be a non-empty string, got {segment_key!r}")
        if len(segment_key) > self.config.segment_value_length:
            raise InvalidSegmentKey(
                f"Segment key '{segment_key}' exceeds {self.config.segment_value_length} characters"
            )
        return segment_key

    def allocate(self, segment_key: str, connection: ExecutionContext) -> int:
        key = self.validate_segment_key(segment_key)
        if self.optimizer.applies_increment_to_source:
            # cached blocks outlive the caller's transaction, so reserve them in their own
            engine = _engine_for(connection)
            callback = lambda: self._isolated_source_value(key, engine)  # noqa: E731
        else:
            callback = lambda: self._next_source_value(key, connection)  # noqa: E731

        if isinstance(connection, so.Session):
            # pending entities may still lack the identifier being allocated
            with connection.no_autoflush:
                return self.optimizer.generate(key, callback)
        return self.optimizer.generate(key, callback)

    def reset(self, segment_key: str | None = None) -> None:
        """Drop values cached in memory by the optimizer; stored counters are unaffected."""
        self.optimizer.reset(segment_key)

    def _advance(self, observed: int) -> int:
        if self.optimizer.applies_increment_to_source:
            return observed + self.config.increment_size
        return observed + 1

    def _isolated_source_value(self, segment_key: str, engine: sa.Engine) -> int:
        """
        Reserve a block in a short transaction of its own, committed before
        any value from it is handed out. A rollback of the caller's
        transaction can then never hand the same block out twice, and the
        counter row lock is released as soon as the block is reserved.
        """
        try:
            with engine.begin() as isolated:
                return self._next_source_value(segment_key, isolated)
        except SQLAlchemyError as e:
            logger.warning(f"Unable to commit block reservation for segment '{segment_key}': {e}")
            raise StorageFailure(
                f"Block reservation failed for segment '{segment_key}' in {self.table.fullname}",
                segment_key=segment_key,
            ) from e

    def _next_source_value(self, segment_key: str, connection: ExecutionContext) -> int:
        dialect = _dialect_name(connection)
        attempts = 0

        while attempts < self.config.max_retries:
            attempts += 1
            try:
                observed = self._read_value(connection, segment_key)
                if observed is None:
                    observed = self.config.initial_value
                    if not self._insert_initial(connection, segment_key, observed, dialect):
                        logger.debug(f"Lost initialisation race for segment '{segment_key}'; retrying")
                        continue
                    logger.info(f"Initialised segment '{segment_key}' at {observed}")

                rows = self._update_value(connection, segment_key, observed, self._advance(observed))
            except SQLAlchemyError as e:
                logger.warning(f"Unable to read or advance counter for segment '{segment_key}': {e}")
                raise StorageFailure(
                    f"Counter update failed for segment '{segment_key}' in {self.table.fullname}",
                    segment_key=segment_key,
                ) from e

            if rows == 1:
                with self._count_lock:
                    self._access_count += 1
                return observed

            logger.debug(
                f"Counter for segment '{segment_key}' moved past {observed} "
                f"(attempt {attempts}); retrying"
            )

        logger.warning(f"Retry limit {self.config.max_retries} reached for segment '{segment_key}'")
        raise ContentionExhausted(segment_key, attempts)

    def _read_value(self, connection: ExecutionContext, segment_key: str) -> int | None:
        stmt = (
            sa.select(self.value_column)
            .where(self.segment_column == segment_key)
            .with_for_update()
        )
        return connection.execute(stmt).scalar_one_or_none()

    def _insert_initial(
        self,
        connection: ExecutionContext,
        segment_key: str,
        value: int,
        dialect: str,
    ) -> bool:
        """
        Insert a fresh counter row. Returns False when a concurrent caller
        created the row first.
        """
        values = {self.segment_column.key: segment_key, self.value_column.key: value}

        if dialect == "postgresql":
            stmt = (
                postgresql.insert(self.table)
                .values(values)
                .on_conflict_do_nothing(index_elements=[self.segment_column])
            )
        elif dialect == "sqlite":
            stmt = (
                sqlite.insert(self.table)
                .values(values)
                .on_conflict_do_nothing(index_elements=[self.segment_column])
            )
        else:
            # statement-level rollback keeps the surrounding transaction usable
            try:
                connection.execute(sa.insert(self.table).values(values))
            except IntegrityError:
                return False
            return True

        return connection.execute(stmt).rowcount == 1

    def _update_value(
        self,
        connection: ExecutionContext,
        segment_key: str,
        observed: int,
        candidate: int,
    ) -> int:
        stmt = (
            sa.update(self.table)
            .where(self.value_column == observed)
            .where(self.segment_column == segment_key)
            .values({self.value_column.key: candidate})
        )
        return connection.execute(stmt).rowcount

    def __repr__(self) -> str:
        return (
            f"SegmentedCounterAllocator(table={self.table.fullname!r}, "
            f"optimizer={self.optimizer.name!r}, increment_size={self.config.increment_size})"
        )
