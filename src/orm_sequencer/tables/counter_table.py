import sqlalchemy as sa
import logging

from ..config import SequenceConfig
from ..errors import ConfigurationError

logger = logging.getLogger(__name__)


def counter_table(metadata: sa.MetaData, config: SequenceConfig | None = None) -> sa.Table:
    """
    Return the counter table described by ``config`` on ``metadata``.

    One row per segment: the segment column is the primary key and the value
    column holds the next value not yet handed out. If ``metadata`` already
    carries a table of that name it is reused, provided it has both columns.
    """
    config = config or SequenceConfig()
    key = f"{config.schema}.{config.table}" if config.schema else config.table

    existing = metadata.tables.get(key)
    if existing is not None:
        missing = {config.segment_column_name, config.value_column_name} - set(existing.c.keys())
        if missing:
            raise ConfigurationError(
                f"Table '{key}' is already defined without column(s) {sorted(missing)}"
            )
        return existing

    return sa.Table(
        config.table,
        metadata,
        sa.Column(
            config.segment_column_name,
            sa.String(config.segment_value_length),
            primary_key=True,
            nullable=False,
        ),
        sa.Column(config.value_column_name, sa.BigInteger, nullable=False),
        schema=config.schema,
    )


def ensure_counter_table(
    bind: sa.Engine | sa.Connection,
    config: SequenceConfig | None = None,
    metadata: sa.MetaData | None = None,
) -> sa.Table:
    """
    Create the counter table if it does not exist yet. Existing tables are
    left untouched; columns are not added or altered.
    """
    table = counter_table(metadata if metadata is not None else sa.MetaData(), config)
    inspector = sa.inspect(bind)

    if inspector.has_table(table.name, schema=table.schema):
        logger.debug(f"Counter table {table.fullname} already present")
        return table

    logger.info(f"Creating counter table {table.fullname}")
    table.create(bind, checkfirst=True)
    return table
