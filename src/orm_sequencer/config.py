from dataclasses import dataclass, fields
from typing import Any, Mapping, Optional

from .errors import ConfigurationError
from .sequences.formatting import DEFAULT_NUMBER_FORMAT, validate_number_format
from .sequences.optimizers import resolve_optimizer_name

DEFAULT_TABLE = "id_sequences"
DEFAULT_SEGMENT_COLUMN = "sequence_name"
DEFAULT_SEGMENT_LENGTH = 255
DEFAULT_VALUE_COLUMN = "next_val"
DEFAULT_INITIAL_VALUE = 1
DEFAULT_INCREMENT_SIZE = 1
DEFAULT_MAX_RETRIES = 50

_INT_PARAMS = {"segment_value_length", "initial_value", "increment_size", "max_retries"}


@dataclass(frozen=True)
class SequenceConfig:
    """
    Settings for one counter table and the generators that allocate from it.

    ``table_name`` may be schema-qualified (``"billing.id_sequences"``).
    When ``optimizer`` is left unset it is derived from ``increment_size``:
    1 selects the direct ``none`` strategy, anything larger ``pooled``.
    """

    table_name: str = DEFAULT_TABLE
    segment_column_name: str = DEFAULT_SEGMENT_COLUMN
    segment_value_length: int = DEFAULT_SEGMENT_LENGTH
    value_column_name: str = DEFAULT_VALUE_COLUMN
    initial_value: int = DEFAULT_INITIAL_VALUE
    increment_size: int = DEFAULT_INCREMENT_SIZE
    optimizer: Optional[str] = None
    number_format: str = DEFAULT_NUMBER_FORMAT
    max_retries: int = DEFAULT_MAX_RETRIES

    def __post_init__(self):
        for name in ("table_name", "segment_column_name", "value_column_name"):
            value = getattr(self, name)
            if not isinstance(value, str) or not value.strip():
                raise ConfigurationError(f"{name} must be a non-empty string")
        for name in sorted(_INT_PARAMS):
            value = getattr(self, name)
            if not isinstance(value, int) or isinstance(value, bool):
                raise ConfigurationError(f"{name} must be an integer, got {value!r}")
        if self.table_name.count(".") > 1:
            raise ConfigurationError(
                f"table_name '{self.table_name}' may carry at most a schema qualifier"
            )
        if self.segment_column_name == self.value_column_name:
            raise ConfigurationError("segment and value columns must have different names")
        if self.segment_value_length < 1:
            raise ConfigurationError(
                f"segment_value_length must be positive, got {self.segment_value_length}"
            )
        if self.increment_size < 1:
            raise ConfigurationError(f"increment_size must be >= 1, got {self.increment_size}")
        if self.max_retries < 1:
            raise ConfigurationError(f"max_retries must be >= 1, got {self.max_retries}")

        resolved = resolve_optimizer_name(self.optimizer, self.increment_size)
        if resolved == "none" and self.increment_size != 1:
            raise ConfigurationError(
                f"Optimizer 'none' cannot be combined with increment_size {self.increment_size}"
            )
        # frozen: normalise through object.__setattr__
        object.__setattr__(self, "optimizer", resolved)
        validate_number_format(self.number_format)

    @property
    def schema(self) -> str | None:
        if "." in self.table_name:
            return self.table_name.split(".", 1)[0]
        return None

    @property
    def table(self) -> str:
        return self.table_name.rsplit(".", 1)[-1]

    @classmethod
    def from_params(cls, params: Mapping[str, Any]) -> "SequenceConfig":
        """
        Build a config from a loose parameter mapping, e.g. values read from
        an ini file or environment where every value arrives as a string.
        Unknown keys are rejected.
        """
        known = {f.name for f in fields(cls)}
        unknown = set(params) - known
        if unknown:
            raise ConfigurationError(f"Unknown sequence parameter(s): {sorted(unknown)}")

        kwargs: dict[str, Any] = {}
        for key, value in params.items():
            if value is None:
                continue
            if key in _INT_PARAMS:
                try:
                    kwargs[key] = int(value)
                except (TypeError, ValueError) as e:
                    raise ConfigurationError(f"{key} must be an integer, got {value!r}") from e
            else:
                kwargs[key] = value
        return cls(**kwargs)
