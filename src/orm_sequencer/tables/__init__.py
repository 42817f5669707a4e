from .counter_table import counter_table, ensure_counter_table
from .prefixed_table import PrefixedIdentifierMixin

__all__ = [
    "counter_table",
    "ensure_counter_table",
    "PrefixedIdentifierMixin",
]
