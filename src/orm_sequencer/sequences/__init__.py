from .formatting import DisplayFormatter, validate_number_format, DEFAULT_NUMBER_FORMAT
from .optimizers import (
    Optimizer,
    NoopOptimizer,
    PooledOptimizer,
    build_optimizer,
    implicit_optimizer_name,
)

__all__ = [
    "DisplayFormatter",
    "validate_number_format",
    "DEFAULT_NUMBER_FORMAT",
    "Optimizer",
    "NoopOptimizer",
    "PooledOptimizer",
    "build_optimizer",
    "implicit_optimizer_name",
]
