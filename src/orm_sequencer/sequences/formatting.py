import re
import logging

from ..errors import ConfigurationError

logger = logging.getLogger(__name__)

DEFAULT_NUMBER_FORMAT = "%05d"
IDENTIFIER_SEPARATOR = "-"

# printf-style conversion specifiers with optional length modifier; '%%' is a literal percent sign
_CONVERSION_RE = re.compile(r"%(%|[-+ #0]*\d*(?:\.\d+)?[hlL]?([a-zA-Z]))")
_INTEGER_CONVERSIONS = set("diouxX")


def validate_number_format(number_format: str) -> str:
    """
    Check that ``number_format`` is a printf-style pattern holding exactly
    one integer conversion (``%05d``, ``%x``, ``N%08d`` ...).

    Width is a minimum, never a limit: ``%05d`` renders 123456 unchanged.
    """
    if not isinstance(number_format, str) or not number_format:
        raise ConfigurationError("number_format must be a non-empty string")

    conversions = [m.group(2) for m in _CONVERSION_RE.finditer(number_format) if m.group(1) != "%"]
    if len(conversions) != 1:
        raise ConfigurationError(
            f"number_format '{number_format}' must contain exactly one conversion, found {len(conversions)}"
        )
    if conversions[0] not in _INTEGER_CONVERSIONS:
        raise ConfigurationError(
            f"number_format '{number_format}' uses non-integer conversion '%{conversions[0]}'"
        )
    try:
        number_format % 1
    except (TypeError, ValueError) as e:
        raise ConfigurationError(f"number_format '{number_format}' is not usable: {e}") from e
    return number_format


class DisplayFormatter:
    """
    Renders ``<prefix>-<number>`` identifiers from raw counter values.
    """

    def __init__(self, number_format: str = DEFAULT_NUMBER_FORMAT):
        self.number_format = validate_number_format(number_format)

    def format_number(self, value: int) -> str:
        return self.number_format % value

    def format_identifier(self, prefix: str, value: int) -> str:
        return f"{prefix}{IDENTIFIER_SEPARATOR}{self.format_number(value)}"

    def __repr__(self) -> str:
        return f"DisplayFormatter({self.number_format!r})"
