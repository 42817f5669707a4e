import pytest

from orm_sequencer.errors import ConfigurationError
from orm_sequencer.sequences.formatting import DisplayFormatter, validate_number_format


def test_default_format_pads_to_five_digits():
    fmt = DisplayFormatter()
    assert fmt.format_number(1) == "00001"


def test_width_is_a_minimum_not_a_limit():
    fmt = DisplayFormatter("%05d")
    assert fmt.format_number(123456) == "123456"


def test_identifier_rendering():
    fmt = DisplayFormatter()
    assert fmt.format_identifier("INV", 1) == "INV-00001"
    assert fmt.format_identifier("WOMAN", 42) == "WOMAN-00042"


def test_custom_formats():
    assert DisplayFormatter("%08d").format_number(7) == "00000007"
    assert DisplayFormatter("%x").format_number(255) == "ff"
    assert DisplayFormatter("%%%03d").format_number(5) == "%005"


@pytest.mark.parametrize("bad", ["", "abc", "%s", "%05f", "%d-%d"])
def test_invalid_formats_rejected(bad):
    with pytest.raises(ConfigurationError):
        validate_number_format(bad)


def test_non_string_format_rejected():
    with pytest.raises(ConfigurationError):
        DisplayFormatter(5)  # type: ignore[arg-type]


def test_length_modifier_accepted():
    assert DisplayFormatter("%05ld").format_number(1) == "00001"
    assert validate_number_format("%hd") == "%hd"
