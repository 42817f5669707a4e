import pytest

from orm_sequencer import (
    PrefixedIdentifierGenerator,
    SegmentedCounterAllocator,
    SequenceConfig,
)
from orm_sequencer.errors import ConfigurationError, InvalidSegmentKey


class Gendered:
    def __init__(self, gender):
        self.gender = gender

    def grouping_prefix(self):
        return "MAN" if self.gender == "M" else "WOMAN"


class Robot:
    pass


def test_invoice_scenario(connection):
    gen = PrefixedIdentifierGenerator(grouping_key=lambda _: "INV")

    raw = [gen.next_value("INV", connection) for _ in range(3)]
    assert raw == [1, 2, 3]

    gen = PrefixedIdentifierGenerator(grouping_key=lambda _: "INV")
    ids = [gen.generate(object(), connection) for _ in range(3)]
    assert ids == ["INV-00004", "INV-00005", "INV-00006"]


def test_rendered_identifiers_from_fresh_segment(connection):
    gen = PrefixedIdentifierGenerator()
    ids = [gen.generate_for_prefix("INV", connection) for _ in range(3)]
    assert ids == ["INV-00001", "INV-00002", "INV-00003"]


def test_default_grouping_key_uses_entity_method(connection):
    gen = PrefixedIdentifierGenerator()

    assert gen.generate(Gendered("M"), connection) == "MAN-00001"
    assert gen.generate(Gendered("F"), connection) == "WOMAN-00001"
    assert gen.generate(Gendered("M"), connection) == "MAN-00002"


def test_shared_prefix_shares_counter(connection):
    people = PrefixedIdentifierGenerator()
    robots = PrefixedIdentifierGenerator(grouping_key=lambda _: "MAN")

    ids = [
        people.generate(Gendered("M"), connection),
        robots.generate(Robot(), connection),
        people.generate(Gendered("M"), connection),
        robots.generate(Robot(), connection),
    ]

    # contiguous overall, interleaved per class
    assert ids == ["MAN-00001", "MAN-00002", "MAN-00003", "MAN-00004"]


def test_discriminator_isolates_classes(connection):
    people = PrefixedIdentifierGenerator()
    robots = PrefixedIdentifierGenerator(grouping_key=lambda _: "MAN", discriminator="robot:")

    assert people.generate(Gendered("M"), connection) == "MAN-00001"
    assert robots.generate(Robot(), connection) == "MAN-00001"
    assert robots.segment_key("MAN") == "robot:MAN"


def test_custom_number_format(connection):
    gen = PrefixedIdentifierGenerator(SequenceConfig(number_format="%03d", initial_value=999))
    assert gen.generate_for_prefix("ORD", connection) == "ORD-999"
    assert gen.generate_for_prefix("ORD", connection) == "ORD-1000"


def test_entity_without_grouping_prefix_rejected(bare_connection):
    gen = PrefixedIdentifierGenerator()
    with pytest.raises(InvalidSegmentKey):
        gen.generate(Robot(), bare_connection)


@pytest.mark.parametrize("bad", ["", None])
def test_empty_grouping_key_rejected_before_storage(bare_connection, bad):
    gen = PrefixedIdentifierGenerator(grouping_key=lambda _: bad)
    with pytest.raises(InvalidSegmentKey):
        gen.generate(Robot(), bare_connection)
    assert gen.table_access_count == 0


def test_shared_allocator(connection):
    alloc = SegmentedCounterAllocator(SequenceConfig(increment_size=5))
    a = PrefixedIdentifierGenerator(allocator=alloc, grouping_key=lambda _: "Q")
    b = PrefixedIdentifierGenerator(allocator=alloc, grouping_key=lambda _: "Q")

    assert a.generate(Robot(), connection) == "Q-00001"
    assert b.generate(Robot(), connection) == "Q-00002"
    assert alloc.table_access_count == 1


def test_mismatched_allocator_config_rejected():
    alloc = SegmentedCounterAllocator(SequenceConfig(initial_value=10))
    with pytest.raises(ConfigurationError):
        PrefixedIdentifierGenerator(SequenceConfig(), allocator=alloc)


def test_non_callable_grouping_key_rejected():
    with pytest.raises(ConfigurationError):
        PrefixedIdentifierGenerator(grouping_key="INV")  # type: ignore[arg-type]
