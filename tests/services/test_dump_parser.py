"""Tests for the streaming dump record extraction."""

import xml.etree.ElementTree as ET

import pytest

from open_letter.services.dump_parser import (
    NationRecord,
    NationRecordAccumulator,
    ParserState,
    iter_nation_records,
    iter_parse_events,
)

FLAG_TEMPLATE = "https://www.nationstates.net/images/flags/{code}.jpg"

DUMP = b"""<?xml version="1.0" encoding="UTF-8"?>
<NATIONS api_version="12">
<NATION>
  <NAME>Testlandia</NAME>
  <TYPE>Republic</TYPE>
  <FLAG>https://www.nationstates.net/images/flags/uploads/testlandia.svg</FLAG>
  <REGION>Testregionia</REGION>
  <FREEDOM><CIVILRIGHTS>Excellent</CIVILRIGHTS></FREEDOM>
</NATION>
<NATION>
  <NAME>Old Flagland</NAME>
  <FLAG>uk</FLAG>
  <REGION></REGION>
</NATION>
<NATION>
  <TYPE>Nameless</TYPE>
  <REGION>Nowhere</REGION>
</NATION>
<NATION>
  <NAME>Nestia</NAME>
  <GOVT><NAME>Not a nation name</NAME></GOVT>
  <REGION>The Nest</REGION>
</NATION>
</NATIONS>
"""


def _chunks(data: bytes, size: int) -> list[bytes]:
    return [data[i:i + size] for i in range(0, len(data), size)]


def _records(data: bytes, chunk_size: int) -> tuple[list[NationRecord], NationRecordAccumulator]:
    accumulator = NationRecordAccumulator(FLAG_TEMPLATE)
    events = iter_parse_events(_chunks(data, chunk_size))
    return list(iter_nation_records(events, accumulator)), accumulator


@pytest.mark.parametrize("chunk_size", [7, 64, 100_000])
def test_extracts_records_regardless_of_chunking(chunk_size):
    records, accumulator = _records(DUMP, chunk_size)

    assert records == [
        NationRecord(
            name="Testlandia",
            flag_url="https://www.nationstates.net/images/flags/uploads/testlandia.svg",
            region="Testregionia",
        ),
        NationRecord(
            name="Old Flagland",
            flag_url="https://www.nationstates.net/images/flags/uk.jpg",
            region="Unknown Region",
        ),
        NationRecord(name="Nestia", flag_url="", region="The Nest"),
    ]
    assert accumulator.records_emitted == 3
    assert accumulator.records_skipped == 1
    assert accumulator.state is ParserState.IDLE


def test_processed_records_are_released_from_the_tree():
    accumulator = NationRecordAccumulator(FLAG_TEMPLATE)
    root = None
    emitted = 0

    for event, element in iter_parse_events(_chunks(DUMP, 32)):
        if root is None:
            root = element
        record = accumulator.feed(event, element)
        if record is not None:
            emitted += 1
            assert len(root) == 0

    assert emitted == 3


def test_state_machine_tracks_fields():
    accumulator = NationRecordAccumulator(FLAG_TEMPLATE)
    nations = ET.Element("NATIONS")
    nation = ET.SubElement(nations, "NATION")
    name = ET.SubElement(nation, "NAME")
    name.text = "Testlandia"

    accumulator.feed("start", nations)
    assert accumulator.state is ParserState.IDLE
    accumulator.feed("start", nation)
    assert accumulator.state is ParserState.IN_RECORD
    accumulator.feed("start", name)
    assert accumulator.state is ParserState.IN_FIELD
    accumulator.feed("end", name)
    assert accumulator.state is ParserState.IN_RECORD

    record = accumulator.feed("end", nation)
    assert record == NationRecord(name="Testlandia", flag_url="", region="Unknown Region")
    assert accumulator.state is ParserState.IDLE


def test_malformed_document_raises_parse_error():
    with pytest.raises(ET.ParseError):
        _records(b"<NATIONS><NATION><NAME>Broken</NAME>", 16)


def test_whitespace_only_name_is_skipped():
    records, accumulator = _records(
        b"<NATIONS><NATION><NAME>   </NAME><REGION>R</REGION></NATION></NATIONS>",
        1024,
    )

    assert records == []
    assert accumulator.records_skipped == 1
