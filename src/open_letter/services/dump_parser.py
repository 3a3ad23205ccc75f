"""Streaming extraction of nation records from the daily XML dump.

The dump is one ``<NATIONS>`` root with a ``<NATION>`` element per nation,
each carrying dozens of sub-elements. Only ``NAME``, ``FLAG`` and ``REGION``
are needed, so instead of materialising records we drive a small state
machine from pull-parser events:

    IDLE --<NATION>--> IN_RECORD --<NAME|FLAG|REGION>--> IN_FIELD
    IN_FIELD --</field>--> IN_RECORD --</NATION>--> IDLE (emit record)

Everything else inside a record is ignored, and each record's subtree is
cleared as soon as it closes so memory stays flat regardless of dump size.
"""

from __future__ import annotations

import logging
import xml.etree.ElementTree as ET
from collections.abc import AsyncIterator, Awaitable, Callable, Iterable, Iterator
from dataclasses import dataclass
from enum import Enum

from open_letter.services.nationstates import UNKNOWN_REGION, build_flag_url

logger = logging.getLogger(__name__)

RECORD_TAG = "NATION"
FIELD_TAGS = {"NAME": "name", "FLAG": "flag", "REGION": "region"}

ParseEvent = tuple[str, ET.Element]


class ParserState(Enum):
    """Position of the accumulator within the document."""

    IDLE = "idle"
    IN_RECORD = "in_record"
    IN_FIELD = "in_field"


@dataclass(frozen=True)
class NationRecord:
    """One nation extracted from the dump."""

    name: str
    flag_url: str
    region: str


def iter_parse_events(chunks: Iterable[bytes]) -> Iterator[ParseEvent]:
    """Yield ``(event, element)`` pairs for ``start``/``end`` tags in ``chunks``.

    Raises:
        xml.etree.ElementTree.ParseError: If the document is not well-formed.
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    for chunk in chunks:
        parser.feed(chunk)
        yield from parser.read_events()
    parser.close()
    yield from parser.read_events()


async def aiter_parse_events(read_chunk: Callable[[], Awaitable[bytes]]) -> AsyncIterator[ParseEvent]:
    """Async counterpart of :func:`iter_parse_events`.

    ``read_chunk`` is awaited until it returns an empty chunk, so the caller
    decides where blocking reads and decompression happen.
    """
    parser = ET.XMLPullParser(events=("start", "end"))
    while chunk := await read_chunk():
        parser.feed(chunk)
        for item in parser.read_events():
            yield item
    parser.close()
    for item in parser.read_events():
        yield item


class NationRecordAccumulator:
    """Turns a stream of parse events into :class:`NationRecord` values."""

    def __init__(self, flag_url_template: str, record_tag: str = RECORD_TAG) -> None:
        self.flag_url_template = flag_url_template
        self.record_tag = record_tag
        self.state = ParserState.IDLE
        self.records_emitted = 0
        self.records_skipped = 0
        self._root: ET.Element | None = None
        self._depth = 0
        self._field: str | None = None
        self._slots: dict[str, list[str]] = {}

    def _reset(self) -> None:
        self._depth = 0
        self._field = None
        self._slots = {slot: [] for slot in FIELD_TAGS.values()}

    def feed(self, event: str, element: ET.Element) -> NationRecord | None:
        """Advance the state machine by one event.

        Returns:
            A record when ``event`` closes a record that had a name, else None.
        """
        if self._root is None and event == "start":
            self._root = element

        if self.state is ParserState.IDLE:
            if event == "start" and element.tag == self.record_tag:
                self._reset()
                self.state = ParserState.IN_RECORD
            return None

        if event == "start":
            self._depth += 1
            if self._depth == 1 and element.tag in FIELD_TAGS:
                self._field = FIELD_TAGS[element.tag]
                self.state = ParserState.IN_FIELD
            return None

        # event == "end"
        if self._depth == 0 and element.tag == self.record_tag:
            return self._finish_record(element)

        if self._depth == 1 and self._field is not None:
            if element.text:
                self._slots[self._field].append(element.text)
            self._field = None
            self.state = ParserState.IN_RECORD
        self._depth -= 1
        return None

    def _finish_record(self, element: ET.Element) -> NationRecord | None:
        self.state = ParserState.IDLE
        name = "".join(self._slots["name"]).strip()
        flag = "".join(self._slots["flag"]).strip()
        region = "".join(self._slots["region"]).strip()

        element.clear()
        if self._root is not None and self._root is not element:
            self._root.clear()

        if not name:
            self.records_skipped += 1
            logger.debug("Skipping dump record without a name")
            return None

        self.records_emitted += 1
        return NationRecord(
            name=name,
            flag_url=build_flag_url(flag, self.flag_url_template),
            region=region or UNKNOWN_REGION,
        )


def iter_nation_records(
    events: Iterable[ParseEvent],
    accumulator: NationRecordAccumulator,
) -> Iterator[NationRecord]:
    """Yield every well-formed record found in ``events``."""
    for event, element in events:
        record = accumulator.feed(event, element)
        if record is not None:
            yield record
