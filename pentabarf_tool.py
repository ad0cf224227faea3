#!/usr/bin/env python3
"""Convert a CSV conference schedule into a Pentabarf XML schedule."""

from __future__ import annotations

import argparse
import collections
import csv
import dataclasses
import datetime as dt
import hashlib
import io
import json
import math
import re
import unicodedata
import uuid
import xml.etree.ElementTree as ET
from pathlib import Path

from conference_config import (
    DEFAULT_INPUT_PATH,
    DEFAULT_OUTPUT_PATH,
    FIELD_ORDER,
    ConfigError,
    ScheduleConfig,
    load_config,
    to_schedule_config,
)
from schedule_model import (
    Conference,
    Day,
    Event,
    Person,
    RawRecord,
    Recording,
    Room,
    Schedule,
)

TIME_FORMAT = "%m/%d/%y %H:%M"
DATE_FORMAT = "%Y-%m-%d"
CLOCK_FORMAT = "%H:%M"
INT_RE = re.compile(r"[+-]?[0-9]+")
SPEAKER_DELIMITER = ","
SPEAKER_ID_SPACE = 1024
MAX_VARINT_LEN = 10
XML_HEADER = '<?xml version="1.0" encoding="UTF-8"?>'
# Characters outside the XML 1.0 Char production.
XML_INVALID_RE = re.compile(
    "[^\x09\x0a\x0d\x20-\ud7ff\ue000-\ufffd\U00010000-\U0010ffff]"
)


class ScheduleError(Exception):
    """A fatal condition: the run stops and no output is written."""


class RecordError(ScheduleError):
    """A malformed input row."""

    def __init__(self, message: str, line: int = 0) -> None:
        self.line = line
        if line:
            message = f"line {line}: {message}"
        super().__init__(message)


def read_records(csv_path: Path) -> list[RawRecord]:
    """Read the CSV rows, skipping records that start with "#".

    The comment check only applies where a new record begins, so a quoted
    field may contain lines that start with "#".
    """
    records: list[RawRecord] = []
    line_number = 0
    at_record_start = True

    def data_lines(handle):
        nonlocal line_number, at_record_start
        for line_number, line in enumerate(handle, start=1):
            if at_record_start and line.startswith("#"):
                continue
            at_record_start = False
            yield line

    try:
        data = csv_path.read_bytes()
    except OSError as exc:
        raise ScheduleError(f"cannot read {csv_path}: {exc}")
    try:
        text = data.decode("utf-8-sig")
    except UnicodeDecodeError as exc:
        line = data.count(b"\n", 0, exc.start) + 1
        raise RecordError("not valid UTF-8", line) from None

    # newline="" splits on \n, \r and \r\n only and keeps the endings for csv.
    handle = io.StringIO(text, newline="")
    try:
        for row in csv.reader(data_lines(handle)):
            at_record_start = True
            if not row:
                continue
            if len(row) != len(FIELD_ORDER):
                raise RecordError(
                    f"expected {len(FIELD_ORDER)} fields, found {len(row)}",
                    line_number,
                )
            records.append(RawRecord(*row, line=line_number))
    except csv.Error as exc:
        raise RecordError(f"malformed CSV ({exc})", line_number)
    return records


def parse_timestamp(value: str, label: str, line: int = 0) -> dt.datetime:
    try:
        return dt.datetime.strptime(value.strip(), TIME_FORMAT)
    except ValueError:
        raise RecordError(
            f"could not parse {label} time {value!r} (expected M/D/YY HH:MM)", line
        ) from None


def normalize_times(start: str, end: str, line: int = 0) -> tuple[str, str, str]:
    """Return (date, clock time, duration) for a start/end pair.

    The duration is a plain minute count in an "00:MM" field, so 90 minutes
    becomes "00:90".
    """
    start_at = parse_timestamp(start, "start", line)
    end_at = parse_timestamp(end, "end", line)
    minutes = int((end_at - start_at).total_seconds() // 60)
    if minutes < 0:
        raise RecordError(f"end {end!r} is before start {start!r}", line)
    return (
        start_at.strftime(DATE_FORMAT),
        start_at.strftime(CLOCK_FORMAT),
        f"00:{minutes:02d}",
    )


def slugify(title: str) -> str:
    folded = unicodedata.normalize("NFKD", title)
    folded = folded.encode("ascii", "ignore").decode("ascii")
    chars = []
    for char in folded.lower().strip():
        if char in " -":
            chars.append("-")
        elif char == "_" or char.isalnum():
            chars.append(char)
    return "".join(chars)


def _uvarint(data: bytes) -> tuple[int, int]:
    # Unsigned LEB128; an overflow yields (0, -bytes_read).
    value = 0
    shift = 0
    for index, byte in enumerate(data):
        if index == MAX_VARINT_LEN:
            return 0, -(index + 1)
        if byte < 0x80:
            if index == MAX_VARINT_LEN - 1 and byte > 1:
                return 0, -(index + 1)
            return value | byte << shift, index + 1
        value |= (byte & 0x7F) << shift
        shift += 7
    return 0, 0


def speaker_id(name: str) -> int:
    """Small display id in [1, 1024] derived from the MD5 of the name.

    Distinct names may share an id.
    """
    digest = hashlib.md5(name.encode("utf-8"), usedforsecurity=False).digest()
    value, length = _uvarint(digest)
    total = (value + length) % 2**64
    return int(math.fmod(float(total), SPEAKER_ID_SPACE)) + 1


def event_guid() -> str:
    return str(uuid.uuid4())


def parse_event_id(value: str, line: int = 0) -> int:
    if not INT_RE.fullmatch(value):
        raise RecordError(f"event id {value!r} is not an integer", line)
    return int(value)


def build_persons(speakers: str) -> tuple[Person, ...]:
    return tuple(
        Person(id=speaker_id(name), name=name)
        for name in speakers.split(SPEAKER_DELIMITER)
    )


def build_event(record: RawRecord, config: ScheduleConfig) -> Event:
    event_id = parse_event_id(record.event_id, record.line)
    date, start, duration = normalize_times(record.start, record.end, record.line)
    return Event(
        id=event_id,
        guid=event_guid(),
        date=date,
        start=start,
        duration=duration,
        room=config.room,
        slug=slugify(record.title),
        title=record.title,
        track=config.track,
        type=config.event_type,
        language=config.language,
        abstract=record.description,
        persons=build_persons(record.speakers),
        recording=config.recording,
    )


def build_events(
    records: list[RawRecord], config: ScheduleConfig | None = None
) -> dict[str, list[Event]]:
    """Group events by date, dates ascending, each day sorted by start time.

    The sort is stable, so events starting together keep their input order.
    """
    if config is None:
        config = to_schedule_config(None)
    events_by_date: dict[str, list[Event]] = collections.defaultdict(list)
    for record in records:
        event = build_event(record, config)
        events_by_date[event.date].append(event)
    return {
        date: sorted(events_by_date[date], key=lambda e: e.start)
        for date in sorted(events_by_date)
    }


def assemble_schedule(
    conference: Conference,
    events_by_date: dict[str, list[Event]],
    room: str = "Main room",
    version: str = "1",
) -> Schedule:
    days = tuple(
        Day(
            index=index,
            date=date,
            rooms=(Room(name=room, events=tuple(events_by_date[date])),),
        )
        for index, date in enumerate(sorted(events_by_date), start=1)
    )
    return Schedule(conference=conference, days=days, version=version)


def xml_text(value: str | int) -> str:
    return XML_INVALID_RE.sub("\ufffd", str(value))


def _add_text(parent: ET.Element, tag: str, value: str | int) -> ET.Element:
    child = ET.SubElement(parent, tag)
    child.text = xml_text(value)
    return child


def _conference_element(parent: ET.Element, conference: Conference) -> None:
    element = ET.SubElement(parent, "conference")
    _add_text(element, "title", conference.title)
    _add_text(element, "acronym", conference.acronym)
    if conference.venue:
        _add_text(element, "venue", conference.venue)
    if conference.city:
        _add_text(element, "city", conference.city)
    _add_text(element, "start", conference.start)
    _add_text(element, "end", conference.end)
    _add_text(element, "days", conference.days)
    _add_text(element, "timeslot_duration", conference.timeslot_duration)
    if conference.day_change:
        _add_text(element, "day_change", conference.day_change)


def _event_element(parent: ET.Element, event: Event, utc_offset: str) -> None:
    element = ET.SubElement(
        parent, "event", {"id": str(event.id), "guid": event.guid}
    )
    if utc_offset:
        _add_text(element, "date", f"{event.date}T{event.start}:00{utc_offset}")
    else:
        _add_text(element, "date", event.date)
    _add_text(element, "start", event.start)
    _add_text(element, "duration", event.duration)
    _add_text(element, "room", event.room)
    _add_text(element, "slug", event.slug)
    recording = ET.SubElement(element, "recording")
    _add_text(recording, "license", event.recording.license)
    _add_text(recording, "optout", event.recording.optout)
    _add_text(element, "title", event.title)
    _add_text(element, "subtitle", event.subtitle)
    _add_text(element, "track", event.track)
    _add_text(element, "type", event.type)
    _add_text(element, "language", event.language)
    _add_text(element, "abstract", event.abstract)
    _add_text(element, "description", event.description)
    persons = ET.SubElement(element, "persons")
    for person in event.persons:
        person_element = ET.SubElement(persons, "person", {"id": str(person.id)})
        person_element.text = xml_text(person.name)
    _add_text(element, "links", event.links)


def build_schedule_tree(schedule: Schedule, utc_offset: str = "") -> ET.Element:
    root = ET.Element("schedule")
    _add_text(root, "version", schedule.version)
    _conference_element(root, schedule.conference)
    for day in schedule.days:
        day_element = ET.SubElement(
            root, "day", {"index": str(day.index), "date": day.date}
        )
        for room in day.rooms:
            room_element = ET.SubElement(
                day_element, "room", {"name": xml_text(room.name)}
            )
            for event in room.events:
                _event_element(room_element, event, utc_offset)
    return root


def schedule_to_xml(schedule: Schedule, utc_offset: str = "") -> str:
    root = build_schedule_tree(schedule, utc_offset)
    ET.indent(root, space="  ")
    return XML_HEADER + "\n" + ET.tostring(root, encoding="unicode") + "\n"


def _int(value: str | None, what: str) -> int:
    try:
        return int(value or "")
    except ValueError:
        raise ScheduleError(f"{what} is not an integer: {value!r}") from None


def _parse_event(element: ET.Element) -> Event:
    recording = element.find("recording")
    if recording is not None:
        recording_value = Recording(
            license=recording.findtext("license") or "",
            optout=recording.findtext("optout") or "",
        )
    else:
        recording_value = Recording()
    persons = tuple(
        Person(id=_int(person.get("id"), "person id"), name=person.text or "")
        for person in element.iterfind("persons/person")
    )
    return Event(
        id=_int(element.get("id"), "event id"),
        guid=element.get("guid", ""),
        # "2015-11-05T11:25:00+01:00" and "2015-11-05" both carry the date first.
        date=(element.findtext("date") or "")[:10],
        start=element.findtext("start") or "",
        duration=element.findtext("duration") or "",
        room=element.findtext("room") or "",
        slug=element.findtext("slug") or "",
        title=element.findtext("title") or "",
        subtitle=element.findtext("subtitle") or "",
        track=element.findtext("track") or "",
        type=element.findtext("type") or "",
        language=element.findtext("language") or "",
        abstract=element.findtext("abstract") or "",
        description=element.findtext("description") or "",
        persons=persons,
        links=element.findtext("links") or "",
        recording=recording_value,
    )


def parse_schedule_xml(text: str) -> Schedule:
    try:
        root = ET.fromstring(text)
    except ET.ParseError as exc:
        raise ScheduleError(f"invalid schedule XML: {exc}") from None
    if root.tag != "schedule":
        raise ScheduleError(f"expected <schedule> root, found <{root.tag}>")

    conference_element = root.find("conference")
    if conference_element is None:
        raise ScheduleError("schedule has no <conference> element")
    conference = Conference(
        title=conference_element.findtext("title") or "",
        acronym=conference_element.findtext("acronym") or "",
        venue=conference_element.findtext("venue") or "",
        city=conference_element.findtext("city") or "",
        start=conference_element.findtext("start") or "",
        end=conference_element.findtext("end") or "",
        days=_int(conference_element.findtext("days"), "conference days"),
        timeslot_duration=conference_element.findtext("timeslot_duration") or "",
        day_change=conference_element.findtext("day_change") or "",
    )

    days = []
    for day_element in root.iterfind("day"):
        rooms = tuple(
            Room(
                name=room_element.get("name", ""),
                events=tuple(
                    _parse_event(event) for event in room_element.iterfind("event")
                ),
            )
            for room_element in day_element.iterfind("room")
        )
        days.append(
            Day(
                index=_int(day_element.get("index"), "day index"),
                date=day_element.get("date", ""),
                rooms=rooms,
            )
        )
    return Schedule(
        conference=conference,
        days=tuple(days),
        version=root.findtext("version") or "",
    )


def write_outputs(outputs: dict[Path, str]) -> None:
    """Write every output or none of them.

    Each file is staged in a sibling temp file first; the real paths are only
    replaced once all temp files are written.
    """
    staged: list[tuple[Path, Path]] = []
    try:
        for path, content in outputs.items():
            tmp_path = path.with_name(f".{path.name}.tmp")
            try:
                tmp_path.write_text(content, encoding="utf-8")
            except OSError as exc:
                tmp_path.unlink(missing_ok=True)
                raise ScheduleError(f"cannot write {path}: {exc}")
            staged.append((tmp_path, path))
        for tmp_path, path in staged:
            try:
                tmp_path.replace(path)
            except OSError as exc:
                raise ScheduleError(f"cannot write {path}: {exc}")
    finally:
        for tmp_path, _ in staged:
            tmp_path.unlink(missing_ok=True)


def events_to_json(events_by_date: dict[str, list[Event]]) -> str:
    data = {
        date: [dataclasses.asdict(event) for event in events]
        for date, events in events_by_date.items()
    }
    return json.dumps(data, indent=2)


def convert(config: ScheduleConfig, json_path: Path | None = None) -> Schedule:
    print("Reading CSV")
    records = read_records(config.input_path)

    print(f"Processing {len(records)} records")
    events_by_date = build_events(records, config)
    schedule = assemble_schedule(
        config.conference,
        events_by_date,
        room=config.room,
        version=config.version,
    )
    outputs = {
        config.output_path: schedule_to_xml(schedule, utc_offset=config.utc_offset)
    }
    if json_path:
        outputs[json_path] = events_to_json(events_by_date)

    print(f"Writing {config.output_path}")
    write_outputs(outputs)
    return schedule


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(
        description="Convert a CSV conference schedule into Pentabarf XML."
    )
    parser.add_argument(
        "--input",
        type=Path,
        default=DEFAULT_INPUT_PATH,
        help="CSV source (id, start, end, title, description, speakers, org)",
    )
    parser.add_argument("--output", type=Path, default=DEFAULT_OUTPUT_PATH)
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("conference.json"),
        help="Conference metadata JSON (defaults are used if missing)",
    )
    parser.add_argument("--json", type=Path, help="Optional JSON output path")
    args = parser.parse_args(argv)

    try:
        config = to_schedule_config(
            load_config(args.config), input_path=args.input, output_path=args.output
        )
        schedule = convert(config, json_path=args.json)
    except (ScheduleError, ConfigError) as exc:
        raise SystemExit(f"error: {exc}")

    print(
        f"Wrote {len(schedule.events)} events across {len(schedule.days)} days "
        f"to {config.output_path}"
    )


if __name__ == "__main__":
    main()
