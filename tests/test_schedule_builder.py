import pytest

from conference_config import to_schedule_config
from pentabarf_tool import RecordError, assemble_schedule, build_events
from schedule_model import RawRecord


def make_record(
    event_id: str,
    start: str,
    end: str,
    title: str = "A talk",
    speakers: str = "Alice",
    line: int = 0,
) -> RawRecord:
    return RawRecord(
        event_id=event_id,
        start=start,
        end=end,
        title=title,
        description=f"About {title}",
        speakers=speakers,
        org="Example Org",
        line=line,
    )


def test_groups_by_date_and_sorts_by_start() -> None:
    records = [
        make_record("1", "11/6/15 10:00", "11/6/15 10:30"),
        make_record("2", "11/5/15 14:00", "11/5/15 14:45"),
        make_record("3", "11/6/15 09:00", "11/6/15 09:30"),
        make_record("4", "11/5/15 09:30", "11/5/15 10:00"),
    ]
    events_by_date = build_events(records)
    assert list(events_by_date) == ["2015-11-05", "2015-11-06"]
    assert [e.id for e in events_by_date["2015-11-05"]] == [4, 2]
    assert [e.id for e in events_by_date["2015-11-06"]] == [3, 1]
    assert [e.start for e in events_by_date["2015-11-06"]] == ["09:00", "10:00"]


def test_equal_starts_keep_input_order() -> None:
    records = [
        make_record("7", "11/5/15 11:00", "11/5/15 11:30"),
        make_record("3", "11/5/15 10:00", "11/5/15 10:30"),
        make_record("5", "11/5/15 11:00", "11/5/15 11:15"),
        make_record("1", "11/5/15 11:00", "11/5/15 11:45"),
    ]
    events = build_events(records)["2015-11-05"]
    assert [e.id for e in events] == [3, 7, 5, 1]


def test_event_fields() -> None:
    record = make_record(
        "42", "11/5/15 11:25", "11/5/15 12:05", title="Hello, World!", speakers="Alice,Bob"
    )
    event = build_events([record])["2015-11-05"][0]
    assert event.id == 42
    assert event.date == "2015-11-05"
    assert event.start == "11:25"
    assert event.duration == "00:40"
    assert event.room == "Main room"
    assert event.slug == "hello-world"
    assert event.title == "Hello, World!"
    assert event.abstract == "About Hello, World!"
    assert event.track == "Main"
    assert event.type == "Talk"
    assert event.language == "en"
    assert event.recording.license == "CC-BY-SA"
    assert [p.name for p in event.persons] == ["Alice", "Bob"]
    assert len(event.guid) == 36


def test_speakers_are_split_without_trimming() -> None:
    record = make_record("1", "11/5/15 11:25", "11/5/15 12:05", speakers="Alice, Bob,")
    persons = build_events([record])["2015-11-05"][0].persons
    assert [p.name for p in persons] == ["Alice", " Bob", ""]


def test_same_speaker_same_id_across_events() -> None:
    records = [
        make_record("1", "11/5/15 10:00", "11/5/15 10:30", speakers="Alice"),
        make_record("2", "11/6/15 10:00", "11/6/15 10:30", speakers="Bob,Alice"),
    ]
    events_by_date = build_events(records)
    first = events_by_date["2015-11-05"][0].persons[0]
    second = events_by_date["2015-11-06"][0].persons[1]
    assert first == second


def test_non_integer_id_is_fatal() -> None:
    records = [
        make_record("1", "11/5/15 10:00", "11/5/15 10:30", line=2),
        make_record("abc", "11/5/15 11:00", "11/5/15 11:30", line=3),
    ]
    with pytest.raises(RecordError) as excinfo:
        build_events(records)
    assert excinfo.value.line == 3
    assert "abc" in str(excinfo.value)


@pytest.mark.parametrize("value", ["", " 1", "1.0", "1_000", "0x1f", "12\n"])
def test_loose_integer_ids_are_rejected(value: str) -> None:
    with pytest.raises(RecordError):
        build_events([make_record(value, "11/5/15 10:00", "11/5/15 10:30")])


def test_signed_id_is_accepted() -> None:
    events = build_events([make_record("+12", "11/5/15 10:00", "11/5/15 10:30")])
    assert events["2015-11-05"][0].id == 12


def test_malformed_time_is_fatal() -> None:
    with pytest.raises(RecordError, match="line 5"):
        build_events([make_record("1", "yesterday", "11/5/15 10:30", line=5)])


def test_configured_event_defaults() -> None:
    config = to_schedule_config(
        {"event": {"room": "Hall A", "track": "Kernel", "type": "Lightning", "language": "de"}}
    )
    event = build_events(
        [make_record("1", "11/5/15 10:00", "11/5/15 10:05")], config
    )["2015-11-05"][0]
    assert (event.room, event.track, event.type, event.language) == (
        "Hall A",
        "Kernel",
        "Lightning",
        "de",
    )


def test_assemble_days_are_dense_and_ordered() -> None:
    records = [
        make_record("1", "11/7/15 10:00", "11/7/15 10:30"),
        make_record("2", "11/5/15 10:00", "11/5/15 10:30"),
        make_record("3", "11/6/15 10:00", "11/6/15 10:30"),
        make_record("4", "11/5/15 09:00", "11/5/15 09:30"),
    ]
    config = to_schedule_config(None)
    schedule = assemble_schedule(config.conference, build_events(records, config))
    assert [day.index for day in schedule.days] == [1, 2, 3]
    assert [day.date for day in schedule.days] == ["2015-11-05", "2015-11-06", "2015-11-07"]
    for day in schedule.days:
        assert len(day.rooms) == 1
        assert day.rooms[0].name == "Main room"
    assert [e.id for e in schedule.days[0].events] == [4, 2]
    assert len(schedule.events) == 4


def test_assemble_sorts_unordered_mapping() -> None:
    records = [
        make_record("1", "11/6/15 10:00", "11/6/15 10:30"),
        make_record("2", "11/5/15 10:00", "11/5/15 10:30"),
    ]
    events_by_date = build_events(records)
    reversed_mapping = dict(reversed(list(events_by_date.items())))
    schedule = assemble_schedule(
        to_schedule_config(None).conference, reversed_mapping, room="Aula"
    )
    assert [(day.index, day.date) for day in schedule.days] == [
        (1, "2015-11-05"),
        (2, "2015-11-06"),
    ]
    assert schedule.days[1].rooms[0].name == "Aula"


def test_assemble_empty() -> None:
    schedule = assemble_schedule(to_schedule_config(None).conference, {})
    assert schedule.days == ()
