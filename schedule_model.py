"""Immutable value objects for a Pentabarf conference schedule.

The tree mirrors the XML document: Schedule -> Day -> Room -> Event -> Person.
Nothing here reads CSV or writes XML.
"""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class RawRecord:
    """One CSV row, fields kept as the strings found in the file."""

    event_id: str
    start: str
    end: str
    title: str
    description: str
    speakers: str
    org: str
    line: int = 0


@dataclass(frozen=True)
class Person:
    id: int
    name: str


@dataclass(frozen=True)
class Recording:
    license: str = "CC-BY-SA"
    optout: str = "false"


@dataclass(frozen=True)
class Event:
    """
    A scheduled item.

    - date: calendar date of the start, "YYYY-MM-DD"
    - start: clock time of the start, "HH:MM"
    - duration: "00:<minutes>", minutes are not rolled over into hours
    - abstract: the description column of the CSV row
    """

    id: int
    guid: str
    date: str
    start: str
    duration: str
    room: str
    slug: str
    title: str
    subtitle: str = ""
    track: str = ""
    type: str = ""
    language: str = ""
    abstract: str = ""
    description: str = ""
    persons: tuple[Person, ...] = ()
    links: str = ""
    recording: Recording = field(default_factory=Recording)


@dataclass(frozen=True)
class Room:
    name: str
    events: tuple[Event, ...] = ()


@dataclass(frozen=True)
class Day:
    index: int
    date: str
    rooms: tuple[Room, ...] = ()

    @property
    def events(self) -> tuple[Event, ...]:
        return tuple(event for room in self.rooms for event in room.events)


@dataclass(frozen=True)
class Conference:
    title: str
    acronym: str
    start: str
    end: str
    days: int
    timeslot_duration: str
    venue: str = ""
    city: str = ""
    day_change: str = ""


@dataclass(frozen=True)
class Schedule:
    conference: Conference
    days: tuple[Day, ...] = ()
    version: str = "1"

    @property
    def events(self) -> tuple[Event, ...]:
        return tuple(event for day in self.days for event in day.events)
