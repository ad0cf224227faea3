"""Helpers for reading conference metadata and output defaults."""

from __future__ import annotations

import copy
import json
from dataclasses import dataclass
from pathlib import Path

from schedule_model import Conference, Recording

# Column order of the input CSV.
FIELD_ORDER = (
    "event_id",
    "start",
    "end",
    "title",
    "description",
    "speakers",
    "org",
)

DEFAULT_INPUT_PATH = Path("schedule.csv")
DEFAULT_OUTPUT_PATH = Path("schedule.xml")

DEFAULT_CONFERENCE = {
    "title": "systemd.conf 2015",
    "acronym": "systemdconf2015",
    "venue": "",
    "city": "",
    "start": "2015-11-05",
    "end": "2015-11-07",
    "days": 2,
    "timeslot_duration": "00:05:00",
    "day_change": "",
}

DEFAULT_RECORDING = {
    "license": "CC-BY-SA",
    "optout": "false",
}

DEFAULT_EVENT = {
    "room": "Main room",
    "track": "Main",
    "type": "Talk",
    "language": "en",
}

DEFAULT_CONFIG = {
    "version": "1",
    "utc_offset": "",
    "conference": DEFAULT_CONFERENCE,
    "recording": DEFAULT_RECORDING,
    "event": DEFAULT_EVENT,
}


class ConfigError(ValueError):
    """Raised when a config file exists but cannot be used."""


@dataclass(frozen=True)
class ScheduleConfig:
    conference: Conference
    recording: Recording
    input_path: Path = DEFAULT_INPUT_PATH
    output_path: Path = DEFAULT_OUTPUT_PATH
    version: str = "1"
    utc_offset: str = ""
    room: str = "Main room"
    track: str = "Main"
    event_type: str = "Talk"
    language: str = "en"


def _merge_strings(target: dict, source: object) -> None:
    if not isinstance(source, dict):
        return
    for key, default in target.items():
        value = source.get(key)
        if isinstance(default, str) and isinstance(value, str):
            target[key] = value


def normalize_config(data: dict | None) -> dict:
    config = copy.deepcopy(DEFAULT_CONFIG)
    if not isinstance(data, dict):
        return config

    for key in ("version", "utc_offset"):
        value = data.get(key)
        if isinstance(value, str):
            config[key] = value

    conference = data.get("conference")
    _merge_strings(config["conference"], conference)
    if isinstance(conference, dict) and conference.get("days") is not None:
        try:
            config["conference"]["days"] = max(0, int(conference["days"]))
        except (TypeError, ValueError):
            raise ConfigError(f"conference.days must be an integer, got {conference['days']!r}")

    _merge_strings(config["recording"], data.get("recording"))
    _merge_strings(config["event"], data.get("event"))
    return config


def load_config(path: Path) -> dict:
    if not path.exists():
        return copy.deepcopy(DEFAULT_CONFIG)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        raise ConfigError(f"{path}: invalid JSON ({exc})")
    return normalize_config(data)


def to_schedule_config(
    config: dict | None,
    input_path: Path = DEFAULT_INPUT_PATH,
    output_path: Path = DEFAULT_OUTPUT_PATH,
) -> ScheduleConfig:
    normalized = normalize_config(config)
    event = normalized["event"]
    return ScheduleConfig(
        conference=Conference(**normalized["conference"]),
        recording=Recording(**normalized["recording"]),
        input_path=Path(input_path),
        output_path=Path(output_path),
        version=normalized["version"],
        utc_offset=normalized["utc_offset"],
        room=event["room"],
        track=event["track"],
        event_type=event["type"],
        language=event["language"],
    )
