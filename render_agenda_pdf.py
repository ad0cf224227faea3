#!/usr/bin/env python3
"""Render a printable per-day agenda PDF from a Pentabarf schedule.xml."""

from __future__ import annotations

import argparse
import unicodedata
from dataclasses import dataclass
from pathlib import Path

from fpdf import FPDF

from pentabarf_tool import ScheduleError, parse_schedule_xml
from schedule_model import Day, Event, Schedule


@dataclass
class RenderConfig:
    page_size: str = "A4"
    orientation: str = "portrait"
    margin: float = 12.0
    header_height: float = 18.0
    time_col_width: float = 18.0
    duration_col_width: float = 18.0
    speakers_col_width: float = 48.0
    body_font_size: float = 8.0
    padding: float = 1.2


def sanitize_text(value: str | None) -> str:
    if not value:
        return ""
    text = str(value)
    replacements = {
        "\u2013": "-",
        "\u2014": "-",
        "\u2018": "'",
        "\u2019": "'",
        "\u201c": "\"",
        "\u201d": "\"",
        "\u2026": "...",
    }
    for src, dest in replacements.items():
        text = text.replace(src, dest)
    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    return " ".join(text.split())


def wrap_text(pdf: FPDF, text: str, max_width: float) -> list[str]:
    words = text.split()
    if not words:
        return []
    lines: list[str] = []
    current = ""
    for word in words:
        candidate = f"{current} {word}".strip()
        if pdf.get_string_width(candidate) <= max_width:
            current = candidate
            continue
        if current:
            lines.append(current)
        if pdf.get_string_width(word) <= max_width:
            current = word
            continue
        # Hard-break words wider than the column.
        chunk = ""
        for char in word:
            if pdf.get_string_width(chunk + char) <= max_width:
                chunk += char
            else:
                if chunk:
                    lines.append(chunk)
                chunk = char
        current = chunk
    if current:
        lines.append(current)
    return lines


def speaker_names(event: Event) -> str:
    names = [sanitize_text(person.name) for person in event.persons]
    return ", ".join(name for name in names if name)


def day_label(day: Day) -> str:
    return f"Day {day.index} - {day.date}"


def draw_row(
    pdf: FPDF,
    y: float,
    widths: list[float],
    columns: list[list[str]],
    config: RenderConfig,
    fill_color: tuple[int, int, int],
    bold: bool = False,
) -> float:
    pdf.set_font("Helvetica", style="B" if bold else "", size=config.body_font_size)
    line_height = pdf.font_size * 1.2
    row_lines = max(1, max(len(lines) for lines in columns))
    height = row_lines * line_height + 2 * config.padding

    x = config.margin
    pdf.set_fill_color(*fill_color)
    for width, lines in zip(widths, columns):
        pdf.rect(x, y, width, height, style="DF")
        cursor_y = y + config.padding
        for line in lines:
            pdf.set_xy(x + config.padding, cursor_y)
            pdf.cell(width - 2 * config.padding, line_height, line)
            cursor_y += line_height
        x += width
    return height


def render_day(pdf: FPDF, schedule: Schedule, day: Day, config: RenderConfig) -> None:
    pdf.add_page()
    pdf.set_auto_page_break(auto=False, margin=0)

    pdf.set_font("Helvetica", style="B", size=14)
    pdf.set_xy(config.margin, config.margin)
    pdf.cell(0, 6, sanitize_text(schedule.conference.title), ln=1)
    pdf.set_font("Helvetica", size=9)
    pdf.set_x(config.margin)
    pdf.cell(0, 5, sanitize_text(day_label(day)), ln=1)

    table_width = pdf.w - 2 * config.margin
    title_width = (
        table_width
        - config.time_col_width
        - config.duration_col_width
        - config.speakers_col_width
    )
    widths = [
        config.time_col_width,
        config.duration_col_width,
        title_width,
        config.speakers_col_width,
    ]

    pdf.set_draw_color(180, 170, 160)
    pdf.set_line_width(0.1)

    y = config.margin + config.header_height
    header = [["Time"], ["Length"], ["Title"], ["Speakers"]]
    y += draw_row(pdf, y, widths, header, config, (236, 230, 219), bold=True)

    for room in day.rooms:
        for event in room.events:
            pdf.set_font("Helvetica", size=config.body_font_size)
            title = sanitize_text(event.title) or "(Untitled)"
            columns = [
                [event.start],
                [event.duration],
                wrap_text(pdf, title, title_width - 2 * config.padding),
                wrap_text(
                    pdf,
                    speaker_names(event),
                    config.speakers_col_width - 2 * config.padding,
                ),
            ]
            line_height = pdf.font_size * 1.2
            row_lines = max(len(lines) for lines in columns)
            needed = row_lines * line_height + 2 * config.padding
            if y + needed > pdf.h - config.margin:
                pdf.add_page()
                y = config.margin
                y += draw_row(pdf, y, widths, header, config, (236, 230, 219), bold=True)
            y += draw_row(pdf, y, widths, columns, config, (255, 253, 247))


def render_schedule(
    schedule: Schedule, output_path: Path, config: RenderConfig | None = None
) -> Path | None:
    if not schedule.days:
        return None
    config = config or RenderConfig()
    pdf = FPDF(
        orientation=config.orientation[0].upper(),
        unit="mm",
        format=config.page_size,
    )
    for day in schedule.days:
        render_day(pdf, schedule, day, config)
    output_path.parent.mkdir(parents=True, exist_ok=True)
    pdf.output(str(output_path))
    return output_path


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Render a per-day agenda PDF from a Pentabarf schedule.xml."
    )
    parser.add_argument("--schedule", type=Path, default=Path("schedule.xml"))
    parser.add_argument("--out", type=Path, default=Path("schedule.pdf"))
    parser.add_argument("--page-size", default="A4")
    parser.add_argument(
        "--orientation", choices=["portrait", "landscape"], default="portrait"
    )
    parser.add_argument("--font-size", type=float, default=8.0)
    args = parser.parse_args()

    if not args.schedule.exists():
        raise SystemExit(f"Schedule not found: {args.schedule}")
    try:
        schedule = parse_schedule_xml(args.schedule.read_text(encoding="utf-8"))
    except ScheduleError as exc:
        raise SystemExit(f"error: {exc}")

    config = RenderConfig(
        page_size=args.page_size,
        orientation=args.orientation,
        body_font_size=args.font_size,
    )
    output = render_schedule(schedule, args.out, config)
    if output:
        print(f"Rendered {len(schedule.days)} days to {output}")
    else:
        print("No events found to render.")


if __name__ == "__main__":
    main()
