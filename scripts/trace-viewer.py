#!/usr/bin/env python
"""Trace Log Viewer - CLI tool for tailing pursuit reasoning logs."""

from __future__ import annotations

import colorsys
import hashlib
import json
import time
from pathlib import Path

import typer

# ANSI reset code
RESET_COLOR = "\x1b[0m"


def hash_to_color(pursuit_id: str) -> str:
    """
    Convert pursuit_id to a 24-bit ANSI color code.

    Maps MD5 hash bytes to HLS color space, then converts to RGB, so every
    pursuit gets a stable color.
    """
    hash_bytes = hashlib.md5(pursuit_id.encode()).digest()

    h = hash_bytes[0] / 255.0
    lightness = 0.4 + (hash_bytes[1] / 255.0) * 0.3  # keep it readable on dark terminals
    s = 0.5 + (hash_bytes[2] / 255.0) * 0.5

    r, g, b = colorsys.hls_to_rgb(h, lightness, s)
    return f"\x1b[38;2;{round(r * 255)};{round(g * 255)};{round(b * 255)}m"


def parse_log_entry(line: str) -> dict[str, str | int | None] | None:
    """
    Parse a JSONL log entry and extract display fields.

    Returns:
        Dict with keys: level, pursuit_id, iteration, phase, message
        Returns None if parsing fails or required fields are missing
    """
    try:
        entry = json.loads(line)
    except json.JSONDecodeError:
        return None

    required_fields = ["level", "pursuit_id", "iteration", "message"]
    for field in required_fields:
        if field not in entry:
            return None

    return {
        "level": entry["level"],
        "pursuit_id": entry["pursuit_id"],
        "iteration": entry["iteration"],
        "phase": entry.get("phase"),
        "message": entry["message"],
    }


def should_display_entry(
    entry: dict[str, str | int | None], level_filters: list[str], phase_filters: list[str]
) -> bool:
    """Check if a log entry matches the level and phase filters (empty = all)."""
    if level_filters and entry["level"] not in level_filters:
        return False

    if phase_filters and entry["phase"] not in phase_filters:
        return False

    return True


def format_log_entry(entry: dict[str, str | int | None]) -> str:
    """
    Format a parsed log entry for display.

    Format: {level} {colored_pursuit_id}:{iteration} {message}
    """
    pursuit_id = str(entry["pursuit_id"])
    colored_id = f"{hash_to_color(pursuit_id)}{pursuit_id}{RESET_COLOR}"
    iteration = "-" if entry["iteration"] is None else str(entry["iteration"])
    return f"{entry['level']} {colored_id}:{iteration} {entry['message']}"


def read_new_lines(file_path: Path, offset: int) -> tuple[list[str], int]:
    """Read new lines from a log file starting from a byte offset."""
    with open(file_path, encoding="utf-8") as f:
        f.seek(offset)
        lines = f.readlines()
        new_offset = f.tell()

    return lines, new_offset


def print_lines(lines: list[str], level_filters: list[str], phase_filters: list[str]) -> None:
    for line in lines:
        line = line.rstrip("\n\r")
        entry = parse_log_entry(line)
        if entry is None:
            # Malformed JSON or missing fields
            print(f"[ERROR] {line}")
        elif should_display_entry(entry, level_filters, phase_filters):
            print(format_log_entry(entry))


def tail_log_file(
    file_path: Path, level_filters: list[str], phase_filters: list[str], follow: bool
) -> None:
    """Print matching entries, then keep polling for new ones when following."""
    offset = 0

    try:
        lines, offset = read_new_lines(file_path, offset)
        print_lines(lines, level_filters, phase_filters)

        while follow:
            time.sleep(1)
            lines, offset = read_new_lines(file_path, offset)
            print_lines(lines, level_filters, phase_filters)

    except KeyboardInterrupt:
        # Exit immediately on Ctrl+C
        pass


app = typer.Typer()


@app.command()
def main(
    log_file: Path,
    level: list[str] | None = typer.Option(  # noqa: B008
        None, "--level", help="Filter by log level (can be used multiple times)"
    ),
    phase: list[str] | None = typer.Option(  # noqa: B008
        None, "--phase", help="Filter by loop phase (can be used multiple times)"
    ),
    follow: bool = typer.Option(True, "--follow/--no-follow", help="Keep polling for new lines"),
) -> None:
    """
    Tail and display pursuit logs with color-coded pursuit ids.

    Shows log entries in format: {level} {pursuit_id}:{iteration} {message}
    """
    if not log_file.is_file():
        raise typer.BadParameter(f"Not a file: {log_file}")

    tail_log_file(log_file, level or [], phase or [], follow)


if __name__ == "__main__":
    app()
