#!/usr/bin/env python3
"""Dump or check an NRB file.

Examples
--------
Print every section and note:
    python tools/nrbwalk.py song.nrb
    python tools/nrbwalk.py < song.nrb

Validate only (exit status 0 when the file parses):
    python tools/nrbwalk.py --check song.nrb
"""

from __future__ import annotations

import argparse
from pathlib import Path
import sys
from typing import TextIO

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from nrb.composition import Composition  # noqa: E402
from nrb.parser import ParseResult, VersionStatus, parse_path, parse_stream  # noqa: E402


VERSION_MESSAGES = {
    VersionStatus.MINOR_UNSUPPORTED: "WARNING: Unsupported minor NRB version!",
    VersionStatus.MAJOR_UNSUPPORTED: "ERROR: Unsupported major NRB version!",
    VersionStatus.UNREADABLE: "Couldn't read valid NRB version!",
}


def report(comp: Composition, out: TextIO) -> None:
    out.write(f"SECTIONS: {comp.section_count}\n")
    out.write(f"NOTES   : {comp.note_count}\n")
    out.write("\n")

    for idx in range(comp.section_count):
        out.write(f"SECTION {idx} AT {comp.offset(idx)}\n")
    out.write("\n")

    for note in comp:
        out.write(
            f"NOTE T={note.start} DUR={note.duration} Pi={note.pitch} "
            f"Pd={int(note.pedal)} Gr={int(note.grace)} A={note.articulation} "
            f"R={note.ramp} S={note.section} L={note.layer_number}\n"
        )


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="nrbwalk",
        description="Parse an NRB file and print its sections and notes.",
    )
    parser.add_argument(
        "path",
        nargs="?",
        type=Path,
        default=None,
        help="NRB file to read (default: standard input)",
    )
    parser.add_argument(
        "--check",
        "-check",
        action="store_true",
        help="Only validate the file; print nothing on success",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    prog = parser.prog

    result: ParseResult
    if args.path is None:
        result = parse_stream(sys.stdin.buffer)
    else:
        result = parse_path(args.path)

    message = VERSION_MESSAGES.get(result.version)
    if message is not None:
        print(f"{prog}: {message}", file=sys.stderr)

    if result.composition is None:
        if result.error:
            print(f"{prog}: {result.error}", file=sys.stderr)
        print(f"{prog}: A valid NRB file could not be read!", file=sys.stderr)
        return 1

    if not args.check:
        report(result.composition, sys.stdout)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
