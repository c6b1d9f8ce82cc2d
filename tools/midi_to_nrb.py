#!/usr/bin/env python3
"""Convert a Standard MIDI File into an NRB note-event file.

Examples
--------
    python tools/midi_to_nrb.py input.mid
    python tools/midi_to_nrb.py input.mid -o output/song.nrb
    python tools/midi_to_nrb.py input.mid --info

Mapping
-------
  time          tempo-aware absolute microseconds
  pitch         MIDI key - 60 (keys 21-108 only; others are skipped)
  ramp          velocity scaled from 0-127 to 0-16384
  pedal flag    sustain (CC 64 >= 64) held on the channel at note release
  layer         MIDI channel
  sections      one per ``marker`` meta message after time zero
"""

from __future__ import annotations

import argparse
from bisect import bisect_right
from dataclasses import dataclass
from pathlib import Path
import sys
from typing import Dict, List, Tuple

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

import mido  # noqa: E402

from nrb.composition import Composition  # noqa: E402
from nrb.notes import MAX_PITCH, MAX_RAMP, MIN_PITCH, Note, make_articulation  # noqa: E402
from nrb.serializer import serialize_bytes  # noqa: E402

MIDDLE_C = 60
SUSTAIN_CC = 64
PEDAL_THRESHOLD = 64
US_PER_SECOND = 1_000_000


@dataclass
class MidiNote:
    """A note extracted from MIDI with absolute timing in microseconds."""

    start: int
    release: int
    key: int
    velocity: int
    channel: int
    pedal: bool = False


@dataclass
class Conversion:
    composition: Composition
    skipped_range: int  # keys outside the piano range
    dropped_overflow: int  # notes past the NRB note limit
    dropped_sections: int  # markers past the NRB section limit


def velocity_to_ramp(velocity: int) -> int:
    velocity = max(0, min(127, velocity))
    return int(round(velocity / 127.0 * MAX_RAMP))


def extract_midi_notes(mid: mido.MidiFile) -> Tuple[List[MidiNote], List[int]]:
    """Pair note-on/note-off messages and collect marker times.

    Returns (notes, marker offsets).  Notes still sounding at the end of
    the file are released at the final message time.
    """

    notes: List[MidiNote] = []
    markers: List[int] = []

    # pending[(channel, key)] -> stack[(onset_us, velocity)]
    pending: Dict[Tuple[int, int], List[Tuple[int, int]]] = {}
    pedal_down: Dict[int, bool] = {}

    now = 0.0
    now_us = 0
    for msg in mid:
        now += msg.time
        now_us = int(round(now * US_PER_SECOND))

        if msg.type == "marker":
            if now_us > 0:
                markers.append(now_us)
            continue

        if msg.type == "control_change" and msg.control == SUSTAIN_CC:
            pedal_down[msg.channel] = msg.value >= PEDAL_THRESHOLD
            continue

        if msg.type == "note_on" and msg.velocity > 0:
            pending.setdefault((msg.channel, msg.note), []).append((now_us, msg.velocity))
            continue

        if msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0):
            starts = pending.get((msg.channel, msg.note))
            if not starts:
                continue
            onset, velocity = starts.pop()
            notes.append(
                MidiNote(
                    start=onset,
                    release=max(now_us, onset + 1),
                    key=msg.note,
                    velocity=velocity,
                    channel=msg.channel,
                    pedal=pedal_down.get(msg.channel, False),
                )
            )

    for (channel, key), starts in pending.items():
        for onset, velocity in starts:
            notes.append(
                MidiNote(
                    start=onset,
                    release=max(now_us, onset + 1),
                    key=key,
                    velocity=velocity,
                    channel=channel,
                    pedal=pedal_down.get(channel, False),
                )
            )

    notes.sort(key=lambda n: (n.start, n.channel, n.key))
    return notes, markers


def build_composition(notes: List[MidiNote], markers: List[int]) -> Conversion:
    comp = Composition()

    dropped_sections = 0
    for offset in sorted(markers):
        if not comp.append_section(offset):
            dropped_sections += 1
    offsets = list(comp.sections)

    skipped = 0
    dropped = 0
    for midi_note in notes:
        pitch = midi_note.key - MIDDLE_C
        if not (MIN_PITCH <= pitch <= MAX_PITCH):
            skipped += 1
            continue
        section = bisect_right(offsets, midi_note.start) - 1
        note = Note(
            start=midi_note.start,
            release=midi_note.release,
            pitch=pitch,
            articulation=make_articulation(pedal=midi_note.pedal),
            ramp=velocity_to_ramp(midi_note.velocity),
            section=section,
            layer=midi_note.channel,
        )
        if not comp.append_note(note):
            dropped += 1

    comp.sort()
    return Conversion(
        composition=comp,
        skipped_range=skipped,
        dropped_overflow=dropped,
        dropped_sections=dropped_sections,
    )


def convert_midi(mid: mido.MidiFile) -> Conversion:
    notes, markers = extract_midi_notes(mid)
    return build_composition(notes, markers)


def _build_arg_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="midi_to_nrb",
        description="Convert a MIDI file into an NRB note-event file",
    )
    parser.add_argument("midi", type=Path, help="Input .mid file")
    parser.add_argument(
        "-o",
        "--output",
        type=Path,
        default=None,
        help="Output .nrb path (default: input path with .nrb suffix)",
    )
    parser.add_argument(
        "--info",
        action="store_true",
        help="Print what would be written without writing",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_arg_parser()
    args = parser.parse_args(argv)
    prog = parser.prog

    try:
        mid = mido.MidiFile(str(args.midi))
        result = convert_midi(mid)
    except OSError as exc:
        print(f"{prog}: cannot read {args.midi}: {exc.strerror or exc}", file=sys.stderr)
        return 1
    except (EOFError, ValueError, TypeError) as exc:
        print(f"{prog}: {args.midi} is not a usable MIDI file: {exc}", file=sys.stderr)
        return 1
    comp = result.composition

    print(f"sections={comp.section_count} notes={comp.note_count}")
    if result.skipped_range:
        print(f"  skipped {result.skipped_range} notes outside MIDI keys 21-108")
    if result.dropped_overflow:
        print(f"  dropped {result.dropped_overflow} notes past the note limit")
    if result.dropped_sections:
        print(f"  dropped {result.dropped_sections} markers past the section limit")

    if args.info:
        return 0

    data = serialize_bytes(comp)
    if data is None:
        print(f"{prog}: no notes to write from {args.midi}", file=sys.stderr)
        return 1

    out_path = args.output if args.output is not None else args.midi.with_suffix(".nrb")
    out_path = out_path.expanduser().resolve()
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_bytes(data)
    print(f"Wrote {len(data)} bytes -> {out_path}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
