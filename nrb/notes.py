"""Note records and the field rules every stored note satisfies.

A note is placed in a section by index and must not start before that
section does.  Nothing ties its release to any section boundary: sections
may overlap, and a long note is free to run past the start of a later
section.

Articulation byte layout::

    bit 7    P  pedal-modified
    bit 6    G  grace note
    bits 0-5 A  articulation index, 0-61 (62 and 63 are reserved)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional, Sequence

from .binio import MAX_U16, MAX_U64

MAX_SECTIONS = 65535
MAX_NOTES = 1048576

MIN_PITCH = -39
MAX_PITCH = 48

MAX_ARTICULATION = 61
ARTICULATION_MASK = 0x3F
PEDAL_FLAG = 0x80
GRACE_FLAG = 0x40

MAX_RAMP = 16384

# start, release, pitch, articulation, ramp, section, layer
NOTE_RECORD_SIZE = 8 + 8 + 1 + 1 + 2 + 2 + 2


@dataclass(frozen=True)
class Note:
    """A single performed note event."""

    start: int  # microseconds from the start of the composition
    release: int  # microseconds; strictly after start
    pitch: int = 0  # semitones from middle C
    articulation: int = 0  # P/G flags plus articulation index
    ramp: int = 0  # 0-16384, i.e. 0.0-1.0
    section: int = 0  # index into the section table
    layer: int = 0  # one less than the layer number

    @property
    def duration(self) -> int:
        return self.release - self.start

    @property
    def pedal(self) -> bool:
        return bool(self.articulation & PEDAL_FLAG)

    @property
    def grace(self) -> bool:
        return bool(self.articulation & GRACE_FLAG)

    @property
    def articulation_index(self) -> int:
        return self.articulation & ARTICULATION_MASK

    @property
    def ramp_value(self) -> float:
        """Return the ramp as a float in [0.0, 1.0]."""

        return self.ramp / float(MAX_RAMP)

    @property
    def layer_number(self) -> int:
        return self.layer + 1


def make_articulation(index: int = 0, *, pedal: bool = False, grace: bool = False) -> int:
    """Pack an articulation index and the two flag bits into one byte."""

    if not (0 <= index <= MAX_ARTICULATION):
        raise ValueError(f"articulation index {index} outside [0, {MAX_ARTICULATION}]")
    value = index
    if pedal:
        value |= PEDAL_FLAG
    if grace:
        value |= GRACE_FLAG
    return value


def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def note_problem(note: Note, sections: Sequence[int]) -> Optional[str]:
    """Describe the first rule `note` breaks against `sections`, or None.

    The same rules guard the parser and the mutation calls; callers
    decide whether a violation is bad data or a programming error.
    """

    for name in ("start", "release", "pitch", "articulation", "ramp", "section", "layer"):
        value = getattr(note, name)
        if not _is_int(value):
            return f"note {name} must be an integer, got {value!r}"

    if not (0 <= note.start <= MAX_U64):
        return f"note start {note.start} outside [0, {MAX_U64}]"
    if note.release <= note.start:
        return f"note release {note.release} not after start {note.start}"
    if note.release > MAX_U64:
        return f"note release {note.release} exceeds {MAX_U64}"
    if not (MIN_PITCH <= note.pitch <= MAX_PITCH):
        return f"note pitch {note.pitch} outside [{MIN_PITCH}, {MAX_PITCH}]"
    if not (0 <= note.articulation <= 0xFF):
        return f"note articulation {note.articulation} does not fit in a byte"
    if (note.articulation & ARTICULATION_MASK) > MAX_ARTICULATION:
        return (
            f"note articulation index {note.articulation & ARTICULATION_MASK} "
            f"exceeds {MAX_ARTICULATION}"
        )
    if not (0 <= note.ramp <= MAX_RAMP):
        return f"note ramp {note.ramp} outside [0, {MAX_RAMP}]"
    if not (0 <= note.section < len(sections)):
        return f"note section {note.section} outside [0, {len(sections)})"
    if not (0 <= note.layer <= MAX_U16):
        return f"note layer {note.layer} outside [0, {MAX_U16}]"
    if note.start < sections[note.section]:
        return (
            f"note start {note.start} precedes section {note.section} "
            f"offset {sections[note.section]}"
        )
    return None
