from __future__ import annotations

import logging
from operator import attrgetter
from typing import Iterator, List, Tuple

from .binio import MAX_U64
from .notes import MAX_NOTES, MAX_SECTIONS, Note, note_problem

logger = logging.getLogger(__name__)

SECTION_CAPACITY_INIT = 16
NOTE_CAPACITY_INIT = 256


def grow_capacity(current: int, initial: int, maximum: int) -> int:
    """Return the next table capacity after `current` fills up.

    Doubles, never drops below `initial`, never exceeds `maximum`, and
    never shrinks.
    """

    new_cap = current * 2
    if new_cap < initial:
        new_cap = initial
    if new_cap > maximum:
        new_cap = maximum
    return max(new_cap, current)


class Composition:
    """Section table plus note table for one NRB document.

    A fresh instance holds section 0 at offset 0 and no notes.  Every
    mutation validates its input against the live section table, so an
    instance is consistent for its whole lifetime.

    Invalid arguments (bad notes, out-of-order offsets, bad indices) are
    caller bugs and raise.  Hitting the section or note ceiling is not:
    ``append_section`` and ``append_note`` return False instead.
    """

    __slots__ = ("_sections", "_notes", "_section_cap", "_note_cap")

    def __init__(self) -> None:
        self._sections: List[int] = [0]
        self._notes: List[Note] = []
        self._section_cap = SECTION_CAPACITY_INIT
        self._note_cap = NOTE_CAPACITY_INIT

    @classmethod
    def empty(cls) -> "Composition":
        return cls()

    @classmethod
    def _from_tables(cls, sections: List[int], notes: List[Note]) -> "Composition":
        """Adopt already-validated tables, sized exactly to their contents."""

        comp = cls.__new__(cls)
        comp._sections = sections
        comp._notes = notes
        comp._section_cap = len(sections)
        comp._note_cap = len(notes)
        return comp

    # -- queries ---------------------------------------------------------

    @property
    def section_count(self) -> int:
        return len(self._sections)

    @property
    def note_count(self) -> int:
        return len(self._notes)

    @property
    def section_capacity(self) -> int:
        return self._section_cap

    @property
    def note_capacity(self) -> int:
        return self._note_cap

    @property
    def sections(self) -> Tuple[int, ...]:
        return tuple(self._sections)

    @property
    def notes(self) -> Tuple[Note, ...]:
        return tuple(self._notes)

    def __len__(self) -> int:
        return len(self._notes)

    def __iter__(self) -> Iterator[Note]:
        return iter(tuple(self._notes))

    def __repr__(self) -> str:
        return f"Composition(sections={self.section_count}, notes={self.note_count})"

    def offset(self, index: int) -> int:
        """Return the start offset in microseconds of section `index`."""

        if not (0 <= index < len(self._sections)):
            raise IndexError(f"section index {index} outside [0, {len(self._sections)})")
        return self._sections[index]

    def get_note(self, index: int) -> Note:
        if not (0 <= index < len(self._notes)):
            raise IndexError(f"note index {index} outside [0, {len(self._notes)})")
        return self._notes[index]

    # -- mutation --------------------------------------------------------

    def _validate(self, note: Note) -> None:
        if not isinstance(note, Note):
            raise TypeError(f"expected Note, got {type(note).__name__}")
        problem = note_problem(note, self._sections)
        if problem is not None:
            raise ValueError(problem)

    def set_note(self, index: int, note: Note) -> None:
        """Replace the note at `index`; the old note survives a failed check."""

        if not (0 <= index < len(self._notes)):
            raise IndexError(f"note index {index} outside [0, {len(self._notes)})")
        self._validate(note)
        self._notes[index] = note

    replace_note = set_note

    def append_section(self, offset: int) -> bool:
        """Open a new section at `offset` microseconds.

        Returns False when the section table is already full.
        """

        if not isinstance(offset, int) or isinstance(offset, bool):
            raise TypeError(f"section offset must be an integer, got {offset!r}")
        if not (0 <= offset <= MAX_U64):
            raise ValueError(f"section offset {offset} outside [0, {MAX_U64}]")
        last = self._sections[-1]
        if offset < last:
            raise ValueError(f"section offset {offset} precedes previous section offset {last}")

        if len(self._sections) >= MAX_SECTIONS:
            logger.debug("section table full (%d); refusing offset %d", MAX_SECTIONS, offset)
            return False
        if len(self._sections) >= self._section_cap:
            self._section_cap = grow_capacity(
                self._section_cap, SECTION_CAPACITY_INIT, MAX_SECTIONS
            )
            logger.debug("section capacity grown to %d", self._section_cap)
        self._sections.append(offset)
        return True

    def append_note(self, note: Note) -> bool:
        """Add `note` to the end of the note table.

        Returns False when the note table is already full.
        """

        self._validate(note)
        if len(self._notes) >= MAX_NOTES:
            logger.debug("note table full (%d); refusing note", MAX_NOTES)
            return False
        if len(self._notes) >= self._note_cap:
            self._note_cap = grow_capacity(self._note_cap, NOTE_CAPACITY_INIT, MAX_NOTES)
            logger.debug("note capacity grown to %d", self._note_cap)
        self._notes.append(note)
        return True

    def sort(self) -> None:
        """Order notes by ascending start time."""

        if len(self._notes) > 1:
            self._notes.sort(key=attrgetter("start"))
