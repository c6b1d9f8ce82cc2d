"""Reader and writer for NoiR Binary (NRB) note-event files."""

from .binio import DecodeError  # noqa: F401
from .composition import (  # noqa: F401
    NOTE_CAPACITY_INIT,
    SECTION_CAPACITY_INIT,
    Composition,
    grow_capacity,
)
from .notes import (  # noqa: F401
    GRACE_FLAG,
    MAX_ARTICULATION,
    MAX_NOTES,
    MAX_PITCH,
    MAX_RAMP,
    MAX_SECTIONS,
    MIN_PITCH,
    NOTE_RECORD_SIZE,
    PEDAL_FLAG,
    Note,
    make_articulation,
    note_problem,
)
from .parser import (  # noqa: F401
    HEADER_SIZE,
    SIGNATURE_PRIMARY,
    SIGNATURE_SECONDARY,
    VERSION_MAJOR,
    VERSION_MINOR,
    ParseResult,
    VersionStatus,
    parse_bytes,
    parse_path,
    parse_stream,
)
from .serializer import serialize, serialize_bytes, serialize_path  # noqa: F401
