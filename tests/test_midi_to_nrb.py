from __future__ import annotations

import importlib.util
from pathlib import Path
import sys

import mido

REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from nrb.parser import VersionStatus, parse_path  # noqa: E402

TPB = 480
BEAT_US = 500_000  # 120 bpm


def _load_midi_tool_module():
    module_path = REPO_ROOT / "tools" / "midi_to_nrb.py"
    spec = importlib.util.spec_from_file_location("midi_to_nrb_tool", module_path)
    assert spec is not None and spec.loader is not None
    module = importlib.util.module_from_spec(spec)
    sys.modules[spec.name] = module
    spec.loader.exec_module(module)
    return module


def _track(events: list[tuple[int, mido.Message | mido.MetaMessage]]) -> mido.MidiTrack:
    """Build one MIDI track from (absolute tick, message) pairs."""
    events = sorted(events, key=lambda item: item[0])
    track = mido.MidiTrack()
    last_tick = 0
    for tick, msg in events:
        track.append(msg.copy(time=tick - last_tick))
        last_tick = tick
    return track


def _note(tick: int, key: int, dur: int, vel: int = 100, channel: int = 0):
    return [
        (tick, mido.Message("note_on", channel=channel, note=key, velocity=vel)),
        (tick + dur, mido.Message("note_off", channel=channel, note=key, velocity=0)),
    ]


def _midi(*tracks: mido.MidiTrack) -> mido.MidiFile:
    mid = mido.MidiFile(ticks_per_beat=TPB)
    tempo = mido.MidiTrack()
    tempo.append(mido.MetaMessage("set_tempo", tempo=mido.bpm2tempo(120), time=0))
    mid.tracks.append(tempo)
    mid.tracks.extend(tracks)
    return mid


def test_velocity_to_ramp_endpoints() -> None:
    tool = _load_midi_tool_module()
    assert tool.velocity_to_ramp(0) == 0
    assert tool.velocity_to_ramp(127) == 16384
    assert tool.velocity_to_ramp(200) == 16384
    assert 0 < tool.velocity_to_ramp(64) < 16384


def test_extracts_timing_pitch_and_layer() -> None:
    tool = _load_midi_tool_module()
    mid = _midi(
        _track(_note(0, 60, TPB) + _note(TPB * 2, 72, TPB // 2, vel=127, channel=3)),
    )
    result = tool.convert_midi(mid)
    comp = result.composition
    assert comp.note_count == 2
    first, second = comp.notes
    assert (first.start, first.release, first.pitch, first.layer) == (0, BEAT_US, 0, 0)
    assert (second.start, second.release, second.pitch, second.layer) == (
        2 * BEAT_US,
        2 * BEAT_US + BEAT_US // 2,
        12,
        3,
    )
    assert second.ramp == 16384
    assert result.skipped_range == 0


def test_skips_keys_outside_piano_range() -> None:
    tool = _load_midi_tool_module()
    mid = _midi(_track(_note(0, 20, TPB) + _note(0, 21, TPB) + _note(0, 108, TPB) + _note(0, 109, TPB)))
    result = tool.convert_midi(mid)
    assert result.skipped_range == 2
    assert sorted(n.pitch for n in result.composition) == [-39, 48]


def test_markers_open_sections() -> None:
    tool = _load_midi_tool_module()
    events = [
        (0, mido.MetaMessage("marker", text="intro")),
        (TPB * 4, mido.MetaMessage("marker", text="verse")),
    ]
    events += _note(0, 60, TPB) + _note(TPB * 4, 62, TPB) + _note(TPB * 5, 64, TPB * 8)
    comp = tool.convert_midi(_midi(_track(events))).composition
    assert comp.sections == (0, 4 * BEAT_US)
    assert [n.section for n in comp] == [0, 1, 1]
    # a note may run past any later section boundary
    assert comp.notes[2].release == 13 * BEAT_US


def test_sustain_pedal_sets_flag() -> None:
    tool = _load_midi_tool_module()
    events = [
        (0, mido.Message("control_change", channel=0, control=64, value=127)),
        (TPB * 2, mido.Message("control_change", channel=0, control=64, value=0)),
    ]
    events += _note(0, 60, TPB) + _note(TPB * 3, 62, TPB)
    comp = tool.convert_midi(_midi(_track(events))).composition
    assert [n.pedal for n in comp] == [True, False]


def test_output_is_sorted_and_round_trips(tmp_path: Path) -> None:
    tool = _load_midi_tool_module()
    mid = _midi(
        _track(_note(TPB * 3, 67, TPB)),
        _track(_note(0, 60, TPB, channel=1) + _note(TPB, 64, TPB, channel=1)),
    )
    midi_path = tmp_path / "song.mid"
    mid.save(str(midi_path))
    out_path = tmp_path / "out" / "song.nrb"

    assert tool.main([str(midi_path), "-o", str(out_path)]) == 0

    result = parse_path(out_path)
    assert result.version == VersionStatus.OK
    starts = [n.start for n in result.composition]
    assert starts == sorted(starts) == [0, BEAT_US, 3 * BEAT_US]


def test_default_output_path(tmp_path: Path) -> None:
    tool = _load_midi_tool_module()
    midi_path = tmp_path / "tune.mid"
    _midi(_track(_note(0, 60, TPB))).save(str(midi_path))
    assert tool.main([str(midi_path)]) == 0
    assert parse_path(tmp_path / "tune.nrb").ok


def test_info_does_not_write(tmp_path: Path, capsys) -> None:
    tool = _load_midi_tool_module()
    midi_path = tmp_path / "tune.mid"
    _midi(_track(_note(0, 60, TPB))).save(str(midi_path))
    assert tool.main([str(midi_path), "--info"]) == 0
    assert "sections=1 notes=1" in capsys.readouterr().out
    assert not (tmp_path / "tune.nrb").exists()


def test_midi_without_notes_is_an_error(tmp_path: Path, capsys) -> None:
    tool = _load_midi_tool_module()
    midi_path = tmp_path / "silent.mid"
    _midi(_track([])).save(str(midi_path))
    assert tool.main([str(midi_path)]) == 1
    assert "no notes" in capsys.readouterr().err
    assert not (tmp_path / "silent.nrb").exists()


def test_missing_midi_file_is_an_error(tmp_path: Path, capsys) -> None:
    tool = _load_midi_tool_module()
    assert tool.main([str(tmp_path / "absent.mid")]) == 1
    err = capsys.readouterr().err
    assert err.startswith("midi_to_nrb: cannot read ")
    assert not (tmp_path / "absent.nrb").exists()


def test_corrupt_midi_file_is_an_error(tmp_path: Path, capsys) -> None:
    tool = _load_midi_tool_module()
    midi_path = tmp_path / "broken.mid"
    midi_path.write_bytes(b"MThd\x00\x00")
    assert tool.main([str(midi_path)]) == 1
    assert "is not a usable MIDI file" in capsys.readouterr().err
    assert not (tmp_path / "broken.nrb").exists()


def test_type_2_midi_file_is_an_error(tmp_path: Path, capsys) -> None:
    tool = _load_midi_tool_module()
    midi_path = tmp_path / "patterns.mid"
    mid = mido.MidiFile(type=2, ticks_per_beat=TPB)
    mid.tracks.append(_track(_note(0, 60, TPB)))
    mid.save(str(midi_path))
    assert tool.main([str(midi_path)]) == 1
    assert "is not a usable MIDI file" in capsys.readouterr().err
