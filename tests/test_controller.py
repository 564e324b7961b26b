import collections

import mido

from notehue.controller import NoteController
from notehue.envelope import NoteEnvelopes
from notehue.live import AppState
from notehue.mapping import ColorMapper


class FakeAudio:
    def __init__(self):
        self.calls = []

    def note_on(self, note, velocity):
        self.calls.append(("on", note, velocity))

    def note_off(self, note):
        self.calls.append(("off", note))


def make_controller(**state_kwargs):
    state = AppState(**state_kwargs)
    shown = []
    first = []
    audio = FakeAudio()
    envelopes = NoteEnvelopes()
    controller = NoteController(
        state,
        ColorMapper(),
        shown.append,
        audio=audio,
        envelopes=envelopes,
        on_first_note=lambda: first.append(True),
        event_log=collections.deque(maxlen=10),
    )
    return controller, state, shown, first, audio, envelopes


class TestNoteController:
    def test_note_on_sets_background(self):
        controller, state, shown, _, _, _ = make_controller()
        controller.on_midi(mido.Message("note_on", note=60, velocity=100))
        assert shown == ["#db3132"]
        assert state.background == "#db3132"
        assert state.active_notes == {60}

    def test_first_note_fires_once(self):
        controller, state, _, first, _, _ = make_controller()
        assert not state.first_note_played
        controller.on_midi(mido.Message("note_on", note=60, velocity=100))
        controller.on_midi(mido.Message("note_on", note=64, velocity=100))
        assert state.first_note_played
        assert first == [True]

    def test_note_off_resets_to_idle(self):
        controller, state, shown, _, _, _ = make_controller()
        controller.on_midi(mido.Message("note_on", note=72, velocity=100))
        controller.on_midi(mido.Message("note_off", note=72, velocity=0))
        assert shown == ["hsl(0, 70%, 63%)", "#ffffff"]
        assert state.background == "#ffffff"
        assert state.active_notes == set()

    def test_zero_velocity_note_on_is_release(self):
        controller, state, shown, first, _, _ = make_controller()
        controller.on_midi(mido.Message("note_on", note=60, velocity=0))
        assert shown == ["#ffffff"]
        assert not state.first_note_played
        assert first == []

    def test_keep_color_on_note_off(self):
        controller, state, shown, _, _, _ = make_controller(reset_on_note_off=False)
        controller.on_midi(mido.Message("note_on", note=60, velocity=100))
        controller.on_midi(mido.Message("note_off", note=60))
        assert shown == ["#db3132"]
        assert state.background == "#db3132"

    def test_audio_and_envelopes_follow_notes(self):
        controller, _, _, _, audio, envelopes = make_controller()
        controller.on_midi(mido.Message("note_on", note=62, velocity=90))
        assert envelopes.levels[62] == 1.0
        controller.on_midi(mido.Message("note_off", note=62))
        assert audio.calls == [("on", 62, 90), ("off", 62)]
        assert envelopes.levels[62] == 0.0

    def test_velocity_sensitive_levels(self):
        controller, state, _, _, _, envelopes = make_controller(velocity_sensitive=True)
        controller.on_midi(mido.Message("note_on", note=60, velocity=127))
        controller.on_midi(mido.Message("note_on", note=61, velocity=0))
        controller.on_midi(mido.Message("note_on", note=62, velocity=64))
        assert state.note_levels[60] == 1.0
        assert abs(state.note_levels[62] - 64 / 127.0) < 1e-9
        assert abs(envelopes.levels[62] - 64 / 127.0) < 1e-9

    def test_other_messages_ignored(self):
        controller, state, shown, _, audio, _ = make_controller()
        controller.on_midi(mido.Message("control_change", control=64, value=127))
        controller.on_midi(mido.Message("pitchwheel", pitch=100))
        assert shown == []
        assert audio.calls == []
        assert state.last_event is None

    def test_event_log(self):
        controller, _, _, _, _, _ = make_controller()
        controller.on_midi(mido.Message("note_on", note=60, velocity=100))
        assert controller.event_log[0] == "Note on: 60, Color: #db3132"
        assert controller.event_log[1] == "note_on ch=1 note=60 vel=100"

    def test_every_note_message_is_logged(self):
        controller, _, _, _, _, _ = make_controller()
        controller.on_midi(mido.Message("note_off", note=60, velocity=0))
        assert "note_off ch=1 note=60 vel=0" in controller.event_log

    def test_works_without_collaborators(self):
        state = AppState()
        shown = []
        controller = NoteController(state, ColorMapper(strategy="rgb_channel"), shown.append)
        controller.on_midi(mido.Message("note_on", note=48, velocity=100))
        controller.on_midi(mido.Message("note_off", note=48))
        assert shown == ["#6d0003", "#ffffff"]

    def test_format_msg(self):
        text = NoteController.format_msg(mido.Message("note_on", channel=1, note=60, velocity=5))
        assert text == "note_on ch=2 note=60 vel=5"
