import threading

import mido

from notehue.midi import KeyboardNoteInput, MidiInput, TestMidiGenerator, is_note_off, is_note_on


class TestNoteKinds:
    def test_zero_velocity_note_on_is_note_off(self):
        assert is_note_off(mido.Message("note_on", note=60, velocity=0))
        assert not is_note_on(mido.Message("note_on", note=60, velocity=0))

    def test_note_on_and_off(self):
        assert is_note_on(mido.Message("note_on", note=60, velocity=1))
        assert is_note_off(mido.Message("note_off", note=60, velocity=64))
        assert not is_note_on(mido.Message("control_change", control=1, value=1))


class TestKeyboardNoteInput:
    def test_press_maps_key_to_note_on(self):
        kb = KeyboardNoteInput()
        msg = kb.press("A")
        assert msg.type == "note_on"
        assert msg.note == 60
        assert msg.velocity == 127

    def test_auto_repeat_is_ignored(self):
        kb = KeyboardNoteInput()
        assert kb.press("q") is not None
        assert kb.press("q") is None
        kb.release("q")
        assert kb.press("q") is not None

    def test_release_sends_note_off(self):
        kb = KeyboardNoteInput()
        kb.press("v")
        msg = kb.release("V")
        assert msg.type == "note_off"
        assert msg.note == 72
        assert msg.velocity == 0

    def test_unmapped_keys(self):
        kb = KeyboardNoteInput()
        assert kb.press("1") is None
        assert kb.release("SPACE") is None
        assert kb.press("") is None

    def test_custom_table_and_velocity(self):
        kb = KeyboardNoteInput({"x": 40}, velocity=300)
        assert kb.press("x").velocity == 127
        assert kb.press("a") is None


class TestMidiInput:
    def test_select_ports(self):
        ports = ["Midi Through", "USB Keyboard", "usb pads"]
        assert MidiInput.select_ports(ports) == ["Midi Through"]
        assert MidiInput.select_ports(ports, pattern="usb") == ["USB Keyboard", "usb pads"]
        assert MidiInput.select_ports(ports, all_ports=True) == ports
        assert MidiInput.select_ports([]) == []


class TestGenerator:
    def test_emits_note_pulses(self):
        received = []
        enough = threading.Event()

        def on_message(msg):
            received.append(msg)
            if len(received) >= 2:
                enough.set()

        gen = TestMidiGenerator(on_message, notes=[64], interval_s=0.02)
        gen.start()
        try:
            assert enough.wait(timeout=2.0)
        finally:
            gen.stop()
        assert received[0].type == "note_on"
        assert received[0].note == 64
        assert received[1].type == "note_off"
