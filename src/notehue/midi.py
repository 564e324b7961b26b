from __future__ import annotations

import logging
import threading
from typing import Callable, Iterable, List, Mapping, Optional, Sequence, Set

import mido

from .mapping import KEYBOARD_TO_NOTE

logger = logging.getLogger(__name__)

MidiCallback = Callable[[mido.Message], None]


def is_note_on(msg: mido.Message) -> bool:
    return msg.type == "note_on" and msg.velocity > 0


def is_note_off(msg: mido.Message) -> bool:
    return msg.type == "note_off" or (msg.type == "note_on" and msg.velocity == 0)


class MidiInput:
    def __init__(self, ports: Iterable[str], on_message: MidiCallback):
        self.ports = list(ports)
        self.on_message = on_message
        self._inputs: List[mido.ports.BaseInput] = []

    @staticmethod
    def list_ports() -> List[str]:
        return mido.get_input_names()

    @staticmethod
    def select_ports(available: Sequence[str], pattern: Optional[str] = None, all_ports: bool = False) -> List[str]:
        if all_ports:
            return list(available)
        if pattern:
            return [p for p in available if pattern.lower() in p.lower()]
        return list(available[:1])

    @property
    def opened(self) -> List[str]:
        return [inp.name for inp in self._inputs]

    def open(self) -> None:
        for name in self.ports:
            try:
                inp = mido.open_input(name, callback=self.on_message)
            except (IOError, OSError) as exc:
                logger.warning("Could not open MIDI input %r: %s", name, exc)
                continue
            logger.info("Opened MIDI input %r", name)
            self._inputs.append(inp)

    def close(self) -> None:
        for inp in self._inputs:
            inp.close()
        self._inputs.clear()


class TestMidiGenerator:
    """
    Internal MIDI source for trying the toy without hardware.
    Walks `notes` on a background thread, one note-on/off pulse per step.
    """

    __test__ = False  # not a pytest class

    def __init__(
        self,
        on_message: MidiCallback,
        notes: Sequence[int] = (48, 52, 55, 60, 64, 67, 72, 76, 79),
        velocity: int = 100,
        interval_s: float = 0.6,
    ):
        self.on_message = on_message
        self.notes = list(notes)
        self.velocity = velocity
        self.interval_s = interval_s
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()

    def start(self) -> None:
        if self._thread and self._thread.is_alive():
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, daemon=True)
        self._thread.start()

    def stop(self) -> None:
        self._stop.set()

    def _run(self) -> None:
        i = 0
        while not self._stop.is_set():
            note = self.notes[i % len(self.notes)]
            self.on_message(mido.Message("note_on", note=note, velocity=self.velocity))
            if self._stop.wait(self.interval_s * 0.5):
                self.on_message(mido.Message("note_off", note=note, velocity=0))
                break
            self.on_message(mido.Message("note_off", note=note, velocity=0))
            self._stop.wait(self.interval_s * 0.5)
            i += 1


class KeyboardNoteInput:
    """
    Computer-keyboard emulation of a MIDI keyboard.
    Translates key labels to note_on/note_off messages through a key->note table.
    """

    def __init__(self, table: Mapping[str, int] = KEYBOARD_TO_NOTE, velocity: int = 127, channel: int = 0):
        self.table = table
        self.velocity = max(1, min(127, int(velocity)))
        self.channel = channel
        self._held: Set[str] = set()

    def note_for(self, label: str) -> Optional[int]:
        if not label:
            return None
        return self.table.get(label.lower())

    def press(self, label: str) -> Optional[mido.Message]:
        note = self.note_for(label)
        if note is None:
            return None
        key = label.lower()
        if key in self._held:
            # auto-repeat
            return None
        self._held.add(key)
        logger.debug("Key down: %s, mapped to note: %s", key, note)
        return mido.Message("note_on", channel=self.channel, note=note, velocity=self.velocity)

    def release(self, label: str) -> Optional[mido.Message]:
        note = self.note_for(label)
        if note is None:
            return None
        self._held.discard(label.lower())
        logger.debug("Key up: %s, mapped to note: %s", label.lower(), note)
        return mido.Message("note_off", channel=self.channel, note=note, velocity=0)
