from __future__ import annotations

import logging
from typing import Callable, Deque, Optional

import mido

from .midi import is_note_off, is_note_on

logger = logging.getLogger(__name__)

DisplaySink = Callable[[str], None]


class NoteController:
    """
    Input dispatcher: applies MIDI messages to AppState.

    The color comes from the mapper; applying it is left to the display sink.
    Audio and envelopes are optional collaborators keyed by the same note.
    """

    def __init__(
        self,
        state,
        mapper,
        display: DisplaySink,
        audio=None,
        envelopes=None,
        on_first_note: Optional[Callable[[], None]] = None,
        event_log: Optional[Deque[str]] = None,
    ):
        self.state = state
        self.mapper = mapper
        self.display = display
        self.audio = audio
        self.envelopes = envelopes
        self.on_first_note = on_first_note
        self.event_log = event_log

    def _log(self, text: str) -> None:
        logger.debug(text)
        if self.event_log is not None:
            self.event_log.appendleft(text)

    @staticmethod
    def format_msg(msg: mido.Message) -> str:
        if msg.type in ("note_on", "note_off"):
            return f"{msg.type} ch={msg.channel+1} note={msg.note} vel={msg.velocity}"
        return str(msg)

    def set_background(self, color: str) -> None:
        self.state.background = color
        self.display(color)

    def on_midi(self, msg: mido.Message) -> None:
        if msg.type not in ("note_on", "note_off"):
            return
        self.state.last_event = msg
        self._log(self.format_msg(msg))

        if is_note_on(msg):
            self.note_on(msg.note, msg.velocity)
        elif is_note_off(msg):
            self.note_off(msg.note)

    def note_on(self, note: int, velocity: int) -> None:
        if not self.state.first_note_played:
            self.state.first_note_played = True
            if self.on_first_note is not None:
                self.on_first_note()

        level = (velocity / 127.0) if self.state.velocity_sensitive else 1.0
        self.state.active_notes.add(note)
        self.state.note_levels[note] = level

        color = self.mapper.color_for_note(note)
        self._log(f"Note on: {note}, Color: {color}")
        self.set_background(color)

        if self.audio is not None:
            self.audio.note_on(note, velocity)
        if self.envelopes is not None:
            self.envelopes.gate_on(note, level)

    def note_off(self, note: int) -> None:
        self.state.active_notes.discard(note)
        self.state.note_levels.pop(note, None)
        self._log(f"Note off: {note}")

        if self.state.reset_on_note_off:
            self.set_background(self.state.idle_color)

        if self.audio is not None:
            self.audio.note_off(note)
        if self.envelopes is not None:
            self.envelopes.gate_off(note)
