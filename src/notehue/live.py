from __future__ import annotations

import argparse
import collections
import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Deque, Dict, Optional, Set

import mido

from .instruments import DEFAULT_INSTRUMENT, DEFAULT_VISUALIZER
from .mapping import DEFAULT_STRATEGY

logger = logging.getLogger(__name__)

IDLE_COLOR = "#ffffff"


@dataclass
class AppState:
    strategy: str = DEFAULT_STRATEGY
    instrument: str = DEFAULT_INSTRUMENT
    visualizer: str = DEFAULT_VISUALIZER
    velocity_sensitive: bool = False
    reset_on_note_off: bool = True
    idle_color: str = IDLE_COLOR
    background: str = IDLE_COLOR
    debug_overlay: bool = False

    first_note_played: bool = False
    active_notes: Set[int] = field(default_factory=set)
    note_levels: Dict[int, float] = field(default_factory=dict)
    last_event: Optional[mido.Message] = None


def state_from_args(args: argparse.Namespace) -> AppState:
    state = AppState()
    if args.strategy is not None:
        state.strategy = args.strategy
    if args.instrument is not None:
        state.instrument = args.instrument
    if args.visualizer is not None:
        state.visualizer = args.visualizer
    if args.velocity_sensitive is not None:
        state.velocity_sensitive = bool(args.velocity_sensitive)
    if args.reset_on_note_off is not None:
        state.reset_on_note_off = bool(args.reset_on_note_off)
    return state


def run_live(args: argparse.Namespace) -> None:
    import pyglet  # local import to keep the pure modules headless
    from pyglet import gl, shapes
    from pyglet.window import key

    from .colors import InvalidColorFormatError, parse_css_color
    from .controller import NoteController
    from .envelope import NoteEnvelopes
    from .instruments import INSTRUMENTS, VISUALIZERS, QueuedVoices, SamplePlayer, find_instrument, next_option
    from .mapping import STRATEGIES, ColorMapper
    from .midi import KeyboardNoteInput, MidiInput, TestMidiGenerator

    state = state_from_args(args)
    instrument = find_instrument(state.instrument)
    mapper = ColorMapper(strategy=state.strategy)
    envelopes = NoteEnvelopes(instrument.adsr)
    audio = SamplePlayer(instrument, samples_dir=args.samples_dir) if not args.mute else None
    # MIDI callbacks run on mido's thread; voices are started from the pyglet loop
    voices = QueuedVoices(audio) if audio is not None else None
    keyboard = KeyboardNoteInput()
    event_log: Deque[str] = collections.deque(maxlen=200)
    lock = threading.Lock()

    clear_rgb = {"value": parse_css_color(state.background)}

    def display(color: str) -> None:
        try:
            clear_rgb["value"] = parse_css_color(color)
        except InvalidColorFormatError:
            logger.warning("Ignoring unparseable background %r", color)

    def on_first_note() -> None:
        logger.info("First note played")

    controller = NoteController(
        state,
        mapper,
        display,
        audio=voices,
        envelopes=envelopes,
        on_first_note=on_first_note,
        event_log=event_log,
    )

    class NoteHueWindow(pyglet.window.Window):
        def __init__(self):
            super().__init__(caption="notehue", resizable=True, width=960, height=540)
            self._last_time = time.perf_counter()
            self.heading = pyglet.text.Label(
                "notehue", font_size=36, anchor_x="center", anchor_y="center", color=(40, 40, 40, 255)
            )
            self.subheading = pyglet.text.Label(
                "Play your MIDI keyboard, or type on the letter keys",
                font_size=14,
                anchor_x="center",
                anchor_y="center",
                color=(80, 80, 80, 255),
            )
            self.overlay = pyglet.text.Label(
                "", x=10, y=self.height - 10, anchor_x="left", anchor_y="top", multiline=True, width=600
            )
            pyglet.clock.schedule_interval(self._update, 1 / 120.0)

        def on_draw(self):
            with lock:
                r, g, b = clear_rgb["value"]
                levels = envelopes.levels.copy()
                visualizer = state.visualizer
                show_heading = not state.first_note_played
                show_overlay = state.debug_overlay
            gl.glClearColor(r / 255.0, g / 255.0, b / 255.0, 1.0)
            self.clear()
            self._draw_visualizer(visualizer, levels)
            if show_heading:
                self.heading.x, self.heading.y = self.width // 2, self.height // 2 + 20
                self.subheading.x, self.subheading.y = self.width // 2, self.height // 2 - 20
                self.heading.draw()
                self.subheading.draw()
            if show_overlay:
                self._draw_overlay()

        def _draw_visualizer(self, visualizer, levels):
            batch = pyglet.graphics.Batch()
            keep = []
            lo, hi = 21, 108  # piano range
            span = self.width / float(hi - lo + 1)
            for note in [int(n) for n in levels.nonzero()[0]]:
                level = float(levels[note])
                color = tuple(mapper.rgb_for_note(note))
                x = (min(hi, max(lo, note)) - lo + 0.5) * span
                if visualizer == "Bars":
                    height = level * self.height * 0.8
                    keep.append(shapes.Rectangle(x - span / 2, 0, span, height, color=color, batch=batch))
                else:
                    radius = 10 + level * min(self.width, self.height) * 0.15
                    keep.append(shapes.Circle(x, self.height / 2, radius, color=color, batch=batch))
            batch.draw()

        def _draw_overlay(self):
            with lock:
                recent = "\n".join(list(event_log)[:12])
                active = sorted(state.active_notes)
                self.overlay.text = (
                    f"Strategy: {mapper.strategy}\n"
                    f"Instrument: {state.instrument}\n"
                    f"Visualizer: {state.visualizer}\n"
                    f"Background: {state.background}\n"
                    f"Active notes: {active}\n"
                    "Keys: F1 instrument, F2 visualizer, F3 strategy, F4 debug, F11 fullscreen\n"
                    f"Recent:\n{recent}"
                )
            self.overlay.y = self.height - 10
            self.overlay.draw()

        def _update(self, _dt):
            now = time.perf_counter()
            dt = now - self._last_time
            self._last_time = now
            with lock:
                envelopes.step(dt)
            if voices is not None:
                voices.drain()

        def on_key_press(self, symbol, modifiers):
            nonlocal mapper
            if symbol == key.ESCAPE:
                self.close()
                return
            if symbol == key.F11:
                self.set_fullscreen(not self.fullscreen)
                return

            with lock:
                if symbol == key.F1:
                    state.instrument = next_option([o.name for o in INSTRUMENTS], state.instrument)
                    chosen = find_instrument(state.instrument)
                    envelopes.reset(chosen.adsr)
                    if audio is not None:
                        audio.set_instrument(chosen)
                    event_log.appendleft(f"Instrument: {state.instrument}")
                    return
                if symbol == key.F2:
                    state.visualizer = next_option(VISUALIZERS, state.visualizer)
                    event_log.appendleft(f"Visualizer: {state.visualizer}")
                    return
                if symbol == key.F3:
                    state.strategy = next_option(sorted(STRATEGIES), state.strategy)
                    mapper = mapper.with_strategy(state.strategy)
                    controller.mapper = mapper
                    event_log.appendleft(f"Strategy: {state.strategy}")
                    return
                if symbol == key.F4:
                    state.debug_overlay = not state.debug_overlay
                    return

            msg = keyboard.press(key.symbol_string(symbol))
            if msg is not None:
                on_midi(msg)

        def on_key_release(self, symbol, modifiers):
            msg = keyboard.release(key.symbol_string(symbol))
            if msg is not None:
                on_midi(msg)

    def on_midi(msg: mido.Message):
        with lock:
            controller.on_midi(msg)

    selected_ports = MidiInput.select_ports(MidiInput.list_ports(), args.port, args.all_ports)
    midi_in = MidiInput(selected_ports, on_midi) if selected_ports else None
    if midi_in:
        midi_in.open()
        event_log.appendleft(f"Opened ports: {', '.join(midi_in.opened) or 'none'}")
    else:
        logger.info("No MIDI input ports opened, keyboard emulation only")
        event_log.appendleft("No MIDI input ports opened")

    generator = None
    if args.generate:
        generator = TestMidiGenerator(on_midi)
        generator.start()
        event_log.appendleft("Internal MIDI generator ON")

    window = NoteHueWindow()
    try:
        pyglet.app.run()
    finally:
        if generator:
            generator.stop()
        if midi_in:
            midi_in.close()
        if audio:
            audio.stop_all()
