from __future__ import annotations

import collections
import logging
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Deque, Dict, Mapping, Optional, Sequence, Set, Tuple

from .envelope import ADSR
from .mapping import NOTE_NAMES

logger = logging.getLogger(__name__)

SYNTH_KINDS = ("sine", "triangle", "square", "sawtooth")

_NOTE_NAME_RE = re.compile(r"^([A-Ga-g])([#b]?)(-?\d+)$")


@dataclass(frozen=True)
class InstrumentOption:
    name: str
    kind: str  # one of SYNTH_KINDS or "sampler"
    adsr: ADSR = field(default_factory=ADSR)
    samples: Mapping[str, str] = field(default_factory=dict)  # note name -> file
    folder: str = ""  # sample subdirectory under --samples-dir
    release: float = 0.0  # sampler voice tail, seconds

    @property
    def is_sampler(self) -> bool:
        return self.kind == "sampler"


_SALAMANDER_NOTES = (
    ["A0"]
    + [f"{n}{o}" for o in range(1, 7) for n in ("C", "D#", "F#", "A")]
    + ["C7", "D#7", "F#7"]
)

INSTRUMENTS: Tuple[InstrumentOption, ...] = (
    InstrumentOption("Triangle Wave", "triangle", ADSR(0.02, 0.1, 0.3, 1.0)),
    InstrumentOption("Square Wave", "square", ADSR(0.01, 0.2, 0.2, 0.8)),
    InstrumentOption("Sawtooth Wave", "sawtooth", ADSR(0.05, 0.1, 0.4, 1.2)),
    # no FM operator in pyglet's synthesis module; a sine voice with the FM envelope
    InstrumentOption("Simple FM", "sine", ADSR(0.01, 0.1, 0.5, 0.8)),
    InstrumentOption(
        "Casio Keyboard",
        "sampler",
        samples={"A1": "A1.mp3", "A2": "A2.mp3"},
        folder="casio",
    ),
    InstrumentOption(
        "Salamander Piano",
        "sampler",
        samples={name: name.replace("#", "s") + ".ogg" for name in _SALAMANDER_NOTES},
        folder="salamander",
        release=0.8,
    ),
)

DEFAULT_INSTRUMENT = "Salamander Piano"

VISUALIZERS: Tuple[str, ...] = ("Ball", "Bars")
DEFAULT_VISUALIZER = VISUALIZERS[0]


def find_instrument(name: str) -> InstrumentOption:
    for option in INSTRUMENTS:
        if option.name.lower() == name.lower():
            return option
    raise KeyError(f"unknown instrument {name!r}; choose from {[o.name for o in INSTRUMENTS]}")


def next_option(options: Sequence[str], current: str) -> str:
    try:
        idx = list(options).index(current)
    except ValueError:
        idx = -1
    return options[(idx + 1) % len(options)]


def note_from_name(name: str) -> int:
    """'C4' -> 60, 'D#1' -> 27, 'Bb3' -> 58."""
    m = _NOTE_NAME_RE.match(name.strip())
    if not m:
        raise ValueError(f"not a note name: {name!r}")
    letter, accidental, octave = m.groups()
    pc = NOTE_NAMES.index(letter.upper())
    if accidental == "#":
        pc += 1
    elif accidental == "b":
        pc -= 1
    return (int(octave) + 1) * 12 + pc


def nearest_sample(samples: Mapping[str, str], note: int) -> Tuple[str, int]:
    """Pick the sampled note closest to `note`; returns (file, semitone shift)."""
    if not samples:
        raise ValueError("instrument has no samples")
    best_name = min(samples, key=lambda n: (abs(note_from_name(n) - note), note_from_name(n)))
    return samples[best_name], note - note_from_name(best_name)


def note_frequency(note: int) -> float:
    return 440.0 * 2.0 ** ((note - 69) / 12.0)


Schedule = Callable[[Callable[[float], None], float], None]


def _pyglet_schedule(callback: Callable[[float], None], delay: float) -> None:
    import pyglet

    pyglet.clock.schedule_once(callback, delay)


class SamplePlayer:
    """
    Audio collaborator keyed by note number.

    Sampler instruments load each sample file once (pyglet static sources)
    and pitch-shift the nearest one; synth instruments use pyglet's
    procedural sources. pyglet is imported on first use and must only be
    driven from the thread running the pyglet event loop.
    """

    def __init__(
        self,
        instrument: InstrumentOption,
        samples_dir: Optional[str | Path] = None,
        schedule: Schedule = _pyglet_schedule,
    ):
        self.instrument = instrument
        self.samples_dir = Path(samples_dir) if samples_dir else None
        self.schedule = schedule
        self._cache: Dict[str, Any] = {}
        self._voices: Dict[int, Any] = {}
        self._releasing: Set[Any] = set()

    def set_instrument(self, instrument: InstrumentOption) -> None:
        self.stop_all()
        self.instrument = instrument

    def _load(self, filename: str):
        if filename in self._cache:
            return self._cache[filename]
        import pyglet

        if self.samples_dir is None:
            logger.warning("No --samples-dir given, cannot load %s", filename)
            return None
        path = self.samples_dir / self.instrument.folder / filename
        try:
            source = pyglet.media.load(str(path), streaming=False)
        except (OSError, pyglet.media.exceptions.MediaException) as exc:
            logger.warning("Could not load sample %s: %s", path, exc)
            source = None
        self._cache[filename] = source
        return source

    def _synth_source(self, note: int):
        from pyglet.media import synthesis

        adsr = self.instrument.adsr
        waveform = {
            "sine": synthesis.Sine,
            "triangle": synthesis.Triangle,
            "square": synthesis.Square,
            "sawtooth": synthesis.Sawtooth,
        }[self.instrument.kind]
        envelope = synthesis.ADSREnvelope(adsr.attack, adsr.decay, adsr.release, adsr.sustain)
        duration = adsr.attack + adsr.decay + 1.0 + adsr.release
        return waveform(duration, frequency=note_frequency(note), envelope=envelope)

    def release_time(self) -> float:
        if self.instrument.is_sampler:
            return self.instrument.release
        return self.instrument.adsr.release

    def note_on(self, note: int, velocity: int) -> None:
        import pyglet

        self.note_off(note)
        if self.instrument.is_sampler:
            filename, shift = nearest_sample(self.instrument.samples, note)
            source = self._load(filename)
            if source is None:
                return
            pitch = 2.0 ** (shift / 12.0)
        else:
            source = self._synth_source(note)
            pitch = 1.0

        player = pyglet.media.Player()
        player.queue(source)
        player.pitch = pitch
        player.volume = max(0.0, min(1.0, velocity / 127.0))
        player.play()
        self._voices[note] = player

    def note_off(self, note: int) -> None:
        player = self._voices.pop(note, None)
        if player is None:
            return
        tail = self.release_time()
        if tail <= 0:
            player.delete()
            return
        self._releasing.add(player)
        self.schedule(lambda _dt: self._finish(player), tail)

    def _finish(self, player) -> None:
        if player in self._releasing:
            self._releasing.discard(player)
            player.delete()

    def stop_all(self) -> None:
        for player in list(self._voices.values()) + list(self._releasing):
            player.delete()
        self._voices.clear()
        self._releasing.clear()


class QueuedVoices:
    """
    Collects note_on/note_off calls from any thread; `drain` replays them
    on the thread that owns the audio target (the pyglet loop).
    """

    def __init__(self, target):
        self.target = target
        self._pending: Deque[Tuple[str, int, int]] = collections.deque()

    def note_on(self, note: int, velocity: int) -> None:
        self._pending.append(("on", note, velocity))

    def note_off(self, note: int) -> None:
        self._pending.append(("off", note, 0))

    def __len__(self) -> int:
        return len(self._pending)

    def drain(self) -> int:
        handled = 0
        while self._pending:
            kind, note, velocity = self._pending.popleft()
            if kind == "on":
                self.target.note_on(note, velocity)
            else:
                self.target.note_off(note)
            handled += 1
        return handled
