from __future__ import annotations

import logging
from types import MappingProxyType
from typing import Callable, Dict, Mapping, Tuple

from .colors import (
    HSL,
    RGB,
    InvalidColorFormatError,
    NoMappingError,
    format_hsl,
    parse_css_color,
    parse_hex,
    rgb_to_hsl,
    to_hex,
)

logger = logging.getLogger(__name__)

NOTE_NAMES = ("C", "C#", "D", "D#", "E", "F", "F#", "G", "G#", "A", "A#", "B")

BASELINE_OCTAVE = 4  # octave containing middle C (note 60)
LIGHTNESS_STEP = 10  # percent per octave

# Per-octave channel steps for the rgb_channel strategy (R, G, B).
RGB_UPWARD_STEP = (12, 108, 108)
RGB_DOWNWARD_STEP = (110, 49, 47)

BASE_COLOR_TABLE: Mapping[int, str] = MappingProxyType(
    {
        0: "#db3132",  # C
        1: "#d54bfa",  # C#
        2: "#9f70f9",  # D
        3: "#819afe",  # D#
        4: "#61acd7",  # E
        5: "#7bd8bc",  # F
        6: "#7bd559",  # F#
        7: "#8fd833",  # G
        8: "#afbc2e",  # G#
        9: "#d4a426",  # A
        10: "#e88e20",  # A#
        11: "#e3936e",  # B
    }
)

KEYBOARD_TO_NOTE: Mapping[str, int] = MappingProxyType(
    {
        "q": 50, "w": 51, "e": 52, "r": 53, "t": 54,
        "y": 55, "u": 56, "i": 57, "o": 58, "p": 59,
        "a": 60, "s": 61, "d": 62, "f": 63, "g": 64,
        "h": 65, "j": 66, "k": 67, "l": 68,
        "z": 69, "x": 70, "c": 71, "v": 72, "b": 73,
        "n": 74, "m": 75,
    }
)


def pitch_class(note: int) -> int:
    return int(note) % 12


def octave(note: int) -> int:
    return int(note) // 12 - 1


def note_name(note: int) -> str:
    return f"{NOTE_NAMES[pitch_class(note)]}{octave(note)}"


def validate_table(table: Mapping[int, str]) -> None:
    """Fail fast on an incomplete or malformed base color table."""
    missing = [pc for pc in range(12) if pc not in table]
    if missing:
        raise NoMappingError(f"base color table has no entry for pitch classes {missing}")
    for pc in range(12):
        parse_hex(table[pc])


def hsl_lightness(base: str, offset: int) -> str:
    h, s, l = rgb_to_hsl(base)
    lightness = max(0, min(100, l + offset * LIGHTNESS_STEP))
    return format_hsl(HSL(h, s, lightness))


def rgb_channel(base: str, offset: int) -> str:
    channels = parse_hex(base)
    if offset > 0:
        shifted = [min(255, c + step * offset) for c, step in zip(channels, RGB_UPWARD_STEP)]
    else:
        shifted = [max(0, c - step * -offset) for c, step in zip(channels, RGB_DOWNWARD_STEP)]
    return to_hex(shifted)


OctaveStrategy = Callable[[str, int], str]

STRATEGIES: Dict[str, OctaveStrategy] = {
    "hsl_lightness": hsl_lightness,
    "rgb_channel": rgb_channel,
}
DEFAULT_STRATEGY = "hsl_lightness"


class ColorMapper:
    """
    Maps a MIDI note number to a css color string.

    The base color comes from the pitch class; the octave relative to middle C
    shifts it through the selected strategy. Stateless after construction.
    """

    def __init__(self, table: Mapping[int, str] = BASE_COLOR_TABLE, strategy: str = DEFAULT_STRATEGY):
        if strategy not in STRATEGIES:
            raise ValueError(f"unknown octave strategy {strategy!r}; choose from {sorted(STRATEGIES)}")
        validate_table(table)
        self.table = MappingProxyType(dict(table))
        self.strategy = strategy
        self._adjust = STRATEGIES[strategy]

    def base_color(self, note: int) -> str:
        try:
            return self.table[pitch_class(note)]
        except KeyError:
            raise NoMappingError(f"no base color for note {note}") from None

    def color_for_note(self, note: int) -> str:
        base = self.base_color(note)
        offset = octave(note) - BASELINE_OCTAVE
        if offset == 0:
            return base
        try:
            return self._adjust(base, offset)
        except InvalidColorFormatError:
            logger.warning("Could not adjust %s for note %s, using base color", base, note)
            return base

    def rgb_for_note(self, note: int) -> RGB:
        return parse_css_color(self.color_for_note(note))

    def with_strategy(self, strategy: str) -> "ColorMapper":
        return ColorMapper(self.table, strategy)

    def palette(self, notes=range(128)) -> Tuple[Tuple[int, str], ...]:
        return tuple((n, self.color_for_note(n)) for n in notes)
