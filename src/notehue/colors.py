from __future__ import annotations

import colorsys
import math
import re
from typing import NamedTuple, Union


class NoteHueError(Exception):
    """Base class for notehue errors."""


class NoMappingError(NoteHueError, LookupError):
    """A pitch class has no entry in the base color table."""


class InvalidColorFormatError(NoteHueError, ValueError):
    """A color string is not `#rrggbb` (or a supported css form)."""


class RGB(NamedTuple):
    r: int
    g: int
    b: int


class HSL(NamedTuple):
    h: Union[int, float]  # degrees, [0, 360)
    s: Union[int, float]  # percent
    l: Union[int, float]  # percent


_HEX_RE = re.compile(r"^#([0-9a-fA-F]{2})([0-9a-fA-F]{2})([0-9a-fA-F]{2})$")
_HSL_RE = re.compile(
    r"^hsl\(\s*(-?\d+(?:\.\d+)?)\s*,\s*(\d+(?:\.\d+)?)%\s*,\s*(\d+(?:\.\d+)?)%\s*\)$"
)


def _round_half_up(x: float) -> int:
    return int(math.floor(x + 0.5))


def _clamp_channel(x: int) -> int:
    return max(0, min(255, int(x)))


def parse_hex(text: str) -> RGB:
    if not isinstance(text, str):
        raise InvalidColorFormatError(f"expected a hex string, got {text!r}")
    m = _HEX_RE.match(text.strip())
    if not m:
        raise InvalidColorFormatError(f"not a #rrggbb color: {text!r}")
    return RGB(*(int(part, 16) for part in m.groups()))


def to_hex(rgb) -> str:
    r, g, b = (_clamp_channel(c) for c in rgb)
    return f"#{r:02x}{g:02x}{b:02x}"


def rgb_to_hsl(text: str, exact: bool = False) -> HSL:
    """
    Convert `#rrggbb` to HSL.

    Hue is in degrees, saturation and lightness in percent. Unless `exact`
    is set, all three are rounded half-up to integers and the hue is wrapped
    into [0, 360) (a hue of 359.6 becomes 0).
    """
    r, g, b = parse_hex(text)
    # colorsys uses the same max/min formulas: l=(max+min)/2, achromatic when max == min.
    h, l, s = colorsys.rgb_to_hls(r / 255.0, g / 255.0, b / 255.0)
    h_deg, s_pct, l_pct = h * 360.0, s * 100.0, l * 100.0
    if exact:
        return HSL(h_deg, s_pct, l_pct)
    return HSL(_round_half_up(h_deg) % 360, _round_half_up(s_pct), _round_half_up(l_pct))


def hsl_to_rgb(hsl) -> RGB:
    h, s, l = hsl
    r, g, b = colorsys.hls_to_rgb((float(h) % 360.0) / 360.0, float(l) / 100.0, float(s) / 100.0)
    return RGB(*(_clamp_channel(_round_half_up(c * 255.0)) for c in (r, g, b)))


def format_hsl(hsl) -> str:
    h, s, l = hsl
    return f"hsl({h}, {s}%, {l}%)"


def parse_css_color(text: str) -> RGB:
    """Parse the color strings the mapper emits: `#rrggbb` or `hsl(H, S%, L%)`."""
    if not isinstance(text, str):
        raise InvalidColorFormatError(f"expected a color string, got {text!r}")
    value = text.strip()
    if value.startswith("#"):
        return parse_hex(value)
    m = _HSL_RE.match(value.lower())
    if not m:
        raise InvalidColorFormatError(f"unsupported color: {text!r}")
    h, s, l = (float(x) for x in m.groups())
    if s > 100 or l > 100:
        raise InvalidColorFormatError(f"hsl percent out of range: {text!r}")
    return hsl_to_rgb((h, s, l))
