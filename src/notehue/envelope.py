from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional

import numpy as np

NUM_NOTES = 128

IDLE, ATTACK, DECAY, SUSTAIN, RELEASE = range(5)


@dataclass
class ADSR:
    attack: float = 0.0
    decay: float = 0.0
    sustain: float = 1.0
    release: float = 0.0

    def clamp(self) -> None:
        self.attack = max(0.0, float(self.attack))
        self.decay = max(0.0, float(self.decay))
        self.sustain = min(1.0, max(0.0, float(self.sustain)))
        self.release = max(0.0, float(self.release))


class NoteEnvelopes:
    """
    One ADSR per MIDI note, stepped together as numpy arrays.
    Visualizers read `levels` to draw notes that fade in and out.
    """

    def __init__(self, adsr: Optional[ADSR] = None):
        self.adsr = adsr or ADSR()
        self.adsr.clamp()
        self.levels = np.zeros(NUM_NOTES, dtype=np.float64)
        self._targets = np.zeros(NUM_NOTES, dtype=np.float64)
        self._phases = np.full(NUM_NOTES, IDLE, dtype=np.int8)

    def reset(self, adsr: Optional[ADSR] = None) -> None:
        if adsr is not None:
            self.adsr = adsr
            self.adsr.clamp()
        self.levels[:] = 0.0
        self._targets[:] = 0.0
        self._phases[:] = IDLE

    def phase(self, note: int) -> int:
        return int(self._phases[note])

    def gate_on(self, note: int, level: float = 1.0) -> None:
        self._targets[note] = min(1.0, max(0.0, float(level)))
        if self.adsr.attack <= 0:
            self.levels[note] = self._targets[note]
            self._phases[note] = DECAY if self.adsr.decay > 0 else SUSTAIN
        else:
            # retrigger from the current level
            self._phases[note] = ATTACK

    def gate_off(self, note: int) -> None:
        if self._phases[note] == IDLE:
            return
        if self.adsr.release <= 0:
            self.levels[note] = 0.0
            self._phases[note] = IDLE
        else:
            self._phases[note] = RELEASE

    def step(self, dt: float) -> None:
        dt = max(0.0, float(dt))
        a, d, s, r = self.adsr.attack, self.adsr.decay, self.adsr.sustain, self.adsr.release
        levels, targets, phases = self.levels, self._targets, self._phases

        # masks are taken up front so a note moves at most one phase per step
        attack = phases == ATTACK
        decay = phases == DECAY
        sustain = phases == SUSTAIN
        release = phases == RELEASE

        after_attack = DECAY if d > 0 else SUSTAIN
        if attack.any():
            if a <= 0:
                levels[attack] = targets[attack]
                phases[attack] = after_attack
            else:
                levels[attack] = np.minimum(targets[attack], levels[attack] + dt / a)
                done = attack & (levels >= targets - 1e-6)
                phases[done] = after_attack

        if decay.any():
            sustain_levels = targets * s
            if d <= 0:
                levels[decay] = sustain_levels[decay]
                phases[decay] = SUSTAIN
            else:
                levels[decay] = np.maximum(sustain_levels[decay], levels[decay] - dt / d)
                done = decay & (levels <= sustain_levels + 1e-6)
                phases[done] = SUSTAIN

        if sustain.any():
            levels[sustain] = targets[sustain] * s

        if release.any():
            if r <= 0:
                levels[release] = 0.0
                phases[release] = IDLE
            else:
                levels[release] = np.maximum(0.0, levels[release] - dt / r)
                done = release & (levels <= 1e-6)
                levels[done] = 0.0
                phases[done] = IDLE

    def active(self) -> List[int]:
        return [int(n) for n in np.flatnonzero(self.levels > 0.0)]
