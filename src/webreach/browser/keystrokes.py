"""Keystroke timing model for simulated typing."""

from __future__ import annotations

import random
import string

from webreach.settings.config import InteractionSettings

_PAUSE_AFTER = frozenset(string.whitespace + string.punctuation)


def keystroke_delays(
    text: str,
    timing: InteractionSettings | None = None,
    speed_multiplier: float = 1.0,
    rng: random.Random | None = None,
) -> list[float]:
    """Return one delay (ms) per character of *text*.

    Every character gets a baseline delay drawn from
    ``[key_delay_min_ms, key_delay_max_ms]``.  A character that follows
    whitespace or punctuation adds a punctuation pause, and with
    ``hesitation_probability`` any character adds a longer hesitation.  The
    total is scaled by *speed_multiplier*.
    """
    timing = timing or InteractionSettings()
    rng = rng or random
    delays: list[float] = []
    previous = ""
    for ch in text:
        delay = rng.uniform(timing.key_delay_min_ms, timing.key_delay_max_ms)
        if previous and previous in _PAUSE_AFTER:
            delay += rng.uniform(timing.punctuation_pause_min_ms, timing.punctuation_pause_max_ms)
        if rng.random() < timing.hesitation_probability:
            delay += rng.uniform(timing.hesitation_min_ms, timing.hesitation_max_ms)
        delays.append(delay * max(speed_multiplier, 0.0))
        previous = ch
    return delays
