"""Pointer and keyboard simulation against a resolved element.

Every public operation walks the state machine below through a pure
``transition`` table::

    Idle -> Resolving -> Moving -> Acting -> Settling -> Idle
                 \\__________\\_________\\________\\__> Error

``Error`` is reachable from any state; the next operation resets it to
``Idle`` so a failed action never poisons the session.
"""

from __future__ import annotations

import enum
import logging
import random
import time
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

from webreach.browser.keystrokes import keystroke_delays
from webreach.browser.motion import PointerState, bezier_path, distance, ease_in_out, move_duration_ms
from webreach.exceptions import ElementNotInteractable, InvalidTransition
from webreach.models.elements import Candidate, ElementRecord
from webreach.models.selectors import SelectorQuery
from webreach.settings import Settings, get_settings

if TYPE_CHECKING:
    from webreach.browser.resolver import Resolver
    from webreach.browser.runtime import PageBridge
    from webreach.session import CancellationToken

logger = logging.getLogger(__name__)


class SimulatorState(str, enum.Enum):
    IDLE = "idle"
    RESOLVING = "resolving"
    MOVING = "moving"
    ACTING = "acting"
    SETTLING = "settling"
    ERROR = "error"


_TRANSITIONS: dict[tuple[SimulatorState, str], SimulatorState] = {
    (SimulatorState.IDLE, "resolve"): SimulatorState.RESOLVING,
    (SimulatorState.IDLE, "move"): SimulatorState.MOVING,
    (SimulatorState.IDLE, "act"): SimulatorState.ACTING,
    (SimulatorState.RESOLVING, "move"): SimulatorState.MOVING,
    (SimulatorState.RESOLVING, "act"): SimulatorState.ACTING,
    (SimulatorState.MOVING, "act"): SimulatorState.ACTING,
    (SimulatorState.MOVING, "settle"): SimulatorState.SETTLING,
    (SimulatorState.ACTING, "settle"): SimulatorState.SETTLING,
    (SimulatorState.SETTLING, "done"): SimulatorState.IDLE,
    (SimulatorState.ERROR, "reset"): SimulatorState.IDLE,
}


def transition(state: SimulatorState, event: str) -> SimulatorState:
    """Return the state after *event*.

    ``"fail"`` moves any state to ``ERROR``.

    Raises:
        InvalidTransition: *event* is not legal in *state*.
    """
    if event == "fail":
        return SimulatorState.ERROR
    try:
        return _TRANSITIONS[(state, event)]
    except KeyError:
        raise InvalidTransition(state.value, event) from None


Target = Candidate | SelectorQuery | str


class Simulator:
    """Drives the virtual pointer and keyboard for one page."""

    def __init__(
        self,
        bridge: PageBridge,
        resolver: Resolver,
        pointer: PointerState | None = None,
        settings: Settings | None = None,
        speed: str | None = None,
        cancel: CancellationToken | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._bridge = bridge
        self._resolver = resolver
        self.pointer = pointer or PointerState()
        self._settings = settings or get_settings()
        self.speed = speed or self._settings.interaction.speed
        self._cancel = cancel
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._state = SimulatorState.IDLE

    @property
    def state(self) -> SimulatorState:
        return self._state

    @property
    def speed_multiplier(self) -> float:
        return self._settings.speed_multiplier(self.speed)

    # ------------------------------------------------------------------
    # Public operations
    # ------------------------------------------------------------------

    def move_to(self, x: float, y: float) -> dict[str, Any]:
        """Animate the virtual pointer to viewport point ``(x, y)``."""
        with self._operation("move"):
            self._fire("move")
            result = self._animate(x, y)
            self._fire("settle")
        return result

    def click(self, target: Target, index: int = 0) -> dict[str, Any]:
        """Scroll *target* into view, glide to it and click it.

        Returns the dispatched event sequence and whether the native click
        fallback ran (never for disabled elements).
        """
        with self._operation("click"):
            candidate = self._acquire(target, index)
            record = self._scroll_into_view(candidate)
            self._pause(self._settings.interaction.settle_ms)

            vx, vy = record.viewport_rect.center
            self._fire("move")
            self._animate(vx, vy)

            self._fire("act")
            outcome = self._press(candidate, record, vx, vy)

            self._fire("settle")
            self._pause(self._settings.interaction.settle_ms)

        logger.debug("Clicked <%s> at (%.0f, %.0f): %s", record.tag, vx, vy, outcome.get("events"))
        return {
            "x": round(vx),
            "y": round(vy),
            "tag": record.tag,
            "events": list(outcome.get("events") or []),
            "native_click": bool(outcome.get("native_click")),
            "clamped": candidate.clamped,
        }

    def type_text(
        self,
        target: Target,
        text: str,
        clear: bool = False,
        index: int = 0,
        blur: bool = True,
    ) -> dict[str, Any]:
        """Focus *target* and type *text* one character at a time."""
        with self._operation("type"):
            candidate = self._acquire(target, index)
            record = self._scroll_into_view(candidate)
            self._pause(self._settings.interaction.settle_ms)

            vx, vy = record.viewport_rect.center
            self._fire("move")
            self._animate(vx, vy)

            self._fire("act")
            self._press(candidate, record, vx, vy)
            if clear:
                self._bridge.call("clear", target=candidate.handle)

            delays = keystroke_delays(text, self._settings.interaction, self.speed_multiplier, self._rng)
            mutations = 0
            for ch, delay_ms in zip(text, delays):
                self._check_cancel()
                self._sleep(delay_ms / 1000.0)
                outcome = self._bridge.call("type_char", target=candidate.handle, char=ch) or {}
                if not outcome.get("mutated"):
                    raise ElementNotInteractable(
                        _describe(record), f"not editable: {mutations} of {len(text)} character(s) landed"
                    )
                mutations += 1
            self._bridge.call("commit", target=candidate.handle, blur=blur)

            self._fire("settle")
            self._pause(self._settings.interaction.settle_ms)

        return {"typed": len(text), "mutations": mutations, "tag": record.tag, "clamped": candidate.clamped}

    def click_at(self, x: float, y: float) -> dict[str, Any]:
        """Glide to ``(x, y)`` and click there with native input."""
        with self._operation("click_at"):
            self._fire("move")
            self._animate(x, y)
            self._fire("act")
            self._bridge.page.mouse.click(x, y)
            self._fire("settle")
            self._pause(self._settings.interaction.settle_ms)
        return {"x": round(x), "y": round(y)}

    def scroll(self, direction: str = "down", amount: int = 500) -> dict[str, Any]:
        """Scroll the top-level document by *amount* pixels."""
        dy = -abs(amount) if direction == "up" else abs(amount)
        with self._operation("scroll"):
            self._fire("act")
            position = self._bridge.call("scroll", dx=0, dy=dy) or {}
            self._fire("settle")
            self._pause(self._settings.interaction.settle_ms)
        return {"direction": direction, "amount": abs(amount), "scroll_y": position.get("y")}

    def press_key(self, key: str) -> dict[str, Any]:
        """Press a named key (``Enter``, ``Escape``...) with native keyboard input."""
        with self._operation("press_key"):
            self._fire("act")
            self._bridge.page.keyboard.press(key)
            self._fire("settle")
            self._pause(self._settings.interaction.settle_ms)
        return {"key": key}

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    @contextmanager
    def _operation(self, name: str) -> Iterator[None]:
        if self._state is SimulatorState.ERROR:
            self._fire("reset")
        elif self._state is not SimulatorState.IDLE:
            raise InvalidTransition(self._state.value, name)
        try:
            yield
        except BaseException:
            self._fire("fail")
            raise
        self._fire("done")

    def _fire(self, event: str) -> None:
        self._state = transition(self._state, event)

    def _acquire(self, target: Target, index: int) -> Candidate:
        if isinstance(target, Candidate):
            return target
        self._fire("resolve")
        return self._resolver.locate(target, index=index)

    def _press(self, candidate: Candidate, record: ElementRecord, vx: float, vy: float) -> dict[str, Any]:
        """Dispatch the click sequence at viewport point ``(vx, vy)``.

        Raises:
            ElementNotInteractable: Another element covers the click point.
        """
        lx, ly = record.frame.to_local(vx, vy)
        outcome = self._bridge.call(
            "click",
            target=candidate.handle,
            x=lx,
            y=ly,
            vx=vx,
            vy=vy,
            focus=True,
            native=not record.disabled,
        ) or {}
        if outcome.get("obscured"):
            covering = outcome.get("obscured_by") or "another element"
            raise ElementNotInteractable(_describe(record), f"obscured by {covering}")
        return outcome

    def _scroll_into_view(self, candidate: Candidate) -> ElementRecord:
        data = self._bridge.call("scroll_into_view", target=candidate.handle)
        if not data:
            return candidate.record
        record = ElementRecord.from_dict(data)
        record.order = candidate.record.order
        return record

    def _animate(self, x: float, y: float) -> dict[str, Any]:
        it = self._settings.interaction
        start = self.pointer.position
        end = (float(x), float(y))
        dist = distance(start, end)
        path = bezier_path(start, end, it.curve_offset_ratio, it.curve_offset_cap_px, self._rng)
        duration_ms = move_duration_ms(
            dist,
            base_ms=it.move_base_ms,
            ms_per_px=it.move_ms_per_px,
            floor_ms=it.move_floor_ms,
            ceiling_ms=it.move_ceiling_ms,
            speed_multiplier=self.speed_multiplier,
        )
        frame_s = max(it.frame_interval_ms, 1) / 1000.0

        started = self._clock()
        samples = 0
        while True:
            self._check_cancel()
            elapsed_ms = (self._clock() - started) * 1000.0
            progress = 1.0 if duration_ms <= 0 else min(elapsed_ms / duration_ms, 1.0)
            px, py = path.point_at(ease_in_out(progress))
            self._bridge.call("pointer", x=px, y=py)
            self.pointer.moved_to(px, py)
            samples += 1
            if progress >= 1.0:
                break
            self._sleep(frame_s)

        return {"from": start, "to": end, "duration_ms": duration_ms, "samples": samples}

    def _pause(self, ms: float) -> None:
        """Speed-scaled sleep, sliced so cancellation is observed."""
        remaining = max(ms, 0) * self.speed_multiplier / 1000.0
        slice_s = max(self._settings.interaction.cancel_poll_ms, 1) / 1000.0
        while remaining > 0:
            self._check_cancel()
            step = min(remaining, slice_s)
            self._sleep(step)
            remaining -= step

    def _check_cancel(self) -> None:
        if self._cancel is not None:
            self._cancel.raise_if_cancelled()


def _describe(record: ElementRecord) -> str:
    testid = record.attr("data-testid")
    if testid:
        return f'<{record.tag} data-testid="{testid}">'
    label = record.attr("aria-label")
    return f'<{record.tag} aria-label="{label}">' if label else f"<{record.tag}>"
